"""Chat-related exceptions."""

from .base import AppPermissionError, BaseAppException, NotFoundError


class ChatSessionNotFoundError(NotFoundError):
    """Raised when a chat session is not found."""

    def __init__(self, message: str = "Chat session not found"):
        super().__init__(message=message)
        self.error_code = "CHAT_SESSION_NOT_FOUND"
        self.detail["error_code"] = self.error_code


class MessageNotFoundError(NotFoundError):
    """Raised when a message is not found."""

    def __init__(self, message: str = "Message not found"):
        super().__init__(message=message)
        self.error_code = "MESSAGE_NOT_FOUND"
        self.detail["error_code"] = self.error_code


class ChatPermissionError(AppPermissionError):
    """Raised when a caller mutates a session or message they do not own."""

    def __init__(self, message: str = "You don't have permission to modify this chat"):
        super().__init__(message=message)


class AccessDeniedError(BaseAppException):
    """Raised when a caller may not use a model or a chat session."""

    def __init__(self, message: str = "Access denied"):
        super().__init__(message=message, status_code=403, error_code="ACCESS_DENIED")
