"""
Provides the User model for the application's database schema.

The User model mirrors identities issued by the external auth provider
(Clerk). Rows are created lazily the first time a token for a new subject
is seen.

Attributes
----------
clerk_user_id : sqlalchemy.Column
    Unique identifier for the user from the Clerk auth provider.
email : sqlalchemy.Column
    The email address of the user.
username : sqlalchemy.Column
    The optional username chosen by the user.
is_active : sqlalchemy.Column
    A boolean indicating if the user is active. Defaults to `True`.

Relationships
-------------
chat_sessions : sqlalchemy.orm.relationship
    Chat sessions owned by the user.
settings : sqlalchemy.orm.relationship
    One-to-one relationship with the `UserSettings` model.
"""

from sqlalchemy import Boolean, Column, String
from sqlalchemy.orm import relationship

from .base import BaseModel


class User(BaseModel):
    """
    Represents a user entity in the application.

    :ivar clerk_user_id: Unique identifier for the user provided by Clerk.
    :type clerk_user_id: str
    :ivar email: Email address of the user.
    :type email: str
    :ivar username: Username of the user. This is optional.
    :type username: str
    :ivar is_active: Indicates whether the user account is active.
    :type is_active: bool
    """

    __tablename__ = "users"

    clerk_user_id = Column(String(255), unique=True, nullable=False)
    email = Column(String(255), nullable=True)
    username = Column(String(100))
    is_active = Column(Boolean, default=True)

    # Relationships
    chat_sessions = relationship("ChatSession", back_populates="user")
    settings = relationship("UserSettings", back_populates="user", cascade="all, delete-orphan", uselist=False)
