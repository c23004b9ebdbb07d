# ruff: noqa: F403, F401
"""Schemas package initialization."""

# Import all schemas to ensure they're registered
from .base import *
from .ai import *
from .chat import *
from .settings import *

# Rebuild models after all schemas are loaded
ChatSessionDetailResponse.model_rebuild()
