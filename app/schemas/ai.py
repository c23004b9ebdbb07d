"""AI schemas for request/response serialization."""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from .base import BaseSchema

ModelTier = Literal["free", "premium"]


class ModelInfo(BaseSchema):
    """One entry of the model registry."""

    id: str = Field(..., description="Vendor/model identifier")
    name: str
    description: str = ""
    provider: str
    requires_auth: bool = False
    tier: ModelTier = "free"
    available: bool = True
    is_reasoning: bool = False
    supports_vision: bool = False


class ModelCatalogEntry(ModelInfo):
    """Registry entry annotated for the current caller."""

    usable: bool


class ModelProviderGroup(BaseSchema):
    """Models of one provider."""

    provider: str
    models: list[ModelCatalogEntry]


class ModelCatalogResponse(BaseSchema):
    """Schema for the model catalogue endpoint."""

    default_model: str
    providers: list[ModelProviderGroup]


class ModelAccessResponse(BaseSchema):
    """Schema for a model access check."""

    model_id: str
    usable: bool
    reason: str | None = None
