"""AI API controller: model catalogue and access checks."""

import logging

from fastapi import APIRouter, Depends, Path

from app.core.dependencies import get_optional_user
from app.domains.ai.registry import access_denial_reason, build_catalog, is_model_usable
from app.schemas.ai import ModelAccessResponse
from app.schemas.base import ResponseSchema
from models.user import User


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["ai"])


@router.get("/models", response_model=ResponseSchema)
async def list_models(current_user: User | None = Depends(get_optional_user)):
    """List every registered model grouped by provider.

    Each entry carries a ``usable`` flag computed for the caller, so anonymous
    callers see which models need a sign-in.
    """
    catalog = build_catalog(current_user.id if current_user else None)
    return ResponseSchema(
        status="success",
        message="Models retrieved successfully",
        data=catalog.model_dump(),
    )


@router.get("/models/{model_id:path}/access", response_model=ResponseSchema)
async def check_model_access(
    model_id: str = Path(..., description="Vendor/model identifier"),
    current_user: User | None = Depends(get_optional_user),
):
    """Check whether the caller may use a model."""
    user_id = current_user.id if current_user else None
    result = ModelAccessResponse(
        model_id=model_id,
        usable=is_model_usable(model_id, user_id),
        reason=access_denial_reason(model_id, user_id),
    )
    return ResponseSchema(status="success", message="Model access checked", data=result.model_dump())
