"""
API tests for AI controller.

This module contains API endpoint tests for the AI controller, testing the
model catalogue and per-caller model access checks.
"""

import pytest
from fastapi import status
from httpx import AsyncClient

from app.core.config import settings
from app.domains.ai.registry import MODEL_REGISTRY


def _entries(catalog):
    return {model["id"]: model for group in catalog["providers"] for model in group["models"]}


class TestAIController:
    """Test cases for AI API endpoints."""

    @pytest.mark.asyncio
    async def test_list_models_anonymous(self, client: AsyncClient):
        """Test the catalogue as seen without a sign-in."""
        response = await client.get("/api/ai/models")

        assert response.status_code == status.HTTP_200_OK
        catalog = response.json()["data"]
        assert catalog["default_model"] == settings.default_model

        entries = _entries(catalog)
        assert set(entries) == set(MODEL_REGISTRY)
        assert entries["google/gemini-2.0-flash-lite-001"]["usable"] is True
        assert entries["openai/o4-mini"]["usable"] is False
        assert entries["anthropic/claude-3.5-sonnet"]["usable"] is False

    @pytest.mark.asyncio
    async def test_list_models_authenticated(self, authenticated_client: AsyncClient):
        """Test the catalogue as seen by a signed-in user."""
        response = await authenticated_client.get("/api/ai/models")

        assert response.status_code == status.HTTP_200_OK
        entries = _entries(response.json()["data"])
        assert entries["openai/o4-mini"]["usable"] is True
        # Unavailable models stay unusable for everyone
        assert entries["anthropic/claude-3.5-sonnet"]["usable"] is False

    @pytest.mark.asyncio
    async def test_catalog_groups_by_provider(self, client: AsyncClient):
        response = await client.get("/api/ai/models")

        providers = [group["provider"] for group in response.json()["data"]["providers"]]
        assert providers[0] == "Google"
        assert len(providers) == len(set(providers))

    @pytest.mark.asyncio
    async def test_access_requires_sign_in(self, client: AsyncClient):
        response = await client.get("/api/ai/models/openai/o4-mini/access")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"] == {
            "model_id": "openai/o4-mini",
            "usable": False,
            "reason": "Sign in to use this model",
        }

    @pytest.mark.asyncio
    async def test_access_for_signed_in_user(self, authenticated_client: AsyncClient):
        response = await authenticated_client.get("/api/ai/models/openai/o4-mini/access")

        data = response.json()["data"]
        assert data["usable"] is True
        assert data["reason"] is None

    @pytest.mark.asyncio
    async def test_access_for_thinking_variant(self, authenticated_client: AsyncClient):
        response = await authenticated_client.get(
            "/api/ai/models/google/gemini-2.5-flash-preview-05-20:thinking/access"
        )

        assert response.json()["data"]["usable"] is True

    @pytest.mark.asyncio
    async def test_access_unknown_model(self, authenticated_client: AsyncClient):
        response = await authenticated_client.get("/api/ai/models/nope/model/access")

        data = response.json()["data"]
        assert data["usable"] is False
        assert data["reason"] == "Unknown model"
