"""Model registry and access gate.

The registry is the one place model metadata lives: the access check used by
the orchestrator and the catalogue served to clients both read from
``MODEL_REGISTRY``.
"""

from uuid import UUID

from app.core.config import settings
from app.schemas.ai import ModelCatalogEntry, ModelCatalogResponse, ModelInfo, ModelProviderGroup

# Substrings that mark models able to consume inline images
_VISION_MARKERS = ("gemini", "gpt-4", "claude")


def _model(
    model_id: str,
    name: str,
    description: str,
    provider: str,
    *,
    requires_auth: bool = True,
    tier: str = "free",
    available: bool = True,
    is_reasoning: bool = False,
) -> ModelInfo:
    return ModelInfo(
        id=model_id,
        name=name,
        description=description,
        provider=provider,
        requires_auth=requires_auth,
        tier=tier,
        available=available,
        is_reasoning=is_reasoning,
        supports_vision=any(marker in model_id for marker in _VISION_MARKERS),
    )


_MODELS: list[ModelInfo] = [
    # Google
    _model(
        "google/gemini-2.0-flash-lite-001",
        "Gemini 2.0 Flash-Lite",
        "Fast and efficient for most tasks",
        "Google",
        requires_auth=False,
    ),
    _model(
        "google/gemma-3-27b-it",
        "Gemma 3 27B",
        "Google's most advanced open model",
        "Google",
        requires_auth=False,
    ),
    _model(
        "google/gemini-2.5-flash-preview-05-20",
        "Gemini 2.5 Flash",
        "Google's faster flagship model",
        "Google",
    ),
    _model(
        "google/gemini-2.5-flash-preview-05-20:thinking",
        "Gemini 2.5 Flash Thinking",
        "Thinking version of Google's latest flash model",
        "Google",
        is_reasoning=True,
    ),
    _model(
        "google/gemini-2.0-flash-exp",
        "Gemini 2.0 Flash Experimental",
        "Experimental multimodal model",
        "Google",
        tier="premium",
        available=False,
    ),
    _model(
        "google/gemini-1.5-pro",
        "Gemini 1.5 Pro",
        "Advanced reasoning with long context",
        "Google",
        tier="premium",
        available=False,
    ),
    # Deepseek
    _model(
        "deepseek/deepseek-r1-0528-qwen3-8b",
        "DeepSeek: R1 0528 Qwen3 8B",
        "Flagship model at bite-sized speed",
        "Deepseek",
        is_reasoning=True,
    ),
    _model(
        "deepseek/deepseek-r1-0528",
        "DeepSeek: R1 0528",
        "Deepseek's frontier model",
        "Deepseek",
        is_reasoning=True,
    ),
    _model(
        "deepseek/deepseek-chat-v3-0324",
        "DeepSeek: V3 0324",
        "Deepseek's frontier non-reasoning model",
        "Deepseek",
    ),
    # Anthropic
    _model(
        "anthropic/claude-3.5-sonnet",
        "Claude 3.5 Sonnet",
        "Advanced reasoning and analysis",
        "Anthropic",
        tier="premium",
        available=False,
    ),
    _model(
        "anthropic/claude-3.5-haiku",
        "Claude 3.5 Haiku",
        "Fast and efficient Claude model",
        "Anthropic",
        tier="premium",
        available=False,
    ),
    _model(
        "anthropic/claude-3-opus",
        "Claude 3 Opus",
        "Most capable Claude model",
        "Anthropic",
        tier="premium",
        available=False,
    ),
    # OpenAI
    _model(
        "openai/chatgpt-4o-latest",
        "GPT-4o",
        "OpenAI's standard model",
        "OpenAI",
    ),
    _model(
        "openai/o4-mini",
        "o4 Mini",
        "Rapid and intelligent thinking model",
        "OpenAI",
        is_reasoning=True,
    ),
    _model(
        "openai/gpt-4o-mini",
        "GPT-4o Mini",
        "Faster and more affordable",
        "OpenAI",
        tier="premium",
        available=False,
    ),
    # Meta
    _model(
        "meta/llama-3.3-70b",
        "Llama 3.3 70B",
        "Open source large language model",
        "Meta",
        tier="premium",
        available=False,
    ),
    _model(
        "meta/llama-3.2-11b",
        "Llama 3.2 11B",
        "Efficient open source model",
        "Meta",
        tier="premium",
        available=False,
    ),
    # Mistral
    _model(
        "mistralai/mistral-7b-instruct",
        "Mistral 7B Instruct",
        "Ultra-fast model",
        "Mistral AI",
    ),
    _model(
        "mistral/mistral-medium",
        "Mistral Medium",
        "Balanced performance",
        "Mistral AI",
        tier="premium",
        available=False,
    ),
    # Qwen
    _model(
        "qwen/qwen3-32b",
        "Qwen3 32B",
        "Punches above its weight",
        "Qwen",
        is_reasoning=True,
    ),
    _model(
        "qwen/qwen3-235b-a22b",
        "Qwen3 235B A22B",
        "Qwen frontier reasoning model",
        "Qwen",
        is_reasoning=True,
    ),
]

MODEL_REGISTRY: dict[str, ModelInfo] = {model.id: model for model in _MODELS}


def get_model(model_id: str) -> ModelInfo | None:
    """Look up a registry entry."""
    return MODEL_REGISTRY.get(model_id)


def is_model_usable(model_id: str, user_id: UUID | None = None) -> bool:
    """Decide whether a caller may use a model.

    Unknown and unavailable models are never usable; models that require
    authentication are usable only with an identity.
    """
    model = MODEL_REGISTRY.get(model_id)
    if model is None:
        return False
    if not model.available:
        return False
    if model.requires_auth and user_id is None:
        return False
    return True


def access_denial_reason(model_id: str, user_id: UUID | None = None) -> str | None:
    """Human-readable reason for a negative access decision, None when usable."""
    model = MODEL_REGISTRY.get(model_id)
    if model is None:
        return "Unknown model"
    if not model.available:
        return "Model is not available yet"
    if model.requires_auth and user_id is None:
        return "Sign in to use this model"
    return None


def is_reasoning_model(model_id: str) -> bool:
    model = MODEL_REGISTRY.get(model_id)
    return bool(model and model.is_reasoning)


def supports_vision(model_id: str) -> bool:
    model = MODEL_REGISTRY.get(model_id)
    return bool(model and model.supports_vision)


def build_catalog(user_id: UUID | None = None) -> ModelCatalogResponse:
    """Registry grouped by provider, in registry order, with per-caller usability."""
    groups: dict[str, list[ModelCatalogEntry]] = {}
    for model in _MODELS:
        entry = ModelCatalogEntry(**model.model_dump(), usable=is_model_usable(model.id, user_id))
        groups.setdefault(model.provider, []).append(entry)

    return ModelCatalogResponse(
        default_model=settings.default_model,
        providers=[ModelProviderGroup(provider=name, models=models) for name, models in groups.items()],
    )
