"""Tracionar — Provider selection."""

from typing import Dict, Tuple, Type

from app.ai.base_provider import AIProvider
from app.ai.claude_provider import ClaudeProvider
from app.ai.openai_provider import OpenAIProvider
from app.ai.sarvam_provider import SarvamProvider
from app.config import settings
from app.core.errors import GenerationNotConfiguredError, ValidationError

PROVIDERS: Dict[str, Type[AIProvider]] = {
    "openai": OpenAIProvider,
    "claude": ClaudeProvider,
    "sarvam": SarvamProvider,
}


def select_provider(provider_name: str = "auto") -> Tuple[str, AIProvider]:
    """Select and return an available AI provider.

    When provider_name is 'auto', tries DEFAULT_AI_PROVIDER first,
    then falls through remaining providers.
    """
    if provider_name == "auto":
        default = settings.default_ai_provider
        order = [default] + [name for name in PROVIDERS if name != default]
        for name in order:
            cls = PROVIDERS.get(name)
            if cls is None:
                continue
            provider = cls()
            if provider.is_available():
                return name, provider
        raise GenerationNotConfiguredError(
            "No AI provider configured. Set OPENAI_API_KEY, ANTHROPIC_API_KEY or SARVAM_API_KEY."
        )

    if provider_name not in PROVIDERS:
        raise ValidationError(f"Unknown provider: {provider_name}.")

    provider = PROVIDERS[provider_name]()
    if not provider.is_available():
        raise GenerationNotConfiguredError(f"{provider_name} provider not configured.")
    return provider_name, provider
