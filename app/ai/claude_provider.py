"""Tracionar — Anthropic Claude Provider."""

from anthropic import AnthropicError, AsyncAnthropic

from app.ai.base_provider import AIProvider, Prompt
from app.config import settings
from app.core.errors import GenerationError, GenerationNotConfiguredError
from app.core.logging import get_logger

logger = get_logger("ai.claude")


class ClaudeProvider(AIProvider):
    """Anthropic Claude provider for narrative generation."""

    name = "claude"

    def __init__(self):
        self.client = (
            AsyncAnthropic(api_key=settings.anthropic_api_key)
            if settings.anthropic_api_key
            else None
        )

    def is_available(self) -> bool:
        return self.client is not None and bool(settings.anthropic_api_key)

    async def generate(self, prompt: Prompt) -> str:
        if not self.is_available():
            raise GenerationNotConfiguredError("Claude provider not configured")

        try:
            response = await self.client.messages.create(
                model=settings.anthropic_model,
                max_tokens=prompt.max_tokens,
                temperature=prompt.temperature,
                system=prompt.system,
                messages=[{"role": "user", "content": prompt.user}],
            )
        except AnthropicError as e:
            logger.error(f"Claude generation failed: {e}")
            raise GenerationError(f"Claude generation failed: {e}") from e

        # Only text blocks carry narrative
        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        if not text:
            raise GenerationError("Claude returned no text content")
        return text
