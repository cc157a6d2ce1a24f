"""Tracionar — Sarvam AI Provider."""

from sarvamai import AsyncSarvamAI

from app.ai.base_provider import AIProvider, Prompt
from app.config import settings
from app.core.errors import GenerationError, GenerationNotConfiguredError
from app.core.logging import get_logger

logger = get_logger("ai.sarvam")


class SarvamProvider(AIProvider):
    """Sarvam AI provider for narrative generation (model: sarvam-m)."""

    name = "sarvam"

    def __init__(self):
        self.client = (
            AsyncSarvamAI(api_subscription_key=settings.sarvam_api_key)
            if settings.sarvam_api_key
            else None
        )

    def is_available(self) -> bool:
        return self.client is not None and bool(settings.sarvam_api_key)

    async def generate(self, prompt: Prompt) -> str:
        if not self.is_available():
            raise GenerationNotConfiguredError("Sarvam provider not configured")

        try:
            response = await self.client.chat.completions(
                messages=[
                    {"role": "system", "content": prompt.system},
                    {"role": "user", "content": prompt.user},
                ],
                temperature=prompt.temperature,
                max_tokens=prompt.max_tokens,
            )
        except Exception as e:
            # The SDK raises its own ApiError plus raw httpx errors
            logger.error(f"Sarvam generation failed: {e}")
            raise GenerationError(f"Sarvam generation failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise GenerationError("Sarvam returned an empty completion")
        return content
