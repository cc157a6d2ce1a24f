"""Tracionar — OpenAI Provider."""

from openai import AsyncOpenAI, OpenAIError

from app.ai.base_provider import AIProvider, Prompt
from app.config import settings
from app.core.errors import GenerationError, GenerationNotConfiguredError
from app.core.logging import get_logger

logger = get_logger("ai.openai")


class OpenAIProvider(AIProvider):
    """OpenAI chat-completions provider (model from OPENAI_MODEL)."""

    name = "openai"

    def __init__(self):
        self.client = (
            AsyncOpenAI(api_key=settings.openai_api_key)
            if settings.openai_api_key
            else None
        )

    def is_available(self) -> bool:
        return self.client is not None and bool(settings.openai_api_key)

    async def generate(self, prompt: Prompt) -> str:
        if not self.is_available():
            raise GenerationNotConfiguredError("OpenAI provider not configured")

        try:
            response = await self.client.chat.completions.create(
                model=settings.openai_model,
                messages=[
                    {"role": "system", "content": prompt.system},
                    {"role": "user", "content": prompt.user},
                ],
                max_tokens=prompt.max_tokens,
                temperature=prompt.temperature,
            )
        except OpenAIError as e:
            logger.error(f"OpenAI generation failed: {e}")
            raise GenerationError(f"OpenAI generation failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise GenerationError("OpenAI returned an empty completion")
        return content
