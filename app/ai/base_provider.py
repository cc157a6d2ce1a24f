"""Tracionar — Abstract AI Provider."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class Prompt:
    """One narrative request: system persona, user message and sampling knobs."""

    system: str
    user: str
    max_tokens: int = 1000
    temperature: float = 0.7


class AIProvider(ABC):
    """Abstract base for narrative generation.

    Providers only turn a prompt into text. Caching, history and error mapping
    happen in the insight service; the rest of the system works without AI.
    """

    name: str = "base"

    @abstractmethod
    async def generate(self, prompt: Prompt) -> str:
        """Return the model's text for ``prompt``.

        Raises:
            GenerationNotConfiguredError: the provider has no credentials.
            GenerationError: the upstream call failed or returned nothing.
        """
        ...

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this provider is configured and ready."""
        ...
