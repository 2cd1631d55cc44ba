"""Base LLM provider interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class LLMResponse:
    """Response from an LLM provider."""
    content: str | None
    finish_reason: str = "stop"
    usage: dict[str, int] = field(default_factory=dict)


class LLMProvider(ABC):
    """
    Abstract base class for completion providers.

    Implementations raise UpstreamError on any failure; there is no
    retry at this layer.
    """

    def __init__(self, api_key: str | None = None, api_base: str | None = None):
        self.api_key = api_key
        self.api_base = api_base

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        model: str | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """
        Send a single-turn prompt and return the completion text.

        Args:
            prompt: User prompt.
            model: Model identifier, provider default when None.
            max_tokens: Completion budget, provider default when None.

        Returns:
            Completion text.
        """
        pass

    def get_usage_stats(self) -> dict[str, Any]:
        """Get usage statistics."""
        return {}
