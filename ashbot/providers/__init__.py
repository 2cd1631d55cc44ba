"""Completion provider module."""

from ashbot.providers.base import LLMProvider, LLMResponse
from ashbot.providers.litellm_provider import LiteLLMProvider

__all__ = [
    "LLMProvider",
    "LLMResponse",
    "LiteLLMProvider",
]
