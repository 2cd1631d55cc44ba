"""LiteLLM provider for OpenAI-compatible completion endpoints."""

from typing import Any

import litellm
from litellm import acompletion
from loguru import logger

from ashbot.errors import UpstreamError
from ashbot.providers.base import LLMProvider, LLMResponse


class LiteLLMProvider(LLMProvider):
    """
    Completion provider using LiteLLM.

    Talks to any OpenAI-compatible endpoint (Groq by default) with a
    bearer credential. Single attempt per call: a missing key, a
    transport error or an empty choice list fails immediately.
    """

    # Routes the request through LiteLLM's OpenAI-compatible client
    MODEL_PREFIX = "openai/"

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        default_model: str = "openai/gpt-oss-120b",
        default_max_tokens: int = 300,
        timeout: float = 60.0,
    ):
        super().__init__(api_key, api_base)
        self.default_model = default_model
        self.default_max_tokens = default_max_tokens
        self.timeout = timeout

        # Usage tracking
        self._total_tokens = 0
        self._prompt_tokens = 0
        self._completion_tokens = 0
        self._request_count = 0

        # Disable LiteLLM logging noise
        litellm.suppress_debug_info = True

    def _format_model_name(self, model: str) -> str:
        """Format model name for LiteLLM's OpenAI-compatible route."""
        return f"{self.MODEL_PREFIX}{model}"

    async def complete(
        self,
        prompt: str,
        model: str | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """
        Send a single user prompt and return the reply text.

        Raises:
            UpstreamError: On missing credentials, transport failure or
                an empty response.
        """
        if not self.api_key:
            raise UpstreamError("AI api key not set")

        model = model or self.default_model
        kwargs: dict[str, Any] = {
            "model": self._format_model_name(model),
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens or self.default_max_tokens,
            "api_key": self.api_key,
            "timeout": self.timeout,
        }
        if self.api_base:
            kwargs["api_base"] = self.api_base

        logger.debug(f"Completion request: model={model} prompt_chars={len(prompt)}")
        try:
            response = await acompletion(**kwargs)
        except Exception as e:
            raise UpstreamError(f"completion api: {e}") from e

        parsed = self._parse_response(response)
        if parsed is None:
            raise UpstreamError("no response from completion api")

        self._request_count += 1
        if parsed.usage:
            self._total_tokens += parsed.usage.get("total_tokens", 0)
            self._prompt_tokens += parsed.usage.get("prompt_tokens", 0)
            self._completion_tokens += parsed.usage.get("completion_tokens", 0)

        return parsed.content or ""

    def _parse_response(self, response: Any) -> LLMResponse | None:
        """Parse LiteLLM response into our standard format."""
        choices = getattr(response, "choices", None)
        if not choices:
            return None
        choice = choices[0]

        usage = {}
        if getattr(response, "usage", None):
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return LLMResponse(
            content=choice.message.content,
            finish_reason=choice.finish_reason or "stop",
            usage=usage,
        )

    def get_usage_stats(self) -> dict[str, Any]:
        """Get usage statistics."""
        return {
            "total_tokens": self._total_tokens,
            "prompt_tokens": self._prompt_tokens,
            "completion_tokens": self._completion_tokens,
            "request_count": self._request_count,
        }
