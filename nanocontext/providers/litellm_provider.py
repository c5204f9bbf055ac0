"""LiteLLM provider implementation for multi-provider support."""

import asyncio
from typing import Any

import json_repair
import litellm
from litellm import acompletion

from nanocontext.logging import get_logger, mask_secret
from nanocontext.providers.base import LLMProvider, LLMResponse, ToolCallRequest

logger = get_logger("nanocontext.providers.litellm")


# Standard OpenAI chat-completion message keys; anything else is stripped before sending.
_ALLOWED_MSG_KEYS = frozenset({"role", "content", "tool_calls", "tool_call_id", "name"})


class LiteLLMProvider(LLMProvider):
    """
    LLM provider using LiteLLM for multi-provider support.

    Model names carry the provider prefix LiteLLM expects
    (``openai/gpt-4o-mini``, ``anthropic/claude-sonnet-4-5``, ...).
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        default_model: str = "openai/gpt-4o-mini",
        timeout: float | None = None,
        max_retries: int = 0,
    ):
        super().__init__(api_key, api_base)
        self.default_model = default_model
        self.timeout = timeout
        self.max_retries = max_retries

        if api_key:
            logger.info("provider_initialized", model=default_model, api_key=mask_secret(api_key))

        # Disable LiteLLM logging noise
        litellm.suppress_debug_info = True
        # Drop unsupported parameters for providers (e.g., gpt-5 rejects some params)
        litellm.drop_params = True

    @staticmethod
    def _sanitize_messages(messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Strip non-standard keys and ensure assistant messages have a content key."""
        sanitized = []
        for msg in messages:
            clean = {k: v for k, v in msg.items() if k in _ALLOWED_MSG_KEYS}
            if clean.get("role") == "assistant" and "content" not in clean:
                clean["content"] = None
            if isinstance(clean.get("content"), str) and not clean["content"]:
                # Several providers reject empty text content outright
                clean["content"] = "(empty)"
            sanitized.append(clean)
        return sanitized

    @staticmethod
    def _value(obj: Any, key: str, default: Any = None) -> Any:
        if isinstance(obj, dict):
            return obj.get(key, default)
        return getattr(obj, key, default)

    @classmethod
    def _extract_tool_calls_from_message(cls, message: Any) -> list[ToolCallRequest]:
        tool_calls: list[ToolCallRequest] = []
        raw_tool_calls = cls._value(message, "tool_calls") or []
        for idx, tc in enumerate(raw_tool_calls):
            fn = cls._value(tc, "function") or {}
            name = cls._value(fn, "name")
            if not isinstance(name, str) or not name:
                continue
            args_raw = cls._value(fn, "arguments")
            if isinstance(args_raw, str):
                try:
                    arguments = json_repair.loads(args_raw)
                except Exception:
                    arguments = {}
            elif isinstance(args_raw, dict):
                arguments = args_raw
            else:
                arguments = {}
            if not isinstance(arguments, dict):
                arguments = {}
            call_id = cls._value(tc, "id") or f"call_{idx}"
            tool_calls.append(ToolCallRequest(
                id=str(call_id),
                name=name,
                arguments=arguments,
            ))
        return tool_calls

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """
        Send a chat completion request via LiteLLM.

        Failures never raise: they come back as ``finish_reason="error"`` with the
        (secret-masked) error text as content.
        """
        model = model or self.default_model
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": self._sanitize_messages(messages),
            # LiteLLM rejects max_tokens < 1
            "max_tokens": max(1, max_tokens),
            "temperature": temperature,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"
        if self.timeout:
            kwargs["request_timeout"] = self.timeout
            kwargs["num_retries"] = self.max_retries

        try:
            coro = acompletion(**kwargs)
            if self.timeout:
                response = await asyncio.wait_for(coro, timeout=self.timeout + 30)
            else:
                response = await coro
            return self._parse_response(response)
        except asyncio.TimeoutError:
            logger.error("llm_call_timeout", model=model)
            return LLMResponse(
                content="Error calling LLM: request timed out",
                finish_reason="error",
            )
        except Exception as e:
            error_msg = str(e)
            if self.api_key and self.api_key in error_msg:
                error_msg = error_msg.replace(self.api_key, mask_secret(self.api_key))
            logger.error("llm_call_failed", model=model, error=error_msg)
            return LLMResponse(
                content=f"Error calling LLM: {error_msg}",
                finish_reason="error",
            )

    def _parse_response(self, response: Any) -> LLMResponse:
        """Parse LiteLLM response into our standard format."""
        choice = response.choices[0]
        message = choice.message
        tool_calls = self._extract_tool_calls_from_message(message)

        usage = {}
        if getattr(response, "usage", None):
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return LLMResponse(
            content=message.content,
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason or "stop",
            usage=usage,
        )

    def get_default_model(self) -> str:
        """Get the default model."""
        return self.default_model
