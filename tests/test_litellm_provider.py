import asyncio
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from nanocontext.providers.litellm_provider import LiteLLMProvider


def _response(content, *, finish_reason="stop", tool_calls=None, usage=None):
    return SimpleNamespace(
        choices=[SimpleNamespace(
            message=SimpleNamespace(content=content, tool_calls=tool_calls),
            finish_reason=finish_reason,
        )],
        usage=usage,
    )


@pytest.mark.asyncio
async def test_chat_parses_content_and_usage() -> None:
    provider = LiteLLMProvider(api_key="fake-key-123456789", default_model="openai/gpt-4o-mini")
    captured = {}

    async def fake_acompletion(**kwargs):
        captured.update(kwargs)
        return _response(
            "A short summary.",
            usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5, total_tokens=15),
        )

    with patch("nanocontext.providers.litellm_provider.acompletion", side_effect=fake_acompletion):
        response = await provider.chat(
            messages=[{"role": "system", "content": "sys"}, {"role": "user", "content": "hi", "ts": 1}],
            max_tokens=0,
            temperature=0.2,
        )

    assert response.content == "A short summary."
    assert response.finish_reason == "stop"
    assert response.usage == {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15}
    assert captured["model"] == "openai/gpt-4o-mini"
    assert captured["max_tokens"] == 1
    assert captured["api_key"] == "fake-key-123456789"
    assert captured["messages"][1] == {"role": "user", "content": "hi"}
    assert "tools" not in captured


@pytest.mark.asyncio
async def test_chat_repairs_tool_call_arguments() -> None:
    provider = LiteLLMProvider()
    tool_calls = [
        {"id": "c1", "function": {"name": "write_file", "arguments": '{"path": "a.txt",}'}},
        {"function": {"name": "", "arguments": "{}"}},
    ]

    async def fake_acompletion(**kwargs):
        return _response(None, finish_reason="tool_calls", tool_calls=tool_calls)

    with patch("nanocontext.providers.litellm_provider.acompletion", side_effect=fake_acompletion):
        response = await provider.chat(messages=[{"role": "user", "content": "write"}])

    assert response.has_tool_calls
    assert len(response.tool_calls) == 1
    assert response.tool_calls[0].id == "c1"
    assert response.tool_calls[0].arguments == {"path": "a.txt"}


@pytest.mark.asyncio
async def test_chat_errors_are_returned_with_masked_key() -> None:
    key = "sk-secret-abcdefghijklmnop"
    provider = LiteLLMProvider(api_key=key)

    async def fake_acompletion(**kwargs):
        raise RuntimeError(f"invalid api key {key}")

    with patch("nanocontext.providers.litellm_provider.acompletion", side_effect=fake_acompletion):
        response = await provider.chat(messages=[{"role": "user", "content": "hi"}])

    assert response.finish_reason == "error"
    assert key not in response.content
    assert "sk-s****mnop" in response.content


@pytest.mark.asyncio
async def test_chat_timeout_is_reported_as_error() -> None:
    provider = LiteLLMProvider(timeout=0.01)

    async def fake_acompletion(**kwargs):
        raise asyncio.TimeoutError()

    with patch("nanocontext.providers.litellm_provider.acompletion", side_effect=fake_acompletion):
        response = await provider.chat(messages=[{"role": "user", "content": "hi"}])

    assert response.finish_reason == "error"
    assert "timed out" in response.content


def test_sanitize_messages_drops_unknown_keys_and_empty_text() -> None:
    cleaned = LiteLLMProvider._sanitize_messages([
        {"role": "assistant", "tool_calls": [], "reasoning": "x"},
        {"role": "user", "content": ""},
    ])
    assert cleaned == [
        {"role": "assistant", "tool_calls": [], "content": None},
        {"role": "user", "content": "(empty)"},
    ]
    assert LiteLLMProvider(default_model="anthropic/claude-sonnet-4-5").get_default_model() == "anthropic/claude-sonnet-4-5"
