"""LLM provider abstraction module."""

from nanocontext.providers.base import LLMProvider, LLMResponse, ToolCallRequest

__all__ = ["LLMProvider", "LLMResponse", "ToolCallRequest"]
