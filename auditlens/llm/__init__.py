"""Hosted LLM adapters and structured output schemas."""

from .runner import LLMError, LLMRequest, LLMRunner
from .schemas import StructuredOutputError, parse_structured

__all__ = ["LLMError", "LLMRequest", "LLMRunner", "StructuredOutputError", "parse_structured"]
