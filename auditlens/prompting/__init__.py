"""Prompt templates for the audit flows."""

from .builder import PromptBuilder, PromptRequest

__all__ = ["PromptBuilder", "PromptRequest"]
