"""Shared constants for audit prompting."""

from __future__ import annotations

AVAILABLE_TOOLS: tuple[str, ...] = (
    "Slither",
    "Mythril",
    "Oyente",
    "Manticore",
    "Echidna",
)

TOOL_DESCRIPTIONS: dict[str, str] = {
    "Slither": "Static analyzer for Solidity detecting common vulnerability patterns",
    "Mythril": "Symbolic execution engine for EVM bytecode",
    "Oyente": "Symbolic execution tool focused on transaction-ordering and timestamp bugs",
    "Manticore": "Symbolic execution framework for deep path exploration",
    "Echidna": "Property-based fuzzer for invariant testing",
}

MIN_TECHNOLOGY_CODE_LENGTH = 20

SHORT_CODE_SUMMARY = (
    "The provided code snippet is too short or empty for a meaningful technology analysis."
)

REPORT_DISCLAIMER = (
    "This is an AI-generated preliminary analysis. Further manual review and professional "
    "auditing are recommended for critical applications."
)


__all__ = [
    "AVAILABLE_TOOLS",
    "MIN_TECHNOLOGY_CODE_LENGTH",
    "REPORT_DISCLAIMER",
    "SHORT_CODE_SUMMARY",
    "TOOL_DESCRIPTIONS",
]
