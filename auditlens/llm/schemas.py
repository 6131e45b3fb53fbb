"""Pydantic schemas for structured model outputs."""

from __future__ import annotations

import json
import re
from typing import Any, List, Literal, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

Severity = Literal["Critical", "High", "Medium", "Low", "Informational"]
TechnologyCategory = Literal[
    "Programming Language",
    "Standard/Token",
    "Framework/Library",
    "Design Pattern",
    "Security Feature",
    "Other",
]

SEVERITIES: tuple[str, ...] = ("Critical", "High", "Medium", "Low", "Informational")
TECHNOLOGY_CATEGORIES: tuple[str, ...] = (
    "Programming Language",
    "Standard/Token",
    "Framework/Library",
    "Design Pattern",
    "Security Feature",
    "Other",
)

_ModelT = TypeVar("_ModelT", bound=BaseModel)


class StructuredOutputError(RuntimeError):
    """Raised when a model reply does not match the expected schema."""


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ToolSelection(_CamelModel):
    """Analysis tools picked for a contract."""

    selected_tools: List[str] = Field(
        alias="selectedTools", description="Names of the selected analysis tools"
    )


class Vulnerability(_CamelModel):
    """A single finding in the vulnerability report."""

    id: str = Field(description="Short identifier, e.g. VULN-001")
    title: str
    severity: Severity
    description: str
    tool: str = Field(description="Analysis tool expected to surface this finding")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @field_validator("severity", mode="before")
    @classmethod
    def _normalise_severity(cls, value: Any) -> Any:
        if isinstance(value, str):
            cleaned = value.strip().lower()
            for severity in SEVERITIES:
                if severity.lower() == cleaned:
                    return severity
            if cleaned in {"info", "informative", "note"}:
                return "Informational"
        return value


class VulnerabilityReport(_CamelModel):
    vulnerabilities: List[Vulnerability] = Field(default_factory=list)


class TechnologyInfo(_CamelModel):
    """A technology, standard, or pattern identified in the contract."""

    name: str
    category: TechnologyCategory
    description: str
    usage_in_contract: str = Field(alias="usageInContract")

    @field_validator("category", mode="before")
    @classmethod
    def _normalise_category(cls, value: Any) -> Any:
        if isinstance(value, str):
            cleaned = value.strip().lower()
            for category in TECHNOLOGY_CATEGORIES:
                if category.lower() == cleaned:
                    return category
            return "Other"
        return value


class TechnologyReport(_CamelModel):
    identified_technologies: List[TechnologyInfo] = Field(
        default_factory=list, alias="identifiedTechnologies"
    )
    overall_summary: str = Field(alias="overallSummary")


def extract_json_object(text: str) -> Any | None:
    """Extract a JSON object from a model reply.

    Handles fenced ```json blocks, leading or trailing prose and trailing
    commas before closing brackets.
    """
    if not isinstance(text, str):
        return None

    fenced = re.search(r"```(?:json)?\s*(\{[\s\S]*\})\s*```", text, re.IGNORECASE)
    if fenced:
        try:
            return json.loads(fenced.group(1))
        except json.JSONDecodeError:
            pass

    start = text.find("{")
    if start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index, char in enumerate(text[start:], start):
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    candidate = re.sub(r",\s*([}\]])", r"\1", text[start : index + 1])
                    try:
                        return json.loads(candidate)
                    except json.JSONDecodeError:
                        break

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return None


def parse_structured(text: str, model: Type[_ModelT]) -> _ModelT:
    """Validate the JSON object embedded in ``text`` against ``model``."""
    payload = extract_json_object(text)
    if not isinstance(payload, dict):
        raise StructuredOutputError(
            f"Model reply did not contain a JSON object for {model.__name__}"
        )
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise StructuredOutputError(
            f"Model reply did not match {model.__name__}: {exc.error_count()} error(s)"
        ) from exc


__all__ = [
    "SEVERITIES",
    "TECHNOLOGY_CATEGORIES",
    "Severity",
    "StructuredOutputError",
    "TechnologyCategory",
    "TechnologyInfo",
    "TechnologyReport",
    "ToolSelection",
    "Vulnerability",
    "VulnerabilityReport",
    "extract_json_object",
    "parse_structured",
]
