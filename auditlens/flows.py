"""Model-backed audit flows: tool selection, vulnerability report, technology usage."""

from __future__ import annotations

from typing import Iterable, List

from .llm.runner import LLMRunner
from .llm.schemas import (
    TechnologyReport,
    ToolSelection,
    VulnerabilityReport,
    parse_structured,
)
from .logging import get_logger
from .prompting.builder import PromptBuilder, PromptRequest
from .prompting.constants import MIN_TECHNOLOGY_CODE_LENGTH, SHORT_CODE_SUMMARY


class AuditFlows:
    """Runs each audit prompt through the model and validates the reply."""

    def __init__(
        self,
        runner: LLMRunner | None = None,
        prompt_builder: PromptBuilder | None = None,
    ) -> None:
        self.runner = runner or LLMRunner()
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.logger = get_logger("flows")

    def select_analysis_tools(self, code: str) -> ToolSelection:
        request = self.prompt_builder.select_tools(code)
        selection = parse_structured(self._run(request), ToolSelection)
        selection.selected_tools = _dedupe(selection.selected_tools)
        self.logger.info("Model selected tools: %s", ", ".join(selection.selected_tools) or "(none)")
        return selection

    def generate_vulnerability_report(
        self, code: str, selected_tools: Iterable[str]
    ) -> VulnerabilityReport:
        request = self.prompt_builder.vulnerability_report(code, selected_tools)
        report = parse_structured(self._run(request), VulnerabilityReport)
        self.logger.info("Model reported %d vulnerabilities", len(report.vulnerabilities))
        return report

    def analyze_technology_usage(self, code: str) -> TechnologyReport:
        if len(code.strip()) < MIN_TECHNOLOGY_CODE_LENGTH:
            return TechnologyReport(identified_technologies=[], overall_summary=SHORT_CODE_SUMMARY)
        request = self.prompt_builder.technology_usage(code)
        report = parse_structured(self._run(request), TechnologyReport)
        self.logger.info(
            "Model identified %d technologies", len(report.identified_technologies)
        )
        return report

    def _run(self, request: PromptRequest) -> str:
        self.logger.debug("Running %s prompt (%d chars)", request.name, len(request.prompt))
        return self.runner.run(request.prompt, system=request.system, json_mode=True)


def _dedupe(items: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for item in items:
        cleaned = item.strip()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen


__all__ = ["AuditFlows"]
