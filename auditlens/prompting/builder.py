"""Builds audit prompts from Jinja2 templates."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from ..llm.schemas import SEVERITIES, TECHNOLOGY_CATEGORIES
from .constants import AVAILABLE_TOOLS, TOOL_DESCRIPTIONS


@dataclass
class PromptRequest:
    """A rendered prompt ready to send to the model."""

    name: str
    system: str
    prompt: str


class PromptBuilder:
    """Renders the tool-selection, vulnerability and technology prompts."""

    SYSTEM_PROMPT = (
        "You are a senior smart contract security auditor. Ground every statement in the "
        "provided code and respond with JSON only, following the requested schema exactly."
    )

    def __init__(
        self,
        templates_dir: Path | None = None,
        *,
        available_tools: Sequence[str] | None = None,
    ) -> None:
        self.templates_dir = templates_dir or Path(__file__).with_name("templates")
        self.available_tools = tuple(available_tools or AVAILABLE_TOOLS)
        self._env = self._create_env(self.templates_dir)

    def select_tools(self, code: str) -> PromptRequest:
        tools = [
            {"name": name, "description": TOOL_DESCRIPTIONS.get(name, "")}
            for name in self.available_tools
        ]
        prompt = self._render("select_tools.j2", code=code, tools=tools)
        return PromptRequest(
            name="select_tools",
            system=self.SYSTEM_PROMPT,
            prompt=prompt,
        )

    def vulnerability_report(
        self, code: str, selected_tools: Iterable[str]
    ) -> PromptRequest:
        tools = list(selected_tools)
        prompt = self._render(
            "vulnerability_report.j2",
            code=code,
            selected_tools=tools,
            severities=SEVERITIES,
        )
        return PromptRequest(
            name="vulnerability_report",
            system=self.SYSTEM_PROMPT,
            prompt=prompt,
        )

    def technology_usage(self, code: str) -> PromptRequest:
        prompt = self._render(
            "technology_usage.j2", code=code, categories=TECHNOLOGY_CATEGORIES
        )
        return PromptRequest(
            name="technology_usage",
            system=self.SYSTEM_PROMPT,
            prompt=prompt,
        )

    def _render(self, template_name: str, **context: object) -> str:
        template = self._env.get_template(template_name)
        return template.render(**context).strip() + "\n"

    @staticmethod
    def _create_env(templates_dir: Path) -> Environment:
        directories = [str(templates_dir)]
        default_dir = Path(__file__).with_name("templates")
        if default_dir != templates_dir:
            directories.append(str(default_dir))
        # Prompts are plain text; escaping would mangle contract source.
        return Environment(
            loader=FileSystemLoader(directories),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )


__all__ = ["PromptBuilder", "PromptRequest"]
