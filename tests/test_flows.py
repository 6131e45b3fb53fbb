"""Tests for the model-backed audit flows."""

from __future__ import annotations

from auditlens.flows import AuditFlows
from auditlens.prompting.constants import SHORT_CODE_SUMMARY
from tests._fixtures.fakes import ScriptedRunner

CODE = "pragma solidity ^0.8.0;\ncontract Token is ERC20, Ownable {}"


def test_select_analysis_tools_dedupes_and_requests_json() -> None:
    script = ScriptedRunner([{"selectedTools": ["Slither", " Slither ", "Echidna", ""]}])
    flows = AuditFlows(runner=script.as_llm_runner())

    selection = flows.select_analysis_tools(CODE)

    assert selection.selected_tools == ["Slither", "Echidna"]
    assert script.requests[0].json_mode is True
    assert CODE in script.requests[0].prompt


def test_generate_vulnerability_report_parses_findings() -> None:
    script = ScriptedRunner(
        [
            {
                "vulnerabilities": [
                    {
                        "id": "VULN-001",
                        "title": "Unchecked transfer",
                        "severity": "Medium",
                        "description": "Return value of transfer() ignored.",
                        "tool": "Slither",
                    }
                ]
            }
        ]
    )
    flows = AuditFlows(runner=script.as_llm_runner())

    report = flows.generate_vulnerability_report(CODE, ["Slither"])

    assert [v.title for v in report.vulnerabilities] == ["Unchecked transfer"]
    assert "- Slither" in script.requests[0].prompt


def test_technology_usage_short_code_skips_model() -> None:
    script = ScriptedRunner([])
    flows = AuditFlows(runner=script.as_llm_runner())

    report = flows.analyze_technology_usage("  contract A{}  ")

    assert report.identified_technologies == []
    assert report.overall_summary == SHORT_CODE_SUMMARY
    assert script.requests == []


def test_technology_usage_parses_model_reply() -> None:
    script = ScriptedRunner(
        [
            "```json\n"
            '{"identifiedTechnologies": [{"name": "ERC-20", "category": "Standard/Token",'
            ' "description": "Fungible token standard", "usageInContract": "Token inherits ERC20"}],'
            ' "overallSummary": "A mintable ERC-20 token."}\n'
            "```"
        ]
    )
    flows = AuditFlows(runner=script.as_llm_runner())

    report = flows.analyze_technology_usage(CODE)

    assert report.identified_technologies[0].name == "ERC-20"
    assert report.overall_summary == "A mintable ERC-20 token."
