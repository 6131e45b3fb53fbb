"""Tests for auditlens.orchestrator."""

from __future__ import annotations

from typing import Dict, List, Tuple

import pytest

from auditlens.flows import AuditFlows
from auditlens.models import (
    AnalysisFailure,
    TechnologyAnalysisResult,
    VulnerabilityAnalysisResult,
)
from auditlens.orchestrator import EMPTY_CODE_MESSAGE, UNKNOWN_ERROR_MESSAGE, Orchestrator
from auditlens.sources.etherscan import ContractMetadata, EtherscanRateLimitError
from auditlens.sources.fetchers import SourceFetchError
from auditlens.stores import ReportStore
from auditlens.submission import TECH_QUERY_IDENTIFIER
from tests._fixtures.fakes import ScriptedRunner

ADDRESS = "0x" + "ab" * 20
CODE = "pragma solidity ^0.8.0;\ncontract Vault { function withdraw() external {} }"

TOOLS_REPLY = {"selectedTools": ["Slither", "Mythril"]}
REPORT_REPLY = {
    "vulnerabilities": [
        {
            "id": "VULN-001",
            "title": "Reentrancy",
            "severity": "High",
            "description": "withdraw() sends ether before zeroing the balance.",
            "tool": "Slither",
        }
    ]
}


class StubEtherscan:
    def __init__(
        self,
        source: str | None = None,
        error: Exception | None = None,
        contract: ContractMetadata | None = None,
    ) -> None:
        self.source = source
        self.error = error
        self.contract = contract or ContractMetadata(
            address=ADDRESS,
            contract_name="Vault",
            compiler_version="v0.8.19+commit.7dd6d404",
            license_type="MIT",
            is_proxy=False,
            implementation=None,
        )
        self.addresses: List[str] = []

    def fetch_contract(self, address: str) -> Tuple[str, ContractMetadata]:
        self.addresses.append(address)
        if self.error is not None:
            raise self.error
        return self.source or "", self.contract


class RecordingStore:
    def __init__(self) -> None:
        self.saved: List[Dict[str, object]] = []
        self.closed = False

    def save_report(self, identifier, tools, vulnerabilities):
        self.saved.append(
            {"identifier": identifier, "tools": list(tools), "vulnerabilities": list(vulnerabilities)}
        )
        return "report-1"

    def close(self) -> None:
        self.closed = True


def _orchestrator(script: ScriptedRunner, **kwargs) -> Orchestrator:
    return Orchestrator(flows=AuditFlows(runner=script.as_llm_runner()), **kwargs)


def test_address_submission_runs_both_flows_and_persists() -> None:
    script = ScriptedRunner([TOOLS_REPLY, REPORT_REPLY])
    etherscan = StubEtherscan(source=CODE)
    store = RecordingStore()
    orchestrator = _orchestrator(script, etherscan=etherscan, report_store=store)

    result = orchestrator.analyze_form("address", contract_address=ADDRESS)

    assert isinstance(result, VulnerabilityAnalysisResult)
    assert result.contract_identifier == ADDRESS
    assert result.selected_tools == ["Slither", "Mythril"]
    assert [v.id for v in result.vulnerabilities] == ["VULN-001"]
    assert result.report_id == "report-1"
    assert etherscan.addresses == [ADDRESS]
    assert len(script.requests) == 2
    assert "- Slither" in script.requests[1].prompt
    assert "- Mythril" in script.requests[1].prompt
    assert store.saved[0]["identifier"] == ADDRESS
    assert store.saved[0]["tools"] == ["Slither", "Mythril"]
    assert result.contract is not None
    assert result.contract.contract_name == "Vault"


def test_url_submission_normalizes_fetched_bundle() -> None:
    script = ScriptedRunner([TOOLS_REPLY, REPORT_REPLY])
    fetched: List[str] = []

    def fake_fetch(url: str) -> str:
        fetched.append(url)
        return '{"sources":{"A.sol":{"content":"contract A {}"},"B.sol":{"content":"contract B {}"}}}'

    orchestrator = _orchestrator(script, url_fetcher=fake_fetch)

    result = orchestrator.analyze_form("url", contract_url="https://example.com/bundle.json")

    assert isinstance(result, VulnerabilityAnalysisResult)
    assert fetched == ["https://example.com/bundle.json"]
    prompt = script.requests[0].prompt
    assert "contract A {}\n\n// ---- Next File ----\n\ncontract B {}" in prompt


def test_file_submission_decodes_upload() -> None:
    script = ScriptedRunner([TOOLS_REPLY, {"vulnerabilities": []}])
    orchestrator = _orchestrator(script)

    result = orchestrator.analyze_form(
        "file", file_name="Vault.sol", file_content=CODE.encode("utf-8")
    )

    assert isinstance(result, VulnerabilityAnalysisResult)
    assert result.contract_identifier == "Vault.sol"
    assert result.vulnerabilities == []
    assert result.report_id is None
    assert result.contract is None
    assert CODE in script.requests[0].prompt


def test_technology_query_uses_technology_flow_only() -> None:
    script = ScriptedRunner(
        [
            {
                "identifiedTechnologies": [
                    {
                        "name": "Solidity",
                        "category": "Programming Language",
                        "description": "Contract language for the EVM",
                        "usageInContract": "pragma ^0.8.0",
                    }
                ],
                "overallSummary": "Single-contract vault.",
            }
        ]
    )
    store = RecordingStore()
    orchestrator = _orchestrator(script, report_store=store)

    result = orchestrator.analyze_form("techQuery", tech_query_code=CODE)

    assert isinstance(result, TechnologyAnalysisResult)
    assert result.contract_identifier == TECH_QUERY_IDENTIFIER
    assert result.identified_technologies[0].name == "Solidity"
    assert len(script.requests) == 1
    assert store.saved == []


def test_validation_failure_is_reported_without_model_calls() -> None:
    script = ScriptedRunner([])
    orchestrator = _orchestrator(script)

    result = orchestrator.analyze_form("address", contract_address="0x123")

    assert isinstance(result, AnalysisFailure)
    assert result.error.startswith("Invalid Contract Address: ")
    assert result.contract_identifier == "0x123"
    assert script.requests == []


def test_empty_upload_is_reported() -> None:
    orchestrator = _orchestrator(ScriptedRunner([]))

    result = orchestrator.analyze_form("file", file_name="Empty.sol", file_content=b"  \n")

    assert isinstance(result, AnalysisFailure)
    assert result.error == EMPTY_CODE_MESSAGE
    assert result.contract_identifier == "Empty.sol"


def test_no_selected_tools_fails() -> None:
    orchestrator = _orchestrator(ScriptedRunner([{"selectedTools": []}]))

    result = orchestrator.analyze_form("file", file_name="A.sol", file_content=CODE.encode())

    assert isinstance(result, AnalysisFailure)
    assert result.error == "AI tool selection failed or returned no tools."


def test_unparseable_report_fails() -> None:
    orchestrator = _orchestrator(ScriptedRunner([TOOLS_REPLY, "I cannot help with that."]))

    result = orchestrator.analyze_form("file", file_name="A.sol", file_content=CODE.encode())

    assert isinstance(result, AnalysisFailure)
    assert result.error.startswith("AI vulnerability report generation failed.")


@pytest.mark.parametrize(
    "error",
    [
        EtherscanRateLimitError("Etherscan API rate limit reached."),
        SourceFetchError("Failed to fetch contract code from URL: Not Found"),
    ],
)
def test_source_errors_become_failures(error: Exception) -> None:
    orchestrator = _orchestrator(ScriptedRunner([]), etherscan=StubEtherscan(error=error))

    result = orchestrator.analyze_form("address", contract_address=ADDRESS)

    assert isinstance(result, AnalysisFailure)
    assert result.error == str(error)
    assert result.contract_identifier == ADDRESS


def test_unexpected_errors_are_masked(auditlens_caplog) -> None:
    orchestrator = _orchestrator(
        ScriptedRunner([]), etherscan=StubEtherscan(error=KeyError("SourceCode"))
    )

    result = orchestrator.analyze_form("address", contract_address=ADDRESS)

    assert isinstance(result, AnalysisFailure)
    assert result.error == UNKNOWN_ERROR_MESSAGE
    assert any(record.exc_info for record in auditlens_caplog.records)


def test_result_serialisation_uses_wire_names() -> None:
    script = ScriptedRunner([TOOLS_REPLY, REPORT_REPLY])
    orchestrator = _orchestrator(script, etherscan=StubEtherscan(source=CODE))

    payload = orchestrator.analyze_form("address", contract_address=ADDRESS).to_dict()

    assert payload["success"] is True
    assert payload["type"] == "vulnerability"
    assert payload["contractIdentifier"] == ADDRESS
    assert payload["data"]["selectedTools"] == ["Slither", "Mythril"]
    assert payload["data"]["vulnerabilities"][0]["severity"] == "High"
    assert payload["contract"]["contractName"] == "Vault"
    assert payload["contract"]["isProxy"] is False


def test_close_delegates_to_store(mongo_factory, mongo_clients) -> None:
    store = ReportStore("mongodb://localhost", client_factory=mongo_factory)
    script = ScriptedRunner([TOOLS_REPLY, REPORT_REPLY])
    orchestrator = _orchestrator(script, etherscan=StubEtherscan(source=CODE), report_store=store)

    result = orchestrator.analyze_form("address", contract_address=ADDRESS)
    orchestrator.close()

    assert isinstance(result, VulnerabilityAnalysisResult)
    assert result.report_id == "id-1"
    assert mongo_clients[0].closed is True
