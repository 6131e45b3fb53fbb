"""Core data models shared across auditlens components."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .llm.schemas import TechnologyInfo, Vulnerability
from .sources.etherscan import ContractMetadata


@dataclass
class VulnerabilityAnalysisResult:
    """Tools the model picked and the vulnerabilities it synthesized."""

    contract_identifier: str
    selected_tools: List[str]
    vulnerabilities: List[Vulnerability]
    report_id: Optional[str] = None
    contract: Optional[ContractMetadata] = None
    success: bool = field(default=True, init=False)
    type: str = field(default="vulnerability", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "type": self.type,
            "contractIdentifier": self.contract_identifier,
            "reportId": self.report_id,
            "contract": _contract_dict(self.contract),
            "data": {
                "selectedTools": list(self.selected_tools),
                "vulnerabilities": [
                    item.model_dump(by_alias=True) for item in self.vulnerabilities
                ],
            },
        }


@dataclass
class TechnologyAnalysisResult:
    """Technologies and patterns identified in pasted code."""

    contract_identifier: str
    identified_technologies: List[TechnologyInfo]
    overall_summary: str
    success: bool = field(default=True, init=False)
    type: str = field(default="technology", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "type": self.type,
            "contractIdentifier": self.contract_identifier,
            "data": {
                "identifiedTechnologies": [
                    item.model_dump(by_alias=True) for item in self.identified_technologies
                ],
                "overallSummary": self.overall_summary,
            },
        }


@dataclass
class AnalysisFailure:
    """A failed analysis with a user-facing message."""

    contract_identifier: Optional[str]
    error: str
    success: bool = field(default=False, init=False)
    type: str = field(default="error", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": self.error,
            "contractIdentifier": self.contract_identifier,
        }


def _contract_dict(contract: Optional[ContractMetadata]) -> Optional[Dict[str, Any]]:
    if contract is None:
        return None
    return {
        "address": contract.address,
        "contractName": contract.contract_name,
        "compilerVersion": contract.compiler_version,
        "licenseType": contract.license_type,
        "isProxy": contract.is_proxy,
        "implementation": contract.implementation,
    }


AnalysisResult = Union[VulnerabilityAnalysisResult, TechnologyAnalysisResult, AnalysisFailure]


__all__ = [
    "AnalysisFailure",
    "AnalysisResult",
    "TechnologyAnalysisResult",
    "VulnerabilityAnalysisResult",
]
