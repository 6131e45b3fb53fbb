"""Pipeline orchestration: resolve source, run the audit flows, persist the report."""

from __future__ import annotations

from typing import Callable, Optional, Tuple

from .config import AuditLensConfig, load_config
from .flows import AuditFlows
from .llm.runner import LLMRunner
from .llm.schemas import StructuredOutputError
from .logging import get_logger
from .models import (
    AnalysisFailure,
    AnalysisResult,
    TechnologyAnalysisResult,
    VulnerabilityAnalysisResult,
)
from .prompting.builder import PromptBuilder
from .sources.etherscan import ContractMetadata, EtherscanClient
from .sources.fetchers import decode_upload, fetch_url_text
from .sources.normalizer import EmptySourceError, normalize
from .stores.reports import ReportStore
from .submission import ContractSubmission, InputType, SubmissionError, build_submission

EMPTY_CODE_MESSAGE = "Fetched or provided contract code is empty."
UNKNOWN_ERROR_MESSAGE = "An unknown error occurred during analysis."
TOOL_SELECTION_FAILED = "AI tool selection failed or returned no tools."
REPORT_GENERATION_FAILED = "AI vulnerability report generation failed."


class Orchestrator:
    """Coordinates a single analysis request from submission to result."""

    def __init__(
        self,
        flows: AuditFlows | None = None,
        etherscan: EtherscanClient | None = None,
        report_store: ReportStore | None = None,
        *,
        url_fetcher: Callable[[str], str] | None = None,
    ) -> None:
        self.flows = flows or AuditFlows()
        self.etherscan = etherscan or EtherscanClient(None)
        self.report_store = report_store
        self._url_fetcher = url_fetcher or fetch_url_text
        self.logger = get_logger("orchestrator")

    @classmethod
    def from_config(cls, config: AuditLensConfig | None = None) -> "Orchestrator":
        """Build an orchestrator wired to the configured services."""
        config = config or load_config()
        runner = LLMRunner(
            model=config.llm.model,
            temperature=config.llm.temperature if config.llm.temperature is not None else 0.2,
            max_tokens=config.llm.max_tokens,
            request_timeout=config.llm.request_timeout or 120.0,
            **_optional_kwargs(base_url=config.llm.base_url, api_key=config.llm.api_key),
        )
        builder = PromptBuilder(available_tools=config.available_tools or None)
        etherscan = EtherscanClient(
            config.etherscan.api_key,
            base_url=config.etherscan.base_url,
            chain_id=config.etherscan.chain_id,
            request_timeout=config.etherscan.request_timeout,
        )
        store = ReportStore(
            config.storage.uri,
            db_name=config.storage.db_name,
            collection=config.storage.collection,
        )
        timeout = config.service.url_fetch_timeout
        return cls(
            flows=AuditFlows(runner=runner, prompt_builder=builder),
            etherscan=etherscan,
            report_store=store,
            url_fetcher=lambda url: fetch_url_text(url, timeout=timeout),
        )

    def analyze_form(
        self,
        input_type: object,
        *,
        contract_url: object = None,
        contract_address: object = None,
        file_name: object = None,
        file_content: bytes | None = None,
        tech_query_code: object = None,
    ) -> AnalysisResult:
        """Validate raw form fields, then analyze."""
        try:
            submission = build_submission(
                input_type,
                contract_url=contract_url,
                contract_address=contract_address,
                file_name=file_name,
                file_content=file_content,
                tech_query_code=tech_query_code,
            )
        except SubmissionError as exc:
            self.logger.info("Rejected submission: %s", exc)
            return AnalysisFailure(contract_identifier=exc.identifier, error=str(exc))
        return self.analyze(submission)

    def analyze(self, submission: ContractSubmission) -> AnalysisResult:
        identifier = submission.identifier
        self.logger.info("Starting %s analysis for %s", submission.input_type.value, identifier)
        try:
            code, contract = self._resolve_code(submission)
            if submission.is_technology_query:
                return self._analyze_technology(identifier, code)
            return self._analyze_vulnerabilities(identifier, code, contract)
        except RuntimeError as exc:
            self.logger.error("Error analyzing contract %s: %s", identifier, exc)
            return AnalysisFailure(contract_identifier=identifier, error=str(exc))
        except Exception:
            self.logger.exception("Unexpected error analyzing contract %s", identifier)
            return AnalysisFailure(contract_identifier=identifier, error=UNKNOWN_ERROR_MESSAGE)

    def close(self) -> None:
        if self.report_store is not None:
            self.report_store.close()

    def _resolve_code(
        self, submission: ContractSubmission
    ) -> Tuple[str, Optional[ContractMetadata]]:
        if submission.input_type is InputType.ADDRESS:
            # The explorer client normalizes and reports its own empty-source message.
            return self.etherscan.fetch_contract(submission.address or "")

        if submission.input_type is InputType.URL:
            raw = self._url_fetcher(submission.url or "")
        elif submission.input_type is InputType.FILE:
            raw = decode_upload(submission.file_content or b"")
        else:
            raw = submission.code or ""

        try:
            return normalize(raw, context=submission.identifier), None
        except EmptySourceError as exc:
            raise EmptySourceError(EMPTY_CODE_MESSAGE) from exc

    def _analyze_technology(self, identifier: str, code: str) -> TechnologyAnalysisResult:
        report = self.flows.analyze_technology_usage(code)
        return TechnologyAnalysisResult(
            contract_identifier=identifier,
            identified_technologies=list(report.identified_technologies),
            overall_summary=report.overall_summary,
        )

    def _analyze_vulnerabilities(
        self,
        identifier: str,
        code: str,
        contract: Optional[ContractMetadata] = None,
    ) -> VulnerabilityAnalysisResult:
        try:
            selection = self.flows.select_analysis_tools(code)
        except StructuredOutputError as exc:
            raise RuntimeError(f"{TOOL_SELECTION_FAILED} {exc}") from exc
        if not selection.selected_tools:
            raise RuntimeError(TOOL_SELECTION_FAILED)

        try:
            report = self.flows.generate_vulnerability_report(code, selection.selected_tools)
        except StructuredOutputError as exc:
            raise RuntimeError(f"{REPORT_GENERATION_FAILED} {exc}") from exc

        report_id: Optional[str] = None
        if self.report_store is not None:
            report_id = self.report_store.save_report(
                identifier, selection.selected_tools, report.vulnerabilities
            )

        return VulnerabilityAnalysisResult(
            contract_identifier=identifier,
            selected_tools=list(selection.selected_tools),
            vulnerabilities=list(report.vulnerabilities),
            report_id=report_id,
            contract=contract,
        )


def _optional_kwargs(**values: object) -> dict[str, object]:
    return {key: value for key, value in values.items() if value is not None}


__all__ = ["EMPTY_CODE_MESSAGE", "Orchestrator", "UNKNOWN_ERROR_MESSAGE"]
