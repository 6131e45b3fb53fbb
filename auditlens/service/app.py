"""FastAPI application serving the audit form, results pages and JSON API."""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, ConfigDict, Field

from ..llm.schemas import Vulnerability
from ..logging import get_logger
from ..models import AnalysisResult, VulnerabilityAnalysisResult
from ..orchestrator import Orchestrator
from ..report import build_report_document, is_url_identifier, report_filename, severity_badge
from ..submission import InputType

_TEMPLATES_DIR = Path(__file__).with_name("templates")

logger = get_logger("service")


class HealthResponse(BaseModel):
    status: str


class ReportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    contract_identifier: str = Field(alias="contractIdentifier")
    selected_tools: List[str] = Field(default_factory=list, alias="selectedTools")
    vulnerabilities: List[Vulnerability] = Field(default_factory=list)


def _default_orchestrator() -> Orchestrator:
    return Orchestrator.from_config()


def create_app(
    orchestrator_factory: Callable[[], Orchestrator] = _default_orchestrator,
) -> FastAPI:
    """Create the FastAPI application exposing the audit workflow."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        orchestrator: Optional[Orchestrator] = getattr(app.state, "orchestrator", None)
        if orchestrator is not None:
            orchestrator.close()

    app = FastAPI(title="AuditLens", version="0.1.0", lifespan=lifespan)
    app.state.orchestrator = None
    templates = Jinja2Templates(directory=str(_TEMPLATES_DIR))
    templates.env.filters["severity_badge"] = severity_badge

    async def get_orchestrator() -> Orchestrator:
        # Built once so the report store's cached client survives across requests.
        if app.state.orchestrator is None:
            app.state.orchestrator = orchestrator_factory()
        return app.state.orchestrator

    async def run_analysis(
        orchestrator: Orchestrator,
        input_type: str,
        contract_url: Optional[str],
        contract_address: Optional[str],
        contract_file: Optional[UploadFile],
        tech_query_code: Optional[str],
    ) -> AnalysisResult:
        file_name: Optional[str] = None
        file_content: Optional[bytes] = None
        if contract_file is not None and contract_file.filename:
            file_name = contract_file.filename
            file_content = await contract_file.read()

        def _run() -> AnalysisResult:
            return orchestrator.analyze_form(
                input_type,
                contract_url=contract_url,
                contract_address=contract_address,
                file_name=file_name,
                file_content=file_content,
                tech_query_code=tech_query_code,
            )

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, _run)

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/", response_class=HTMLResponse)
    async def index(request: Request) -> HTMLResponse:
        return templates.TemplateResponse(
            request,
            "index.html",
            {"active_tab": "vulnerability", "input_type": InputType.URL.value, "form": {}},
        )

    @app.post("/analyze", response_class=HTMLResponse)
    async def analyze_page(
        request: Request,
        input_type: str = Form(..., alias="inputType"),
        contract_url: Optional[str] = Form(None, alias="contractUrl"),
        contract_address: Optional[str] = Form(None, alias="contractAddress"),
        tech_query_code: Optional[str] = Form(None, alias="techQueryCode"),
        contract_file: Optional[UploadFile] = File(None, alias="contractFile"),
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> HTMLResponse:
        result = await run_analysis(
            orchestrator, input_type, contract_url, contract_address, contract_file, tech_query_code
        )
        active_tab = "technology" if input_type == InputType.TECH_QUERY.value else "vulnerability"
        context: Dict[str, Any] = {
            "result": result,
            "active_tab": active_tab,
            "input_type": input_type,
            "form": {
                "contractUrl": contract_url or "",
                "contractAddress": contract_address or "",
                "techQueryCode": tech_query_code or "",
            },
            "identifier_is_url": is_url_identifier(result.contract_identifier),
        }
        if isinstance(result, VulnerabilityAnalysisResult):
            context["report_json"] = json.dumps(build_report_document(result), indent=2)
            context["report_filename"] = report_filename(result.contract_identifier)
        status_code = 200 if result.success else 400
        return templates.TemplateResponse(request, "index.html", context, status_code=status_code)

    @app.post("/api/analyze")
    async def analyze_api(
        input_type: str = Form(..., alias="inputType"),
        contract_url: Optional[str] = Form(None, alias="contractUrl"),
        contract_address: Optional[str] = Form(None, alias="contractAddress"),
        tech_query_code: Optional[str] = Form(None, alias="techQueryCode"),
        contract_file: Optional[UploadFile] = File(None, alias="contractFile"),
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> JSONResponse:
        result = await run_analysis(
            orchestrator, input_type, contract_url, contract_address, contract_file, tech_query_code
        )
        return JSONResponse(status_code=200 if result.success else 400, content=result.to_dict())

    @app.post("/api/report")
    async def download_report(payload: ReportRequest) -> Response:
        result = VulnerabilityAnalysisResult(
            contract_identifier=payload.contract_identifier,
            selected_tools=payload.selected_tools,
            vulnerabilities=payload.vulnerabilities,
        )
        document = build_report_document(result)
        filename = report_filename(payload.contract_identifier)
        return Response(
            content=json.dumps(document, indent=2),
            media_type="application/json",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(_: Request, exc: RuntimeError) -> JSONResponse:
        # Raised outside analyze_form, e.g. a ConfigError while building the orchestrator.
        logger.error("Request failed: %s", exc)
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(host: str = "0.0.0.0", port: int = 8000) -> None:  # pragma: no cover - integration path
    app = create_app()
    uvicorn.run(app, host=host, port=port)


__all__ = ["create_app", "run_service"]
