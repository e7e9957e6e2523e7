# app.py
"""
Procedo HTTP API: case submission, upload, status polling and re-analysis.
Analysis itself runs on the in-process worker queue; every submit endpoint
returns as soon as the job is queued.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, File, Form, Header, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from telemetry import go_quiet
from errors import CaseNotFound
from settings import settings
from worker import AnalysisJob

log = logging.getLogger("procedo.api")


# --------- Schemas (Pydantic) ---------
class CaseSubmitIn(BaseModel):
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    jurisdiction: Optional[str] = None


class CaseSubmitOut(BaseModel):
    case_id: str
    status: str
    message: str


class ReanalyzeIn(BaseModel):
    jurisdiction: Optional[str] = None


class RuleOut(BaseModel):
    institution: str
    version: str
    document_type: str
    ref: str
    title: Optional[str] = None
    summary: Optional[str] = None
    mandatory: bool
    non_derogable: bool
    annulment_linked: bool
    hierarchy_level: int
    parameter_tag: Optional[str] = None
    ai_usage: Optional[str] = None


# --------- Helpers ---------
def _identity(org_id: Optional[str], user_id: Optional[str]) -> tuple:
    if not org_id or not user_id:
        raise HTTPException(401, "Missing X-Org-Id / X-User-Id headers")
    return org_id, user_id


QUEUE_FULL_MESSAGE = "Analysis queue is full, try again later"


async def _enqueue(services, job: AnalysisJob) -> None:
    """Queue a job whose case is already marked processing; a full queue ends the case in error."""
    try:
        services.queue.enqueue(job)
    except asyncio.QueueFull:
        await services.cases.mark_error(job.case_id, QUEUE_FULL_MESSAGE)
        raise HTTPException(503, QUEUE_FULL_MESSAGE)


def _in_flight(services, case_id: str) -> bool:
    return services.orchestrator.is_running(case_id) or services.queue.is_queued(case_id)


def create_app(services=None) -> FastAPI:
    """
    Build the API. Pass a prebuilt services graph (tests); otherwise it is
    built from settings on startup.
    """
    app = FastAPI(title="Procedo Case Analysis API", version="1.0.0")
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if settings.API_ENABLE_TIMING_LOGS:
        @app.middleware("http")
        async def _timing(request: Request, call_next):
            started = time.time()
            response = await call_next(request)
            log.info("%s %s -> %d (%.1f ms)", request.method, request.url.path,
                     response.status_code, (time.time() - started) * 1000)
            return response

    def svc():
        return app.state.services

    @app.on_event("startup")
    async def _startup():
        go_quiet()
        if app.state.services is None:
            from db import init_db
            from services import build_services
            init_db()
            app.state.services = build_services()
            log.info("Database initialized, services built from settings")
        app.state.services.queue.start()

    @app.on_event("shutdown")
    async def _shutdown():
        if app.state.services is not None:
            await app.state.services.queue.stop()

    async def _submit(org_id: str, user_id: str, file_url: str, file_name: Optional[str],
                      file_size: Optional[int], jurisdiction: Optional[str]) -> CaseSubmitOut:
        try:
            case = await svc().cases.create_case(
                org_id=org_id, user_id=user_id, file_url=file_url,
                file_name=file_name, file_size=file_size,
            )
            await _enqueue(svc(), AnalysisJob(case_id=case["case_id"], org_id=org_id, file_url=file_url,
                                              jurisdiction_hint=jurisdiction))
        except HTTPException:
            raise
        except Exception as e:
            log.exception("Case submission failed for org=%s", org_id)
            raise HTTPException(500, f"Failed to submit case: {e}")
        log.info("Case %s submitted by org=%s user=%s", case["case_id"], org_id, user_id)
        return CaseSubmitOut(case_id=case["case_id"], status="processing",
                             message="Analysis started. Poll the status endpoint for progress.")

    # --------- Endpoints ---------
    @app.post("/cases", response_model=CaseSubmitOut)
    async def submit_case(
        body: CaseSubmitIn,
        x_org_id: Optional[str] = Header(None),
        x_user_id: Optional[str] = Header(None),
    ):
        org_id, user_id = _identity(x_org_id, x_user_id)
        if not body.file_url:
            raise HTTPException(400, "file_url is required")
        return await _submit(org_id, user_id, body.file_url, body.file_name, body.file_size, body.jurisdiction)

    @app.post("/cases/upload", response_model=CaseSubmitOut)
    async def upload_case(
        file: UploadFile = File(...),
        jurisdiction: Optional[str] = Form(None),
        x_org_id: Optional[str] = Header(None),
        x_user_id: Optional[str] = Header(None),
    ):
        """Store the uploaded PDF, then submit it like POST /cases."""
        org_id, user_id = _identity(x_org_id, x_user_id)
        data = await file.read()
        if not data:
            raise HTTPException(400, "Uploaded file is empty")
        try:
            file_url = await svc().documents.save(org_id, file.filename or "document.pdf", data)
        except OSError as e:
            log.error("Failed to store upload %s: %s", file.filename, e)
            raise HTTPException(500, f"Failed to store upload: {e}")
        return await _submit(org_id, user_id, file_url, file.filename, len(data), jurisdiction)

    @app.get("/cases/{case_id}/status")
    async def case_status(
        case_id: str,
        x_org_id: Optional[str] = Header(None),
        x_user_id: Optional[str] = Header(None),
    ) -> Dict[str, Any]:
        org_id, _ = _identity(x_org_id, x_user_id)
        try:
            case = await svc().cases.get_case(case_id, org_id)
        except CaseNotFound as e:
            raise HTTPException(404, str(e))
        case.pop("file_url", None)
        return case

    @app.post("/cases/{case_id}/reanalyze", response_model=CaseSubmitOut)
    async def reanalyze_case(
        case_id: str,
        body: Optional[ReanalyzeIn] = None,
        x_org_id: Optional[str] = Header(None),
        x_user_id: Optional[str] = Header(None),
    ):
        org_id, _ = _identity(x_org_id, x_user_id)
        try:
            case = await svc().cases.get_case(case_id, org_id)
        except CaseNotFound as e:
            raise HTTPException(404, str(e))
        # a stored "processing" status with no queued or running job is stale
        if _in_flight(svc(), case_id):
            raise HTTPException(409, f"Case {case_id} is already being analyzed")

        hint = body.jurisdiction if body else None
        try:
            await svc().cases.mark_processing(case_id)
            await svc().cases.update_progress(case_id, 5, "Starting analysis...")
            await _enqueue(svc(), AnalysisJob(case_id=case_id, org_id=org_id, file_url=case["file_url"],
                                              jurisdiction_hint=hint))
        except HTTPException:
            raise
        except Exception as e:
            log.exception("Re-analysis of case %s failed to start", case_id)
            raise HTTPException(500, f"Failed to start re-analysis: {e}")
        return CaseSubmitOut(case_id=case_id, status="processing", message="Re-analysis started.")

    @app.get("/rules", response_model=List[RuleOut])
    async def list_rules(
        x_org_id: Optional[str] = Header(None),
        x_user_id: Optional[str] = Header(None),
    ):
        org_id, _ = _identity(x_org_id, x_user_id)
        try:
            rules = await svc().rules.get_rules(org_id)
        except Exception as e:
            raise HTTPException(500, f"Failed to load rules: {e}")
        return [RuleOut(**{k: v for k, v in dataclasses.asdict(r).items() if k in RuleOut.model_fields})
                for r in rules]

    @app.get("/health")
    async def health_check():
        services = svc()
        return {
            "status": "healthy",
            "service": "procedo",
            "workers_running": bool(services and services.queue.running),
            "backlog": services.queue.queue.qsize() if services else 0,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
