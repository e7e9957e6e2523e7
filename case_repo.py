# case_repo.py
"""
Case record persistence. SQLAlchemy sessions are synchronous, so every public
method hops to a worker thread and the event loop keeps serving other chains.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import sessionmaker

from db import session_scope
from errors import CaseNotFound
from models_case import CaseRecord
from report_schemas import AnalysisMode

logger = logging.getLogger("procedo.cases")

# Slot columns per analysis mode: (result column, timestamp column)
SLOT_COLUMNS = {
    AnalysisMode.DEFAULT: ("default_recommendations", "analyzed_at"),
    AnalysisMode.WITH_PARAMETERS: ("parameterized_recommendations", "parameterized_analyzed_at"),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def case_title_from(file_name: Optional[str]) -> str:
    if not file_name:
        return "Case Analysis"
    title = file_name[:-4] if file_name.lower().endswith(".pdf") else file_name
    return title or "Case Analysis"


def to_status_dict(rec: CaseRecord) -> dict:
    return {
        "case_id": rec.id,
        "org_id": rec.org_id,
        "case_title": rec.case_title,
        "file_name": rec.file_name,
        "status": rec.status,
        "progress": rec.analysis_progress,
        "current_step": rec.current_step,
        "error_message": rec.error_message,
        "jurisdiction": rec.jurisdiction,
        "default_recommendations": rec.default_recommendations,
        "analyzed_at": rec.analyzed_at,
        "parameterized_recommendations": rec.parameterized_recommendations,
        "parameterized_analyzed_at": rec.parameterized_analyzed_at,
        "created_at": rec.created_at,
    }


class CaseRepository:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    # ---- sync internals ----
    def _create(self, org_id, user_id, file_url, file_name, file_size) -> dict:
        with session_scope(self.session_factory) as db:
            rec = CaseRecord(
                org_id=org_id,
                user_id=user_id,
                case_title=case_title_from(file_name),
                file_name=file_name or "document.pdf",
                file_size=file_size or 0,
                file_url=file_url,
                status="processing",
                analysis_progress=5,
                current_step="Starting analysis...",
            )
            db.add(rec)
            db.flush()
            db.refresh(rec)
            return to_status_dict(rec)

    def _get(self, case_id: str, org_id: Optional[str] = None) -> dict:
        with self.session_factory() as db:
            rec = db.get(CaseRecord, case_id)
            if rec is None or (org_id is not None and rec.org_id != org_id):
                raise CaseNotFound(case_id)
            out = to_status_dict(rec)
            out["file_url"] = rec.file_url
            return out

    def _update(self, case_id: str, values: dict) -> None:
        with session_scope(self.session_factory) as db:
            result = db.execute(update(CaseRecord).where(CaseRecord.id == case_id).values(**values))
            if result.rowcount == 0:
                raise CaseNotFound(case_id)

    # ---- async API ----
    async def create_case(self, *, org_id: str, user_id: str, file_url: str,
                          file_name: Optional[str] = None, file_size: Optional[int] = None) -> dict:
        return await asyncio.to_thread(self._create, org_id, user_id, file_url, file_name, file_size)

    async def get_case(self, case_id: str, org_id: Optional[str] = None) -> dict:
        return await asyncio.to_thread(self._get, case_id, org_id)

    async def update(self, case_id: str, **values) -> None:
        await asyncio.to_thread(self._update, case_id, values)

    async def update_progress(self, case_id: str, progress: int, step: str) -> None:
        await self.update(case_id, analysis_progress=progress, current_step=step)

    async def write_slot(self, case_id: str, mode: AnalysisMode, payload: dict) -> None:
        result_col, ts_col = SLOT_COLUMNS[AnalysisMode(mode)]
        await self.update(case_id, **{result_col: payload, ts_col: _utcnow()})

    async def mark_processing(self, case_id: str) -> None:
        await self.update(case_id, status="processing", error_message=None)

    async def mark_error(self, case_id: str, message: str, step: str = "Error") -> None:
        logger.warning("Case %s failed: %s", case_id, message)
        await self.update(case_id, status="error", error_message=message, analysis_progress=0, current_step=step)
