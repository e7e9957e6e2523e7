# -*- coding: utf-8 -*-
"""
Shared fixtures for the Procedo tests.

Everything external is faked: the LLM provider is scripted, the case store is
in memory, and the database is an in-memory SQLite engine.
"""

import json
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

_root = Path(__file__).resolve().parent.parent
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))

from db import get_session_factory, init_db  # noqa: E402
from document_classifier import CLASSIFIER_SYSTEM_PROMPT  # noqa: E402
from errors import CaseNotFound  # noqa: E402
from llm_provider import CompletionResponse, LLMProvider  # noqa: E402
from report_schemas import AnalysisMode, SchemaContract  # noqa: E402


# ---------- sample model outputs ----------
DEFAULT_REPORT = {
    "case_summary": "ICSID investment dispute over a mining concession; Procedural Order No. 1.",
    "document_type": "Procedural Order",
    "procedo_recommends": {
        "primary_recommendations": [{
            "title": "Fix the hearing calendar",
            "recommendation": "The Tribunal may consider fixing hearing dates now.",
            "rationale": "Observation -> Rule 13 -> schedule risk -> fix dates",
            "priority": "high",
            "rule_reference": "ICSID Rule 13",
        }],
        "procedural_checklist": [{
            "item": "Confirm language of proceedings",
            "status": "required",
            "deadline_guidance": "Before the first session",
            "risk_if_ignored": "Translation delays",
        }],
    },
    "recommendations": {
        "language": {
            "recommendation": "English",
            "reasoning": "Both parties filed in English",
            "rule_ref": "ICSID Rule 7",
            "confidence": "high",
        },
    },
    "efficiency_suggestions": [],
    "critical_flags": [],
}

PARAMETERIZED_REPORT = {
    "case_summary": "ICSID case; order is largely compliant.",
    "document_type": "Procedural Order",
    "compliance_score": {"overall": "partially_compliant", "score_percentage": 72, "summary": "Minor gaps"},
    "mandatory_compliance": [{
        "provision_ref": "Art. 48",
        "provision_name": "Award deliberation",
        "status": "compliant",
        "finding": "Deliberation rules respected",
        "action_required": "None",
        "annulment_risk": False,
    }],
    "optimization_opportunities": [],
    "recommendations": {},
    "efficiency_suggestions": [],
    "critical_flags": [],
}

INVALID_DOCUMENT_TEXT = json.dumps({"error": "invalid_document", "message": "Not a legal document."})
NON_ICSID_TEXT = json.dumps({"warning": "non_icsid_document", "message": "Governed by UNCITRAL."})


def classifier_text(jurisdiction: str, is_icsid: Optional[bool] = None) -> str:
    return json.dumps({
        "is_icsid": jurisdiction == "ICSID" if is_icsid is None else is_icsid,
        "jurisdiction": jurisdiction,
        "rationale": f"Mentions {jurisdiction} rules",
    })


# ---------- fakes ----------
Reply = Union[str, CompletionResponse, Exception, Callable[[dict], CompletionResponse]]


def _mode_of(system: str) -> str:
    if system == CLASSIFIER_SYSTEM_PROMPT:
        return "classify"
    if SchemaContract.PARAMETERIZED_REPORT.value in system:
        return AnalysisMode.WITH_PARAMETERS.value
    return AnalysisMode.DEFAULT.value


class FakeProvider(LLMProvider):
    """
    Scripted provider. Replies are keyed by "classify", "default" and
    "with_parameters"; a reply is a text, a CompletionResponse, an exception
    to raise, or a callable taking the call record.
    """

    def __init__(self, replies: Optional[Dict[str, Reply]] = None, supports_tools: bool = False):
        self.replies = dict(replies or {})
        self.supports_tools = supports_tools
        self.calls: List[dict] = []

    def complete(self, *, system, user, max_tokens=8000, tools=None) -> CompletionResponse:
        call = {"kind": _mode_of(system), "system": system, "user": user,
                "max_tokens": max_tokens, "tools": tools}
        self.calls.append(call)
        reply = self.replies.get(call["kind"], "")
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(call)
        if isinstance(reply, CompletionResponse):
            return reply
        return CompletionResponse(text=reply)

    def calls_of(self, kind: str) -> List[dict]:
        return [c for c in self.calls if c["kind"] == kind]


class FakeCaseStore:
    """In-memory stand-in for CaseRepository that records every progress write."""

    def __init__(self):
        self.cases: Dict[str, dict] = {}
        self.progress_log: List[tuple] = []
        self.fail_slot_writes: set = set()

    def add(self, case_id: str, org_id: str = "org_1", **fields) -> dict:
        self.cases[case_id] = {
            "case_id": case_id, "org_id": org_id, "status": "processing",
            "progress": 5, "current_step": "Starting analysis...", "error_message": None,
            "jurisdiction": None, "default_recommendations": None,
            "parameterized_recommendations": None, "file_url": fields.pop("file_url", "file:///tmp/case.pdf"),
            **fields,
        }
        return self.cases[case_id]

    def _case(self, case_id: str) -> dict:
        if case_id not in self.cases:
            raise CaseNotFound(case_id)
        return self.cases[case_id]

    async def get_case(self, case_id: str, org_id: Optional[str] = None) -> dict:
        case = self._case(case_id)
        if org_id is not None and case["org_id"] != org_id:
            raise CaseNotFound(case_id)
        return dict(case)

    async def update(self, case_id: str, **values) -> None:
        case = self._case(case_id)
        if "analysis_progress" in values:
            values["progress"] = values.pop("analysis_progress")
        case.update(values)

    async def update_progress(self, case_id: str, progress: int, step: str) -> None:
        self.progress_log.append((case_id, progress, step))
        await self.update(case_id, progress=progress, current_step=step)

    async def write_slot(self, case_id: str, mode, payload: dict) -> None:
        mode = AnalysisMode(mode)
        if mode in self.fail_slot_writes:
            raise RuntimeError("database unavailable")
        column = "parameterized_recommendations" if mode is AnalysisMode.WITH_PARAMETERS else "default_recommendations"
        await self.update(case_id, **{column: payload})

    async def mark_processing(self, case_id: str) -> None:
        await self.update(case_id, status="processing", error_message=None)

    async def mark_error(self, case_id: str, message: str, step: str = "Error") -> None:
        self.progress_log.append((case_id, 0, step))
        await self.update(case_id, status="error", error_message=message, progress=0, current_step=step)

    def percents(self, case_id: str) -> List[int]:
        return [p for cid, p, _ in self.progress_log if cid == case_id]


class FakeExtractor:
    def __init__(self, text: str = "PROCEDURAL ORDER NO. 1 under the ICSID Arbitration Rules.", error: Exception = None):
        self.text = text
        self.error = error
        self.urls: List[str] = []

    async def extract(self, url: str) -> str:
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return self.text


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRuleSource:
    def __init__(self, rules=None, error: Exception = None):
        self.rules = list(rules or [])
        self.error = error
        self.fetches = 0

    def fetch(self, org_id: str):
        self.fetches += 1
        if self.error is not None:
            raise self.error
        return [r for r in self.rules if r.org_id == org_id]


# ---------- fixtures ----------
@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return get_session_factory(engine)


@pytest.fixture
def case_store():
    return FakeCaseStore()


@pytest.fixture
def clock():
    return FakeClock()
