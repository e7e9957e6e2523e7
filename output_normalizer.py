"""
Turn raw model output into an AnalysisOutcome.

Nothing in here raises: every path ends in a ValidReport, a sentinel, or a
ParseFailure that carries the raw text, so a case slot always has something
to display.
"""

import json
import logging
import re
from typing import Optional

from pydantic import ValidationError

from completion_invoker import RawModelOutput
from outcomes import (
    AnalysisOutcome,
    InvalidDocument,
    ParseFailure,
    ValidReport,
    WrongJurisdiction,
)
from report_schemas import INVALID_DOCUMENT, NON_ICSID_DOCUMENT, SchemaContract
from settings import settings

logger = logging.getLogger("procedo.normalizer")

_LEADING_FENCE = re.compile(r"^```[a-zA-Z]*\s*")
_TRAILING_FENCE = re.compile(r"\s*```\s*$")


def strip_code_fences(text: str) -> str:
    """Remove a leading ```json / ``` fence and a trailing ``` fence."""
    cleaned = (text or "").strip()
    cleaned = _LEADING_FENCE.sub("", cleaned)
    cleaned = _TRAILING_FENCE.sub("", cleaned)
    return cleaned.strip()


def outermost_braces(text: str) -> str:
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        return text[start:end + 1]
    return text


def extract_json_text(text: str) -> str:
    cleaned = strip_code_fences(text)
    if not cleaned.startswith("{"):
        # JSON embedded in prose
        cleaned = outermost_braces(cleaned)
    return cleaned


def decode_json_object(text: str) -> dict:
    """
    Best-effort decode of a JSON object from model text.

    Raises:
        ValueError: when no JSON object can be decoded
    """
    cleaned = extract_json_text(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        # fenced JSON followed by prose keeps its closing fence mid-text
        sliced = outermost_braces(cleaned)
        if sliced == cleaned:
            raise
        data = json.loads(sliced)
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def detect_sentinel(data: dict) -> Optional[AnalysisOutcome]:
    if data.get("error") == INVALID_DOCUMENT:
        return InvalidDocument(message=str(data.get("message") or InvalidDocument().message))
    if data.get("warning") == NON_ICSID_DOCUMENT:
        return WrongJurisdiction(message=str(data.get("message") or WrongJurisdiction().message))
    return None


def _validates(data: dict, contract: Optional[SchemaContract]) -> bool:
    if contract is None:
        return False
    try:
        contract.model.model_validate(data)
        return True
    except ValidationError as e:
        logger.warning("Report for %s failed strict validation (%d errors); keeping it as-is",
                       contract.value, e.error_count())
        return False


def _truncate(text: str) -> str:
    return (text or "")[:settings.RAW_RESPONSE_MAX_CHARS]


def _normalize_structured(data: dict, contract: Optional[SchemaContract]) -> AnalysisOutcome:
    sentinel = detect_sentinel(data)
    if sentinel is not None:
        return sentinel
    if contract is not None:
        missing = [k for k in contract.discriminator_keys if k not in data]
        if missing:
            return ParseFailure(
                raw_response=_truncate(json.dumps(data, ensure_ascii=False)),
                parse_error=f"missing required fields: {', '.join(missing)}",
            )
    return ValidReport(data=data, strict=_validates(data, contract))


def _normalize_text(text: str, contract: Optional[SchemaContract]) -> AnalysisOutcome:
    try:
        data = decode_json_object(text)
    except (json.JSONDecodeError, ValueError) as e:
        logger.warning("Could not decode model output as JSON: %s", e)
        return ParseFailure(raw_response=_truncate(text), parse_error=str(e))
    sentinel = detect_sentinel(data)
    if sentinel is not None:
        return sentinel
    return ValidReport(data=data, strict=_validates(data, contract))


def normalize(raw: RawModelOutput, contract: Optional[SchemaContract] = None) -> AnalysisOutcome:
    try:
        if raw.is_structured:
            return _normalize_structured(raw.structured, contract)
        return _normalize_text(raw.text, contract)
    except Exception as e:  # last-resort boundary; the slot must stay displayable
        logger.exception("Normalizer failed unexpectedly")
        return ParseFailure(raw_response=_truncate(raw.text or str(raw.structured)), parse_error=str(e))
