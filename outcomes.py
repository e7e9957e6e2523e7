# outcomes.py
"""
One result type for every stage of an analysis chain.

    ValidReport | InvalidDocument | WrongJurisdiction | ParseFailure | FatalError

Every variant renders the JSON payload that ends up in a case result slot, so
a slot is never empty once its chain has finished.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from report_schemas import (
    INVALID_DOCUMENT,
    INVALID_DOCUMENT_MESSAGE,
    NON_ICSID_DOCUMENT,
    WRONG_JURISDICTION_MESSAGE,
)

PARSE_FAILED = "parse_failed"
ANALYSIS_FAILED = "analysis_failed"

PARSE_FAILED_MESSAGE = (
    "The AI response could not be parsed as a structured report. "
    "The raw response is shown instead; please re-run the analysis."
)


@dataclass(frozen=True)
class ValidReport:
    data: dict = field(default_factory=dict)
    # False when the payload carried the contract's key fields but failed strict validation
    strict: bool = True

    def to_payload(self) -> dict:
        return dict(self.data)


@dataclass(frozen=True)
class InvalidDocument:
    message: str = INVALID_DOCUMENT_MESSAGE

    def to_payload(self) -> dict:
        return {"error": INVALID_DOCUMENT, "message": self.message}


@dataclass(frozen=True)
class WrongJurisdiction:
    message: str = WRONG_JURISDICTION_MESSAGE

    def to_payload(self) -> dict:
        return {"warning": NON_ICSID_DOCUMENT, "message": self.message}


@dataclass(frozen=True)
class ParseFailure:
    raw_response: str
    parse_error: str
    message: str = PARSE_FAILED_MESSAGE

    def to_payload(self) -> dict:
        return {
            "raw_response": self.raw_response,
            "error": PARSE_FAILED,
            "message": self.message,
            "parse_error": self.parse_error,
        }


@dataclass(frozen=True)
class FatalError:
    message: str

    def to_payload(self) -> dict:
        return {"error": ANALYSIS_FAILED, "message": self.message}


AnalysisOutcome = Union[ValidReport, InvalidDocument, WrongJurisdiction, ParseFailure, FatalError]


def is_displayable(outcome: AnalysisOutcome) -> bool:
    """Everything except a fatal chain error counts toward an `analyzed` case."""
    return not isinstance(outcome, FatalError)
