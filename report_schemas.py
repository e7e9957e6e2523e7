# report_schemas.py
"""
Typed output contracts for the two analysis modes.

The prompt prose and the tool definitions sent to the model are both generated
from these models, and the normalizer validates against them.
"""
from __future__ import annotations

from enum import Enum
from typing import List, Literal, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field

DocumentType = Literal["Procedural Order", "Memorial", "Submission", "Award", "Other"]
Priority = Literal["critical", "high", "medium"]
Impact = Literal["high", "medium", "low"]
Confidence = Literal["high", "medium", "low"]


class AnalysisMode(str, Enum):
    DEFAULT = "default"
    WITH_PARAMETERS = "with_parameters"


class _Report(BaseModel):
    # Models occasionally add commentary fields; keep them instead of failing
    model_config = ConfigDict(extra="allow")


# ---------- default mode: procedo_recommends ----------
class PrimaryRecommendation(_Report):
    title: str
    recommendation: str
    rationale: str
    priority: Priority
    rule_reference: str


class ChecklistItem(_Report):
    item: str
    status: Literal["missing_critical", "required", "recommended"]
    deadline_guidance: str
    risk_if_ignored: str


class ProcedoRecommends(_Report):
    primary_recommendations: List[PrimaryRecommendation] = Field(default_factory=list)
    procedural_checklist: List[ChecklistItem] = Field(default_factory=list)


# ---------- shared recommendations block ----------
class LanguageRecommendation(_Report):
    recommendation: str
    reasoning: str
    rule_ref: str
    confidence: Confidence


class TimelinePhase(_Report):
    name: str
    suggested_days: float
    reasoning: str
    benchmark: str


class Timeline(_Report):
    phases: List[TimelinePhase] = Field(default_factory=list)
    rule_ref: str


class Bifurcation(_Report):
    recommendation: Literal["grant", "deny", "defer"]
    reasoning: str
    historical_context: str
    rule_ref: str
    discretionary: bool


class DocumentProduction(_Report):
    recommendation: str
    reasoning: str
    rule_ref: str


class HearingFormat(_Report):
    recommendation: Literal["in-person", "virtual", "hybrid"]
    reasoning: str
    rule_ref: str


class EvidenceManagement(_Report):
    recommendations: List[str] = Field(default_factory=list)
    rule_ref: str


class Recommendations(_Report):
    language: Optional[LanguageRecommendation] = None
    timeline: Optional[Timeline] = None
    bifurcation: Optional[Bifurcation] = None
    document_production: Optional[DocumentProduction] = None
    hearing_format: Optional[HearingFormat] = None
    evidence_management: Optional[EvidenceManagement] = None


class EfficiencySuggestion(_Report):
    type: str
    suggestion: str
    rationale: str
    potential_impact: Impact
    estimated_savings: str


class CriticalFlag(_Report):
    issue: str
    severity: Priority
    rule_ref: str
    annulment_risk: bool
    immediate_action: str


class DefaultReport(_Report):
    case_summary: str
    document_type: DocumentType
    procedo_recommends: ProcedoRecommends
    recommendations: Recommendations
    efficiency_suggestions: List[EfficiencySuggestion] = Field(default_factory=list)
    critical_flags: List[CriticalFlag] = Field(default_factory=list)


# ---------- with_parameters mode ----------
class ComplianceScore(_Report):
    overall: Literal["fully_compliant", "partially_compliant", "non_compliant"]
    score_percentage: int = Field(ge=0, le=100)
    summary: str


class MandatoryCompliance(_Report):
    provision_ref: str
    provision_name: str
    status: Literal["compliant", "non_compliant", "not_applicable"]
    finding: str
    action_required: str
    annulment_risk: bool


class OptimizationOpportunity(_Report):
    provision_ref: str
    provision_name: str
    current_approach: str
    suggested_optimization: str
    potential_impact: Priority
    estimated_savings: str
    ai_role: str


class ParameterizedReport(_Report):
    case_summary: str
    document_type: DocumentType
    compliance_score: ComplianceScore
    mandatory_compliance: List[MandatoryCompliance] = Field(default_factory=list)
    optimization_opportunities: List[OptimizationOpportunity] = Field(default_factory=list)
    recommendations: Recommendations
    efficiency_suggestions: List[EfficiencySuggestion] = Field(default_factory=list)
    critical_flags: List[CriticalFlag] = Field(default_factory=list)


# ---------- sentinels ----------
INVALID_DOCUMENT = "invalid_document"
NON_ICSID_DOCUMENT = "non_icsid_document"

INVALID_DOCUMENT_MESSAGE = (
    "This does not appear to be a valid case document. "
    "Please upload an arbitration-related document."
)
WRONG_JURISDICTION_MESSAGE = (
    "This document does not appear to be governed by the ICSID framework. "
    "The compliance audit is calibrated for ICSID and was not run."
)


class SentinelMessage(BaseModel):
    message: str


# ---------- contracts ----------
class SchemaContract(str, Enum):
    DEFAULT_REPORT = "procedo_default_report"
    PARAMETERIZED_REPORT = "procedo_parameterized_report"

    @property
    def model(self) -> Type[_Report]:
        return DefaultReport if self is SchemaContract.DEFAULT_REPORT else ParameterizedReport

    @property
    def discriminator_keys(self) -> Tuple[str, ...]:
        # Keys that distinguish a report of this contract from any other JSON object
        if self is SchemaContract.DEFAULT_REPORT:
            return ("case_summary", "procedo_recommends")
        return ("case_summary", "compliance_score")

    @classmethod
    def for_mode(cls, mode: AnalysisMode) -> "SchemaContract":
        if AnalysisMode(mode) is AnalysisMode.WITH_PARAMETERS:
            return cls.PARAMETERIZED_REPORT
        return cls.DEFAULT_REPORT


REPORT_TOOL = "submit_report"
INVALID_DOCUMENT_TOOL = "reject_invalid_document"
WRONG_JURISDICTION_TOOL = "flag_non_icsid_document"


def json_schema(contract: SchemaContract) -> dict:
    return contract.model.model_json_schema()


def tool_definitions(contract: SchemaContract, allow_wrong_jurisdiction: bool) -> List[dict]:
    """OpenAI-style function definitions: the report plus the escape-hatch sentinels."""
    tools = [
        {
            "type": "function",
            "function": {
                "name": REPORT_TOOL,
                "description": "Submit the full analysis report for the case document.",
                "parameters": json_schema(contract),
            },
        },
        {
            "type": "function",
            "function": {
                "name": INVALID_DOCUMENT_TOOL,
                "description": "Use when the input is not an arbitration or legal document.",
                "parameters": SentinelMessage.model_json_schema(),
            },
        },
    ]
    if allow_wrong_jurisdiction:
        tools.append({
            "type": "function",
            "function": {
                "name": WRONG_JURISDICTION_TOOL,
                "description": "Use when the document is legitimate but not governed by ICSID.",
                "parameters": SentinelMessage.model_json_schema(),
            },
        })
    return tools


def tool_call_to_payload(name: str, arguments: dict) -> dict:
    """Map a tool call back to the JSON shape the free-text contract uses."""
    if name == INVALID_DOCUMENT_TOOL:
        return {"error": INVALID_DOCUMENT, "message": arguments.get("message") or INVALID_DOCUMENT_MESSAGE}
    if name == WRONG_JURISDICTION_TOOL:
        return {"warning": NON_ICSID_DOCUMENT, "message": arguments.get("message") or WRONG_JURISDICTION_MESSAGE}
    return arguments
