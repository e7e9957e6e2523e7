# prompt_builder.py
"""
System/user prompt construction for both analysis modes.

default          consultative recommendation report
with_parameters  compliance audit against the procedo provision catalogs, with a score
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from procedo_parameters import load_parameters
from report_schemas import (
    INVALID_DOCUMENT,
    INVALID_DOCUMENT_MESSAGE,
    NON_ICSID_DOCUMENT,
    WRONG_JURISDICTION_MESSAGE,
    AnalysisMode,
    SchemaContract,
    json_schema,
)
from settings import settings

logger = logging.getLogger("procedo.prompts")


@dataclass(frozen=True)
class PromptBundle:
    mode: AnalysisMode
    system_prompt: str
    user_prompt: str
    contract: SchemaContract
    jurisdiction: str
    # Only the audit may short-circuit to the warning sentinel
    allow_wrong_jurisdiction: bool = False


_OUTPUT_RULES = """CRITICAL: OUTPUT FORMAT REQUIREMENTS
- You MUST output ONLY valid JSON. No markdown, no explanations, no headers.
- Do NOT include any text before or after the JSON object.
- Do NOT use markdown code blocks.
- Start your response with { and end with }
- If a submit tool is offered, call it instead of writing the JSON as text."""


def _dumps(obj) -> str:
    return json.dumps(obj, indent=2, ensure_ascii=False)


def _invalid_document_block() -> str:
    return f"""DOCUMENT VALIDATION:
1. If the document is not a valid arbitration/legal document, respond ONLY with:
{_dumps({"error": INVALID_DOCUMENT, "message": INVALID_DOCUMENT_MESSAGE})}"""


def _wrong_jurisdiction_block(jurisdiction: str, is_primary: bool) -> str:
    if is_primary:
        classified = f"The document was pre-classified as {jurisdiction}; check this against the text before auditing."
    else:
        classified = f"The document was classified as {jurisdiction}."
    return f"""2. This audit is calibrated for {settings.PRIMARY_JURISDICTION} only. {classified}
If the document is a legitimate arbitration document but is NOT governed by {settings.PRIMARY_JURISDICTION}, do not audit it; respond ONLY with:
{_dumps({"warning": NON_ICSID_DOCUMENT, "message": WRONG_JURISDICTION_MESSAGE})}"""


def rule_excerpt(rules: Sequence, limit: int) -> List[dict]:
    """Top rules by hierarchy, never the full set."""
    return [r.to_prompt_dict() for r in list(rules or [])[:limit]]


def _schema_block(contract: SchemaContract, jurisdiction: str) -> str:
    return f"""OUTPUT SCHEMA ({contract.value}):
Return one JSON object valid against this JSON Schema. Enumerated values must be used exactly as listed.
"case_summary" must mention the jurisdiction ({jurisdiction}).
{json.dumps(json_schema(contract), ensure_ascii=False)}"""


class PromptBuilder:
    def __init__(self, parameters: Optional[dict] = None, max_document_chars: int = None):
        self.parameters = parameters
        self.max_document_chars = max_document_chars or settings.PROMPT_MAX_DOCUMENT_CHARS

    def user_prompt(self, document_text: str) -> str:
        text = document_text or ""
        if len(text) > self.max_document_chars:
            logger.debug("Document truncated from %d to %d chars", len(text), self.max_document_chars)
        return f"CASE DOCUMENT:\n\n{text[:self.max_document_chars]}"

    def build(self, mode, document_text: str, rules: Sequence, jurisdiction: str) -> PromptBundle:
        mode = AnalysisMode(mode)
        jurisdiction = jurisdiction or settings.PRIMARY_JURISDICTION
        contract = SchemaContract.for_mode(mode)
        is_primary = settings.is_primary_jurisdiction(jurisdiction)

        if mode is AnalysisMode.WITH_PARAMETERS:
            system = self._parameterized_system(rules, jurisdiction, is_primary, contract)
        else:
            system = self._default_system(rules, jurisdiction, is_primary, contract)

        return PromptBundle(
            mode=mode,
            system_prompt=system,
            user_prompt=self.user_prompt(document_text),
            contract=contract,
            jurisdiction=jurisdiction,
            allow_wrong_jurisdiction=mode is AnalysisMode.WITH_PARAMETERS,
        )

    def _default_system(self, rules, jurisdiction: str, is_primary: bool, contract: SchemaContract) -> str:
        persona = "Senior ICSID Counsel" if is_primary else "International Arbitration Procedural Advisor"
        framework = "ICSID Convention & Rules" if is_primary else "international standards (UNCITRAL, IBA)"
        rules_label = "Institutional" if is_primary else "Reference"
        excerpt = rule_excerpt(rules, settings.rule_excerpt_size(with_parameters=False))

        if is_primary:
            authority = """ROLE & MINDSET:
- Mandatory Rules ("Compliance"): Be STRICT. If a rule is violated, state it clearly.
- Discretionary/Strategic Items ("Recommendations"): Be CONSULTATIVE. Use phrasing like "The Tribunal may consider...", "It could be beneficial to..."."""
        else:
            authority = f"""ROLE & MINDSET:
- This document is governed by {jurisdiction}, not {settings.PRIMARY_JURISDICTION}. The rules below are REFERENCE material only.
- Be CONSULTATIVE throughout. Use hedged phrasing like "The Tribunal may consider...", "Under comparable standards it could be beneficial to...".
- Do not state that a reference rule is binding unless the document itself adopts it."""

        return f"""You are Procedo, an expert {persona}. Your role is to analyze case documents and provide ACTIONABLE, LOGICALLY REASONED PROCEDURAL RECOMMENDATIONS.

{authority}
- Logical Reasoning: Every point must follow: [Observation] -> [Rule/Principle] -> [Strategic Implication] -> [Suggestion].

{_OUTPUT_RULES}

{_invalid_document_block()}

YOUR CORE MISSION:
1. Highlight Risks: Identify procedural traps that could lead to annulment.
2. Suggest Improvements: Propose what could be done better based on efficiency and best practices.
3. Ensure Compliance: Verify adherence to {framework}.

APPLICABLE RULES ({rules_label}, highest authority first):
{_dumps(excerpt)}

{_schema_block(contract, jurisdiction)}"""

    def _parameterized_system(self, rules, jurisdiction: str, is_primary: bool, contract: SchemaContract) -> str:
        params = self.parameters or load_parameters()
        persona = "ICSID Institutional Counsel" if is_primary else "International Arbitration Auditor"
        audit = "ICSID Strict Audit" if is_primary else "General Standards Audit"
        excerpt = rule_excerpt(rules, settings.rule_excerpt_size(with_parameters=True))

        validation = _invalid_document_block() + "\n\n" + _wrong_jurisdiction_block(jurisdiction, is_primary)

        non_primary_note = ""
        if not is_primary:
            non_primary_note = ("NOTE: As this is a non-ICSID case, apply equivalent international standards "
                                "(IBA/UNCITRAL) where strict ICSID rules do not apply.\n")

        return f"""You are an expert {persona} with access to Procedo's institutional parameters. Your goal is to strictly audit the case document for compliance, optimization, and logical consistency.

{_OUTPUT_RULES}

{validation}

PROCEDO ANALYSIS FRAMEWORK ({audit}):
You must analyze using TWO distinct categories of provisions.
{non_primary_note}
=== MANDATORY PROVISIONS (Strict Compliance Check) ===
For these provisions, act as a 'Guardian of the Rules'. Flag ANY deviation.
{_dumps(params["mandatory_provisions"])}

=== OPTIMIZABLE PROVISIONS (Strategic Improvements) ===
For these provisions, suggest improvements that save time/cost without compromising due process.
{_dumps(params["optimizable_provisions"])}

APPLICABLE INSTITUTIONAL RULES (highest authority first):
{_dumps(excerpt)}

COMPLIANCE SCORING:
Score the document using these levels; "score_percentage" is an integer from 0 to 100.
{_dumps(params["compliance_scoring"])}

{_schema_block(contract, jurisdiction)}"""
