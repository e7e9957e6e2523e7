# -*- coding: utf-8 -*-
"""
Analysis Orchestrator - turns one uploaded document into two case reports.

Sequence for a single case run:
1. progress: document received
2. text extraction (the only whole-case fatal failure)
3. jurisdiction classification and rule fetch, run together, shared by both chains
4. progress: detected jurisdiction
5. two concurrent chains, one per analysis mode:
       build prompt -> invoke model -> normalize -> write slot
   each chain has its own failure boundary and timeout
6. settle both chains, set the case status, progress 100

Status policy: the case is `analyzed` when at least one slot holds something
displayable (report, sentinel or parse fallback); `error` when extraction
failed or both chains ended in a fatal error.

Usage:
    orchestrator = AnalysisOrchestrator(cases=..., rules=..., classifier=...,
                                        prompt_builder=..., invoker=..., extractor=...)
    summary = await orchestrator.run(case_id, org_id, file_url=url)
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from completion_invoker import CompletionInvoker
from document_classifier import ClassificationResult, DocumentClassifier
from errors import CaseAlreadyProcessing
from output_normalizer import normalize
from outcomes import AnalysisOutcome, FatalError, is_displayable
from progress import ANALYZING, CLASSIFIED, COMPLETE, EXTRACTING, SAVING, SUBMITTED, ProgressReporter
from prompt_builder import PromptBuilder
from report_schemas import AnalysisMode
from rule_repo import RuleRepository
from settings import settings

logger = logging.getLogger("procedo.orchestrator")

MODES = (AnalysisMode.DEFAULT, AnalysisMode.WITH_PARAMETERS)

EXTRACTION_FAILED_MESSAGE = "Failed to extract text from PDF."
UNEXPECTED_ERROR_MESSAGE = "Unexpected error during analysis."


@dataclass
class RunSummary:
    case_id: str
    status: str
    jurisdiction: Optional[str] = None
    outcomes: Dict[AnalysisMode, AnalysisOutcome] = field(default_factory=dict)
    error: Optional[str] = None
    elapsed_ms: float = 0.0

    def outcome_kinds(self) -> Dict[str, str]:
        return {m.value: type(o).__name__ for m, o in self.outcomes.items()}


class AnalysisOrchestrator:
    def __init__(
        self,
        *,
        cases,
        rules: RuleRepository,
        classifier: DocumentClassifier,
        prompt_builder: PromptBuilder,
        invoker: CompletionInvoker,
        extractor=None,
        progress: Optional[ProgressReporter] = None,
        chain_timeout: Optional[float] = None,
    ):
        self.cases = cases
        self.rules = rules
        self.classifier = classifier
        self.prompt_builder = prompt_builder
        self.invoker = invoker
        self.extractor = extractor
        self.progress = progress or ProgressReporter(cases)
        self.chain_timeout = settings.CHAIN_TIMEOUT_SECONDS if chain_timeout is None else chain_timeout
        self._active: Set[str] = set()

    def is_running(self, case_id: str) -> bool:
        return case_id in self._active

    async def run(
        self,
        case_id: str,
        tenant_id: str,
        *,
        file_url: Optional[str] = None,
        document_text: Optional[str] = None,
        jurisdiction_hint: Optional[str] = None,
    ) -> RunSummary:
        """
        Analyze one case end to end. Never raises for pipeline failures; they end
        up in the case record. Raises CaseAlreadyProcessing when a run for the
        same case id is already in flight in this process.
        """
        if case_id in self._active:
            raise CaseAlreadyProcessing(case_id)
        self._active.add(case_id)
        started = time.time()
        try:
            summary = await self._run(case_id, tenant_id, file_url, document_text, jurisdiction_hint)
        finally:
            self._active.discard(case_id)
            self.progress.finish(case_id)
        summary.elapsed_ms = (time.time() - started) * 1000
        logger.info("Case %s finished: status=%s outcomes=%s (%.0f ms)",
                    case_id, summary.status, summary.outcome_kinds(), summary.elapsed_ms)
        return summary

    async def _run(self, case_id, tenant_id, file_url, document_text, jurisdiction_hint) -> RunSummary:
        self.progress.begin(case_id)
        try:
            await self.progress.report(case_id, *SUBMITTED)

            text = document_text
            if text is None:
                await self.progress.report(case_id, *EXTRACTING)
                try:
                    text = await self.extractor.extract(file_url)
                except Exception as e:
                    logger.error("Text extraction failed for case %s: %s", case_id, e)
                    await self.progress.fail(case_id, EXTRACTION_FAILED_MESSAGE)
                    return RunSummary(case_id=case_id, status="error", error=EXTRACTION_FAILED_MESSAGE)

            classification, (rules, rules_error) = await asyncio.gather(
                self.classifier.classify(text, jurisdiction_hint),
                self._fetch_rules(tenant_id),
            )
            await self.cases.update(case_id, jurisdiction=classification.jurisdiction)
            await self.progress.report(case_id, CLASSIFIED, f"Detected jurisdiction: {classification.jurisdiction}")

            results = await asyncio.gather(
                *(self._run_chain(case_id, mode, text, rules, rules_error, classification) for mode in MODES),
                return_exceptions=True,
            )

            outcomes: Dict[AnalysisMode, AnalysisOutcome] = {}
            for mode, result in zip(MODES, results):
                if isinstance(result, BaseException):
                    logger.error("Chain %s for case %s could not persist: %r", mode.value, case_id, result)
                    outcomes[mode] = FatalError(f"{mode.value} analysis failed: {result}")
                else:
                    outcomes[mode] = result

            return await self._finalize(case_id, classification, outcomes)

        except Exception:
            logger.exception("Background processing error for case %s", case_id)
            try:
                await self.progress.fail(case_id, UNEXPECTED_ERROR_MESSAGE)
            except Exception:
                logger.exception("Could not record failure for case %s", case_id)
            return RunSummary(case_id=case_id, status="error", error=UNEXPECTED_ERROR_MESSAGE)

    async def _fetch_rules(self, tenant_id: str) -> Tuple[Optional[List], Optional[Exception]]:
        try:
            return await self.rules.get_rules(tenant_id), None
        except Exception as e:
            logger.error("Rule fetch failed for org=%s: %s", tenant_id, e)
            return None, e

    async def _finalize(self, case_id: str, classification: ClassificationResult,
                        outcomes: Dict[AnalysisMode, AnalysisOutcome]) -> RunSummary:
        if any(is_displayable(o) for o in outcomes.values()):
            status, error = "analyzed", None
        else:
            status = "error"
            error = "; ".join(o.message for o in outcomes.values())
        await self.cases.update(case_id, status=status, error_message=error)
        await self.progress.report(case_id, *COMPLETE)
        return RunSummary(case_id=case_id, status=status, jurisdiction=classification.jurisdiction,
                          outcomes=outcomes, error=error)

    async def _run_chain(self, case_id: str, mode: AnalysisMode, text: str, rules: Optional[List],
                         rules_error: Optional[Exception], classification: ClassificationResult) -> AnalysisOutcome:
        """One mode end to end. Failures become a FatalError written into this mode's slot."""
        try:
            outcome = await asyncio.wait_for(
                self._chain_body(case_id, mode, text, rules, rules_error, classification),
                timeout=self.chain_timeout,
            )
        except asyncio.TimeoutError:
            logger.error("Chain %s for case %s timed out after %.0fs", mode.value, case_id, self.chain_timeout)
            outcome = FatalError(f"{mode.value} analysis timed out after {self.chain_timeout:.0f} seconds")
        except Exception as e:
            logger.error("Chain %s for case %s failed: %s", mode.value, case_id, e)
            outcome = FatalError(f"{mode.value} analysis failed: {e}")

        await self.cases.write_slot(case_id, mode, outcome.to_payload())
        return outcome

    async def _chain_body(self, case_id, mode, text, rules, rules_error, classification) -> AnalysisOutcome:
        if rules_error is not None:
            raise rules_error
        await self.progress.report(case_id, *ANALYZING)
        bundle = self.prompt_builder.build(mode, text, rules or [], classification.jurisdiction)
        raw = await self.invoker.invoke(bundle)
        outcome = normalize(raw, bundle.contract)
        logger.info("Chain %s for case %s produced %s", mode.value, case_id, type(outcome).__name__)
        await self.progress.report(case_id, *SAVING)
        return outcome
