"""
Jurisdiction detection for arbitration documents.

Runs once per case: either a caller-supplied hint short-circuits it, or a single
small LLM call with a three-field JSON contract decides the governing ruleset.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Literal, Optional

from pydantic import BaseModel, ValidationError

from llm_provider import LLMProvider
from output_normalizer import decode_json_object
from settings import settings

logger = logging.getLogger("procedo.classifier")

JURISDICTIONS = ("ICSID", "UNCITRAL", "ICC", "LCIA", "Other")
GENERAL_JURISDICTION = "General Commercial"


@dataclass(frozen=True)
class ClassificationResult:
    jurisdiction: str
    is_primary: bool
    rationale: str


class _ClassifierPayload(BaseModel):
    is_icsid: bool
    jurisdiction: Optional[Literal["ICSID", "UNCITRAL", "ICC", "LCIA", "Other"]] = None
    rationale: str = ""


CLASSIFIER_SYSTEM_PROMPT = f"""You are an expert legal classifier. Determine the jurisdiction of this arbitration document.

OUTPUT JSON ONLY, exactly these three fields and nothing else:
{{
  "is_icsid": true,
  "jurisdiction": "{' | '.join(JURISDICTIONS)}",
  "rationale": "Brief explanation"
}}

- "is_icsid" is true if the document is ICSID or investment treaty arbitration under ICSID.
- "jurisdiction" must be exactly one of the listed labels.
- "rationale" is one sentence."""


DEFAULT_ON_ERROR = ClassificationResult(
    jurisdiction=settings.PRIMARY_JURISDICTION,
    is_primary=True,
    rationale="default on error",
)


class DocumentClassifier:
    def __init__(self, provider: LLMProvider, max_chars: int = None, max_tokens: int = None):
        self.provider = provider
        self.max_chars = max_chars or settings.CLASSIFIER_MAX_CHARS
        self.max_tokens = max_tokens or settings.LLM_CLASSIFIER_MAX_TOKENS

    @staticmethod
    def from_hint(hint: str) -> ClassificationResult:
        return ClassificationResult(
            jurisdiction=hint,
            is_primary=settings.is_primary_jurisdiction(hint),
            rationale="provided",
        )

    async def classify(self, text: str, hint: Optional[str] = None) -> ClassificationResult:
        """
        Classify the document's governing ruleset.

        Args:
            text: Extracted document text (only the head is sent to the model)
            hint: Caller-supplied jurisdiction; skips the model call entirely

        Returns:
            ClassificationResult; fails open to the primary jurisdiction on any error
        """
        if hint:
            return self.from_hint(hint)

        user = f"DOCUMENT START:\n{(text or '')[:self.max_chars]}\nDOCUMENT END"
        try:
            response = await asyncio.to_thread(
                self.provider.complete,
                system=CLASSIFIER_SYSTEM_PROMPT,
                user=user,
                max_tokens=self.max_tokens,
            )
            payload = _ClassifierPayload.model_validate(decode_json_object(response.text))
        except (ValueError, ValidationError) as e:
            logger.warning("Classification parse error, defaulting to %s: %s", DEFAULT_ON_ERROR.jurisdiction, e)
            return DEFAULT_ON_ERROR
        except Exception as e:
            logger.warning("Classification call failed, defaulting to %s: %s", DEFAULT_ON_ERROR.jurisdiction, e)
            return DEFAULT_ON_ERROR

        jurisdiction = payload.jurisdiction or (
            settings.PRIMARY_JURISDICTION if payload.is_icsid else GENERAL_JURISDICTION
        )
        result = ClassificationResult(
            jurisdiction=jurisdiction,
            is_primary=settings.is_primary_jurisdiction(jurisdiction),
            rationale=payload.rationale,
        )
        logger.info("Classified document as %s (%s)", result.jurisdiction, result.rationale)
        return result
