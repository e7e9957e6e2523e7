# procedo_parameters.py
"""
Static reference data for the parameterized (compliance audit) analysis:
mandatory provisions, optimizable provisions and the compliance scoring rubric.

The built-in catalog can be replaced with a YAML file of the same shape
(PROCEDO_PARAMETERS_PATH).
"""
from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml

from settings import settings

logger = logging.getLogger("procedo.parameters")

DEFAULT_PARAMETERS = {
    "mandatory_provisions": [
        {"ref": "Convention Art. 37", "name": "Constitution of the Tribunal",
         "check": "Tribunal composed of an uneven number of arbitrators, appointed as agreed or per Art. 37(2)(b)."},
        {"ref": "Convention Art. 48(1)", "name": "Majority decision",
         "check": "Tribunal decides questions by a majority of the votes of all its members."},
        {"ref": "Convention Art. 52(1)", "name": "Annulment grounds",
         "check": "No serious departure from a fundamental rule of procedure; reasons stated; no manifest excess of powers."},
        {"ref": "Arbitration Rule 2", "name": "Party representation",
         "check": "Names and contact details of party representatives notified to the Secretary-General."},
        {"ref": "Arbitration Rule 10", "name": "Time limits",
         "check": "Time limits fixed by the Tribunal or by the Rules and any extensions properly reasoned."},
        {"ref": "Arbitration Rule 29", "name": "First session",
         "check": "First session held within 60 days of constitution; procedural matters recorded."},
        {"ref": "Arbitration Rule 58", "name": "Timing of the Award",
         "check": "Award rendered within the prescribed period after the last submission."},
    ],
    "optimizable_provisions": [
        {"ref": "Arbitration Rule 7", "name": "Procedural language", "ai_role": "optimization",
         "opportunity": "Single procedural language to avoid translation cost where parties agree."},
        {"ref": "Arbitration Rule 31", "name": "Procedural calendar", "ai_role": "timeline_optimization",
         "opportunity": "Calendar benchmarked against comparable cases; avoid idle periods between phases."},
        {"ref": "Arbitration Rule 44", "name": "Bifurcation", "ai_role": "historical_analysis",
         "opportunity": "Bifurcate only where the preliminary question could dispose of the case."},
        {"ref": "Arbitration Rule 40", "name": "Document production", "ai_role": "optimization",
         "opportunity": "Redfern schedule with narrow, specific categories and a single round of objections."},
        {"ref": "Arbitration Rule 32", "name": "Hearing format", "ai_role": "optimization",
         "opportunity": "Virtual or hybrid sessions for procedural hearings; in-person for merits witnesses."},
        {"ref": "Arbitration Rule 16", "name": "Consolidated submissions", "ai_role": "optimization",
         "opportunity": "Page limits and consolidated exhibit lists to reduce review time."},
    ],
    "compliance_scoring": {
        "fully_compliant": {"range": "90-100", "description": "All mandatory provisions satisfied; no annulment exposure."},
        "partially_compliant": {"range": "60-89", "description": "Minor deviations that can be remedied without prejudice."},
        "non_compliant": {"range": "0-59", "description": "At least one mandatory provision breached or annulment risk present."},
    },
}

REQUIRED_KEYS = ("mandatory_provisions", "optimizable_provisions", "compliance_scoring")


def _validate(data: dict, source: str) -> dict:
    missing = [k for k in REQUIRED_KEYS if k not in data]
    if missing:
        raise ValueError(f"{source}: missing keys {missing}")
    return data


@lru_cache(maxsize=4)
def load_parameters(path: Optional[str] = None) -> dict:
    path = path or settings.PROCEDO_PARAMETERS_PATH
    if not path:
        return DEFAULT_PARAMETERS
    p = Path(path)
    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    logger.info("Loaded procedo parameters from %s", p)
    return _validate(data, str(p))
