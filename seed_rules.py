#!/usr/bin/env python3
"""
Seed a tenant's institution rules from a YAML file.

The YAML file holds two lists, ``convention`` and ``arbitration_rules`` (and
optionally ``expedited_arbitration``); each item carries ``ref``, ``mandatory``
and optionally ``title``, ``summary``, ``parameter_tag``, ``ai_usage`` and
``raw_scope``. Hierarchy level and legal control flags are derived here, once,
and stored; nothing downstream recomputes them.

Usage:
    python seed_rules.py --org org_123 --file icsid_2022.yml
"""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import yaml
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from db import get_session_factory, init_db, session_scope
from models_rule import InstitutionRuleRecord

logger = logging.getLogger("procedo.seed")

HIERARCHY_LEVELS: Dict[str, int] = {
    "convention": 1,
    "arbitration_rules": 2,
    "expedited_arbitration": 3,
}

NON_DEROGABLE_TAGS = frozenset({
    "rule_hierarchy",
    "tribunal_decision_method",
    "procedural_discretion",
})

ANNULMENT_LINKED_TAGS = frozenset({
    "tribunal_decision_method",
    "award_timeline",
    "procedural_discretion",
    "fundamental_procedure_breach",
})

DEFAULT_AI_USAGE = {
    "convention": "classification_only",
    "arbitration_rules": "flagging",
    "expedited_arbitration": "flagging",
}


def derive_flags(document_type: str, mandatory: bool, parameter_tag: Optional[str] = None) -> dict:
    if document_type not in HIERARCHY_LEVELS:
        raise ValueError(f"Unknown document type: {document_type}")
    non_derogable = document_type == "convention" or (
        bool(mandatory) and parameter_tag in NON_DEROGABLE_TAGS
    )
    return {
        "hierarchy_level": HIERARCHY_LEVELS[document_type],
        "non_derogable": non_derogable,
        "annulment_linked": parameter_tag in ANNULMENT_LINKED_TAGS,
    }


def build_rows(org_id: str, institution: str, version: str, document_type: str,
               items: Iterable[dict]) -> List[dict]:
    rows = []
    for item in items or []:
        mandatory = bool(item.get("mandatory", False))
        tag = item.get("parameter_tag")
        extra = {"source": f"{institution} {document_type.replace('_', ' ').title()}"}
        if item.get("raw_scope") is not None:
            extra["raw_scope"] = item["raw_scope"]
        rows.append({
            "org_id": org_id,
            "institution": institution,
            "version": version,
            "document_type": document_type,
            "ref": item["ref"],
            "title": item.get("title"),
            "summary": item.get("summary"),
            "mandatory": mandatory,
            "parameter_tag": tag,
            "ai_usage": item.get("ai_usage") or DEFAULT_AI_USAGE[document_type],
            "extra_data": extra,
            **derive_flags(document_type, mandatory, tag),
        })
    return rows


def seed_rules(session_factory: sessionmaker, org_id: str, data: dict) -> dict:
    """
    Insert the rules in ``data`` for ``org_id`` unless the tenant already has rules
    for that institution.

    Returns:
        {"status": "already_initialized"} or {"status": "initialized", "count": n}
    """
    institution = data.get("institution", "ICSID")
    version = str(data.get("version", "2022"))

    rows: List[dict] = []
    for document_type in HIERARCHY_LEVELS:
        rows.extend(build_rows(org_id, institution, version, document_type, data.get(document_type)))

    with session_scope(session_factory) as db:
        existing = db.execute(
            select(InstitutionRuleRecord.id).where(
                InstitutionRuleRecord.org_id == org_id,
                InstitutionRuleRecord.institution == institution,
            )
        ).first()
        if existing:
            return {"status": "already_initialized"}
        db.add_all([InstitutionRuleRecord(**row) for row in rows])

    logger.info("Seeded %d %s rules for org=%s", len(rows), institution, org_id)
    return {"status": "initialized", "count": len(rows)}


def load_rules_yaml(path: Path) -> dict:
    return yaml.safe_load(path.read_text(encoding="utf-8")) or {}


def main():
    parser = argparse.ArgumentParser(description="Seed institution rules for a tenant")
    parser.add_argument("--org", required=True, help="Tenant / organization id")
    parser.add_argument("--file", required=True, type=Path, help="YAML rules file")
    args = parser.parse_args()

    from telemetry import go_quiet
    go_quiet()

    init_db()
    result = seed_rules(get_session_factory(), args.org, load_rules_yaml(args.file))
    print(f"[seed] {result}")


if __name__ == "__main__":
    main()
