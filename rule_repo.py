# rule_repo.py
"""
Tenant-scoped institution rule access.

Rules are read-only after seeding, so a short per-tenant cache is enough:
an entry is served until its TTL expires and is never invalidated by writes.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from models_rule import InstitutionRuleRecord
from settings import settings

logger = logging.getLogger("procedo.rules")


@dataclass(frozen=True)
class InstitutionRule:
    org_id: str
    institution: str
    version: str
    document_type: str
    ref: str
    mandatory: bool
    non_derogable: bool
    annulment_linked: bool
    hierarchy_level: int
    title: Optional[str] = None
    summary: Optional[str] = None
    parameter_tag: Optional[str] = None
    ai_usage: Optional[str] = None
    extra_data: dict = field(default_factory=dict, compare=False, hash=False)

    def to_prompt_dict(self) -> dict:
        return {
            "ref": self.ref,
            "title": self.title or self.summary or "",
            "document_type": self.document_type,
            "hierarchy_level": self.hierarchy_level,
            "mandatory": self.mandatory,
            "non_derogable": self.non_derogable,
            "annulment_linked": self.annulment_linked,
        }


def _to_rule(r: InstitutionRuleRecord) -> InstitutionRule:
    return InstitutionRule(
        org_id=r.org_id,
        institution=r.institution,
        version=r.version,
        document_type=r.document_type,
        ref=r.ref,
        mandatory=bool(r.mandatory),
        non_derogable=bool(r.non_derogable),
        annulment_linked=bool(r.annulment_linked),
        hierarchy_level=r.hierarchy_level,
        title=r.title,
        summary=r.summary,
        parameter_tag=r.parameter_tag,
        ai_usage=r.ai_usage,
        extra_data=dict(r.extra_data or {}),
    )


class SqlRuleSource:
    """Reads institution rules for one tenant, highest authority first."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def fetch(self, org_id: str) -> List[InstitutionRule]:
        q = (
            select(InstitutionRuleRecord)
            .where(InstitutionRuleRecord.org_id == org_id)
            .order_by(InstitutionRuleRecord.hierarchy_level, InstitutionRuleRecord.ref)
        )
        with self.session_factory() as db:
            rows = db.execute(q).scalars().all()
            return [_to_rule(r) for r in rows]


class RuleCache:
    def __init__(self, ttl_seconds: float = None, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = settings.RULE_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self.clock = clock
        self._entries: Dict[str, Tuple[float, Tuple[InstitutionRule, ...]]] = {}

    def get(self, org_id: str) -> Optional[List[InstitutionRule]]:
        entry = self._entries.get(org_id)
        if entry is None:
            return None
        stored_at, rules = entry
        if self.clock() - stored_at >= self.ttl_seconds:
            return None
        return list(rules)

    def put(self, org_id: str, rules: List[InstitutionRule]) -> None:
        self._entries[org_id] = (self.clock(), tuple(rules))


class RuleRepository:
    def __init__(self, source, cache: Optional[RuleCache] = None):
        self.source = source
        self.cache = cache or RuleCache()

    async def get_rules(self, org_id: str, use_cache: bool = True) -> List[InstitutionRule]:
        """
        Return the tenant's rules ordered by hierarchy level (1 first).

        Args:
            org_id: Tenant id
            use_cache: When False, skip the cached snapshot (the fetch still refreshes it)

        Returns:
            List of InstitutionRule; empty when the tenant has no rules
        """
        if use_cache:
            cached = self.cache.get(org_id)
            if cached is not None:
                return cached

        rules = await asyncio.to_thread(self.source.fetch, org_id)
        rules = sorted(rules, key=lambda r: r.hierarchy_level)
        self.cache.put(org_id, rules)
        logger.debug("Loaded %d rules for org=%s", len(rules), org_id)
        return list(rules)
