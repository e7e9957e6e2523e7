# -*- coding: utf-8 -*-
"""Rule cache, rule repository and the SQL rule source."""

import pytest

from conftest import FakeClock, FakeRuleSource
from rule_repo import InstitutionRule, RuleCache, RuleRepository, SqlRuleSource
from seed_rules import seed_rules


def _rule(ref: str, level: int, org_id: str = "org_1") -> InstitutionRule:
    doc_type = {1: "convention", 2: "arbitration_rules", 3: "expedited_arbitration"}[level]
    return InstitutionRule(
        org_id=org_id, institution="ICSID", version="2022", document_type=doc_type,
        ref=ref, mandatory=True, non_derogable=level == 1, annulment_linked=False,
        hierarchy_level=level, title=f"Rule {ref}",
    )


class TestRuleCache:
    def test_hit_within_ttl(self):
        clock = FakeClock()
        cache = RuleCache(ttl_seconds=300, clock=clock)
        cache.put("org_1", [_rule("Art. 1", 1)])
        clock.advance(299)
        assert [r.ref for r in cache.get("org_1")] == ["Art. 1"]

    def test_expires_at_ttl(self):
        clock = FakeClock()
        cache = RuleCache(ttl_seconds=300, clock=clock)
        cache.put("org_1", [_rule("Art. 1", 1)])
        clock.advance(300)
        assert cache.get("org_1") is None

    def test_miss_for_unknown_tenant(self):
        assert RuleCache(ttl_seconds=300, clock=FakeClock()).get("nobody") is None

    def test_returned_list_is_a_copy(self):
        cache = RuleCache(ttl_seconds=300, clock=FakeClock())
        cache.put("org_1", [_rule("Art. 1", 1)])
        cache.get("org_1").clear()
        assert len(cache.get("org_1")) == 1


@pytest.mark.asyncio
class TestRuleRepository:
    async def test_orders_by_hierarchy_level(self):
        source = FakeRuleSource([_rule("R-3", 3), _rule("Art. 25", 1), _rule("R-1", 2), _rule("Art. 26", 1)])
        repo = RuleRepository(source, RuleCache(ttl_seconds=300, clock=FakeClock()))
        rules = await repo.get_rules("org_1")
        assert [r.hierarchy_level for r in rules] == [1, 1, 2, 3]
        # stable within a level
        assert [r.ref for r in rules[:2]] == ["Art. 25", "Art. 26"]

    async def test_second_call_is_served_from_cache(self):
        source = FakeRuleSource([_rule("Art. 1", 1)])
        repo = RuleRepository(source, RuleCache(ttl_seconds=300, clock=FakeClock()))
        await repo.get_rules("org_1")
        await repo.get_rules("org_1")
        assert source.fetches == 1

    async def test_refetches_after_expiry(self):
        clock = FakeClock()
        source = FakeRuleSource([_rule("Art. 1", 1)])
        repo = RuleRepository(source, RuleCache(ttl_seconds=300, clock=clock))
        await repo.get_rules("org_1")
        clock.advance(301)
        await repo.get_rules("org_1")
        assert source.fetches == 2

    async def test_bypass_cache(self):
        source = FakeRuleSource([_rule("Art. 1", 1)])
        repo = RuleRepository(source, RuleCache(ttl_seconds=300, clock=FakeClock()))
        await repo.get_rules("org_1")
        await repo.get_rules("org_1", use_cache=False)
        assert source.fetches == 2

    async def test_empty_tenant_returns_empty_list(self):
        repo = RuleRepository(FakeRuleSource([_rule("Art. 1", 1)]), RuleCache(ttl_seconds=300, clock=FakeClock()))
        assert await repo.get_rules("org_2") == []

    async def test_source_errors_propagate(self):
        repo = RuleRepository(FakeRuleSource(error=RuntimeError("db down")),
                              RuleCache(ttl_seconds=300, clock=FakeClock()))
        with pytest.raises(RuntimeError):
            await repo.get_rules("org_1")


def test_sql_source_reads_tenant_rules_in_order(session_factory):
    seed_rules(session_factory, "org_1", {
        "institution": "ICSID",
        "version": "2022",
        "arbitration_rules": [{"ref": "Rule 13", "mandatory": True}],
        "convention": [{"ref": "Art. 48", "mandatory": True, "parameter_tag": "tribunal_decision_method"}],
    })
    seed_rules(session_factory, "org_2", {"convention": [{"ref": "Art. 1", "mandatory": True}]})

    rules = SqlRuleSource(session_factory).fetch("org_1")

    assert [(r.ref, r.hierarchy_level) for r in rules] == [("Art. 48", 1), ("Rule 13", 2)]
    assert rules[0].non_derogable and rules[0].annulment_linked
    assert all(r.org_id == "org_1" for r in rules)
