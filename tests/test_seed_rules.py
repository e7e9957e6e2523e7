# -*- coding: utf-8 -*-
import pytest
from sqlalchemy import func, select

from models_rule import InstitutionRuleRecord
from seed_rules import build_rows, derive_flags, load_rules_yaml, seed_rules


class TestDeriveFlags:
    def test_convention_is_always_non_derogable(self):
        flags = derive_flags("convention", mandatory=False)
        assert flags == {"hierarchy_level": 1, "non_derogable": True, "annulment_linked": False}

    def test_mandatory_rule_with_protected_tag(self):
        flags = derive_flags("arbitration_rules", mandatory=True, parameter_tag="procedural_discretion")
        assert flags["hierarchy_level"] == 2
        assert flags["non_derogable"] is True
        assert flags["annulment_linked"] is True

    def test_optional_rule_with_protected_tag_stays_derogable(self):
        flags = derive_flags("arbitration_rules", mandatory=False, parameter_tag="rule_hierarchy")
        assert flags["non_derogable"] is False

    def test_annulment_link_without_non_derogability(self):
        flags = derive_flags("expedited_arbitration", mandatory=True, parameter_tag="award_timeline")
        assert flags == {"hierarchy_level": 3, "non_derogable": False, "annulment_linked": True}

    def test_unknown_document_type(self):
        with pytest.raises(ValueError):
            derive_flags("treaty", mandatory=True)


def test_build_rows_fills_defaults():
    rows = build_rows("org_1", "ICSID", "2022", "convention",
                      [{"ref": "Art. 25", "mandatory": True, "raw_scope": "jurisdiction"}])
    assert len(rows) == 1
    row = rows[0]
    assert row["ai_usage"] == "classification_only"
    assert row["extra_data"] == {"source": "ICSID Convention", "raw_scope": "jurisdiction"}
    assert row["hierarchy_level"] == 1


def test_seed_is_idempotent_per_tenant(session_factory):
    data = {"convention": [{"ref": "Art. 25", "mandatory": True}],
            "arbitration_rules": [{"ref": "Rule 1", "mandatory": False}]}

    first = seed_rules(session_factory, "org_1", data)
    second = seed_rules(session_factory, "org_1", data)

    assert first == {"status": "initialized", "count": 2}
    assert second == {"status": "already_initialized"}
    with session_factory() as db:
        count = db.execute(select(func.count()).select_from(InstitutionRuleRecord)).scalar_one()
    assert count == 2


def test_load_rules_yaml(tmp_path):
    path = tmp_path / "icsid.yml"
    path.write_text("institution: ICSID\nconvention:\n  - ref: Art. 25\n    mandatory: true\n", encoding="utf-8")
    data = load_rules_yaml(path)
    assert data["convention"][0]["ref"] == "Art. 25"
