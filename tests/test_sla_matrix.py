"""
Tests for efiling/services/sla_matrix.py — SLA rule maintenance.
"""

import pytest

from efiling.core.exceptions import ConflictError, NotFoundError, ValidationError
from efiling.models import db
from efiling.models.organization import EfilingDepartment
from efiling.models.sla import SLARule
from efiling.services.sla_matrix import SLARuleMatrix


def _rule(**overrides):
    data = {"from_role_code": "wat_xen_*", "to_role_code": "se_cen", "sla_hours": 48}
    data.update(overrides)
    return data


class TestCreateRule:
    def test_create_normalises_codes(self):
        rule = SLARuleMatrix.create_rule(_rule())
        assert rule["id"] is not None
        assert rule["from_role_code"] == "WAT_XEN_*"
        assert rule["to_role_code"] == "SE_CEN"
        assert rule["level_scope"] == "district"
        assert rule["sla_hours"] == 48
        assert rule["is_active"] is True

    def test_defaults(self):
        rule = SLARuleMatrix.create_rule({"from_role_code": "A", "to_role_code": "B"})
        assert rule["sla_hours"] == 24
        assert rule["level_scope"] == "district"

    def test_codes_required(self):
        with pytest.raises(ValidationError) as exc:
            SLARuleMatrix.create_rule({"from_role_code": "  ", "sla_hours": 5})
        assert set(exc.value.details) == {"from_role_code", "to_role_code"}

    @pytest.mark.parametrize("hours", [-1, "12", None, True, 1.5])
    def test_bad_hours(self, hours):
        with pytest.raises(ValidationError):
            SLARuleMatrix.create_rule(_rule(sla_hours=hours))

    def test_zero_hours_allowed(self):
        assert SLARuleMatrix.create_rule(_rule(sla_hours=0))["sla_hours"] == 0

    def test_bad_scope(self):
        with pytest.raises(ValidationError):
            SLARuleMatrix.create_rule(_rule(level_scope="province"))

    def test_scope_case_insensitive(self):
        assert SLARuleMatrix.create_rule(_rule(level_scope="Division"))["level_scope"] == "division"

    def test_duplicate_active_rule_conflicts(self):
        SLARuleMatrix.create_rule(_rule())
        with pytest.raises(ConflictError):
            SLARuleMatrix.create_rule(_rule(sla_hours=12))
        assert db.session.query(SLARule).count() == 1

    def test_same_pair_different_scope_allowed(self):
        SLARuleMatrix.create_rule(_rule())
        SLARuleMatrix.create_rule(_rule(level_scope="division"))
        assert len(SLARuleMatrix.active_rules()) == 2


class TestUpdateAndDeactivate:
    def test_partial_update(self):
        rule = SLARuleMatrix.create_rule(_rule(description="XEN to SE"))
        updated = SLARuleMatrix.update_rule(rule["id"], {"sla_hours": 72, "level_scope": "town"})
        assert updated["sla_hours"] == 72
        assert updated["level_scope"] == "town"
        assert updated["description"] == "XEN to SE"
        assert updated["from_role_code"] == "WAT_XEN_*"

    def test_update_rejects_empty_code(self):
        rule = SLARuleMatrix.create_rule(_rule())
        with pytest.raises(ValidationError):
            SLARuleMatrix.update_rule(rule["id"], {"to_role_code": ""})
        assert db.session.get(SLARule, rule["id"]).to_role_code == "SE_CEN"

    def test_update_into_duplicate_conflicts(self):
        SLARuleMatrix.create_rule(_rule())
        other = SLARuleMatrix.create_rule(_rule(to_role_code="CE_WAT"))
        with pytest.raises(ConflictError):
            SLARuleMatrix.update_rule(other["id"], {"to_role_code": "se_cen"})

    def test_update_missing(self):
        with pytest.raises(NotFoundError):
            SLARuleMatrix.update_rule(404, {"sla_hours": 1})

    def test_deactivate(self):
        rule = SLARuleMatrix.create_rule(_rule())
        result = SLARuleMatrix.deactivate_rule(rule["id"])
        assert result["is_active"] is False
        assert SLARuleMatrix.active_rules() == []
        # Deactivated rules no longer block a fresh one.
        SLARuleMatrix.create_rule(_rule())

    def test_deactivate_missing(self):
        with pytest.raises(NotFoundError):
            SLARuleMatrix.deactivate_rule(404)


class TestListRules:
    def test_active_rules_in_id_order(self):
        first = SLARuleMatrix.create_rule(_rule(from_role_code="Z"))
        second = SLARuleMatrix.create_rule(_rule(from_role_code="A"))
        assert [r.id for r in SLARuleMatrix.active_rules()] == [first["id"], second["id"]]

    def test_filters(self):
        SLARuleMatrix.create_rule(_rule())
        SLARuleMatrix.create_rule(_rule(from_role_code="CE_*", to_role_code="CEO"))
        inactive = SLARuleMatrix.create_rule(_rule(to_role_code="XEN"))
        SLARuleMatrix.deactivate_rule(inactive["id"])

        assert len(SLARuleMatrix.list_rules()) == 2
        assert len(SLARuleMatrix.list_rules(active_only=False)) == 3
        assert [r["to_role_code"] for r in SLARuleMatrix.list_rules(to_role_code="ceo")] == ["CEO"]
        assert [r["from_role_code"] for r in SLARuleMatrix.list_rules(from_role_code="ce_*")] == ["CE_*"]

    def test_department_filter_includes_unscoped_rules(self):
        water = EfilingDepartment(name="Water", department_type="district")
        sewer = EfilingDepartment(name="Sewer", department_type="district")
        db.session.add_all([water, sewer])
        db.session.commit()
        SLARuleMatrix.create_rule(_rule(department_id=water.id))
        SLARuleMatrix.create_rule(_rule(department_id=sewer.id))
        SLARuleMatrix.create_rule(_rule())

        rules = SLARuleMatrix.list_rules(department_id=water.id)
        assert sorted(r["department_id"] or 0 for r in rules) == [0, water.id]
