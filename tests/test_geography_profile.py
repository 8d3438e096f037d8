"""
Tests for efiling/services/geography_profile.py.

Covers:
  - profile lookup by e-filing profile id and by system user id
  - inactive profiles never resolve
  - zone ids come from the role's location assignments
  - global role codes read from config or injected
  - department type fallback chain
"""

from efiling.models import db
from efiling.models.geography import District, Division, Town, Zone
from efiling.models.organization import (
    EfilingDepartment,
    EfilingRole,
    EfilingRoleLocation,
    EfilingUser,
    User,
)
from efiling.services.geography_profile import RoleGeographyProfile, UserGeography


# ── Test helpers ─────────────────────────────────────────────────────────────


def _make_department(*, name="Water", department_type="district"):
    dept = EfilingDepartment(name=name, department_type=department_type)
    db.session.add(dept)
    db.session.flush()
    return dept


def _make_role(code, *, name=None):
    role = EfilingRole(code=code, name=name or code.title())
    db.session.add(role)
    db.session.flush()
    return role


def _make_profile(name, role=None, department=None, *, district=None, town=None, division=None, is_active=True):
    user = User(name=name, email=f"{name.lower().replace(' ', '.')}@example.org")
    db.session.add(user)
    db.session.flush()
    profile = EfilingUser(
        user_id=user.id,
        efiling_role_id=role.id if role else None,
        department_id=department.id if department else None,
        district_id=district.id if district else None,
        town_id=town.id if town else None,
        division_id=division.id if division else None,
        is_active=is_active,
    )
    db.session.add(profile)
    db.session.flush()
    return profile


class TestForEfilingUser:
    def test_resolves_role_department_and_location(self):
        district = District(title="Central")
        db.session.add(district)
        db.session.flush()
        town = Town(town="Saddar", district_id=district.id)
        division = Division(name="North Water")
        db.session.add_all([town, division])
        db.session.flush()
        dept = _make_department(department_type="Division")
        role = _make_role("wat_xen_saf")
        profile = _make_profile("Asma Khan", role, dept, district=district, town=town, division=division)
        db.session.commit()

        geo = RoleGeographyProfile.for_efiling_user(profile.id)

        assert isinstance(geo, UserGeography)
        assert geo.efiling_user_id == profile.id
        assert geo.role_code == "WAT_XEN_SAF"
        assert geo.department_type == "division"
        assert geo.location() == {
            "district_id": district.id,
            "town_id": town.id,
            "division_id": division.id,
        }
        assert geo.zone_ids == ()

    def test_inactive_profile_does_not_resolve(self):
        profile = _make_profile("Retired", _make_role("SE_CEN"), is_active=False)
        db.session.commit()
        assert RoleGeographyProfile.for_efiling_user(profile.id) is None

    def test_missing_profile(self):
        assert RoleGeographyProfile.for_efiling_user(999) is None

    def test_profile_without_role(self):
        profile = _make_profile("No Role")
        db.session.commit()
        geo = RoleGeographyProfile.for_efiling_user(profile.id)
        assert geo.role_code == ""
        assert geo.role_id is None

    def test_zone_ids_from_role_locations(self):
        role = _make_role("ZONE_OFFICER")
        zones = [Zone(name="Z1"), Zone(name="Z2")]
        db.session.add_all(zones)
        db.session.flush()
        district = District(title="East")
        db.session.add(district)
        db.session.flush()
        db.session.add_all([
            EfilingRoleLocation(role_id=role.id, zone_id=zones[1].id),
            EfilingRoleLocation(role_id=role.id, zone_id=zones[0].id),
            EfilingRoleLocation(role_id=role.id, district_id=district.id),
        ])
        profile = _make_profile("Zone Person", role)
        db.session.commit()

        geo = RoleGeographyProfile.for_efiling_user(profile.id)
        assert geo.zone_ids == (zones[0].id, zones[1].id)
        assert geo.to_dict()["zone_ids"] == [zones[0].id, zones[1].id]


class TestForSystemUser:
    def test_resolves_by_user_id(self):
        profile = _make_profile("Bilal", _make_role("CE_WAT"))
        db.session.commit()
        geo = RoleGeographyProfile.for_system_user(profile.user_id)
        assert geo.efiling_user_id == profile.id
        assert geo.role_code == "CE_WAT"

    def test_no_active_profile(self):
        profile = _make_profile("Gone", _make_role("CE_SEW"), is_active=False)
        db.session.commit()
        assert RoleGeographyProfile.for_system_user(profile.user_id) is None

    def test_empty_user_id(self):
        assert RoleGeographyProfile.for_system_user(None) is None
        assert RoleGeographyProfile.for_system_user(0) is None


class TestGlobalRoleCodes:
    def test_config_default(self):
        assert RoleGeographyProfile.global_role_codes() == frozenset({"CEO", "COO"})

    def test_is_global_role_code(self):
        assert RoleGeographyProfile.is_global_role_code("ceo") is True
        assert RoleGeographyProfile.is_global_role_code("COO") is True
        assert RoleGeographyProfile.is_global_role_code("XEN") is False
        assert RoleGeographyProfile.is_global_role_code(None) is False
        assert RoleGeographyProfile.is_global_role_code("") is False

    def test_injected_set_overrides_config(self):
        assert RoleGeographyProfile.is_global_role_code("MD", {"md"}) is True
        assert RoleGeographyProfile.is_global_role_code("CEO", {"MD"}) is False

    def test_config_override(self, app):
        original = app.config["EFILING_GLOBAL_ROLE_CODES"]
        app.config["EFILING_GLOBAL_ROLE_CODES"] = frozenset({"DG"})
        try:
            assert RoleGeographyProfile.is_global_role_code("DG") is True
            assert RoleGeographyProfile.is_global_role_code("CEO") is False
        finally:
            app.config["EFILING_GLOBAL_ROLE_CODES"] = original


class TestDepartmentType:
    def test_primary_department(self):
        dept = _make_department(department_type="town")
        db.session.commit()
        assert RoleGeographyProfile.department_type(dept.id) == "town"

    def test_fallback_department(self):
        dept = _make_department(department_type="global")
        db.session.commit()
        assert RoleGeographyProfile.department_type(None, dept.id) == "global"

    def test_default_when_unknown(self):
        assert RoleGeographyProfile.department_type(None, None) == "district"
        assert RoleGeographyProfile.department_type(12345) == "district"
