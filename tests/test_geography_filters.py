"""
Tests for efiling/services/geography_filters.py.

Scenarios covered:
  1. build_filters cascade, executed against real tables
  2. record_matches in-memory checks
  3. resolve_scope opt-in, authentication and profile gates (JWT + custom)
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from flask import request
from sqlalchemy import select

from efiling.core.exceptions import ForbiddenError, UnauthorizedError
from efiling.models import db
from efiling.models.geography import District, Division, Town, Zone
from efiling.models.organization import EfilingRole, EfilingRoleLocation, EfilingUser, User
from efiling.services.authenticator import CallerIdentity, JWTAuthenticator
from efiling.services.geography_filters import GeographyColumns, GeographyFilterBuilder
from efiling.services.geography_profile import UserGeography
from efiling.services.jwt_service import generate_access_token

USER_COLUMNS = GeographyColumns(
    division=EfilingUser.division_id,
    town=EfilingUser.town_id,
    district=EfilingUser.district_id,
)


# ── Test helpers ─────────────────────────────────────────────────────────────


def _geo(**fields):
    base = dict(
        efiling_user_id=1, user_id=1, role_id=None, role_code="X",
        department_id=None, department_type="district",
    )
    base.update(fields)
    return UserGeography(**base)


def _make_user(name):
    user = User(name=name, email=f"{name.lower()}@example.org")
    db.session.add(user)
    db.session.flush()
    return user


def _make_profile(name, *, district=None, town=None, division=None, role=None):
    user = _make_user(name)
    profile = EfilingUser(
        user_id=user.id,
        efiling_role_id=role.id if role else None,
        district_id=district.id if district else None,
        town_id=town.id if town else None,
        division_id=division.id if division else None,
    )
    db.session.add(profile)
    db.session.flush()
    return profile


def _listed(geography, columns=USER_COLUMNS):
    stmt = GeographyFilterBuilder.apply_filters(select(EfilingUser.id), geography, columns)
    return sorted(db.session.execute(stmt).scalars())


@pytest.fixture()
def places():
    d1, d2 = District(title="Central"), District(title="East")
    v1 = Division(name="North")
    db.session.add_all([d1, d2, v1])
    db.session.flush()
    t1 = Town(town="Saddar", district_id=d1.id)
    db.session.add(t1)
    db.session.flush()
    profiles = {
        "d1": _make_profile("InD1", district=d1),
        "d2": _make_profile("InD2", district=d2),
        "t1": _make_profile("InT1", district=d1, town=t1),
        "v1": _make_profile("InV1", district=d2, division=v1),
    }
    db.session.commit()
    return d1, d2, t1, v1, profiles


# ═════════════════════════════════════════════════════════════════════════
# build_filters / apply_filters
# ═════════════════════════════════════════════════════════════════════════


class TestBuildFilters:
    def test_none_geography(self):
        assert GeographyFilterBuilder.build_filters(None, USER_COLUMNS) is None

    def test_no_applicable_fields(self):
        assert GeographyFilterBuilder.build_filters(_geo(), USER_COLUMNS) is None

    def test_district_only(self, places):
        d1, _, _, _, p = places
        assert _listed(_geo(district_id=d1.id)) == sorted([p["d1"].id, p["t1"].id])

    def test_town_suppresses_district(self, places):
        d1, _, t1, _, p = places
        assert _listed(_geo(district_id=d1.id, town_id=t1.id)) == [p["t1"].id]

    def test_division_suppresses_town_and_district(self, places):
        d1, _, t1, v1, p = places
        assert _listed(_geo(district_id=d1.id, town_id=t1.id, division_id=v1.id)) == [p["v1"].id]

    def test_missing_column_skips_branch(self, places):
        d1, _, _, _, _ = places
        columns = GeographyColumns(division=EfilingUser.division_id)
        assert GeographyFilterBuilder.build_filters(_geo(district_id=d1.id), columns) is None

    def test_zone_and_division_are_ored(self):
        zones = [Zone(name="Z1"), Zone(name="Z2"), Zone(name="Z3")]
        division = Division(name="South")
        db.session.add_all(zones + [division])
        role = EfilingRole(code="ANY", name="Any")
        db.session.add(role)
        db.session.flush()
        rows = [
            EfilingRoleLocation(role_id=role.id, zone_id=zones[0].id),
            EfilingRoleLocation(role_id=role.id, zone_id=zones[2].id),
            EfilingRoleLocation(role_id=role.id, division_id=division.id),
            EfilingRoleLocation(role_id=role.id, zone_id=zones[1].id),
        ]
        db.session.add_all(rows)
        db.session.commit()

        columns = GeographyColumns(zone=EfilingRoleLocation.zone_id, division=EfilingRoleLocation.division_id)
        geography = _geo(zone_ids=(zones[0].id, zones[2].id), division_id=division.id)
        stmt = GeographyFilterBuilder.apply_filters(select(EfilingRoleLocation.id), geography, columns)
        assert sorted(db.session.execute(stmt).scalars()) == sorted([rows[0].id, rows[1].id, rows[2].id])

    def test_accepts_mapping(self, places):
        d1, _, _, _, p = places
        assert _listed({"district_id": d1.id, "zone_ids": []}) == sorted([p["d1"].id, p["t1"].id])

    def test_apply_without_filter_returns_statement(self):
        stmt = select(EfilingUser.id)
        assert GeographyFilterBuilder.apply_filters(stmt, None, USER_COLUMNS) is stmt


# ═════════════════════════════════════════════════════════════════════════
# record_matches
# ═════════════════════════════════════════════════════════════════════════


class TestRecordMatches:
    def test_no_geography_matches_everything(self):
        assert GeographyFilterBuilder.record_matches({"district_id": 1}, None) is True

    def test_division(self):
        assert GeographyFilterBuilder.record_matches({"division_id": 4}, _geo(division_id=4))
        assert not GeographyFilterBuilder.record_matches({"division_id": 5}, _geo(division_id=4))

    def test_town(self):
        assert GeographyFilterBuilder.record_matches({"town_id": 8}, _geo(town_id=8))

    def test_zone_membership(self):
        geo = _geo(zone_ids=(1, 2))
        assert GeographyFilterBuilder.record_matches({"zone_id": 2}, geo)
        assert not GeographyFilterBuilder.record_matches({"zone_id": 3}, geo)

    def test_district_only_without_town(self):
        assert GeographyFilterBuilder.record_matches({"district_id": 7}, _geo(district_id=7))
        assert not GeographyFilterBuilder.record_matches({"district_id": 7}, _geo(district_id=7, town_id=1))

    def test_town_district_id_preferred(self):
        record = {"town_district_id": 7, "district_id": 9}
        assert GeographyFilterBuilder.record_matches(record, _geo(district_id=7))

    def test_get_district_callable(self):
        record = {"meta": {"district": 3}}
        assert GeographyFilterBuilder.record_matches(
            record, _geo(district_id=3), get_district=lambda r: r["meta"]["district"],
        )


# ═════════════════════════════════════════════════════════════════════════
# resolve_scope
# ═════════════════════════════════════════════════════════════════════════


class _StaticAuthenticator:
    def __init__(self, identity):
        self.identity = identity

    def authenticate(self, req):
        return self.identity


def _bearer(user_id):
    return {"Authorization": f"Bearer {generate_access_token(user_id, ['efiling'])}"}


class TestResolveScope:
    def test_not_requested(self, app):
        with app.test_request_context("/files"):
            assert GeographyFilterBuilder.resolve_scope(request).apply is False

    @pytest.mark.parametrize("query", ["efiling=false", "efiling=", "other=true", "efilingScoped=yes"])
    def test_other_values_do_not_opt_in(self, app, query):
        with app.test_request_context(f"/files?{query}"):
            assert GeographyFilterBuilder.resolve_scope(request).apply is False

    def test_unauthenticated(self, app):
        with app.test_request_context("/files?efiling=true"):
            with pytest.raises(UnauthorizedError):
                GeographyFilterBuilder.resolve_scope(request)

    def test_invalid_token(self, app):
        with app.test_request_context("/files?efiling=1", headers={"Authorization": "Bearer not-a-token"}):
            with pytest.raises(UnauthorizedError):
                GeographyFilterBuilder.resolve_scope(request)

    def test_no_profile_forbidden(self, app):
        user = _make_user("Visitor")
        db.session.commit()
        with app.test_request_context("/files?efilingScoped=1", headers=_bearer(user.id)):
            with pytest.raises(ForbiddenError):
                GeographyFilterBuilder.resolve_scope(request)

    def test_scoped_user(self, app):
        district = District(title="Central")
        db.session.add(district)
        db.session.flush()
        role = EfilingRole(code="WAT_XEN", name="XEN")
        db.session.add(role)
        db.session.flush()
        profile = _make_profile("Scoped", district=district, role=role)
        db.session.commit()

        with app.test_request_context("/files?efiling=efiling", headers=_bearer(profile.user_id)):
            scope = GeographyFilterBuilder.resolve_scope(request)

        assert scope.apply is True
        assert scope.is_global is False
        assert scope.geography.district_id == district.id
        assert scope.geography.efiling_user_id == profile.id

    def test_global_user(self, app):
        role = EfilingRole(code="COO", name="Chief Operating Officer")
        db.session.add(role)
        db.session.flush()
        profile = _make_profile("Boss", role=role)
        db.session.commit()

        with app.test_request_context("/files?efiling=true"):
            scope = GeographyFilterBuilder.resolve_scope(
                request, authenticator=_StaticAuthenticator(CallerIdentity(user_id=profile.user_id)),
            )
        assert scope.is_global is True

    def test_custom_scope_keys(self, app):
        with app.test_request_context("/files?mine=1"):
            with pytest.raises(UnauthorizedError):
                GeographyFilterBuilder.resolve_scope(
                    request, authenticator=_StaticAuthenticator(None), scope_keys=("mine",),
                )


class TestJWTAuthenticator:
    def test_valid_token(self, app):
        with app.test_request_context("/", headers=_bearer(42)):
            identity = JWTAuthenticator().authenticate(request)
        assert identity == CallerIdentity(user_id=42, role_claims=("efiling",))

    def test_missing_header(self, app):
        with app.test_request_context("/"):
            assert JWTAuthenticator().authenticate(request) is None

    def test_expired_token(self, app):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "42", "type": "access", "iat": now - timedelta(hours=2), "exp": now - timedelta(hours=1)},
            app.config["JWT_SECRET_KEY"],
            algorithm="HS256",
        )
        with app.test_request_context("/", headers={"Authorization": f"Bearer {token}"}):
            assert JWTAuthenticator().authenticate(request) is None

    def test_wrong_token_type(self, app):
        token = jwt.encode({"sub": "42", "type": "refresh"}, app.config["JWT_SECRET_KEY"], algorithm="HS256")
        with app.test_request_context("/", headers={"Authorization": f"Bearer {token}"}):
            assert JWTAuthenticator().authenticate(request) is None
