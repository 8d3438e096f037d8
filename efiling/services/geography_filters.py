"""
Geography scoping for listing queries outside the routing decision.

Callers opt in per request (``?efiling=true`` / ``?efilingScoped=1``), then
narrow their own ``select()`` with the caller's jurisdiction:

    scope = GeographyFilterBuilder.resolve_scope(request)
    if scope.apply and not scope.is_global:
        stmt = GeographyFilterBuilder.apply_filters(
            stmt, scope.geography,
            GeographyColumns(zone=Complaint.zone_id, division=Complaint.division_id,
                             town=Complaint.town_id, district=Complaint.district_id),
        )

Filter cascade (branches that apply are OR-ed together):
  1. zone membership, when the role has zones assigned
  2. division equality, when a division is set
  3. town equality, only without a division
  4. district equality, only without a division or town
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from flask import current_app
from sqlalchemy import or_

from efiling.core.exceptions import ForbiddenError, UnauthorizedError
from efiling.services.authenticator import JWTAuthenticator
from efiling.services.geography_profile import RoleGeographyProfile, UserGeography

logger = logging.getLogger(__name__)

_OPT_IN_VALUES = ("true", "1", "efiling")


@dataclass(frozen=True)
class GeographyColumns:
    """Column expressions of the listed table; any may be None."""

    zone: object = None
    division: object = None
    town: object = None
    district: object = None


@dataclass(frozen=True)
class ScopeResolution:
    apply: bool
    is_global: bool = False
    geography: UserGeography | None = None


def _field(obj, key):
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def _zone_ids(geography) -> list[int]:
    return [int(z) for z in (_field(geography, "zone_ids") or ()) if z]


class GeographyFilterBuilder:
    """Stateless builder of geography predicates."""

    @staticmethod
    def build_filters(geography, columns: GeographyColumns):
        """OR-ed predicate for ``geography`` over ``columns``; None when nothing applies."""
        if geography is None:
            return None

        division_id = _field(geography, "division_id")
        town_id = _field(geography, "town_id")
        district_id = _field(geography, "district_id")
        zone_ids = _zone_ids(geography)

        segments = []
        if zone_ids and columns.zone is not None:
            segments.append(columns.zone.in_(zone_ids))
        if division_id and columns.division is not None:
            segments.append(columns.division == division_id)
        if not division_id and town_id and columns.town is not None:
            segments.append(columns.town == town_id)
        if not division_id and not town_id and district_id and columns.district is not None:
            segments.append(columns.district == district_id)

        if not segments:
            return None
        return or_(*segments)

    @staticmethod
    def apply_filters(stmt, geography, columns: GeographyColumns):
        """Add the geography predicate to ``stmt`` when one applies."""
        clause = GeographyFilterBuilder.build_filters(geography, columns)
        if clause is None:
            return stmt
        return stmt.where(clause)

    @staticmethod
    def record_matches(record, geography, get_district=None) -> bool:
        """In-memory counterpart of ``build_filters`` for a single record.

        District is only consulted when the geography has no town; it is read
        from ``get_district(record)``, then ``town_district_id``, then
        ``district_id``.
        """
        if geography is None:
            return True

        division_id = _field(geography, "division_id")
        town_id = _field(geography, "town_id")
        district_id = _field(geography, "district_id")
        zone_ids = _zone_ids(geography)

        record_division = _field(record, "division_id")
        if division_id and record_division and int(record_division) == int(division_id):
            return True

        record_town = _field(record, "town_id")
        if town_id and record_town and int(record_town) == int(town_id):
            return True

        record_zone = _field(record, "zone_id")
        if zone_ids and record_zone and int(record_zone) in zone_ids:
            return True

        if not town_id and district_id:
            derived = get_district(record) if callable(get_district) else None
            if derived is None:
                derived = _field(record, "town_district_id")
            if derived is None:
                derived = _field(record, "district_id")
            if derived and int(derived) == int(district_id):
                return True

        return False

    @staticmethod
    def resolve_scope(request, authenticator=None, scope_keys=None, global_role_codes=None) -> ScopeResolution:
        """Decide whether ``request`` opted into geography scoping, and for whom.

        Raises:
            UnauthorizedError: scoping requested without a verified caller.
            ForbiddenError: verified caller has no active e-filing profile.
        """
        keys = scope_keys or current_app.config.get("EFILING_SCOPE_KEYS", ("efiling", "efilingScoped"))
        if not any(request.args.get(key) in _OPT_IN_VALUES for key in keys):
            return ScopeResolution(apply=False)

        identity = (authenticator or JWTAuthenticator()).authenticate(request)
        if identity is None:
            raise UnauthorizedError("Unauthorized: e-filing user session required")

        geography = RoleGeographyProfile.for_system_user(identity.user_id)
        if geography is None:
            logger.info(
                "Scoping refused, user %s has no active e-filing profile", identity.user_id,
                extra={"operation": "resolve_scope"},
            )
            raise ForbiddenError("No active e-filing profile found for current user")

        return ScopeResolution(
            apply=True,
            is_global=RoleGeographyProfile.is_global_role_code(geography.role_code, global_role_codes),
            geography=geography,
        )
