"""
Role & geography profile resolution.

Turns a user id into the role code, department and jurisdiction the routing
and scoping services reason about. Two entry points:

  - ``for_efiling_user(efiling_user_id)`` — the sender of a file hand-off
  - ``for_system_user(user_id)``          — the caller an Authenticator vouched for

Only active profiles resolve. Nothing is cached: a role or posting change
takes effect on the next call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy import select

from efiling.models import db
from efiling.models.organization import (
    EfilingDepartment,
    EfilingRole,
    EfilingRoleLocation,
    EfilingUser,
)
from efiling.services.role_patterns import normalise_role_code

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserGeography:
    """Resolved role + jurisdiction of one e-filing profile."""

    efiling_user_id: int
    user_id: int
    role_id: int | None
    role_code: str
    department_id: int | None
    department_type: str | None
    district_id: int | None = None
    town_id: int | None = None
    division_id: int | None = None
    zone_ids: tuple[int, ...] = field(default_factory=tuple)

    def location(self) -> dict:
        return {
            "district_id": self.district_id,
            "town_id": self.town_id,
            "division_id": self.division_id,
        }

    def to_dict(self) -> dict:
        return {
            "efiling_user_id": self.efiling_user_id,
            "user_id": self.user_id,
            "role_id": self.role_id,
            "role_code": self.role_code,
            "department_id": self.department_id,
            "department_type": self.department_type,
            "district_id": self.district_id,
            "town_id": self.town_id,
            "division_id": self.division_id,
            "zone_ids": list(self.zone_ids),
        }


def _profile_query():
    return (
        select(
            EfilingUser.id,
            EfilingUser.user_id,
            EfilingUser.efiling_role_id,
            EfilingRole.code,
            EfilingUser.department_id,
            EfilingDepartment.department_type,
            EfilingUser.district_id,
            EfilingUser.town_id,
            EfilingUser.division_id,
        )
        .outerjoin(EfilingRole, EfilingUser.efiling_role_id == EfilingRole.id)
        .outerjoin(EfilingDepartment, EfilingUser.department_id == EfilingDepartment.id)
        .where(EfilingUser.is_active.is_(True))
    )


def _zone_ids_for_role(role_id: int | None) -> tuple[int, ...]:
    if role_id is None:
        return ()
    rows = db.session.execute(
        select(EfilingRoleLocation.zone_id)
        .where(
            EfilingRoleLocation.role_id == role_id,
            EfilingRoleLocation.zone_id.isnot(None),
        )
        .distinct()
        .order_by(EfilingRoleLocation.zone_id)
    ).scalars().all()
    return tuple(rows)


def _to_geography(row) -> UserGeography:
    (efiling_user_id, user_id, role_id, role_code, department_id,
     department_type, district_id, town_id, division_id) = row
    return UserGeography(
        efiling_user_id=efiling_user_id,
        user_id=user_id,
        role_id=role_id,
        role_code=normalise_role_code(role_code),
        department_id=department_id,
        department_type=(department_type or "").lower() or None,
        district_id=district_id,
        town_id=town_id,
        division_id=division_id,
        zone_ids=_zone_ids_for_role(role_id),
    )


class RoleGeographyProfile:
    """Stateless lookups of e-filing role/geography profiles."""

    @staticmethod
    def for_efiling_user(efiling_user_id: int) -> UserGeography | None:
        """Profile by ``efiling_users.id``; None if missing or inactive."""
        row = db.session.execute(
            _profile_query().where(EfilingUser.id == efiling_user_id)
        ).first()
        if row is None:
            logger.debug("No active e-filing profile", extra={"efiling_user_id": efiling_user_id})
            return None
        return _to_geography(row)

    @staticmethod
    def for_system_user(user_id: int) -> UserGeography | None:
        """Profile by ``users.id``; None if the user has no active profile.

        A user holding several active profiles resolves to the oldest one.
        """
        if not user_id:
            return None
        row = db.session.execute(
            _profile_query().where(EfilingUser.user_id == user_id).order_by(EfilingUser.id)
        ).first()
        if row is None:
            return None
        return _to_geography(row)

    @staticmethod
    def global_role_codes(override=None) -> frozenset[str]:
        """Configured organisation-wide role codes (or the injected set)."""
        codes = override if override is not None else current_app.config.get("EFILING_GLOBAL_ROLE_CODES", ())
        return frozenset(normalise_role_code(c) for c in codes)

    @staticmethod
    def is_global_role_code(role_code: str | None, global_role_codes=None) -> bool:
        """True if the role holds organisation-wide authority."""
        code = normalise_role_code(role_code)
        return bool(code) and code in RoleGeographyProfile.global_role_codes(global_role_codes)

    @staticmethod
    def department_type(department_id: int | None, fallback_department_id: int | None = None) -> str:
        """Scope type of a department, falling back to a second department.

        Returns the configured default scope level (``district``) when
        neither id resolves.
        """
        default = current_app.config.get("EFILING_DEFAULT_SCOPE_LEVEL", "district")
        target_id = department_id or fallback_department_id
        if not target_id:
            return default
        dept_type = db.session.execute(
            select(EfilingDepartment.department_type).where(EfilingDepartment.id == target_id)
        ).scalar_one_or_none()
        return (dept_type or default).lower()
