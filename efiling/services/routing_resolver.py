"""
Geographic routing — who may become a file's next custodian.

    decisions = RoutingResolver.resolve(sender_id, {"district_id": 7})

Two paths:

  - **Global short-circuit** — a sender holding an organisation-wide role
    (``EFILING_GLOBAL_ROLE_CODES``) may hand a file to every other active
    profile; each decision is tagged ``global`` / ``GLOBAL_ROLE``.
  - **Rule path** — SLA matrix rows whose ``from_role_code`` matches the
    sender decide which target roles qualify and at which scope level.
    With no matching row a ``* -> *`` rule at the file's department type
    is synthesised so routing degrades instead of returning nothing.

Location fields missing from the file fall back to the sender's own. Results
are recomputed on every call; there is no cache to go stale.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import NamedTuple

from sqlalchemy import func, or_, select

from efiling.core.exceptions import NotFoundError
from efiling.models import db
from efiling.models.geography import District, Division, Town
from efiling.models.organization import EfilingDepartment, EfilingRole, EfilingUser, User
from efiling.services.geography_profile import RoleGeographyProfile
from efiling.services.role_patterns import normalise_role_code, role_pattern_matches
from efiling.services.sla_matrix import SLARuleMatrix

logger = logging.getLogger(__name__)

SCOPE_PRIORITY = ("global", "division", "district", "town")

REASON_GLOBAL_ROLE = "GLOBAL_ROLE"
REASON_SLA_RULE = "SLA_RULE"


@dataclass(frozen=True)
class FileLocation:
    """Partial jurisdiction of a file; any field may be None."""

    department_id: int | None = None
    district_id: int | None = None
    town_id: int | None = None
    division_id: int | None = None

    @classmethod
    def coerce(cls, value) -> "FileLocation":
        """Accept a FileLocation, a mapping, any object with the fields, or None."""
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        if isinstance(value, dict):
            get = value.get
        else:
            def get(key):
                return getattr(value, key, None)
        return cls(
            department_id=get("department_id"),
            district_id=get("district_id"),
            town_id=get("town_id"),
            division_id=get("division_id"),
        )


@dataclass(frozen=True)
class RoutingDecision:
    """One eligible recipient and the scope that justified it."""

    recipient_id: int
    matched_scope: str
    reason: str
    user_id: int | None = None
    user_name: str | None = None
    email: str | None = None
    role_id: int | None = None
    role_code: str | None = None
    role_name: str | None = None
    department_id: int | None = None
    department_name: str | None = None
    department_type: str | None = None
    district_id: int | None = None
    district_name: str | None = None
    town_id: int | None = None
    town_name: str | None = None
    division_id: int | None = None
    division_name: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


class _Rule(NamedTuple):
    from_role_code: str
    to_role_code: str
    level_scope: str | None


def _loc_value(location, key):
    if isinstance(location, dict):
        return location.get(key)
    return getattr(location, key, None)


def _same(a, b) -> bool:
    return bool(a) and bool(b) and int(a) == int(b)


def scope_matches(level_scope: str | None, file_location, candidate_location) -> bool:
    """Does a candidate's location satisfy ``level_scope`` for the file?

    ``town`` falls back to comparing districts when either town id is
    missing; unknown levels behave like ``district``.
    """
    level = (level_scope or "district").lower()
    if level == "global":
        return True
    if level == "division":
        return _same(_loc_value(file_location, "division_id"), _loc_value(candidate_location, "division_id"))
    if level == "town":
        file_town = _loc_value(file_location, "town_id")
        cand_town = _loc_value(candidate_location, "town_id")
        if file_town and cand_town:
            return int(file_town) == int(cand_town)
    return _same(_loc_value(file_location, "district_id"), _loc_value(candidate_location, "district_id"))


def pick_best_scope(scopes) -> str | None:
    """Highest-priority scope in ``scopes`` (global > division > district > town)."""
    normalised = [(s or "").lower() for s in scopes or ()]
    if not normalised:
        return None
    for level in SCOPE_PRIORITY:
        if level in normalised:
            return level
    return normalised[0]


def _recipient_query():
    return (
        select(
            EfilingUser.id,
            EfilingUser.user_id,
            User.name,
            User.email,
            EfilingUser.efiling_role_id,
            EfilingRole.code,
            EfilingRole.name,
            EfilingUser.department_id,
            EfilingDepartment.name,
            EfilingDepartment.department_type,
            EfilingUser.district_id,
            District.title,
            EfilingUser.town_id,
            Town.town,
            EfilingUser.division_id,
            Division.name,
        )
        .join(User, EfilingUser.user_id == User.id)
        .outerjoin(EfilingRole, EfilingUser.efiling_role_id == EfilingRole.id)
        .outerjoin(EfilingDepartment, EfilingUser.department_id == EfilingDepartment.id)
        .outerjoin(District, EfilingUser.district_id == District.id)
        .outerjoin(Town, EfilingUser.town_id == Town.id)
        .outerjoin(Division, EfilingUser.division_id == Division.id)
        .where(EfilingUser.is_active.is_(True))
        .order_by(User.name, EfilingUser.id)
    )


def _decision(row, matched_scope: str, reason: str) -> RoutingDecision:
    return RoutingDecision(
        recipient_id=row[0],
        matched_scope=matched_scope,
        reason=reason,
        user_id=row[1],
        user_name=row[2],
        email=row[3],
        role_id=row[4],
        role_code=normalise_role_code(row[5]) or None,
        role_name=row[6],
        department_id=row[7],
        department_name=row[8],
        department_type=row[9],
        district_id=row[10],
        district_name=row[11],
        town_id=row[12],
        town_name=row[13],
        division_id=row[14],
        division_name=row[15],
    )


class RoutingResolver:
    """Stateless recipient resolution for file hand-offs."""

    @staticmethod
    def resolve(sender_id: int, file_location=None, global_role_codes=None) -> list[RoutingDecision]:
        """Eligible next custodians for a file held by ``sender_id``.

        Args:
            sender_id: ``efiling_users.id`` of the current custodian.
            file_location: FileLocation or mapping with any of
                department_id / district_id / town_id / division_id.
            global_role_codes: override for the configured global roles.

        Returns:
            Decisions ordered by recipient name, at most one per recipient.
            An empty list means nobody currently qualifies.

        Raises:
            NotFoundError: sender has no active e-filing profile.
        """
        sender = RoleGeographyProfile.for_efiling_user(sender_id)
        if sender is None:
            raise NotFoundError(resource="Sender", resource_id=sender_id)

        file_loc = FileLocation.coerce(file_location)
        base = {
            "district_id": file_loc.district_id or sender.district_id,
            "town_id": file_loc.town_id or sender.town_id,
            "division_id": file_loc.division_id or sender.division_id,
        }

        if RoleGeographyProfile.is_global_role_code(sender.role_code, global_role_codes):
            rows = db.session.execute(_recipient_query().where(EfilingUser.id != sender.efiling_user_id)).all()
            decisions = [_decision(row, "global", REASON_GLOBAL_ROLE) for row in rows]
            logger.info(
                "Global sender %s may route to %d users", sender.role_code, len(decisions),
                extra={"operation": "resolve_recipients", "sender_id": sender_id,
                       "recipient_count": len(decisions)},
            )
            return decisions

        department_type = RoleGeographyProfile.department_type(file_loc.department_id, sender.department_id)

        rules = [
            _Rule(r.from_role_code, r.to_role_code, r.level_scope)
            for r in SLARuleMatrix.active_rules()
            if role_pattern_matches(sender.role_code, r.from_role_code)
        ]
        if not rules:
            logger.debug(
                "No SLA rule for sender role %s, falling back to * -> * @%s",
                sender.role_code, department_type,
                extra={"operation": "resolve_recipients", "sender_id": sender_id},
            )
            rules = [_Rule("*", "*", department_type)]

        stmt = _recipient_query().where(EfilingUser.id != sender.efiling_user_id)
        location_clauses = []
        if base["division_id"]:
            location_clauses.append(EfilingUser.division_id == base["division_id"])
        if base["district_id"]:
            location_clauses.append(EfilingUser.district_id == base["district_id"])
        if base["town_id"]:
            location_clauses.append(EfilingUser.town_id == base["town_id"])
        if location_clauses:
            stmt = stmt.where(or_(*location_clauses, func.lower(EfilingDepartment.department_type) == "global"))

        candidates = db.session.execute(stmt).all()

        decisions = []
        seen = set()
        for row in candidates:
            if row[0] in seen:
                continue
            candidate_location = {"district_id": row[10], "town_id": row[12], "division_id": row[14]}
            scopes = [
                rule.level_scope or department_type
                for rule in rules
                if role_pattern_matches(row[5], rule.to_role_code)
                and scope_matches(rule.level_scope, base, candidate_location)
            ]
            if scopes:
                seen.add(row[0])
                decisions.append(_decision(row, pick_best_scope(scopes), REASON_SLA_RULE))

        logger.info(
            "Resolved %d of %d candidates for sender role %s",
            len(decisions), len(candidates), sender.role_code,
            extra={"operation": "resolve_recipients", "sender_id": sender_id,
                   "candidate_count": len(candidates), "recipient_count": len(decisions)},
        )
        return decisions

    @staticmethod
    def validate_geographic_match(file, user, level_scope: str = "district") -> bool:
        """Single-pair scope check between a file and a user location."""
        return bool(scope_matches(level_scope, file or {}, user or {}))

    @staticmethod
    def can_route_to(sender_id: int, recipient_id: int, file_location=None, global_role_codes=None) -> bool:
        """True iff ``recipient_id`` is among the resolved recipients."""
        return any(
            d.recipient_id == recipient_id
            for d in RoutingResolver.resolve(sender_id, file_location, global_role_codes)
        )
