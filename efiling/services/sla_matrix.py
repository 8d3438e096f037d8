"""
SLA rule matrix — maintenance and ordered reads of ``efiling_sla_matrix``.

``SLARuleMatrix.active_rules()`` is the single read path used by both the
routing resolver and the SLA calculator; rows come back in stored (id)
order, which is the order "first matching rule wins" is evaluated in.

Rules:
  - role codes are stored upper-cased; ``*`` wildcards are allowed
  - sla_hours is a non-negative whole number of hours
  - level_scope is one of global | division | district | town
  - rules are deactivated, not deleted, so past deadlines stay explainable
"""

from __future__ import annotations

import logging

from sqlalchemy import or_, select

from efiling.core.exceptions import ConflictError, NotFoundError, ValidationError
from efiling.models import db
from efiling.models.sla import SCOPE_LEVELS, SLARule
from efiling.services.helpers.transactions import atomic
from efiling.services.role_patterns import normalise_role_code

logger = logging.getLogger(__name__)


def _validate_hours(value) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("sla_hours must be a number", details={"sla_hours": "not a number"})
    if value < 0:
        raise ValidationError("sla_hours must be a positive number", details={"sla_hours": "negative"})
    if value != int(value):
        raise ValidationError("sla_hours must be a whole number of hours", details={"sla_hours": "fractional"})
    return int(value)


def _validate_scope(value) -> str:
    scope = (value or "").strip().lower()
    if scope not in SCOPE_LEVELS:
        raise ValidationError(
            f"level_scope must be one of: {', '.join(SCOPE_LEVELS)}",
            details={"level_scope": "invalid"},
        )
    return scope


def _ensure_unique(from_code: str, to_code: str, scope: str, department_id, exclude_id=None) -> None:
    stmt = select(SLARule.id).where(
        SLARule.is_active.is_(True),
        SLARule.from_role_code == from_code,
        SLARule.to_role_code == to_code,
        SLARule.level_scope == scope,
    )
    if department_id is None:
        stmt = stmt.where(SLARule.department_id.is_(None))
    else:
        stmt = stmt.where(SLARule.department_id == department_id)
    if exclude_id is not None:
        stmt = stmt.where(SLARule.id != exclude_id)
    if db.session.execute(stmt).first() is not None:
        raise ConflictError("SLARule", "from_role_code/to_role_code/level_scope", f"{from_code}->{to_code}@{scope}")


def _require_rule(rule_id: int) -> SLARule:
    rule = db.session.get(SLARule, rule_id)
    if rule is None:
        raise NotFoundError(resource="SLARule", resource_id=rule_id)
    return rule


class SLARuleMatrix:
    """Stateless service for the SLA matrix."""

    @staticmethod
    def active_rules() -> list[SLARule]:
        """Active rules in stored order."""
        return list(
            db.session.execute(
                select(SLARule).where(SLARule.is_active.is_(True)).order_by(SLARule.id)
            ).scalars()
        )

    @staticmethod
    def list_rules(
        *,
        active_only: bool = True,
        from_role_code: str | None = None,
        to_role_code: str | None = None,
        department_id: int | None = None,
    ) -> list[dict]:
        """List rules, optionally filtered.

        A department filter returns that department's rules plus the
        department-less (organisation-wide) ones.
        """
        stmt = select(SLARule)
        if active_only:
            stmt = stmt.where(SLARule.is_active.is_(True))
        if from_role_code:
            stmt = stmt.where(SLARule.from_role_code == normalise_role_code(from_role_code))
        if to_role_code:
            stmt = stmt.where(SLARule.to_role_code == normalise_role_code(to_role_code))
        if department_id:
            stmt = stmt.where(or_(SLARule.department_id == department_id, SLARule.department_id.is_(None)))
        stmt = stmt.order_by(SLARule.id)
        return [r.to_dict() for r in db.session.execute(stmt).scalars()]

    @staticmethod
    def create_rule(data: dict) -> dict:
        """Create a rule.

        Body keys: from_role_code, to_role_code (required), level_scope
        (default district), sla_hours (default 24), description,
        department_id, is_active.

        Raises:
            ValidationError: missing codes, bad hours or bad scope.
            ConflictError: an identical active rule already exists.
        """
        from_code = normalise_role_code(data.get("from_role_code"))
        to_code = normalise_role_code(data.get("to_role_code"))
        if not from_code or not to_code:
            raise ValidationError(
                "from_role_code and to_role_code are required",
                details={k: "required" for k, v in (("from_role_code", from_code), ("to_role_code", to_code)) if not v},
            )
        scope = _validate_scope(data.get("level_scope", "district"))
        hours = _validate_hours(data.get("sla_hours", 24))
        department_id = data.get("department_id") or None
        is_active = bool(data.get("is_active", True))

        with atomic("create_sla_rule"):
            if is_active:
                _ensure_unique(from_code, to_code, scope, department_id)
            rule = SLARule(
                from_role_code=from_code,
                to_role_code=to_code,
                level_scope=scope,
                sla_hours=hours,
                description=data.get("description") or None,
                department_id=department_id,
                is_active=is_active,
            )
            db.session.add(rule)

        logger.info(
            "SLA rule created %s->%s scope=%s hours=%s", from_code, to_code, scope, hours,
            extra={"operation": "create_sla_rule", "rule_id": rule.id},
        )
        return rule.to_dict()

    @staticmethod
    def update_rule(rule_id: int, data: dict) -> dict:
        """Partially update a rule; only keys present in ``data`` change."""
        with atomic("update_sla_rule", resource_id=rule_id):
            rule = _require_rule(rule_id)
            if "from_role_code" in data:
                code = normalise_role_code(data["from_role_code"])
                if not code:
                    raise ValidationError("from_role_code cannot be empty", details={"from_role_code": "required"})
                rule.from_role_code = code
            if "to_role_code" in data:
                code = normalise_role_code(data["to_role_code"])
                if not code:
                    raise ValidationError("to_role_code cannot be empty", details={"to_role_code": "required"})
                rule.to_role_code = code
            if "level_scope" in data:
                rule.level_scope = _validate_scope(data["level_scope"])
            if "sla_hours" in data:
                rule.sla_hours = _validate_hours(data["sla_hours"])
            if "description" in data:
                rule.description = data["description"] or None
            if "department_id" in data:
                rule.department_id = data["department_id"] or None
            if "is_active" in data:
                rule.is_active = bool(data["is_active"])
            if rule.is_active:
                _ensure_unique(
                    rule.from_role_code, rule.to_role_code, rule.level_scope,
                    rule.department_id, exclude_id=rule.id,
                )

        logger.info("SLA rule updated", extra={"operation": "update_sla_rule", "rule_id": rule_id})
        return rule.to_dict()

    @staticmethod
    def deactivate_rule(rule_id: int) -> dict:
        """Soft-delete a rule (is_active=False)."""
        with atomic("deactivate_sla_rule", resource_id=rule_id):
            rule = _require_rule(rule_id)
            rule.is_active = False
        logger.info("SLA rule deactivated", extra={"operation": "deactivate_sla_rule", "rule_id": rule_id})
        return rule.to_dict()
