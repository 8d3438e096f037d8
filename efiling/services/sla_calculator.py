"""
SLA lookup for a role-to-role hand-off.

First active rule (stored order) whose from/to patterns both match wins.
Matching goes through ``role_pattern_matches`` — the same glob the routing
resolver uses — so "who may receive" and "how long they have" agree.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from flask import current_app

from efiling.services.role_patterns import normalise_role_code, role_pattern_matches
from efiling.services.sla_matrix import SLARuleMatrix

logger = logging.getLogger(__name__)


class SLACalculator:
    """Stateless deadline calculator."""

    @staticmethod
    def default_hours() -> int:
        return int(current_app.config.get("EFILING_DEFAULT_SLA_HOURS", 24))

    @staticmethod
    def get_sla(from_role_code: str | None, to_role_code: str | None) -> int:
        """Hours allowed for a hand-off from ``from_role_code`` to ``to_role_code``.

        Returns the configured default when either code is empty, when no
        rule matches, or when the matching rule carries no hours.
        """
        default = SLACalculator.default_hours()
        from_code = normalise_role_code(from_role_code)
        to_code = normalise_role_code(to_role_code)
        if not from_code or not to_code:
            return default

        for rule in SLARuleMatrix.active_rules():
            if role_pattern_matches(from_code, rule.from_role_code) and role_pattern_matches(
                to_code, rule.to_role_code
            ):
                return rule.sla_hours or default

        logger.debug(
            "No SLA rule for %s->%s, using default %sh", from_code, to_code, default,
            extra={"operation": "get_sla"},
        )
        return default

    @staticmethod
    def get_deadline(
        from_role_code: str | None,
        to_role_code: str | None,
        started_at: datetime | None = None,
    ) -> datetime:
        """``started_at`` (UTC now when omitted) plus the SLA hours."""
        start = started_at or datetime.now(timezone.utc)
        return start + timedelta(hours=SLACalculator.get_sla(from_role_code, to_role_code))
