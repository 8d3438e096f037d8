"""
SLA matrix — the shared rule set behind routing and deadlines.

Each row says: a holder of a role matching ``from_role_code`` may hand a
file to a holder of a role matching ``to_role_code`` when both sit in the
same ``level_scope`` jurisdiction, and the receiver has ``sla_hours`` to act.
Role codes may contain ``*`` wildcards; rows are evaluated in id order.
"""

from datetime import datetime, timezone

from efiling.models import db

SCOPE_LEVELS = ("global", "division", "district", "town")


class SLARule(db.Model):
    __tablename__ = "efiling_sla_matrix"

    id = db.Column(db.Integer, primary_key=True)
    from_role_code = db.Column(db.String(100), nullable=False, comment="Role code or glob, e.g. WAT_*")
    to_role_code = db.Column(db.String(100), nullable=False, comment="Role code or glob")
    level_scope = db.Column(
        db.String(20),
        nullable=False,
        default="district",
        comment="global | division | district | town",
    )
    sla_hours = db.Column(db.Integer, nullable=False, default=24)
    description = db.Column(db.Text, nullable=True)
    department_id = db.Column(
        db.Integer, db.ForeignKey("efiling_departments.id", ondelete="SET NULL"), nullable=True,
    )
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "from_role_code": self.from_role_code,
            "to_role_code": self.to_role_code,
            "level_scope": self.level_scope,
            "sla_hours": self.sla_hours,
            "description": self.description,
            "department_id": self.department_id,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<SLARule #{self.id} {self.from_role_code}->{self.to_role_code} {self.level_scope} {self.sla_hours}h>"
