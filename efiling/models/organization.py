"""
Organisation tables: system users, departments, roles and e-filing profiles.

An ``EfilingUser`` is the profile that binds a system ``User`` to one role,
one department and a place in the geography (district / town / division).
Zone coverage is attached to the *role* through ``EfilingRoleLocation``.
"""

from datetime import datetime, timezone

from efiling.models import db
from efiling.models.sla import SCOPE_LEVELS


class User(db.Model):
    """System user; the identity an Authenticator vouches for."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), nullable=True, unique=True)
    designation = db.Column(db.String(150), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "designation": self.designation,
            "is_active": self.is_active,
        }


class EfilingDepartment(db.Model):
    __tablename__ = "efiling_departments"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    code = db.Column(db.String(50), nullable=True, unique=True)
    department_type = db.Column(
        db.String(20),
        nullable=False,
        default="district",
        comment="global | division | district | town",
    )
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    VALID_TYPES = SCOPE_LEVELS

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "department_type": self.department_type,
            "is_active": self.is_active,
        }


class EfilingRole(db.Model):
    __tablename__ = "efiling_roles"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(50), nullable=False, unique=True)
    name = db.Column(db.String(200), nullable=False)
    department_id = db.Column(
        db.Integer, db.ForeignKey("efiling_departments.id", ondelete="SET NULL"), nullable=True,
    )
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "department_id": self.department_id,
            "is_active": self.is_active,
        }


class EfilingRoleGroup(db.Model):
    """Named bundle of role codes a stage can be bound to."""

    __tablename__ = "efiling_role_groups"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    code = db.Column(db.String(50), nullable=True, unique=True)
    role_codes = db.Column(db.JSON, nullable=False, default=list)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "role_codes": list(self.role_codes or []),
            "is_active": self.is_active,
        }


class EfilingRoleLocation(db.Model):
    """Geographic coverage attached to a role (zone / district / division)."""

    __tablename__ = "efiling_role_locations"

    id = db.Column(db.Integer, primary_key=True)
    role_id = db.Column(
        db.Integer, db.ForeignKey("efiling_roles.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    zone_id = db.Column(db.Integer, db.ForeignKey("zones.id", ondelete="CASCADE"), nullable=True)
    district_id = db.Column(db.Integer, db.ForeignKey("districts.id", ondelete="CASCADE"), nullable=True)
    division_id = db.Column(db.Integer, db.ForeignKey("divisions.id", ondelete="CASCADE"), nullable=True)


class EfilingUser(db.Model):
    """A user's e-filing profile: role, department and jurisdiction."""

    __tablename__ = "efiling_users"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    efiling_role_id = db.Column(
        db.Integer, db.ForeignKey("efiling_roles.id", ondelete="SET NULL"), nullable=True,
    )
    department_id = db.Column(
        db.Integer, db.ForeignKey("efiling_departments.id", ondelete="SET NULL"), nullable=True,
    )
    district_id = db.Column(db.Integer, db.ForeignKey("districts.id", ondelete="SET NULL"), nullable=True)
    town_id = db.Column(db.Integer, db.ForeignKey("towns.id", ondelete="SET NULL"), nullable=True)
    division_id = db.Column(db.Integer, db.ForeignKey("divisions.id", ondelete="SET NULL"), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    user = db.relationship("User", lazy="joined")
    role = db.relationship("EfilingRole", lazy="joined")
    department = db.relationship("EfilingDepartment", lazy="joined")

    __table_args__ = (
        db.Index("ix_efiling_users_geo", "district_id", "town_id", "division_id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "efiling_role_id": self.efiling_role_id,
            "department_id": self.department_id,
            "district_id": self.district_id,
            "town_id": self.town_id,
            "division_id": self.division_id,
            "is_active": self.is_active,
        }

    def __repr__(self) -> str:
        return f"<EfilingUser #{self.id} user={self.user_id} role={self.efiling_role_id}>"
