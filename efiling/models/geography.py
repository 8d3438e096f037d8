"""
Geography reference tables: divisions, districts, towns and zones.

Rows are maintained by the administrative surface; the routing core only
reads ids and display names from them.
"""

from efiling.models import db


class Division(db.Model):
    __tablename__ = "divisions"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    code = db.Column(db.String(50), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "code": self.code, "is_active": self.is_active}


class District(db.Model):
    __tablename__ = "districts"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(150), nullable=False)

    def to_dict(self) -> dict:
        return {"id": self.id, "title": self.title}


class Town(db.Model):
    __tablename__ = "towns"

    id = db.Column(db.Integer, primary_key=True)
    town = db.Column(db.String(150), nullable=False)
    district_id = db.Column(
        db.Integer, db.ForeignKey("districts.id", ondelete="SET NULL"), nullable=True, index=True,
    )

    def to_dict(self) -> dict:
        return {"id": self.id, "town": self.town, "district_id": self.district_id}


class Zone(db.Model):
    __tablename__ = "zones"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}
