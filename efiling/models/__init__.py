"""
SQLAlchemy models for the e-filing routing core.

``db`` is created here and bound by ``create_app``; model modules are
imported at the bottom so ``db.create_all()`` and Alembic autogenerate see
every table.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

from efiling.models import geography, organization, sla, workflow  # noqa: E402,F401
