"""
Flask-Migrate / Alembic entry point.

Usage:
    flask db upgrade                     # apply migrations/versions
    flask db migrate -m "description"    # autogenerate a new revision
"""

from efiling import create_app

app = create_app()
