"""
WSGI / Flask-Migrate / Alembic entry point.

Usage:
    gunicorn wsgi:app
    flask db upgrade
    flask purge-item-reviews --item-type planning-procedure
"""

from audit_portal import create_app

app = create_app()
