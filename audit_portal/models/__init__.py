"""
Audit Portal
SQLAlchemy handle shared by every model module.

Usage:
    from audit_portal.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
