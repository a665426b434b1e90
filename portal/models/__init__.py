"""
Client Portal
Shared SQLAlchemy handle and column helpers.

Every model module imports ``db`` from here so the app factory can bind a
single extension instance.
"""

import uuid
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def new_id() -> str:
    """Primary key factory - UUID4 as a 36-char string."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def iso(value):
    return value.isoformat() if value else None
