"""Shared input helpers used by blueprints and services.

parse_date:       returns None on bad input
parse_datetime:   raises ValueError on bad input
normalize_email:  email-validator syntax check + normalisation
paginate_args:    page / per_page from the query string, clamped
"""
import logging
from datetime import date, datetime, timezone

from email_validator import EmailNotValidError, validate_email
from flask import request

from portal.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

MAX_PER_PAGE = 200


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD.MM.YYYY
    """
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except (ValueError, TypeError):
        return None


def parse_datetime(value):
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    A trailing ``Z`` is accepted.  Naive values are taken as UTC.
    Raises ValueError on bad input.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValueError("Invalid datetime format. Use ISO-8601.") from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def normalize_email(email: str) -> str:
    """Validate syntax and return the lower-cased normalised address."""
    if not email or not isinstance(email, str):
        raise ValidationError("email is required", details={"email": "required"})
    try:
        valid = validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": "invalid"})
    return valid.normalized.lower()


def email_domain(email: str) -> str:
    return email.rsplit("@", 1)[-1].lower() if email and "@" in email else ""


def paginate_args(default_per_page: int = 50) -> tuple[int, int]:
    page = max(request.args.get("page", 1, type=int) or 1, 1)
    per_page = request.args.get("per_page", default_per_page, type=int) or default_per_page
    return page, min(max(per_page, 1), MAX_PER_PAGE)
