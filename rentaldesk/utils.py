from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from rentaldesk.errors import AppError

CENT = Decimal("0.01")


def as_utc(value):
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_money(value):
    return Decimal(str(value or 0)).quantize(CENT)


def clean_text(value):
    if value is None:
        return None
    return str(value).strip() or None


def parse_datetime(value, label):
    if isinstance(value, datetime):
        return as_utc(value)
    raw = clean_text(value)
    if not raw:
        raise AppError(f"{label} is required.", 400)
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError as exc:
        raise AppError(f"Invalid {label}.", 400) from exc
    return as_utc(parsed)


def parse_decimal(value, label, default=None, minimum=None):
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            raise AppError(f"{label} is required.", 400)
        return Decimal(str(default))
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise AppError(f"{label} must be a number.", 400) from exc
    if not parsed.is_finite():
        raise AppError(f"{label} must be a number.", 400)
    if minimum is not None and parsed < Decimal(str(minimum)):
        raise AppError(f"{label} must be at least {minimum}.", 400)
    return parsed


def parse_int(value, label, default=None, minimum=None):
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            raise AppError(f"{label} is required.", 400)
        return default
    try:
        parsed = int(str(value).strip())
    except ValueError as exc:
        raise AppError(f"{label} must be a whole number.", 400) from exc
    if minimum is not None and parsed < minimum:
        raise AppError(f"{label} must be at least {minimum}.", 400)
    return parsed
