from datetime import datetime, timezone

from sqlalchemy import BigInteger, Integer

from rentaldesk.extensions import db

# BIGINT on PostgreSQL, INTEGER on SQLite so rowid autoincrement applies.
PKType = BigInteger().with_variant(Integer, "sqlite")


def utcnow():
    return datetime.now(timezone.utc)


class TimestampMixin:
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
