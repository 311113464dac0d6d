"""
Soft delete mixin — withdrawn ideas keep their row, reviews and versions.

Usage:
    class Idea(SoftDeleteMixin, db.Model):
        ...

    idea.soft_delete()          # author withdraws
    Idea.active_filter()        # WHERE deleted_at IS NULL, for select()
"""

from datetime import datetime, timezone

from ideahub.models import db


class SoftDeleteMixin:
    """Adds a ``deleted_at`` timestamp and helpers to a model."""

    deleted_at = db.Column(db.DateTime, nullable=True, default=None, index=True)

    def soft_delete(self):
        """Mark this record as deleted."""
        self.deleted_at = datetime.now(timezone.utc)

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    @classmethod
    def active_filter(cls):
        """SQL expression excluding soft-deleted rows."""
        return cls.deleted_at.is_(None)
