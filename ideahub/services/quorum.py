"""
Quorum policy for deputy-director decisions.

A stage becomes decidable once at least one review exists and ANY configured
threshold holds:

    min_reviews       review_count >= min_reviews
    role_share        review_count >= role_share × users holding the stage role
    stale_after_days  the subject has not been updated for more than N days

Unset thresholds are ignored.  Each review track carries its own policy
(``ideahub.services.tracks``); deployments override them through the
``QUORUM_POLICIES`` config key, e.g.::

    QUORUM_POLICIES = {"idea": {"role_share": 0.5, "stale_after_days": 5}}

``is_quorum_met`` is pure: counts and timestamps in, bool out.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from ideahub.core.exceptions import ValidationError


@dataclass(frozen=True)
class QuorumPolicy:
    min_reviews: int | None = None
    role_share: float | None = None
    stale_after_days: int | None = None

    @classmethod
    def from_mapping(cls, data: dict) -> "QuorumPolicy":
        unknown = set(data) - {"min_reviews", "role_share", "stale_after_days"}
        if unknown:
            raise ValidationError(f"Unknown quorum setting(s): {', '.join(sorted(unknown))}")
        return cls(**data)

    @property
    def needs_role_population(self) -> bool:
        return self.role_share is not None


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes for values stored as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_quorum_met(
    policy: QuorumPolicy,
    *,
    review_count: int,
    role_population: int = 0,
    last_updated_at: datetime | None = None,
    now: datetime | None = None,
) -> bool:
    """Evaluate *policy* against the observed review state of one stage.

    Args:
        policy: Thresholds for the subject's track.
        review_count: Reviews recorded for the stage in the current round.
        role_population: Users holding the stage's reviewer role.
        last_updated_at: Subject's ``updated_at``.
        now: Evaluation time (defaults to current UTC time).

    Returns:
        True when the deputy director may decide the stage.
    """
    if review_count < 1:
        return False

    if policy.min_reviews is not None and review_count >= policy.min_reviews:
        return True

    if (
        policy.role_share is not None
        and role_population > 0
        and review_count >= role_population * policy.role_share
    ):
        return True

    if policy.stale_after_days is not None and last_updated_at is not None:
        now = now or datetime.now(timezone.utc)
        if _as_utc(now) - _as_utc(last_updated_at) > timedelta(days=policy.stale_after_days):
            return True

    return False
