"""
Unit tests for the quorum predicate.

``is_quorum_met`` is pure, so these run without touching the database.
"""

from datetime import datetime, timedelta, timezone

import pytest

from ideahub.core.exceptions import ValidationError
from ideahub.services.quorum import QuorumPolicy, is_quorum_met

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

IDEA_POLICY = QuorumPolicy(role_share=0.6, stale_after_days=7)
CHALLENGE_POLICY = QuorumPolicy(min_reviews=2)


def test_no_reviews_never_meets_quorum():
    """Even a stale subject needs at least one review."""
    stale = NOW - timedelta(days=30)
    assert not is_quorum_met(IDEA_POLICY, review_count=0, role_population=1,
                             last_updated_at=stale, now=NOW)


def test_role_share_threshold():
    """3 SMEs at 60% → 2 reviews are enough, 1 is not."""
    fresh = NOW - timedelta(hours=1)
    assert not is_quorum_met(IDEA_POLICY, review_count=1, role_population=3,
                             last_updated_at=fresh, now=NOW)
    assert is_quorum_met(IDEA_POLICY, review_count=2, role_population=3,
                         last_updated_at=fresh, now=NOW)


def test_single_role_holder_one_review_is_enough():
    assert is_quorum_met(IDEA_POLICY, review_count=1, role_population=1, now=NOW)


def test_empty_role_population_falls_back_to_staleness():
    fresh = NOW - timedelta(days=1)
    stale = NOW - timedelta(days=8)
    assert not is_quorum_met(IDEA_POLICY, review_count=1, role_population=0,
                             last_updated_at=fresh, now=NOW)
    assert is_quorum_met(IDEA_POLICY, review_count=1, role_population=0,
                         last_updated_at=stale, now=NOW)


def test_staleness_is_strictly_greater_than_window():
    exactly = NOW - timedelta(days=7)
    assert not is_quorum_met(IDEA_POLICY, review_count=1, role_population=10,
                             last_updated_at=exactly, now=NOW)


def test_naive_timestamps_are_read_as_utc():
    """SQLite returns naive datetimes; they must compare against aware now."""
    stale_naive = (NOW - timedelta(days=10)).replace(tzinfo=None)
    assert is_quorum_met(IDEA_POLICY, review_count=1, role_population=10,
                         last_updated_at=stale_naive, now=NOW)


def test_min_reviews_policy():
    assert not is_quorum_met(CHALLENGE_POLICY, review_count=1, now=NOW)
    assert is_quorum_met(CHALLENGE_POLICY, review_count=2, now=NOW)
    assert is_quorum_met(CHALLENGE_POLICY, review_count=5, now=NOW)


def test_from_mapping_builds_policy():
    policy = QuorumPolicy.from_mapping({"min_reviews": 3, "stale_after_days": 2})
    assert policy == QuorumPolicy(min_reviews=3, stale_after_days=2)
    assert not policy.needs_role_population


def test_from_mapping_rejects_unknown_keys():
    with pytest.raises(ValidationError, match="Unknown quorum setting"):
        QuorumPolicy.from_mapping({"quorum": 3})
