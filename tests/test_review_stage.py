"""
Tests for the review stage engine.

Covers:
    - stage role gating (SME → stage1, board → stage2, admin → both)
    - no self-review, one review per reviewer per stage
    - review history visible to owner, reviewers and deciders only
    - reviewer dashboards: queue order, reviewed window, stats
    - reviews never move the subject's status
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from ideahub.core.exceptions import ConflictError, NotEligibleError, UnauthorizedError, ValidationError
from ideahub.models import db as _db
from ideahub.models.audit import AuditLog
from ideahub.models.idea import Idea
from ideahub.models.review import Review
from ideahub.models.workflow import IdeaStatus
from ideahub.services import decision_service, idea_service, review_service
from ideahub.services.role_directory import Roles

COMMENTS = "Clear problem framing, realistic costs and a credible rollout plan."


def _submit(owner, idea_payload, **overrides):
    return idea_service.create_idea(owner.id, idea_payload(**overrides)).entity["id"]


def _review(user, idea_id, stage="stage1", recommendation="approve", comments=COMMENTS):
    return review_service.submit_review(user.id, "idea", idea_id, stage, recommendation, comments)


# ── 1. Submission rules ──────────────────────────────────────────────────


def test_sme_reviews_stage1(author, sme, idea_payload):
    idea_id = _submit(author, idea_payload)
    result = _review(sme, idea_id)

    assert result.message == "Review submitted successfully."
    assert result.entity["stage"] == "stage1"
    assert result.entity["recommendation"] == "approve"
    assert _db.session.get(Idea, idea_id).status == IdeaStatus.STAGE1_REVIEW


def test_author_cannot_review_own_idea(make_user, idea_payload):
    author_sme = make_user("author-sme", Roles.SME)
    idea_id = _submit(author_sme, idea_payload)
    with pytest.raises(NotEligibleError, match="your own idea"):
        _review(author_sme, idea_id)


def test_board_member_cannot_review_stage1(author, board, idea_payload):
    idea_id = _submit(author, idea_payload)
    with pytest.raises(NotEligibleError, match="reviewer role"):
        _review(board, idea_id)


def test_wrong_stage_for_status_is_rejected(author, sme, idea_payload):
    idea_id = _submit(author, idea_payload)
    with pytest.raises(NotEligibleError, match="not awaiting stage2"):
        _review(sme, idea_id, stage="stage2")


def test_second_review_for_same_stage_is_rejected(author, sme, idea_payload):
    idea_id = _submit(author, idea_payload)
    _review(sme, idea_id)
    with pytest.raises(NotEligibleError, match="already reviewed"):
        _review(sme, idea_id, recommendation="reject")


def test_admin_may_review_either_stage(author, admin, idea_payload):
    idea_id = _submit(author, idea_payload)
    assert _review(admin, idea_id).success


@pytest.mark.parametrize("comments", ["", "too short", "x" * 2001])
def test_idea_comment_bounds(author, sme, idea_payload, comments):
    idea_id = _submit(author, idea_payload)
    with pytest.raises(ValidationError):
        _review(sme, idea_id, comments=comments)


def test_unknown_recommendation_is_a_validation_error(author, sme, idea_payload):
    idea_id = _submit(author, idea_payload)
    with pytest.raises(ValidationError):
        _review(sme, idea_id, recommendation="maybe")


# ── 2. Dashboards ────────────────────────────────────────────────────────


def test_queue_requires_stage_role(author):
    with pytest.raises(UnauthorizedError):
        review_service.list_reviewable(author.id, "idea", "stage1")


def test_queue_is_oldest_first_and_drops_reviewed_items(make_user, sme, idea_payload):
    first_author = make_user("first")
    second_author = make_user("second")
    older = _submit(first_author, idea_payload)
    newer = _submit(second_author, idea_payload)
    _db.session.get(Idea, older).submitted_at = datetime.now(timezone.utc) - timedelta(days=2)
    _db.session.commit()

    queue = review_service.list_reviewable(sme.id, "idea", "stage1")
    assert [i["id"] for i in queue] == [older, newer]

    _review(sme, older)
    queue = review_service.list_reviewable(sme.id, "idea", "stage1")
    assert [i["id"] for i in queue] == [newer]


def test_queue_excludes_own_ideas(make_user, idea_payload):
    author_sme = make_user("author-sme", Roles.SME)
    _submit(author_sme, idea_payload)
    assert review_service.list_reviewable(author_sme.id, "idea", "stage1") == []


def test_reviewed_window_and_stats(author, sme, idea_payload):
    idea_id = _submit(author, idea_payload)
    _review(sme, idea_id)

    reviewed = review_service.list_reviewed_by_user(sme.id, "idea", "stage1")
    assert [i["id"] for i in reviewed] == [idea_id]
    assert review_service.reviewer_stats(sme.id, "idea", "stage1") == {
        "stage": "stage1", "pending": 0, "completed": 1,
    }


def test_review_context_visibility(author, collaborator, sme, dd, idea_payload):
    idea_id = _submit(author, idea_payload)
    _review(sme, idea_id)

    ctx = review_service.get_review_context(author.id, "idea", idea_id)
    assert ctx["review_stage"] == "stage1"
    assert len(ctx["reviews"]) == 1
    assert ctx["can_review"] is False
    assert ctx["can_decide"] is False

    assert review_service.get_review_context(dd.id, "idea", idea_id)["can_decide"] is True

    with pytest.raises(UnauthorizedError):
        review_service.get_review_context(collaborator.id, "idea", idea_id)


def test_decision_history_hidden_from_outsiders(author, collaborator, sme, dd, idea_payload):
    idea_id = _submit(author, idea_payload)
    _review(sme, idea_id)
    decision_service.make_decision(
        dd.id, "idea", idea_id, "stage1", "revise", COMMENTS, dd_comments="Internal note for the file.",
    )

    assert decision_service.get_decisions(author.id, "idea", idea_id)[0]["decision"] == "revise"
    assert len(decision_service.get_decisions(sme.id, "idea", idea_id)) == 1
    with pytest.raises(UnauthorizedError):
        decision_service.get_decisions(collaborator.id, "idea", idea_id)


def test_author_sees_own_items_in_review(author, idea_payload):
    idea_id = _submit(author, idea_payload)
    items = review_service.list_author_reviews(author.id, "idea")
    assert [i["id"] for i in items] == [idea_id]
    assert items[0]["decisions"] == []


# ── 3. Concurrent reviewers ──────────────────────────────────────────────


def test_duplicate_review_loses_on_unique_constraint(monkeypatch, author, sme, idea_payload):
    """A second request that passed the eligibility check still fails at the store."""
    idea_id = _submit(author, idea_payload)
    _review(sme, idea_id)

    monkeypatch.setattr(review_service, "_has_reviewed", lambda *args: False)
    with pytest.raises(ConflictError, match="already reviewed"):
        _review(sme, idea_id, recommendation="reject")

    rows = _db.session.execute(
        select(Review.recommendation).where(Review.subject_id == idea_id)
    ).scalars().all()
    assert rows == ["approve"]
    audits = _db.session.execute(
        select(func.count(AuditLog.id)).where(AuditLog.action == "review.submit")
    ).scalar_one()
    assert audits == 1
