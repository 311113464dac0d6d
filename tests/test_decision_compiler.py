"""
Tests for the decision compiler.

Covers:
    - the six (stage, decision) → status transitions
    - revision bumps on stage1 approve and stage2 approve only
    - at most one decision per stage per review round
    - store-level uniqueness as the backstop for a concurrent second decider
    - quorum gating (role share, staleness)
    - revise → resubmit → second round decided on the standing reviews
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select, update

from ideahub.core.exceptions import AlreadyDecidedError, NotEligibleError, UnauthorizedError, ValidationError
from ideahub.models import db as _db
from ideahub.models.audit import AuditLog
from ideahub.models.idea import Idea
from ideahub.models.review import Review, ReviewDecision
from ideahub.services import decision_service, idea_service, review_service
from ideahub.services.role_directory import Roles

REVIEW = "Clear problem framing, realistic costs and a credible rollout plan."
COMPILED = "Reviewers agree the proposal is sound and recommend it moves forward."


def _submit(owner, idea_payload):
    return idea_service.create_idea(owner.id, idea_payload()).entity["id"]


def _review(user, idea_id, stage="stage1", recommendation="approve"):
    review_service.submit_review(user.id, "idea", idea_id, stage, recommendation, REVIEW)


def _decide(user, idea_id, stage, decision, **kwargs):
    return decision_service.make_decision(user.id, "idea", idea_id, stage, decision, COMPILED, **kwargs)


def _idea(idea_id):
    return _db.session.get(Idea, idea_id)


# ── 1. Transition table ──────────────────────────────────────────────────


@pytest.mark.parametrize("decision, status, revision", [
    ("approve", "stage2_review", 2),
    ("revise", "stage1_revise", 1),
    ("reject", "rejected", 1),
])
def test_stage1_outcomes(author, sme, dd, idea_payload, decision, status, revision):
    idea_id = _submit(author, idea_payload)
    _review(sme, idea_id)

    result = _decide(dd, idea_id, "stage1", decision)
    assert result.entity["previous_status"] == "stage1_review"
    assert result.entity["new_status"] == status
    assert _idea(idea_id).status == status
    assert _idea(idea_id).current_revision_number == revision


@pytest.mark.parametrize("decision, status, revision", [
    ("approve", "approved", 3),
    ("revise", "stage2_revise", 2),
    ("reject", "rejected", 2),
])
def test_stage2_outcomes(author, sme, board, dd, idea_payload, decision, status, revision):
    idea_id = _submit(author, idea_payload)
    _review(sme, idea_id)
    _decide(dd, idea_id, "stage1", "approve")
    _review(board, idea_id, stage="stage2")

    _decide(dd, idea_id, "stage2", decision)
    assert _idea(idea_id).status == status
    assert _idea(idea_id).current_revision_number == revision


def test_full_happy_path_leaves_two_decisions_and_audit_rows(author, sme, board, dd, idea_payload):
    idea_id = _submit(author, idea_payload)
    _review(sme, idea_id)
    _decide(dd, idea_id, "stage1", "approve", dd_comments="Fast-track to the board.")
    _review(board, idea_id, stage="stage2")
    _decide(dd, idea_id, "stage2", "approve")

    history = decision_service.get_decisions(author.id, "idea", idea_id)
    assert [(d["stage"], d["new_status"]) for d in history] == [
        ("stage1", "stage2_review"), ("stage2", "approved"),
    ]
    assert history[0]["dd_comments"] == "Fast-track to the board."

    actions = _db.session.execute(
        select(AuditLog.action).where(AuditLog.entity_type == "idea", AuditLog.entity_id == str(idea_id))
    ).scalars().all()
    assert actions.count("decision.make") == 2


# ── 2. Guards ────────────────────────────────────────────────────────────


def test_only_the_deputy_director_decides(author, sme, idea_payload):
    idea_id = _submit(author, idea_payload)
    _review(sme, idea_id)
    with pytest.raises(UnauthorizedError):
        _decide(sme, idea_id, "stage1", "approve")


def test_admin_may_decide(author, sme, admin, idea_payload):
    idea_id = _submit(author, idea_payload)
    _review(sme, idea_id)
    assert _decide(admin, idea_id, "stage1", "approve").success


def test_second_decision_on_same_stage_is_already_decided(author, sme, dd, idea_payload):
    """Checked before the status test, so the caller learns why."""
    idea_id = _submit(author, idea_payload)
    _review(sme, idea_id)
    _decide(dd, idea_id, "stage1", "approve")

    with pytest.raises(AlreadyDecidedError):
        _decide(dd, idea_id, "stage1", "reject")
    assert _idea(idea_id).status == "stage2_review"


def test_concurrent_decider_loses_on_unique_constraint(monkeypatch, author, sme, dd, idea_payload):
    """A decision row committed by a racing decider is caught at the store."""
    idea_id = _submit(author, idea_payload)
    _review(sme, idea_id)
    _db.session.add(ReviewDecision(
        track="idea", subject_id=idea_id, stage="stage1", review_round=1, decision="reject",
        compiled_comments=COMPILED, decider_id=dd.id,
        previous_status="stage1_review", new_status="rejected",
    ))
    _db.session.commit()

    monkeypatch.setattr(decision_service, "_decision_exists", lambda *args: False)
    with pytest.raises(AlreadyDecidedError):
        _decide(dd, idea_id, "stage1", "approve")

    idea = _idea(idea_id)
    assert idea.status == "stage1_review"
    assert idea.current_revision_number == 1
    assert _db.session.execute(
        select(func.count(ReviewDecision.id)).where(ReviewDecision.subject_id == idea_id)
    ).scalar_one() == 1
    assert _db.session.execute(
        select(func.count(AuditLog.id)).where(AuditLog.action == "decision.make")
    ).scalar_one() == 0


def test_decision_without_reviews_is_not_eligible(author, sme, dd, idea_payload):
    idea_id = _submit(author, idea_payload)
    with pytest.raises(NotEligibleError, match="Not enough"):
        _decide(dd, idea_id, "stage1", "approve")


def test_decision_for_wrong_stage_is_not_eligible(author, sme, dd, idea_payload):
    idea_id = _submit(author, idea_payload)
    _review(sme, idea_id)
    with pytest.raises(NotEligibleError, match="not awaiting a stage2 decision"):
        _decide(dd, idea_id, "stage2", "approve")


def test_compiled_comments_minimum(author, sme, dd, idea_payload):
    idea_id = _submit(author, idea_payload)
    _review(sme, idea_id)
    with pytest.raises(ValidationError):
        decision_service.make_decision(dd.id, "idea", idea_id, "stage1", "approve", "Looks fine.")


def test_unknown_decision_is_a_validation_error(author, sme, dd, idea_payload):
    idea_id = _submit(author, idea_payload)
    _review(sme, idea_id)
    with pytest.raises(ValidationError):
        _decide(dd, idea_id, "stage1", "defer")


# ── 3. Quorum ────────────────────────────────────────────────────────────


def test_role_share_quorum(make_user, author, dd, idea_payload):
    smes = [make_user(f"sme{i}", Roles.SME) for i in range(3)]
    idea_id = _submit(author, idea_payload)

    _review(smes[0], idea_id)
    assert decision_service.list_pending_decisions(dd.id, "idea", "stage1") == []
    with pytest.raises(NotEligibleError):
        _decide(dd, idea_id, "stage1", "approve")

    _review(smes[1], idea_id)
    pending = decision_service.list_pending_decisions(dd.id, "idea", "stage1")
    assert [(p["id"], p["review_count"]) for p in pending] == [(idea_id, 2)]


def test_stale_idea_meets_quorum_with_one_review(make_user, author, dd, idea_payload):
    smes = [make_user(f"sme{i}", Roles.SME) for i in range(3)]
    idea_id = _submit(author, idea_payload)
    _review(smes[0], idea_id)

    _db.session.execute(
        update(Idea).where(Idea.id == idea_id)
        .values(updated_at=datetime.now(timezone.utc) - timedelta(days=8))
    )
    _db.session.commit()

    assert _decide(dd, idea_id, "stage1", "approve").success


def test_quorum_override_from_config(app, make_user, author, dd, idea_payload):
    smes = [make_user(f"sme{i}", Roles.SME) for i in range(3)]
    idea_id = _submit(author, idea_payload)
    _review(smes[0], idea_id)

    app.config["QUORUM_POLICIES"] = {"idea": {"min_reviews": 1}}
    try:
        assert decision_service.can_decide(dd.id, "idea", _idea(idea_id), "stage1")
    finally:
        app.config["QUORUM_POLICIES"] = {}


# ── 4. Revision rounds ───────────────────────────────────────────────────


def test_revise_resubmit_opens_a_second_round(author, sme, dd, idea_payload):
    idea_id = _submit(author, idea_payload)
    _review(sme, idea_id, recommendation="revise")
    _decide(dd, idea_id, "stage1", "revise")

    assert decision_service.list_in_revision(dd.id, "idea", "stage1")[0]["id"] == idea_id

    idea_service.resubmit_idea(author.id, idea_id)
    assert _idea(idea_id).review_round == 2

    # Reviews carry over; the reviewer is not asked again.
    assert review_service.list_reviewable(sme.id, "idea", "stage1") == []
    with pytest.raises(NotEligibleError, match="already reviewed"):
        _review(sme, idea_id)
    assert _db.session.execute(
        select(func.count(Review.id)).where(Review.subject_id == idea_id, Review.reviewer_id == sme.id)
    ).scalar_one() == 1

    result = _decide(dd, idea_id, "stage1", "approve")
    assert result.entity["review_round"] == 2
    assert _idea(idea_id).status == "stage2_review"

    rounds = _db.session.execute(
        select(ReviewDecision.review_round).where(ReviewDecision.subject_id == idea_id)
        .order_by(ReviewDecision.review_round)
    ).scalars().all()
    assert rounds == [1, 2]
