"""
Tests for challenges and the challenge-submission review track.

Covers:
    - challenge creation rights and validation
    - one submission per user per challenge, open challenges only
    - the shared review machine with the challenge track's rules:
      10-char review comments, ≥2 reviews quorum, permission-based decider
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update

from ideahub.core.exceptions import (
    ConflictError,
    NotEligibleError,
    UnauthorizedError,
    ValidationError,
)
from ideahub.models import db as _db
from ideahub.models.challenge import Challenge, ChallengeSubmission
from ideahub.services import challenge_service, decision_service, review_service
from ideahub.services.role_directory import Roles

SUBMISSION = {
    "title": "Shared e-bike depots",
    "description": "Depots at the three largest park-and-ride sites.",
    "motivation": "Cuts last-mile car trips.",
    "original_disclaimer": "This is my own work.",
    "cost_of_implementation": "125000.50",
}


def _deadline(days=14):
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


@pytest.fixture()
def challenge_id(dd):
    return challenge_service.create_challenge(dd.id, {
        "title": "Greener commuting",
        "description": "Ideas that cut commuting emissions.",
        "deadline": _deadline(),
    }).entity["id"]


def _enter(user, challenge_id, submit_now=True, **overrides):
    return challenge_service.create_submission(
        user.id, challenge_id, {**SUBMISSION, **overrides}, submit_now=submit_now,
    )


# ── 1. Challenges ────────────────────────────────────────────────────────


def test_deputy_director_creates_challenge(challenge_id):
    challenge = challenge_service.get_challenge(challenge_id)
    assert challenge["status"] == "active"
    assert challenge["is_open"] is True
    assert challenge["submission_count"] == 0


def test_regular_user_cannot_create_challenge(author):
    with pytest.raises(UnauthorizedError):
        challenge_service.create_challenge(author.id, {
            "title": "Mine", "description": "Mine", "deadline": _deadline(),
        })


def test_deadline_must_be_in_the_future(dd):
    with pytest.raises(ValidationError):
        challenge_service.create_challenge(dd.id, {
            "title": "Late", "description": "Already over", "deadline": _deadline(-1),
        })


def test_open_only_listing(challenge_id):
    _db.session.execute(
        update(Challenge).where(Challenge.id == challenge_id)
        .values(deadline=datetime.now(timezone.utc) - timedelta(hours=1))
    )
    _db.session.commit()
    assert challenge_service.list_challenges(open_only=True) == []
    assert len(challenge_service.list_challenges()) == 1


# ── 2. Submissions ───────────────────────────────────────────────────────


def test_submission_enters_stage1_review(author, challenge_id):
    result = _enter(author, challenge_id)
    assert result.message == "Submission sent for review."
    assert result.entity["status"] == "stage1_review"


def test_draft_submission_then_submit(author, challenge_id):
    draft = _enter(author, challenge_id, submit_now=False, motivation=None)
    assert draft.entity["status"] == "draft"

    with pytest.raises(ValidationError):
        challenge_service.update_submission(author.id, draft.entity["id"], {}, submit_now=True)

    result = challenge_service.update_submission(
        author.id, draft.entity["id"], {"motivation": "Cuts last-mile car trips."}, submit_now=True,
    )
    assert result.entity["status"] == "stage1_review"


def test_one_submission_per_challenge(author, challenge_id):
    _enter(author, challenge_id)
    with pytest.raises(ConflictError):
        _enter(author, challenge_id)


def test_closed_challenge_rejects_submissions(author, challenge_id):
    _db.session.execute(
        update(Challenge).where(Challenge.id == challenge_id).values(status="closed")
    )
    _db.session.commit()
    with pytest.raises(NotEligibleError, match="closed"):
        _enter(author, challenge_id)


def test_negative_cost_is_rejected(author, challenge_id):
    with pytest.raises(ValidationError):
        _enter(author, challenge_id, cost_of_implementation=-5)


def test_only_owner_edits_submission(author, collaborator, challenge_id):
    submission_id = _enter(author, challenge_id, submit_now=False).entity["id"]
    with pytest.raises(UnauthorizedError):
        challenge_service.update_submission(collaborator.id, submission_id, {"title": "Taken"})


# ── 3. Review & decision ─────────────────────────────────────────────────


def test_challenge_decision_needs_two_reviews(author, make_user, dd, challenge_id):
    first = make_user("sme-a", Roles.SME)
    second = make_user("sme-b", Roles.SME)
    submission_id = _enter(author, challenge_id).entity["id"]

    review_service.submit_review(first.id, "challenge", submission_id, "stage1", "approve", "Solid plan.")
    with pytest.raises(NotEligibleError, match="Not enough"):
        decision_service.make_decision(dd.id, "challenge", submission_id, "stage1", "approve", "Go ahead.")

    review_service.submit_review(second.id, "challenge", submission_id, "stage1", "approve", "Worth a pilot.")
    result = decision_service.make_decision(dd.id, "challenge", submission_id, "stage1", "approve", "Go ahead.")
    assert result.message == "Decision recorded: the submission was approved and moved forward."

    submission = _db.session.get(ChallengeSubmission, submission_id)
    assert submission.status == "stage2_review"
    assert submission.current_revision_number == 2


def test_challenge_review_comment_minimum(author, sme, challenge_id):
    submission_id = _enter(author, challenge_id).entity["id"]
    with pytest.raises(ValidationError):
        review_service.submit_review(sme.id, "challenge", submission_id, "stage1", "approve", "Too short")


def test_challenge_decider_is_a_permission(author, make_user, challenge_id):
    """A board member without the decision permission may not decide."""
    board = make_user("board", Roles.BOARD)
    submission_id = _enter(author, challenge_id).entity["id"]
    with pytest.raises(UnauthorizedError):
        decision_service.make_decision(board.id, "challenge", submission_id, "stage1", "approve", "Go.")


def test_unknown_track(author):
    with pytest.raises(ValidationError):
        review_service.list_reviewable(author.id, "poll", "stage1")
