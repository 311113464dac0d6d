"""
Tests for the collaboration request broker.

Covers:
    - eligibility: not own idea, collaboration enabled, eligible status
    - one blocking request per (idea, requester)
    - owner-only, single response; cancel only while pending
    - inbox / outbox / open-ideas listings
"""

import pytest
from sqlalchemy import select

from ideahub.core.exceptions import (
    AlreadyDecidedError,
    ConflictError,
    NotEligibleError,
    UnauthorizedError,
    ValidationError,
)
from ideahub.models import db as _db
from ideahub.models.audit import AuditLog
from ideahub.models.collaboration import CollaborationRequest
from ideahub.models.idea import Idea
from ideahub.services import collaboration_request_service as requests_svc
from ideahub.services import idea_service


@pytest.fixture()
def open_idea(author, idea_payload):
    return idea_service.create_idea(author.id, idea_payload()).entity["id"]


def _send(user, idea_id, message="I can help with the cost model."):
    return requests_svc.send_request(user.id, idea_id, message)


# ── 1. Send ──────────────────────────────────────────────────────────────


def test_send_creates_pending_request(author, collaborator, open_idea):
    result = _send(collaborator, open_idea)
    assert result.message == "Collaboration request sent successfully."
    assert result.entity["status"] == "pending"
    assert result.entity["owner_id"] == author.id
    assert result.entity["requester_id"] == collaborator.id


def test_cannot_request_on_own_idea(author, open_idea):
    with pytest.raises(NotEligibleError, match="your own idea"):
        _send(author, open_idea)


def test_collaboration_disabled_is_not_eligible(author, collaborator, idea_payload):
    idea_id = idea_service.create_idea(
        author.id, idea_payload(collaboration_enabled=False, collaboration_deadline=None)
    ).entity["id"]
    with pytest.raises(NotEligibleError, match="not available"):
        _send(collaborator, idea_id)


def test_idea_past_stage1_is_not_eligible(collaborator, open_idea):
    _db.session.get(Idea, open_idea).status = "stage2_review"
    _db.session.commit()
    with pytest.raises(NotEligibleError):
        _send(collaborator, open_idea)


def test_duplicate_pending_request_conflicts(collaborator, open_idea):
    _send(collaborator, open_idea)
    with pytest.raises(ConflictError):
        _send(collaborator, open_idea)


def test_message_length_limit(collaborator, open_idea):
    with pytest.raises(ValidationError):
        _send(collaborator, open_idea, message="m" * 1001)


# ── 2. Respond ───────────────────────────────────────────────────────────


def test_owner_approves_once(author, collaborator, open_idea):
    req_id = _send(collaborator, open_idea).entity["id"]
    result = requests_svc.respond(author.id, req_id, "approve")
    assert result.entity["status"] == "approved"
    assert result.entity["responded_at"] is not None
    assert requests_svc.is_approved_collaborator(collaborator.id, open_idea)

    with pytest.raises(AlreadyDecidedError):
        requests_svc.respond(author.id, req_id, "reject")


def test_only_owner_responds(collaborator, make_user, open_idea):
    outsider = make_user("outsider")
    req_id = _send(collaborator, open_idea).entity["id"]
    with pytest.raises(UnauthorizedError):
        requests_svc.respond(outsider.id, req_id, "approve")


def test_invalid_action(author, collaborator, open_idea):
    req_id = _send(collaborator, open_idea).entity["id"]
    with pytest.raises(ValidationError):
        requests_svc.respond(author.id, req_id, "maybe")


def test_rejected_requester_cannot_ask_again_by_default(author, collaborator, open_idea):
    req_id = _send(collaborator, open_idea).entity["id"]
    requests_svc.respond(author.id, req_id, "reject")
    with pytest.raises(ConflictError):
        _send(collaborator, open_idea)


def test_rerequest_after_rejection_when_enabled(app, author, collaborator, open_idea):
    req_id = _send(collaborator, open_idea).entity["id"]
    requests_svc.respond(author.id, req_id, "reject")

    app.config["COLLAB_REREQUEST_AFTER_REJECTION"] = True
    try:
        result = _send(collaborator, open_idea)
    finally:
        app.config["COLLAB_REREQUEST_AFTER_REJECTION"] = False
    assert result.entity["status"] == "pending"


# ── 3. Cancel ────────────────────────────────────────────────────────────


def test_cancel_deletes_and_audits(collaborator, open_idea):
    req_id = _send(collaborator, open_idea).entity["id"]
    result = requests_svc.cancel(collaborator.id, req_id)
    assert result.message == "Collaboration request cancelled."
    assert _db.session.get(CollaborationRequest, req_id) is None

    audit = _db.session.execute(
        select(AuditLog).where(AuditLog.action == "collaboration_request.cancel")
    ).scalar_one()
    assert audit.diff["deleted"]["id"] == req_id


def test_cannot_cancel_answered_request(author, collaborator, open_idea):
    req_id = _send(collaborator, open_idea).entity["id"]
    requests_svc.respond(author.id, req_id, "approve")
    with pytest.raises(NotEligibleError):
        requests_svc.cancel(collaborator.id, req_id)


def test_only_requester_cancels(author, collaborator, open_idea):
    req_id = _send(collaborator, open_idea).entity["id"]
    with pytest.raises(UnauthorizedError):
        requests_svc.cancel(author.id, req_id)


# ── 4. Listings ──────────────────────────────────────────────────────────


def test_inbox_outbox_and_open_ideas(author, collaborator, open_idea):
    assert requests_svc.list_open_ideas(collaborator.id)[0]["request_status"] is None
    assert requests_svc.list_open_ideas(author.id) == []

    _send(collaborator, open_idea)
    assert [r["requester_id"] for r in requests_svc.inbox(author.id)] == [collaborator.id]
    assert [r["idea_id"] for r in requests_svc.outbox(collaborator.id)] == [open_idea]
    assert requests_svc.list_open_ideas(collaborator.id)[0]["request_status"] == "pending"
