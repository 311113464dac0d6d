"""
Collaboration Request Broker — the handshake that gates proposal submission.

Lifecycle:
    pending → approved | rejected     (idea owner responds, terminal)
    pending → (deleted)               (requester cancels)

Approval only unlocks proposal submission; it adds no membership record.

Re-requesting after a rejection is governed by the
``COLLAB_REREQUEST_AFTER_REJECTION`` config flag:
    False (default)  any earlier request for (idea, requester) blocks a new one
    True             only a pending or approved request blocks

Responses and cancellations are compare-and-swap updates on
``status = 'pending'``, so of two concurrent responses exactly one wins and
the other gets AlreadyDecidedError.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError

from ideahub.core.exceptions import (
    AlreadyDecidedError,
    ConflictError,
    NotEligibleError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from ideahub.models import db
from ideahub.models.audit import write_audit
from ideahub.models.collaboration import CollaborationRequest
from ideahub.models.idea import Idea
from ideahub.models.workflow import COLLABORATION_ELIGIBLE_STATUSES, RequestStatus
from ideahub.services.results import ActionResult
from ideahub.services.unit_of_work import unit_of_work

logger = logging.getLogger(__name__)

MESSAGE_MAX_LENGTH = 1000

_RESPONSE_ACTIONS = {
    "approve": RequestStatus.APPROVED,
    "reject": RequestStatus.REJECTED,
}


# ── Private helpers ────────────────────────────────────────────────────────────


def _get_live_idea(idea_id) -> Idea:
    idea = db.session.get(Idea, idea_id)
    if idea is None or idea.is_deleted:
        raise NotFoundError("Idea", idea_id)
    return idea


def _get_request(request_id) -> CollaborationRequest:
    req = db.session.get(CollaborationRequest, request_id)
    if req is None:
        raise NotFoundError("CollaborationRequest", request_id)
    return req


def is_open_for_collaboration(idea) -> bool:
    return bool(idea.collaboration_enabled) and idea.status in COLLABORATION_ELIGIBLE_STATUSES


def _blocking_statuses() -> list[str]:
    if current_app.config.get("COLLAB_REREQUEST_AFTER_REJECTION", False):
        return [RequestStatus.PENDING.value, RequestStatus.APPROVED.value]
    return [s.value for s in RequestStatus]


def _latest_request(idea_id, requester_id) -> CollaborationRequest | None:
    stmt = (
        select(CollaborationRequest)
        .where(
            CollaborationRequest.idea_id == idea_id,
            CollaborationRequest.requester_id == requester_id,
        )
        .order_by(CollaborationRequest.created_at.desc(), CollaborationRequest.id.desc())
        .limit(1)
    )
    return db.session.execute(stmt).scalar_one_or_none()


# ── Queries ────────────────────────────────────────────────────────────────────


def is_approved_collaborator(user_id, idea_id) -> bool:
    stmt = select(CollaborationRequest.id).where(
        CollaborationRequest.idea_id == idea_id,
        CollaborationRequest.requester_id == user_id,
        CollaborationRequest.status == RequestStatus.APPROVED.value,
    )
    return db.session.execute(stmt).first() is not None


def list_open_ideas(user_id) -> list[dict]:
    """Ideas open for collaboration that the user does not own.

    Each entry carries ``request_status``: the user's latest request state,
    or None when they have not asked yet.
    """
    stmt = (
        select(Idea)
        .where(
            Idea.collaboration_enabled.is_(True),
            Idea.status.in_([s.value for s in COLLABORATION_ELIGIBLE_STATUSES]),
            Idea.owner_id != user_id,
            Idea.active_filter(),
        )
        .order_by(Idea.created_at.desc(), Idea.id.desc())
    )
    items = []
    for idea in db.session.execute(stmt).scalars():
        d = idea.to_dict()
        latest = _latest_request(idea.id, user_id)
        d["request_status"] = latest.status if latest else None
        items.append(d)
    return items


def inbox(owner_id) -> list[dict]:
    """Requests received on the owner's ideas, newest first."""
    stmt = (
        select(CollaborationRequest)
        .where(CollaborationRequest.owner_id == owner_id)
        .order_by(CollaborationRequest.created_at.desc(), CollaborationRequest.id.desc())
    )
    return [r.to_dict() for r in db.session.execute(stmt).scalars()]


def outbox(requester_id) -> list[dict]:
    """Requests the user has sent, newest first."""
    stmt = (
        select(CollaborationRequest)
        .where(CollaborationRequest.requester_id == requester_id)
        .order_by(CollaborationRequest.created_at.desc(), CollaborationRequest.id.desc())
    )
    return [r.to_dict() for r in db.session.execute(stmt).scalars()]


# ── Mutations ──────────────────────────────────────────────────────────────────


def send_request(requester_id, idea_id, message=None) -> ActionResult:
    """Ask the idea owner for permission to propose edits.

    Raises:
        NotFoundError: idea missing or withdrawn.
        NotEligibleError: own idea, collaboration disabled, status not open.
        ValidationError: message too long.
        ConflictError: a blocking request already exists.
    """
    message = (message or "").strip() or None
    if message and len(message) > MESSAGE_MAX_LENGTH:
        raise ValidationError(
            f"Message may not exceed {MESSAGE_MAX_LENGTH} characters.",
            details={"message": "too long"},
        )

    with unit_of_work():
        idea = _get_live_idea(idea_id)
        if idea.owner_id == requester_id:
            raise NotEligibleError("You cannot request collaboration on your own idea.")
        if not is_open_for_collaboration(idea):
            raise NotEligibleError("Collaboration is not available for this idea.")

        existing = db.session.execute(
            select(CollaborationRequest.id).where(
                CollaborationRequest.idea_id == idea.id,
                CollaborationRequest.requester_id == requester_id,
                CollaborationRequest.status.in_(_blocking_statuses()),
            )
        ).first()
        if existing is not None:
            raise ConflictError("You have already sent a collaboration request for this idea.")

        req = CollaborationRequest(
            idea_id=idea.id,
            requester_id=requester_id,
            owner_id=idea.owner_id,
            message=message,
            status=RequestStatus.PENDING.value,
        )
        db.session.add(req)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise ConflictError(
                "You have already sent a collaboration request for this idea."
            ) from exc

        write_audit(
            entity_type="collaboration_request",
            entity_id=req.id,
            action="collaboration_request.send",
            actor_user_id=requester_id,
            diff={"idea_id": idea.id, "status": RequestStatus.PENDING.value},
        )

    logger.info(
        "Collaboration request sent",
        extra={"idea_id": idea_id, "requester_id": requester_id, "collab_request_id": req.id},
    )
    return ActionResult(True, req.to_dict(), "Collaboration request sent successfully.")


def respond(owner_id, request_id, action) -> ActionResult:
    """Approve or reject a pending request on one of the owner's ideas.

    Raises:
        ValidationError: action not "approve"/"reject".
        NotFoundError: request missing.
        UnauthorizedError: caller is not the idea owner.
        AlreadyDecidedError: request is no longer pending.
    """
    new_status = _RESPONSE_ACTIONS.get(action)
    if new_status is None:
        raise ValidationError("Invalid action. Must be one of: approve, reject",
                              details={"action": "invalid"})

    with unit_of_work():
        req = _get_request(request_id)
        if req.owner_id != owner_id:
            raise UnauthorizedError("You cannot respond to this request.")

        result = db.session.execute(
            update(CollaborationRequest)
            .where(
                CollaborationRequest.id == req.id,
                CollaborationRequest.status == RequestStatus.PENDING.value,
            )
            .values(status=new_status.value, responded_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise AlreadyDecidedError("This request has already been responded to.")
        db.session.refresh(req)

        write_audit(
            entity_type="collaboration_request",
            entity_id=req.id,
            action=f"collaboration_request.{action}",
            actor_user_id=owner_id,
            diff={"status": {"old": RequestStatus.PENDING.value, "new": new_status.value}},
        )

    logger.info(
        "Collaboration request %s",
        new_status.value,
        extra={"collab_request_id": request_id, "owner_id": owner_id},
    )
    return ActionResult(True, req.to_dict(), f"Collaboration request {new_status.value} successfully.")


def cancel(requester_id, request_id) -> ActionResult:
    """Withdraw a pending request.  Hard delete; the audit row keeps the trace.

    Raises:
        NotFoundError: request missing.
        UnauthorizedError: caller did not send it.
        NotEligibleError: request already answered.
        AlreadyDecidedError: owner answered while the cancel was in flight.
    """
    with unit_of_work():
        req = _get_request(request_id)
        if req.requester_id != requester_id:
            raise UnauthorizedError("You cannot cancel this request.")
        if req.status != RequestStatus.PENDING:
            raise NotEligibleError("Only pending requests can be cancelled.")

        snapshot = req.to_dict()
        result = db.session.execute(
            delete(CollaborationRequest)
            .where(
                CollaborationRequest.id == req.id,
                CollaborationRequest.status == RequestStatus.PENDING.value,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise AlreadyDecidedError("This request has already been responded to.")
        db.session.expunge(req)

        write_audit(
            entity_type="collaboration_request",
            entity_id=request_id,
            action="collaboration_request.cancel",
            actor_user_id=requester_id,
            diff={"deleted": snapshot},
        )

    logger.info(
        "Collaboration request cancelled",
        extra={"collab_request_id": request_id, "requester_id": requester_id},
    )
    return ActionResult(True, None, "Collaboration request cancelled.")
