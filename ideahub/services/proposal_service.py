"""
Collaboration proposals — edit suggestions from approved collaborators.

Who may propose:
    - not the owner;
    - the idea has collaboration enabled and sits in draft, stage1_review or
      stage1_revise;
    - the proposer holds an approved CollaborationRequest for the idea;
    - a subject-matter expert may not propose while the idea is in
      stage1_review (they may be reviewing it).

``changed_fields`` records which proposed values differ from the idea at
proposal time, by raw inequality.

Accepting a proposal runs as one unit of work under a lock on the idea:
    1. flip the proposal pending → accepted (compare-and-swap);
    2. snapshot the idea ("Collaboration proposal accepted");
    3. apply the non-null proposed values, or the owner's edited values;
    4. bump current_revision_number.
Rejecting touches only the proposal.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timezone

from sqlalchemy import select, update

from ideahub.core.exceptions import (
    AlreadyDecidedError,
    NotEligibleError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from ideahub.core.idea_patch import IdeaPatch
from ideahub.models import db
from ideahub.models.audit import write_audit
from ideahub.models.collaboration import CollaborationProposal, IdeaVersion
from ideahub.models.idea import Idea
from ideahub.models.workflow import IdeaStatus, ProposalStatus
from ideahub.services import version_service
from ideahub.services.collaboration_request_service import (
    is_approved_collaborator,
    is_open_for_collaboration,
)
from ideahub.services.results import ActionResult
from ideahub.services.role_directory import Permissions, RoleDirectory, Roles
from ideahub.services.unit_of_work import lock_for_update, unit_of_work

logger = logging.getLogger(__name__)

CHANGE_SUMMARY_MAX_LENGTH = 500
ACCEPTED_DESCRIPTION = "Collaboration proposal accepted"

_RESPONSE_ACTIONS = {
    "accept": ProposalStatus.ACCEPTED,
    "reject": ProposalStatus.REJECTED,
}


# ── Private helpers ────────────────────────────────────────────────────────────


def _get_live_idea(idea_id) -> Idea:
    idea = db.session.get(Idea, idea_id)
    if idea is None or idea.is_deleted:
        raise NotFoundError("Idea", idea_id)
    return idea


def _get_proposal(proposal_id) -> CollaborationProposal:
    proposal = db.session.get(CollaborationProposal, proposal_id)
    if proposal is None:
        raise NotFoundError("CollaborationProposal", proposal_id)
    return proposal


def _validate_narrative(collaboration_notes, change_summary):
    errors = {}
    notes = (collaboration_notes or "").strip()
    summary = (change_summary or "").strip()
    if not notes:
        errors["collaboration_notes"] = "required"
    if not summary:
        errors["change_summary"] = "required"
    elif len(summary) > CHANGE_SUMMARY_MAX_LENGTH:
        errors["change_summary"] = f"must be at most {CHANGE_SUMMARY_MAX_LENGTH} characters"
    if errors:
        raise ValidationError("Collaboration notes and a change summary are required.", details=errors)
    return notes, summary


# ── Mutations ──────────────────────────────────────────────────────────────────


def create_proposal(
    collaborator_id,
    idea_id,
    proposed_fields,
    collaboration_notes,
    change_summary,
    *,
    roles: RoleDirectory | None = None,
) -> ActionResult:
    """Submit an edit proposal against another author's idea.

    Args:
        proposed_fields: Mapping of editable field → proposed value; absent or
            null entries mean "no change".

    Raises:
        ValidationError: unknown field, bad value type, missing notes/summary.
        NotFoundError: idea missing or withdrawn.
        NotEligibleError: own idea, collaboration closed, SME conflict.
        UnauthorizedError: proposer is not an approved collaborator.
    """
    patch = IdeaPatch.from_mapping(proposed_fields)
    notes, summary = _validate_narrative(collaboration_notes, change_summary)
    roles = roles or RoleDirectory()

    with unit_of_work():
        idea = _get_live_idea(idea_id)
        if idea.owner_id == collaborator_id:
            raise NotEligibleError("You cannot collaborate on your own idea.")
        if not is_open_for_collaboration(idea):
            raise NotEligibleError("This idea is not open for collaboration.")
        if not is_approved_collaborator(collaborator_id, idea.id):
            raise UnauthorizedError("You must be an approved collaborator to propose changes to this idea.")
        if (
            idea.status == IdeaStatus.STAGE1_REVIEW
            and roles.has_role(collaborator_id, Roles.SME, include_admin=False)
        ):
            raise NotEligibleError(
                "Subject matter experts cannot collaborate on ideas that are in stage 1 review."
            )

        changed = patch.changed_against(idea)
        proposal = CollaborationProposal(
            idea_id=idea.id,
            collaborator_id=collaborator_id,
            original_author_id=idea.owner_id,
            changed_fields=changed,
            collaboration_notes=notes,
            change_summary=summary,
            status=ProposalStatus.PENDING.value,
            **patch.as_proposed_columns(),
        )
        db.session.add(proposal)
        db.session.flush()

        write_audit(
            entity_type="collaboration_proposal",
            entity_id=proposal.id,
            action="proposal.create",
            actor_user_id=collaborator_id,
            diff={"idea_id": idea.id, "changed_fields": changed},
        )

    logger.info(
        "Collaboration proposal submitted",
        extra={"idea_id": idea_id, "collaborator_id": collaborator_id, "changed_fields": changed},
    )
    return ActionResult(True, proposal.to_dict(), "Collaboration proposal submitted successfully.")


def respond_to_proposal(
    author_id,
    proposal_id,
    action,
    review_notes=None,
    edited_proposal=None,
) -> ActionResult:
    """Accept or reject a pending proposal as the idea's original author.

    Args:
        action: "accept" or "reject".
        review_notes: Optional note back to the collaborator.
        edited_proposal: Optional mapping overriding proposed values before
            they are applied (accept only).

    Raises:
        ValidationError: bad action or edited values.
        NotFoundError: proposal or idea missing.
        UnauthorizedError: caller is not the original author.
        AlreadyDecidedError: proposal already accepted/rejected.
    """
    new_status = _RESPONSE_ACTIONS.get(action)
    if new_status is None:
        raise ValidationError("Invalid action. Must be one of: accept, reject",
                              details={"action": "invalid"})
    edits = IdeaPatch.from_mapping(edited_proposal) if edited_proposal else None
    review_notes = (review_notes or "").strip() or None

    with unit_of_work():
        proposal = _get_proposal(proposal_id)
        if proposal.original_author_id != author_id:
            raise UnauthorizedError("Only the idea author can respond to this proposal.")

        idea = lock_for_update(Idea, proposal.idea_id, Idea.active_filter())
        if idea is None:
            raise NotFoundError("Idea", proposal.idea_id)

        result = db.session.execute(
            update(CollaborationProposal)
            .where(
                CollaborationProposal.id == proposal.id,
                CollaborationProposal.status == ProposalStatus.PENDING.value,
            )
            .values(
                status=new_status.value,
                review_notes=review_notes,
                reviewed_at=datetime.now(timezone.utc),
                reviewed_by=author_id,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise AlreadyDecidedError("This proposal has already been reviewed.")
        db.session.refresh(proposal)

        diff = {"status": {"old": ProposalStatus.PENDING.value, "new": new_status.value}}
        if new_status == ProposalStatus.ACCEPTED:
            patch = IdeaPatch.from_proposal(proposal)
            if edits is not None:
                patch = patch.merged_with(edits)
            changed = patch.changed_against(idea)

            version = version_service.create_snapshot(
                idea,
                changed_by=author_id,
                change_description=ACCEPTED_DESCRIPTION,
                changed_fields=changed,
                proposal_id=proposal.id,
            )
            patch.apply_to(idea)
            old_revision = idea.current_revision_number
            idea.current_revision_number = old_revision + 1
            diff.update({
                "version_number": version.version_number,
                "changed_fields": changed,
                "current_revision_number": {"old": old_revision, "new": idea.current_revision_number},
            })

        write_audit(
            entity_type="collaboration_proposal",
            entity_id=proposal.id,
            action=f"proposal.{action}",
            actor_user_id=author_id,
            diff=diff,
        )

    logger.info(
        "Collaboration proposal %s",
        new_status.value,
        extra={"proposal_id": proposal_id, "idea_id": proposal.idea_id, "author_id": author_id},
    )
    return ActionResult(True, proposal.to_dict(), f"Proposal {new_status.value} successfully.")


# ── Queries ────────────────────────────────────────────────────────────────────


def get_proposal(user_id, proposal_id, *, roles: RoleDirectory | None = None) -> dict:
    """Proposal detail, visible to its collaborator, the idea author, and admins."""
    proposal = _get_proposal(proposal_id)
    roles = roles or RoleDirectory()
    if user_id not in (proposal.collaborator_id, proposal.original_author_id) and not roles.has_role(
        user_id, Roles.ADMIN
    ):
        raise UnauthorizedError("You do not have permission to view this proposal.")
    d = proposal.to_dict()
    idea = proposal.idea
    d["current"] = {name: getattr(idea, name) for name in d["changed_fields"]} if idea else {}
    if "collaboration_deadline" in d["current"] and d["current"]["collaboration_deadline"]:
        d["current"]["collaboration_deadline"] = d["current"]["collaboration_deadline"].isoformat()
    return d


def list_pending_proposals(user_id, idea_id, *, roles: RoleDirectory | None = None) -> list[dict]:
    """Pending proposals on one idea, oldest first.

    Visible to the owner and to holders of ``manage.collaboration-proposals``.
    """
    idea = _get_live_idea(idea_id)
    roles = roles or RoleDirectory()
    if idea.owner_id != user_id and not roles.has_permission(user_id, Permissions.COLLABORATION_PROPOSALS):
        raise UnauthorizedError("You can only review proposals for your own ideas.")
    stmt = (
        select(CollaborationProposal)
        .where(
            CollaborationProposal.idea_id == idea.id,
            CollaborationProposal.status == ProposalStatus.PENDING.value,
        )
        .order_by(CollaborationProposal.created_at.asc(), CollaborationProposal.id.asc())
    )
    return [p.to_dict() for p in db.session.execute(stmt).scalars()]


def my_proposals(collaborator_id) -> list[dict]:
    stmt = (
        select(CollaborationProposal)
        .where(CollaborationProposal.collaborator_id == collaborator_id)
        .order_by(CollaborationProposal.created_at.desc(), CollaborationProposal.id.desc())
    )
    return [p.to_dict() for p in db.session.execute(stmt).scalars()]


def received_proposals(author_id) -> list[dict]:
    """Proposals on the author's ideas grouped per idea, with status counts."""
    stmt = (
        select(CollaborationProposal)
        .where(CollaborationProposal.original_author_id == author_id)
        .order_by(CollaborationProposal.created_at.desc(), CollaborationProposal.id.desc())
    )
    groups: dict[int, dict] = {}
    for proposal in db.session.execute(stmt).scalars():
        group = groups.get(proposal.idea_id)
        if group is None:
            group = groups[proposal.idea_id] = {
                "idea_id": proposal.idea_id,
                "idea_title": proposal.idea.title if proposal.idea else None,
                "proposals": [],
                "counts": Counter({s.value: 0 for s in ProposalStatus}),
            }
        group["proposals"].append(proposal.to_dict())
        group["counts"][proposal.status] += 1
    for group in groups.values():
        group["counts"] = dict(group["counts"])
    return list(groups.values())


def manage_view(owner_id, idea_id, *, roles: RoleDirectory | None = None) -> dict:
    """Owner's collaboration page: every proposal plus the version history."""
    idea = _get_live_idea(idea_id)
    roles = roles or RoleDirectory()
    if idea.owner_id != owner_id and not roles.has_role(owner_id, Roles.ADMIN):
        raise UnauthorizedError("You can only manage collaboration on your own ideas.")
    proposals = db.session.execute(
        select(CollaborationProposal)
        .where(CollaborationProposal.idea_id == idea.id)
        .order_by(CollaborationProposal.created_at.desc(), CollaborationProposal.id.desc())
    ).scalars()
    versions = db.session.execute(
        select(IdeaVersion)
        .where(IdeaVersion.idea_id == idea.id)
        .order_by(IdeaVersion.version_number.desc())
    ).scalars()
    return {
        "idea": idea.to_dict(),
        "proposals": [p.to_dict() for p in proposals],
        "versions": [v.to_dict() for v in versions],
    }
