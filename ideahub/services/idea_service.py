"""
Idea authoring — create, edit, submit, withdraw, collaboration toggle, likes.

Content rules (checked whenever an idea enters review):
    title                         10–50 characters
    abstract, problem_statement,
    proposed_solution,
    cost_benefit_analysis,
    declaration_of_interests      100–400 characters each
    team_members                  at least one when team_effort is set
    collaboration_deadline        required when collaboration_enabled is set

Drafts only need a valid title; the rest is enforced on submit.  Authors may
edit only in draft, stage1_revise and stage2_revise.
"""

from __future__ import annotations

import logging

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ideahub.core.exceptions import NotEligibleError, NotFoundError, UnauthorizedError, ValidationError
from ideahub.core.idea_patch import IdeaPatch, snapshot_fields
from ideahub.models import db
from ideahub.models.audit import write_audit
from ideahub.models.idea import Idea, IdeaLike, TeamMember
from ideahub.models.workflow import AUTHOR_EDITABLE_STATUSES, AUTHOR_TRANSITIONS, IdeaStatus
from ideahub.services.results import ActionResult
from ideahub.services.submission_flow import submit_for_review
from ideahub.services.unit_of_work import lock_for_update, unit_of_work

logger = logging.getLogger(__name__)

TITLE_MIN, TITLE_MAX = 10, 50
SECTION_MIN, SECTION_MAX = 100, 400
NARRATIVE_FIELDS = (
    "abstract",
    "problem_statement",
    "proposed_solution",
    "cost_benefit_analysis",
    "declaration_of_interests",
)
TEAM_FIELD_MAX = 255


# ── Validation ─────────────────────────────────────────────────────────────────


def _validate_content(values: dict, team_members: list, *, complete: bool) -> None:
    errors = {}
    title = (values.get("title") or "").strip()
    if not TITLE_MIN <= len(title) <= TITLE_MAX:
        errors["title"] = f"must be {TITLE_MIN}-{TITLE_MAX} characters"

    for name in NARRATIVE_FIELDS:
        text = (values.get(name) or "").strip()
        if not text and not complete:
            continue
        if not SECTION_MIN <= len(text) <= SECTION_MAX:
            errors[name] = f"must be {SECTION_MIN}-{SECTION_MAX} characters"

    if values.get("team_effort") and not team_members:
        errors["team_members"] = "At least one team member is required when team effort is enabled."
    if values.get("collaboration_enabled") and not values.get("collaboration_deadline"):
        errors["collaboration_deadline"] = "required when collaboration is enabled"

    if errors:
        raise ValidationError("The idea is incomplete or invalid.", details=errors)


def _parse_team_members(raw) -> list[dict] | None:
    """Validate team member tuples; None means "leave unchanged"."""
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise ValidationError("team_members must be a list")

    members = []
    for idx, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ValidationError(f"team_members[{idx}] must be an object")
        name = (item.get("name") or "").strip()
        role = (item.get("role") or "").strip()
        email = (item.get("email") or "").strip()
        if not name or not role or not email:
            raise ValidationError(
                f"team_members[{idx}] needs a name, email and role",
                details={f"team_members.{idx}": "incomplete"},
            )
        if max(len(name), len(role), len(email)) > TEAM_FIELD_MAX:
            raise ValidationError(f"team_members[{idx}] fields may not exceed {TEAM_FIELD_MAX} characters")
        try:
            email = validate_email(email, check_deliverability=False).normalized
        except EmailNotValidError as e:
            raise ValidationError(
                f"The team member email must be a valid email address: {e}",
                details={f"team_members.{idx}.email": "invalid"},
            ) from e
        members.append({"name": name, "email": email, "role": role})
    return members


def _split_payload(data: dict):
    data = dict(data or {})
    team_members = _parse_team_members(data.pop("team_members", None))
    attachment = data.pop("attachment", None)
    patch = IdeaPatch.from_mapping(data)
    return patch, team_members, attachment


# ── Private helpers ────────────────────────────────────────────────────────────


def _get_live_idea(idea_id, *, lock=False) -> Idea:
    if lock:
        idea = lock_for_update(Idea, idea_id, Idea.active_filter())
    else:
        idea = db.session.get(Idea, idea_id)
        if idea is not None and idea.is_deleted:
            idea = None
    if idea is None:
        raise NotFoundError("Idea", idea_id)
    return idea


def _get_owned_idea(owner_id, idea_id) -> Idea:
    idea = _get_live_idea(idea_id, lock=True)
    if idea.owner_id != owner_id:
        raise UnauthorizedError("You do not have permission to modify this idea.")
    return idea


def _require_editable(idea) -> None:
    if idea.status not in AUTHOR_EDITABLE_STATUSES:
        raise NotEligibleError("This idea cannot be edited in its current status.")


def _replace_team(idea, members) -> None:
    idea.team_members.clear()
    for m in members:
        idea.team_members.append(TeamMember(name=m["name"], email=m["email"], role=m["role"]))


def _apply_attachment(idea, attachment) -> None:
    if not isinstance(attachment, dict) or not attachment.get("path"):
        raise ValidationError("attachment needs at least a path", details={"attachment": "invalid"})
    idea.attachment_path = attachment["path"]
    idea.attachment_name = attachment.get("name")
    idea.attachment_mime = attachment.get("mime")


# ── Queries ────────────────────────────────────────────────────────────────────


def get_idea(idea_id) -> dict:
    return _get_live_idea(idea_id).to_dict(include_team=True)


def list_my_ideas(owner_id) -> list[dict]:
    stmt = (
        select(Idea)
        .where(Idea.owner_id == owner_id, Idea.active_filter())
        .order_by(Idea.created_at.desc(), Idea.id.desc())
    )
    return [i.to_dict() for i in db.session.execute(stmt).scalars()]


# ── Mutations ──────────────────────────────────────────────────────────────────


def create_idea(owner_id, data, *, submit_now=True) -> ActionResult:
    """Create an idea, either straight into stage 1 review or as a draft."""
    patch, team_members, attachment = _split_payload(data)
    values = dict(patch.items())
    _validate_content(values, team_members or [], complete=submit_now)

    with unit_of_work():
        idea = Idea(owner_id=owner_id, status=IdeaStatus.DRAFT.value)
        patch.apply_to(idea)
        idea.title = idea.title.strip()
        if team_members:
            _replace_team(idea, team_members)
        if attachment is not None:
            _apply_attachment(idea, attachment)
        db.session.add(idea)
        if submit_now:
            submit_for_review(idea, "idea")
        db.session.flush()

        write_audit(
            entity_type="idea",
            entity_id=idea.id,
            action="idea.create",
            actor_user_id=owner_id,
            diff={"status": idea.status, "title": idea.title},
        )

    logger.info("Idea created", extra={"idea_id": idea.id, "owner_id": owner_id, "status": idea.status})
    message = "Idea submitted for review." if submit_now else "Idea saved as draft."
    return ActionResult(True, idea.to_dict(include_team=True), message)


def update_idea(owner_id, idea_id, data) -> ActionResult:
    """Edit an idea in draft or a revise status.  Null values leave fields as-is."""
    patch, team_members, attachment = _split_payload(data)

    with unit_of_work():
        idea = _get_owned_idea(owner_id, idea_id)
        _require_editable(idea)

        merged = {**snapshot_fields(idea), **dict(patch.items())}
        members = team_members if team_members is not None else [m.to_dict() for m in idea.team_members]
        _validate_content(merged, members, complete=idea.status != IdeaStatus.DRAFT)

        changed = patch.changed_against(idea)
        patch.apply_to(idea)
        if team_members is not None:
            _replace_team(idea, team_members)
            changed.append("team_members")
        if attachment is not None:
            _apply_attachment(idea, attachment)
            changed.append("attachment")

        write_audit(
            entity_type="idea",
            entity_id=idea.id,
            action="idea.update",
            actor_user_id=owner_id,
            diff={"changed_fields": changed},
        )

    logger.info("Idea updated", extra={"idea_id": idea_id, "owner_id": owner_id})
    return ActionResult(True, idea.to_dict(include_team=True), "Idea updated successfully.")


def submit_idea(owner_id, idea_id) -> ActionResult:
    """Send a draft, or a revised idea, (back) into review."""
    with unit_of_work():
        idea = _get_owned_idea(owner_id, idea_id)
        if idea.status not in AUTHOR_TRANSITIONS:
            raise NotEligibleError("This idea cannot be submitted in its current status.")
        members = [m.to_dict() for m in idea.team_members]
        _validate_content(snapshot_fields(idea), members, complete=True)
        old_status, new_status = submit_for_review(idea, "idea")

        write_audit(
            entity_type="idea",
            entity_id=idea.id,
            action="idea.submit",
            actor_user_id=owner_id,
            diff={"status": {"old": old_status, "new": new_status}, "review_round": idea.review_round},
        )

    logger.info(
        "Idea submitted",
        extra={"idea_id": idea_id, "owner_id": owner_id, "new_status": new_status},
    )
    message = "Idea submitted for review." if old_status == IdeaStatus.DRAFT else "Idea resubmitted for review."
    return ActionResult(True, idea.to_dict(), message)


def resubmit_idea(owner_id, idea_id) -> ActionResult:
    """Return a revised idea to the review status of the stage that sent it back."""
    idea = _get_live_idea(idea_id)
    if idea.status == IdeaStatus.DRAFT:
        raise NotEligibleError("Draft ideas are submitted, not resubmitted.")
    return submit_idea(owner_id, idea_id)


def withdraw_idea(owner_id, idea_id) -> ActionResult:
    """Soft-delete an idea the author still controls."""
    with unit_of_work():
        idea = _get_owned_idea(owner_id, idea_id)
        if idea.status not in AUTHOR_EDITABLE_STATUSES:
            raise NotEligibleError("This idea cannot be withdrawn in its current status.")
        idea.soft_delete()

        write_audit(
            entity_type="idea",
            entity_id=idea.id,
            action="idea.withdraw",
            actor_user_id=owner_id,
            diff={"status": idea.status},
        )

    logger.info("Idea withdrawn", extra={"idea_id": idea_id, "owner_id": owner_id})
    return ActionResult(True, None, "Idea withdrawn.")


def toggle_collaboration(owner_id, idea_id, enabled, deadline=None) -> ActionResult:
    """Open or close an idea for collaboration requests and proposals."""
    if not isinstance(enabled, bool):
        raise ValidationError("enabled must be true or false", details={"enabled": "invalid"})
    patch = IdeaPatch.from_mapping(
        {"collaboration_enabled": enabled, "collaboration_deadline": deadline}
    )

    with unit_of_work():
        idea = _get_owned_idea(owner_id, idea_id)
        if enabled and not (patch.collaboration_deadline or idea.collaboration_deadline):
            raise ValidationError(
                "A collaboration deadline is required when collaboration is enabled.",
                details={"collaboration_deadline": "required"},
            )
        old = idea.collaboration_enabled
        patch.apply_to(idea)

        write_audit(
            entity_type="idea",
            entity_id=idea.id,
            action="idea.toggle_collaboration",
            actor_user_id=owner_id,
            diff={"collaboration_enabled": {"old": old, "new": enabled}},
        )

    state = "enabled" if enabled else "disabled"
    logger.info("Idea collaboration %s", state, extra={"idea_id": idea_id, "owner_id": owner_id})
    return ActionResult(True, idea.to_dict(), f"Collaboration {state}.")


def set_attachment(owner_id, idea_id, path, name=None, mime=None) -> ActionResult:
    """Record the attachment triple returned by the external file store."""
    with unit_of_work():
        idea = _get_owned_idea(owner_id, idea_id)
        _require_editable(idea)
        _apply_attachment(idea, {"path": path, "name": name, "mime": mime})
        write_audit(
            entity_type="idea",
            entity_id=idea.id,
            action="idea.attachment_set",
            actor_user_id=owner_id,
            diff={"attachment": idea.attachment_info()},
        )
    return ActionResult(True, idea.to_dict(), "Attachment saved.")


def clear_attachment(owner_id, idea_id) -> ActionResult:
    """Forget the attachment triple.  Deleting the stored blob is the caller's job."""
    with unit_of_work():
        idea = _get_owned_idea(owner_id, idea_id)
        _require_editable(idea)
        old = idea.attachment_info()
        idea.attachment_path = idea.attachment_name = idea.attachment_mime = None
        write_audit(
            entity_type="idea",
            entity_id=idea.id,
            action="idea.attachment_cleared",
            actor_user_id=owner_id,
            diff={"attachment": {"old": old, "new": None}},
        )
    return ActionResult(True, idea.to_dict(), "Attachment removed.")


def _find_like(idea_id, user_id):
    return db.session.execute(
        select(IdeaLike).where(IdeaLike.idea_id == idea_id, IdeaLike.user_id == user_id)
    ).scalar_one_or_none()


def toggle_like(user_id, idea_id) -> ActionResult:
    """Like the idea, or remove the user's like if it already exists.

    The insert runs in a savepoint: when a concurrent request created the
    same like first, only the savepoint is undone and the idea stays liked.
    """
    with unit_of_work():
        idea = _get_live_idea(idea_id)
        existing = _find_like(idea.id, user_id)
        if existing is not None:
            db.session.delete(existing)
            liked = False
        else:
            liked = True
            try:
                with db.session.begin_nested():
                    db.session.add(IdeaLike(idea_id=idea.id, user_id=user_id))
            except IntegrityError:
                logger.info("Like already recorded", extra={"idea_id": idea.id, "user_id": user_id})

    return ActionResult(
        True,
        {"idea_id": idea_id, "liked": liked, "like_count": idea.likes.count()},
        "Idea liked." if liked else "Like removed.",
    )
