"""
Idea version history — append-only snapshots plus rollback.

Version numbers are 1-based and gapless per idea:

    next_version_number = max(version_number for the idea, default 0) + 1

The number is computed and consumed inside the caller's transaction while
the idea row is locked (``SELECT … FOR UPDATE``), so two snapshot operations
on the same idea serialise.  The (idea_id, version_number) unique constraint
backs this up; a violation surfaces as ConflictError.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from ideahub.core.exceptions import ConflictError, NotFoundError, UnauthorizedError
from ideahub.core.idea_patch import EDITABLE_FIELDS, snapshot_fields
from ideahub.models import db
from ideahub.models.audit import write_audit
from ideahub.models.collaboration import IdeaVersion
from ideahub.models.idea import Idea
from ideahub.services.results import ActionResult
from ideahub.services.role_directory import RoleDirectory, Roles
from ideahub.services.unit_of_work import lock_for_update, unit_of_work

logger = logging.getLogger(__name__)


def next_version_number(idea_id) -> int:
    stmt = select(func.coalesce(func.max(IdeaVersion.version_number), 0)).where(
        IdeaVersion.idea_id == idea_id
    )
    return db.session.execute(stmt).scalar_one() + 1


def create_snapshot(
    idea,
    *,
    changed_by,
    change_description,
    changed_fields=None,
    proposal_id=None,
) -> IdeaVersion:
    """Append a snapshot of *idea*'s current editable fields.

    Must run inside a unit of work with *idea* locked.  Flushes, does not
    commit.
    """
    version = IdeaVersion(
        idea_id=idea.id,
        version_number=next_version_number(idea.id),
        status=idea.status,
        current_revision_number=idea.current_revision_number,
        change_description=change_description,
        changed_fields=list(changed_fields or []),
        changed_by=changed_by,
        collaboration_proposal_id=proposal_id,
        **snapshot_fields(idea),
    )
    db.session.add(version)
    try:
        db.session.flush()
    except IntegrityError as exc:
        raise ConflictError("Another change to this idea was saved at the same time. Please retry.") from exc

    logger.debug(
        "Idea version snapshot created",
        extra={"idea_id": idea.id, "version_number": version.version_number},
    )
    return version


def _get_owned_idea(user_id, idea_id, roles, *, lock=False) -> Idea:
    if lock:
        idea = lock_for_update(Idea, idea_id, Idea.active_filter())
    else:
        idea = db.session.get(Idea, idea_id)
        if idea is not None and idea.is_deleted:
            idea = None
    if idea is None:
        raise NotFoundError("Idea", idea_id)
    if idea.owner_id != user_id and not roles.has_role(user_id, Roles.ADMIN):
        raise UnauthorizedError("Only the idea owner can manage its versions.")
    return idea


def list_versions(user_id, idea_id, *, roles: RoleDirectory | None = None) -> list[dict]:
    """Version history for an idea, newest first.  Owner or admin only."""
    idea = _get_owned_idea(user_id, idea_id, roles or RoleDirectory())
    stmt = (
        select(IdeaVersion)
        .where(IdeaVersion.idea_id == idea.id)
        .order_by(IdeaVersion.version_number.desc())
    )
    return [v.to_dict() for v in db.session.execute(stmt).scalars()]


def get_version(user_id, idea_id, version_number, *, roles: RoleDirectory | None = None) -> dict:
    idea = _get_owned_idea(user_id, idea_id, roles or RoleDirectory())
    return _find_version(idea.id, version_number).to_dict()


def _find_version(idea_id, version_number) -> IdeaVersion:
    version = db.session.execute(
        select(IdeaVersion).where(
            IdeaVersion.idea_id == idea_id,
            IdeaVersion.version_number == version_number,
        )
    ).scalar_one_or_none()
    if version is None:
        raise NotFoundError("IdeaVersion", version_number)
    return version


def rollback(owner_id, idea_id, version_number) -> ActionResult:
    """Restore an idea's editable fields from an earlier snapshot.

    The current state is snapshotted first ("Rolled back to version N"), then
    every editable field, nulls included, is copied from the target version
    and the revision number goes up by one.  Status is not restored: it only
    moves through decisions and the author's submit/withdraw actions.

    Raises:
        NotFoundError: idea or version missing.
        UnauthorizedError: caller is not the owner.
    """
    with unit_of_work():
        idea = lock_for_update(Idea, idea_id, Idea.active_filter())
        if idea is None:
            raise NotFoundError("Idea", idea_id)
        if idea.owner_id != owner_id:
            raise UnauthorizedError("Only the idea owner can roll back versions.")

        target = _find_version(idea.id, version_number)
        restored = snapshot_fields(target)
        changed = [name for name in EDITABLE_FIELDS if restored[name] != getattr(idea, name)]

        create_snapshot(
            idea,
            changed_by=owner_id,
            change_description=f"Rolled back to version {target.version_number}",
            changed_fields=changed,
        )
        for name, value in restored.items():
            setattr(idea, name, value)
        old_revision = idea.current_revision_number
        idea.current_revision_number = old_revision + 1

        write_audit(
            entity_type="idea",
            entity_id=idea.id,
            action="idea.rollback",
            actor_user_id=owner_id,
            diff={
                "version_number": target.version_number,
                "changed_fields": changed,
                "current_revision_number": {"old": old_revision, "new": idea.current_revision_number},
            },
        )

    logger.info(
        "Idea rolled back",
        extra={"idea_id": idea_id, "version_number": version_number, "owner_id": owner_id},
    )
    return ActionResult(True, idea.to_dict(), f"Idea rolled back to version {version_number}.")
