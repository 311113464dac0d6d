"""
Challenge track authoring — challenges and their submissions.

A user may enter each challenge once.  Submissions can be created and
edited only while the challenge is open (active, deadline not passed);
after that they carry on through review like ideas do.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ideahub.core.exceptions import (
    ConflictError,
    NotEligibleError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from ideahub.models import db
from ideahub.models.audit import write_audit
from ideahub.models.challenge import Challenge, ChallengeSubmission
from ideahub.models.workflow import AUTHOR_EDITABLE_STATUSES, ChallengeStatus, IdeaStatus
from ideahub.services.results import ActionResult
from ideahub.services.role_directory import RoleDirectory, Roles
from ideahub.services.submission_flow import submit_for_review
from ideahub.services.unit_of_work import lock_for_update, unit_of_work

logger = logging.getLogger(__name__)

TITLE_MAX = 255
SUBMISSION_TEXT_FIELDS = ("title", "description", "motivation", "original_disclaimer")
SUBMISSION_FIELDS = SUBMISSION_TEXT_FIELDS + ("cost_of_implementation",)


# ── Validation ─────────────────────────────────────────────────────────────────


def _parse_deadline(value) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            raise ValidationError(
                "deadline must be an ISO datetime", details={"deadline": "invalid"}
            ) from None
    else:
        raise ValidationError("deadline is required", details={"deadline": "required"})
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_cost(value):
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError("cost_of_implementation must be a number",
                              details={"cost_of_implementation": "invalid"})
    try:
        cost = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError("cost_of_implementation must be a number",
                              details={"cost_of_implementation": "invalid"}) from None
    if cost < 0:
        raise ValidationError("cost_of_implementation may not be negative",
                              details={"cost_of_implementation": "negative"})
    return cost


def _submission_values(data) -> dict:
    """Pick and type-check submission fields; absent keys are left out."""
    if not isinstance(data, dict):
        raise ValidationError("Request body must be an object")
    unknown = sorted(set(data) - set(SUBMISSION_FIELDS))
    if unknown:
        raise ValidationError(
            f"Unknown field(s): {', '.join(unknown)}",
            details={name: "unknown field" for name in unknown},
        )

    values = {}
    for name in SUBMISSION_TEXT_FIELDS:
        if name in data and data[name] is not None:
            if not isinstance(data[name], str):
                raise ValidationError(f"{name} must be a string", details={name: "invalid"})
            values[name] = data[name].strip()
    if "cost_of_implementation" in data:
        values["cost_of_implementation"] = _parse_cost(data["cost_of_implementation"])

    title = values.get("title")
    if title is not None and not 0 < len(title) <= TITLE_MAX:
        raise ValidationError(f"title must be 1-{TITLE_MAX} characters", details={"title": "invalid"})
    return values


def _require_complete(submission) -> None:
    missing = [
        name for name in ("title", "description", "motivation", "original_disclaimer")
        if not getattr(submission, name)
    ]
    if missing:
        raise ValidationError(
            "The submission is incomplete.",
            details={name: "required" for name in missing},
        )


# ── Private helpers ────────────────────────────────────────────────────────────


def _get_challenge(challenge_id) -> Challenge:
    challenge = db.session.get(Challenge, challenge_id)
    if challenge is None:
        raise NotFoundError("Challenge", challenge_id)
    return challenge


def _require_open(challenge) -> None:
    if not challenge.is_open():
        raise NotEligibleError("This challenge is closed for submissions.")


# ── Challenges ─────────────────────────────────────────────────────────────────


def create_challenge(creator_id, data, *, roles: RoleDirectory | None = None) -> ActionResult:
    """Publish a new challenge.  Deputy directors and admins only."""
    roles = roles or RoleDirectory()
    if not roles.has_role(creator_id, Roles.DEPUTY_DIRECTOR):
        raise UnauthorizedError("You do not have permission to create challenges.")

    data = data or {}
    title = (data.get("title") or "").strip()
    description = (data.get("description") or "").strip()
    errors = {}
    if not title or len(title) > TITLE_MAX:
        errors["title"] = f"required, at most {TITLE_MAX} characters"
    if not description:
        errors["description"] = "required"
    if errors:
        raise ValidationError("The challenge is incomplete.", details=errors)

    deadline = _parse_deadline(data.get("deadline"))
    if deadline <= datetime.now(timezone.utc):
        raise ValidationError("deadline must be in the future", details={"deadline": "past"})

    with unit_of_work():
        challenge = Challenge(
            title=title,
            description=description,
            guidelines=data.get("guidelines"),
            reward=data.get("reward"),
            deadline=deadline,
            status=ChallengeStatus.ACTIVE.value,
            created_by=creator_id,
        )
        db.session.add(challenge)
        db.session.flush()
        write_audit(
            entity_type="challenge",
            entity_id=challenge.id,
            action="challenge.create",
            actor_user_id=creator_id,
            diff={"title": title, "deadline": deadline.isoformat()},
        )

    logger.info("Challenge created", extra={"challenge_id": challenge.id, "creator_id": creator_id})
    return ActionResult(True, challenge.to_dict(), "Challenge created successfully.")


def list_challenges(*, open_only=False) -> list[dict]:
    stmt = select(Challenge).order_by(Challenge.deadline.asc(), Challenge.id.asc())
    if open_only:
        stmt = stmt.where(
            Challenge.status == ChallengeStatus.ACTIVE.value,
            Challenge.deadline > datetime.now(timezone.utc),
        )
    return [c.to_dict() for c in db.session.execute(stmt).scalars()]


def get_challenge(challenge_id) -> dict:
    return _get_challenge(challenge_id).to_dict()


# ── Submissions ────────────────────────────────────────────────────────────────


def create_submission(owner_id, challenge_id, data, *, submit_now=False) -> ActionResult:
    """Enter a challenge.  One submission per owner per challenge.

    Raises:
        NotFoundError: challenge missing.
        NotEligibleError: challenge closed.
        ConflictError: owner already has a submission for it.
        ValidationError: bad or (when submitting) missing fields.
    """
    values = _submission_values(data)
    if not values.get("title"):
        raise ValidationError("title is required", details={"title": "required"})

    with unit_of_work():
        challenge = _get_challenge(challenge_id)
        _require_open(challenge)

        existing = db.session.execute(
            select(ChallengeSubmission.id).where(
                ChallengeSubmission.challenge_id == challenge.id,
                ChallengeSubmission.owner_id == owner_id,
            )
        ).first()
        if existing is not None:
            raise ConflictError("You have already submitted to this challenge.")

        submission = ChallengeSubmission(
            challenge_id=challenge.id,
            owner_id=owner_id,
            status=IdeaStatus.DRAFT.value,
            **values,
        )
        db.session.add(submission)
        if submit_now:
            _require_complete(submission)
            submit_for_review(submission, "submission")
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise ConflictError("You have already submitted to this challenge.") from exc

        write_audit(
            entity_type="challenge_submission",
            entity_id=submission.id,
            action="challenge_submission.create",
            actor_user_id=owner_id,
            diff={"challenge_id": challenge.id, "status": submission.status},
        )

    logger.info(
        "Challenge submission created",
        extra={"submission_id": submission.id, "challenge_id": challenge_id, "owner_id": owner_id},
    )
    message = "Submission sent for review." if submit_now else "Submission saved as draft."
    return ActionResult(True, submission.to_dict(), message)


def update_submission(owner_id, submission_id, data, *, submit_now=False) -> ActionResult:
    """Edit a draft or revise-status submission; optionally (re)submit it."""
    values = _submission_values(data)

    with unit_of_work():
        submission = lock_for_update(ChallengeSubmission, submission_id)
        if submission is None:
            raise NotFoundError("ChallengeSubmission", submission_id)
        if submission.owner_id != owner_id:
            raise UnauthorizedError("You do not have permission to modify this submission.")
        if submission.status not in AUTHOR_EDITABLE_STATUSES:
            raise NotEligibleError("This submission cannot be edited in its current status.")
        _require_open(submission.challenge)

        if "title" in values and not values["title"]:
            raise ValidationError("title is required", details={"title": "required"})
        changed = [name for name, value in values.items() if getattr(submission, name) != value]
        for name, value in values.items():
            setattr(submission, name, value)

        old_status = submission.status
        if submit_now:
            _require_complete(submission)
            submit_for_review(submission, "submission")

        write_audit(
            entity_type="challenge_submission",
            entity_id=submission.id,
            action="challenge_submission.update",
            actor_user_id=owner_id,
            diff={
                "changed_fields": changed,
                "status": {"old": old_status, "new": submission.status},
            },
        )

    logger.info(
        "Challenge submission updated",
        extra={"submission_id": submission_id, "owner_id": owner_id, "new_status": submission.status},
    )
    message = "Submission sent for review." if submit_now else "Submission updated successfully."
    return ActionResult(True, submission.to_dict(), message)


def my_submissions(owner_id) -> list[dict]:
    stmt = (
        select(ChallengeSubmission)
        .where(ChallengeSubmission.owner_id == owner_id)
        .order_by(ChallengeSubmission.created_at.desc(), ChallengeSubmission.id.desc())
    )
    return [s.to_dict() for s in db.session.execute(stmt).scalars()]
