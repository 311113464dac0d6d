"""
Review Stage Engine — reviewer dashboards and review submission.

Stage roles:
    stage1  subject-matter-expert
    stage2  board
    (admin satisfies either)

A review is accepted only when all of these hold:
    - the subject's status is the stage's review status;
    - the reviewer does not own the subject;
    - the reviewer holds the stage role;
    - the reviewer has not reviewed this stage before, in any review round.

Submitting a review never changes the subject's status; that is the
decision service's job.  Reviews are append-only: there is no update or
delete operation.  The (track, subject, reviewer, stage) unique
constraint closes the double-submit race; the loser gets ConflictError.

Usage:
    from ideahub.services import review_service

    result = review_service.submit_review(
        user_id=7, track="idea", subject_id=42, stage="stage1",
        recommendation="approve", comments="…",
    )
"""

from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy import and_, exists, func, select
from sqlalchemy.exc import IntegrityError

from ideahub.core.exceptions import (
    ConflictError,
    NotEligibleError,
    UnauthorizedError,
    ValidationError,
)
from ideahub.models import db
from ideahub.models.audit import write_audit
from ideahub.models.review import Review, ReviewDecision
from ideahub.models.workflow import (
    IN_REVIEW_STATUSES,
    STAGE_REVIEW_STATUS,
    Recommendation,
    Stage,
    parse_enum,
    stage_for_status,
)
from ideahub.services.decision_service import can_decide
from ideahub.services.results import ActionResult
from ideahub.services.role_directory import RoleDirectory
from ideahub.services.tracks import STAGE_REVIEWER_ROLES, get_track
from ideahub.services.unit_of_work import unit_of_work

logger = logging.getLogger(__name__)

DEFAULT_REVIEWED_WINDOW = 10


# ── Private helpers ────────────────────────────────────────────────────────────


def _already_reviewed_clause(track, user_id, stage):
    """Correlated EXISTS: user already reviewed the outer subject at *stage*."""
    model = track.model
    return exists().where(
        Review.track == track.track.value,
        Review.subject_id == model.id,
        Review.reviewer_id == user_id,
        Review.stage == stage.value,
    )


def _has_reviewed(track, subject, user_id, stage) -> bool:
    stmt = select(func.count(Review.id)).where(
        Review.track == track.track.value,
        Review.subject_id == subject.id,
        Review.reviewer_id == user_id,
        Review.stage == stage.value,
    )
    return db.session.execute(stmt).scalar_one() > 0


def _ineligibility_reason(track, subject, user_id, stage, roles) -> str | None:
    """Return why *user_id* may not review *subject* in *stage*, or None."""
    if subject.status != STAGE_REVIEW_STATUS[stage]:
        return f"This {track.label} is not awaiting {stage.value} review."
    if subject.owner_id == user_id:
        return f"You cannot review your own {track.label}."
    if not roles.has_role(user_id, STAGE_REVIEWER_ROLES[stage]):
        return f"You do not hold the reviewer role for {stage.value}."
    if _has_reviewed(track, subject, user_id, stage):
        return f"You have already reviewed this {track.label} for {stage.value}."
    return None


def _validate_comments(track, comments) -> str:
    comments = (comments or "").strip()
    if len(comments) < track.review_comment_min:
        raise ValidationError(
            f"Comments must be at least {track.review_comment_min} characters.",
            details={"comments": "too short"},
        )
    if track.review_comment_max and len(comments) > track.review_comment_max:
        raise ValidationError(
            f"Comments may not exceed {track.review_comment_max} characters.",
            details={"comments": "too long"},
        )
    return comments


def _require_stage_role(user_id, stage, roles):
    if not roles.has_role(user_id, STAGE_REVIEWER_ROLES[stage]):
        raise UnauthorizedError(f"You do not hold the reviewer role for {stage.value}.")


# ── Eligibility ────────────────────────────────────────────────────────────────


def can_review(user_id, track, subject, stage=None, *, roles: RoleDirectory | None = None) -> bool:
    """Presentation flag: may *user_id* review *subject* right now?"""
    track = get_track(track)
    roles = roles or RoleDirectory()
    stage = parse_enum(Stage, stage, "stage") if stage else stage_for_status(subject.status)
    if stage is None:
        return False
    return _ineligibility_reason(track, subject, user_id, stage, roles) is None


# ── Dashboards ─────────────────────────────────────────────────────────────────


def list_reviewable(user_id, track, stage, *, roles: RoleDirectory | None = None) -> list[dict]:
    """Subjects awaiting *stage* review that *user_id* may still review.

    Excludes the user's own subjects and subjects the user already reviewed
    at this stage.  Oldest submission first, so nothing waits forever.

    Raises:
        UnauthorizedError: user lacks the stage's reviewer role.
    """
    track = get_track(track)
    stage = parse_enum(Stage, stage, "stage")
    roles = roles or RoleDirectory()
    _require_stage_role(user_id, stage, roles)

    model = track.model
    stmt = (
        select(model)
        .where(
            model.status == STAGE_REVIEW_STATUS[stage].value,
            model.owner_id != user_id,
            ~_already_reviewed_clause(track, user_id, stage),
            *track.active_filter(),
        )
        .order_by(model.submitted_at.asc(), model.id.asc())
    )
    return [s.to_dict() for s in db.session.execute(stmt).scalars()]


def list_reviewed_by_user(user_id, track, stage, *, limit: int | None = None) -> list[dict]:
    """Subjects *user_id* reviewed in *stage*, most recently updated first."""
    track = get_track(track)
    stage = parse_enum(Stage, stage, "stage")
    if limit is None:
        limit = current_app.config.get("REVIEWED_WINDOW_LIMIT", DEFAULT_REVIEWED_WINDOW)

    model = track.model
    reviewed_ids = select(Review.subject_id).where(
        Review.track == track.track.value,
        Review.reviewer_id == user_id,
        Review.stage == stage.value,
    )
    stmt = (
        select(model)
        .where(model.id.in_(reviewed_ids), *track.active_filter())
        .order_by(model.updated_at.desc(), model.id.desc())
        .limit(limit)
    )
    return [s.to_dict() for s in db.session.execute(stmt).scalars()]


def reviewer_stats(user_id, track, stage, *, roles: RoleDirectory | None = None) -> dict:
    track = get_track(track)
    stage = parse_enum(Stage, stage, "stage")
    pending = list_reviewable(user_id, track, stage, roles=roles)
    completed = db.session.execute(
        select(func.count(Review.id)).where(
            Review.track == track.track.value,
            Review.reviewer_id == user_id,
            Review.stage == stage.value,
        )
    ).scalar_one()
    return {"stage": stage.value, "pending": len(pending), "completed": completed}


def list_author_reviews(user_id, track) -> list[dict]:
    """The author's own subjects in review or revise, with their decisions."""
    track = get_track(track)
    model = track.model
    stmt = (
        select(model)
        .where(
            model.owner_id == user_id,
            model.status.in_([s.value for s in IN_REVIEW_STATUSES]),
            *track.active_filter(),
        )
        .order_by(model.updated_at.desc(), model.id.desc())
    )
    items = []
    for subject in db.session.execute(stmt).scalars():
        d = subject.to_dict()
        d["decisions"] = _decisions_for(track, subject.id)
        items.append(d)
    return items


def get_review_context(user_id, track, subject_id, *, roles: RoleDirectory | None = None) -> dict:
    """Everything a review screen needs for one subject.

    Visible to the owner, reviewers of either stage, the deputy director and
    admins.  Raises UnauthorizedError for anyone else.
    """
    track = get_track(track)
    roles = roles or RoleDirectory()
    subject = track.get_subject(subject_id)

    track.require_review_access(user_id, subject, roles)

    reviews = db.session.execute(
        select(Review)
        .where(Review.track == track.track.value, Review.subject_id == subject.id)
        .order_by(Review.created_at.asc(), Review.id.asc())
    ).scalars()
    stage = stage_for_status(subject.status)
    return {
        track.label: subject.to_dict(),
        "reviews": [r.to_dict() for r in reviews],
        "decisions": _decisions_for(track, subject.id),
        "review_stage": stage.value if stage else None,
        "can_review": can_review(user_id, track, subject, roles=roles),
        "can_decide": bool(stage) and can_decide(user_id, track, subject, stage, roles=roles),
    }


def _decisions_for(track, subject_id) -> list[dict]:
    stmt = (
        select(ReviewDecision)
        .where(and_(ReviewDecision.track == track.track.value, ReviewDecision.subject_id == subject_id))
        .order_by(ReviewDecision.decided_at.asc(), ReviewDecision.id.asc())
    )
    return [d.to_dict() for d in db.session.execute(stmt).scalars()]


# ── Mutations ──────────────────────────────────────────────────────────────────


def submit_review(
    user_id,
    track,
    subject_id,
    stage,
    recommendation,
    comments,
    *,
    roles: RoleDirectory | None = None,
) -> ActionResult:
    """Record one reviewer's recommendation for one stage.

    Args:
        user_id: Reviewer.
        track: "idea" or "challenge".
        subject_id: Idea or submission PK.
        stage: "stage1" or "stage2".
        recommendation: "approve" | "revise" | "reject".
        comments: Free text; length bounds depend on the track.

    Returns:
        ActionResult carrying the new review.

    Raises:
        ValidationError: unknown stage/recommendation, comments out of bounds.
        NotFoundError: subject does not exist.
        NotEligibleError: wrong status, own subject, missing role, already reviewed.
        ConflictError: a concurrent duplicate won the uniqueness race.
    """
    track = get_track(track)
    stage = parse_enum(Stage, stage, "stage")
    recommendation = parse_enum(Recommendation, recommendation, "recommendation")
    comments = _validate_comments(track, comments)
    roles = roles or RoleDirectory()

    with unit_of_work():
        subject = track.lock_subject(subject_id)

        reason = _ineligibility_reason(track, subject, user_id, stage, roles)
        if reason:
            logger.info(
                "Review rejected: %s",
                reason,
                extra={"track": track.track.value, "subject_id": subject_id, "reviewer_id": user_id},
            )
            raise NotEligibleError(reason)

        review = Review(
            track=track.track.value,
            subject_id=subject.id,
            reviewer_id=user_id,
            stage=stage.value,
            recommendation=recommendation.value,
            comments=comments,
        )
        db.session.add(review)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise ConflictError(
                f"You have already reviewed this {track.label} for {stage.value}."
            ) from exc

        write_audit(
            entity_type="review",
            entity_id=review.id,
            action="review.submit",
            actor_user_id=user_id,
            diff={
                "track": track.track.value,
                "subject_id": subject.id,
                "stage": stage.value,
                "recommendation": recommendation.value,
            },
        )

    logger.info(
        "Review submitted",
        extra={
            "track": track.track.value,
            "subject_id": subject.id,
            "reviewer_id": user_id,
            "stage": stage.value,
            "recommendation": recommendation.value,
        },
    )
    return ActionResult(True, review.to_dict(), "Review submitted successfully.")
