"""
Decision Compiler — the single authoritative status mutation point for
review outcomes.

A deputy director turns the accumulated reviews of one stage into one
binding decision:

    stage1 approve → stage2_review   (revision +1)
    stage1 revise  → stage1_revise
    stage1 reject  → rejected
    stage2 approve → approved        (revision +1)
    stage2 revise  → stage2_revise
    stage2 reject  → rejected

Check order in ``make_decision``:
    1. decider authorised for the track                 → UnauthorizedError
    2. stage / decision / comment lengths valid         → ValidationError
    3. no decision yet for (subject, stage, round)      → AlreadyDecidedError
    4. subject sits in the stage's review status        → NotEligibleError
    5. quorum predicate holds                           → NotEligibleError

The decision row, the status change, the revision bump and the audit row are
written in one transaction while the subject row is locked.  The
(track, subject, stage, round) unique constraint is the last line against a
concurrent second decider; its violation surfaces as AlreadyDecidedError.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import exists, func, select
from sqlalchemy.exc import IntegrityError

from ideahub.core.exceptions import (
    AlreadyDecidedError,
    NotEligibleError,
    UnauthorizedError,
    ValidationError,
)
from ideahub.models import db
from ideahub.models.audit import write_audit
from ideahub.models.review import Review, ReviewDecision
from ideahub.models.workflow import (
    DECISION_OUTCOMES,
    REVISION_BUMP_STATUSES,
    STAGE_REVIEW_STATUS,
    STAGE_REVISE_STATUS,
    DecisionOutcome,
    Stage,
    parse_enum,
)
from ideahub.services.quorum import is_quorum_met
from ideahub.services.results import ActionResult
from ideahub.services.role_directory import RoleDirectory
from ideahub.services.tracks import STAGE_REVIEWER_ROLES, get_track
from ideahub.services.unit_of_work import unit_of_work

logger = logging.getLogger(__name__)

_OUTCOME_MESSAGES = {
    DecisionOutcome.APPROVE: "approved and moved forward",
    DecisionOutcome.REVISE: "returned to the author for revision",
    DecisionOutcome.REJECT: "rejected",
}


# ── Private helpers ────────────────────────────────────────────────────────────


def _authorize_decider(user_id, track, roles) -> None:
    if track.decider_role and roles.has_role(user_id, track.decider_role):
        return
    if track.decider_permission and roles.has_permission(user_id, track.decider_permission):
        return
    raise UnauthorizedError("Only the deputy director can make review decisions.")


def _decision_exists(track, subject, stage) -> bool:
    stmt = select(func.count(ReviewDecision.id)).where(
        ReviewDecision.track == track.track.value,
        ReviewDecision.subject_id == subject.id,
        ReviewDecision.stage == stage.value,
        ReviewDecision.review_round == subject.review_round,
    )
    return db.session.execute(stmt).scalar_one() > 0


def _review_count(track, subject, stage) -> int:
    """Stage reviews across all rounds; reviewers keep their earlier verdict."""
    stmt = select(func.count(Review.id)).where(
        Review.track == track.track.value,
        Review.subject_id == subject.id,
        Review.stage == stage.value,
    )
    return db.session.execute(stmt).scalar_one()


def _validate_comments(track, compiled_comments, dd_comments):
    compiled = (compiled_comments or "").strip()
    if len(compiled) < track.compiled_comment_min:
        raise ValidationError(
            f"Compiled comments must be at least {track.compiled_comment_min} characters.",
            details={"compiled_comments": "too short"},
        )
    dd = (dd_comments or "").strip() or None
    if dd and len(dd) > track.dd_comment_max:
        raise ValidationError(
            f"Deputy director comments may not exceed {track.dd_comment_max} characters.",
            details={"dd_comments": "too long"},
        )
    return compiled, dd


# ── Eligibility ────────────────────────────────────────────────────────────────


def evaluate_quorum(track, subject, stage, *, roles: RoleDirectory | None = None,
                    now: datetime | None = None) -> bool:
    """Apply the track's quorum policy to *subject*'s reviews for *stage*."""
    track = get_track(track)
    stage = parse_enum(Stage, stage, "stage")
    policy = track.quorum_policy()
    population = 0
    if policy.needs_role_population:
        population = (roles or RoleDirectory()).count_users_with_role(STAGE_REVIEWER_ROLES[stage])
    return is_quorum_met(
        policy,
        review_count=_review_count(track, subject, stage),
        role_population=population,
        last_updated_at=subject.updated_at,
        now=now,
    )


def can_decide(user_id, track, subject, stage, *, roles: RoleDirectory | None = None) -> bool:
    """Presentation flag mirroring the preconditions of ``make_decision``."""
    track = get_track(track)
    stage = parse_enum(Stage, stage, "stage")
    roles = roles or RoleDirectory()
    try:
        _authorize_decider(user_id, track, roles)
    except UnauthorizedError:
        return False
    return (
        subject.status == STAGE_REVIEW_STATUS[stage]
        and not _decision_exists(track, subject, stage)
        and evaluate_quorum(track, subject, stage, roles=roles)
    )


# ── Dashboards ─────────────────────────────────────────────────────────────────


def list_pending_decisions(user_id, track, stage, *, roles: RoleDirectory | None = None) -> list[dict]:
    """Subjects in *stage* review with quorum met and no decision yet (FIFO)."""
    track = get_track(track)
    stage = parse_enum(Stage, stage, "stage")
    roles = roles or RoleDirectory()
    _authorize_decider(user_id, track, roles)

    model = track.model
    decided = exists().where(
        ReviewDecision.track == track.track.value,
        ReviewDecision.subject_id == model.id,
        ReviewDecision.stage == stage.value,
        ReviewDecision.review_round == model.review_round,
    )
    stmt = (
        select(model)
        .where(model.status == STAGE_REVIEW_STATUS[stage].value, ~decided, *track.active_filter())
        .order_by(model.submitted_at.asc(), model.id.asc())
    )
    items = []
    for subject in db.session.execute(stmt).scalars():
        if not evaluate_quorum(track, subject, stage, roles=roles):
            continue
        d = subject.to_dict()
        d["review_count"] = _review_count(track, subject, stage)
        items.append(d)
    return items


def list_in_revision(user_id, track, stage, *, roles: RoleDirectory | None = None) -> list[dict]:
    """Subjects sent back to their authors at *stage*, most recent first."""
    track = get_track(track)
    stage = parse_enum(Stage, stage, "stage")
    _authorize_decider(user_id, track, roles or RoleDirectory())
    model = track.model
    stmt = (
        select(model)
        .where(model.status == STAGE_REVISE_STATUS[stage].value, *track.active_filter())
        .order_by(model.updated_at.desc(), model.id.desc())
    )
    return [s.to_dict() for s in db.session.execute(stmt).scalars()]


def get_decisions(user_id, track, subject_id, *, roles: RoleDirectory | None = None) -> list[dict]:
    """Decision history of one subject, oldest first.

    Same audience as the review context: owner, reviewers and deciders.
    """
    track = get_track(track)
    subject = track.get_subject(subject_id)
    track.require_review_access(user_id, subject, roles or RoleDirectory())
    stmt = (
        select(ReviewDecision)
        .where(ReviewDecision.track == track.track.value, ReviewDecision.subject_id == subject.id)
        .order_by(ReviewDecision.decided_at.asc(), ReviewDecision.id.asc())
    )
    return [d.to_dict() for d in db.session.execute(stmt).scalars()]


# ── Mutation ───────────────────────────────────────────────────────────────────


def make_decision(
    decider_id,
    track,
    subject_id,
    stage,
    decision,
    compiled_comments,
    dd_comments=None,
    *,
    roles: RoleDirectory | None = None,
) -> ActionResult:
    """Compile one stage's reviews into a binding decision.

    Args:
        decider_id: Deputy director (or admin / permission holder on the
            challenge track).
        track: "idea" or "challenge".
        subject_id: Idea or submission PK.
        stage: "stage1" or "stage2".
        decision: "approve" | "revise" | "reject".
        compiled_comments: Summary of the reviewers' comments for the author.
        dd_comments: Optional deputy director note.

    Returns:
        ActionResult carrying the new ReviewDecision.

    Raises:
        UnauthorizedError, ValidationError, NotFoundError,
        AlreadyDecidedError, NotEligibleError: see module docstring.
    """
    track = get_track(track)
    roles = roles or RoleDirectory()
    _authorize_decider(decider_id, track, roles)

    stage = parse_enum(Stage, stage, "stage")
    outcome = parse_enum(DecisionOutcome, decision, "decision")
    compiled, dd = _validate_comments(track, compiled_comments, dd_comments)

    with unit_of_work():
        subject = track.lock_subject(subject_id)

        if _decision_exists(track, subject, stage):
            raise AlreadyDecidedError(f"A decision has already been made for {stage.value}.")

        if subject.status != STAGE_REVIEW_STATUS[stage]:
            raise NotEligibleError(f"This {track.label} is not awaiting a {stage.value} decision.")

        if not evaluate_quorum(track, subject, stage, roles=roles):
            raise NotEligibleError(
                f"Not enough {stage.value} reviews have been submitted to make a decision yet."
            )

        previous_status = subject.status
        new_status = DECISION_OUTCOMES[(stage, outcome)]

        record = ReviewDecision(
            track=track.track.value,
            subject_id=subject.id,
            stage=stage.value,
            review_round=subject.review_round,
            decision=outcome.value,
            compiled_comments=compiled,
            dd_comments=dd,
            decider_id=decider_id,
            previous_status=previous_status,
            new_status=new_status.value,
            decided_at=datetime.now(timezone.utc),
        )
        db.session.add(record)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise AlreadyDecidedError(
                f"A decision has already been made for {stage.value}."
            ) from exc

        old_revision = subject.current_revision_number
        subject.status = new_status.value
        if new_status in REVISION_BUMP_STATUSES:
            subject.current_revision_number = old_revision + 1

        write_audit(
            entity_type=track.audit_entity,
            entity_id=subject.id,
            action="decision.make",
            actor_user_id=decider_id,
            diff={
                "stage": stage.value,
                "decision": outcome.value,
                "status": {"old": previous_status, "new": new_status.value},
                "current_revision_number": {
                    "old": old_revision, "new": subject.current_revision_number,
                },
            },
        )

    logger.info(
        "Review decision recorded",
        extra={
            "track": track.track.value,
            "subject_id": subject.id,
            "stage": stage.value,
            "decision": outcome.value,
            "decider_id": decider_id,
            "new_status": new_status.value,
        },
    )
    return ActionResult(
        True,
        record.to_dict(),
        f"Decision recorded: the {track.label} was {_OUTCOME_MESSAGES[outcome]}.",
    )
