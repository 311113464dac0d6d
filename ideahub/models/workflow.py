"""
Review workflow vocabulary — statuses, stages, outcomes, transition tables.

Shared by the idea track and the challenge-submission track; both entities
carry the same ``status`` column and move through the same machine:

    draft          → stage1_review                               (author submit)
    stage1_review  → stage2_review | stage1_revise | rejected    (DD decision)
    stage1_revise  → stage1_review                               (author resubmit)
    stage2_review  → approved | stage2_revise | rejected         (DD decision)
    stage2_revise  → stage2_review                               (author resubmit)
    approved, rejected                                           (terminal)

Values are stored as plain strings; the enums below are ``str`` subclasses so
``IdeaStatus.DRAFT == "draft"`` holds when comparing against column values.
"""

from enum import Enum

from ideahub.core.exceptions import ValidationError


class Track(str, Enum):
    IDEA = "idea"
    CHALLENGE = "challenge"


class Stage(str, Enum):
    STAGE1 = "stage1"
    STAGE2 = "stage2"


class IdeaStatus(str, Enum):
    DRAFT = "draft"
    STAGE1_REVIEW = "stage1_review"
    STAGE1_REVISE = "stage1_revise"
    STAGE2_REVIEW = "stage2_review"
    STAGE2_REVISE = "stage2_revise"
    APPROVED = "approved"
    REJECTED = "rejected"


class Recommendation(str, Enum):
    APPROVE = "approve"
    REVISE = "revise"
    REJECT = "reject"


class DecisionOutcome(str, Enum):
    APPROVE = "approve"
    REVISE = "revise"
    REJECT = "reject"


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ProposalStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ChallengeStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"


# ── Stage lookups ────────────────────────────────────────────────────────────

STAGE_REVIEW_STATUS = {
    Stage.STAGE1: IdeaStatus.STAGE1_REVIEW,
    Stage.STAGE2: IdeaStatus.STAGE2_REVIEW,
}

STAGE_REVISE_STATUS = {
    Stage.STAGE1: IdeaStatus.STAGE1_REVISE,
    Stage.STAGE2: IdeaStatus.STAGE2_REVISE,
}

# "revise" goes back to the same stage; "reject" is absorbing from either.
DECISION_OUTCOMES = {
    (Stage.STAGE1, DecisionOutcome.APPROVE): IdeaStatus.STAGE2_REVIEW,
    (Stage.STAGE1, DecisionOutcome.REVISE): IdeaStatus.STAGE1_REVISE,
    (Stage.STAGE1, DecisionOutcome.REJECT): IdeaStatus.REJECTED,
    (Stage.STAGE2, DecisionOutcome.APPROVE): IdeaStatus.APPROVED,
    (Stage.STAGE2, DecisionOutcome.REVISE): IdeaStatus.STAGE2_REVISE,
    (Stage.STAGE2, DecisionOutcome.REJECT): IdeaStatus.REJECTED,
}

# Statuses reached through a decision that bump current_revision_number.
REVISION_BUMP_STATUSES = frozenset({IdeaStatus.STAGE2_REVIEW, IdeaStatus.APPROVED})

AUTHOR_TRANSITIONS = {
    IdeaStatus.DRAFT: [IdeaStatus.STAGE1_REVIEW],
    IdeaStatus.STAGE1_REVISE: [IdeaStatus.STAGE1_REVIEW],
    IdeaStatus.STAGE2_REVISE: [IdeaStatus.STAGE2_REVIEW],
}

AUTHOR_EDITABLE_STATUSES = frozenset(AUTHOR_TRANSITIONS)

COLLABORATION_ELIGIBLE_STATUSES = frozenset({
    IdeaStatus.DRAFT,
    IdeaStatus.STAGE1_REVIEW,
    IdeaStatus.STAGE1_REVISE,
})

IN_REVIEW_STATUSES = frozenset({
    IdeaStatus.STAGE1_REVIEW,
    IdeaStatus.STAGE1_REVISE,
    IdeaStatus.STAGE2_REVIEW,
    IdeaStatus.STAGE2_REVISE,
})


def validate_author_transition(old_status, new_status):
    """Return True if the author may move a submission from old to new status."""
    return new_status in AUTHOR_TRANSITIONS.get(old_status, [])


def stage_for_status(status):
    """Return the Stage whose review status equals *status*, else None."""
    for stage, review_status in STAGE_REVIEW_STATUS.items():
        if status == review_status:
            return stage
    return None


def parse_enum(enum_cls, value, field):
    """Coerce *value* into *enum_cls* or raise ValidationError naming *field*."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(
            f"Invalid {field} '{value}'. Must be one of: {allowed}",
            details={field: "invalid"},
        ) from None
