"""
Review track descriptors.

The idea track and the challenge-submission track run the same review and
decision machine; they differ only in the subject table, comment length
rules, who may decide, and the quorum policy.  Those differences live here
so ``review_service`` and ``decision_service`` stay track-agnostic.

    idea       SME/board review; deputy-director role decides;
               quorum: ≥60% of role holders OR subject idle > 7 days
    challenge  SME/board review; "manage.review-decisions" permission decides;
               quorum: ≥2 reviews
"""

from dataclasses import dataclass

from flask import current_app

from ideahub.core.exceptions import NotFoundError, UnauthorizedError
from ideahub.models import db
from ideahub.models.challenge import ChallengeSubmission
from ideahub.models.idea import Idea
from ideahub.models.workflow import Stage, Track, parse_enum
from ideahub.services.quorum import QuorumPolicy
from ideahub.services.role_directory import Permissions, Roles
from ideahub.services.unit_of_work import lock_for_update

STAGE_REVIEWER_ROLES = {
    Stage.STAGE1: Roles.SME,
    Stage.STAGE2: Roles.BOARD,
}

REVIEW_VIEWER_ROLES = (Roles.SME, Roles.BOARD, Roles.DEPUTY_DIRECTOR)


@dataclass(frozen=True)
class ReviewTrack:
    track: Track
    model: type
    label: str
    audit_entity: str
    review_comment_min: int
    review_comment_max: int | None
    compiled_comment_min: int
    dd_comment_max: int
    decider_role: str | None
    decider_permission: str | None
    default_quorum: QuorumPolicy

    def active_filter(self):
        """Extra WHERE criteria hiding withdrawn subjects."""
        if hasattr(self.model, "active_filter"):
            return (self.model.active_filter(),)
        return ()

    def get_subject(self, subject_id):
        """Load a live subject or raise NotFoundError."""
        subject = db.session.get(self.model, subject_id)
        if subject is None or getattr(subject, "is_deleted", False):
            raise NotFoundError(self.model.__name__, subject_id)
        return subject

    def lock_subject(self, subject_id):
        """Load a live subject under a row lock or raise NotFoundError."""
        subject = lock_for_update(self.model, subject_id, *self.active_filter())
        if subject is None:
            raise NotFoundError(self.model.__name__, subject_id)
        return subject

    def require_review_access(self, user_id, subject, roles) -> None:
        """Reviews and decisions are visible to the owner, reviewers and deciders."""
        if subject.owner_id == user_id or roles.has_any_role(user_id, REVIEW_VIEWER_ROLES):
            return
        if self.decider_permission and roles.has_permission(user_id, self.decider_permission):
            return
        raise UnauthorizedError(f"You cannot view the reviews of this {self.label}.")

    def quorum_policy(self) -> QuorumPolicy:
        overrides = current_app.config.get("QUORUM_POLICIES", {}).get(self.track.value)
        if overrides:
            return QuorumPolicy.from_mapping(overrides)
        return self.default_quorum


IDEA_TRACK = ReviewTrack(
    track=Track.IDEA,
    model=Idea,
    label="idea",
    audit_entity="idea",
    review_comment_min=50,
    review_comment_max=2000,
    compiled_comment_min=50,
    dd_comment_max=1000,
    decider_role=Roles.DEPUTY_DIRECTOR,
    decider_permission=None,
    default_quorum=QuorumPolicy(role_share=0.6, stale_after_days=7),
)

CHALLENGE_TRACK = ReviewTrack(
    track=Track.CHALLENGE,
    model=ChallengeSubmission,
    label="submission",
    audit_entity="challenge_submission",
    review_comment_min=10,
    review_comment_max=None,
    compiled_comment_min=1,
    dd_comment_max=1000,
    decider_role=None,
    decider_permission=Permissions.REVIEW_DECISIONS,
    default_quorum=QuorumPolicy(min_reviews=2),
)

_TRACKS = {
    Track.IDEA: IDEA_TRACK,
    Track.CHALLENGE: CHALLENGE_TRACK,
}


def get_track(value) -> ReviewTrack:
    """Resolve a track name ("idea" / "challenge") to its descriptor."""
    if isinstance(value, ReviewTrack):
        return value
    return _TRACKS[parse_enum(Track, value, "track")]
