"""
Review and decision records — append-only, shared by both review tracks.

Polymorphic subject reference:
    ``track`` + ``subject_id`` identify the reviewed entity.  track="idea"
    points at ideas.id, track="challenge" at challenge_submissions.id.

Both tables are written once and never updated or deleted.  Their unique
constraints are the store-level guard against double reviews and double
decisions; services translate a violation into ConflictError /
AlreadyDecidedError.  A reviewer reviews a stage of a subject once, across
resubmissions.  ``review_round`` scopes only decisions, so a resubmitted
stage can be decided again.
"""

from datetime import datetime, timezone

from ideahub.models import db


def _iso(value):
    return value.isoformat() if value else None


class Review(db.Model):
    """One reviewer's recommendation for one stage of one subject."""

    __tablename__ = "reviews"
    __table_args__ = (
        db.UniqueConstraint(
            "track", "subject_id", "reviewer_id", "stage",
            name="uq_review_per_reviewer_stage",
        ),
        db.Index("idx_reviews_subject", "track", "subject_id", "stage"),
    )

    id = db.Column(db.Integer, primary_key=True)
    track = db.Column(db.String(20), nullable=False, comment="idea | challenge")
    subject_id = db.Column(db.Integer, nullable=False)
    reviewer_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    stage = db.Column(db.String(10), nullable=False, comment="stage1 | stage2")
    recommendation = db.Column(db.String(10), nullable=False, comment="approve | revise | reject")
    comments = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    reviewer = db.relationship("User", foreign_keys=[reviewer_id])

    def to_dict(self):
        return {
            "id": self.id,
            "track": self.track,
            "subject_id": self.subject_id,
            "reviewer_id": self.reviewer_id,
            "reviewer_name": self.reviewer.full_name if self.reviewer else None,
            "stage": self.stage,
            "recommendation": self.recommendation,
            "comments": self.comments,
            "created_at": _iso(self.created_at),
        }


class ReviewDecision(db.Model):
    """The deputy director's binding decision for one stage of one subject."""

    __tablename__ = "review_decisions"
    __table_args__ = (
        db.UniqueConstraint(
            "track", "subject_id", "stage", "review_round",
            name="uq_decision_per_stage",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    track = db.Column(db.String(20), nullable=False)
    subject_id = db.Column(db.Integer, nullable=False, index=True)
    stage = db.Column(db.String(10), nullable=False)
    review_round = db.Column(db.Integer, nullable=False, default=1)
    decision = db.Column(db.String(10), nullable=False, comment="approve | revise | reject")
    compiled_comments = db.Column(db.Text, nullable=False)
    dd_comments = db.Column(db.Text)
    decider_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    previous_status = db.Column(db.String(30), nullable=False)
    new_status = db.Column(db.String(30), nullable=False)
    decided_at = db.Column(db.DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "track": self.track,
            "subject_id": self.subject_id,
            "stage": self.stage,
            "review_round": self.review_round,
            "decision": self.decision,
            "compiled_comments": self.compiled_comments,
            "dd_comments": self.dd_comments,
            "decider_id": self.decider_id,
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "decided_at": _iso(self.decided_at),
        }
