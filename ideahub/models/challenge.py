"""
Challenge track models.

Models:
    - Challenge: a call for submissions with a deadline.
    - ChallengeSubmission: one entry per (challenge, owner); moves through the
      same review machine as an Idea.
"""

from datetime import datetime, timezone

from ideahub.models import db
from ideahub.models.workflow import ChallengeStatus, IdeaStatus


def _iso(value):
    return value.isoformat() if value else None


def _as_utc(value):
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Challenge(db.Model):
    __tablename__ = "challenges"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False)
    guidelines = db.Column(db.Text)
    reward = db.Column(db.String(255))
    deadline = db.Column(db.DateTime, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=ChallengeStatus.ACTIVE.value)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    submissions = db.relationship("ChallengeSubmission", back_populates="challenge", lazy="dynamic")

    def is_open(self, now=None):
        """Active and the deadline has not passed."""
        now = now or datetime.now(timezone.utc)
        return self.status == ChallengeStatus.ACTIVE and _as_utc(self.deadline) > now

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "guidelines": self.guidelines,
            "reward": self.reward,
            "deadline": _iso(self.deadline),
            "status": self.status,
            "is_open": self.is_open(),
            "created_by": self.created_by,
            "submission_count": self.submissions.count(),
        }


class ChallengeSubmission(db.Model):
    """A submission on the challenge track; structurally an Idea twin."""

    __tablename__ = "challenge_submissions"
    __table_args__ = (
        db.UniqueConstraint("challenge_id", "owner_id", name="uq_submission_owner"),
        db.Index("idx_submissions_status_submitted", "status", "submitted_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    challenge_id = db.Column(
        db.Integer, db.ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    owner_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )

    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    motivation = db.Column(db.Text)
    cost_of_implementation = db.Column(db.Numeric(14, 2))
    original_disclaimer = db.Column(db.Text)

    status = db.Column(db.String(30), nullable=False, default=IdeaStatus.DRAFT.value)
    current_revision_number = db.Column(db.Integer, nullable=False, default=1)
    review_round = db.Column(db.Integer, nullable=False, default=1)
    submitted_at = db.Column(db.DateTime, nullable=True)

    attachment_path = db.Column(db.String(500))
    attachment_name = db.Column(db.String(255))
    attachment_mime = db.Column(db.String(100))

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    challenge = db.relationship("Challenge", back_populates="submissions")

    def to_dict(self):
        return {
            "id": self.id,
            "challenge_id": self.challenge_id,
            "challenge_title": self.challenge.title if self.challenge else None,
            "owner_id": self.owner_id,
            "title": self.title,
            "description": self.description,
            "motivation": self.motivation,
            "cost_of_implementation": (
                float(self.cost_of_implementation) if self.cost_of_implementation is not None else None
            ),
            "original_disclaimer": self.original_disclaimer,
            "status": self.status,
            "current_revision_number": self.current_revision_number,
            "review_round": self.review_round,
            "attachment": (
                {"path": self.attachment_path, "name": self.attachment_name, "mime": self.attachment_mime}
                if self.attachment_path else None
            ),
            "submitted_at": _iso(self.submitted_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<ChallengeSubmission {self.id}: {self.status}>"
