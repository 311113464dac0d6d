"""
Idea track models.

Models:
    - Idea: an author's submission, reviewed in two stages.
    - TeamMember: name/email/role tuple for team-effort ideas.
    - IdeaLike: one like per (idea, user).

Status is mutated only by the decision service or by the owner's own
submit/resubmit/withdraw actions; see ``ideahub.models.workflow``.
"""

import secrets
from datetime import datetime, timezone

from ideahub.models import db
from ideahub.models.soft_delete import SoftDeleteMixin
from ideahub.models.workflow import IdeaStatus


def _new_slug() -> str:
    return f"{secrets.token_hex(2)}-{secrets.token_hex(2)}"


def _iso(value):
    return value.isoformat() if value else None


class Idea(SoftDeleteMixin, db.Model):
    """A submission on the idea track.

    ``current_revision_number`` starts at 1 and only grows: a decision into
    stage2_review/approved, an accepted proposal, or a rollback bumps it.
    ``review_round`` grows on each author resubmission so a stage can be
    decided again after a revise outcome.
    """

    __tablename__ = "ideas"
    __table_args__ = (
        db.Index("idx_ideas_status_submitted", "status", "submitted_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(20), unique=True, nullable=False, default=_new_slug)
    owner_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )

    # Editable content
    title = db.Column(db.String(255), nullable=False)
    abstract = db.Column(db.Text)
    problem_statement = db.Column(db.Text)
    proposed_solution = db.Column(db.Text)
    cost_benefit_analysis = db.Column(db.Text)
    declaration_of_interests = db.Column(db.Text)
    original_idea_disclaimer = db.Column(db.Boolean, nullable=False, default=False)
    collaboration_enabled = db.Column(db.Boolean, nullable=False, default=False)
    team_effort = db.Column(db.Boolean, nullable=False, default=False)
    comments_enabled = db.Column(db.Boolean, nullable=False, default=True)
    collaboration_deadline = db.Column(db.Date, nullable=True)

    # Workflow
    status = db.Column(
        db.String(30), nullable=False, default=IdeaStatus.DRAFT.value,
        comment="draft | stage1_review | stage1_revise | stage2_review | stage2_revise | approved | rejected",
    )
    current_revision_number = db.Column(db.Integer, nullable=False, default=1)
    review_round = db.Column(db.Integer, nullable=False, default=1)
    submitted_at = db.Column(db.DateTime, nullable=True)

    # Attachment triple (storage is external)
    attachment_path = db.Column(db.String(500))
    attachment_name = db.Column(db.String(255))
    attachment_mime = db.Column(db.String(100))

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    owner = db.relationship("User", foreign_keys=[owner_id])
    team_members = db.relationship(
        "TeamMember", back_populates="idea", cascade="all, delete-orphan",
        order_by="TeamMember.id",
    )
    likes = db.relationship("IdeaLike", back_populates="idea", cascade="all, delete-orphan", lazy="dynamic")

    def to_dict(self, include_team=False):
        d = {
            "id": self.id,
            "slug": self.slug,
            "owner_id": self.owner_id,
            "title": self.title,
            "abstract": self.abstract,
            "problem_statement": self.problem_statement,
            "proposed_solution": self.proposed_solution,
            "cost_benefit_analysis": self.cost_benefit_analysis,
            "declaration_of_interests": self.declaration_of_interests,
            "original_idea_disclaimer": self.original_idea_disclaimer,
            "collaboration_enabled": self.collaboration_enabled,
            "team_effort": self.team_effort,
            "comments_enabled": self.comments_enabled,
            "collaboration_deadline": _iso(self.collaboration_deadline),
            "status": self.status,
            "current_revision_number": self.current_revision_number,
            "review_round": self.review_round,
            "attachment": self.attachment_info(),
            "like_count": self.likes.count(),
            "submitted_at": _iso(self.submitted_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_team:
            d["team_members"] = [m.to_dict() for m in self.team_members]
        return d

    def attachment_info(self):
        if not self.attachment_path:
            return None
        return {
            "path": self.attachment_path,
            "name": self.attachment_name,
            "mime": self.attachment_mime,
        }

    def __repr__(self):
        return f"<Idea {self.id}: {self.status} r{self.current_revision_number}>"


class TeamMember(db.Model):
    __tablename__ = "team_members"

    id = db.Column(db.Integer, primary_key=True)
    idea_id = db.Column(
        db.Integer, db.ForeignKey("ideas.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(255), nullable=False)

    idea = db.relationship("Idea", back_populates="team_members")

    def to_dict(self):
        return {"name": self.name, "email": self.email, "role": self.role}


class IdeaLike(db.Model):
    __tablename__ = "idea_likes"
    __table_args__ = (
        db.UniqueConstraint("idea_id", "user_id", name="uq_idea_like"),
    )

    id = db.Column(db.Integer, primary_key=True)
    idea_id = db.Column(
        db.Integer, db.ForeignKey("ideas.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    idea = db.relationship("Idea", back_populates="likes")
