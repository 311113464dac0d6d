"""
Collaboration models.

Models:
    - CollaborationRequest: handshake a non-owner must win before proposing.
    - CollaborationProposal: shadow values for the idea's editable fields.
    - IdeaVersion: append-only full snapshot of an idea's editable fields.

Store-level guards:
    - at most one open (pending/approved) request per (idea, requester),
      via a partial unique index;
    - (idea_id, version_number) unique, so two snapshots can never share a
      number even if the per-idea row lock is bypassed.
"""

from datetime import datetime, timezone

from sqlalchemy import text

from ideahub.core.idea_patch import IdeaPatch
from ideahub.models import db
from ideahub.models.workflow import ProposalStatus, RequestStatus


def _iso(value):
    return value.isoformat() if value else None


class CollaborationRequest(db.Model):
    __tablename__ = "collaboration_requests"
    __table_args__ = (
        db.Index(
            "uq_collab_request_open", "idea_id", "requester_id",
            unique=True,
            sqlite_where=text("status != 'rejected'"),
            postgresql_where=text("status != 'rejected'"),
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    idea_id = db.Column(
        db.Integer, db.ForeignKey("ideas.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    requester_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    owner_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    message = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default=RequestStatus.PENDING.value)
    responded_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    idea = db.relationship("Idea")
    requester = db.relationship("User", foreign_keys=[requester_id])

    def to_dict(self):
        return {
            "id": self.id,
            "idea_id": self.idea_id,
            "idea_title": self.idea.title if self.idea else None,
            "requester_id": self.requester_id,
            "requester_name": self.requester.full_name if self.requester else None,
            "owner_id": self.owner_id,
            "message": self.message,
            "status": self.status,
            "responded_at": _iso(self.responded_at),
            "created_at": _iso(self.created_at),
        }


class CollaborationProposal(db.Model):
    """An edit proposal; a null ``proposed_*`` value means "leave unchanged"."""

    __tablename__ = "collaboration_proposals"

    id = db.Column(db.Integer, primary_key=True)
    idea_id = db.Column(
        db.Integer, db.ForeignKey("ideas.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    collaborator_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    original_author_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )

    proposed_title = db.Column(db.String(255))
    proposed_abstract = db.Column(db.Text)
    proposed_problem_statement = db.Column(db.Text)
    proposed_proposed_solution = db.Column(db.Text)
    proposed_cost_benefit_analysis = db.Column(db.Text)
    proposed_declaration_of_interests = db.Column(db.Text)
    proposed_original_idea_disclaimer = db.Column(db.Boolean)
    proposed_collaboration_enabled = db.Column(db.Boolean)
    proposed_team_effort = db.Column(db.Boolean)
    proposed_comments_enabled = db.Column(db.Boolean)
    proposed_collaboration_deadline = db.Column(db.Date)

    changed_fields = db.Column(db.JSON, nullable=False, default=list)
    collaboration_notes = db.Column(db.Text, nullable=False)
    change_summary = db.Column(db.String(500), nullable=False)

    status = db.Column(db.String(20), nullable=False, default=ProposalStatus.PENDING.value)
    review_notes = db.Column(db.Text)
    reviewed_at = db.Column(db.DateTime)
    reviewed_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    idea = db.relationship("Idea")
    collaborator = db.relationship("User", foreign_keys=[collaborator_id])

    def proposed_values(self) -> dict:
        """Non-null proposed values keyed by idea field name."""
        return dict(IdeaPatch.from_proposal(self).items())

    def to_dict(self):
        return {
            "id": self.id,
            "idea_id": self.idea_id,
            "idea_title": self.idea.title if self.idea else None,
            "collaborator_id": self.collaborator_id,
            "collaborator_name": self.collaborator.full_name if self.collaborator else None,
            "original_author_id": self.original_author_id,
            "proposed": {k: (_iso(v) if k == "collaboration_deadline" else v)
                         for k, v in self.proposed_values().items()},
            "changed_fields": list(self.changed_fields or []),
            "collaboration_notes": self.collaboration_notes,
            "change_summary": self.change_summary,
            "status": self.status,
            "review_notes": self.review_notes,
            "reviewed_at": _iso(self.reviewed_at),
            "reviewed_by": self.reviewed_by,
            "created_at": _iso(self.created_at),
        }


class IdeaVersion(db.Model):
    """Immutable snapshot of an idea taken before a collaborative change."""

    __tablename__ = "idea_versions"
    __table_args__ = (
        db.UniqueConstraint("idea_id", "version_number", name="uq_idea_version_number"),
    )

    id = db.Column(db.Integer, primary_key=True)
    idea_id = db.Column(
        db.Integer, db.ForeignKey("ideas.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    version_number = db.Column(db.Integer, nullable=False)

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
    collaboration_deadline = db.Column(db.Date)

    status = db.Column(db.String(30), nullable=False)
    current_revision_number = db.Column(db.Integer, nullable=False)
    change_description = db.Column(db.String(255), nullable=False)
    changed_fields = db.Column(db.JSON, nullable=False, default=list)
    changed_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    collaboration_proposal_id = db.Column(
        db.Integer, db.ForeignKey("collaboration_proposals.id", ondelete="SET NULL"), nullable=True,
    )
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "idea_id": self.idea_id,
            "version_number": self.version_number,
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
            "change_description": self.change_description,
            "changed_fields": list(self.changed_fields or []),
            "changed_by": self.changed_by,
            "collaboration_proposal_id": self.collaboration_proposal_id,
            "created_at": _iso(self.created_at),
        }
