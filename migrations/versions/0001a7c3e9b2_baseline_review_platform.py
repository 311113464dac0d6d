"""baseline_review_platform

Creates the review platform schema:
  - users, roles, permissions, role_permissions, user_roles
  - ideas, team_members, idea_likes
  - challenges, challenge_submissions
  - reviews, review_decisions
  - collaboration_requests, collaboration_proposals, idea_versions
  - audit_logs

Revision ID: 0001a7c3e9b2
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001a7c3e9b2'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    ]


def _attachment():
    return [
        sa.Column("attachment_path", sa.String(length=500), nullable=True),
        sa.Column("attachment_name", sa.String(length=255), nullable=True),
        sa.Column("attachment_mime", sa.String(length=100), nullable=True),
    ]


def _workflow():
    return [
        sa.Column("status", sa.String(length=30), nullable=False, server_default="draft"),
        sa.Column("current_revision_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("review_round", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("submitted_at", sa.DateTime(), nullable=True),
    ]


def upgrade():
    # ── Identity ──────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(length=200), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("display_name", sa.String(length=200), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_table(
        "permissions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("codename", sa.String(length=100), nullable=False),
        sa.Column("category", sa.String(length=50), nullable=False),
        sa.Column("display_name", sa.String(length=200), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("codename"),
    )
    op.create_table(
        "role_permissions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("role_id", sa.Integer(), nullable=False),
        sa.Column("permission_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["permission_id"], ["permissions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),
    )
    op.create_table(
        "user_roles",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("role_id", sa.Integer(), nullable=False),
        sa.Column("assigned_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "role_id", name="uq_user_role"),
    )

    # ── Idea track ────────────────────────────────────────────────────────
    op.create_table(
        "ideas",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("slug", sa.String(length=20), nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("abstract", sa.Text(), nullable=True),
        sa.Column("problem_statement", sa.Text(), nullable=True),
        sa.Column("proposed_solution", sa.Text(), nullable=True),
        sa.Column("cost_benefit_analysis", sa.Text(), nullable=True),
        sa.Column("declaration_of_interests", sa.Text(), nullable=True),
        sa.Column("original_idea_disclaimer", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("collaboration_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("team_effort", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("comments_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("collaboration_deadline", sa.Date(), nullable=True),
        *_workflow(),
        *_attachment(),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
    )
    op.create_index("ix_ideas_owner_id", "ideas", ["owner_id"])
    op.create_index("ix_ideas_deleted_at", "ideas", ["deleted_at"])
    op.create_index("idx_ideas_status_submitted", "ideas", ["status", "submitted_at"])

    op.create_table(
        "team_members",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("idea_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=255), nullable=False),
        sa.ForeignKeyConstraint(["idea_id"], ["ideas.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_team_members_idea_id", "team_members", ["idea_id"])

    op.create_table(
        "idea_likes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("idea_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["idea_id"], ["ideas.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("idea_id", "user_id", name="uq_idea_like"),
    )
    op.create_index("ix_idea_likes_idea_id", "idea_likes", ["idea_id"])

    # ── Challenge track ───────────────────────────────────────────────────
    op.create_table(
        "challenges",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("guidelines", sa.Text(), nullable=True),
        sa.Column("reward", sa.String(length=255), nullable=True),
        sa.Column("deadline", sa.DateTime(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "challenge_submissions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("challenge_id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("motivation", sa.Text(), nullable=True),
        sa.Column("cost_of_implementation", sa.Numeric(precision=14, scale=2), nullable=True),
        sa.Column("original_disclaimer", sa.Text(), nullable=True),
        *_workflow(),
        *_attachment(),
        *_timestamps(),
        sa.ForeignKeyConstraint(["challenge_id"], ["challenges.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("challenge_id", "owner_id", name="uq_submission_owner"),
    )
    op.create_index("ix_challenge_submissions_challenge_id", "challenge_submissions", ["challenge_id"])
    op.create_index("ix_challenge_submissions_owner_id", "challenge_submissions", ["owner_id"])
    op.create_index("idx_submissions_status_submitted", "challenge_submissions", ["status", "submitted_at"])

    # ── Reviews & decisions ───────────────────────────────────────────────
    op.create_table(
        "reviews",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("track", sa.String(length=20), nullable=False, comment="idea | challenge"),
        sa.Column("subject_id", sa.Integer(), nullable=False),
        sa.Column("reviewer_id", sa.Integer(), nullable=False),
        sa.Column("stage", sa.String(length=10), nullable=False, comment="stage1 | stage2"),
        sa.Column("recommendation", sa.String(length=10), nullable=False),
        sa.Column("comments", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["reviewer_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "track", "subject_id", "reviewer_id", "stage",
            name="uq_review_per_reviewer_stage",
        ),
    )
    op.create_index("idx_reviews_subject", "reviews", ["track", "subject_id", "stage"])
    op.create_index("ix_reviews_reviewer_id", "reviews", ["reviewer_id"])

    op.create_table(
        "review_decisions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("track", sa.String(length=20), nullable=False),
        sa.Column("subject_id", sa.Integer(), nullable=False),
        sa.Column("stage", sa.String(length=10), nullable=False),
        sa.Column("review_round", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("decision", sa.String(length=10), nullable=False),
        sa.Column("compiled_comments", sa.Text(), nullable=False),
        sa.Column("dd_comments", sa.Text(), nullable=True),
        sa.Column("decider_id", sa.Integer(), nullable=True),
        sa.Column("previous_status", sa.String(length=30), nullable=False),
        sa.Column("new_status", sa.String(length=30), nullable=False),
        sa.Column("decided_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["decider_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "track", "subject_id", "stage", "review_round", name="uq_decision_per_stage",
        ),
    )
    op.create_index("ix_review_decisions_subject_id", "review_decisions", ["subject_id"])

    # ── Collaboration ─────────────────────────────────────────────────────
    op.create_table(
        "collaboration_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("idea_id", sa.Integer(), nullable=False),
        sa.Column("requester_id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("responded_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["idea_id"], ["ideas.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["requester_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_collaboration_requests_idea_id", "collaboration_requests", ["idea_id"])
    op.create_index("ix_collaboration_requests_requester_id", "collaboration_requests", ["requester_id"])
    op.create_index("ix_collaboration_requests_owner_id", "collaboration_requests", ["owner_id"])
    op.create_index(
        "uq_collab_request_open", "collaboration_requests", ["idea_id", "requester_id"],
        unique=True,
        sqlite_where=sa.text("status != 'rejected'"),
        postgresql_where=sa.text("status != 'rejected'"),
    )

    op.create_table(
        "collaboration_proposals",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("idea_id", sa.Integer(), nullable=False),
        sa.Column("collaborator_id", sa.Integer(), nullable=False),
        sa.Column("original_author_id", sa.Integer(), nullable=False),
        sa.Column("proposed_title", sa.String(length=255), nullable=True),
        sa.Column("proposed_abstract", sa.Text(), nullable=True),
        sa.Column("proposed_problem_statement", sa.Text(), nullable=True),
        sa.Column("proposed_proposed_solution", sa.Text(), nullable=True),
        sa.Column("proposed_cost_benefit_analysis", sa.Text(), nullable=True),
        sa.Column("proposed_declaration_of_interests", sa.Text(), nullable=True),
        sa.Column("proposed_original_idea_disclaimer", sa.Boolean(), nullable=True),
        sa.Column("proposed_collaboration_enabled", sa.Boolean(), nullable=True),
        sa.Column("proposed_team_effort", sa.Boolean(), nullable=True),
        sa.Column("proposed_comments_enabled", sa.Boolean(), nullable=True),
        sa.Column("proposed_collaboration_deadline", sa.Date(), nullable=True),
        sa.Column("changed_fields", sa.JSON(), nullable=False),
        sa.Column("collaboration_notes", sa.Text(), nullable=False),
        sa.Column("change_summary", sa.String(length=500), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("review_notes", sa.Text(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(), nullable=True),
        sa.Column("reviewed_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["idea_id"], ["ideas.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["collaborator_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["original_author_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["reviewed_by"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_collaboration_proposals_idea_id", "collaboration_proposals", ["idea_id"])
    op.create_index(
        "ix_collaboration_proposals_collaborator_id", "collaboration_proposals", ["collaborator_id"],
    )
    op.create_index(
        "ix_collaboration_proposals_original_author_id", "collaboration_proposals", ["original_author_id"],
    )

    op.create_table(
        "idea_versions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("idea_id", sa.Integer(), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("abstract", sa.Text(), nullable=True),
        sa.Column("problem_statement", sa.Text(), nullable=True),
        sa.Column("proposed_solution", sa.Text(), nullable=True),
        sa.Column("cost_benefit_analysis", sa.Text(), nullable=True),
        sa.Column("declaration_of_interests", sa.Text(), nullable=True),
        sa.Column("original_idea_disclaimer", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("collaboration_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("team_effort", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("comments_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("collaboration_deadline", sa.Date(), nullable=True),
        sa.Column("status", sa.String(length=30), nullable=False),
        sa.Column("current_revision_number", sa.Integer(), nullable=False),
        sa.Column("change_description", sa.String(length=255), nullable=False),
        sa.Column("changed_fields", sa.JSON(), nullable=False),
        sa.Column("changed_by", sa.Integer(), nullable=True),
        sa.Column("collaboration_proposal_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["idea_id"], ["ideas.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["changed_by"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(
            ["collaboration_proposal_id"], ["collaboration_proposals.id"], ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("idea_id", "version_number", name="uq_idea_version_number"),
    )
    op.create_index("ix_idea_versions_idea_id", "idea_versions", ["idea_id"])

    # ── Audit ─────────────────────────────────────────────────────────────
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("entity_type", sa.String(length=30), nullable=False),
        sa.Column("entity_id", sa.String(length=36), nullable=False),
        sa.Column("action", sa.String(length=60), nullable=False),
        sa.Column("actor_user_id", sa.Integer(), nullable=True),
        sa.Column("diff_json", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["actor_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_audit_entity", "audit_logs", ["entity_type", "entity_id"])
    op.create_index("idx_audit_actor", "audit_logs", ["actor_user_id"])
    op.create_index("idx_audit_action", "audit_logs", ["action"])
    op.create_index("idx_audit_ts", "audit_logs", ["timestamp"])


def downgrade():
    for table in (
        "audit_logs",
        "idea_versions",
        "collaboration_proposals",
        "collaboration_requests",
        "review_decisions",
        "reviews",
        "challenge_submissions",
        "challenges",
        "idea_likes",
        "team_members",
        "ideas",
        "user_roles",
        "role_permissions",
        "permissions",
        "roles",
        "users",
    ):
        op.drop_table(table)
