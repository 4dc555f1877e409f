"""Create board review tables: users, client_applications, votes, comments,
status history and notifications.

Revision ID: 0001_board_review
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001_board_review"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("display_name", sa.Text(), nullable=True),
        sa.Column("role", sa.Text(), server_default="member", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("board_member_since", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    # --- client_applications ---
    op.create_table(
        "client_applications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("applicant_id", sa.Text(), nullable=False),
        sa.Column("first_name", sa.Text(), nullable=True),
        sa.Column("last_name", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("phone_number", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), server_default="draft", nullable=False),
        sa.Column("funding_types", sa.JSON(), nullable=False),
        sa.Column("estimated_monthly_cost", sa.Numeric(10, 2), nullable=True),
        sa.Column(
            "program_duration_months", sa.Integer(), server_default="12", nullable=False
        ),
        sa.Column("funding_details", sa.Text(), nullable=True),
        sa.Column("personal_statement", sa.Text(), nullable=True),
        sa.Column("expected_benefits", sa.Text(), nullable=True),
        sa.Column("commitment_statement", sa.Text(), nullable=True),
        sa.Column("concerns_obstacles", sa.Text(), nullable=True),
        sa.Column("signature", sa.Text(), nullable=True),
        sa.Column("current_step", sa.Integer(), server_default="1", nullable=False),
        sa.Column(
            "info_requested", sa.Boolean(), server_default=sa.false(), nullable=False
        ),
        sa.Column("info_request_details", sa.Text(), nullable=True),
        sa.Column("info_requested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_monthly_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("assigned_sponsor_id", sa.Text(), nullable=True),
        sa.Column("decision_message", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("decided_by_id", sa.Text(), nullable=True),
        sa.Column("withdrawal_reason", sa.Text(), nullable=True),
        sa.Column("withdrawn_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("review_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        *_timestamps(),
    )
    op.create_index(
        "ix_client_applications_applicant_id", "client_applications", ["applicant_id"]
    )
    op.create_index("ix_client_applications_status", "client_applications", ["status"])

    # --- application_votes ---
    op.create_table(
        "application_votes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "application_id",
            sa.Integer(),
            sa.ForeignKey("client_applications.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("voter_id", sa.Text(), nullable=False),
        sa.Column("decision", sa.Text(), nullable=False),
        sa.Column("reasoning", sa.Text(), nullable=False),
        sa.Column("confidence_level", sa.Integer(), server_default="3", nullable=False),
        sa.Column("cast_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("application_id", "voter_id", name="uq_vote_app_voter"),
        sa.CheckConstraint(
            "decision IN ('approve','reject','needs_more_info','abstain')",
            name="application_votes_decision_check",
        ),
        sa.CheckConstraint(
            "confidence_level BETWEEN 1 AND 5",
            name="application_votes_confidence_check",
        ),
    )
    op.create_index(
        "ix_application_votes_application_id", "application_votes", ["application_id"]
    )
    op.create_index("ix_application_votes_voter_id", "application_votes", ["voter_id"])

    # --- application_comments ---
    op.create_table(
        "application_comments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "application_id",
            sa.Integer(),
            sa.ForeignKey("client_applications.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("author_id", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_private", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column(
            "is_information_request",
            sa.Boolean(),
            server_default=sa.false(),
            nullable=False,
        ),
        sa.Column(
            "parent_comment_id",
            sa.Integer(),
            sa.ForeignKey("application_comments.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_application_comments_application_id",
        "application_comments",
        ["application_id"],
    )

    # --- application_status_history ---
    op.create_table(
        "application_status_history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "application_id",
            sa.Integer(),
            sa.ForeignKey("client_applications.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("old_status", sa.Text(), nullable=True),
        sa.Column("new_status", sa.Text(), nullable=False),
        sa.Column("event", sa.Text(), nullable=False),
        sa.Column("changed_by", sa.Text(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_application_status_history_application_id",
        "application_status_history",
        ["application_id"],
    )

    # --- application_notifications ---
    op.create_table(
        "application_notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("recipient_id", sa.Text(), nullable=False),
        sa.Column(
            "application_id",
            sa.Integer(),
            sa.ForeignKey("client_applications.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("notification_type", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("action_url", sa.Text(), nullable=True),
        sa.Column("is_read", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_application_notifications_recipient_id",
        "application_notifications",
        ["recipient_id"],
    )


def downgrade() -> None:
    op.drop_table("application_notifications")
    op.drop_table("application_status_history")
    op.drop_table("application_comments")
    op.drop_table("application_votes")
    op.drop_table("client_applications")
    op.drop_table("users")
