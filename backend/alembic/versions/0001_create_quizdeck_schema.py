"""create quizdeck schema

Revision ID: 0001
Revises: 
Create Date: 2026-10-19

"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=24), primary_key=True, nullable=False),
        sa.Column("username", sa.String(length=30), nullable=False),
        sa.Column("email", sa.String(length=254), nullable=False),
        sa.Column("role", sa.Enum("user", "admin", name="userrole"), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"], unique=False)

    op.create_table(
        "quizzes",
        sa.Column("id", sa.String(length=24), primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("time_limit", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("category", sa.String(length=50), nullable=True),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_by", sa.String(length=24), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_quizzes_category", "quizzes", ["category"], unique=False)
    op.create_index("ix_quizzes_is_public", "quizzes", ["is_public"], unique=False)
    op.create_index("ix_quizzes_created_by", "quizzes", ["created_by"], unique=False)
    op.create_index("ix_quizzes_created_at", "quizzes", ["created_at"], unique=False)

    op.create_table(
        "questions",
        sa.Column("id", sa.String(length=24), primary_key=True, nullable=False),
        sa.Column("quiz_id", sa.String(length=24), sa.ForeignKey("quizzes.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("question_text", sa.String(length=1000), nullable=False),
        sa.Column("options", sa.JSON(), nullable=False),
        sa.Column("correct_answer", sa.Integer(), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False, server_default="1"),
        sa.UniqueConstraint("quiz_id", "position", name="uq_questions_quiz_position"),
    )
    op.create_index("ix_questions_quiz_id", "questions", ["quiz_id"], unique=False)

    op.create_table(
        "attempts",
        sa.Column("id", sa.String(length=24), primary_key=True, nullable=False),
        sa.Column("quiz_id", sa.String(length=24), nullable=False),
        sa.Column("user_id", sa.String(length=24), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("time_spent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("forced_submit", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_attempts_quiz_id", "attempts", ["quiz_id"], unique=False)
    op.create_index("ix_attempts_user_id", "attempts", ["user_id"], unique=False)
    op.create_index("ix_attempts_completed_at", "attempts", ["completed_at"], unique=False)

    op.create_table(
        "attempt_answers",
        sa.Column("id", sa.String(length=24), primary_key=True, nullable=False),
        sa.Column("attempt_id", sa.String(length=24), sa.ForeignKey("attempts.id"), nullable=False),
        sa.Column("question_index", sa.Integer(), nullable=False),
        sa.Column("selected_option", sa.Integer(), nullable=False, server_default="-1"),
        sa.Column("is_correct", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_attempt_answers_attempt_id", "attempt_answers", ["attempt_id"], unique=False)

    op.create_table(
        "security_audit_events",
        sa.Column("id", sa.String(length=24), primary_key=True, nullable=False),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("actor_user_id", sa.String(length=24), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("target_user_id", sa.String(length=24), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("quiz_id", sa.String(length=24), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("request_id", sa.String(length=100), nullable=True),
        sa.Column("ip", sa.String(length=80), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_security_audit_events_event_type", "security_audit_events", ["event_type"], unique=False)
    op.create_index("ix_security_audit_events_actor_user_id", "security_audit_events", ["actor_user_id"], unique=False)
    op.create_index("ix_security_audit_events_quiz_id", "security_audit_events", ["quiz_id"], unique=False)
    op.create_index("ix_security_audit_events_created_at", "security_audit_events", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_table("security_audit_events")
    op.drop_table("attempt_answers")
    op.drop_table("attempts")
    op.drop_table("questions")
    op.drop_table("quizzes")
    op.drop_index("ix_users_role", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_index("ix_users_username", table_name="users")
    op.drop_table("users")
    op.execute("DROP TYPE IF EXISTS userrole")
