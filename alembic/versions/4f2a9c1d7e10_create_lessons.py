"""create_lessons

Revision ID: 4f2a9c1d7e10
Revises:
Create Date: 2026-10-18 09:12:44.118402

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4f2a9c1d7e10"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
  """Upgrade schema."""
  op.create_table(
    "lessons",
    sa.Column("lesson_id", sa.String(), nullable=False),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("outline", sa.Text(), nullable=False),
    sa.Column("status", sa.String(), server_default="generating", nullable=False),
    sa.Column("generated_content", sa.Text(), nullable=True),
    sa.Column("error_message", sa.Text(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.CheckConstraint("status IN ('generating', 'generated', 'failed')", name="ck_lessons_status"),
    sa.CheckConstraint("(status = 'generated') = (generated_content IS NOT NULL)", name="ck_lessons_content_iff_generated"),
    sa.CheckConstraint("(status = 'failed') = (error_message IS NOT NULL)", name="ck_lessons_error_iff_failed"),
    sa.PrimaryKeyConstraint("lesson_id"),
  )
  op.create_index("ix_lessons_status_created_at", "lessons", ["status", "created_at"], unique=False)


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_index("ix_lessons_status_created_at", table_name="lessons")
  op.drop_table("lessons")
