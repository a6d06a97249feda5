"""tree_ratings

Create the tree_ratings table and the leaderboard index.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "tree_ratings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("image_url", sa.String(), nullable=False),
        sa.Column("aesthetics_score", sa.Float(), nullable=True, server_default=sa.text("0")),
        sa.Column("aesthetics_explanation", sa.String(), nullable=False, server_default=""),
        sa.Column("originality_score", sa.Float(), nullable=True, server_default=sa.text("0")),
        sa.Column("originality_explanation", sa.String(), nullable=False, server_default=""),
        sa.Column("great_features", sa.String(), nullable=False, server_default=""),
        sa.Column("improvements", JSONB(), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    )
    op.create_index(
        "ix_tree_ratings_aesthetics_score",
        "tree_ratings",
        [sa.text("aesthetics_score DESC")],
    )


def downgrade() -> None:
    op.drop_index("ix_tree_ratings_aesthetics_score", table_name="tree_ratings")
    op.drop_table("tree_ratings")
