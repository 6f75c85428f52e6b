"""Initial schema — users, movie_nights, movies, votes

Revision ID: 0001
Revises: —
Create Date: 2026-10-19 00:00:00
"""
from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from alembic import op

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    # ── users ─────────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text("gen_random_uuid()")),
        sa.Column("username", sa.String(32), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("display_name", sa.String(60), nullable=True),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        sa.Column("password_hash", sa.Text, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("is_admin", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(timezone=True),
                  nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True),
                  nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            r"username ~ '^[a-z0-9_]{3,32}$'",
            name="chk_username_format",
        ),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    # ── movie_nights ──────────────────────────────────────────────────────────
    op.create_table(
        "movie_nights",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("starting_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(timezone=True),
                  nullable=False, server_default=sa.text("now()")),
        # Two nights cannot share a start time
        sa.UniqueConstraint("starting_at", name="uq_movie_nights_starting_at"),
    )

    # ── movies ────────────────────────────────────────────────────────────────
    # id is the TMDB id; a second submission of the same movie hits the PK.
    op.create_table(
        "movies",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("image", sa.String(500), nullable=True),
        sa.Column("release_date", sa.String(32), nullable=True),
        sa.Column("banned", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("watched", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("submitter_id", UUID(as_uuid=True),
                  sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("movie_night_id", sa.Integer,
                  sa.ForeignKey("movie_nights.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True),
                  nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_movies_submitter_id", "movies", ["submitter_id"])
    op.create_index("ix_movies_movie_night_id", "movies", ["movie_night_id"])
    op.create_index("ix_movies_created_at", "movies", ["created_at"])

    # ── votes ─────────────────────────────────────────────────────────────────
    # Composite PK: at most one vote per (movie, user). Concurrent toggles by
    # the same user are settled here.
    op.create_table(
        "votes",
        sa.Column("movie_id", sa.Integer,
                  sa.ForeignKey("movies.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", UUID(as_uuid=True),
                  sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True),
                  nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("movie_id", "user_id", name="pk_votes_movie_user"),
    )
    op.create_index("ix_votes_user_id", "votes", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_votes_user_id", table_name="votes")
    op.drop_table("votes")
    op.drop_index("ix_movies_created_at", table_name="movies")
    op.drop_index("ix_movies_movie_night_id", table_name="movies")
    op.drop_index("ix_movies_submitter_id", table_name="movies")
    op.drop_table("movies")
    op.drop_table("movie_nights")
    op.drop_table("users")
