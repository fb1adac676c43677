"""Create users, trips and places tables

Revision ID: 001
Revises: None
Create Date: 2024-01-15 00:00:00.000000+00:00

What:  Creates the three Travel Log tables with their unique indexes.
How:   Foreign keys cascade on delete, so removing a user removes their trips
       and the places of those trips even outside of the API services.

Rollback: downgrade() drops all three tables (destructive, all data lost).
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _document_columns() -> list:
    """Columns shared by every table: keys, public id and timestamps."""
    return [
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "api_id",
            sa.String(36),
            nullable=False,
            comment="Public UUIDv4 identifier exposed as `id` in the API",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            comment="When the document was created (UTC)",
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            comment="When the document was last modified (UTC)",
        ),
    ]


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        *_document_columns(),
        sa.Column(
            "name",
            sa.String(25),
            nullable=False,
            comment="Unique user name (alphanumeric segments joined by hyphens)",
        ),
        sa.Column(
            "password_hash",
            sa.String(60),
            nullable=True,
            comment="bcrypt hash of the password",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_api_id", "users", ["api_id"], unique=True)
    # Case-insensitive uniqueness: "Alice" and "alice" are the same user name
    op.create_index("uq_users_name_lower", "users", [sa.text("lower(name)")], unique=True)

    # ── trips ─────────────────────────────────────────────────────────────
    op.create_table(
        "trips",
        *_document_columns(),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            nullable=False,
            comment="Owner of the trip; fixed at creation",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("title", name="uq_trips_title"),
    )
    op.create_index("ix_trips_api_id", "trips", ["api_id"], unique=True)
    op.create_index("ix_trips_user_id", "trips", ["user_id"])

    # ── places ────────────────────────────────────────────────────────────
    op.create_table(
        "places",
        *_document_columns(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("altitude", sa.Float(), nullable=True),
        sa.Column("picture_url", sa.String(1000), nullable=True),
        sa.Column("trip_id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["trip_id"], ["trips.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_places_api_id", "places", ["api_id"], unique=True)
    op.create_index("ix_places_trip_id", "places", ["trip_id"])
    op.create_index(
        "uq_places_trip_name_lower",
        "places",
        [sa.text("lower(name)"), "trip_id"],
        unique=True,
    )
    op.create_index("idx_places_location", "places", ["longitude", "latitude"])


def downgrade() -> None:
    op.drop_table("places")
    op.drop_table("trips")
    op.drop_index("uq_users_name_lower", table_name="users")
    op.drop_index("ix_users_api_id", table_name="users")
    op.drop_table("users")
