from __future__ import annotations
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "20260301_0003"
down_revision = "20260301_0002"
branch_labels = None
depends_on = None

UUID = postgresql.UUID(as_uuid=True)

def upgrade() -> None:
    op.create_table(
        "sim_games",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("slug", sa.String(length=120), nullable=False),
        sa.Column("short_name", sa.String(length=16), nullable=True),
    )
    op.create_index("ix_sim_games_slug", "sim_games", ["slug"], unique=True)

    op.create_table(
        "sim_tracks",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("game_id", UUID, sa.ForeignKey("sim_games.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("slug", sa.String(length=160), nullable=False),
        sa.Column("configuration", sa.String(length=80), nullable=True),
        sa.Column("country", sa.String(length=80), nullable=True),
        sa.Column("length_meters", sa.Integer(), nullable=True),
        sa.UniqueConstraint("game_id", "slug", name="uq_sim_track_game_slug"),
    )
    op.create_index("ix_sim_tracks_game_id", "sim_tracks", ["game_id"])

    op.create_table(
        "sim_cars",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("game_id", UUID, sa.ForeignKey("sim_games.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("class", sa.String(length=32), nullable=True),
    )
    op.create_index("ix_sim_cars_game_id", "sim_cars", ["game_id"])
    op.create_index("ix_sim_cars_class", "sim_cars", ["class"])

    op.create_table(
        "sim_lap_times",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("game_id", UUID, sa.ForeignKey("sim_games.id", ondelete="CASCADE"), nullable=False),
        sa.Column("track_id", UUID, sa.ForeignKey("sim_tracks.id", ondelete="CASCADE"), nullable=False),
        sa.Column("car_id", UUID, sa.ForeignKey("sim_cars.id", ondelete="CASCADE"), nullable=False),
        sa.Column("time_ms", sa.Integer(), nullable=False),
        sa.Column("weather", sa.String(length=16), nullable=True),
        sa.Column("assists", sa.String(length=16), nullable=True),
        sa.Column("proof_url", sa.Text(), nullable=True),
        sa.Column("proof_type", sa.String(length=16), nullable=True),
        sa.Column("setup_notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("reviewed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("time_ms > 0", name="ck_sim_lap_time_positive"),
    )
    for col in ("user_id", "game_id", "track_id", "car_id"):
        op.create_index(f"ix_sim_lap_times_{col}", "sim_lap_times", [col])
    # leaderboard scan: (game, track) ordered by time
    op.create_index("ix_sim_lap_times_board", "sim_lap_times", ["game_id", "track_id", "time_ms"])

def downgrade() -> None:
    op.drop_table("sim_lap_times")
    op.drop_table("sim_cars")
    op.drop_table("sim_tracks")
    op.drop_table("sim_games")
