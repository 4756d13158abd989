from __future__ import annotations
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "20260301_0002"
down_revision = "20260301_0001"
branch_labels = None
depends_on = None

UUID = postgresql.UUID(as_uuid=True)

def _fk(table: str, ondelete: str = "CASCADE"):
    return sa.ForeignKey(f"{table}.id", ondelete=ondelete)

def _created_at():
    return sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False)

def upgrade() -> None:
    # reference catalog
    op.create_table(
        "car_makes",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=80), nullable=False),
        sa.Column("slug", sa.String(length=80), nullable=False),
    )
    op.create_index("ix_car_makes_slug", "car_makes", ["slug"], unique=True)

    op.create_table(
        "car_models",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("make_id", UUID, _fk("car_makes"), nullable=False),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("slug", sa.String(length=160), nullable=False),
        sa.UniqueConstraint("make_id", "slug", name="uq_car_model_make_slug"),
    )
    op.create_index("ix_car_models_make_id", "car_models", ["make_id"])

    op.create_table(
        "car_generations",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("model_id", UUID, _fk("car_models"), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=True),
        sa.Column("start_year", sa.Integer(), nullable=True),
        sa.Column("end_year", sa.Integer(), nullable=True),
        sa.UniqueConstraint("model_id", "name", name="uq_car_generation_model_name"),
    )
    op.create_index("ix_car_generations_model_id", "car_generations", ["model_id"])

    op.create_table(
        "engine_configs",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("generation_id", UUID, _fk("car_generations"), nullable=False),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("displacement_cc", sa.Integer(), nullable=True),
        sa.Column("fuel_type", sa.String(length=32), nullable=True),
        sa.Column("horsepower", sa.Integer(), nullable=True),
        sa.Column("torque_nm", sa.Integer(), nullable=True),
    )
    op.create_index("ix_engine_configs_generation_id", "engine_configs", ["generation_id"])

    # garage
    op.create_table(
        "cars",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("owner_id", UUID, _fk("users"), nullable=False),
        sa.Column("generation_id", UUID, _fk("car_generations", "SET NULL"), nullable=True),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("nickname", sa.String(length=120), nullable=True),
        sa.Column("image", sa.Text(), nullable=True),
        sa.Column("thumbnail", sa.Text(), nullable=True),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
    )
    op.create_index("ix_cars_owner_id", "cars", ["owner_id"])
    op.create_index("ix_cars_generation_id", "cars", ["generation_id"])
    op.create_index("ix_cars_created_at", "cars", ["created_at"])

    op.create_table(
        "car_follows",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("follower_id", UUID, _fk("users"), nullable=False),
        sa.Column("car_id", UUID, _fk("cars"), nullable=False),
        _created_at(),
        sa.UniqueConstraint("follower_id", "car_id", name="uq_car_follow_pair"),
    )
    op.create_index("ix_car_follows_follower_id", "car_follows", ["follower_id"])
    op.create_index("ix_car_follows_car_id", "car_follows", ["car_id"])

    op.create_table(
        "car_ratings",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("car_id", UUID, _fk("cars"), nullable=False),
        sa.Column("user_id", UUID, _fk("users"), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        _created_at(),
        sa.UniqueConstraint("car_id", "user_id", name="uq_car_rating_once"),
        sa.CheckConstraint("rating BETWEEN 1 AND 10", name="ck_car_rating_range"),
    )
    op.create_index("ix_car_ratings_car_id", "car_ratings", ["car_id"])
    op.create_index("ix_car_ratings_user_id", "car_ratings", ["user_id"])
    op.create_index("ix_car_ratings_created_at", "car_ratings", ["created_at"])

    op.create_table(
        "car_comments",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("car_id", UUID, _fk("cars"), nullable=False),
        sa.Column("author_id", UUID, _fk("users"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        _created_at(),
    )
    op.create_index("ix_car_comments_car_id", "car_comments", ["car_id"])
    op.create_index("ix_car_comments_author_id", "car_comments", ["author_id"])
    op.create_index("ix_car_comments_created_at", "car_comments", ["created_at"])

    op.create_table(
        "car_photos",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("car_id", UUID, _fk("cars"), nullable=False),
        sa.Column("uploader_id", UUID, _fk("users"), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("thumbnail", sa.Text(), nullable=True),
        sa.Column("caption", sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_index("ix_car_photos_car_id", "car_photos", ["car_id"])
    op.create_index("ix_car_photos_uploader_id", "car_photos", ["uploader_id"])
    op.create_index("ix_car_photos_created_at", "car_photos", ["created_at"])

    op.create_table(
        "photo_ratings",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("photo_id", UUID, _fk("car_photos"), nullable=False),
        sa.Column("user_id", UUID, _fk("users"), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        _created_at(),
        sa.UniqueConstraint("photo_id", "user_id", name="uq_photo_rating_once"),
        sa.CheckConstraint("rating BETWEEN 1 AND 10", name="ck_photo_rating_range"),
    )
    op.create_index("ix_photo_ratings_photo_id", "photo_ratings", ["photo_id"])
    op.create_index("ix_photo_ratings_user_id", "photo_ratings", ["user_id"])

    op.create_table(
        "photo_comments",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("photo_id", UUID, _fk("car_photos"), nullable=False),
        sa.Column("author_id", UUID, _fk("users"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        _created_at(),
    )
    op.create_index("ix_photo_comments_photo_id", "photo_comments", ["photo_id"])
    op.create_index("ix_photo_comments_author_id", "photo_comments", ["author_id"])

    # posts
    op.create_table(
        "posts",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("author_id", UUID, _fk("users"), nullable=False),
        sa.Column("car_id", UUID, _fk("cars"), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("category", sa.String(length=16), nullable=False, server_default="other"),
        sa.Column("images", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        _created_at(),
    )
    op.create_index("ix_posts_author_id", "posts", ["author_id"])
    op.create_index("ix_posts_car_id", "posts", ["car_id"])
    op.create_index("ix_posts_created_at", "posts", ["created_at"])

    op.create_table(
        "post_likes",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("post_id", UUID, _fk("posts"), nullable=False),
        sa.Column("user_id", UUID, _fk("users"), nullable=False),
        _created_at(),
        sa.UniqueConstraint("post_id", "user_id", name="uq_post_like_once"),
    )
    op.create_index("ix_post_likes_post_id", "post_likes", ["post_id"])
    op.create_index("ix_post_likes_user_id", "post_likes", ["user_id"])

    op.create_table(
        "post_comments",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("post_id", UUID, _fk("posts"), nullable=False),
        sa.Column("author_id", UUID, _fk("users"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        _created_at(),
    )
    op.create_index("ix_post_comments_post_id", "post_comments", ["post_id"])
    op.create_index("ix_post_comments_author_id", "post_comments", ["author_id"])

def downgrade() -> None:
    for table in (
        "post_comments", "post_likes", "posts",
        "photo_comments", "photo_ratings", "car_photos",
        "car_comments", "car_ratings", "car_follows", "cars",
        "engine_configs", "car_generations", "car_models", "car_makes",
    ):
        op.drop_table(table)
