from __future__ import annotations
import os
from pydantic import BaseModel

class Settings(BaseModel):
    environment: str = "dev"
    app_name: str = "motoverse-api"
    app_display_name: str = "Motoverse"
    app_version: str = "0.1.0"
    git_sha: str = "dev"
    cors_origins: list[str] = ["*"]
    database_url: str = "postgresql+asyncpg://postgres:postgres@db:5432/motoverse_dev"
    db_echo: bool = False
    # Create tables on startup (local dev / tests); production uses alembic
    db_create_all: bool = False

    jwt_secret: str = "dev-secret-change-me"
    access_ttl_min: int = 15
    refresh_ttl_min: int = 10080  # 7d

    feed_default_limit: int = 20
    feed_max_limit: int = 50
    leaderboard_default_limit: int = 20
    leaderboard_max_limit: int = 100

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            environment=os.getenv("ENVIRONMENT", "dev"),
            app_name=os.getenv("APP_NAME", "motoverse-api"),
            app_version=os.getenv("APP_VERSION", "0.1.0"),
            git_sha=os.getenv("GIT_SHA", "dev"),
            cors_origins=os.getenv("CORS_ORIGINS", "*").split(","),
            database_url=os.getenv("DATABASE_URL", "postgresql+asyncpg://postgres:postgres@db:5432/motoverse_dev"),
            db_echo=os.getenv("DB_ECHO", "0") == "1",
            db_create_all=os.getenv("DB_CREATE_ALL", "0") == "1",
            jwt_secret=os.getenv("JWT_SECRET", "dev-secret-change-me"),
            access_ttl_min=int(os.getenv("ACCESS_TTL_MIN", "15")),
            refresh_ttl_min=int(os.getenv("REFRESH_TTL_MIN", "10080")),
            feed_default_limit=int(os.getenv("FEED_DEFAULT_LIMIT", "20")),
            feed_max_limit=int(os.getenv("FEED_MAX_LIMIT", "50")),
            leaderboard_default_limit=int(os.getenv("LEADERBOARD_DEFAULT_LIMIT", "20")),
            leaderboard_max_limit=int(os.getenv("LEADERBOARD_MAX_LIMIT", "100")),
        )

settings = Settings.from_env()
