"""Application settings and configuration.

This module defines all configuration options for the Scout Queue service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Scout Queue", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Bearer tokens are issued by the main site; we only verify them.
    secret_key: str = Field(alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")

    # Database configuration
    database_url: str = Field(default="sqlite:///./scout_queue.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    db_timeout_seconds: float = Field(default=10.0, alias="DB_TIMEOUT_SECONDS")

    # Funding and velocity policy
    funding_threshold: int = Field(default=1000, ge=1, alias="FUNDING_THRESHOLD")
    velocity_window_hours: int = Field(default=24, ge=1, alias="VELOCITY_WINDOW_HOURS")
    max_scan_timestamps: int = Field(default=500, ge=1, alias="MAX_SCAN_TIMESTAMPS")
    trending_scans_24h: int = Field(default=20, alias="TRENDING_SCANS_24H")
    urgent_scans_24h: int = Field(default=100, alias="URGENT_SCANS_24H")

    # Read-side limits
    leaderboard_max_limit: int = Field(default=50, ge=1, alias="LEADERBOARD_MAX_LIMIT")
    queue_default_limit: int = Field(default=20, ge=1, alias="QUEUE_DEFAULT_LIMIT")
    investigations_max: int = Field(default=100, ge=1, alias="INVESTIGATIONS_MAX")
    queue_position_scan_limit: int = Field(default=500, ge=1, alias="QUEUE_POSITION_SCAN_LIMIT")

    # Optimistic concurrency retries on the per-barcode ledger row
    vote_max_retries: int = Field(default=5, ge=0, alias="VOTE_MAX_RETRIES")
    vote_retry_base_delay: float = Field(default=0.05, ge=0.0, alias="VOTE_RETRY_BASE_DELAY")

    # CORS configuration for web and mobile clients
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def velocity_window_ms(self) -> int:
        """Return the velocity window length in milliseconds."""
        return self.velocity_window_hours * 60 * 60 * 1000


settings = Settings()  # type: ignore[call-arg]
