"""Application settings loaded from the environment."""

from typing import Optional

from pydantic import Field, PostgresDsn, computed_field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from meterline.core.config.enums import Environment


class Settings(BaseSettings):
    """Service settings.

    Every field can be overridden by an environment variable of the same name.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", case_sensitive=True)

    PROJECT_NAME: str = "meterline"
    ENVIRONMENT: Environment = Environment.LOCAL
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False
    TESTING: bool = False

    # Database
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "meterline"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "meterline"
    POSTGRES_SSLMODE: str = "prefer"
    DB_POOL_SIZE: int = 20
    DB_POOL_MAX_OVERFLOW: int = 40
    RUN_ALEMBIC_MIGRATIONS: bool = False

    # Billing provider
    STRIPE_ENABLED: bool = False
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None
    STRIPE_API_TIMEOUT_SECONDS: float = 10.0

    # Per-product usage reporting webhooks
    USAGE_REPORTING_TIMEOUT_SECONDS: float = 5.0
    USAGE_REPORTING_MAX_ATTEMPTS: int = Field(default=3, ge=1)

    # Inbound webhook bookkeeping
    WEBHOOK_MAX_RETRIES: int = Field(default=5, ge=1)

    # Usage limits
    USAGE_STRICT_LIMIT_LOCKING: bool = True
    USAGE_WARNING_PERCENTAGE: float = 80.0
    USAGE_QUERY_MAX_RECORDS: int = Field(default=100, ge=1, le=1000)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def SQLALCHEMY_ASYNC_DATABASE_URI(self) -> str:  # noqa: N802
        """Async database URI for SQLAlchemy (asyncpg driver)."""
        return str(
            PostgresDsn.build(
                scheme="postgresql+asyncpg",
                username=self.POSTGRES_USER,
                password=self.POSTGRES_PASSWORD or None,
                host=self.POSTGRES_HOST,
                port=self.POSTGRES_PORT,
                path=self.POSTGRES_DB,
            )
        )

    @property
    def LOCAL_DEVELOPMENT(self) -> bool:  # noqa: N802
        """Whether the service runs on a developer machine."""
        return self.ENVIRONMENT == Environment.LOCAL

    @model_validator(mode="after")
    def validate_stripe(self) -> "Settings":
        """Require provider secrets when billing is enabled."""
        if self.STRIPE_ENABLED:
            missing = [
                name
                for name in ("STRIPE_SECRET_KEY", "STRIPE_WEBHOOK_SECRET")
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(f"STRIPE_ENABLED is true but {', '.join(missing)} not set")
        return self
