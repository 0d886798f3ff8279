import sys

import structlog
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict, SettingsError

logger = structlog.get_logger(__name__)


class Settings(BaseSettings):
    debug: bool = False
    github_webhook_secret: str = ""
    host: str = "0.0.0.0"
    port: int = 8000
    pr_label: str = Field(min_length=1)
    sentry_dsn: str | None = None
    slack_tokens: list[str]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @field_validator("pr_label")
    @classmethod
    def normalize_pr_label(cls, v: str) -> str:
        return v.lower()


def load_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as err:
        for error in err.errors():
            field = ".".join(str(part) for part in error["loc"]).upper()
            logger.critical(
                "Missing or invalid configuration",
                setting=field,
                error=error["msg"],
            )
        sys.exit(1)
    except SettingsError as err:
        # Raised while reading the environment, e.g. SLACK_TOKENS is not JSON
        logger.critical("Invalid configuration", error=str(err))
        sys.exit(1)


settings = load_settings()
