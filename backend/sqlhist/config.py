from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices
from typing import Optional
import logging


class Settings(BaseSettings):
    """Histogram engine configuration using Pydantic v2 settings.

    - Reads the target database DSN from HISTOGRAM_DATABASE_URL or DATABASE_URL
    - Ignores unknown env keys
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Default collaborator store (DuckDB file); any SQLAlchemy DSN works
    database_url: str = Field(
        default="duckdb:///.data/histogram.duckdb",
        validation_alias=AliasChoices("HISTOGRAM_DATABASE_URL", "DATABASE_URL"),
    )

    # Bucket width used in fixed-size mode when the caller gives none
    default_bucket_size: float = Field(default=1.0, gt=0, validation_alias=AliasChoices("HISTOGRAM_DEFAULT_BUCKET_SIZE"))

    # Names used in the generated aggregate query
    subquery_alias: str = Field(default="subq_results")
    bucket_column: str = Field(default="bucket")
    frequency_column: str = Field(default="frequency")

    log_level: str = Field(default="INFO", validation_alias=AliasChoices("HISTOGRAM_LOG_LEVEL", "LOG_LEVEL"))
    log_sql: bool = Field(
        default=False,
        validation_alias=AliasChoices("HISTOGRAM_LOG_SQL"),
        description="Log every statement issued against the database at INFO",
    )


settings = Settings()


_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach a single stream handler to the package logger."""
    log = logging.getLogger("sqlhist")
    if not any(getattr(h, "_sqlhist", False) for h in log.handlers):
        h = logging.StreamHandler()
        h.setFormatter(logging.Formatter(_LOG_FORMAT))
        h._sqlhist = True  # type: ignore[attr-defined]
        log.addHandler(h)
    log.setLevel(str(level or settings.log_level).upper())
    return log
