"""Centralized configuration for inverted-index using Pydantic Settings."""

from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Strictly typed configuration loaded from ``INDEX_*`` environment variables.

    Exactly one engine target must be set: ``snapshot_path`` selects the
    in-memory engine backed by a snapshot file, ``database_path`` selects the
    SQLite engine.
    """

    model_config = SettingsConfigDict(
        env_prefix="INDEX_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # Engine selection
    snapshot_path: Path | None = Field(default=None, description="Snapshot file for the in-memory engine")
    snapshot_format: Literal["json", "binary"] = Field(default="binary", description="Snapshot encoding")
    database_path: Path | None = Field(default=None, description="SQLite database file for the relational engine")

    # Ingestion
    pipeline_capacity: int = Field(default=10000, ge=1, description="Ingestion queue capacity before producers block")
    flush_interval_seconds: float = Field(default=10.0, gt=0, description="Seconds between SQLite bulk flushes")
    max_workers: int = Field(default=8, ge=1, description="Concurrent document producers during a build")

    # Server settings
    listen_host: str = Field(default="localhost", description="Web front end host")
    listen_port: int = Field(default=8080, ge=1, le=65535, description="Web front end port")

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    json_logs: bool = Field(default=False, description="Emit structured JSON logs")

    @model_validator(mode="after")
    def _check_engine_target(self) -> "Settings":
        if self.snapshot_path is None and self.database_path is None:
            raise ValueError("One of INDEX_SNAPSHOT_PATH or INDEX_DATABASE_PATH must be set to select a storage engine.")
        if self.snapshot_path is not None and self.database_path is not None:
            raise ValueError("INDEX_SNAPSHOT_PATH and INDEX_DATABASE_PATH are mutually exclusive; choose one engine.")
        return self

    @property
    def engine_kind(self) -> Literal["memory", "sqlite"]:
        return "memory" if self.snapshot_path is not None else "sqlite"
