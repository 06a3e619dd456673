"""Environment-driven configuration shared by the API and the standalone sweep."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

DEFAULT_CORS_ORIGINS = ("http://localhost:3000", "http://localhost:3001")


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


@dataclass
class AppConfig:
    """Runtime settings. Build with `AppConfig.from_env()`."""

    database_dir: Path
    object_store_backend: str = "s3"
    aws_region: str = "eu-west-1"
    aws_s3_bucket: Optional[str] = None
    aws_endpoint_url: Optional[str] = None
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    local_storage_dir: Optional[Path] = None
    public_base_url: str = "http://localhost:8000"
    url_signing_secret: Optional[str] = None
    key_prefix: str = "images/"
    sweep_interval_seconds: int = 60
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Read settings from the environment.

        Raises:
            RuntimeError: If a required variable is missing or a value is invalid.
        """
        database_dir = _env("DATABASE_DIR")
        if database_dir is None:
            raise RuntimeError(
                "DATABASE_DIR environment variable must be set to a writable "
                "directory path where the SQLite database file will be stored."
            )

        interval_raw = _env("SWEEP_INTERVAL_SECONDS", "60")
        try:
            sweep_interval = int(interval_raw)
        except ValueError as exc:
            raise RuntimeError(
                f"SWEEP_INTERVAL_SECONDS must be an integer, got {interval_raw!r}"
            ) from exc

        local_dir = _env("LOCAL_STORAGE_DIR")
        origins = _env("CORS_ORIGINS")

        config = cls(
            database_dir=Path(database_dir).expanduser(),
            object_store_backend=(_env("OBJECT_STORE_BACKEND", "s3") or "s3").lower(),
            aws_region=_env("AWS_REGION", "eu-west-1"),
            aws_s3_bucket=_env("AWS_S3_BUCKET"),
            aws_endpoint_url=_env("AWS_ENDPOINT_URL"),
            aws_access_key_id=_env("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=_env("AWS_SECRET_ACCESS_KEY"),
            local_storage_dir=Path(local_dir).expanduser() if local_dir else None,
            public_base_url=_env("PUBLIC_BASE_URL", "http://localhost:8000"),
            url_signing_secret=_env("URL_SIGNING_SECRET"),
            key_prefix=os.getenv("IMAGE_KEY_PREFIX", "images/"),
            sweep_interval_seconds=max(0, sweep_interval),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()] if origins else list(DEFAULT_CORS_ORIGINS),
            log_level=(_env("LOG_LEVEL", "INFO") or "INFO").upper(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Check backend-specific requirements."""
        if self.object_store_backend == "s3":
            if not self.aws_s3_bucket:
                raise RuntimeError("AWS_S3_BUCKET must be set when OBJECT_STORE_BACKEND=s3")
        elif self.object_store_backend == "local":
            if not self.url_signing_secret:
                raise RuntimeError("URL_SIGNING_SECRET must be set when OBJECT_STORE_BACKEND=local")
        else:
            raise RuntimeError(
                f"Unsupported OBJECT_STORE_BACKEND={self.object_store_backend!r}; use 's3' or 'local'"
            )

    @property
    def resolved_local_storage_dir(self) -> Path:
        return self.local_storage_dir or (self.database_dir / "objects")
