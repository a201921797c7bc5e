import os

from pydantic import BaseModel, ConfigDict, Field

from connections._config import load_connection_config


class SyncSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    batch_size: int = Field(default=20000, ge=1)
    poll_interval_seconds: float = Field(default=1.0, ge=0)
    max_wait_seconds: float | None = Field(default=3600.0, gt=0)
    spool_max_bytes: int = Field(default=64 * 1024 * 1024, ge=0)
    cache_dir: str | None = None
    audit_url: str | None = None


def _legacy_env_defaults() -> dict[str, str]:
    """Variables understood by earlier releases of the sync command."""
    legacy = {
        "batch_size": os.getenv("MAX_ROWS_PER_BATCH"),
        "cache_dir": os.getenv("CACHE_DIR"),
    }
    return {key: value for key, value in legacy.items() if value}


def load_sync_settings(
    config: dict | None = None,
    *,
    file_path: str | None = None,
    env_prefix: str = "SYNC",
    overrides: dict | None = None,
) -> SyncSettings:
    merged = load_connection_config(
        config,
        file_path=file_path,
        section="sync",
        env_prefix=env_prefix,
        defaults=_legacy_env_defaults(),
        overrides=overrides,
    )
    return SyncSettings.model_validate(merged)
