"""Application settings loaded from environment variables via pydantic-settings.

Two sources are read, in priority order:

  1. Environment variables, e.g. ``PERFLINK_DATABASE_PATH=/var/lib/perflink.db``
  2. A ``.env`` file in the working directory (local development)

Values not present in either fall back to the defaults below.  Everything
structural (sources, denylist, thresholds) lives in ``config/config.yaml``;
these settings only carry deployment-specific knobs.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """perflink deployment settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PERFLINK_",
        extra="ignore",
    )

    # === Storage ===
    database_path: str = "data/perflink.db"

    # === Config ===
    config_path: str = "config/config.yaml"

    # === Runtime ===
    app_env: str = "development"
    log_level: str = "INFO"
    http_timeout_seconds: float = 15.0
    # Serverless hosts kill the job at a hard limit; 0 keeps the YAML value.
    job_time_budget_seconds: float = 0.0
