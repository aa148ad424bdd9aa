"""Settings loader for Loresmith."""

from pathlib import Path
from typing import Any

import tomllib
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _toml_settings_source() -> dict[str, Any]:
    """Load settings from config.toml with keys mapped to Settings fields.

    This source has LOWER priority than env/.env so those can override TOML.
    """
    cfg_path = Path("config.toml")
    if not cfg_path.exists():
        return {}
    with cfg_path.open("rb") as f:
        t = tomllib.load(f)
    app_cfg = t.get("app", {}) or {}
    revisions_cfg = t.get("revisions", {}) or {}
    content_cfg = t.get("content", {}) or {}
    out: dict[str, Any] = {
        "env": app_cfg.get("env", "dev"),
        "app_port": app_cfg.get("port", 18000),
        # Revision history
        # [revisions]
        # max_attempts = 3
        # summary_max_keys = 6
        # diff_max_entries = 200
        "revision_max_attempts": int(revisions_cfg.get("max_attempts", 3)),
        "revision_summary_max_keys": int(revisions_cfg.get("summary_max_keys", 6)),
        "version_diff_max_entries": int(revisions_cfg.get("diff_max_entries", 200)),
        "content_page_size_max": int(content_cfg.get("page_size_max", 100)),
        # Logging config
        "logging_level": t.get("logging", {}).get("level", "INFO"),
        "logging_file_path": t.get("logging", {}).get("file_path", "logs/loresmith.jsonl"),
        "logging_max_bytes": t.get("logging", {}).get("max_bytes", 5_000_000),
        "logging_backup_count": t.get("logging", {}).get("backup_count", 5),
    }
    if "database_url" in app_cfg:
        out["database_url"] = app_cfg["database_url"]

    log_cfg = t.get("logging", {}) or {}
    # Per-handler levels: strings INFO|DEBUG|WARNING|ERROR|CRITICAL|NONE, or bools
    overall = out["logging_level"]

    def _norm_level(v, default):
        if isinstance(v, str):
            return v.upper()
        if isinstance(v, bool):
            return default if v else "NONE"
        return default

    out["logging_console"] = _norm_level(log_cfg.get("console"), overall)
    out["logging_file"] = _norm_level(log_cfg.get("to_file"), overall)

    ops_cfg = t.get("ops", {}) or {}
    out["metrics_endpoint_enabled"] = ops_cfg.get("metrics_endpoint_enabled", False)

    return out


class Settings(BaseSettings):
    env: str = Field(default="dev")
    database_url: str = Field(default="sqlite+aiosqlite:///./loresmith.sqlite3")
    app_port: int = 18000

    # --- Revision history ---
    # Attempts at claiming the next version number before giving up on the snapshot
    revision_max_attempts: int = Field(default=3, ge=1)
    revision_summary_max_keys: int = Field(default=6, ge=1)
    version_diff_max_entries: int = Field(default=200, ge=1)

    # --- Content listing ---
    content_page_size_max: int = Field(default=100, ge=1)

    # --- Logging ---
    logging_level: str = "INFO"
    logging_console: str = "INFO"
    logging_file: str = "NONE"
    logging_file_path: str = "logs/loresmith.jsonl"
    logging_max_bytes: int = 5_000_000
    logging_backup_count: int = 5

    # --- Ops ---
    metrics_endpoint_enabled: bool = False

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=".env",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Precedence (highest to lowest):
        # 1) init_settings (explicit overrides in code/tests)
        # 2) dotenv (.env in cwd)
        # 3) env_settings (OS env)
        # 4) TOML (config.toml) - project defaults
        # 5) file_secret_settings
        return (
            init_settings,
            dotenv_settings,
            env_settings,
            _toml_settings_source,
            file_secret_settings,
        )


def load_settings() -> Settings:
    return Settings()
