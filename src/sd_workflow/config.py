# src/sd_workflow/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Remote mode is chosen when the Supabase URL and anon key are both set;
  local (offline) mode must be switched on explicitly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "SDWF"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Remote backing store (Supabase / PostgREST) ----
    supabase_url: str
    supabase_anon_key: str
    access_token: str | None
    user_id: str | None

    # ---- Mode / sync ----
    poll_interval_seconds: float
    request_timeout_seconds: float

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    snapshot_db_path: Path
    seed_example: bool

    # ---- Console ----
    current_user: str

    @property
    def remote_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)

    @property
    def mode(self) -> str:
        return "remote" if self.remote_configured else "local"

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "sd-workflow")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        supabase_url = (_first_env(_k("SUPABASE_URL"), "SUPABASE_URL", default="") or "").strip()
        supabase_anon_key = (
            _first_env(_k("SUPABASE_ANON_KEY"), "SUPABASE_ANON_KEY", default="") or ""
        ).strip()
        access_token = _first_env(_k("ACCESS_TOKEN"), default=None)
        user_id = _first_env(_k("USER_ID"), default=None)

        poll_interval_seconds = _env_float(_k("POLL_INTERVAL_SECONDS"), 2.0)
        request_timeout_seconds = _env_float(_k("REQUEST_TIMEOUT_SECONDS"), 10.0)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/sd_workflow"))
        snapshot_db_path = _env_path(_k("SNAPSHOT_DB_PATH"), data_dir / "snapshots.sqlite3")
        seed_example = _env_bool(_k("SEED_EXAMPLE"), True)

        current_user = _env(_k("CURRENT_USER"), "").strip()

        return Settings(
            app_name=app_name,
            log_level=log_level,
            supabase_url=supabase_url,
            supabase_anon_key=supabase_anon_key,
            access_token=access_token,
            user_id=user_id,
            poll_interval_seconds=poll_interval_seconds,
            request_timeout_seconds=request_timeout_seconds,
            data_dir=data_dir,
            snapshot_db_path=snapshot_db_path,
            seed_example=seed_example,
            current_user=current_user,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
