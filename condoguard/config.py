"""
Application Configuration.

Pydantic Settings model for the CondoGuard access engine.
All configuration is loaded from environment variables and .env files.
Inject an AppConfig instance via dependency injection where needed.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings


class AppConfig(BaseSettings):
    """Central configuration loaded from environment variables and defaults."""

    # --- Supabase ---
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: SecretStr = SecretStr("")

    # --- Local cache ---
    LOCAL_DB_PATH: str = "condoguard_local.db"

    # --- Logging ---
    LOG_FILE: str = "condoguard.log"
    LOG_MAX_BYTES: int = 5_242_880  # 5 MB
    LOG_BACKUP_COUNT: int = 3

    # --- New-account routing ---
    NEW_ACCOUNT_WINDOW_S: float = 60.0

    # --- Route guard ---
    ADMIN_PATH_PREFIXES: tuple[str, ...] = Field(
        default=("/ia", "/configuracoes", "/admin", "/onboarding"),
    )
    TENANT_PATH_MARKER: str = "/condominios/"
    COLLABORATOR_TENANT_SUFFIXES: tuple[str, ...] = Field(
        default=("/checkin", "/obrigacoes"),
    )

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _warn_missing_env(self) -> "AppConfig":
        """Emit a startup warning when Supabase credentials are empty.

        Without them the engine runs against the local cache only, so
        every profile read falls back to SQLite.
        """
        _log = logging.getLogger("condoguard.config")

        if not self.SUPABASE_URL or not self.SUPABASE_ANON_KEY.get_secret_value():
            _log.warning(
                "Supabase credentials are empty; running in offline mode "
                "against the local cache."
            )

        return self


# ---------------------------------------------------------------------------
# Module-level singleton factory
# ---------------------------------------------------------------------------

_config_instance: Optional[AppConfig] = None
_config_lock: threading.Lock = threading.Lock()


def get_config() -> AppConfig:
    """Return a cached ``AppConfig`` singleton.

    Uses a check-lock-check pattern so the fast path skips the lock.
    Prefer constructor injection of ``AppConfig`` in new code.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AppConfig()
    return _config_instance
