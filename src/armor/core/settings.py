"""Runtime settings for the Armor protection layer.

The suppression window, trace fingerprint depth, retry defaults and the
fault-log retention cap are policy, not protocol.  They are read from
``ARMOR_``-prefixed environment variables (or a ``.env`` file) and validated
at startup.

Examples:
    >>> from armor.core.settings import ArmorSettings
    >>> ArmorSettings(suppression_window_seconds=1.0).suppression_window_seconds
    1.0

    Environment override::

        ARMOR_DEBUG=true ARMOR_MAX_FAULT_LOG=500 python app.py

Tags:
    settings, configuration, pydantic, environment, armor-core
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ArmorSettings(BaseSettings):
    """Policy defaults for interception, deduplication and guarded retries.

    Fields
    ──────
    debug                       : Development build; unhealed faults are also presented
    log_level                   : Structlog log level
    suppression_window_seconds  : How long a fault fingerprint stays suppressed
    trace_fingerprint_lines     : Leading trace lines folded into the dedup key
    max_fault_log               : Ring-buffer cap for the fault log (None = unbounded)
    retry_max                   : Default retries for guarded_retryable_call
    retry_delay_seconds         : Base delay; attempt n waits delay * n
    placeholder_text            : Description carried by the render placeholder
    """

    model_config = SettingsConfigDict(
        env_prefix="ARMOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    debug: bool = False
    log_level: str = "INFO"

    # ── Interception ─────────────────────────────────────────────
    suppression_window_seconds: float = Field(default=5.0, gt=0)
    trace_fingerprint_lines: int = Field(default=3, ge=1)
    max_fault_log: int | None = Field(default=None, ge=1)

    # ── Guarded execution ────────────────────────────────────────
    retry_max: int = Field(default=3, ge=0)
    retry_delay_seconds: float = Field(default=1.0, ge=0)
    placeholder_text: str = "Content protected by Armor"


@lru_cache(maxsize=1)
def get_settings() -> ArmorSettings:
    """Return the process-wide settings, loaded once from the environment."""
    return ArmorSettings()


def reset_settings() -> None:
    """Drop the cached settings so the next ``get_settings()`` re-reads the environment."""
    get_settings.cache_clear()


__all__ = ["ArmorSettings", "get_settings", "reset_settings"]
