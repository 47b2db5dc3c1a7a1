"""Eureka configuration via environment / .env file."""

from __future__ import annotations

import logging

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="EUREKA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Host slots (names of host internals the traps look at) ---
    events_slot: str = "EXTENSION_ADDED"
    locale_event: str = "LOCALE_CHANGED"
    call_forwarder: str = "forward"
    block_editor_member: str = "ScratchBlocks"
    compose_global: str = "__REDUX_DEVTOOLS_EXTENSION_COMPOSE__"
    captured_store_global: str = "__scratchAddonsRedux"
    fiber_root_marker: str = "__reactContainer"

    # --- Store shape markers ---
    store_markers: list[str] = ["scratchGui", "scratchPaint", "locales"]

    # --- Permissions (consulted by the capability surface) ---
    allow_fetch: bool = True
    allow_embed: bool = True
    allow_open_window: bool = True
    allow_redirect: bool = True
    allow_record_audio: bool = True
    allow_record_video: bool = True
    allow_read_clipboard: bool = True
    allow_notify: bool = True
    allow_geolocate: bool = True

    # --- Loader ---
    fetch_timeout: float = 30.0

    # --- Logging ---
    log_level: str = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_level(cls, v: str) -> str:
        level = str(v).strip().upper()
        if level == "WARN":
            level = "WARNING"
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level


settings = Settings()
