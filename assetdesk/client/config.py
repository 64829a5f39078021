"""
Client-side settings, loaded from ``ASSETDESK_*`` environment variables.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientConfig(BaseSettings):
    base_url: str = "http://localhost:8000/api"
    authenticated_entry_path: str = "/home"
    unauthenticated_entry_path: str = "/sign-in"
    search_debounce_seconds: float = 0.5

    model_config = SettingsConfigDict(
        env_prefix="ASSETDESK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
