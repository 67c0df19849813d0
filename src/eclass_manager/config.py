"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    discord_bot_token: str
    discord_guild_id: str
    supabase_url: str
    supabase_service_key: str
    admin_token: str
    announcement_channels: dict[str, str] = {}
    school_year_roles: dict[str, str] = {}
    timezone: str = "Europe/Paris"
    date_format: str = "%d/%m at %H:%M"
    role_name_format: str = "{subject}: {topic} ({formatted_date})"
    reminder_lead_minutes: int = 15
    planning_horizon_days: int = 60
    scheduler_tick_seconds: float = 30.0
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_id_map(raw: dict[str, str] | None) -> dict[str, str]:
    """Normalize a school year to platform id mapping from env."""
    if not raw:
        return {}
    ids: dict[str, str] = {}
    for key, value in raw.items():
        school_year = key.strip().upper()
        cleaned = str(value).strip()
        if not school_year or not cleaned:
            continue
        ids[school_year] = cleaned
    return ids
