"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta

from supabase import create_client

from eclass_manager.adapters.discord_client import DiscordClient, HttpxDiscordClient
from eclass_manager.adapters.supabase_eclass_repository import (
    SupabaseEclassRepository,
)
from eclass_manager.config import Settings, parse_id_map
from eclass_manager.services.eclasses import EclassService
from eclass_manager.services.overlaps import OverlapChecker
from eclass_manager.services.registry import (
    InMemoryReactionMessageRegistry,
    KeyedLocks,
)
from eclass_manager.services.scheduler import EclassScheduler


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    discord_client: DiscordClient
    eclass_service: EclassService
    scheduler: EclassScheduler
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    repository = SupabaseEclassRepository(supabase_client)
    discord_client = HttpxDiscordClient.create(
        resolved_settings.discord_bot_token, resolved_settings.discord_guild_id
    )
    overlap_checker = OverlapChecker(
        source=repository,
        planning_horizon=timedelta(days=resolved_settings.planning_horizon_days),
    )
    eclass_service = EclassService(
        repository=repository,
        discord_client=discord_client,
        overlap_checker=overlap_checker,
        registry=InMemoryReactionMessageRegistry(),
        announcement_channels=parse_id_map(resolved_settings.announcement_channels),
        school_year_roles=parse_id_map(resolved_settings.school_year_roles),
        locks=KeyedLocks(),
        role_name_format=resolved_settings.role_name_format,
        date_format=resolved_settings.date_format,
        timezone=resolved_settings.timezone,
    )
    scheduler = EclassScheduler(
        service=eclass_service,
        repository=repository,
        reminder_lead=timedelta(minutes=resolved_settings.reminder_lead_minutes),
        tick_interval=resolved_settings.scheduler_tick_seconds,
    )

    async def close_resources() -> None:
        await scheduler.stop()
        await discord_client.close()

    return AppContainer(
        settings=resolved_settings,
        discord_client=discord_client,
        eclass_service=eclass_service,
        scheduler=scheduler,
        close_resources=close_resources,
    )
