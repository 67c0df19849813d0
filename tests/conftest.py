"""Shared test fixtures."""

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from uuid import UUID

import pytest

from eclass_manager.adapters.discord_client import DiscordClient
from eclass_manager.config import Settings
from eclass_manager.containers import AppContainer
from eclass_manager.domain.eclasses import (
    ACTIVE_STATUSES,
    CreationRequest,
    Eclass,
    EclassPlace,
    EclassStatus,
    Subject,
)
from eclass_manager.domain.errors import MessageNotFoundError
from eclass_manager.services.eclasses import EclassRepository, EclassService
from eclass_manager.services.overlaps import OverlapChecker
from eclass_manager.services.registry import InMemoryReactionMessageRegistry
from eclass_manager.services.scheduler import EclassScheduler

NOW = datetime(2026, 10, 19, 8, 0, tzinfo=UTC)

MATHS_L1 = Subject(name="Maths", school_year="L1", text_channel_id="chan-maths")
PHYSICS_L2 = Subject(name="Physics", school_year="L2", text_channel_id="chan-phys")


@dataclass
class InMemoryEclassRepository(EclassRepository):
    """In-memory e-class repository for tests."""

    eclasses: dict[UUID, Eclass] = field(default_factory=dict)
    reminder_claims: int = 0

    def create_eclass(self, eclass: Eclass) -> Eclass:
        if eclass.class_id in self.eclasses:
            raise RuntimeError("duplicate class id")
        self.eclasses[eclass.class_id] = eclass
        return eclass

    def get_eclass(self, class_id: UUID) -> Eclass | None:
        return self.eclasses.get(class_id)

    def list_overlapping(
        self, start: datetime, end: datetime, exclude_id: UUID | None = None
    ) -> list[Eclass]:
        return [
            eclass
            for eclass in self.eclasses.values()
            if eclass.status == EclassStatus.PLANNED
            and eclass.class_id != exclude_id
            and eclass.date < end
            and eclass.end > start
        ]

    def list_by_status(self, statuses: Iterable[EclassStatus]) -> list[Eclass]:
        wanted = set(statuses)
        return sorted(
            (e for e in self.eclasses.values() if e.status in wanted),
            key=lambda e: e.date,
        )

    def role_name_in_use(self, role_name: str) -> bool:
        return any(
            e.role_name == role_name and e.status in ACTIVE_STATUSES
            for e in self.eclasses.values()
        )

    def set_status(self, class_id: UUID, status: EclassStatus) -> None:
        self._update(class_id, status=status)

    def add_subscriber(self, class_id: UUID, member_id: str) -> None:
        eclass = self.eclasses[class_id]
        self._update(class_id, subscribers=eclass.subscribers | {member_id})

    def remove_subscriber(self, class_id: UUID, member_id: str) -> None:
        eclass = self.eclasses[class_id]
        self._update(class_id, subscribers=eclass.subscribers - {member_id})

    def append_record_link(self, class_id: UUID, link: str) -> None:
        eclass = self.eclasses[class_id]
        self._update(class_id, record_links=(*eclass.record_links, link))

    def remove_record_link(self, class_id: UUID, link: str) -> None:
        eclass = self.eclasses[class_id]
        self._update(
            class_id,
            record_links=tuple(item for item in eclass.record_links if item != link),
        )

    def mark_reminded(self, class_id: UUID) -> bool:
        eclass = self.eclasses[class_id]
        if eclass.reminded:
            return False
        self.reminder_claims += 1
        self._update(class_id, reminded=True)
        return True

    def _update(self, class_id: UUID, **changes: object) -> None:
        self.eclasses[class_id] = replace(self.eclasses[class_id], **changes)


@dataclass
class FakeDiscordClient(DiscordClient):
    """Fake Discord client that records every call."""

    messages: list[tuple[str, str, dict | None]] = field(default_factory=list)
    edits: list[tuple[str, str, str, dict | None]] = field(default_factory=list)
    reactions: dict[str, list[str]] = field(default_factory=dict)
    cleared: list[str] = field(default_factory=list)
    direct_messages: list[tuple[str, str]] = field(default_factory=list)
    roles: dict[str, str] = field(default_factory=dict)
    deleted_roles: list[str] = field(default_factory=list)
    member_roles: dict[str, set[str]] = field(default_factory=dict)
    missing_messages: set[str] = field(default_factory=set)
    unreachable_users: set[str] = field(default_factory=set)
    failing_channels: set[str] = field(default_factory=set)
    delay: float = 0.0
    calls: list[str] = field(default_factory=list)
    _counter: int = 0

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}-{self._counter}"

    async def send_message(
        self, channel_id: str, content: str, embed: dict | None = None
    ) -> str:
        await asyncio.sleep(self.delay)
        if channel_id in self.failing_channels:
            raise RuntimeError(f"channel {channel_id} unavailable")
        self.messages.append((channel_id, content, embed))
        self.calls.append("send")
        return self._next_id("msg")

    async def edit_message(
        self,
        channel_id: str,
        message_id: str,
        content: str,
        embed: dict | None = None,
    ) -> None:
        await asyncio.sleep(self.delay)
        if message_id in self.missing_messages:
            raise MessageNotFoundError(channel_id, message_id)
        self.edits.append((channel_id, message_id, content, embed))
        self.calls.append("edit")

    async def add_reaction(self, channel_id: str, message_id: str, emoji: str) -> None:
        self.reactions.setdefault(message_id, []).append(emoji)

    async def clear_reactions(self, channel_id: str, message_id: str) -> None:
        if message_id in self.missing_messages:
            raise MessageNotFoundError(channel_id, message_id)
        self.reactions.pop(message_id, None)
        self.cleared.append(message_id)

    async def send_direct(self, user_id: str, content: str) -> bool:
        await asyncio.sleep(self.delay)
        if user_id in self.unreachable_users:
            return False
        self.direct_messages.append((user_id, content))
        return True

    async def bulk_send_direct(
        self, user_ids: set[str] | frozenset[str], content: str
    ) -> dict[str, bool]:
        return {
            user_id: await self.send_direct(user_id, content) for user_id in user_ids
        }

    async def create_role(self, name: str, color: int, mentionable: bool) -> str:
        role_id = self._next_id("role")
        self.roles[role_id] = name
        return role_id

    async def delete_role(self, role_id: str, reason: str | None = None) -> None:
        self.roles.pop(role_id, None)
        self.deleted_roles.append(role_id)
        for roles in self.member_roles.values():
            roles.discard(role_id)

    async def role_exists(self, role_id: str) -> bool:
        return role_id in self.roles

    async def member_has_role(self, member_id: str, role_id: str) -> bool:
        return role_id in self.member_roles.get(member_id, set())

    async def add_member_role(self, member_id: str, role_id: str) -> None:
        self.member_roles.setdefault(member_id, set()).add(role_id)

    async def remove_member_role(self, member_id: str, role_id: str) -> None:
        self.member_roles.get(member_id, set()).discard(role_id)

    def direct_messages_to(self, user_id: str) -> list[str]:
        return [
            content for target, content in self.direct_messages if target == user_id
        ]


def make_request(  # noqa: PLR0913
    professor_id: str = "prof-1",
    subject: Subject = MATHS_L1,
    topic: str = "Integrals",
    start: datetime | None = None,
    duration: timedelta = timedelta(hours=1),
    place: EclassPlace = EclassPlace.IN_PLATFORM,
    place_information: str | None = None,
    is_recorded: bool = False,
) -> CreationRequest:
    return CreationRequest(
        professor_id=professor_id,
        subject=subject,
        topic=topic,
        date=start or NOW + timedelta(days=1),
        duration=duration,
        place=place,
        place_information=place_information,
        is_recorded=is_recorded,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        discord_bot_token="test-token",
        discord_guild_id="guild-1",
        supabase_url="https://example.supabase.co",
        supabase_service_key="test.service.key",
        admin_token="admin-token",
        announcement_channels={"L1": "announce-l1", "L2": "announce-l2"},
        school_year_roles={"L1": "role-l1", "L2": "role-l2"},
    )


@pytest.fixture
def repository() -> InMemoryEclassRepository:
    return InMemoryEclassRepository()


@pytest.fixture
def discord_client() -> FakeDiscordClient:
    return FakeDiscordClient()


@pytest.fixture
def registry() -> InMemoryReactionMessageRegistry:
    return InMemoryReactionMessageRegistry()


@pytest.fixture
def service(
    repository: InMemoryEclassRepository,
    discord_client: FakeDiscordClient,
    registry: InMemoryReactionMessageRegistry,
) -> EclassService:
    return EclassService(
        repository=repository,
        discord_client=discord_client,
        overlap_checker=OverlapChecker(source=repository, clock=lambda: NOW),
        registry=registry,
        announcement_channels={"L1": "announce-l1", "L2": "announce-l2"},
        school_year_roles={"L1": "role-l1", "L2": "role-l2"},
        timezone="UTC",
    )


@pytest.fixture
def scheduler(
    service: EclassService, repository: InMemoryEclassRepository
) -> EclassScheduler:
    return EclassScheduler(
        service=service,
        repository=repository,
        reminder_lead=timedelta(minutes=15),
        clock=lambda: NOW,
    )


@pytest.fixture
def container(
    settings: Settings,
    service: EclassService,
    scheduler: EclassScheduler,
    discord_client: FakeDiscordClient,
) -> AppContainer:
    async def close_resources() -> None:
        await scheduler.stop()

    return AppContainer(
        settings=settings,
        discord_client=discord_client,
        eclass_service=service,
        scheduler=scheduler,
        close_resources=close_resources,
    )
