"""Lifecycle management for e-classes.

Every operation runs under a per-class lock, writes the authoritative record
first and then repaints the announcement message from scratch. The
announcement is a view of the record: if it cannot be found, the operation
fails with an ``IntegrityError`` instead of trying to repair it.
"""

import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Protocol
from uuid import UUID
from zoneinfo import ZoneInfo

from eclass_manager.adapters.discord_client import DiscordClient
from eclass_manager.domain.eclasses import (
    CreationRequest,
    Eclass,
    EclassStatus,
    Outcome,
    Rejection,
    can_transition,
    generate_class_id,
)
from eclass_manager.domain.errors import (
    EclassNotFoundError,
    IntegrityError,
    MessageNotFoundError,
)
from eclass_manager.services.announcements import (
    ROLE_COLOR,
    AnnouncementTexts,
    format_date,
    render_announcement,
    render_reminders,
    render_start_notification,
    role_name_for_class,
)
from eclass_manager.services.overlaps import OverlapChecker
from eclass_manager.services.registry import KeyedLocks, ReactionMessageRegistry

logger = logging.getLogger(__name__)

SUBSCRIBE_EMOJI = "✅"
_CREATION_KEY = "eclass:create"


class EclassRepository(Protocol):
    """Persistence interface for e-classes.

    Set operations and ``mark_reminded`` are atomic in the store.
    """

    def create_eclass(self, eclass: Eclass) -> Eclass:
        """Insert a new e-class and return it."""

    def get_eclass(self, class_id: UUID) -> Eclass | None:
        """Return an e-class by id, if present."""

    def list_overlapping(
        self, start: datetime, end: datetime, exclude_id: UUID | None = None
    ) -> list[Eclass]:
        """Return planned e-classes whose window intersects ``[start, end)``."""

    def list_by_status(self, statuses: Iterable[EclassStatus]) -> list[Eclass]:
        """Return e-classes in any of the given statuses, oldest first."""

    def role_name_in_use(self, role_name: str) -> bool:
        """Return whether an active e-class already uses a role name."""

    def set_status(self, class_id: UUID, status: EclassStatus) -> None:
        """Update the status of an e-class."""

    def add_subscriber(self, class_id: UUID, member_id: str) -> None:
        """Add a member to the subscriber set."""

    def remove_subscriber(self, class_id: UUID, member_id: str) -> None:
        """Remove a member from the subscriber set."""

    def append_record_link(self, class_id: UUID, link: str) -> None:
        """Append a recording link."""

    def remove_record_link(self, class_id: UUID, link: str) -> None:
        """Remove every occurrence of a recording link."""

    def mark_reminded(self, class_id: UUID) -> bool:
        """Set ``reminded`` if unset and return whether this call set it."""


@dataclass
class EclassService:
    """State machine and mutations for scheduled e-classes."""

    repository: EclassRepository
    discord_client: DiscordClient
    overlap_checker: OverlapChecker
    registry: ReactionMessageRegistry
    announcement_channels: dict[str, str] = field(default_factory=dict)
    school_year_roles: dict[str, str] = field(default_factory=dict)
    texts: AnnouncementTexts = field(default_factory=AnnouncementTexts)
    locks: KeyedLocks = field(default_factory=KeyedLocks)
    role_name_format: str = "{subject}: {topic} ({formatted_date})"
    date_format: str = "%d/%m at %H:%M"
    timezone: str = "Europe/Paris"

    async def create_class(self, request: CreationRequest) -> Outcome:
        """Plan a new e-class, announce it and persist it.

        Creations run one at a time: the overlap and role-name checks only
        hold while no other class is being persisted. A naive date is read in
        the configured timezone.
        """
        if request.date.tzinfo is None:
            request = replace(
                request, date=request.date.replace(tzinfo=ZoneInfo(self.timezone))
            )
        async with self.locks.hold(_CREATION_KEY):
            return await self._create_class(request)

    async def _create_class(self, request: CreationRequest) -> Outcome:  # noqa: PLR0911
        school_year = request.subject.school_year
        rejection = self.overlap_checker.check(
            request.date,
            request.duration,
            request.professor_id,
            school_year,
        )
        if rejection is not None:
            return Outcome(rejection=rejection)

        target_role_id = request.target_role_id or self.school_year_roles.get(
            school_year
        )
        if not target_role_id:
            logger.warning(
                "[e-class:not-created] No role configured for school year %s.",
                school_year,
            )
            return Outcome(rejection=Rejection.UNCONFIGURED_ROLE)

        role_name = role_name_for_class(
            request.subject.name,
            request.topic,
            request.date,
            self.role_name_format,
            self.date_format,
            self.timezone,
        )
        if self.repository.role_name_in_use(role_name):
            return Outcome(rejection=Rejection.ALREADY_EXISTS)

        announcement_channel_id = self.announcement_channels.get(school_year)
        if not announcement_channel_id:
            logger.warning(
                "[e-class:not-created] No announcement channel configured for "
                "school year %s.",
                school_year,
            )
            return Outcome(rejection=Rejection.UNCONFIGURED_CHANNEL)

        class_id = generate_class_id(request.professor_id, request.date)
        async with self.locks.hold(class_id):
            if self.repository.get_eclass(class_id) is not None:
                return Outcome(rejection=Rejection.ALREADY_EXISTS)

            draft = Eclass(
                class_id=class_id,
                professor_id=request.professor_id,
                subject=request.subject,
                topic=request.topic,
                date=request.date,
                duration=request.duration,
                place=request.place,
                place_information=request.place_information,
                is_recorded=request.is_recorded,
                class_role_id="",
                role_name=role_name,
                target_role_id=target_role_id,
                announcement_channel_id=announcement_channel_id,
                announcement_message_id="",
            )
            announcement = render_announcement(draft, self.texts)
            message_id = await self.discord_client.send_message(
                announcement_channel_id, announcement.content, announcement.embed
            )
            await self.discord_client.add_reaction(
                announcement_channel_id, message_id, SUBSCRIBE_EMOJI
            )
            class_role_id = await self.discord_client.create_role(
                role_name, ROLE_COLOR, mentionable=True
            )
            eclass = self.repository.create_eclass(
                replace(
                    draft,
                    class_role_id=class_role_id,
                    announcement_message_id=message_id,
                )
            )
            self.registry.add(message_id, class_id)

        logger.debug("[e-class:%s] Created eclass.", class_id)
        return Outcome(eclass=eclass)

    async def start_class(self, class_id: UUID) -> Outcome:
        """Move a planned class to in progress."""
        async with self.locks.hold(class_id):
            eclass = self._load(class_id)
            if eclass.status != EclassStatus.PLANNED:
                return Outcome(eclass=eclass, rejection=Rejection.INVALID_STATUS)

            eclass = self._transition(eclass, EclassStatus.IN_PROGRESS)
            async with self._announcement(eclass):
                await self._repaint(eclass)
                await self.discord_client.clear_reactions(
                    eclass.announcement_channel_id, eclass.announcement_message_id
                )
            self.registry.remove(eclass.announcement_message_id)

            notification = render_start_notification(eclass, self.texts)
            await self.discord_client.send_message(
                eclass.subject.text_channel_id,
                notification.content,
                notification.embed,
            )

        logger.debug("[e-class:%s] Started class.", class_id)
        return Outcome(eclass=eclass)

    async def finish_class(self, class_id: UUID) -> Outcome:
        """Move an in-progress class to finished."""
        async with self.locks.hold(class_id):
            eclass = self._load(class_id)
            if eclass.status != EclassStatus.IN_PROGRESS:
                return Outcome(eclass=eclass, rejection=Rejection.INVALID_STATUS)

            eclass = self._transition(eclass, EclassStatus.FINISHED)
            async with self._announcement(eclass):
                await self._repaint(eclass)
            await self.discord_client.delete_role(
                eclass.class_role_id, reason="Class finished"
            )

        logger.debug("[e-class:%s] Ended class.", class_id)
        return Outcome(eclass=eclass)

    async def cancel_class(self, class_id: UUID) -> Outcome:
        """Cancel a planned or in-progress class."""
        async with self.locks.hold(class_id):
            eclass = self._load(class_id)
            if not can_transition(eclass.status, EclassStatus.CANCELED):
                return Outcome(eclass=eclass, rejection=Rejection.INVALID_STATUS)

            eclass = self._transition(eclass, EclassStatus.CANCELED)
            async with self._announcement(eclass):
                await self._repaint(eclass)
                await self.discord_client.clear_reactions(
                    eclass.announcement_channel_id, eclass.announcement_message_id
                )
            self.registry.remove(eclass.announcement_message_id)
            await self.discord_client.delete_role(
                eclass.class_role_id, reason="Class canceled"
            )

        logger.debug("[e-class:%s] Canceled class.", class_id)
        return Outcome(eclass=eclass)

    async def add_record_link(
        self, class_id: UUID, link: str, silent: bool = False
    ) -> Outcome:
        """Attach a recording link and optionally announce it."""
        async with self.locks.hold(class_id):
            eclass = self._load(class_id)
            self.repository.append_record_link(class_id, link)
            eclass = replace(eclass, record_links=(*eclass.record_links, link))
            async with self._announcement(eclass):
                await self._repaint(eclass)

            if not silent:
                await self.discord_client.send_message(
                    eclass.subject.text_channel_id,
                    self.texts.link_announcement.format(
                        topic=eclass.topic,
                        date=format_date(eclass.date, self.date_format, self.timezone),
                        link=link,
                    ),
                )

        logger.debug("[e-class:%s] Added record link.", class_id)
        return Outcome(eclass=eclass)

    async def remove_record_link(self, class_id: UUID, link: str) -> Outcome:
        """Remove every occurrence of a recording link."""
        async with self.locks.hold(class_id):
            eclass = self._load(class_id)
            self.repository.remove_record_link(class_id, link)
            eclass = replace(
                eclass,
                record_links=tuple(
                    item for item in eclass.record_links if item != link
                ),
            )
            async with self._announcement(eclass):
                await self._repaint(eclass)

        logger.debug("[e-class:%s] Removed record link.", class_id)
        return Outcome(eclass=eclass)

    async def remind_class(self, class_id: UUID) -> bool:
        """Send reminders once; return whether this call sent them."""
        async with self.locks.hold(class_id):
            eclass = self._load(class_id)
            if eclass.reminded or eclass.status != EclassStatus.PLANNED:
                return False
            if not self.repository.mark_reminded(class_id):
                return False

            channel_text, private_text, professor_text = render_reminders(
                eclass, self.texts
            )
            if not await self.discord_client.send_direct(
                eclass.professor_id, professor_text
            ):
                logger.debug(
                    "[e-class:%s] Could not alert professor %s.",
                    class_id,
                    eclass.professor_id,
                )
            try:
                await self.discord_client.send_message(
                    eclass.subject.text_channel_id, channel_text
                )
            except Exception:
                logger.warning(
                    "[e-class:%s] Failed to post the reminder in the class channel.",
                    class_id,
                    exc_info=True,
                )
            results = await self.discord_client.bulk_send_direct(
                eclass.subscribers, private_text
            )
            failed = sum(1 for delivered in results.values() if not delivered)
            if failed:
                logger.debug(
                    "[e-class:%s] %d of %d subscribers could not be reminded.",
                    class_id,
                    failed,
                    len(results),
                )

        logger.debug("[e-class:%s] Sent reminders.", class_id)
        return True

    async def subscribe_member(self, class_id: UUID, member_id: str) -> bool:
        """Subscribe a member to a planned class."""
        async with self.locks.hold(class_id):
            eclass = self._load(class_id)
            if eclass.status != EclassStatus.PLANNED:
                return False
            if eclass.professor_id == member_id:
                return False
            if not await self._role_exists(eclass):
                return False

            self.repository.add_subscriber(class_id, member_id)
            if not await self.discord_client.member_has_role(
                member_id, eclass.class_role_id
            ):
                await self.discord_client.add_member_role(
                    member_id, eclass.class_role_id
                )
            await self.discord_client.send_direct(
                member_id,
                self.texts.subscribed.format(
                    topic=eclass.topic,
                    date=format_date(eclass.date, self.date_format, self.timezone),
                ),
            )

        logger.debug("[e-class:%s] Subscribed member %s.", class_id, member_id)
        return True

    async def unsubscribe_member(self, class_id: UUID, member_id: str) -> bool:
        """Unsubscribe a member from a planned class."""
        async with self.locks.hold(class_id):
            eclass = self._load(class_id)
            if eclass.status != EclassStatus.PLANNED:
                return False
            if not await self._role_exists(eclass):
                return False

            self.repository.remove_subscriber(class_id, member_id)
            if await self.discord_client.member_has_role(
                member_id, eclass.class_role_id
            ):
                await self.discord_client.remove_member_role(
                    member_id, eclass.class_role_id
                )
            await self.discord_client.send_direct(
                member_id, self.texts.unsubscribed.format(topic=eclass.topic)
            )

        logger.debug("[e-class:%s] Unsubscribed member %s.", class_id, member_id)
        return True

    async def handle_reaction(
        self, message_id: str, member_id: str, emoji: str, added: bool
    ) -> bool:
        """Route a reaction on an announcement to (un)subscription."""
        if emoji != SUBSCRIBE_EMOJI:
            return False
        class_id = self.registry.get(message_id)
        if class_id is None:
            return False
        if added:
            return await self.subscribe_member(class_id, member_id)
        return await self.unsubscribe_member(class_id, member_id)

    def get_class(self, class_id: UUID) -> Eclass | None:
        """Return an e-class by id, if present."""
        return self.repository.get_eclass(class_id)

    def rebuild_registry(self) -> int:
        """Register the announcements of every planned class."""
        planned = self.repository.list_by_status([EclassStatus.PLANNED])
        for eclass in planned:
            self.registry.add(eclass.announcement_message_id, eclass.class_id)
        return len(planned)

    def _load(self, class_id: UUID) -> Eclass:
        eclass = self.repository.get_eclass(class_id)
        if eclass is None:
            logger.error("[e-class:%s] Record not found.", class_id)
            raise EclassNotFoundError(class_id)
        return eclass

    def _transition(self, eclass: Eclass, status: EclassStatus) -> Eclass:
        self.repository.set_status(eclass.class_id, status)
        return replace(eclass, status=status)

    async def _repaint(self, eclass: Eclass) -> None:
        announcement = render_announcement(eclass, self.texts)
        await self.discord_client.edit_message(
            eclass.announcement_channel_id,
            eclass.announcement_message_id,
            announcement.content,
            announcement.embed,
        )

    async def _role_exists(self, eclass: Eclass) -> bool:
        if await self.discord_client.role_exists(eclass.class_role_id):
            return True
        logger.warning(
            "[e-class:%s] The role with id %s does not exist.",
            eclass.class_id,
            eclass.class_role_id,
        )
        return False

    @asynccontextmanager
    async def _announcement(self, eclass: Eclass) -> AsyncIterator[None]:
        try:
            yield
        except MessageNotFoundError as exc:
            logger.error(
                "[e-class:%s] Announcement message %s not found in channel %s.",
                eclass.class_id,
                eclass.announcement_message_id,
                eclass.announcement_channel_id,
            )
            raise IntegrityError(
                eclass.class_id, "announcement message not found"
            ) from exc
