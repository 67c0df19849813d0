"""Supabase-backed e-class repository."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

from supabase import Client

from eclass_manager.domain.eclasses import (
    ACTIVE_STATUSES,
    Eclass,
    EclassPlace,
    EclassStatus,
    Subject,
)
from eclass_manager.services.eclasses import EclassRepository

_TABLE = "eclasses"
_COLUMNS = (
    "class_id, professor_id, subject_name, school_year, text_channel_id, "
    "subject_emoji, topic, date, end_date, duration_ms, place, place_information, "
    "is_recorded, record_links, subscribers, status, class_role_id, role_name, "
    "target_role_id, announcement_channel_id, announcement_message_id, reminded"
)


@dataclass
class SupabaseEclassRepository(EclassRepository):
    """Supabase implementation for e-classes.

    Subscriber and recording-link changes go through Postgres functions so
    they are applied atomically on the array columns.
    """

    client: Client

    def create_eclass(self, eclass: Eclass) -> Eclass:
        """Insert an e-class row and return it."""
        response = self.client.table(_TABLE).insert(_eclass_to_row(eclass)).execute()
        if not response.data:
            raise RuntimeError("Failed to create e-class")
        return _row_to_eclass(response.data[0])

    def get_eclass(self, class_id: UUID) -> Eclass | None:
        """Return an e-class by id, if present."""
        response = (
            self.client.table(_TABLE)
            .select(_COLUMNS)
            .eq("class_id", str(class_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _row_to_eclass(response.data[0])

    def list_overlapping(
        self, start: datetime, end: datetime, exclude_id: UUID | None = None
    ) -> list[Eclass]:
        """Return planned e-classes intersecting the half-open window."""
        query = (
            self.client.table(_TABLE)
            .select(_COLUMNS)
            .eq("status", EclassStatus.PLANNED.value)
            .lt("date", end.astimezone(UTC).isoformat())
            .gt("end_date", start.astimezone(UTC).isoformat())
        )
        if exclude_id is not None:
            query = query.neq("class_id", str(exclude_id))
        response = query.execute()
        return [_row_to_eclass(row) for row in response.data or []]

    def list_by_status(self, statuses: Iterable[EclassStatus]) -> list[Eclass]:
        """Return e-classes in the given statuses ordered by start."""
        response = (
            self.client.table(_TABLE)
            .select(_COLUMNS)
            .in_("status", [status.value for status in statuses])
            .order("date")
            .execute()
        )
        return [_row_to_eclass(row) for row in response.data or []]

    def role_name_in_use(self, role_name: str) -> bool:
        """Return whether an active e-class already uses a role name."""
        response = (
            self.client.table(_TABLE)
            .select("class_id")
            .eq("role_name", role_name)
            .in_("status", [status.value for status in ACTIVE_STATUSES])
            .limit(1)
            .execute()
        )
        return bool(response.data)

    def set_status(self, class_id: UUID, status: EclassStatus) -> None:
        """Update the status of an e-class."""
        self._update(class_id, {"status": status.value})

    def add_subscriber(self, class_id: UUID, member_id: str) -> None:
        """Add a subscriber unless already present."""
        self.client.rpc(
            "eclass_add_subscriber",
            {"p_class_id": str(class_id), "p_member_id": member_id},
        ).execute()

    def remove_subscriber(self, class_id: UUID, member_id: str) -> None:
        """Remove a subscriber."""
        self.client.rpc(
            "eclass_remove_subscriber",
            {"p_class_id": str(class_id), "p_member_id": member_id},
        ).execute()

    def append_record_link(self, class_id: UUID, link: str) -> None:
        """Append a recording link."""
        self.client.rpc(
            "eclass_append_record_link",
            {"p_class_id": str(class_id), "p_link": link},
        ).execute()

    def remove_record_link(self, class_id: UUID, link: str) -> None:
        """Remove every occurrence of a recording link."""
        self.client.rpc(
            "eclass_remove_record_link",
            {"p_class_id": str(class_id), "p_link": link},
        ).execute()

    def mark_reminded(self, class_id: UUID) -> bool:
        """Claim the reminder with a conditional update on the flag."""
        response = (
            self.client.table(_TABLE)
            .update(
                {"reminded": True, "updated_at": datetime.now(tz=UTC).isoformat()}
            )
            .eq("class_id", str(class_id))
            .eq("reminded", False)
            .execute()
        )
        return bool(response.data)

    def _update(self, class_id: UUID, fields: dict[str, object]) -> None:
        self.client.table(_TABLE).update(
            {**fields, "updated_at": datetime.now(tz=UTC).isoformat()}
        ).eq("class_id", str(class_id)).execute()


def _eclass_to_row(eclass: Eclass) -> dict[str, object]:
    return {
        "class_id": str(eclass.class_id),
        "professor_id": eclass.professor_id,
        "subject_name": eclass.subject.name,
        "school_year": eclass.subject.school_year,
        "text_channel_id": eclass.subject.text_channel_id,
        "subject_emoji": eclass.subject.emoji,
        "topic": eclass.topic,
        "date": eclass.date.astimezone(UTC).isoformat(),
        "end_date": eclass.end.astimezone(UTC).isoformat(),
        "duration_ms": int(eclass.duration.total_seconds() * 1000),
        "place": eclass.place.value,
        "place_information": eclass.place_information,
        "is_recorded": eclass.is_recorded,
        "record_links": list(eclass.record_links),
        "subscribers": sorted(eclass.subscribers),
        "status": eclass.status.value,
        "class_role_id": eclass.class_role_id,
        "role_name": eclass.role_name,
        "target_role_id": eclass.target_role_id,
        "announcement_channel_id": eclass.announcement_channel_id,
        "announcement_message_id": eclass.announcement_message_id,
        "reminded": eclass.reminded,
    }


def _row_to_eclass(row: dict[str, object]) -> Eclass:
    return Eclass(
        class_id=UUID(str(row["class_id"])),
        professor_id=str(row["professor_id"]),
        subject=Subject(
            name=str(row["subject_name"]),
            school_year=str(row["school_year"]),
            text_channel_id=str(row["text_channel_id"]),
            emoji=row.get("subject_emoji"),  # type: ignore[arg-type]
        ),
        topic=str(row["topic"]),
        date=_parse_datetime(str(row["date"])),
        duration=timedelta(
            milliseconds=int(row["duration_ms"])  # type: ignore[arg-type]
        ),
        place=EclassPlace(row["place"]),
        place_information=row.get("place_information"),  # type: ignore[arg-type]
        is_recorded=bool(row.get("is_recorded")),
        class_role_id=str(row["class_role_id"]),
        role_name=str(row["role_name"]),
        target_role_id=str(row["target_role_id"]),
        announcement_channel_id=str(row["announcement_channel_id"]),
        announcement_message_id=str(row["announcement_message_id"]),
        status=EclassStatus(row["status"]),
        record_links=tuple(row.get("record_links") or ()),  # type: ignore[arg-type]
        subscribers=frozenset(row.get("subscribers") or ()),  # type: ignore[arg-type]
        reminded=bool(row.get("reminded")),
    )


def _parse_datetime(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed
