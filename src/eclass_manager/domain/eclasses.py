"""Domain models for scheduled e-classes."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from uuid import UUID, uuid5

_CLASS_ID_NAMESPACE = UUID("6f1c6f7e-4d2b-5b8a-9a63-2c1e0f4b7d91")


class EclassStatus(StrEnum):
    """Lifecycle status of an e-class."""

    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"
    CANCELED = "canceled"


ACTIVE_STATUSES = frozenset({EclassStatus.PLANNED, EclassStatus.IN_PROGRESS})

ALLOWED_TRANSITIONS: dict[EclassStatus, frozenset[EclassStatus]] = {
    EclassStatus.PLANNED: frozenset({EclassStatus.IN_PROGRESS, EclassStatus.CANCELED}),
    EclassStatus.IN_PROGRESS: frozenset(
        {EclassStatus.FINISHED, EclassStatus.CANCELED}
    ),
    EclassStatus.FINISHED: frozenset(),
    EclassStatus.CANCELED: frozenset(),
}


class EclassPlace(StrEnum):
    """Where an e-class is delivered."""

    IN_PLATFORM = "in-platform"
    EXTERNAL_LINK = "external-link"
    IN_PERSON = "in-person"


class Rejection(StrEnum):
    """Expected, user-correctable reasons an operation was refused."""

    UNCONFIGURED_ROLE = "unconfigured_role"
    UNCONFIGURED_CHANNEL = "unconfigured_channel"
    ALREADY_EXISTS = "already_exists"
    OUT_OF_HORIZON = "out_of_horizon"
    SCHOOL_YEAR_OVERLAP = "school_year_overlap"
    PROFESSOR_OVERLAP = "professor_overlap"
    INVALID_STATUS = "invalid_status"


@dataclass(frozen=True)
class Subject:
    """Subject an e-class is taught in."""

    name: str
    school_year: str
    text_channel_id: str
    emoji: str | None = None


@dataclass(frozen=True)
class Eclass:
    """Represents a persisted e-class."""

    class_id: UUID
    professor_id: str
    subject: Subject
    topic: str
    date: datetime
    duration: timedelta
    place: EclassPlace
    place_information: str | None
    is_recorded: bool
    class_role_id: str
    role_name: str
    target_role_id: str
    announcement_channel_id: str
    announcement_message_id: str
    status: EclassStatus = EclassStatus.PLANNED
    record_links: tuple[str, ...] = ()
    subscribers: frozenset[str] = field(default_factory=frozenset)
    reminded: bool = False

    @property
    def end(self) -> datetime:
        """Return the end instant of the class."""
        return self.date + self.duration


@dataclass(frozen=True)
class CreationRequest:
    """Input for planning a new e-class."""

    professor_id: str
    subject: Subject
    topic: str
    date: datetime
    duration: timedelta
    place: EclassPlace = EclassPlace.IN_PLATFORM
    place_information: str | None = None
    is_recorded: bool = False
    target_role_id: str | None = None


@dataclass(frozen=True)
class Outcome:
    """Result of a lifecycle operation: an e-class or a rejection."""

    eclass: Eclass | None = None
    rejection: Rejection | None = None

    @property
    def ok(self) -> bool:
        return self.rejection is None


def generate_class_id(professor_id: str, date: datetime) -> UUID:
    """Build the stable identifier of a class from its professor and start."""
    start = date.astimezone(UTC).replace(microsecond=0)
    return uuid5(_CLASS_ID_NAMESPACE, f"{professor_id}:{start.isoformat()}")


def can_transition(current: EclassStatus, target: EclassStatus) -> bool:
    """Return whether a status may move forward to the target status."""
    return target in ALLOWED_TRANSITIONS[current]
