"""Errors raised by the e-class core and its adapters."""

from uuid import UUID


class EclassError(Exception):
    """Base error for the e-class core."""


class IntegrityError(EclassError):
    """Persisted state and the platform view have diverged."""

    def __init__(self, class_id: UUID, reason: str) -> None:
        super().__init__(f"[e-class:{class_id}] {reason}")
        self.class_id = class_id
        self.reason = reason


class EclassNotFoundError(IntegrityError):
    """An operation expected a persisted e-class that does not exist."""

    def __init__(self, class_id: UUID) -> None:
        super().__init__(class_id, "record not found")


class MessageNotFoundError(EclassError):
    """The platform could not find a message."""

    def __init__(self, channel_id: str, message_id: str) -> None:
        super().__init__(f"Message {message_id} not found in channel {channel_id}")
        self.channel_id = channel_id
        self.message_id = message_id
