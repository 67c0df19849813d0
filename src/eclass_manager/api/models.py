"""Pydantic models for e-class API payloads."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from eclass_manager.domain.eclasses import EclassPlace


class SubjectPayload(BaseModel):
    """Subject of a class."""

    name: str = Field(min_length=1)
    school_year: str
    text_channel_id: str
    emoji: str | None = None

    @field_validator("school_year")
    @classmethod
    def _normalize_school_year(cls, value: str) -> str:
        return value.strip().upper()


class CreateEclassRequest(BaseModel):
    """Request to plan a new class."""

    professor_id: str
    subject: SubjectPayload
    topic: str = Field(min_length=1)
    date: datetime
    duration_minutes: int = Field(gt=0)
    place: EclassPlace = EclassPlace.IN_PLATFORM
    place_information: str | None = None
    is_recorded: bool = False
    target_role_id: str | None = None


class RecordLinkRequest(BaseModel):
    """Recording link to attach to or detach from a class."""

    link: str = Field(min_length=1)
    silent: bool = False


class DiscordEmoji(BaseModel):
    """Discord emoji payload."""

    id: str | None = None
    name: str | None = None


class DiscordReactionEvent(BaseModel):
    """Reaction gateway event relayed to the API."""

    event: str = Field(alias="t")
    user_id: str
    channel_id: str
    message_id: str
    guild_id: str | None = None
    emoji: DiscordEmoji

    @property
    def added(self) -> bool:
        return self.event == "MESSAGE_REACTION_ADD"
