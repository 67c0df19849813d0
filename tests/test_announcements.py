"""Tests for announcement rendering."""

from dataclasses import replace
from datetime import UTC, datetime, timedelta
from uuid import uuid4

from eclass_manager.domain.eclasses import Eclass, EclassPlace, EclassStatus
from eclass_manager.services.announcements import (
    ROLE_NAME_MAX_LENGTH,
    STATUS_COLORS,
    AnnouncementTexts,
    format_date,
    humanize_duration,
    render_announcement,
    render_reminders,
    role_name_for_class,
)
from tests.conftest import MATHS_L1

TEXTS = AnnouncementTexts()


def _eclass(**changes: object) -> Eclass:
    eclass = Eclass(
        class_id=uuid4(),
        professor_id="prof-1",
        subject=MATHS_L1,
        topic="Integrals",
        date=datetime(2026, 10, 20, 10, 0, tzinfo=UTC),
        duration=timedelta(minutes=90),
        place=EclassPlace.IN_PLATFORM,
        place_information=None,
        is_recorded=False,
        class_role_id="role-9",
        role_name="Maths: Integrals (20/10 at 12:00)",
        target_role_id="role-l1",
        announcement_channel_id="announce-l1",
        announcement_message_id="msg-1",
    )
    return replace(eclass, **changes)


def _field(embed: dict[str, object], name: str) -> str:
    fields = embed["fields"]
    assert isinstance(fields, list)
    return next(item["value"] for item in fields if item["name"] == name)


def test_humanize_duration() -> None:
    assert humanize_duration(timedelta(minutes=90)) == "1 hour 30 minutes"
    assert humanize_duration(timedelta(hours=2)) == "2 hours"
    assert humanize_duration(timedelta(minutes=1)) == "1 minute"
    assert humanize_duration(timedelta(seconds=20)) == "0 minutes"


def test_format_date_uses_timezone() -> None:
    value = datetime(2026, 10, 20, 10, 0, tzinfo=UTC)

    assert format_date(value, "%d/%m at %H:%M", "Europe/Paris") == "20/10 at 12:00"
    assert format_date(value, "%d/%m at %H:%M", "UTC") == "20/10 at 10:00"


def test_role_name_truncates_long_topics() -> None:
    date = datetime(2026, 10, 20, 10, 0, tzinfo=UTC)
    short = role_name_for_class(
        "Maths",
        "Integrals",
        date,
        "{subject}: {topic} ({formatted_date})",
        "%d/%m at %H:%M",
        "UTC",
    )
    long = role_name_for_class(
        "Maths",
        "x" * 300,
        date,
        "{subject}: {topic} ({formatted_date})",
        "%d/%m at %H:%M",
        "UTC",
    )

    assert short == "Maths: Integrals (20/10 at 10:00)"
    assert len(long) == ROLE_NAME_MAX_LENGTH
    assert long.startswith("Maths: xxx")
    assert long.endswith("… (20/10 at 10:00)")


def test_planned_announcement_lists_class_details() -> None:
    eclass = _eclass()

    announcement = render_announcement(eclass, TEXTS)

    assert announcement.content == "<@&role-l1> A new class was planned!"
    assert announcement.embed["title"] == "Maths: Integrals"
    assert announcement.embed["color"] == STATUS_COLORS[EclassStatus.PLANNED]
    assert _field(announcement.embed, "Duration") == "1 hour 30 minutes"
    assert _field(announcement.embed, "Professor") == "<@prof-1>"
    assert _field(announcement.embed, "Recorded") == "No"
    assert _field(announcement.embed, "Place") == "On the server, in <#chan-maths>"
    assert str(eclass.class_id) in str(announcement.embed["footer"])


def test_announcement_follows_status() -> None:
    in_progress = render_announcement(
        _eclass(status=EclassStatus.IN_PROGRESS), TEXTS
    ).embed
    finished = render_announcement(_eclass(status=EclassStatus.FINISHED), TEXTS).embed
    canceled = render_announcement(_eclass(status=EclassStatus.CANCELED), TEXTS).embed

    assert in_progress["color"] == 0xF27938
    assert _field(in_progress, "Date").startswith("In progress since")
    assert _field(finished, "Date").startswith("Finished")
    assert canceled["description"] == TEXTS.canceled_description
    assert canceled["fields"] == []


def test_external_place_and_record_links() -> None:
    eclass = _eclass(
        place=EclassPlace.IN_PERSON,
        place_information="Room 101",
        is_recorded=True,
        record_links=("https://rec/1", "https://rec/2"),
    )

    announcement = render_announcement(eclass, TEXTS)

    assert "In person, at Room 101" in announcement.content
    assert _field(announcement.embed, "Recorded") == (
        "Yes\n[link](https://rec/1), [link](https://rec/2)"
    )


def test_render_reminders() -> None:
    eclass = _eclass(is_recorded=True)

    channel, private, professor = render_reminders(eclass, TEXTS)

    assert channel.startswith("<@&role-9> Reminder: **Integrals**")
    assert "(Maths)" in private
    assert "It is recorded." in professor
