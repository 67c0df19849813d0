"""Rendering of announcement messages and notifications for e-classes."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from eclass_manager.domain.eclasses import Eclass, EclassPlace, EclassStatus

ROLE_NAME_MAX_LENGTH = 100

STATUS_COLORS: dict[EclassStatus, int] = {
    EclassStatus.PLANNED: 0x32A852,
    EclassStatus.IN_PROGRESS: 0xF27938,
    EclassStatus.FINISHED: 0x439BF2,
    EclassStatus.CANCELED: 0xEB2D1C,
}
ROLE_COLOR = 0xFFFFFF
NOTIFICATION_COLOR = 0x5BB78F


@dataclass(frozen=True)
class AnnouncementContent:
    """Full content of an announcement message."""

    content: str
    embed: dict[str, object]


@dataclass(frozen=True)
class AnnouncementTexts:
    """Message templates used to render e-class messages."""

    author: str = "New class!"
    title: str = "{subject}: {topic}"
    description: str = (
        "Class in **{subject}** on {date}, in <#{channel}>. "
        "React with ✅ to be notified when it starts!"
    )
    canceled_description: str = "This class was canceled."
    new_class_notification: str = "<@&{target_role}> A new class was planned!{alert}"
    place_alert: str = "\n:warning: This class does not take place here: {where}"
    date_label: str = "Date"
    date_value: str = "{date} until {end}"
    date_value_in_progress: str = "In progress since {start_time}, until {end}"
    date_value_finished: str = "Finished ({date})"
    duration_label: str = "Duration"
    professor_label: str = "Professor"
    recorded_label: str = "Recorded"
    recorded_yes: str = "Yes"
    recorded_no: str = "No"
    recorded_link: str = "[link]({link})"
    place_label: str = "Place"
    place_in_platform: str = "On the server, in <#{channel}>"
    place_external_link: str = "Online, at {information}"
    place_in_person: str = "In person, at {information}"
    footer: str = "Class ID: {class_id}"
    start_notification: str = (
        "<@&{class_role}> The class **{topic}** starts now with <@{professor}>! "
        "Where: {where}."
    )
    remind_notification: str = (
        "<@&{class_role}> Reminder: **{topic}** starts {relative}. Where: {where}."
    )
    remind_private: str = (
        "Reminder: the class **{topic}** ({subject}) you subscribed to starts "
        "{relative}. Where: {where}."
    )
    alert_professor: str = (
        "Your class **{topic}** starts {relative}. Where: {where}. "
        "It {recorded_state} recorded."
    )
    subscribed: str = "You will be reminded before the class **{topic}** ({date})."
    unsubscribed: str = "You will no longer be reminded of the class **{topic}**."
    link_announcement: str = (
        "The recording of **{topic}** ({date}) is available: {link}"
    )


def _timestamp(value: datetime, style: str) -> str:
    return f"<t:{int(value.timestamp())}:{style}>"


def format_date(value: datetime, date_format: str, timezone: str) -> str:
    """Format an instant in the configured locale timezone."""
    return value.astimezone(ZoneInfo(timezone)).strftime(date_format)


def humanize_duration(duration: timedelta) -> str:
    """Return a short human-readable rendering of a duration."""
    total_minutes = int(duration.total_seconds() // 60)
    hours, minutes = divmod(total_minutes, 60)
    parts = []
    if hours:
        parts.append(f"{hours} hour{'s' if hours > 1 else ''}")
    if minutes or not parts:
        parts.append(f"{minutes} minute{'s' if minutes != 1 else ''}")
    return " ".join(parts)


def role_name_for_class(  # noqa: PLR0913
    subject: str,
    topic: str,
    date: datetime,
    role_name_format: str,
    date_format: str,
    timezone: str,
) -> str:
    """Build the dedicated role name, trimming the topic to fit the limit."""
    formatted_date = format_date(date, date_format, timezone)
    base = role_name_format.format(
        subject=subject, topic="", formatted_date=formatted_date
    )
    remaining = max(ROLE_NAME_MAX_LENGTH - len(base), 0)
    if len(topic) > remaining:
        topic = topic[: max(remaining - 1, 0)] + "…" if remaining else ""
    return role_name_format.format(
        subject=subject, topic=topic, formatted_date=formatted_date
    )


def where(eclass: Eclass, texts: AnnouncementTexts) -> str:
    """Describe where a class takes place."""
    if eclass.place == EclassPlace.EXTERNAL_LINK:
        return texts.place_external_link.format(information=eclass.place_information)
    if eclass.place == EclassPlace.IN_PERSON:
        return texts.place_in_person.format(information=eclass.place_information)
    return texts.place_in_platform.format(channel=eclass.subject.text_channel_id)


def _date_value(eclass: Eclass, texts: AnnouncementTexts) -> str:
    date = _timestamp(eclass.date, "F")
    end = _timestamp(eclass.end, "t")
    if eclass.status == EclassStatus.IN_PROGRESS:
        return texts.date_value_in_progress.format(
            start_time=_timestamp(eclass.date, "t"), end=end
        )
    if eclass.status == EclassStatus.FINISHED:
        return texts.date_value_finished.format(date=date)
    return texts.date_value.format(date=date, end=end)


def _recorded_value(eclass: Eclass, texts: AnnouncementTexts) -> str:
    base = texts.recorded_yes if eclass.is_recorded else texts.recorded_no
    if not eclass.record_links:
        return base
    links = ", ".join(
        texts.recorded_link.format(link=link) for link in eclass.record_links
    )
    return f"{base}\n{links}"


def render_announcement_content(eclass: Eclass, texts: AnnouncementTexts) -> str:
    """Render the plain-text part of the announcement."""
    alert = ""
    if eclass.place != EclassPlace.IN_PLATFORM:
        alert = texts.place_alert.format(where=where(eclass, texts))
    return texts.new_class_notification.format(
        target_role=eclass.target_role_id, alert=alert
    )


def render_announcement(
    eclass: Eclass, texts: AnnouncementTexts
) -> AnnouncementContent:
    """Render the whole announcement message for the current class state."""
    embed: dict[str, object] = {
        "title": texts.title.format(subject=eclass.subject.name, topic=eclass.topic),
        "author": {"name": texts.author},
        "color": STATUS_COLORS[eclass.status],
        "footer": {"text": texts.footer.format(class_id=eclass.class_id)},
    }
    if eclass.status == EclassStatus.CANCELED:
        embed["description"] = texts.canceled_description
        embed["fields"] = []
    else:
        embed["description"] = texts.description.format(
            subject=eclass.subject.name,
            date=_timestamp(eclass.date, "F"),
            channel=eclass.subject.text_channel_id,
        )
        embed["fields"] = [
            {
                "name": texts.date_label,
                "value": _date_value(eclass, texts),
                "inline": True,
            },
            {
                "name": texts.duration_label,
                "value": humanize_duration(eclass.duration),
                "inline": True,
            },
            {
                "name": texts.professor_label,
                "value": f"<@{eclass.professor_id}>",
                "inline": True,
            },
            {
                "name": texts.recorded_label,
                "value": _recorded_value(eclass, texts),
                "inline": True,
            },
            {"name": texts.place_label, "value": where(eclass, texts), "inline": True},
        ]
    return AnnouncementContent(
        content=render_announcement_content(eclass, texts), embed=embed
    )


def render_start_notification(
    eclass: Eclass, texts: AnnouncementTexts
) -> AnnouncementContent:
    """Render the message posted in the class channel when it starts."""
    return AnnouncementContent(
        content=texts.start_notification.format(
            class_role=eclass.class_role_id,
            topic=eclass.topic,
            professor=eclass.professor_id,
            where=where(eclass, texts),
        ),
        embed={
            "title": texts.title.format(
                subject=eclass.subject.name, topic=eclass.topic
            ),
            "color": NOTIFICATION_COLOR,
            "footer": {"text": texts.footer.format(class_id=eclass.class_id)},
        },
    )


def render_reminders(eclass: Eclass, texts: AnnouncementTexts) -> tuple[str, str, str]:
    """Render the channel, subscriber and professor reminder texts."""
    relative = _timestamp(eclass.date, "R")
    place = where(eclass, texts)
    channel = texts.remind_notification.format(
        class_role=eclass.class_role_id,
        topic=eclass.topic,
        relative=relative,
        where=place,
    )
    private = texts.remind_private.format(
        topic=eclass.topic,
        subject=eclass.subject.name,
        relative=relative,
        where=place,
    )
    professor = texts.alert_professor.format(
        topic=eclass.topic,
        relative=relative,
        where=place,
        recorded_state="is" if eclass.is_recorded else "is not",
    )
    return channel, private, professor
