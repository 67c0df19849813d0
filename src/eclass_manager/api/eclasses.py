"""E-class API endpoints with simple token auth."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from eclass_manager.api.models import (
    CreateEclassRequest,
    DiscordReactionEvent,
    RecordLinkRequest,
)
from eclass_manager.domain.eclasses import CreationRequest, Eclass, Outcome, Subject

if TYPE_CHECKING:
    from eclass_manager.containers import AppContainer

router = APIRouter(tags=["eclasses"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


def eclass_to_dict(eclass: Eclass) -> dict[str, object]:
    """Serialize an e-class for API responses."""
    return {
        "class_id": str(eclass.class_id),
        "professor_id": eclass.professor_id,
        "subject": {
            "name": eclass.subject.name,
            "school_year": eclass.subject.school_year,
            "text_channel_id": eclass.subject.text_channel_id,
            "emoji": eclass.subject.emoji,
        },
        "topic": eclass.topic,
        "date": eclass.date.isoformat(),
        "end": eclass.end.isoformat(),
        "duration_ms": int(eclass.duration.total_seconds() * 1000),
        "place": eclass.place.value,
        "place_information": eclass.place_information,
        "is_recorded": eclass.is_recorded,
        "record_links": list(eclass.record_links),
        "subscribers": sorted(eclass.subscribers),
        "status": eclass.status.value,
        "class_role_id": eclass.class_role_id,
        "target_role_id": eclass.target_role_id,
        "announcement_channel_id": eclass.announcement_channel_id,
        "announcement_message_id": eclass.announcement_message_id,
        "reminded": eclass.reminded,
    }


def _outcome_response(outcome: Outcome) -> dict[str, object]:
    if outcome.rejection is not None or outcome.eclass is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"reason": str(outcome.rejection)},
        )
    return {"eclass": eclass_to_dict(outcome.eclass)}


@router.post(
    "/eclasses",
    dependencies=[Depends(require_admin)],
    status_code=status.HTTP_201_CREATED,
)
async def create_eclass(
    payload: CreateEclassRequest, request: Request
) -> dict[str, object]:
    """Plan a new class."""
    container: AppContainer = request.app.state.container
    outcome = await container.eclass_service.create_class(
        CreationRequest(
            professor_id=payload.professor_id,
            subject=Subject(
                name=payload.subject.name,
                school_year=payload.subject.school_year,
                text_channel_id=payload.subject.text_channel_id,
                emoji=payload.subject.emoji,
            ),
            topic=payload.topic,
            date=payload.date,
            duration=timedelta(minutes=payload.duration_minutes),
            place=payload.place,
            place_information=payload.place_information,
            is_recorded=payload.is_recorded,
            target_role_id=payload.target_role_id,
        )
    )
    return _outcome_response(outcome)


@router.get("/eclasses/{class_id}", dependencies=[Depends(require_admin)])
async def get_eclass(class_id: UUID, request: Request) -> dict[str, object]:
    """Return a class."""
    container: AppContainer = request.app.state.container
    eclass = container.eclass_service.get_class(class_id)
    if eclass is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return {"eclass": eclass_to_dict(eclass)}


@router.post("/eclasses/{class_id}/start", dependencies=[Depends(require_admin)])
async def start_eclass(class_id: UUID, request: Request) -> dict[str, object]:
    """Start a planned class."""
    container: AppContainer = request.app.state.container
    return _outcome_response(await container.eclass_service.start_class(class_id))


@router.post("/eclasses/{class_id}/finish", dependencies=[Depends(require_admin)])
async def finish_eclass(class_id: UUID, request: Request) -> dict[str, object]:
    """Finish an in-progress class."""
    container: AppContainer = request.app.state.container
    return _outcome_response(await container.eclass_service.finish_class(class_id))


@router.post("/eclasses/{class_id}/cancel", dependencies=[Depends(require_admin)])
async def cancel_eclass(class_id: UUID, request: Request) -> dict[str, object]:
    """Cancel a class."""
    container: AppContainer = request.app.state.container
    return _outcome_response(await container.eclass_service.cancel_class(class_id))


@router.post("/eclasses/{class_id}/remind", dependencies=[Depends(require_admin)])
async def remind_eclass(class_id: UUID, request: Request) -> dict[str, object]:
    """Send the reminders of a class if not sent yet."""
    container: AppContainer = request.app.state.container
    return {"reminded": await container.eclass_service.remind_class(class_id)}


@router.post(
    "/eclasses/{class_id}/record-links", dependencies=[Depends(require_admin)]
)
async def add_record_link(
    class_id: UUID, payload: RecordLinkRequest, request: Request
) -> dict[str, object]:
    """Attach a recording link."""
    container: AppContainer = request.app.state.container
    outcome = await container.eclass_service.add_record_link(
        class_id, payload.link, silent=payload.silent
    )
    return _outcome_response(outcome)


@router.delete(
    "/eclasses/{class_id}/record-links", dependencies=[Depends(require_admin)]
)
async def remove_record_link(
    class_id: UUID, link: str, request: Request
) -> dict[str, object]:
    """Detach a recording link."""
    container: AppContainer = request.app.state.container
    outcome = await container.eclass_service.remove_record_link(class_id, link)
    return _outcome_response(outcome)


@router.post(
    "/eclasses/{class_id}/subscribers/{member_id}",
    dependencies=[Depends(require_admin)],
)
async def subscribe(
    class_id: UUID, member_id: str, request: Request
) -> dict[str, object]:
    """Subscribe a member to a planned class."""
    container: AppContainer = request.app.state.container
    subscribed = await container.eclass_service.subscribe_member(class_id, member_id)
    return {"subscribed": subscribed}


@router.delete(
    "/eclasses/{class_id}/subscribers/{member_id}",
    dependencies=[Depends(require_admin)],
)
async def unsubscribe(
    class_id: UUID, member_id: str, request: Request
) -> dict[str, object]:
    """Unsubscribe a member from a planned class."""
    container: AppContainer = request.app.state.container
    unsubscribed = await container.eclass_service.unsubscribe_member(
        class_id, member_id
    )
    return {"unsubscribed": unsubscribed}


@router.post("/discord/reactions", dependencies=[Depends(require_admin)])
async def discord_reaction(
    event: DiscordReactionEvent, request: Request
) -> dict[str, object]:
    """Handle a relayed reaction add/remove gateway event."""
    container: AppContainer = request.app.state.container
    handled = await container.eclass_service.handle_reaction(
        message_id=event.message_id,
        member_id=event.user_id,
        emoji=event.emoji.name or "",
        added=event.added,
    )
    return {"handled": handled}
