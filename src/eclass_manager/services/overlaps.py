"""Planning horizon and overlap checks for new e-classes.

Windows are half-open: a class occupies ``[date, date + duration)``. Two
windows intersect when ``existing.start < candidate.end`` and
``existing.end > candidate.start``, so back-to-back classes sharing an
endpoint never conflict.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol
from uuid import UUID

from eclass_manager.domain.eclasses import Eclass, EclassStatus, Rejection


class OverlapSource(Protocol):
    """Query interface for planned classes intersecting a window."""

    def list_overlapping(
        self, start: datetime, end: datetime, exclude_id: UUID | None = None
    ) -> list[Eclass]:
        """Return planned classes whose window intersects ``[start, end)``."""


def windows_intersect(
    first_start: datetime,
    first_end: datetime,
    second_start: datetime,
    second_end: datetime,
) -> bool:
    """Return whether two half-open windows share at least one instant."""
    return first_start < second_end and first_end > second_start


def validate_date_span(date: datetime, now: datetime, horizon: timedelta) -> bool:
    """Return whether a start date lies strictly between now and the horizon."""
    return now < date < now + horizon


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class OverlapChecker:
    """Decides whether a proposed class window may be planned."""

    source: OverlapSource
    planning_horizon: timedelta = timedelta(days=60)
    clock: Callable[[], datetime] = field(default=_utc_now)

    def check(  # noqa: PLR0913
        self,
        date: datetime,
        duration: timedelta,
        professor_id: str,
        school_year: str,
        exclude_id: UUID | None = None,
    ) -> Rejection | None:
        """Return the rejection for a candidate window, or None if it is free."""
        if not validate_date_span(date, self.clock(), self.planning_horizon):
            return Rejection.OUT_OF_HORIZON
        return self.find_conflict(
            date, duration, professor_id, school_year, exclude_id=exclude_id
        )

    def find_conflict(  # noqa: PLR0913
        self,
        date: datetime,
        duration: timedelta,
        professor_id: str,
        school_year: str,
        exclude_id: UUID | None = None,
    ) -> Rejection | None:
        """Return the overlap class of a candidate window, ignoring the horizon."""
        end = date + duration
        overlapping = [
            eclass
            for eclass in self.source.list_overlapping(date, end, exclude_id)
            if eclass.class_id != exclude_id
            and eclass.status == EclassStatus.PLANNED
            and windows_intersect(eclass.date, eclass.end, date, end)
        ]
        if any(eclass.subject.school_year == school_year for eclass in overlapping):
            return Rejection.SCHOOL_YEAR_OVERLAP
        if any(eclass.professor_id == professor_id for eclass in overlapping):
            return Rejection.PROFESSOR_OVERLAP
        return None
