"""Background loop that reminds, starts and finishes e-classes on time."""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import UUID

from eclass_manager.domain.eclasses import EclassStatus
from eclass_manager.services.eclasses import EclassRepository, EclassService

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class TickReport:
    """Class ids acted upon during a scheduler tick."""

    reminded: list[UUID] = field(default_factory=list)
    started: list[UUID] = field(default_factory=list)
    finished: list[UUID] = field(default_factory=list)
    failed: list[UUID] = field(default_factory=list)


@dataclass
class EclassScheduler:
    """Periodically scans active classes and fires due transitions.

    Firing twice for the same class is harmless: reminders are gated by the
    persisted ``reminded`` flag and transitions by the class status.
    """

    service: EclassService
    repository: EclassRepository
    reminder_lead: timedelta = timedelta(minutes=15)
    tick_interval: float = 30.0
    clock: Callable[[], datetime] = field(default=_utc_now)
    _task: asyncio.Task | None = field(default=None, init=False, repr=False)
    _running: bool = field(default=False, init=False, repr=False)

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the scheduler loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("E-class scheduler started.")

    async def stop(self) -> None:
        """Stop the scheduler loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        logger.info("E-class scheduler stopped.")

    async def tick(self, now: datetime | None = None) -> TickReport:
        """Run one scan: remind, start, then finish due classes."""
        now = now or self.clock()
        report = TickReport()
        for eclass in self.repository.list_by_status([EclassStatus.PLANNED]):
            if not eclass.reminded and eclass.date - self.reminder_lead <= now:
                await self._fire(
                    eclass.class_id, self.service.remind_class, report.reminded, report
                )
            if eclass.date <= now:
                await self._fire(eclass.class_id, self._start, report.started, report)
        for eclass in self.repository.list_by_status([EclassStatus.IN_PROGRESS]):
            if eclass.end <= now:
                await self._fire(
                    eclass.class_id, self._finish, report.finished, report
                )
        return report

    async def _start(self, class_id: UUID) -> bool:
        return (await self.service.start_class(class_id)).ok

    async def _finish(self, class_id: UUID) -> bool:
        return (await self.service.finish_class(class_id)).ok

    async def _fire(
        self,
        class_id: UUID,
        action: Callable[[UUID], Awaitable[bool]],
        done: list[UUID],
        report: TickReport,
    ) -> None:
        try:
            if await action(class_id):
                done.append(class_id)
        except Exception:
            logger.exception("[e-class:%s] Scheduled action failed.", class_id)
            report.failed.append(class_id)

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.tick()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Error in e-class scheduler tick")

            try:
                await asyncio.sleep(self.tick_interval)
            except asyncio.CancelledError:
                break
