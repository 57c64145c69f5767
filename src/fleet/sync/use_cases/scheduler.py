"""Export Scheduler - recurring, interval-driven exports.

Schedules are kept in memory. Each run executes the stored request through
the coordinator, records history, and reschedules the next run at
``now + interval`` whatever the outcome; a failing run never disables a
schedule.

A single schedule never runs concurrently with itself: every schedule owns
an asyncio.Lock. Manual runs wait for an in-flight run; the periodic driver
skips schedules whose lock is held.
"""

import asyncio
import logging
import threading
import uuid
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import Optional

from ...api.exceptions import FleetError, NotFoundError, ValidationError
from ..domain.entities import ExportRequest, ExportResult, ExportSchedule, ScheduleUpdate
from .coordinator import SyncCoordinator
from .history import HistoryService

logger = logging.getLogger(__name__)

REQUESTER_MODE_SCHEDULER = "scheduler"
REQUESTER_MODE_CREATOR = "creator"
TIMEOUT_ERROR_CODE = "SCHEDULED_RUN_TIMEOUT"
FAILED_ERROR_CODE = "SCHEDULED_RUN_FAILED"


class ExportScheduler:
    """Owns named schedules and triggers their runs.

    Example:
        scheduler = ExportScheduler(coordinator, history, run_timeout=600)
        schedule = scheduler.create_schedule("nightly", 86400, request, created_by="ops")
        await scheduler.start()
        ...
        result = await scheduler.run_schedule(schedule.id, requested_by="alice")
        await scheduler.stop()
    """

    def __init__(
        self,
        coordinator: SyncCoordinator,
        history: HistoryService,
        run_timeout: Optional[float] = 300.0,
        tick_seconds: float = 5.0,
        requester_mode: str = REQUESTER_MODE_SCHEDULER,
        scheduler_identity: str = "scheduler",
    ):
        if requester_mode not in (REQUESTER_MODE_SCHEDULER, REQUESTER_MODE_CREATOR):
            raise ValueError(f"Unknown requester mode: {requester_mode}")
        self.coordinator = coordinator
        self.history = history
        self.run_timeout = run_timeout
        self.tick_seconds = tick_seconds
        self.requester_mode = requester_mode
        self.scheduler_identity = scheduler_identity

        self._lock = threading.RLock()
        self._schedules: dict[str, ExportSchedule] = {}
        self._run_locks: dict[str, asyncio.Lock] = {}
        self._shutdown_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    # ========== CRUD ==========

    def _validate(self, interval_sec: Optional[int], request: Optional[ExportRequest]) -> None:
        if interval_sec is not None and interval_sec <= 0:
            raise ValidationError("interval_sec must be positive", field="interval_sec")
        if request is not None:
            self.coordinator.validate_export(request)

    def create_schedule(
        self,
        name: str,
        interval_sec: int,
        request: ExportRequest,
        enabled: bool = True,
        created_by: str = "",
    ) -> ExportSchedule:
        """Create a schedule; the first run is due one interval from now.

        Raises:
            ValidationError: non-positive interval, or a request the
                coordinator rejects (missing or unknown plugin, bad config)
        """
        self._validate(interval_sec, request)
        now = datetime.now(UTC)
        schedule = ExportSchedule(
            id=str(uuid.uuid4()),
            name=name or request.plugin_name,
            interval_sec=interval_sec,
            request=request,
            enabled=enabled,
            created_by=created_by,
            next_run=now + timedelta(seconds=interval_sec),
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._schedules[schedule.id] = schedule
            self._run_locks[schedule.id] = asyncio.Lock()
        logger.info(f"Created schedule {schedule.id} ({schedule.name}) every {interval_sec}s")
        return replace(schedule)

    def list_schedules(self) -> list[ExportSchedule]:
        with self._lock:
            schedules = [replace(s) for s in self._schedules.values()]
        return sorted(schedules, key=lambda s: s.created_at)

    def get_schedule(self, schedule_id: str) -> ExportSchedule:
        with self._lock:
            schedule = self._schedules.get(schedule_id)
            if schedule is None:
                raise NotFoundError("Schedule", schedule_id)
            return replace(schedule)

    def update_schedule(self, schedule_id: str, update: ScheduleUpdate) -> ExportSchedule:
        """Apply a partial update and push next_run to now + interval."""
        self._validate(update.interval_sec, update.request)
        now = datetime.now(UTC)
        with self._lock:
            schedule = self._schedules.get(schedule_id)
            if schedule is None:
                raise NotFoundError("Schedule", schedule_id)
            if update.name is not None:
                schedule.name = update.name
            if update.interval_sec is not None:
                schedule.interval_sec = update.interval_sec
            if update.enabled is not None:
                schedule.enabled = update.enabled
            if update.request is not None:
                schedule.request = update.request
            schedule.next_run = now + timedelta(seconds=schedule.interval_sec)
            schedule.updated_at = now
            return replace(schedule)

    def delete_schedule(self, schedule_id: str) -> None:
        with self._lock:
            if self._schedules.pop(schedule_id, None) is None:
                raise NotFoundError("Schedule", schedule_id)
            self._run_locks.pop(schedule_id, None)
        logger.info(f"Deleted schedule {schedule_id}")

    # ========== Runs ==========

    def _auto_requester(self, schedule: ExportSchedule) -> str:
        if self.requester_mode == REQUESTER_MODE_CREATOR and schedule.created_by:
            return schedule.created_by
        return self.scheduler_identity

    def _run_lock(self, schedule_id: str) -> asyncio.Lock:
        with self._lock:
            lock = self._run_locks.get(schedule_id)
        if lock is None:
            raise NotFoundError("Schedule", schedule_id)
        return lock

    async def run_schedule(
        self,
        schedule_id: str,
        requested_by: Optional[str] = None,
    ) -> ExportResult:
        """Run a schedule now, regardless of its enabled flag or next_run.

        Waits for an in-flight run of the same schedule to finish first.
        No timeout is imposed; the caller owns the deadline.

        Raises:
            NotFoundError: If the schedule does not exist
        """
        async with self._run_lock(schedule_id):
            # re-read under the lock; an update may have landed while waiting
            schedule = self.get_schedule(schedule_id)
            return await self._execute(schedule, requested_by or self._auto_requester(schedule))

    async def _execute(
        self,
        schedule: ExportSchedule,
        requested_by: str,
        timeout: Optional[float] = None,
    ) -> ExportResult:
        request = schedule.request
        logger.info(f"Running schedule {schedule.id} ({schedule.name}) for {requested_by}")
        try:
            export = self.coordinator.export(request, export_type="scheduled")
            if timeout:
                result = await asyncio.wait_for(export, timeout=timeout)
            else:
                result = await export
        except asyncio.TimeoutError:
            result = self.coordinator.record_export_failure(
                request,
                TIMEOUT_ERROR_CODE,
                f"Scheduled run exceeded {timeout}s",
                export_type="scheduled",
            )
        except FleetError as e:
            result = self.coordinator.record_export_failure(
                request, e.code, e.message, export_type="scheduled"
            )
        except Exception as e:
            logger.error(f"Schedule {schedule.id} run failed unexpectedly: {e}", exc_info=True)
            result = self.coordinator.record_export_failure(
                request, FAILED_ERROR_CODE, str(e), export_type="scheduled"
            )

        result.metadata["schedule_id"] = schedule.id
        await self.history.save_export_history(request, result, requested_by)
        self._reschedule(schedule.id, result)
        return result

    def _reschedule(self, schedule_id: str, result: ExportResult) -> None:
        now = datetime.now(UTC)
        with self._lock:
            schedule = self._schedules.get(schedule_id)
            if schedule is None:
                logger.info(f"Schedule {schedule_id} was deleted during its run")
                return
            schedule.last_run = now
            schedule.next_run = now + timedelta(seconds=schedule.interval_sec)
            schedule.last_export_id = result.export_id
            schedule.last_success = result.success
        logger.info(
            f"Schedule {schedule_id} run finished: success={result.success}, "
            f"next run at {schedule.next_run.isoformat()}"
        )

    async def _run_if_idle(self, schedule: ExportSchedule) -> Optional[ExportResult]:
        lock = self._run_lock(schedule.id)
        if lock.locked():
            logger.info(f"Skipping schedule {schedule.id}: previous run still in progress")
            return None
        async with lock:
            current = self.get_schedule(schedule.id)
            if not current.enabled:
                return None
            return await self._execute(
                current, self._auto_requester(current), timeout=self.run_timeout
            )

    async def run_due_schedules(self, now: Optional[datetime] = None) -> list[ExportResult]:
        """Trigger every enabled schedule whose next_run has elapsed.

        Distinct schedules run concurrently; schedules with a run in
        progress are skipped.

        Returns:
            Results of the runs that were started
        """
        now = now or datetime.now(UTC)
        with self._lock:
            due = [replace(s) for s in self._schedules.values() if s.is_due(now)]
        if not due:
            return []

        outcomes = await asyncio.gather(
            *(self._run_if_idle(s) for s in due),
            return_exceptions=True,
        )
        results = []
        for schedule, outcome in zip(due, outcomes):
            if isinstance(outcome, NotFoundError):
                continue
            if isinstance(outcome, BaseException):
                logger.error(f"Schedule {schedule.id} run raised: {outcome}", exc_info=outcome)
                continue
            if outcome is not None:
                results.append(outcome)
        return results

    # ========== Background loop ==========

    async def _loop(self, shutdown_event: asyncio.Event) -> None:
        logger.info(f"Export scheduler started (tick={self.tick_seconds}s)")
        while not shutdown_event.is_set():
            try:
                await asyncio.wait_for(shutdown_event.wait(), timeout=self.tick_seconds)
                break
            except asyncio.TimeoutError:
                pass

            try:
                await self.run_due_schedules()
            except Exception as e:
                logger.error(f"Scheduler tick failed: {e}", exc_info=True)
        logger.info("Export scheduler stopped")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._shutdown_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop(self._shutdown_event))

    async def stop(self, timeout: float = 30.0) -> None:
        """Signal the loop to exit and wait for in-flight runs to finish."""
        if not self.running:
            return
        self._shutdown_event.set()
        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Scheduler did not stop within {timeout}s, cancelling")
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
