import logging
from datetime import datetime
from typing import Callable, List, Optional, Tuple

import config
from client.cache import DeviceCache
from client.queue import LocalPendingQueue, provisional_id
from client.remote import RemotePunchStore
from client.sync import SyncEngine
from client.trigger import SyncTrigger
from main import check_double_punch, reconcile_status, utcnow
from models.schema import (
    CaptureResult,
    ClockStatus,
    Punch,
    PunchHistory,
    PunchType,
    SyncReport,
    SyncStatus,
    WeeklyHours,
)
from utils.errors import CaptureFault, ServerRejection, StorageFault, TransportFault

OFFLINE_MESSAGE = "Punch saved offline. It will be synced when you're back online."
SYNCED_MESSAGE = "Punch recorded."

Locator = Callable[[], Optional[Tuple[float, float]]]


class TimeTracker:
    """One device session for one employee: capture, status and summaries."""

    def __init__(
        self,
        employee_id: int,
        remote: RemotePunchStore,
        queue: LocalPendingQueue,
        cache: DeviceCache,
        locate: Locator,
        trigger: Optional[SyncTrigger] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.employee_id = employee_id
        self.remote = remote
        self.queue = queue
        self.cache = cache
        self.locate = locate
        self.trigger = trigger or SyncTrigger(SyncEngine(queue, remote))
        self.clock = clock
        self.trigger.on_complete = self._after_sync

    def punch(self, punch_type: PunchType, note: Optional[str] = None) -> CaptureResult:
        punch_type = PunchType(punch_type)
        # the live list when reachable, so another device's punches count too
        known = self.refresh_punches().punches
        check_double_punch(self._status_from(known, self.clock()), punch_type)

        latitude, longitude = self._current_location()
        punch = Punch(
            id=provisional_id(),
            employee_id=self.employee_id,
            type=punch_type,
            timestamp=self.clock(),
            latitude=latitude,
            longitude=longitude,
            note=note or None,
        )

        try:
            server_id = self.remote.submit(punch)
        except TransportFault as e:
            logging.warning(f"Error recording punch, storing it offline: {e}")
            queued = self.queue.enqueue(punch)
            self.trigger.schedule()
            return CaptureResult(punch=queued, status=SyncStatus.PENDING, message=OFFLINE_MESSAGE)
        except ServerRejection as e:
            logging.error(f"Punch rejected for employee_id: {self.employee_id}: {e}")
            raise

        recorded = punch.model_copy(update={"id": server_id, "sync_status": SyncStatus.SYNCED})
        if self.refresh_punches().cached:
            self._remember([recorded])
        self.refresh_weekly_hours()
        return CaptureResult(punch=recorded, status=SyncStatus.SYNCED, message=SYNCED_MESSAGE)

    def refresh_punches(self) -> PunchHistory:
        try:
            punches = self.remote.list_by_employee(self.employee_id)
        except (TransportFault, ServerRejection) as e:
            logging.error(f"Error fetching punches: {e}")
            return PunchHistory(punches=list(self.cache.punches), cached=True)
        self._write_cache(self.cache.store_punches, punches)
        return PunchHistory(punches=punches, cached=False)

    def refresh_weekly_hours(self) -> WeeklyHours:
        try:
            total_hours = self.remote.weekly_summary(self.employee_id)
        except (TransportFault, ServerRejection) as e:
            logging.error(f"Error fetching weekly summary: {e}")
            return WeeklyHours(total_hours=self.cache.weekly_hours or "0.00", cached=True)
        self._write_cache(self.cache.store_weekly_hours, total_hours)
        return WeeklyHours(total_hours=total_hours, cached=False)

    def status(self, now: Optional[datetime] = None) -> ClockStatus:
        """Clock state from the last-known punches, queued offline ones included."""
        return self._status_from(self.cache.punches, now or self.clock())

    def on_reconnect(self) -> Optional[SyncReport]:
        return self.trigger.on_reconnect()

    def sync_now(self) -> Optional[SyncReport]:
        return self.trigger.run_now()

    def pending_count(self) -> int:
        return len(self.queue)

    def _after_sync(self, report: SyncReport) -> None:
        # queued punches left the queue, so the cached list must catch up
        if report.synced_punches:
            self._remember(report.synced_punches)
            self.refresh_punches()
            self.refresh_weekly_hours()

    def _status_from(self, known: List[Punch], now: datetime) -> ClockStatus:
        punches = list(known)
        try:
            punches.extend(self.queue.list_pending())
        except StorageFault as e:
            logging.error(f"Pending queue unreadable, status from known punches only: {e}")
        return reconcile_status(punches, now)

    def _remember(self, recorded: List[Punch]) -> None:
        """Merge accepted punches into the cached list, newest first."""
        ids = {p.id for p in recorded}
        merged = list(recorded) + [p for p in self.cache.punches if p.id not in ids]
        merged.sort(key=lambda p: p.timestamp, reverse=True)
        self._write_cache(self.cache.store_punches, merged)

    def _current_location(self) -> Tuple[float, float]:
        try:
            position = self.locate()
        except Exception as e:
            raise CaptureFault(f"Unable to retrieve your location: {e}") from e
        if position is None:
            raise CaptureFault("Unable to retrieve your location")
        return position

    def _write_cache(self, store, value) -> None:
        try:
            store(value)
        except StorageFault as e:
            logging.error(f"Could not update the device cache: {e}")


def build_tracker(
    locate: Locator,
    employee_id: Optional[int] = None,
    storage_dir: Optional[str] = None,
    api_url: Optional[str] = None,
    timeout: Optional[float] = None,
    background: bool = True,
    session=None,
) -> TimeTracker:
    """Wire a TimeTracker from configuration, loading the device cache.

    The punch list is fetched once up front; unreachable servers leave the
    cached list in place.
    """
    storage_dir = storage_dir or config.STORAGE_DIR
    remote = RemotePunchStore(
        base_url=api_url or config.API_URL,
        timeout=timeout if timeout is not None else config.SUBMIT_TIMEOUT_SECONDS,
        session=session,
    )
    queue = LocalPendingQueue(storage_dir)
    cache = DeviceCache(storage_dir)
    cache.load()
    trigger = SyncTrigger(SyncEngine(queue, remote), background=background)
    tracker = TimeTracker(
        employee_id=employee_id if employee_id is not None else config.EMPLOYEE_ID,
        remote=remote,
        queue=queue,
        cache=cache,
        locate=locate,
        trigger=trigger,
    )
    tracker.refresh_punches()
    return tracker
