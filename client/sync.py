import logging
import threading
from typing import Optional

from models.schema import SyncReport, SyncState, SyncStatus
from utils.errors import ServerRejection, StorageFault, TransportFault


class SyncEngine:
    """Drains the pending queue into the remote store, one pass per call.

    Delivery is at-least-once: a punch whose acknowledgment is lost before it
    leaves the queue is submitted again on the next pass.
    """

    def __init__(self, queue, remote):
        self.queue = queue
        self.remote = remote
        self.state = SyncState.IDLE
        self._sync_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self.state == SyncState.RUNNING

    def run(self) -> Optional[SyncReport]:
        """Run a single pass, or return None if one is already in flight."""
        if not self._sync_lock.acquire(blocking=False):
            logging.info("Sync pass already running, skipping")
            return None
        try:
            self.state = SyncState.RUNNING
            return self._drain()
        finally:
            self.state = SyncState.IDLE
            self._sync_lock.release()

    def _drain(self) -> SyncReport:
        report = SyncReport()
        try:
            snapshot = self.queue.list_pending()
        except StorageFault as e:
            logging.error(f"Sync aborted, pending queue unreadable: {e}")
            report.aborted = True
            return report

        for punch in snapshot:
            report.attempted += 1
            try:
                server_id = self.remote.submit(punch)
            except TransportFault as e:
                logging.warning(f"Failed to sync punch {punch.id}: {e}")
                report.failed += 1
                continue
            except ServerRejection as e:
                logging.error(f"Punch {punch.id} rejected by server, dropping it: {e}")
                self._discard(punch.id)
                report.rejected += 1
                continue

            report.synced_punches.append(
                punch.model_copy(update={"id": server_id, "sync_status": SyncStatus.SYNCED})
            )
            if self._discard(punch.id):
                report.synced += 1
            else:
                report.failed += 1

        logging.info(
            f"Sync pass done: {report.synced} synced, {report.failed} failed, "
            f"{report.rejected} rejected of {report.attempted}"
        )
        return report

    def _discard(self, punch_id: int) -> bool:
        try:
            self.queue.remove(punch_id)
        except StorageFault as e:
            logging.error(f"Could not remove punch {punch_id} from the pending queue: {e}")
            return False
        return True
