import logging
import threading
from typing import Callable, Optional

from models.schema import SyncReport
from utils.errors import StorageFault


class SyncTrigger:
    """Entry points that start a sync pass: reconnect signal, manual request.

    Connectivity detection lives outside; whoever detects it subscribes
    ``on_reconnect``. All entry points share the engine's single-flight guard.
    ``sync_requested`` is set by a punch stored offline and cleared by a pass
    that drained everything; a reconnect with no request and an empty queue
    does not start a pass.
    """

    def __init__(self, engine, background: bool = False, on_complete: Optional[Callable[[SyncReport], None]] = None):
        self.engine = engine
        self.background = background
        self.on_complete = on_complete
        self.sync_requested = False
        self._thread: Optional[threading.Thread] = None

    def schedule(self) -> None:
        self.sync_requested = True
        logging.info("Sync requested, waiting for connectivity")

    def on_reconnect(self) -> Optional[SyncReport]:
        if not self.sync_requested and not self._has_pending():
            logging.debug("Connectivity resumed, nothing to sync")
            return None
        logging.info("Connectivity resumed, starting sync")
        return self._start()

    def run_now(self) -> Optional[SyncReport]:
        return self._start()

    def wait(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _has_pending(self) -> bool:
        try:
            return len(self.engine.queue) > 0
        except StorageFault:
            # let the pass report the unreadable queue
            return True

    def _start(self) -> Optional[SyncReport]:
        if not self.background:
            return self._run()

        def background_sync():
            try:
                self._run()
            except Exception as e:
                logging.error(f"Background sync error: {e}")

        self._thread = threading.Thread(target=background_sync, daemon=True)
        self._thread.start()
        return None

    def _run(self) -> Optional[SyncReport]:
        report = self.engine.run()
        if report is not None and not report.aborted and report.failed == 0:
            self.sync_requested = False
        if report is not None and self.on_complete is not None:
            self.on_complete(report)
        return report
