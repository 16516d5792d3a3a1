import logging
import os
import threading
import time
from typing import Any, List

from pydantic import ValidationError

from models.schema import Punch, SyncStatus
from utils.errors import StorageFault
from utils.storage import DOCUMENT_VERSION, read_document, write_document

QUEUE_FILE = "offline_punches.json"

_id_lock = threading.Lock()
_last_id = 0


def provisional_id() -> int:
    """Microseconds since the epoch, strictly increasing within the process."""
    global _last_id
    with _id_lock:
        _last_id = max(time.time_ns() // 1000, _last_id + 1)
        return _last_id


def _migrate_legacy(data: Any) -> dict:
    # the first offline queue was a bare list of punches
    if not isinstance(data, list):
        raise StorageFault("Unrecognized pending queue layout")
    return {"version": DOCUMENT_VERSION, "punches": data}


class LocalPendingQueue:
    """Durable, ordered holding area for punches not yet accepted by the server.

    Every mutation rewrites the whole document atomically under a lock, so an
    enqueue racing a remove is never lost and a failed write leaves the
    previously queued punches untouched.
    """

    def __init__(self, storage_dir: str):
        self.path = os.path.join(storage_dir, QUEUE_FILE)
        self._lock = threading.RLock()

    def _load(self) -> List[Punch]:
        document = read_document(self.path, migrate=_migrate_legacy)
        try:
            return [Punch.model_validate(item) for item in document.get("punches", [])]
        except ValidationError as e:
            raise StorageFault(f"Corrupt pending punch in {self.path}: {e}") from e

    def _save(self, punches: List[Punch]) -> None:
        write_document(
            self.path,
            {"punches": [p.model_dump(mode="json", by_alias=True) for p in punches]},
        )

    def enqueue(self, punch: Punch) -> Punch:
        if punch.id is None:
            punch = punch.model_copy(update={"id": provisional_id()})
        record = punch.model_copy(update={"sync_status": SyncStatus.PENDING})
        with self._lock:
            punches = self._load()
            if any(p.id == record.id for p in punches):
                logging.warning(f"Punch {record.id} is already queued")
                return record
            punches.append(record)
            self._save(punches)
        logging.info(f"Queued punch {record.id} for employee_id: {record.employee_id}")
        return record

    def list_pending(self) -> List[Punch]:
        with self._lock:
            return self._load()

    def remove(self, punch_id: int) -> bool:
        with self._lock:
            punches = self._load()
            remaining = [p for p in punches if p.id != punch_id]
            if len(remaining) == len(punches):
                return False
            self._save(remaining)
        return True

    def __len__(self) -> int:
        return len(self.list_pending())
