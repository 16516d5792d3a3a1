import logging
import os
import threading
from typing import List, Optional

from pydantic import ValidationError

from models.schema import Punch
from utils.errors import StorageFault
from utils.storage import read_document, write_document

CACHE_FILE = "cached_state.json"


class DeviceCache:
    """Last-known punches and weekly hours, shown while the server is unreachable.

    Loaded explicitly on start and rewritten after every successful fetch.
    """

    def __init__(self, storage_dir: str):
        self.path = os.path.join(storage_dir, CACHE_FILE)
        self._lock = threading.Lock()
        self.punches: List[Punch] = []
        self.weekly_hours: Optional[str] = None

    def load(self) -> None:
        """Read the cache file. An unreadable file is left on disk and the cache starts empty."""
        try:
            document = read_document(self.path)
            punches = [Punch.model_validate(item) for item in document.get("punches", [])]
        except (StorageFault, ValidationError) as e:
            logging.error(f"Device cache unreadable, starting empty: {e}")
            return
        with self._lock:
            self.punches = punches
            self.weekly_hours = document.get("weeklyHours")
        logging.info(f"Loaded {len(punches)} cached punches from {self.path}")

    def store_punches(self, punches: List[Punch]) -> None:
        with self._lock:
            self.punches = list(punches)
            self._save()

    def store_weekly_hours(self, total_hours: str) -> None:
        with self._lock:
            self.weekly_hours = total_hours
            self._save()

    def _save(self) -> None:
        write_document(
            self.path,
            {
                "punches": [p.model_dump(mode="json", by_alias=True) for p in self.punches],
                "weeklyHours": self.weekly_hours,
            },
        )
