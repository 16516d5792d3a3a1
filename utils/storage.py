import json
import logging
import os
import tempfile
from typing import Any, Callable, Optional

from utils.errors import StorageFault

DOCUMENT_VERSION = 1


def read_document(path: str, migrate: Optional[Callable[[Any], dict]] = None) -> dict:
    """Load a versioned JSON document; a missing file is an empty document.

    ``migrate`` upgrades a legacy unversioned payload. Anything unreadable or of
    an unknown version raises StorageFault and leaves the file as it is.
    """
    if not os.path.exists(path):
        return {"version": DOCUMENT_VERSION}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise StorageFault(f"Unable to read {path}: {e}") from e

    if not isinstance(data, dict):
        if migrate is None:
            raise StorageFault(f"Unexpected document layout in {path}")
        data = migrate(data)
        logging.info(f"Migrated legacy document {path} to version {DOCUMENT_VERSION}")

    version = data.get("version")
    if version != DOCUMENT_VERSION:
        raise StorageFault(f"Unsupported document version {version!r} in {path}")
    return data


def write_document(path: str, document: dict) -> None:
    """Replace the document atomically: the old file survives any failure."""
    directory = os.path.dirname(os.path.abspath(path))
    payload = dict(document, version=DOCUMENT_VERSION)
    try:
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
    except (OSError, TypeError, ValueError) as e:
        raise StorageFault(f"Unable to write {path}: {e}") from e
