import logging
from typing import Any, List

import requests
from pydantic import ValidationError

from config import API_URL, SUBMIT_TIMEOUT_SECONDS
from models.schema import Punch, PunchCreated, SyncStatus, WeeklySummary
from utils.errors import ServerRejection, TransportFault


class RemotePunchStore:
    """HTTP client for the punch API.

    Network errors, timeouts, 5xx answers and unreadable bodies raise
    TransportFault; 4xx answers raise ServerRejection.

    ``timeout`` is handed to requests as is, so it bounds the connect and each
    socket read separately, not the whole exchange. A server trickling bytes
    can hold a call longer than ``timeout``; callers needing a hard deadline
    must enforce it themselves.
    """

    def __init__(self, base_url: str = API_URL, timeout: float = SUBMIT_TIMEOUT_SECONDS, session=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session if session is not None else requests.Session()

    def submit(self, punch: Punch) -> int:
        data = self._request("POST", "/punch", json=punch.to_submission())
        try:
            created = PunchCreated.model_validate(data)
        except ValidationError as e:
            raise TransportFault(f"Unexpected punch acknowledgment: {data!r}") from e
        logging.info(f"Punch {punch.id} accepted as id {created.id}")
        return created.id

    def list_by_employee(self, employee_id: int) -> List[Punch]:
        data = self._request("GET", f"/punches/{employee_id}")
        try:
            punches = [Punch.model_validate(item) for item in data]
        except (TypeError, ValidationError) as e:
            raise TransportFault(f"Unexpected punch list for employee_id: {employee_id}") from e
        return [p.model_copy(update={"sync_status": SyncStatus.SYNCED}) for p in punches]

    def weekly_summary(self, employee_id: int) -> str:
        data = self._request("GET", f"/weekly-summary/{employee_id}")
        try:
            return WeeklySummary.model_validate(data).total_hours
        except ValidationError as e:
            raise TransportFault(f"Unexpected weekly summary for employee_id: {employee_id}") from e

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise TransportFault(f"{method} {url} failed: {e}") from e

        if 400 <= response.status_code < 500:
            raise ServerRejection(_error_message(response), status_code=response.status_code)
        if response.status_code >= 300:
            raise TransportFault(f"{method} {url} returned {response.status_code}")
        try:
            return response.json()
        except ValueError as e:
            raise TransportFault(f"{method} {url} returned a non-JSON body") from e


def _error_message(response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP {response.status_code}"
