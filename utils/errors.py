from typing import Optional


class PunchError(Exception):
    """Base class for punch capture, storage and transport failures."""


class CaptureFault(PunchError):
    """A precondition for creating a punch (e.g. a location fix) is missing."""


class DoublePunch(CaptureFault):
    def __init__(self, punch_type: str):
        super().__init__(f"Already punched {punch_type}")
        self.punch_type = punch_type


class TransportFault(PunchError):
    """The remote punch store could not be reached or failed to answer."""


class StorageFault(PunchError):
    """Device-local storage could not be read or written."""


class ServerRejection(PunchError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
