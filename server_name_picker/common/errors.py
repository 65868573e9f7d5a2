class PickerError(Exception):
    """Base class for failures the services know how to report."""

    status_code = 500
    title = "Internal Server Error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.title)
        self.message = message or self.title


class BadRequest(PickerError):
    status_code = 400
    title = "Bad Request"


class Unauthorized(PickerError):
    status_code = 401
    title = "Unauthorized"


class NoCapacity(PickerError):
    status_code = 409
    title = "No Capacity"


class UpstreamUnavailable(PickerError):
    """
    Transport failure or non-2xx answer from Proxmox / phpIPAM.

    Kept apart from InternalError for logging, but reported to HTTP callers
    the same way.
    """

    status_code = 500
    title = "Internal Server Error"


class UpstreamAuthFailed(UpstreamUnavailable):
    """The upstream rejected the service's own credentials."""


class InternalError(PickerError):
    status_code = 500
    title = "Internal Server Error"
