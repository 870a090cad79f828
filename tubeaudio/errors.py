"""Error taxonomy for the conversion service.

Not-found is never an exception here: lookups return None and the
HTTP layer turns that into a 404.
"""


class ConverterError(Exception):
    """Base class for all service errors."""


class ValidationError(ConverterError):
    """Bad reference syntax, unsupported source, or batch size out of range.

    Raised before any state is mutated.
    """


class SourceUnavailable(ConverterError):
    """Metadata or audio stream could not be fetched for a reference."""


class TranscodeFailure(ConverterError):
    """The transcoder exited abnormally or produced no output."""


class StorageFault(ConverterError):
    """The job store or artifact substrate is unreachable."""


class InvalidTransition(ConverterError):
    """A status update would move a job backwards or out of a terminal state."""

    def __init__(self, job_id: int, current: str, requested: str):
        self.job_id = job_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Job {job_id}: cannot move from '{current}' to '{requested}'"
        )
