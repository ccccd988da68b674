"""
Error taxonomy for one ingestion attempt.

Every PipelineError means "this attempt failed, try again"; the
orchestrator does not tell them apart. RetriesExhaustedError is the only
error the scheduler ever sees.
"""


class PipelineError(Exception):
    """Base class for anything that fails a single attempt."""


class FetchError(PipelineError):
    """Network/transport failure talking to SIATA, or a non-2xx response."""


class DecodeError(PipelineError):
    """Upstream body or record is not JSON in the expected shape."""


class ParseError(PipelineError):
    """A station's numeric field could not be parsed."""

    def __init__(self, field: str, raw: str):
        self.field = field
        self.raw = raw
        super().__init__(f"could not parse {field} from {raw!r}")


class PublishError(PipelineError):
    """Storage write failed."""

    def __init__(self, key: str, reason: str = ""):
        self.key = key
        msg = f"upload of {key} failed"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class ReportError(PipelineError):
    """Metrics submission failed for the batch."""


class RetriesExhaustedError(Exception):
    """Terminal failure after every attempt failed."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"could not get data after {attempts} attempts")
