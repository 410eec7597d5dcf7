"""Error taxonomy shared by the pipeline, the poller and the adapters."""

from enum import Enum


class ClipcastError(Exception):
    pass


class ValidationError(ClipcastError, ValueError):
    """Malformed segment, window or configuration parameters."""
    pass


class ExternalCallError(ClipcastError):
    """An encoder or API call failed."""
    pass


class EncodeError(ExternalCallError):
    pass


class SourceErrorKind(str, Enum):
    QUOTA_EXCEEDED = "quota_exceeded"
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"


class SourceError(ExternalCallError):
    """A source lookup failure, already classified by the adapter."""

    kind = SourceErrorKind.TRANSIENT


class QuotaExceededError(SourceError):
    kind = SourceErrorKind.QUOTA_EXCEEDED


class SourceNotFoundError(SourceError):
    kind = SourceErrorKind.NOT_FOUND


class PublishError(ExternalCallError):
    pass


class PublishAuthExpired(PublishError):
    """The destination rejected the access token (HTTP 401)."""
    pass


class PipelineError(ClipcastError):
    """A pipeline run aborted at ``stage`` because of ``cause``."""

    def __init__(self, stage, cause: BaseException):
        self.stage = stage
        self.cause = cause
        super().__init__(f"pipeline failed at {stage.value}: {cause}")


class ScanError(ClipcastError):
    """One or more sources failed during a poll tick; the rest were still checked."""

    def __init__(self, failures: list[tuple[str, Exception]]):
        self.failures = failures
        ids = ", ".join(source_id for source_id, _ in failures)
        super().__init__(f"{len(failures)} source(s) failed: {ids}")


_KIND_TO_ERROR: dict[SourceErrorKind, type[SourceError]] = {
    SourceErrorKind.QUOTA_EXCEEDED: QuotaExceededError,
    SourceErrorKind.NOT_FOUND: SourceNotFoundError,
    SourceErrorKind.TRANSIENT: SourceError,
}


def source_error(kind: SourceErrorKind, message: str) -> SourceError:
    """Build the SourceError subclass matching *kind*."""
    return _KIND_TO_ERROR[kind](message)
