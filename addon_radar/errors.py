"""Error taxonomy for the ingestion and scoring pipeline."""


class AddonRadarError(Exception):
    """Base class for pipeline errors."""


class UpstreamError(AddonRadarError):
    """The CurseForge API could not deliver a usable response."""


class TransientError(UpstreamError):
    """Retryable failure: network error, timeout, 5xx or 429."""

    def __init__(self, message: str, status_code: int | None = None, retry_after: float | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after


class FatalError(UpstreamError):
    """Non-retryable failure: rejected request, malformed or oversized response."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class CircuitOpenError(UpstreamError):
    """Raised without touching the network while the circuit breaker is open."""


class WriteConsistencyError(AddonRadarError):
    """The atomic addon + snapshot write failed and was rolled back."""

    def __init__(self, addon_id: int, message: str):
        super().__init__(f"addon {addon_id}: {message}")
        self.addon_id = addon_id


class ScoringSkippedError(AddonRadarError):
    """An addon's aggregate stats were unusable for scoring."""

    def __init__(self, addon_id: int, message: str):
        super().__init__(f"addon {addon_id}: {message}")
        self.addon_id = addon_id
