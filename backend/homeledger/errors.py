"""
Error types raised by the sync and categorization services.

Every HomeLedgerError carries the HTTP status the API should answer with and,
where the failing service had collected one, the step-by-step log trail.
"""
from typing import List, Optional


class HomeLedgerError(Exception):
    """Base class for engine errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str, logs: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.logs = list(logs) if logs else []


# Validation / configuration (400)

class RequestValidationFailed(HomeLedgerError):
    """Request body is missing a field or carries an invalid value."""

    status_code = 400


class InvalidCredential(HomeLedgerError):
    """Setup token is not base64 or does not decode to a claim URL."""

    status_code = 400


class NotConfigured(HomeLedgerError):
    """Sync attempted before a setup token was claimed."""

    status_code = 400


class ConfigCorrupt(HomeLedgerError):
    """Stored access URL cannot be decrypted or parsed."""

    status_code = 400


# Upstream / parse (500)

class UpstreamError(HomeLedgerError):
    """Aggregator answered with a non-success status."""

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        upstream_body: Optional[str] = None,
        logs: Optional[List[str]] = None,
    ):
        super().__init__(message, logs=logs)
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body


class UpstreamClaimFailed(UpstreamError):
    pass


class UpstreamSyncFailed(UpstreamError):
    pass


class UpstreamTimeout(UpstreamError):
    """Aggregator did not answer within the configured timeout, or was unreachable."""


class OracleUnavailable(HomeLedgerError):
    """Classification call failed, timed out, or is not configured."""


class ClassificationParseError(HomeLedgerError):
    """Oracle response is not the expected structured output."""


class PartialWriteWarning(Warning):
    """
    A single account or transaction could not be written during a sync.

    Not raised; collected on the sync result and counted in the response.
    """

    def __init__(self, natural_key: Optional[str], reason: str):
        super().__init__(f"{natural_key or '<missing id>'}: {reason}")
        self.natural_key = natural_key
        self.reason = reason
