# backend/app/core/errors.py
from typing import Optional


class ConfigurationError(Exception):
    """Raised when the upstream location is not configured."""


class UpstreamFailure(Exception):
    """Base class for every classified failure of an upstream call."""

    def __init__(
        self, message: str, endpoint: str = "", status_code: Optional[int] = None
    ):
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code


class Unauthorized(UpstreamFailure):
    """Upstream rejected the credentials (401/403). Not worth retrying."""


class UpstreamError(UpstreamFailure):
    """Non-2xx response or unreadable body. The caller may retry."""


class UpstreamTimeout(UpstreamFailure):
    """The call exceeded its timeout budget and was cancelled."""
