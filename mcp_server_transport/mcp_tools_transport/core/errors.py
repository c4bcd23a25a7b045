from __future__ import annotations

from typing import Optional


class TransportError(Exception):
    """Base class for failures talking to transport/location/weather providers."""

    def __init__(self, message: str, code: str = "TRANSPORT_ERROR", status_code: int = 500) -> None:
        super().__init__(message)
        self.code = code
        self.status_code = status_code


class APIError(TransportError):
    def __init__(self, message: str, code: str = "API_ERROR", status_code: Optional[int] = 502) -> None:
        super().__init__(message, code=code, status_code=status_code or 502)


class RateLimitError(APIError):
    def __init__(self, message: str = "Rate limit exceeded") -> None:
        super().__init__(message, code="RATE_LIMIT_ERROR", status_code=429)


class ConfigurationError(TransportError):
    def __init__(self, message: str) -> None:
        super().__init__(message, code="CONFIGURATION_ERROR", status_code=500)


class EmptyInputError(ValueError):
    """Raised when an aggregate (e.g. a bounding box) is requested over no points."""


class MalformedPolylineError(ValueError):
    """Raised when an encoded polyline is empty, truncated or contains invalid characters."""
