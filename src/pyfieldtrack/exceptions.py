"""Custom exception hierarchy for pyfieldtrack."""

from __future__ import annotations


class FieldTrackError(Exception):
    """Base exception for all pyfieldtrack errors."""


class FieldTrackConfigError(FieldTrackError):
    """Invalid or missing configuration."""


class SensorError(FieldTrackError):
    """A sensor read failed.

    Non-fatal for tracking: the scheduler surfaces it and keeps its timer armed.
    """

    #: W3C geolocation error code this class corresponds to.
    code: int = 0


class SensorPermissionDeniedError(SensorError):
    """Location access was denied."""

    code = 1


class SensorUnavailableError(SensorError):
    """No location provider, or the provider could not produce a fix."""

    code = 2


class SensorTimeoutError(SensorError):
    """The location provider did not answer within the sensor timeout."""

    code = 3


class FieldTrackNetworkError(FieldTrackError):
    """Transport-level failure (connection, timeout, 5xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class FieldTrackApiError(FieldTrackError):
    """The API answered with a non-success status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class FieldTrackValidationError(FieldTrackApiError):
    """A location update was rejected, either before sending or by the server.

    The point is dropped; callers should inform the operator.
    """


class FieldTrackNotFoundError(FieldTrackApiError):
    """The requested tracker, device or operation does not exist."""


class ReconciliationError(FieldTrackError):
    """The active operation could not be fetched.

    The resume reconciler logs this and treats it as "no active operation".
    """
