"""
Errors raised while talking to a Dahua access-control device.

The client raises these internally; the public entry points
(``DahuaDeviceClient.execute`` and the operations) turn every one of them
into an ``OperationResult`` so callers never see them uncaught.
"""


class DahuaError(Exception):
    """Base class for device communication errors."""

    status = 500

    def __init__(self, message, status=None, body=b""):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status
        self.body = body


class ConfigurationError(DahuaError):
    """Host, username or password missing; raised before any network I/O."""

    status = 400


class ChallengeParseFailure(DahuaError):
    """The device answered 401 without a usable Digest challenge."""

    status = 401


class NetworkFailure(DahuaError):
    """Transport-level failure: timeout, refused connection, DNS error."""

    def __init__(self, message, cause=None):
        super().__init__(message)
        self.cause = cause


class DeviceError(DahuaError):
    """The final HTTP response was not 2xx."""
