"""
Custom exceptions for osfetch.

Every failure that reaches the command line is an `OsfetchError`; the CLI prints
its message and exits non-zero. Nothing in the download pipeline retries
automatically, so `is_retryable` is informational only.
"""


class OsfetchError(Exception):
    """
    Base exception for all osfetch errors.

    All custom exceptions in osfetch inherit from this class so the CLI can
    catch application errors in one place.

    Attributes:
        device_type: Device type slug the failing command worked on, when known.
    """

    def __init__(self, message: str, details: str | None = None) -> None:
        """
        Initialize the exception.

        Args:
            message: The primary error message.
            details: Optional additional context about the error.
        """
        self.message = message
        self.details = details
        self.device_type: str | None = None
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(OsfetchError):
    """Exception raised when the configuration file cannot be read or is invalid."""

    pass


# =============================================================================
# Version Resolution Errors
# =============================================================================


class NoVersionsFoundError(OsfetchError):
    """
    Raised when the catalog has no OS versions for a device type.

    This is terminal: it signals an invalid or unsupported device type slug
    (or an empty ESR track) and retrying will not help.

    Attributes:
        device_type: The device type slug that was queried.
        esr: Whether the ESR partition was requested.
    """

    def __init__(self, message: str, device_type: str, esr: bool = False) -> None:
        super().__init__(message)
        self.device_type = device_type
        self.esr = esr


class PromptCancelledError(OsfetchError):
    """Raised when the user aborts an interactive selection."""

    def __init__(self, message: str = "Selection cancelled by user") -> None:
        super().__init__(message)


# =============================================================================
# API Errors
# =============================================================================


class ApiError(OsfetchError):
    """
    Exception raised for cloud API failures outside of the image download.

    Attributes:
        endpoint: The API endpoint that was accessed.
        status_code: The HTTP status code returned, when there was one.
    """

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        status_code: int | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.endpoint = endpoint
        self.status_code = status_code


class NotLoggedInError(ApiError):
    """Raised when a command needs an authenticated session and there is none."""

    pass


class DeviceNotFoundError(ApiError):
    """Raised when no device matches the given UUID."""

    pass


class FleetAccessError(ApiError):
    """Raised when the fleet a device belongs to is not accessible to the user."""

    pass


# =============================================================================
# Download Errors
# =============================================================================


class DownloadError(OsfetchError):
    """
    Base exception for OS image download failures.

    Attributes:
        url: The URL that was being downloaded when the error occurred.
        is_retryable: Whether a later attempt could plausibly succeed.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        is_retryable: bool = False,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.url = url
        self.is_retryable = is_retryable


class StreamOpenError(DownloadError):
    """
    Raised when the image stream cannot be opened or fails before it reports
    the resolved version (unknown version, HTTP error, connection refused).
    """

    pass


class TransferError(DownloadError):
    """Raised for network or local write failures once the transfer has started."""

    pass


class DecompressionError(DownloadError):
    """Raised when the payload cannot be decompressed or extracted."""

    pass
