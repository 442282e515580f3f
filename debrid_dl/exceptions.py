"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class DebridError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(DebridError):
    """Raised for issues related to configuration loading or validation."""


class DirectoryNotWritableError(DebridError):
    """Raised when a batch targets a save directory this process cannot write to."""

    def __init__(self, directory: str, reason: str = "not writable"):
        super().__init__(f"Save directory '{directory}' is {reason}.")
        self.directory = directory


class InvalidMessageError(DebridError):
    """Raised when a client message cannot be parsed or has an unknown shape."""


class UnrestrictError(DebridError):
    """Base class for failures while unrestricting a link."""

    def __init__(self, url: str, message: str):
        super().__init__(message)
        self.url = url


class UnrestrictTimeoutError(UnrestrictError):
    """Raised when the unrestrict request does not complete in time."""


class UnrestrictTransportError(UnrestrictError):
    """Raised when the unrestrict service cannot be reached."""


class UnrestrictStatusError(UnrestrictError):
    """Raised when the unrestrict service answers with a non-2xx status."""

    def __init__(self, url: str, status: int, message: str):
        super().__init__(url, message)
        self.status = status


class MalformedResponseError(UnrestrictError):
    """Raised when the unrestrict response body has no usable download URL."""


class DownloadError(DebridError):
    """Base class for failures while streaming a file to disk."""

    def __init__(self, url: str, message: str):
        super().__init__(message)
        self.url = url


class DownloadStatusError(DownloadError):
    """Raised when the download source answers with a non-200 status."""

    def __init__(self, url: str, status: int, message: str):
        super().__init__(url, message)
        self.status = status


class DownloadTimeoutError(DownloadError):
    """Raised when the download stalls past the configured timeout."""


class DownloadTransportError(DownloadError):
    """Raised when the connection fails mid-stream."""


class DownloadWriteError(DownloadError):
    """Raised when the destination file cannot be written."""


class PostProcessError(DebridError):
    """Raised when the configured post-processing step fails."""
