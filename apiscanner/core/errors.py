"""Scanner error taxonomy."""


class ScannerError(Exception):
    """Base class for every error raised by the scanner."""


class SpecUnavailable(ScannerError):
    """The OpenAPI document could not be fetched or parsed."""

    def __init__(self, location: str, reason: str):
        super().__init__(f"OpenAPI document unavailable ({location}): {reason}")
        self.location = location
        self.reason = reason


class ConfigurationError(ScannerError):
    """Missing base URL, credentials or other required setting."""


class AuthError(ScannerError):
    """No access token could be obtained."""
