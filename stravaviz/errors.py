"""Exception hierarchy shared by the sync, storage, codec and import layers."""


class StravaVizError(Exception):
    """Base class for all pipeline errors."""


class TransportError(StravaVizError):
    """The remote API answered with a non-success response (or not at all)."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class AuthError(TransportError):
    """The bearer token was rejected; the caller should re-authenticate."""


class MalformedEncodingError(StravaVizError, ValueError):
    """An encoded polyline ended mid-value or held characters outside the alphabet."""


class StorageCorruptionError(StravaVizError):
    """The persisted archive could not be parsed."""


class ImportParseError(StravaVizError):
    """An import document is not a JSON array of activity objects."""
