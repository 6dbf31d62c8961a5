"""Exception taxonomy shared by the relay components."""
from __future__ import annotations


class RelayError(Exception):
    """Base class for every error raised by SnapRelay."""


class ConfigError(RelayError):
    """Configuration is malformed or a mandatory credential is missing."""


class UpstreamError(RelayError):
    """An external provider answered with a non-2xx status or an unusable body."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class FetchError(RelayError):
    """An image could not be downloaded."""


class ValidationError(RelayError):
    """Caller input was rejected before any provider was contacted."""


class UnsupportedProvider(ValidationError):
    """A provider code outside the known set was requested."""

    def __init__(self, code: object):
        super().__init__(f"Unsupported model {code!r}. Use 'g', 'c' or 'd'.")
        self.code = code


class InternalError(RelayError):
    """Unexpected failure inside the dispatch path."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.detail = detail
