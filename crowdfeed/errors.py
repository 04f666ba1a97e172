"""Exception types raised by the crowd feed."""
from __future__ import annotations


class CrowdFeedError(Exception):
    """Base class for all crowdfeed errors."""


class ConfigError(CrowdFeedError):
    """Invalid configuration value (environment or command line)."""


class TileFetchError(CrowdFeedError):
    """One or more tiles of a compose batch could not be fetched.

    The whole batch fails; no partial image is ever produced.
    """

    def __init__(self, message: str, url: str = ""):
        super().__init__(message)
        self.url = url


class TileFetchCancelled(TileFetchError):
    """The compose was superseded before it finished."""


class MessageDecodeError(CrowdFeedError):
    """A live feed message could not be decoded.

    Only raised inside the decoder; the live client logs and drops it.
    """
