"""Error taxonomy for the telemetry engine."""

from __future__ import annotations


class TelemetryError(Exception):
    """Base class for every error raised by the engine."""


class LinkError(TelemetryError):
    """Link-level failure; the link is idle until ``start()`` is called again."""


class RadioUnavailable(LinkError):
    pass


class ConnectionFailed(LinkError):
    pass


class SubscriptionFailed(LinkError):
    pass


class DecodeError(TelemetryError, ValueError):
    """A notification payload could not be turned into a draft reading."""


class LocationUnavailable(TelemetryError):
    pass


class ReadingDiscarded(TelemetryError):
    """The reading had no usable location and was not forwarded to the store."""


class PersistError(TelemetryError):
    """The remote tier rejected or failed a read or write."""


class QueryError(TelemetryError, ValueError):
    """Invalid arguments were passed to a derived view."""
