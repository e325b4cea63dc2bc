"""Exceptions raised across the core and adapter boundary."""

from __future__ import annotations


class ConfigError(RuntimeError):
    """Required configuration or credentials are missing or invalid."""


class ResolutionError(LookupError):
    """A channel's addressing metadata could not be determined."""

    def __init__(self, channel_id: int, reason: str) -> None:
        super().__init__(f"channel {channel_id}: {reason}")
        self.channel_id = channel_id
        self.reason = reason


class HistoryFetchError(RuntimeError):
    """A channel resolved but its history page could not be fetched."""
