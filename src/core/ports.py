"""Ports (interfaces) used by the core pipelines.

Ports define the minimal contracts for the notification, history and update
adapters so that the core can be reused with different backends.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Protocol

from core.models import (
    ChannelMessage,
    EditedChannelMessage,
    EditedMessage,
    IncomingMessage,
    NewMessage,
    NotificationResult,
)


@dataclass(frozen=True)
class ResolvedChannel:
    """Addressing metadata for a channel: a title and an opaque peer handle."""

    channel_id: int
    title: str
    peer: Any


class NotifierPort(Protocol):
    """Registers one link with the subscription service."""

    async def notify(self, url: str) -> NotificationResult:
        ...


class HistoryPort(Protocol):
    """History operations required by the backfill pipeline."""

    async def resolve_channel(self, channel_id: int) -> ResolvedChannel:
        """Resolve directly; raise ResolutionError when that is not possible."""
        ...

    async def list_recent_conversations(self, limit: int) -> List[ResolvedChannel]:
        ...

    async def get_history(self, channel: ResolvedChannel, limit: int) -> List[IncomingMessage]:
        """Return up to ``limit`` messages, most recent first."""
        ...


class UpdateHandler(Protocol):
    """Capability set a live consumer offers to the update source."""

    async def on_new_message(self, event: NewMessage | ChannelMessage) -> None:
        ...

    async def on_edited_message(self, event: EditedMessage | EditedChannelMessage) -> None:
        ...
