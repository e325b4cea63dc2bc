"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union


class PeerKind(str, Enum):
    CHANNEL = "channel"
    CHAT = "chat"
    USER = "user"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class OriginPeer:
    """Where a message came from."""

    kind: PeerKind
    id: int

    @property
    def label(self) -> str:
        return f"{self.kind.value}:{self.id}"


@dataclass(frozen=True)
class IncomingMessage:
    """Minimal message payload used by the core processing pipeline."""

    text: str
    origin: OriginPeer
    timestamp: datetime
    message_id: int = 0

    @property
    def origin_channel_id(self) -> Optional[int]:
        # Only channel peers take part in allow-list and whitelist checks.
        if self.origin.kind is PeerKind.CHANNEL:
            return self.origin.id
        return None


@dataclass(frozen=True)
class FilterDecision:
    """Result of evaluating the message filter."""

    passed: bool
    reason: str


@dataclass(frozen=True)
class ExtractedLink:
    url: str


class NotificationOutcome(str, Enum):
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"
    REJECTED = "rejected"
    TRANSPORT_ERROR = "transport_error"


@dataclass(frozen=True)
class NotificationResult:
    """Outcome of one attempt to register a link with the subscription service."""

    outcome: NotificationOutcome
    detail: str
    url: str = ""

    @property
    def ok(self) -> bool:
        # A duplicate is the expected steady state, not a failure.
        return self.outcome in (NotificationOutcome.CREATED, NotificationOutcome.ALREADY_EXISTS)


# Update events delivered by the transport client. The union is closed: the
# live pipeline dispatches on exactly these four kinds.


@dataclass(frozen=True)
class NewMessage:
    message: IncomingMessage


@dataclass(frozen=True)
class EditedMessage:
    message: IncomingMessage


@dataclass(frozen=True)
class ChannelMessage:
    message: IncomingMessage


@dataclass(frozen=True)
class EditedChannelMessage:
    message: IncomingMessage


MessageEvent = Union[NewMessage, EditedMessage, ChannelMessage, EditedChannelMessage]
