"""Telegram-to-core message mapping adapter.

This keeps Telethon-specific details out of the core pipeline: Telethon
messages become IncomingMessage values, and Telethon update events become
the core's closed set of MessageEvent kinds.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from telethon import events
from telethon.tl.custom import Message
from telethon.tl.types import PeerChannel, PeerChat, PeerUser

from core.models import (
    ChannelMessage,
    EditedChannelMessage,
    EditedMessage,
    IncomingMessage,
    MessageEvent,
    NewMessage,
    OriginPeer,
    PeerKind,
)
from core.ports import UpdateHandler

LOGGER = logging.getLogger(__name__)


def origin_from_peer(peer_id) -> OriginPeer:
    """Return the core origin for a Telethon peer."""

    if isinstance(peer_id, PeerChannel):
        return OriginPeer(PeerKind.CHANNEL, peer_id.channel_id)
    if isinstance(peer_id, PeerChat):
        return OriginPeer(PeerKind.CHAT, peer_id.chat_id)
    if isinstance(peer_id, PeerUser):
        return OriginPeer(PeerKind.USER, peer_id.user_id)
    return OriginPeer(PeerKind.UNKNOWN, 0)


def build_message(message: Message) -> IncomingMessage:
    """Build a core IncomingMessage from a Telethon Message."""

    # Service messages and media without a caption carry no text.
    text = getattr(message, "raw_text", None) or ""
    timestamp = getattr(message, "date", None) or datetime.now(timezone.utc)
    return IncomingMessage(
        text=text,
        origin=origin_from_peer(getattr(message, "peer_id", None)),
        timestamp=timestamp,
        message_id=message.id,
    )


def build_event(message: Message, edited: bool = False) -> MessageEvent:
    """Classify a Telethon message into one of the core update kinds."""

    incoming = build_message(message)
    is_channel = incoming.origin.kind is PeerKind.CHANNEL
    if edited:
        return EditedChannelMessage(incoming) if is_channel else EditedMessage(incoming)
    return ChannelMessage(incoming) if is_channel else NewMessage(incoming)


def wire_update_handler(client, handler: UpdateHandler) -> None:
    """Register the handler for new and edited messages, once, at startup."""

    @client.on(events.NewMessage())
    async def _on_new_message(event) -> None:
        try:
            await handler.on_new_message(build_event(event.message))
        except Exception:
            LOGGER.exception("Error while processing message")

    @client.on(events.MessageEdited())
    async def _on_edited_message(event) -> None:
        try:
            await handler.on_edited_message(build_event(event.message, edited=True))
        except Exception:
            LOGGER.exception("Error while processing edited message")
