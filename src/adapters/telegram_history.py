"""Telethon history adapter.

Implements the core HistoryPort on top of a connected TelegramClient.
"""

from __future__ import annotations

import logging
from typing import Any, List

from telethon import errors
from telethon.tl.types import PeerChannel

from adapters.telegram_mapper import build_message
from core.errors import HistoryFetchError, ResolutionError
from core.models import IncomingMessage
from core.ports import ResolvedChannel

LOGGER = logging.getLogger(__name__)


def _entity_title(entity: Any) -> str:
    title = getattr(entity, "title", None)
    if title:
        return str(title)
    entity_id = getattr(entity, "id", None)
    return str(entity_id or "unknown")


class TelethonHistorySource:
    """HistoryPort backed by Telethon's entity cache, dialogs and history."""

    def __init__(self, client) -> None:
        self._client = client

    async def resolve_channel(self, channel_id: int) -> ResolvedChannel:
        # get_entity only succeeds when the session already knows the
        # channel's access hash; otherwise the caller falls back to dialogs.
        try:
            entity = await self._client.get_entity(PeerChannel(channel_id))
        except (ValueError, errors.RPCError) as exc:
            raise ResolutionError(channel_id, str(exc)) from exc
        return ResolvedChannel(channel_id=channel_id, title=_entity_title(entity), peer=entity)

    async def list_recent_conversations(self, limit: int) -> List[ResolvedChannel]:
        conversations: List[ResolvedChannel] = []
        async for dialog in self._client.iter_dialogs(limit=limit):
            # Only channels and supergroups can be addressed by channel id.
            if not dialog.is_channel:
                continue
            entity = dialog.entity
            conversations.append(
                ResolvedChannel(channel_id=entity.id, title=_entity_title(entity), peer=entity)
            )
        return conversations

    async def get_history(self, channel: ResolvedChannel, limit: int) -> List[IncomingMessage]:
        try:
            messages = await self._client.get_messages(channel.peer, limit=limit)
        except errors.RPCError as exc:
            raise HistoryFetchError(f"failed to fetch history of {channel.channel_id}: {exc}") from exc
        # Telethon returns the newest message first, which is the order the
        # port promises.
        return [build_message(message) for message in messages]
