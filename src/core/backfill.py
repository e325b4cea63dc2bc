"""Historical backfill pipeline.

Replays the most recent page of a channel's history through the same
MessageProcessor used for live events. History arrives most-recent-first and
is replayed oldest-to-newest, so links are forwarded in the order they would
have arrived live.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from core.errors import ResolutionError
from core.models import NotificationResult
from core.ports import HistoryPort, ResolvedChannel
from core.processor import MessageProcessor

LOGGER = logging.getLogger(__name__)

HISTORY_PAGE_SIZE = 100
RECENT_CONVERSATIONS_LIMIT = 100


@dataclass
class ChannelBackfillReport:
    channel_id: int
    title: str = ""
    messages_checked: int = 0
    messages_with_links: int = 0
    results: List[NotificationResult] = field(default_factory=list)


@dataclass
class BackfillReport:
    """Per-channel outcomes of one backfill run."""

    channels: List[ChannelBackfillReport] = field(default_factory=list)
    errors: Dict[int, str] = field(default_factory=dict)

    @property
    def results(self) -> List[NotificationResult]:
        return [result for channel in self.channels for result in channel.results]


class HistoryBackfill:
    """Resolves channels and replays their recent history."""

    def __init__(self, history: HistoryPort, processor: MessageProcessor) -> None:
        self._history = history
        self._processor = processor

    async def resolve(self, channel_id: int) -> ResolvedChannel:
        """Resolve directly, falling back to the recently joined conversations."""

        try:
            return await self._history.resolve_channel(channel_id)
        except ResolutionError as exc:
            LOGGER.debug("Direct resolution of %s failed (%s), scanning dialogs", channel_id, exc.reason)

        conversations = await self._history.list_recent_conversations(RECENT_CONVERSATIONS_LIMIT)
        found: Optional[ResolvedChannel] = next(
            (item for item in conversations if item.channel_id == channel_id),
            None,
        )
        if found is None:
            raise ResolutionError(channel_id, "not found, make sure the account has joined it")
        return found

    async def backfill_channel(self, channel_id: int) -> ChannelBackfillReport:
        channel = await self.resolve(channel_id)
        LOGGER.info("Fetching history of %s (%s)", channel_id, channel.title)

        messages = await self._history.get_history(channel, HISTORY_PAGE_SIZE)
        LOGGER.info("Fetched %s history messages from %s", len(messages), channel_id)

        report = ChannelBackfillReport(channel_id=channel_id, title=channel.title)
        for message in reversed(messages):
            if not message.text:
                continue
            report.messages_checked += 1
            processed = await self._processor.process(message)
            if processed.links:
                report.messages_with_links += 1
                report.results.extend(processed.results)

        LOGGER.info("Channel %s: %s messages with links", channel_id, report.messages_with_links)
        return report

    async def backfill_channels(self, channel_ids: Iterable[int]) -> BackfillReport:
        """Backfill each channel; one channel's failure never stops the rest."""

        report = BackfillReport()
        for channel_id in channel_ids:
            try:
                report.channels.append(await self.backfill_channel(channel_id))
            except Exception as exc:
                LOGGER.warning("History backfill for channel %s failed: %s", channel_id, exc)
                report.errors[channel_id] = str(exc)
        return report
