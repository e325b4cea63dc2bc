from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

from core.backfill import HISTORY_PAGE_SIZE, RECENT_CONVERSATIONS_LIMIT, HistoryBackfill
from core.config import FilterConfig
from core.errors import HistoryFetchError, ResolutionError
from core.models import (
    IncomingMessage,
    NotificationOutcome,
    NotificationResult,
    OriginPeer,
    PeerKind,
)
from core.ports import ResolvedChannel
from core.processor import MessageProcessor

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeNotifier:
    def __init__(self) -> None:
        self.sent: list[str] = []

    async def notify(self, url: str) -> NotificationResult:
        self.sent.append(url)
        return NotificationResult(NotificationOutcome.CREATED, "ok", url)


class FakeHistory:
    def __init__(
        self,
        direct: "dict[int, str] | None" = None,
        dialogs: "dict[int, str] | None" = None,
        history: "dict[int, list[IncomingMessage]] | None" = None,
        broken_history: "set[int] | None" = None,
    ) -> None:
        self._direct = direct or {}
        self._dialogs = dialogs or {}
        self._history = history or {}
        self._broken_history = broken_history or set()
        self.dialog_limits: list[int] = []
        self.history_limits: list[int] = []

    async def resolve_channel(self, channel_id: int) -> ResolvedChannel:
        if channel_id not in self._direct:
            raise ResolutionError(channel_id, "access hash unknown")
        return ResolvedChannel(channel_id, self._direct[channel_id], peer=f"direct:{channel_id}")

    async def list_recent_conversations(self, limit: int) -> list[ResolvedChannel]:
        self.dialog_limits.append(limit)
        return [ResolvedChannel(cid, title, peer=f"dialog:{cid}") for cid, title in self._dialogs.items()]

    async def get_history(self, channel: ResolvedChannel, limit: int) -> list[IncomingMessage]:
        self.history_limits.append(limit)
        if channel.channel_id in self._broken_history:
            raise HistoryFetchError("flood wait")
        return self._history.get(channel.channel_id, [])


def _message(channel_id: int, message_id: int, text: str) -> IncomingMessage:
    return IncomingMessage(
        text=text,
        origin=OriginPeer(PeerKind.CHANNEL, channel_id),
        timestamp=BASE_TIME + timedelta(minutes=message_id),
        message_id=message_id,
    )


FILTERS = FilterConfig(
    allowed_channels=frozenset({1, 2, 3}),
    keywords=("sub",),
    content_filter=("订阅",),
)


def _newest_first(channel_id: int) -> list[IncomingMessage]:
    return [
        _message(channel_id, 3, "sub 订阅 https://third.example.com"),
        _message(channel_id, 2, "sub 订阅 https://second.example.com"),
        _message(channel_id, 1, "sub 订阅 https://first.example.com"),
    ]


def test_replays_history_oldest_to_newest() -> None:
    notifier = FakeNotifier()
    history = FakeHistory(direct={1: "One"}, history={1: _newest_first(1)})
    backfill = HistoryBackfill(history, MessageProcessor(FILTERS, notifier))

    report = asyncio.run(backfill.backfill_channel(1))

    assert notifier.sent == [
        "https://first.example.com",
        "https://second.example.com",
        "https://third.example.com",
    ]
    assert report.title == "One"
    assert report.messages_checked == 3
    assert report.messages_with_links == 3
    assert history.history_limits == [HISTORY_PAGE_SIZE]


def test_falls_back_to_recent_conversations() -> None:
    notifier = FakeNotifier()
    history = FakeHistory(dialogs={5: "Other", 2: "Two"}, history={2: _newest_first(2)})
    backfill = HistoryBackfill(history, MessageProcessor(FILTERS, notifier))

    channel = asyncio.run(backfill.resolve(2))

    assert channel.title == "Two"
    assert channel.peer == "dialog:2"
    assert history.dialog_limits == [RECENT_CONVERSATIONS_LIMIT]


def test_direct_resolution_skips_dialog_scan() -> None:
    history = FakeHistory(direct={1: "One"}, dialogs={1: "One"})
    backfill = HistoryBackfill(history, MessageProcessor(FILTERS, FakeNotifier()))

    channel = asyncio.run(backfill.resolve(1))

    assert channel.peer == "direct:1"
    assert history.dialog_limits == []


def test_unresolvable_channel_raises_resolution_error() -> None:
    backfill = HistoryBackfill(FakeHistory(dialogs={5: "Other"}), MessageProcessor(FILTERS, FakeNotifier()))

    try:
        asyncio.run(backfill.resolve(2))
    except ResolutionError as exc:
        assert exc.channel_id == 2
    else:
        raise AssertionError("expected ResolutionError")


def test_failed_channels_are_reported_and_skipped() -> None:
    notifier = FakeNotifier()
    history = FakeHistory(
        direct={1: "One", 3: "Three"},
        history={1: _newest_first(1)[:1], 3: _newest_first(3)[:1]},
        broken_history={3},
    )
    backfill = HistoryBackfill(history, MessageProcessor(FILTERS, notifier))

    report = asyncio.run(backfill.backfill_channels([2, 1, 3]))

    assert [channel.channel_id for channel in report.channels] == [1]
    assert set(report.errors) == {2, 3}
    assert "flood wait" in report.errors[3]
    assert notifier.sent == ["https://third.example.com"]
    assert len(report.results) == 1


def test_backfill_applies_the_live_filter() -> None:
    notifier = FakeNotifier()
    messages = [
        _message(1, 4, ""),
        _message(1, 3, "sub without term https://skipped.example.com"),
        _message(1, 2, "sub 订阅 but no link"),
        _message(1, 1, "sub 订阅 https://kept.example.com"),
    ]
    backfill = HistoryBackfill(FakeHistory(direct={1: "One"}, history={1: messages}), MessageProcessor(FILTERS, notifier))

    report = asyncio.run(backfill.backfill_channel(1))

    assert notifier.sent == ["https://kept.example.com"]
    assert report.messages_checked == 3
    assert report.messages_with_links == 1
