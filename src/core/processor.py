"""Core message processing pipeline.

This module is integration-agnostic. It only relies on the notifier port,
so the live and backfill pipelines share exactly the same logic:

1) Filter decision (channel, keyword, whitelist, content filter)
2) Link extraction
3) One notification per link, each independent of its siblings
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

from core.config import FilterConfig
from core.links import extract_links
from core.message_filter import decide
from core.models import (
    ExtractedLink,
    FilterDecision,
    IncomingMessage,
    NotificationOutcome,
    NotificationResult,
)
from core.ports import NotifierPort

LOGGER = logging.getLogger(__name__)


@dataclass
class ProcessedMessage:
    """What happened to one message."""

    decision: FilterDecision
    links: List[ExtractedLink] = field(default_factory=list)
    results: List[NotificationResult] = field(default_factory=list)


def _log_result(result: NotificationResult) -> None:
    if result.outcome is NotificationOutcome.CREATED:
        LOGGER.info("Subscription added: %s", result.detail)
    elif result.outcome is NotificationOutcome.ALREADY_EXISTS:
        LOGGER.info("Subscription already exists, skipped: %s", result.url)
    elif result.outcome is NotificationOutcome.REJECTED:
        LOGGER.warning("Subscription rejected for %s: %s", result.url, result.detail)
    else:
        LOGGER.error("Subscription request failed for %s: %s", result.url, result.detail)


class MessageProcessor:
    """Orchestrates filtering, extraction and notifications."""

    def __init__(self, filters: FilterConfig, notifier: NotifierPort) -> None:
        self._filters = filters
        self._notifier = notifier

    async def process(self, message: IncomingMessage) -> ProcessedMessage:
        """Run one message through the pipeline."""

        decision = decide(message.text, message.origin_channel_id, self._filters)
        if not decision.passed:
            LOGGER.debug("Message %s from %s skipped: %s", message.message_id, message.origin.label, decision.reason)
            return ProcessedMessage(decision)

        links = extract_links(message.text, self._filters.link_blacklist)
        processed = ProcessedMessage(decision, links)
        timestamp = message.timestamp.astimezone().strftime("%Y-%m-%d %H:%M:%S")

        for link in links:
            LOGGER.info("[%s] %s | %s", timestamp, message.origin.label, link.url)
            try:
                result = await self._notifier.notify(link.url)
            except Exception as exc:
                # A broken notifier must not take the sibling links down with it.
                LOGGER.exception("Notifier raised for %s", link.url)
                result = NotificationResult(NotificationOutcome.TRANSPORT_ERROR, str(exc), link.url)
            _log_result(result)
            processed.results.append(result)

        return processed
