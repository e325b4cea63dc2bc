"""Live message pipeline.

Pushed update events are consumed strictly one at a time, in the order the
transport delivers them. Each event is processed once; nothing is buffered
across events.
"""

from __future__ import annotations

import asyncio
import logging

from core.models import (
    ChannelMessage,
    EditedChannelMessage,
    EditedMessage,
    MessageEvent,
    NewMessage,
)
from core.monitor import MonitorState
from core.processor import MessageProcessor, ProcessedMessage

LOGGER = logging.getLogger(__name__)


class LiveMessagePipeline:
    """UpdateHandler that feeds live events through the MessageProcessor."""

    def __init__(self, processor: MessageProcessor, state: MonitorState) -> None:
        self._processor = processor
        self._state = state
        self._lock = asyncio.Lock()
        self._closed = False

    async def on_new_message(self, event: NewMessage | ChannelMessage) -> None:
        await self.dispatch(event)

    async def on_edited_message(self, event: EditedMessage | EditedChannelMessage) -> None:
        await self.dispatch(event)

    async def dispatch(self, event: MessageEvent) -> ProcessedMessage | None:
        """Process one event; returns None when the pipeline is closed."""

        if isinstance(event, (NewMessage, ChannelMessage)):
            kind = "new"
        elif isinstance(event, (EditedMessage, EditedChannelMessage)):
            kind = "edited"
        else:
            raise TypeError(f"Unsupported update event: {type(event).__name__}")

        async with self._lock:
            if self._closed:
                return None
            count = self._state.record_dispatch()
            message = event.message
            LOGGER.debug("Received %s message update #%s from %s", kind, count, message.origin.label)
            return await self._processor.process(message)

    async def close(self) -> None:
        """Stop accepting events and wait for the in-flight one to finish."""

        self._closed = True
        async with self._lock:
            pass
