"""Telethon connection that reports dial attempts to the health monitor."""

from __future__ import annotations

import logging
from typing import Type

from telethon.network.connection import ConnectionTcpFull

from core.monitor import MonitorState

LOGGER = logging.getLogger(__name__)


def counting_connection(state: MonitorState) -> Type[ConnectionTcpFull]:
    """Return a connection class bound to ``state``.

    Telethon instantiates the connection class itself, so the monitor state
    is captured in a subclass instead of being passed to the constructor.
    """

    class CountingConnection(ConnectionTcpFull):
        async def connect(self, timeout=None, ssl=None):
            attempt = state.record_dial()
            LOGGER.info("[#%s] Connecting to %s:%s", attempt, self._ip, self._port)
            try:
                await super().connect(timeout=timeout, ssl=ssl)
            except Exception as exc:
                LOGGER.warning("[#%s] Connection failed: %s", attempt, exc)
                raise
            LOGGER.info("[#%s] Connected to %s:%s", attempt, self._ip, self._port)

    return CountingConnection
