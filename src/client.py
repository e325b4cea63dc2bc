"""Telegram client factory for subrelay.

We explicitly manage the client's lifecycle (connect/disconnect in app.py)
so it is obvious when the session is created and when it ends.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from dotenv import load_dotenv
from telethon import TelegramClient

from adapters.dial_counter import counting_connection
from core.config import ProxyConfig
from core.errors import ConfigError
from core.monitor import MonitorState


def _proxy_argument(proxy: Optional[ProxyConfig]) -> Optional[dict]:
    if proxy is None:
        return None
    # Telethon hands this dict to python-socks.
    return {
        "proxy_type": proxy.proxy_type,
        "addr": proxy.host,
        "port": proxy.port,
        "username": proxy.username,
        "password": proxy.password,
        "rdns": True,
    }


def build_client(
    state: Optional[MonitorState] = None,
    proxy: Optional[ProxyConfig] = None,
) -> TelegramClient:
    """Create a Telethon client from environment variables.

    We read API_ID/API_HASH via python-dotenv to keep secrets out of the repo.
    The session name defaults to "subrelay" to create a local .session file.
    """

    load_dotenv()

    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")
    session_name = os.getenv("SESSION_NAME", "subrelay")

    # Fail fast on missing credentials to avoid an ambiguous login prompt.
    if not api_id or not api_hash:
        raise ConfigError("Missing API_ID or API_HASH in environment")
    if not api_id.strip().isdigit():
        raise ConfigError("API_ID must be numeric")

    logging.getLogger(__name__).info("Initializing Telegram client (session: %s)", session_name)

    kwargs = {
        # Handlers must see updates one at a time, in delivery order.
        "sequential_updates": True,
        "proxy": _proxy_argument(proxy),
    }
    if state is not None:
        kwargs["connection"] = counting_connection(state)

    return TelegramClient(session_name, int(api_id), api_hash, **kwargs)
