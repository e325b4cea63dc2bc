"""Core configuration dataclasses.

We keep config parsing outside the core (see settings.py), but these frozen
dataclasses define the shape the core expects so the app layer builds one
immutable value at startup and passes it explicitly to each component.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class FilterConfig:
    """Inputs of the message filter and the link extractor."""

    allowed_channels: frozenset[int] = frozenset()
    whitelist_channels: frozenset[int] = frozenset()
    keywords: tuple[str, ...] = ()
    content_filter: tuple[str, ...] = ()
    link_blacklist: tuple[str, ...] = ()


@dataclass(frozen=True)
class SubscriptionConfig:
    """Where and how to reach the subscription-management service."""

    host: str
    api_key: str
    timeout: float = 10.0

    @property
    def endpoint(self) -> str:
        return f"http://{self.host}/api/config/add"


@dataclass(frozen=True)
class ProxyConfig:
    """Optional proxy for the Telegram connection."""

    proxy_type: str
    host: str
    port: int
    username: Optional[str] = None
    password: Optional[str] = None


@dataclass(frozen=True)
class AppConfig:
    """Everything the watcher needs, loaded once at startup."""

    filters: FilterConfig
    subscription: SubscriptionConfig
    fetch_history_enabled: bool = False
    proxy: Optional[ProxyConfig] = None
    logging: dict = field(default_factory=dict)
