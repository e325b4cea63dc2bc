"""Configuration loading for subrelay.

All user-editable settings (channels, filters, subscription service, logging)
live in a single JSON file for quick edits without touching Python. Secrets
may come from the environment (.env) instead.

The result is one immutable AppConfig, built once and passed explicitly.
"""

from __future__ import annotations

import json
import os
from typing import Any, Iterable, Optional

from dotenv import load_dotenv

from core.config import AppConfig, FilterConfig, ProxyConfig, SubscriptionConfig
from core.errors import ConfigError

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")

PROXY_TYPES = {"socks5", "socks4", "http"}


def _load_json_config(path: str) -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(path):
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except ValueError as exc:
        raise ConfigError(f"Config file is not valid JSON: {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a JSON object: {path}")
    return data


def _channel_ids(values: Optional[Iterable[Any]], field: str) -> frozenset[int]:
    ids: set[int] = set()
    for value in values or []:
        # bool is an int subclass; reject it so `true` is never channel 1.
        if isinstance(value, bool):
            raise ConfigError(f"{field} must contain channel ids, got {value!r}")
        try:
            ids.add(int(value))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"{field} must contain channel ids, got {value!r}") from exc
    return frozenset(ids)


def _terms(values: Optional[Iterable[Any]]) -> tuple[str, ...]:
    # Empty terms would match every message, so they are dropped.
    return tuple(str(value) for value in values or [] if str(value))


def _build_proxy(raw: dict) -> Optional[ProxyConfig]:
    if not raw or not raw.get("enabled", False):
        return None

    proxy_type = str(raw.get("type", "socks5")).lower()
    if proxy_type not in PROXY_TYPES:
        raise ConfigError(f"proxy.type must be one of {sorted(PROXY_TYPES)}")
    host = raw.get("host")
    if not host:
        raise ConfigError("proxy.host is required when the proxy is enabled")
    try:
        port = int(raw.get("port"))
    except (TypeError, ValueError) as exc:
        raise ConfigError("proxy.port must be a number") from exc

    return ProxyConfig(
        proxy_type=proxy_type,
        host=str(host),
        port=port,
        username=raw.get("username") or None,
        password=raw.get("password") or None,
    )


def load_settings(path: str = CONFIG_PATH) -> AppConfig:
    """Read config.json (and .env) into an AppConfig, failing fast on gaps."""

    load_dotenv()
    raw = _load_json_config(path)

    monitor = raw.get("monitor", {})
    filters_raw = raw.get("filters", {})
    filters = FilterConfig(
        allowed_channels=_channel_ids(monitor.get("channels"), "monitor.channels"),
        whitelist_channels=_channel_ids(monitor.get("whitelist_channels"), "monitor.whitelist_channels"),
        keywords=_terms(filters_raw.get("keywords")),
        content_filter=_terms(filters_raw.get("content_filter")),
        link_blacklist=_terms(filters_raw.get("link_blacklist")),
    )

    # The API key may live in .env to keep it out of config.json.
    subscription_raw = raw.get("subscription_api", {})
    host = subscription_raw.get("host")
    api_key = os.getenv("SUBSCRIPTION_API_KEY") or subscription_raw.get("api_key")
    if not host:
        raise ConfigError("subscription_api.host is required")
    if not api_key:
        raise ConfigError("subscription_api.api_key (or SUBSCRIPTION_API_KEY) is required")
    subscription = SubscriptionConfig(
        host=str(host),
        api_key=str(api_key),
        timeout=float(subscription_raw.get("timeout", 10.0)),
    )

    features = raw.get("features", {})
    return AppConfig(
        filters=filters,
        subscription=subscription,
        fetch_history_enabled=bool(features.get("fetch_history_enabled", False)),
        proxy=_build_proxy(raw.get("proxy", {})),
        logging=raw.get("logging", {}),
    )
