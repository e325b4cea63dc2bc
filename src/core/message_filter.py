"""Message filter (core domain).

Stages run in a fixed order and short-circuit on the first rejection:

1) Channel allow-list (an empty list accepts every channel)
2) Keyword match, case-insensitive
3) Whitelisted channels pass without further checks
4) Content-filter terms, case-sensitive, for everyone else
"""

from __future__ import annotations

from typing import Optional

from core.config import FilterConfig
from core.models import FilterDecision

REJECT_CHANNEL = "channel not allowed"
REJECT_KEYWORD = "no keyword"
REJECT_CONTENT = "no content-filter term"
PASS_WHITELIST = "whitelisted channel"
PASS_CONTENT = "content-filter term matched"


def decide(text: str, origin_channel_id: Optional[int], config: FilterConfig) -> FilterDecision:
    """Return whether a message is relevant, with the stage that decided it."""

    if config.allowed_channels and origin_channel_id not in config.allowed_channels:
        return FilterDecision(False, REJECT_CHANNEL)

    lowered = text.lower()
    if not any(keyword.lower() in lowered for keyword in config.keywords):
        return FilterDecision(False, REJECT_KEYWORD)

    if origin_channel_id is not None and origin_channel_id in config.whitelist_channels:
        return FilterDecision(True, PASS_WHITELIST)

    # Content terms are matched verbatim; they are usually CJK phrases where
    # casing does not apply anyway.
    if not any(term in text for term in config.content_filter):
        return FilterDecision(False, REJECT_CONTENT)

    return FilterDecision(True, PASS_CONTENT)
