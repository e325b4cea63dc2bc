"""Link extraction (core domain).

Extraction is intentionally permissive: a scheme prefix is the only validity
signal, so informally formatted links in chat posts are still picked up.
"""

from __future__ import annotations

from typing import Iterable, List

from core.models import ExtractedLink

SCHEMES = ("http://", "https://")
# Characters that end a link candidate.
BOUNDARY_CHARS = frozenset(" \t\r\n")
# Trailing punctuation trimmed from a candidate (ASCII and CJK).
TRAILING_PUNCTUATION = ",.;!?，。；！？、"
# Anything not longer than "https://" cannot carry a host.
MIN_LINK_LENGTH = 8


def _find_scheme(line: str, start: int) -> int:
    positions = [pos for pos in (line.find(scheme, start) for scheme in SCHEMES) if pos >= 0]
    return min(positions) if positions else -1


def _is_blacklisted(link: str, blacklist: Iterable[str]) -> bool:
    lowered = link.lower()
    return any(entry.lower() in lowered for entry in blacklist)


def extract_links(text: str, blacklist: Iterable[str] = ()) -> List[ExtractedLink]:
    """Return links found in ``text`` in first-occurrence order.

    Each line is scanned left to right: a candidate starts at the earliest
    scheme marker and runs to the next whitespace boundary. Candidates that
    are too short or hit the blacklist are dropped, but scanning continues
    after them.
    """

    blacklist = tuple(blacklist)
    links: List[ExtractedLink] = []

    for line in text.split("\n"):
        line = line.strip()
        cursor = 0
        while cursor < len(line):
            start = _find_scheme(line, cursor)
            if start < 0:
                break

            end = start
            while end < len(line) and line[end] not in BOUNDARY_CHARS:
                end += 1

            candidate = line[start:end].rstrip(TRAILING_PUNCTUATION)
            if len(candidate) > MIN_LINK_LENGTH and not _is_blacklisted(candidate, blacklist):
                links.append(ExtractedLink(candidate))

            cursor = end

    return links
