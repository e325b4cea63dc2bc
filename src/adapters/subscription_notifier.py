"""Subscription service notification adapter.

Registers extracted links with the subscription-management service via
``POST /api/config/add``. Every call is attempted exactly once; the caller
gets a NotificationResult instead of an exception.
"""

from __future__ import annotations

import asyncio
import http.client
import json
import logging
import urllib.error
import urllib.request
from typing import Union

from core.config import SubscriptionConfig
from core.models import NotificationOutcome, NotificationResult

LOGGER = logging.getLogger(__name__)

# The service reports duplicates through its free-text "error" field rather
# than a status code. These phrases match its current wording (Chinese and
# English); there is no stable error code to rely on.
ALREADY_EXISTS_MARKERS = ("已存在", "already exists")


def is_already_exists(error: str) -> bool:
    lowered = error.lower()
    return any(marker in lowered for marker in ALREADY_EXISTS_MARKERS)


def classify_response(status: int, body: Union[bytes, str], url: str = "") -> NotificationResult:
    """Map an HTTP status and body to a NotificationResult."""

    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")

    if not 200 <= status < 300:
        return NotificationResult(NotificationOutcome.TRANSPORT_ERROR, f"{status}: {body}", url)

    try:
        payload = json.loads(body)
    except ValueError as exc:
        return NotificationResult(NotificationOutcome.TRANSPORT_ERROR, f"invalid response body: {exc}", url)
    if not isinstance(payload, dict):
        return NotificationResult(NotificationOutcome.TRANSPORT_ERROR, f"unexpected response body: {body}", url)

    error = payload.get("error") or ""
    if error:
        if is_already_exists(str(error)):
            return NotificationResult(NotificationOutcome.ALREADY_EXISTS, str(error), url)
        return NotificationResult(NotificationOutcome.REJECTED, str(error), url)

    return NotificationResult(NotificationOutcome.CREATED, str(payload.get("message") or ""), url)


class SubscriptionNotifier:
    """Notifier adapter that posts links to the subscription service."""

    def __init__(self, config: SubscriptionConfig) -> None:
        self._config = config

    def _build_request(self, url: str) -> urllib.request.Request:
        data = json.dumps({"sub_url": url}).encode("utf-8")
        request = urllib.request.Request(self._config.endpoint, data=data, method="POST")
        request.add_header("Content-Type", "application/json")
        request.add_header("X-API-Key", self._config.api_key)
        return request

    def notify_sync(self, url: str) -> NotificationResult:
        """Blocking variant of notify.

        The urllib timeout applies per socket operation only; ``notify`` bounds
        the whole exchange.
        """

        request = self._build_request(url)
        try:
            with urllib.request.urlopen(request, timeout=self._config.timeout) as response:
                return classify_response(response.status, response.read(), url)
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace")
            return classify_response(e.code, body, url)
        except (urllib.error.URLError, http.client.HTTPException, OSError) as e:
            # URLError covers refused connections; socket timeouts surface as OSError.
            reason = getattr(e, "reason", e)
            return NotificationResult(NotificationOutcome.TRANSPORT_ERROR, f"request failed: {reason}", url)

    async def notify(self, url: str) -> NotificationResult:
        """Send the link without stalling the event loop's periodic monitors.

        The whole request, response body included, must finish within the
        configured timeout. A worker thread that outlives it is abandoned and
        ends on its own socket timeout.
        """

        LOGGER.debug("Posting %s to %s", url, self._config.endpoint)
        try:
            return await asyncio.wait_for(asyncio.to_thread(self.notify_sync, url), self._config.timeout)
        except asyncio.TimeoutError:
            return NotificationResult(
                NotificationOutcome.TRANSPORT_ERROR,
                f"request timed out after {self._config.timeout:g}s",
                url,
            )
