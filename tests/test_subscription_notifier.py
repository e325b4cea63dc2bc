from __future__ import annotations

import asyncio
import io
import json
import threading
import time
import urllib.error
import urllib.request
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

from adapters.subscription_notifier import SubscriptionNotifier, classify_response
from core.config import SubscriptionConfig
from core.models import NotificationOutcome


class FakeResponse:
    def __init__(self, status: int, body: bytes) -> None:
        self.status = status
        self._body = body

    def read(self) -> bytes:
        return self._body

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc_info) -> None:
        return None


def _notifier() -> SubscriptionNotifier:
    return SubscriptionNotifier(SubscriptionConfig(host="127.0.0.1:8080", api_key="secret-key"))


def test_created_on_message_field() -> None:
    result = classify_response(200, b'{"message":"created"}', "https://a.example.com")
    assert result.outcome is NotificationOutcome.CREATED
    assert result.detail == "created"
    assert result.url == "https://a.example.com"


def test_already_exists_english() -> None:
    result = classify_response(200, '{"error":"already exists"}')
    assert result.outcome is NotificationOutcome.ALREADY_EXISTS
    assert result.ok is True


def test_already_exists_english_any_case() -> None:
    result = classify_response(200, '{"error":"Subscription Already Exists"}')
    assert result.outcome is NotificationOutcome.ALREADY_EXISTS


def test_already_exists_localized() -> None:
    body = json.dumps({"error": "订阅已存在"}, ensure_ascii=False).encode("utf-8")
    result = classify_response(200, body)
    assert result.outcome is NotificationOutcome.ALREADY_EXISTS


def test_other_error_is_rejected() -> None:
    result = classify_response(200, '{"error":"invalid subscription url"}')
    assert result.outcome is NotificationOutcome.REJECTED
    assert result.detail == "invalid subscription url"
    assert result.ok is False


def test_empty_error_field_counts_as_created() -> None:
    result = classify_response(200, '{"message":"ok","error":""}')
    assert result.outcome is NotificationOutcome.CREATED


def test_server_error_is_transport_error_regardless_of_body() -> None:
    for body in ('{"message":"created"}', '{"error":"already exists"}', "oops"):
        result = classify_response(500, body)
        assert result.outcome is NotificationOutcome.TRANSPORT_ERROR
        assert result.detail.startswith("500")


def test_unparseable_success_body_is_transport_error() -> None:
    assert classify_response(200, "<html>").outcome is NotificationOutcome.TRANSPORT_ERROR
    assert classify_response(200, "[1, 2]").outcome is NotificationOutcome.TRANSPORT_ERROR


def test_notify_posts_json_with_api_key(monkeypatch) -> None:
    captured = {}

    def fake_urlopen(request, timeout):
        captured["request"] = request
        captured["timeout"] = timeout
        return FakeResponse(200, b'{"message":"added"}')

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)

    result = asyncio.run(_notifier().notify("https://sub.example.com/x"))

    request = captured["request"]
    assert result.outcome is NotificationOutcome.CREATED
    assert request.full_url == "http://127.0.0.1:8080/api/config/add"
    assert request.get_method() == "POST"
    assert request.get_header("X-api-key") == "secret-key"
    assert request.get_header("Content-type") == "application/json"
    assert json.loads(request.data) == {"sub_url": "https://sub.example.com/x"}
    assert captured["timeout"] == 10.0


def test_notify_http_error_status(monkeypatch) -> None:
    def fake_urlopen(request, timeout):
        raise urllib.error.HTTPError(request.full_url, 401, "Unauthorized", {}, io.BytesIO(b"bad key"))

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)

    result = _notifier().notify_sync("https://sub.example.com/x")
    assert result.outcome is NotificationOutcome.TRANSPORT_ERROR
    assert result.detail == "401: bad key"


def test_notify_network_failure(monkeypatch) -> None:
    def fake_urlopen(request, timeout):
        raise urllib.error.URLError("connection refused")

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)

    result = _notifier().notify_sync("https://sub.example.com/x")
    assert result.outcome is NotificationOutcome.TRANSPORT_ERROR
    assert "connection refused" in result.detail


def test_notify_timeout(monkeypatch) -> None:
    def fake_urlopen(request, timeout):
        raise TimeoutError("timed out")

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)

    result = _notifier().notify_sync("https://sub.example.com/x")
    assert result.outcome is NotificationOutcome.TRANSPORT_ERROR


class TricklingHandler(BaseHTTPRequestHandler):
    """Answers 200 but sends the body one byte at a time."""

    body = b'{"message":"created"}'
    delay = 0.1

    def do_POST(self) -> None:
        self.rfile.read(int(self.headers.get("Content-Length", 0)))
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(self.body)))
        self.end_headers()
        for index in range(len(self.body)):
            self.wfile.write(self.body[index : index + 1])
            self.wfile.flush()
            time.sleep(self.delay)

    def log_message(self, format, *args) -> None:
        return None


def test_notify_bounds_slow_body_by_total_timeout() -> None:
    server = ThreadingHTTPServer(("127.0.0.1", 0), TricklingHandler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host = f"127.0.0.1:{server.server_address[1]}"
    notifier = SubscriptionNotifier(SubscriptionConfig(host=host, api_key="k", timeout=0.5))

    async def scenario():
        started = time.monotonic()
        result = await notifier.notify("https://sub.example.com/x")
        return result, time.monotonic() - started

    try:
        result, elapsed = asyncio.run(scenario())
    finally:
        server.shutdown()
        server.server_close()

    # Each byte arrives well within the socket timeout, the body as a whole
    # takes about two seconds.
    assert elapsed < 1.5
    assert result.outcome is NotificationOutcome.TRANSPORT_ERROR
    assert "timed out" in result.detail
