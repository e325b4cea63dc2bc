from __future__ import annotations

import logging

from app import _collect_redaction_values, _RedactingFormatter


def test_redacting_formatter_masks_secrets() -> None:
    formatter = _RedactingFormatter(["secret-key", ""], fmt="%(message)s")
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "key=%s", ("secret-key",), None)

    assert formatter.format(record) == "key=***"


def test_redaction_values_always_include_credentials(monkeypatch) -> None:
    monkeypatch.setenv("EXTRA_TOKEN", "extra-token-value")
    config = {"redact": {"enabled": True, "patterns": ["EXTRA_TOKEN", "UNSET_VAR_NAME"]}}

    values = _collect_redaction_values(config, ["api-key", None])

    assert values == ["extra-token-value", "api-key"]


def test_redaction_patterns_ignored_when_disabled(monkeypatch) -> None:
    monkeypatch.setenv("EXTRA_TOKEN", "extra-token-value")
    config = {"redact": {"enabled": False, "patterns": ["EXTRA_TOKEN"]}}

    assert _collect_redaction_values(config, ["api-key"]) == ["api-key"]
