"""Unit tests for xssgate/audit/models.py — LogEntry and log text helpers."""

from __future__ import annotations

import dataclasses

import pytest

from xssgate.audit.models import LogEntry, format_attack_log, truncate_log_text
from xssgate.constants import LOG_TRUNCATION_MARKER, MAX_LOG_ENTRY_CHARS
from xssgate.utils.ulid import LOG_KEY_PREFIX


class TestFormatAttackLog:

    def test_canonical_format(self) -> None:
        text = format_attack_log("/search", "q", "<script>alert(1)</script>")
        assert text == "Path:/search Param:q Value:<script>alert(1)</script>"


class TestTruncation:

    def test_short_text_unchanged(self) -> None:
        assert truncate_log_text("short", 10) == "short"

    def test_exact_limit_unchanged(self) -> None:
        text = "x" * 10
        assert truncate_log_text(text, 10) == text

    def test_over_limit_truncated_with_marker(self) -> None:
        assert truncate_log_text("x" * 11, 10) == "x" * 10 + LOG_TRUNCATION_MARKER

    def test_default_limit(self) -> None:
        text = truncate_log_text("y" * (MAX_LOG_ENTRY_CHARS + 500))
        assert len(text) == MAX_LOG_ENTRY_CHARS + len(LOG_TRUNCATION_MARKER)


class TestLogEntry:

    def test_for_detection_builds_text(self) -> None:
        entry = LogEntry.for_detection("/search", "q", "<script>")
        assert entry.text == "Path:/search Param:q Value:<script>"

    def test_for_detection_truncates_huge_value(self) -> None:
        entry = LogEntry.for_detection("/search", "q", "<script>" + "a" * 5000, max_chars=100)
        assert entry.text.endswith(LOG_TRUNCATION_MARKER)
        assert len(entry.text) == 100 + len(LOG_TRUNCATION_MARKER)

    def test_event_ids_are_unique_ulids(self) -> None:
        a = LogEntry.for_detection("/", "q", "x")
        b = LogEntry.for_detection("/", "q", "x")
        assert a.event_id != b.event_id
        assert len(a.event_id) == 26

    def test_log_key(self) -> None:
        entry = LogEntry(event_id="01J0000000000000000000000A", text="t")
        assert entry.log_key == f"{LOG_KEY_PREFIX}01J0000000000000000000000A"

    def test_entry_is_frozen(self) -> None:
        entry = LogEntry(event_id="id", text="t")
        with pytest.raises(dataclasses.FrozenInstanceError):
            entry.text = "changed"  # type: ignore[misc]

    def test_entry_carries_only_staged_fields(self) -> None:
        """Everything on a LogEntry reaches the cache: the key and the text."""
        assert [f.name for f in dataclasses.fields(LogEntry)] == ["event_id", "text"]
