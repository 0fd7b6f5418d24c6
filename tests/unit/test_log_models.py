from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from services.log_models import LogEntry, LogFilter, NewLogEntry, ServiceCheck, ServiceStatus, empty_counts


def _entry(**overrides) -> LogEntry:
    fields = {"level": "info", "message": "User signed in", "source": "auth"}
    fields.update(overrides)
    return NewLogEntry(**fields).stamped("abc123", 1_700_000_000_123, 4)


def test_new_entry_rejects_unknown_level() -> None:
    with pytest.raises(ValidationError):
        NewLogEntry(level="critical", message="m", source="s")


@pytest.mark.parametrize("field", ["message", "source"])
def test_new_entry_rejects_blank_text(field: str) -> None:
    fields = {"level": "info", "message": "m", "source": "s", field: "   "}
    with pytest.raises(ValidationError):
        NewLogEntry(**fields)


def test_blank_user_email_is_treated_as_absent() -> None:
    assert NewLogEntry(level="info", message="m", source="s", userEmail="").user_email is None


def test_stamped_entry_carries_time_and_score() -> None:
    entry = _entry()

    assert entry.id == "abc123"
    assert entry.timestamp == 1_700_000_000_123
    assert entry.sequence == 4
    assert entry.score == 1_700_000_000_123 * 1000 + 4
    assert entry.created_at == datetime.fromtimestamp(1_700_000_000.123, tz=timezone.utc)


def test_entries_are_immutable() -> None:
    entry = _entry()
    with pytest.raises(ValidationError):
        entry.message = "changed"


def test_payload_uses_camel_case_user_email() -> None:
    payload = _entry(user_email="ada@example.com").to_payload()

    assert payload["userEmail"] == "ada@example.com"
    assert "user_email" not in payload


def test_json_body_keeps_nested_details() -> None:
    details = {"request": {"path": "/admin", "attempts": [1, 2, 3]}, "ok": False, "ratio": 0.5}
    entry = _entry(details=details)

    restored = LogEntry.model_validate_json(entry.to_json())

    assert restored == entry
    assert restored.details == details


def test_filter_treats_blank_values_as_unset() -> None:
    log_filter = LogFilter(level="", source=" ", search="", time_range="")

    assert log_filter == LogFilter()
    assert not log_filter.needs_scan


def test_filter_rejects_unknown_time_range() -> None:
    with pytest.raises(ValidationError):
        LogFilter(time_range="1y")


def test_filter_matches_search_case_insensitively() -> None:
    entry = _entry(message="Backup FAILED: disk full")

    assert LogFilter(search="failed").matches(entry)
    assert not LogFilter(search="restore").matches(entry)
    assert LogFilter(level="info", source="auth").matches(entry)
    assert not LogFilter(source="backup").matches(entry)


def test_filter_time_range_cutoff() -> None:
    now = datetime(2024, 1, 2, tzinfo=timezone.utc)

    cutoff = LogFilter(time_range="24h").min_timestamp_ms(now)

    assert cutoff == int(datetime(2024, 1, 1, tzinfo=timezone.utc).timestamp() * 1000)
    assert LogFilter().min_timestamp_ms(now) is None


def test_empty_counts_lists_every_level() -> None:
    assert empty_counts() == {"debug": 0, "info": 0, "success": 0, "warning": 0, "error": 0}


def test_service_status_serialises_with_camel_case_keys() -> None:
    status = ServiceStatus(
        durable_store=ServiceCheck(available=False, message="down"),
        relational_store=ServiceCheck(available=True, message="ok"),
    )

    payload = status.model_dump(mode="json", by_alias=True)

    assert payload["durableStore"] == {"available": False, "message": "down"}
    assert payload["relationalStore"]["available"] is True
    assert "timestamp" in payload
