"""Tests for dismiss/snooze persistence."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from conftest import NOW, MovableClock, make_conversation

from waiting_lens.schemas.preferences import WaitingFilter
from waiting_lens.schemas.state import DismissedItem, PersistedState, SnoozedItem
from waiting_lens.services.persistence import (
    STATE_KEY,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    PersistenceStore,
    apply_persisted_state,
)


@pytest.fixture
def backend() -> InMemoryKeyValueStore:
    """Empty in-memory backend."""
    return InMemoryKeyValueStore()


class TestLoad:
    """Tests for loading the persisted blob."""

    def test_missing_blob_is_empty(self, backend: InMemoryKeyValueStore) -> None:
        """Test a missing blob gives an empty state."""
        store = PersistenceStore(backend, clock=MovableClock())

        assert store.state.dismissed == []
        assert store.state.snoozed == []

    @pytest.mark.parametrize("blob", ["not json", '{"dismissed": "oops"}', "[]"])
    def test_corrupt_blob_falls_back(self, blob: str) -> None:
        """Test a corrupt blob is discarded and replaced."""
        backend = InMemoryKeyValueStore({STATE_KEY: blob})

        store = PersistenceStore(backend, clock=MovableClock())

        assert store.state.dismissed == []
        stored = PersistedState.model_validate_json(backend.get(STATE_KEY) or "")
        assert stored.dismissed == []

    def test_naive_timestamps_fall_back(self) -> None:
        """Test a blob with timestamps lacking an offset is treated as corrupt."""
        blob = json.dumps(
            {
                "dismissed": [
                    {
                        "conversation_id": "x",
                        "dismissed_at": "2024-06-12T00:00:00",
                        "expires_at": "2099-01-01T00:00:00",
                    }
                ],
                "snoozed": [],
                "last_cleanup": "2024-06-12T00:00:00",
            }
        )
        backend = InMemoryKeyValueStore({STATE_KEY: blob})

        store = PersistenceStore(backend, clock=MovableClock())

        assert store.is_dismissed("x") is False
        assert PersistedState.model_validate_json(backend.get(STATE_KEY) or "").dismissed == []

    def test_expired_records_dropped_on_load(self) -> None:
        """Test expired records are cleaned when the blob is read."""
        state = PersistedState(
            dismissed=[
                DismissedItem(
                    conversation_id="old",
                    dismissed_at=NOW - timedelta(hours=30),
                    expires_at=NOW - timedelta(hours=6),
                ),
                DismissedItem(
                    conversation_id="new",
                    dismissed_at=NOW - timedelta(hours=1),
                    expires_at=NOW + timedelta(hours=23),
                ),
            ],
            snoozed=[
                SnoozedItem(
                    conversation_id="woke",
                    snoozed_at=NOW - timedelta(days=2),
                    snoozed_until=NOW - timedelta(minutes=1),
                )
            ],
            last_cleanup=NOW - timedelta(days=2),
        )
        backend = InMemoryKeyValueStore({STATE_KEY: state.model_dump_json()})

        store = PersistenceStore(backend, clock=MovableClock())

        assert [d.conversation_id for d in store.state.dismissed] == ["new"]
        assert store.state.snoozed == []
        written = PersistedState.model_validate_json(backend.get(STATE_KEY) or "")
        assert [d.conversation_id for d in written.dismissed] == ["new"]


class TestDismiss:
    """Tests for dismissals."""

    def test_dismiss_for_24_hours(self, backend: InMemoryKeyValueStore) -> None:
        """Test a dismissal lasts 24 hours and then lapses."""
        clock = MovableClock()
        store = PersistenceStore(backend, clock=clock)

        item = store.dismiss("c1")

        assert item.expires_at == NOW + timedelta(hours=24)
        assert store.is_dismissed("c1") is True

        clock.advance(hours=23, minutes=59)
        assert store.is_dismissed("c1") is True

        clock.advance(minutes=1)
        assert store.is_dismissed("c1") is False

    def test_redismiss_replaces(self, backend: InMemoryKeyValueStore) -> None:
        """Test at most one dismissal per conversation."""
        clock = MovableClock()
        store = PersistenceStore(backend, clock=clock)

        store.dismiss("c1")
        clock.advance(hours=5)
        store.dismiss("c1")

        assert len(store.state.dismissed) == 1
        assert store.state.dismissed[0].expires_at == NOW + timedelta(hours=29)

    def test_written_through(self, backend: InMemoryKeyValueStore) -> None:
        """Test a new store sees earlier decisions."""
        PersistenceStore(backend, clock=MovableClock()).dismiss("c1")

        reopened = PersistenceStore(backend, clock=MovableClock())

        assert reopened.is_dismissed("c1") is True

    def test_custom_ttl(self, backend: InMemoryKeyValueStore) -> None:
        """Test the dismiss TTL is configurable."""
        store = PersistenceStore(backend, dismiss_ttl=timedelta(hours=1), clock=MovableClock())
        assert store.dismiss("c1").expires_at == NOW + timedelta(hours=1)


class TestSnooze:
    """Tests for snoozes."""

    def test_snooze_and_info(self, backend: InMemoryKeyValueStore) -> None:
        """Test a snooze is recorded with its reason."""
        store = PersistenceStore(backend, clock=MovableClock())
        until = NOW + timedelta(days=1)

        store.snooze("c1", until, reason="after standup")

        info = store.get_snooze_info("c1")
        assert info is not None
        assert info.snoozed_until == until
        assert info.reason == "after standup"
        assert store.is_snoozed("c1") is True

    def test_naive_until_is_utc(self, backend: InMemoryKeyValueStore) -> None:
        """Test a snooze time without an offset is stored as UTC."""
        store = PersistenceStore(backend, clock=MovableClock())

        item = store.snooze("c1", datetime(2099, 1, 1, 9, 0))

        assert item.snoozed_until == datetime(2099, 1, 1, 9, 0, tzinfo=UTC)
        assert store.is_snoozed("c1") is True
        assert PersistenceStore(backend, clock=MovableClock()).is_snoozed("c1") is True

    def test_resnooze_replaces(self, backend: InMemoryKeyValueStore) -> None:
        """Test at most one snooze per conversation."""
        store = PersistenceStore(backend, clock=MovableClock())

        store.snooze("c1", NOW + timedelta(hours=1))
        store.snooze("c1", NOW + timedelta(hours=5))

        assert len(store.state.snoozed) == 1
        assert store.state.snoozed[0].snoozed_until == NOW + timedelta(hours=5)

    def test_snooze_expires(self, backend: InMemoryKeyValueStore) -> None:
        """Test a snooze lapses once its time passes."""
        clock = MovableClock()
        store = PersistenceStore(backend, clock=clock)
        store.snooze("c1", NOW + timedelta(hours=1))

        clock.advance(hours=1)

        assert store.is_snoozed("c1") is False

    def test_unsnooze(self, backend: InMemoryKeyValueStore) -> None:
        """Test unsnooze removes the record and reports whether it existed."""
        store = PersistenceStore(backend, clock=MovableClock())
        store.snooze("c1", NOW + timedelta(hours=1))

        assert store.unsnooze("c1") is True
        assert store.unsnooze("c1") is False
        assert store.is_snoozed("c1") is False

    def test_clear_all(self, backend: InMemoryKeyValueStore) -> None:
        """Test clear_all forgets everything."""
        store = PersistenceStore(backend, clock=MovableClock())
        store.dismiss("c1")
        store.snooze("c2", NOW + timedelta(hours=1))

        store.clear_all()

        assert store.state.dismissed == []
        assert store.state.snoozed == []


class TestApplyPersistedState:
    """Tests for apply_persisted_state."""

    @pytest.fixture
    def state(self) -> PersistedState:
        """One live dismissal, one live snooze and one expired snooze."""
        return PersistedState(
            dismissed=[
                DismissedItem(
                    conversation_id="gone",
                    dismissed_at=NOW,
                    expires_at=NOW + timedelta(hours=24),
                )
            ],
            snoozed=[
                SnoozedItem(
                    conversation_id="later",
                    snoozed_at=NOW,
                    snoozed_until=NOW + timedelta(hours=3),
                ),
                SnoozedItem(
                    conversation_id="awake",
                    snoozed_at=NOW - timedelta(days=1),
                    snoozed_until=NOW - timedelta(hours=1),
                ),
            ],
            last_cleanup=NOW,
        )

    def test_visible_snoozes(self, state: PersistedState) -> None:
        """Test dismissals drop, snoozes stay visible with a marker."""
        conversations = [make_conversation(i) for i in ("gone", "later", "awake", "plain")]

        visible = apply_persisted_state(conversations, state, WaitingFilter(), NOW)

        assert [c.id for c in visible] == ["later", "awake", "plain"]
        assert visible[0].snoozed_until == NOW + timedelta(hours=3)
        assert visible[1].snoozed_until is None

    def test_hidden_snoozes(self, state: PersistedState) -> None:
        """Test hide_snoozed drops live snoozes only."""
        conversations = [make_conversation(i) for i in ("gone", "later", "awake")]

        visible = apply_persisted_state(
            conversations, state, WaitingFilter(hide_snoozed=True), NOW
        )

        assert [c.id for c in visible] == ["awake"]

    def test_dismissal_lapses(self, state: PersistedState) -> None:
        """Test a dismissed conversation reappears after 24 hours."""
        conversations = [make_conversation("gone")]

        later = NOW + timedelta(hours=24)
        visible = apply_persisted_state(conversations, state, WaitingFilter(), later)

        assert [c.id for c in visible] == ["gone"]


class TestJsonFileKeyValueStore:
    """Tests for the JSON file backend."""

    def test_round_trip(self, tmp_path: Path) -> None:
        """Test values survive a new store instance."""
        path = tmp_path / "nested" / "state.json"
        JsonFileKeyValueStore(path).set("k", "v")

        assert JsonFileKeyValueStore(path).get("k") == "v"
        assert json.loads(path.read_text(encoding="utf-8")) == {"k": "v"}

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test a missing file reads as empty."""
        assert JsonFileKeyValueStore(tmp_path / "none.json").get("k") is None

    def test_corrupt_file(self, tmp_path: Path) -> None:
        """Test an unreadable file reads as empty and is overwritten on write."""
        path = tmp_path / "state.json"
        path.write_text("{broken", encoding="utf-8")
        store = JsonFileKeyValueStore(path)

        assert store.get("k") is None
        store.set("k", "v")
        assert store.get("k") == "v"

    def test_preserves_other_keys(self, tmp_path: Path) -> None:
        """Test writing one key keeps the others."""
        store = JsonFileKeyValueStore(tmp_path / "state.json")
        store.set("a", "1")
        store.set("b", "2")

        assert store.get("a") == "1"
        assert store.get("b") == "2"

    def test_with_persistence_store(self, tmp_path: Path) -> None:
        """Test the full store on disk."""
        path = tmp_path / "state.json"
        PersistenceStore(JsonFileKeyValueStore(path), clock=MovableClock()).dismiss("c1")

        reopened = PersistenceStore(JsonFileKeyValueStore(path), clock=MovableClock())

        assert reopened.is_dismissed("c1") is True
