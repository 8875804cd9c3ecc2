# tests/test_telemetry.py
"""
Tests for the healing event log and update suggestions.
"""

import io
import json
import threading

import pytest

from uiauto_healing.attributes import CapturedAttributes
from uiauto_healing.config import HealingConfig
from uiauto_healing.exceptions import ConfigError, ObjectNotFoundError
from uiauto_healing.extractor import LocatorExtractor
from uiauto_healing.locators import CandidateLocator
from uiauto_healing.repository import ObjectRepository
from uiauto_healing.resolution import Strategy
from uiauto_healing.suggestions import UpdateSuggestion, apply_suggestion, suggest_updates
from uiauto_healing.telemetry import HealingEvent, HealingTelemetry

OLD_A = CandidateLocator("id", "pay", 100)
OLD_B = CandidateLocator("id", "cancel", 100)
NEW_TEXT = CandidateLocator("text", "Pay", 80)
NEW_CSS = CandidateLocator("css", "button.pay", 60)


def _event(object_id, old, new, strategy=Strategy.FALLBACK, ts=0.0):
    return HealingEvent(timestamp=ts, object_id=object_id, original_locator=old,
                        strategy=strategy, resulting_locator=new)


class TestHealingTelemetry:
    """Tests for recording, statistics and export."""

    def test_statistics(self):
        """Totals and per-strategy counts."""
        t = HealingTelemetry()
        t.record(_event("o1", OLD_A, NEW_TEXT, Strategy.TEXT_CONTENT))
        t.record(_event("o1", OLD_A, NEW_CSS))
        t.record(_event("o2", OLD_B, NEW_CSS))

        stats = t.statistics()
        assert stats["total"] == 3
        assert stats["by_strategy"] == {Strategy.TEXT_CONTENT: 1, Strategy.FALLBACK: 2}
        assert len(stats["recent"]) == 3

    def test_recent_is_bounded(self):
        """Only the last recent_events events are listed."""
        t = HealingTelemetry()
        for i in range(12):
            t.record(_event("o1", OLD_A, NEW_TEXT, ts=float(i)))

        recent = t.statistics()["recent"]
        assert len(recent) == 10
        assert recent[-1]["timestamp"] == 11.0

    def test_concurrent_record(self):
        """Parallel appends lose nothing."""
        t = HealingTelemetry()

        def worker():
            for _ in range(50):
                t.record(_event("o1", OLD_A, NEW_TEXT))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for th in threads:
            th.start()
        for th in threads:
            th.join()

        assert len(t) == 400

    def test_export_to_stream_and_path(self, tmp_path):
        """The log is written as a JSON array."""
        t = HealingTelemetry()
        t.record(_event(None, OLD_A, NEW_TEXT))

        buf = io.StringIO()
        t.export_log(buf)
        assert json.loads(buf.getvalue())[0]["object_id"] is None

        path = tmp_path / "out" / "healing.json"
        t.export_log(str(path))
        assert json.loads(path.read_text(encoding="utf-8"))[0]["resulting_locator"]["value"] == "Pay"

    def test_jsonl_log_reload(self, tmp_path):
        """Events appended to a JSONL file load back identically."""
        path = tmp_path / "healing.jsonl"
        t = HealingTelemetry(log_path=str(path))
        t.record(_event("o1", OLD_A, NEW_TEXT, Strategy.TEXT_CONTENT, ts=1.5))
        t.record(_event("o2", OLD_B, NEW_CSS, ts=2.5))

        loaded = HealingTelemetry.load(str(path))
        assert loaded.events() == t.events()

        loaded.record(_event("o3", OLD_A, NEW_CSS))
        assert len(path.read_text(encoding="utf-8").splitlines()) == 3

    def test_load_missing_file(self, tmp_path):
        """A missing log loads empty."""
        assert len(HealingTelemetry.load(str(tmp_path / "none.jsonl"))) == 0

    def test_load_rejects_bad_lines(self, tmp_path):
        """Malformed or schema-violating lines raise ConfigError."""
        path = tmp_path / "bad.jsonl"
        path.write_text('{"timestamp": 1, "strategy": "fallback"}\n', encoding="utf-8")
        with pytest.raises(ConfigError):
            HealingTelemetry.load(str(path))

        path.write_text("not json\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            HealingTelemetry.load(str(path))


class TestSuggestUpdates:
    """Tests for suggestion aggregation."""

    def test_threshold_and_order(self):
        """Single occurrences are dropped; result sorted by frequency."""
        events = [
            _event("o2", OLD_B, NEW_CSS),
            _event("o1", OLD_A, NEW_TEXT),
            _event("o1", OLD_A, NEW_TEXT),
            _event("o1", OLD_A, NEW_TEXT),
            _event("o3", OLD_A, NEW_TEXT),
            _event("o2", OLD_B, NEW_CSS),
            _event("o4", OLD_B, NEW_CSS),
        ]
        suggestions = suggest_updates(events, min_frequency=2)

        assert [(s.object_id, s.frequency) for s in suggestions] == [("o1", 3), ("o2", 2)]

    def test_default_threshold_from_config(self):
        """min_frequency defaults to the configured value."""
        events = [_event("o1", OLD_A, NEW_TEXT)] * 2

        assert len(suggest_updates(events)) == 1
        with HealingConfig.override(min_suggestion_frequency=3):
            assert suggest_updates(events) == []

    def test_ties_keep_first_occurrence(self):
        """Equal frequencies keep the order groups first appeared in."""
        events = [
            _event("o2", OLD_B, NEW_CSS),
            _event("o1", OLD_A, NEW_TEXT),
            _event("o1", OLD_A, NEW_TEXT),
            _event("o2", OLD_B, NEW_CSS),
        ]

        assert [s.object_id for s in suggest_updates(events, 2)] == ["o2", "o1"]

    def test_latest_replacement_wins(self):
        """new_locator and strategy come from the most recent event."""
        events = [
            _event("o1", OLD_A, NEW_TEXT, Strategy.TEXT_CONTENT, ts=1.0),
            _event("o1", OLD_A, NEW_CSS, Strategy.FALLBACK, ts=2.0),
        ]
        (s,) = suggest_updates(events, 2)

        assert s.new_locator == NEW_CSS
        assert s.strategy == Strategy.FALLBACK
        assert s.old_locator == OLD_A
        assert s.last_seen == 2.0

    def test_telemetry_shortcut(self):
        """HealingTelemetry.suggest_updates reads its own log."""
        t = HealingTelemetry()
        t.record(_event("o1", OLD_A, NEW_TEXT))
        t.record(_event("o1", OLD_A, NEW_TEXT))

        assert t.suggest_updates()[0].frequency == 2
        assert suggest_updates(t, 2)[0].frequency == 2


class TestApplySuggestion:
    """Tests for accepting a suggestion into the repository."""

    def test_promotes_new_and_drops_old(self):
        """The replacement becomes primary and the failing locator is gone."""
        attrs = CapturedAttributes(tag="button", id="pay", text="Pay")
        with ObjectRepository() as repo:
            oid = repo.upsert(attrs, LocatorExtractor().extract(attrs))
            suggestion = UpdateSuggestion(oid, OLD_A, NEW_CSS, Strategy.FALLBACK, frequency=3)

            updated = apply_suggestion(repo, suggestion)

            assert updated.chain.primary.key == NEW_CSS.key
            assert updated.chain.primary.reliability == 100
            assert updated.chain.find("id", "pay") is None
            assert updated.chain.find("text", "Pay") is not None

    def test_unknown_object(self):
        """Suggestions without a stored object cannot be applied."""
        with ObjectRepository() as repo:
            with pytest.raises(ObjectNotFoundError):
                apply_suggestion(repo, UpdateSuggestion(None, OLD_A, NEW_TEXT, Strategy.FALLBACK, 2))
            with pytest.raises(ObjectNotFoundError):
                apply_suggestion(repo, UpdateSuggestion("obj_gone", OLD_A, NEW_TEXT, Strategy.FALLBACK, 2))
