"""Tests for watermarks and cross-mode deltas."""

import pytest

from hermes_chat.models import MODE_SWITCH_TOOL, Mode, Role, ToolData, TranscriptEntry
from hermes_chat.session.transcript import TranscriptStore
from hermes_chat.session.watermark import (
    WatermarkTracker,
    format_delta_for_injection,
    sanitize_for_prompt,
)


def add(store: TranscriptStore, entry_id: str, role: Role, text: str, tool: str | None = None) -> None:
    tool_data = ToolData(name=tool) if tool else None
    store.append(TranscriptEntry(id=entry_id, role=role, text=text, topic_id="t1", tool_data=tool_data))


@pytest.fixture
def store() -> TranscriptStore:
    """Provide a store with a short text-mode exchange."""
    store = TranscriptStore()
    add(store, "u1", Role.USER, "Plan my trip to Japan")
    add(store, "s1", Role.SYSTEM, "Running search...", tool="search")
    add(store, "m1", Role.MODEL, "Sure, when do you want to go?")
    return store


class TestComputeDelta:
    """Tests for WatermarkTracker.compute_delta."""

    def test_delta_skips_tool_entries(self, store: TranscriptStore) -> None:
        """Only user/model turns should be carried across modes."""
        tracker = WatermarkTracker(store)

        delta = tracker.compute_delta(0)

        assert [entry.id for entry in delta] == ["u1", "m1"]
        assert len(delta) == 2

    def test_mode_switch_markers_are_included(self, store: TranscriptStore) -> None:
        """Mode-switch markers should be part of the delta."""
        add(store, "sw", Role.SYSTEM, "Switched from text mode to voice mode", tool=MODE_SWITCH_TOOL)
        tracker = WatermarkTracker(store)

        assert [entry.id for entry in tracker.compute_delta(2)] == ["m1", "sw"]

    def test_end_is_fixed_when_created(self, store: TranscriptStore) -> None:
        """Entries appended after the delta was computed belong to the next one."""
        tracker = WatermarkTracker(store)
        delta = tracker.compute_delta(0)

        add(store, "u2", Role.USER, "March")

        assert [entry.id for entry in delta] == ["u1", "m1"]

    def test_delta_can_be_iterated_twice(self, store: TranscriptStore) -> None:
        """Iterating again should restart from the beginning."""
        delta = WatermarkTracker(store).compute_delta(0)

        assert list(delta) == list(delta)

    def test_delta_at_end_is_empty(self, store: TranscriptStore) -> None:
        """A watermark at the transcript length yields nothing."""
        delta = WatermarkTracker(store).compute_delta(len(store))

        assert not delta
        assert list(delta) == []

    @pytest.mark.parametrize("from_index", [-1, 4])
    def test_out_of_range_raises(self, store: TranscriptStore, from_index: int) -> None:
        """A watermark outside 0..len should be rejected."""
        with pytest.raises(ValueError, match="outside transcript"):
            WatermarkTracker(store).compute_delta(from_index)


class TestAdvance:
    """Tests for WatermarkTracker.advance."""

    def test_advance_then_delta_is_empty(self, store: TranscriptStore) -> None:
        """After advancing, a mode has nothing left to catch up on."""
        tracker = WatermarkTracker(store)

        tracker.advance(Mode.VOICE)

        assert list(tracker.delta_for(Mode.VOICE)) == []
        assert tracker.watermark(Mode.VOICE) == 3

    def test_advance_uses_current_length(self, store: TranscriptStore) -> None:
        """Advancing should cover the whole span, including filtered entries."""
        tracker = WatermarkTracker(store)
        delta = tracker.delta_for(Mode.VOICE)
        add(store, "u2", Role.USER, "March")

        tracker.advance(Mode.VOICE)

        assert len(delta) == 2
        assert tracker.watermark(Mode.VOICE) == 4

    def test_watermark_never_moves_backward(self, store: TranscriptStore) -> None:
        """A shorter transcript should not pull a watermark back."""
        tracker = WatermarkTracker(store)
        tracker.advance(Mode.TEXT)

        store.clear()
        tracker.advance(Mode.TEXT)

        assert tracker.watermark(Mode.TEXT) == 3

    def test_modes_are_independent(self, store: TranscriptStore) -> None:
        """Advancing one mode should leave the other untouched."""
        tracker = WatermarkTracker(store)

        tracker.advance(Mode.TEXT)

        assert tracker.watermark(Mode.VOICE) == 0
        assert len(tracker.delta_for(Mode.VOICE)) == 2


class TestFormatDelta:
    """Tests for prompt injection formatting."""

    def test_empty_delta_formats_to_empty_string(self) -> None:
        """Nothing new means nothing to inject."""
        assert format_delta_for_injection([]) == ""

    def test_formats_roles_on_one_line(self, store: TranscriptStore) -> None:
        """Each relevant entry should appear as role: text."""
        injection = format_delta_for_injection(WatermarkTracker(store).compute_delta(0))

        assert injection == (
            "Conversation so far in the other mode: "
            "user: Plan my trip to Japan ; model: Sure, when do you want to go?"
        )

    def test_output_has_no_control_characters(self) -> None:
        """Newlines, tabs and carriage returns must not reach the prompt."""
        entries = [
            TranscriptEntry(id="a", role=Role.USER, text="line one\nline two\tand\r\nthree"),
            TranscriptEntry(id="b", role=Role.MODEL, text="# Heading\n* bullet <b>bold</b>"),
        ]

        injection = format_delta_for_injection(entries)

        assert "\n" not in injection
        assert "\t" not in injection
        assert "\r" not in injection
        assert "user: line one line two and three" in injection
        assert "model: Heading bullet bboldb" in injection

    def test_sanitize_keeps_basic_punctuation(self) -> None:
        """Sentence punctuation should survive sanitizing."""
        assert sanitize_for_prompt("Really? Yes: it's (mostly) fine, \"ok\"; done!") == (
            "Really? Yes: it's (mostly) fine, \"ok\"; done!"
        )

    def test_entries_that_sanitize_to_nothing_are_dropped(self) -> None:
        """Entries with only stripped characters should not leave empty slots."""
        entries = [TranscriptEntry(id="a", role=Role.USER, text="***")]

        assert format_delta_for_injection(entries) == ""
