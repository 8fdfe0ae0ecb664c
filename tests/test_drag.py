"""Tests for the drag session and position saving."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from cursorflow.drag import DragSession, Dragging, FlowEditState, Idle, PositionSaver
from cursorflow.errors import DragStateError, MissingAnchorError, PersistenceError
from cursorflow.geometry import Rect
from cursorflow.steps import Step

CONTAINER = Rect(width=400, height=225)


class FakeStore:
    """Records position writes; optionally fails or blocks them."""

    def __init__(self, fail=False):
        self.fail = fail
        self.writes = []
        self.started = threading.Event()
        self.release = threading.Event()
        self.release.set()

    def update_step_position(self, step_id, x, y):
        self.started.set()
        self.release.wait(timeout=5)
        if self.fail:
            raise PersistenceError("store unavailable")
        self.writes.append((step_id, x, y))


def _step(step_id="s1", x=100.0, y=100.0, viewport=(1920, 1080)):
    return Step(
        id=step_id,
        flow_id="flow-1",
        position=1000,
        interaction_payload={
            "type": "click",
            "element": {"viewport": {"width": viewport[0], "height": viewport[1]}},
        },
        cursor_position_x=x,
        cursor_position_y=y,
    )


@pytest.fixture
def store():
    """A store that accepts writes."""
    return FakeStore()


def _session(store, *steps, status="draft", executor=None):
    steps = steps or (_step(),)
    edit_state = FlowEditState(status=status)
    by_id = {step.id: step for step in steps}
    return DragSession(by_id, store, edit_state, executor=executor), by_id, edit_state


class TestDragSession:
    """Tests for DragSession state transitions."""

    def test_starts_idle(self, store):
        """Test a new session is idle."""
        session, _, _ = _session(store)
        assert session.state == Idle()
        assert not session.is_dragging

    def test_pointer_down_starts_drag(self, store):
        """Test pressing an overlay on a draft flow starts dragging."""
        session, _, _ = _session(store)
        assert session.pointer_down("s1", 10, 20)
        assert session.state == Dragging("s1", 10, 20)

    def test_pointer_down_ignored_when_not_editable(self, store):
        """Test published flows can't be dragged."""
        session, _, _ = _session(store, status="live")
        assert not session.pointer_down("s1", 10, 20)
        assert session.state == Idle()

    def test_second_drag_rejected(self, store):
        """Test only one step can be dragged at a time."""
        session, _, _ = _session(store, _step("s1"), _step("s2"))
        session.pointer_down("s1", 0, 0)
        with pytest.raises(DragStateError):
            session.pointer_down("s2", 0, 0)
        assert session.state.step_id == "s1"

    def test_pointer_down_requires_anchor(self, store):
        """Test a step without an anchor can't be dragged."""
        session, _, _ = _session(store, _step(y=None))
        with pytest.raises(MissingAnchorError):
            session.pointer_down("s1", 0, 0)
        assert session.state == Idle()

    def test_drag_round_trip(self, store):
        """Test 10% of the container moves the anchor 10% of the viewport."""
        session, steps, edit_state = _session(store)
        session.pointer_down("s1", 100, 50)
        step = session.pointer_move(140, 50, CONTAINER)

        assert step.cursor_position_x == pytest.approx(292)
        assert step.cursor_position_y == pytest.approx(100)
        assert edit_state.has_unsaved_changes
        assert session.state == Dragging("s1", 140, 50)

    def test_moves_accumulate_from_last_pointer(self, store):
        """Test each move applies the delta since the previous event."""
        session, steps, _ = _session(store)
        session.pointer_down("s1", 0, 0)
        session.pointer_move(20, 0, CONTAINER)
        session.pointer_move(40, 0, CONTAINER)
        assert steps["s1"].cursor_position_x == pytest.approx(292)

    def test_container_size_independent(self, store):
        """Test the same relative drag gives the same anchor on any container."""
        small, small_steps, _ = _session(store)
        large, large_steps, _ = _session(store)
        small.pointer_down("s1", 0, 0)
        small.pointer_move(40, 22.5, Rect(width=400, height=225))
        large.pointer_down("s1", 0, 0)
        large.pointer_move(160, 90, Rect(width=1600, height=900))
        assert small_steps["s1"].cursor_position_x == pytest.approx(
            large_steps["s1"].cursor_position_x
        )
        assert small_steps["s1"].cursor_position_y == pytest.approx(
            large_steps["s1"].cursor_position_y
        )

    def test_clamped_to_left_edge(self, store):
        """Test dragging past the left edge clamps to 0."""
        session, steps, _ = _session(store)
        session.pointer_down("s1", 200, 0)
        session.pointer_move(0, 0, CONTAINER)
        assert steps["s1"].cursor_position_x == 0

    def test_clamped_to_right_edge(self, store):
        """Test dragging past the right edge clamps to the viewport width."""
        session, steps, _ = _session(store, _step(x=1900))
        session.pointer_down("s1", 0, 0)
        session.pointer_move(100, 0, CONTAINER)
        assert steps["s1"].cursor_position_x == 1920

    def test_clamped_vertically(self, store):
        """Test the anchor never leaves the viewport height."""
        session, steps, _ = _session(store)
        session.pointer_down("s1", 0, 0)
        session.pointer_move(0, 1000, CONTAINER)
        assert steps["s1"].cursor_position_y == 1080

    def test_move_when_idle_is_noop(self, store):
        """Test pointer moves without a drag change nothing."""
        session, steps, edit_state = _session(store)
        assert session.pointer_move(50, 50, CONTAINER) is None
        assert steps["s1"].cursor_position_x == 100
        assert not edit_state.has_unsaved_changes

    def test_move_over_empty_container_ignored(self, store):
        """Test a zero-sized container doesn't move the anchor."""
        session, steps, _ = _session(store)
        session.pointer_down("s1", 0, 0)
        assert session.pointer_move(50, 50, Rect(width=0, height=0)) is None
        assert steps["s1"].cursor_position_x == 100

    def test_moves_do_not_persist(self, store):
        """Test intermediate moves never reach the store."""
        session, _, _ = _session(store)
        session.pointer_down("s1", 0, 0)
        for x in range(1, 50):
            session.pointer_move(x, 0, CONTAINER)
        assert store.writes == []

    def test_pointer_up_persists_once(self, store):
        """Test ending the drag saves the final anchor once."""
        session, steps, edit_state = _session(store)
        session.pointer_down("s1", 100, 50)
        session.pointer_move(120, 50, CONTAINER)
        session.pointer_move(140, 50, CONTAINER)
        outcome = session.pointer_up().result()

        assert outcome.success
        assert store.writes == [("s1", pytest.approx(292), pytest.approx(100))]
        assert session.state == Idle()
        assert not edit_state.has_unsaved_changes

    def test_pointer_leave_ends_drag(self, store):
        """Test the pointer leaving the surface ends and saves the drag."""
        session, _, _ = _session(store)
        session.pointer_down("s1", 0, 0)
        session.pointer_move(10, 0, CONTAINER)
        assert session.pointer_leave().result().success
        assert session.state == Idle()
        assert len(store.writes) == 1

    def test_pointer_up_when_idle(self, store):
        """Test releasing without a drag saves nothing."""
        session, _, _ = _session(store)
        assert session.pointer_up() is None
        assert store.writes == []

    def test_failed_save_keeps_value(self):
        """Test a failed save keeps the moved anchor and unsaved flag."""
        store = FakeStore(fail=True)
        session, steps, edit_state = _session(store)
        session.pointer_down("s1", 0, 0)
        session.pointer_move(40, 0, CONTAINER)
        outcome = session.pointer_up().result()

        assert not outcome.success
        assert isinstance(outcome.error, PersistenceError)
        assert steps["s1"].cursor_position_x == pytest.approx(292)
        assert edit_state.has_unsaved_changes
        assert "s1" in edit_state.errors

    def test_retry_after_failure(self):
        """Test a later successful drag clears the unsaved flag."""
        store = FakeStore(fail=True)
        session, _, edit_state = _session(store)
        session.pointer_down("s1", 0, 0)
        session.pointer_move(40, 0, CONTAINER)
        session.pointer_up().result()
        store.fail = False
        session.pointer_down("s1", 0, 0)
        session.pointer_up().result()

        assert not edit_state.has_unsaved_changes
        assert edit_state.errors == {}


class TestPositionSaver:
    """Tests for PositionSaver supersede behavior."""

    def test_inline_save(self, store):
        """Test saves run inline without an executor."""
        saver = PositionSaver(store)
        outcome = saver.save("s1", 1, 2).result()
        assert outcome.success and not outcome.superseded
        assert store.writes == [("s1", 1, 2)]

    def test_queued_save_cancelled_by_newer(self, store):
        """Test a save that hasn't started is cancelled by a newer one."""
        gate = threading.Event()
        with ThreadPoolExecutor(max_workers=1) as executor:
            executor.submit(gate.wait, 5)
            saver = PositionSaver(store, executor)
            first = saver.save("s1", 1, 1)
            second = saver.save("s1", 2, 2)
            gate.set()
            assert second.result(timeout=5).success
        assert first.cancelled()
        assert store.writes == [("s1", 2, 2)]

    def test_last_write_wins(self, store):
        """Test a newer save lands after an in-flight older one."""
        store.release.clear()
        with ThreadPoolExecutor(max_workers=2) as executor:
            saver = PositionSaver(store, executor)
            first = saver.save("s1", 1, 1)
            assert store.started.wait(timeout=5)
            second = saver.save("s1", 2, 2)
            store.release.set()
            first_outcome = first.result(timeout=5)
            second_outcome = second.result(timeout=5)

        assert first_outcome.superseded
        assert second_outcome.success and not second_outcome.superseded
        assert store.writes[-1] == ("s1", 2, 2)

    def test_steps_saved_independently(self, store):
        """Test saves for different steps don't supersede each other."""
        saver = PositionSaver(store)
        saver.save("s1", 1, 1)
        saver.save("s2", 2, 2)
        assert store.writes == [("s1", 1, 1), ("s2", 2, 2)]


class TestFlowEditState:
    """Tests for FlowEditState."""

    def test_editable_only_as_draft(self):
        """Test only drafts are editable."""
        assert FlowEditState("draft").is_editable
        for status in ("live", "archived", "paused", "requested"):
            assert not FlowEditState(status).is_editable

    def test_fields_tracked_separately(self):
        """Test saving one field leaves another unsaved."""
        state = FlowEditState()
        state.mark_dirty("s1", "position")
        state.mark_dirty("s1", "annotation")
        state.mark_saved("s1", "position")
        assert state.has_unsaved_changes
        state.mark_saved("s1")
        assert not state.has_unsaved_changes
