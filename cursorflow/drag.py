"""Interactive cursor repositioning.

Pointer moves are applied in memory only; the anchor is persisted once when
the drag ends. Screen deltas are converted to capture-viewport pixels through
percentages of the rendered container, since the screenshot is displayed at a
size unrelated to its capture resolution.

Usage:
    session = DragSession(steps_by_id, store, edit_state)
    session.pointer_down(step.id, 510, 300)
    session.pointer_move(530, 310, Rect(width=800, height=450))
    session.pointer_up()
"""

from __future__ import annotations

import functools
import threading
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from typing import Mapping, Union

from loguru import logger

from cursorflow.errors import DragStateError, PersistenceError
from cursorflow.geometry import (
    Rect,
    clamp_anchor,
    require_anchor,
    require_viewport,
    screen_delta_to_capture_delta,
)
from cursorflow.steps import Step
from cursorflow.storage import StepStore

POSITION = "position"


@dataclass
class FlowEditState:
    """Edit status of the flow being worked on.

    Unsaved changes are tracked per step and per field (``position``,
    ``annotation``, ``removed``, ``order``) so saving one kind of change
    doesn't hide another.
    """

    status: str = "draft"
    dirty: set[tuple[str, str]] = field(default_factory=set)
    errors: dict[str, Exception] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def is_editable(self) -> bool:
        """Only drafts can be edited."""
        return self.status == "draft"

    @property
    def has_unsaved_changes(self) -> bool:
        """Whether any step has changes not yet persisted."""
        with self._lock:
            return bool(self.dirty)

    @property
    def dirty_step_ids(self) -> set[str]:
        """Ids of steps with unsaved changes."""
        with self._lock:
            return {step_id for step_id, _ in self.dirty}

    def mark_dirty(self, step_id: str, field_name: str) -> None:
        """Record an in-memory change to a step."""
        with self._lock:
            self.dirty.add((step_id, field_name))

    def mark_saved(self, step_id: str, field_name: str | None = None) -> None:
        """Record that a step's changes were persisted.

        Args:
            step_id: The step.
            field_name: The field saved; None means every field.
        """
        with self._lock:
            self.dirty = {
                key for key in self.dirty
                if key[0] != step_id or (field_name is not None and key[1] != field_name)
            }
            if not any(key[0] == step_id for key in self.dirty):
                self.errors.pop(step_id, None)

    def record_error(
        self, step_id: str, error: Exception, field_name: str | None = None
    ) -> None:
        """Record a failed save; the change stays unsaved."""
        with self._lock:
            if field_name is not None:
                self.dirty.add((step_id, field_name))
            self.errors[step_id] = error


@dataclass(frozen=True)
class Idle:
    """No drag in progress."""


@dataclass(frozen=True)
class Dragging:
    """A step's overlay is being dragged."""

    step_id: str
    last_x: float
    last_y: float


DragState = Union[Idle, Dragging]


@dataclass(frozen=True)
class SaveOutcome:
    """Result of persisting a step's anchor."""

    step_id: str
    x: float
    y: float
    success: bool
    error: Exception | None = None
    superseded: bool = False


class PositionSaver:
    """Persist step anchors, letting the newest save per step win.

    Issuing a save for a step cancels an older save that has not started, and
    an older save that reaches the store after a newer one was issued is
    skipped.
    """

    def __init__(self, store: StepStore, executor: Executor | None = None) -> None:
        """Initialize.

        Args:
            store: Where positions are written.
            executor: Runs saves in the background. Saves run inline if None.
        """
        self._store = store
        self._executor = executor
        self._lock = threading.Lock()
        self._generations: dict[str, int] = {}
        self._step_locks: dict[str, threading.Lock] = {}
        self._pending: dict[str, Future] = {}

    def save(self, step_id: str, x: float, y: float) -> Future:
        """Persist an anchor.

        Returns:
            Future resolving to a SaveOutcome.
        """
        with self._lock:
            generation = self._generations.get(step_id, 0) + 1
            self._generations[step_id] = generation
            step_lock = self._step_locks.setdefault(step_id, threading.Lock())
            previous = self._pending.get(step_id)
        if previous is not None and previous.cancel():
            logger.debug(f"Cancelled superseded position save for step {step_id}")

        if self._executor is None:
            future: Future = Future()
            try:
                future.set_result(self._write(step_id, x, y, generation, step_lock))
            except Exception as exc:
                # same contract as an executor-backed save
                future.set_exception(exc)
        else:
            future = self._executor.submit(
                self._write, step_id, x, y, generation, step_lock
            )
        with self._lock:
            self._pending[step_id] = future
        return future

    def is_current(self, step_id: str, generation: int) -> bool:
        """Whether no newer save was issued for the step."""
        with self._lock:
            return self._generations.get(step_id) == generation

    def _write(
        self,
        step_id: str,
        x: float,
        y: float,
        generation: int,
        step_lock: threading.Lock,
    ) -> SaveOutcome:
        with step_lock:
            if not self.is_current(step_id, generation):
                return SaveOutcome(step_id, x, y, success=False, superseded=True)
            try:
                self._store.update_step_position(step_id, x, y)
            except PersistenceError as exc:
                logger.warning(f"Saving position of step {step_id} failed: {exc}")
                return SaveOutcome(step_id, x, y, success=False, error=exc)
        return SaveOutcome(
            step_id, x, y, success=True, superseded=not self.is_current(step_id, generation)
        )


class DragSession:
    """Drag state machine for one rendering surface.

    At most one step is dragged at a time.
    """

    def __init__(
        self,
        steps: Mapping[str, Step],
        store: StepStore,
        edit_state: FlowEditState,
        executor: Executor | None = None,
    ) -> None:
        """Initialize.

        Args:
            steps: In-memory steps by id; anchors are updated in place.
            store: Where final positions are persisted.
            edit_state: Edit status of the owning flow.
            executor: Runs saves in the background. Saves run inline if None.
        """
        self._steps = steps
        self._edit_state = edit_state
        self._saver = PositionSaver(store, executor)
        self._state: DragState = Idle()

    @property
    def state(self) -> DragState:
        """Current drag state."""
        return self._state

    @property
    def is_dragging(self) -> bool:
        """Whether a drag is in progress."""
        return isinstance(self._state, Dragging)

    def pointer_down(self, step_id: str, screen_x: float, screen_y: float) -> bool:
        """Start dragging a step's overlay.

        Args:
            step_id: Step whose overlay was pressed.
            screen_x: Pointer x in screen pixels.
            screen_y: Pointer y in screen pixels.

        Returns:
            True if a drag started; False when the flow isn't editable.

        Raises:
            DragStateError: If another drag is in progress.
            KeyError: If the step isn't loaded.
            MissingDataError: If the step has no anchor or usable viewport.
        """
        if isinstance(self._state, Dragging):
            raise DragStateError(
                f"Step {self._state.step_id} is already being dragged"
            )
        if not self._edit_state.is_editable:
            logger.debug(f"Ignoring drag on step {step_id}: flow is {self._edit_state.status}")
            return False
        step = self._steps[step_id]
        require_anchor(step)
        require_viewport(step)
        self._state = Dragging(step_id, screen_x, screen_y)
        logger.debug(f"Drag started on step {step_id} at ({screen_x}, {screen_y})")
        return True

    def pointer_move(self, screen_x: float, screen_y: float, container: Rect) -> Step | None:
        """Move the dragged anchor by the pointer delta since the last event.

        Args:
            screen_x: Pointer x in screen pixels.
            screen_y: Pointer y in screen pixels.
            container: Current bounding box of the rendered screenshot.

        Returns:
            The updated step, or None when not dragging.
        """
        if not isinstance(self._state, Dragging):
            return None
        if container.width <= 0 or container.height <= 0:
            logger.warning(f"Ignoring pointer move over empty container {container}")
            return None
        step = self._steps[self._state.step_id]
        viewport = require_viewport(step)
        x, y = require_anchor(step)
        delta_x, delta_y = screen_delta_to_capture_delta(
            screen_x - self._state.last_x,
            screen_y - self._state.last_y,
            container,
            viewport,
        )
        step.cursor_position_x, step.cursor_position_y = clamp_anchor(
            x + delta_x, y + delta_y, viewport
        )
        self._edit_state.mark_dirty(step.id, POSITION)
        self._state = Dragging(step.id, screen_x, screen_y)
        logger.debug(
            f"Step {step.id} anchor -> ({step.cursor_position_x:.1f},"
            f" {step.cursor_position_y:.1f})"
        )
        return step

    def pointer_up(self) -> Future | None:
        """End the drag and persist the step's final anchor.

        Returns:
            Future resolving to a SaveOutcome, or None when not dragging.
        """
        if not isinstance(self._state, Dragging):
            return None
        step = self._steps[self._state.step_id]
        self._state = Idle()
        future = self._saver.save(step.id, step.cursor_position_x, step.cursor_position_y)
        future.add_done_callback(functools.partial(self._on_saved, step.id))
        return future

    def pointer_leave(self) -> Future | None:
        """Pointer left the surface; ends a drag like pointer_up."""
        return self.pointer_up()

    def _on_saved(self, step_id: str, future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(f"Saving position of step {step_id} raised: {exc!r}")
            self._edit_state.record_error(step_id, exc, POSITION)
            return
        outcome: SaveOutcome = future.result()
        if outcome.superseded:
            return
        if not outcome.success:
            self._edit_state.record_error(step_id, outcome.error, POSITION)
            return
        step = self._steps.get(step_id)
        if step is not None and (step.cursor_position_x, step.cursor_position_y) == (
            outcome.x,
            outcome.y,
        ):
            self._edit_state.mark_saved(step_id, POSITION)
