"""In-memory editing of a flow's steps.

Edits apply to the loaded steps immediately and are persisted on discrete
events: annotation blur, drag end, soft delete, or an explicit
``save_changes``. A failed save keeps the in-memory value and leaves the
change marked unsaved so it can be retried.
"""

from __future__ import annotations

from concurrent.futures import Executor

from loguru import logger

from cursorflow.db.crud import UpsertResult
from cursorflow.drag import DragSession, FlowEditState
from cursorflow.errors import FlowNotEditableError, PersistenceError
from cursorflow.geometry import Projection, overlay_position
from cursorflow.steps import Step, move_step, sort_steps
from cursorflow.storage import StepStore

ANNOTATION = "annotation"
REMOVED = "removed"
ORDER = "order"


class FlowEditor:
    """Editing session over one flow's steps."""

    def __init__(
        self,
        flow_id: str,
        steps: list[Step],
        store: StepStore,
        status: str,
        executor: Executor | None = None,
    ) -> None:
        """Initialize.

        Args:
            flow_id: The flow being edited.
            steps: The flow's steps, as fetched from the store.
            store: Where changes are persisted.
            status: Current status of the flow; only drafts accept edits.
            executor: Runs drag-end saves in the background.
        """
        self.flow_id = flow_id
        self.store = store
        self.edit_state = FlowEditState(status=status)
        self._steps: dict[str, Step] = {step.id: step for step in sort_steps(steps)}
        self.drag = DragSession(self._steps, store, self.edit_state, executor=executor)

    @classmethod
    def load(
        cls,
        flow_id: str,
        store: StepStore,
        status: str,
        executor: Executor | None = None,
    ) -> "FlowEditor":
        """Fetch a flow's steps and open an editor on them."""
        return cls(flow_id, store.get_steps(flow_id), store, status=status, executor=executor)

    @property
    def steps(self) -> list[Step]:
        """All loaded steps, removed ones included, by position."""
        return sort_steps(list(self._steps.values()))

    def visible_steps(self) -> list[Step]:
        """Steps shown and replayed: not removed, by position."""
        return [step for step in self.steps if not step.is_removed]

    def get_step(self, step_id: str) -> Step:
        """Return a loaded step.

        Raises:
            KeyError: If the step isn't loaded.
        """
        return self._steps[step_id]

    def overlays(self) -> dict[str, Projection]:
        """Overlay positions of visible steps that can render one."""
        positions = {}
        for step in self.visible_steps():
            projection = overlay_position(step)
            if projection is not None:
                positions[step.id] = projection
        return positions

    @property
    def has_unsaved_changes(self) -> bool:
        """Whether any change hasn't been persisted."""
        return self.edit_state.has_unsaved_changes

    def _check_editable(self) -> None:
        if not self.edit_state.is_editable:
            raise FlowNotEditableError(
                f"Flow {self.flow_id} is {self.edit_state.status}; roll it back to draft to edit"
            )

    def update_annotation(self, step_id: str, text: str) -> None:
        """Change a step's caption in memory."""
        self._check_editable()
        self.get_step(step_id).annotation_text = text
        self.edit_state.mark_dirty(step_id, ANNOTATION)

    def commit_annotation(self, step_id: str) -> bool:
        """Persist a step's caption, e.g. when its editor loses focus.

        Returns:
            True if saved; False if the store rejected it.
        """
        step = self.get_step(step_id)
        try:
            self.store.update_step_annotation(step_id, step.annotation_text or "")
        except PersistenceError as exc:
            logger.warning(f"Saving annotation of step {step_id} failed: {exc}")
            self.edit_state.record_error(step_id, exc, ANNOTATION)
            return False
        self.edit_state.mark_saved(step_id, ANNOTATION)
        return True

    def _set_removed(self, step_id: str, is_removed: bool) -> bool:
        self._check_editable()
        self.get_step(step_id).is_removed = is_removed
        self.edit_state.mark_dirty(step_id, REMOVED)
        try:
            self.store.mark_step_as_removed(step_id, is_removed)
        except PersistenceError as exc:
            logger.warning(f"Updating removal of step {step_id} failed: {exc}")
            self.edit_state.record_error(step_id, exc, REMOVED)
            return False
        self.edit_state.mark_saved(step_id, REMOVED)
        return True

    def remove_step(self, step_id: str) -> bool:
        """Soft-delete a step; it stays stored but is hidden from replay."""
        return self._set_removed(step_id, True)

    def restore_step(self, step_id: str) -> bool:
        """Undo a soft delete."""
        return self._set_removed(step_id, False)

    def move_step(self, step_id: str, new_index: int) -> list[Step]:
        """Reorder a step in memory.

        Args:
            step_id: Step to move.
            new_index: Target index among all loaded steps.

        Returns:
            Steps in their new order.
        """
        self._check_editable()
        before = {step.id: step.position for step in self._steps.values()}
        ordered = move_step(list(self._steps.values()), step_id, new_index)
        for step in ordered:
            if before[step.id] != step.position:
                self.edit_state.mark_dirty(step.id, ORDER)
        return ordered

    def save_changes(self) -> UpsertResult:
        """Persist every step with unsaved changes in one upsert.

        Rows that fail stay marked unsaved; the others are cleared.

        Returns:
            UpsertResult naming the failed step ids.
        """
        dirty_ids = self.edit_state.dirty_step_ids
        to_save = [step for step in self.steps if step.id in dirty_ids]
        if not to_save:
            return UpsertResult()
        result = self.store.upsert_steps(to_save)
        for step_id in result.saved_ids:
            self.edit_state.mark_saved(step_id)
        for step_id, exc in result.failed.items():
            self.edit_state.record_error(step_id, exc)
        if result.failed:
            logger.warning(
                f"Saved {len(result.saved_ids)} steps of flow {self.flow_id};"
                f" failed: {', '.join(result.failed_ids)}"
            )
        else:
            logger.info(f"Saved {len(result.saved_ids)} steps of flow {self.flow_id}")
        return result
