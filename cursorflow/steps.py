"""Step entity, ordering helpers and step inspection utilities.

A step is the normalized, persisted unit of a cursor flow. Its cursor anchor
lives in ``cursor_position_x``/``cursor_position_y`` and is authoritative; the
anchor inside ``interaction_payload`` only seeds those fields at
normalization time and is never read again.
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Any
from urllib.parse import urlsplit

from pydantic import BaseModel, Field

from cursorflow.config import config
from cursorflow.events import InteractionKind, Viewport, get_interaction_kind


class StepState(str, Enum):
    """Soft-delete state of a step."""

    ACTIVE = "active"
    REMOVED = "removed"


def new_step_id() -> str:
    """Return a fresh step id."""
    return str(uuid.uuid4())


class Step(BaseModel):
    """A normalized cursor flow step."""

    id: str = Field(default_factory=new_step_id)
    flow_id: str
    position: int
    interaction_payload: dict[str, Any] = Field(default_factory=dict)
    screenshot_url: str | None = None
    annotation_text: str | None = None
    cursor_position_x: float | None = None
    cursor_position_y: float | None = None
    is_removed: bool = False

    @property
    def kind(self) -> InteractionKind:
        """Interaction kind of the underlying payload."""
        return get_interaction_kind(self.interaction_payload)

    @property
    def state(self) -> StepState:
        """ACTIVE or REMOVED."""
        return StepState.REMOVED if self.is_removed else StepState.ACTIVE

    @property
    def has_anchor(self) -> bool:
        """Whether both anchor coordinates are set."""
        return self.cursor_position_x is not None and self.cursor_position_y is not None

    @property
    def viewport(self) -> Viewport:
        """Viewport the step was captured in.

        Captures recorded before viewport tracking carry none; those fall back
        to the configured legacy size (1920x1080).
        """
        raw = _payload_object(_payload_object(self.interaction_payload, "element"), "viewport")
        if not raw:
            return Viewport(
                width=config.DEFAULT_VIEWPORT_WIDTH,
                height=config.DEFAULT_VIEWPORT_HEIGHT,
            )
        return Viewport.model_validate(raw)

    def to_record(self) -> dict[str, Any]:
        """Return the step as a flat dict keyed by column name."""
        return self.model_dump()


def _payload_object(payload: dict[str, Any], key: str) -> dict[str, Any]:
    """Return a nested object of a payload, or {} if absent or not an object."""
    value = payload.get(key)
    return value if isinstance(value, dict) else {}


def step_from_row(row) -> Step:
    """Convert a SQLAlchemy CursorFlowStep to a Step.

    Args:
        row: CursorFlowStep instance.

    Returns:
        Step.
    """
    return Step(
        id=row.id,
        flow_id=row.flow_id,
        position=row.position,
        interaction_payload=row.step_data or {},
        screenshot_url=row.screenshot_url,
        annotation_text=row.annotation_text,
        cursor_position_x=row.cursor_position_x,
        cursor_position_y=row.cursor_position_y,
        is_removed=bool(row.is_removed),
    )


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


def position_for_index(index: int) -> int:
    """Return the initial position of the step at a 0-based index."""
    return (index + 1) * config.POSITION_SPACING


def renumber_positions(steps: list[Step]) -> list[Step]:
    """Reassign evenly spaced positions, keeping the current order.

    Args:
        steps: Steps in display order. Modified in place.

    Returns:
        The same list.
    """
    for index, step in enumerate(steps):
        step.position = position_for_index(index)
    return steps


def sort_steps(steps: list[Step]) -> list[Step]:
    """Return steps ordered by position."""
    return sorted(steps, key=lambda step: step.position)


def move_step(steps: list[Step], step_id: str, new_index: int) -> list[Step]:
    """Move a step to a new index by giving it a position between its neighbours.

    Only the moved step's position changes unless its neighbours have no
    integer gap left, in which case the whole flow is renumbered first.

    Args:
        steps: Steps of one flow, in any order. Positions are updated in place.
        step_id: Id of the step to move.
        new_index: Target index in the resulting order.

    Returns:
        The steps in their new order.

    Raises:
        KeyError: If no step has the given id.
    """
    ordered = sort_steps(steps)
    moving = next((step for step in ordered if step.id == step_id), None)
    if moving is None:
        raise KeyError(step_id)
    others = [step for step in ordered if step.id != step_id]
    new_index = max(0, min(new_index, len(others)))

    def _gap_position() -> int | None:
        before = others[new_index - 1].position if new_index > 0 else 0
        if new_index < len(others):
            after = others[new_index].position
        else:
            after = before + 2 * config.POSITION_SPACING
        if after - before < 2:
            return None
        return (before + after) // 2

    position = _gap_position()
    if position is None:
        renumber_positions(others)
        position = _gap_position()
    moving.position = position
    others.insert(new_index, moving)
    return others


# ---------------------------------------------------------------------------
# Inspection helpers
# ---------------------------------------------------------------------------


def get_step_type(step: Step | None) -> InteractionKind:
    """Return the step kind, defaulting to click when there is no payload."""
    if step is None:
        return InteractionKind.CLICK
    return step.kind


def get_navigation_url(step: Step | None) -> str | None:
    """Return the destination URL of a navigation step, else None."""
    if get_step_type(step) != InteractionKind.NAVIGATION:
        return None
    url = _payload_object(step.interaction_payload, "pageInfo").get("url")
    return url if isinstance(url, str) and url else None


def get_display_url(step: Step | None) -> str:
    """Return ``hostname + path`` of a navigation step's URL."""
    url = get_navigation_url(step)
    if not url:
        return "Unknown URL"
    parts = urlsplit(url)
    if not parts.hostname:
        return url
    return parts.hostname + (parts.path or "/")


def truncate_url(url: str | None) -> str:
    """Drop the query string from a URL."""
    if not url:
        return "Unknown URL"
    return url.split("?", 1)[0]


def get_clicked_text(step: Step | None) -> str | None:
    """Return the clicked element's text content, if any."""
    if step is None:
        return None
    text = _payload_object(step.interaction_payload, "element").get("textContent")
    return text if isinstance(text, str) and text else None


def get_element_tag_name(step: Step | None) -> str | None:
    """Return the clicked element's tag name (e.g. ``BUTTON``)."""
    if step is None:
        return None
    tag_name = _payload_object(step.interaction_payload, "element").get("tagName")
    return tag_name if isinstance(tag_name, str) and tag_name else None


def has_valid_screenshot(step: Step | None) -> bool:
    """Whether the step has a screenshot to display."""
    return bool(step is not None and step.screenshot_url)
