"""Viewport-relative cursor geometry.

A step's anchor is stored in the pixel space of the viewport it was captured
in. Projecting it to percentages of that viewport gives offsets that land on
the same logical pixel of the screenshot however large it is rendered.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from cursorflow.errors import MissingAnchorError, MissingDataError, MissingViewportError
from cursorflow.events import Viewport
from cursorflow.steps import Step


@dataclass(frozen=True)
class Projection:
    """Anchor as percentages of the viewport (CSS left/top)."""

    x_percent: float
    y_percent: float


@dataclass(frozen=True)
class Rect:
    """On-screen bounding box of the element a screenshot is rendered in."""

    width: float
    height: float
    left: float = 0
    top: float = 0


def require_viewport(step: Step) -> Viewport:
    """Return the step's viewport, checking it has a usable size.

    Raises:
        MissingViewportError: If width or height is missing or not positive.
    """
    viewport = step.viewport
    if not viewport.width or not viewport.height or viewport.width < 0 or viewport.height < 0:
        raise MissingViewportError(
            step.id,
            f"viewport has no usable size ({viewport.width}x{viewport.height})",
        )
    return viewport


def require_anchor(step: Step) -> tuple[float, float]:
    """Return the step's anchor.

    Raises:
        MissingAnchorError: If either coordinate is missing.
    """
    if step.cursor_position_x is None or step.cursor_position_y is None:
        raise MissingAnchorError(
            step.id,
            f"cursor anchor incomplete (x={step.cursor_position_x},"
            f" y={step.cursor_position_y})",
        )
    return step.cursor_position_x, step.cursor_position_y


def project_anchor(step: Step) -> Projection:
    """Project a step's anchor into percentages of its capture viewport.

    Args:
        step: The step to project.

    Returns:
        Projection.

    Raises:
        MissingAnchorError: If the anchor is incomplete.
        MissingViewportError: If the viewport has no usable size.
    """
    x, y = require_anchor(step)
    viewport = require_viewport(step)
    return Projection(
        x_percent=x / viewport.width * 100,
        y_percent=y / viewport.height * 100,
    )


def overlay_position(step: Step) -> Projection | None:
    """Return where to draw a step's cursor overlay, or None to draw nothing."""
    try:
        return project_anchor(step)
    except MissingDataError as exc:
        logger.error(f"Not rendering cursor overlay: {exc}")
        return None


def screen_delta_to_capture_delta(
    delta_screen_x: float,
    delta_screen_y: float,
    container: Rect,
    viewport: Viewport,
) -> tuple[float, float]:
    """Convert a pointer delta on screen into capture-viewport pixels.

    The delta is first expressed as a percentage of the rendered container,
    then scaled by the capture viewport, so arbitrary zoom cancels out.

    Args:
        delta_screen_x: Horizontal pointer movement in screen pixels.
        delta_screen_y: Vertical pointer movement in screen pixels.
        container: Bounding box the screenshot is rendered in.
        viewport: Capture viewport of the step.

    Returns:
        tuple of (delta_x, delta_y) in capture pixels.
    """
    delta_x_percent = delta_screen_x / container.width * 100
    delta_y_percent = delta_screen_y / container.height * 100
    return (
        delta_x_percent / 100 * viewport.width,
        delta_y_percent / 100 * viewport.height,
    )


def clamp(value: float, lower: float, upper: float) -> float:
    """Clamp a value into [lower, upper]."""
    return max(lower, min(value, upper))


def clamp_anchor(x: float, y: float, viewport: Viewport) -> tuple[float, float]:
    """Keep an anchor inside the logical page bounds."""
    return clamp(x, 0, viewport.width), clamp(y, 0, viewport.height)
