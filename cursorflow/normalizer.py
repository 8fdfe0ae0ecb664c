"""Convert an uploaded capture into cursor flow steps.

Usage:
    capture = read_capture_file("recording.json")
    result = parse_recording_to_steps(flow_id, capture)
    if result.error:
        ...
    for step in result.steps:
        print(step.position, step.annotation_text)
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

from cursorflow.config import config
from cursorflow.errors import CaptureValidationError
from cursorflow.events import Interaction, parse_interaction
from cursorflow.steps import Step, position_for_index

UNKNOWN_PAGE = "unknown page"


@dataclass
class NormalizationResult:
    """Steps produced from a capture, or the reason there are none."""

    steps: list[Step] = field(default_factory=list)
    error: CaptureValidationError | None = None

    @property
    def ok(self) -> bool:
        """Whether the capture was valid."""
        return self.error is None


def read_capture_file(path: str | Path) -> Any:
    """Read and decode a capture JSON file.

    Args:
        path: Path to the capture file.

    Returns:
        The decoded JSON document.

    Raises:
        OSError: If the file can't be read.
        json.JSONDecodeError: If the file isn't valid JSON.
    """
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def get_interactions(capture: Any, path: str | None = None) -> list[Any]:
    """Return the interactions array of a capture.

    Args:
        capture: Decoded capture document.
        path: Dotted path of the array; defaults to CAPTURE_INTERACTIONS_PATH.

    Returns:
        The interactions list (not copied).

    Raises:
        CaptureValidationError: If the path is missing or not an array.
    """
    path = path or config.CAPTURE_INTERACTIONS_PATH
    node = capture
    for key in path.split("."):
        if not isinstance(node, dict) or key not in node:
            raise CaptureValidationError(
                f"Invalid JSON structure: missing interactions array at '{path}'"
            )
        node = node[key]
    if not isinstance(node, list):
        raise CaptureValidationError(
            f"Invalid JSON structure: '{path}' is {type(node).__name__}, not an array"
        )
    return node


def default_annotation(index: int, interaction: Interaction) -> str:
    """Return the caption a step starts with.

    Args:
        index: 0-based index of the interaction in the capture.
        interaction: Parsed interaction.

    Returns:
        The element's text if non-empty, else ``Step {n}: {kind} on {url}``.
    """
    text = interaction.text_content
    if text:
        return text
    url = interaction.url or UNKNOWN_PAGE
    return f"Step {index + 1}: {interaction.kind.value} on {url}"


def interaction_to_step(flow_id: str, index: int, data: dict[str, Any]) -> Step:
    """Build the step for one raw interaction.

    Args:
        flow_id: Owning flow id.
        index: 0-based index of the interaction in the capture.
        data: Raw interaction dict, stored verbatim.

    Returns:
        Step.
    """
    interaction = parse_interaction(data)
    anchor = interaction.cursor_anchor
    return Step(
        flow_id=flow_id,
        position=position_for_index(index),
        interaction_payload=data,
        screenshot_url=None,
        annotation_text=default_annotation(index, interaction),
        cursor_position_x=anchor.x if anchor else None,
        cursor_position_y=anchor.y if anchor else None,
        is_removed=False,
    )


def parse_recording_to_steps(flow_id: str, capture: Any) -> NormalizationResult:
    """Convert a capture into steps, one per interaction, in capture order.

    Never raises for a malformed capture; the error is returned instead and
    no steps are produced. A capture is malformed only when the interactions
    array is missing or holds a non-object entry. An interaction whose fields
    have an unexpected shape still yields a step, with those fields treated
    as absent.

    Args:
        flow_id: Owning flow id.
        capture: Decoded capture document.

    Returns:
        NormalizationResult.
    """
    try:
        interactions = get_interactions(capture)
        steps = []
        for index, data in enumerate(interactions):
            if not isinstance(data, dict):
                raise CaptureValidationError(
                    f"Invalid interaction at index {index}: expected an object,"
                    f" got {type(data).__name__}"
                )
            steps.append(interaction_to_step(flow_id, index, data))
    except CaptureValidationError as exc:
        logger.error(f"Rejected capture for flow {flow_id}: {exc}")
        return NormalizationResult(steps=[], error=exc)

    logger.info(f"Parsed {len(steps)} steps for flow {flow_id}")
    return NormalizationResult(steps=steps)
