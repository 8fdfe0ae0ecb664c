"""Attach captured screenshots to steps.

Screenshots are written to a directory tree laid out as
``{root}/{flow_id}/{step_id}.png``; steps only ever store the resulting URL.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from loguru import logger

from cursorflow.config import config
from cursorflow.errors import PersistenceError
from cursorflow.steps import Step
from cursorflow.storage import StepStore
from cursorflow.utils import convert_png_to_binary, image_from_base64


class ScreenshotStore:
    """File-backed screenshot storage."""

    def __init__(self, root: str | Path | None = None) -> None:
        """Initialize with the storage root (defaults to config.SCREENSHOT_DIR)."""
        self.root = Path(root or config.SCREENSHOT_DIR)

    def path_for(self, flow_id: str, step_id: str) -> Path:
        """Return the file a step's screenshot is stored in."""
        return self.root / flow_id / f"{step_id}.png"

    def url_for(self, flow_id: str, step_id: str) -> str:
        """Return the public URL of a step's screenshot."""
        return self.path_for(flow_id, step_id).resolve().as_uri()

    def upload(self, data: str, flow_id: str, step_id: str) -> str:
        """Store a base64 screenshot as PNG, replacing any previous one.

        Args:
            data: Base64 or data URI encoded image.
            flow_id: Owning flow.
            step_id: Owning step.

        Returns:
            URL of the stored screenshot.

        Raises:
            ValueError: If the data isn't a decodable image.
        """
        image = image_from_base64(data)
        path = self.path_for(flow_id, step_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(convert_png_to_binary(image))
        return self.url_for(flow_id, step_id)

    def delete(self, flow_id: str, step_id: str) -> bool:
        """Delete a step's screenshot.

        Returns:
            True if a file was removed.
        """
        path = self.path_for(flow_id, step_id)
        if not path.exists():
            return False
        path.unlink()
        return True


def attach_screenshots(
    screenshot_store: ScreenshotStore,
    step_store: StepStore,
    steps: Iterable[Step],
) -> dict[str, Exception]:
    """Upload the screenshots embedded in step payloads and record their URLs.

    Steps whose payload carries no ``screenshot`` are skipped.

    Args:
        screenshot_store: Where images are written.
        step_store: Where URLs are recorded.
        steps: Persisted steps; their ``screenshot_url`` is updated in place.

    Returns:
        Errors by step id for screenshots that could not be attached.
    """
    failures: dict[str, Exception] = {}
    for step in steps:
        data = step.interaction_payload.get("screenshot")
        if not data:
            continue
        try:
            url = screenshot_store.upload(data, step.flow_id, step.id)
            step_store.update_step_screenshot(step.id, url)
        except (ValueError, OSError, PersistenceError) as exc:
            logger.warning(f"Could not attach screenshot to step {step.id}: {exc}")
            failures[step.id] = exc
            continue
        step.screenshot_url = url
    return failures
