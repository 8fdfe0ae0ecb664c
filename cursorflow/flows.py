"""Create or replace a cursor flow from an uploaded capture.

The flow record and its steps are separate outcomes: a flow that was
created or reset stays in place even when its steps could not be parsed or
only partly saved, and the step problem is reported in ``error``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from loguru import logger
from sqlalchemy.orm import Session as SaSession

from cursorflow.db import crud
from cursorflow.db.models import CursorFlow
from cursorflow.errors import PersistenceError
from cursorflow.normalizer import parse_recording_to_steps
from cursorflow.steps import Step
from cursorflow.utils import trace

STATUS_BADGES = {
    "live": "success",
    "published": "success",
    "draft": "warning",
    "requested": "neutral",
}


@dataclass
class FlowUploadResult:
    """Outcome of uploading a capture to a flow."""

    success: bool
    flow: CursorFlow | None = None
    steps: list[Step] | None = None
    error: str | None = None


def badge_variant_for_status(status: str) -> str:
    """Return the badge variant used to display a flow status."""
    return STATUS_BADGES.get(status.lower(), "neutral")


def _prepare_flow(
    session: SaSession,
    name: str,
    organization_id: str,
    user_id: str,
    existing_flow_id: str | None,
) -> tuple[CursorFlow | None, str | None, str | None]:
    """Create a new draft flow or reset an existing one.

    Returns:
        tuple of (flow, fatal error, step error).
    """
    if existing_flow_id is None:
        try:
            flow = crud.insert_flow(session, {
                "name": name,
                "description": "Uploaded via dashboard",
                "status": "draft",
                "organization_id": organization_id,
                "created_by": user_id,
            })
        except PersistenceError as exc:
            return None, str(exc), None
        return flow, None, None

    try:
        flow = crud.update_flow(
            session,
            existing_flow_id,
            name=name,
            description="Updated via dashboard",
            status="draft",
            updated_at=datetime.now(timezone.utc),
        )
    except PersistenceError as exc:
        return None, str(exc), None
    if flow is None:
        return None, f"Flow not found: {existing_flow_id}", None
    try:
        crud.delete_flow_steps(session, existing_flow_id)
    except PersistenceError as exc:
        return flow, None, f"Flow updated but failed to remove old steps: {exc}"
    return flow, None, None


@trace(logger)
def process_recording_for_flow(
    session: SaSession,
    capture: Any,
    name: str,
    organization_id: str,
    user_id: str,
    existing_flow_id: str | None = None,
) -> FlowUploadResult:
    """Create a flow from a capture, or replace an existing flow's steps.

    Args:
        session: The database session.
        capture: Decoded capture document.
        name: Flow name.
        organization_id: Owning organization.
        user_id: Uploading user.
        existing_flow_id: Flow to re-upload into; its steps are hard-deleted
            and it returns to draft.

    Returns:
        FlowUploadResult. ``success`` reflects the flow record; ``error``
        carries any step problem.
    """
    verb = "updated" if existing_flow_id else "created"
    flow, fatal, step_error = _prepare_flow(
        session, name, organization_id, user_id, existing_flow_id
    )
    if flow is None:
        logger.error(f"Upload failed: {fatal}")
        return FlowUploadResult(success=False, error=fatal)
    if step_error:
        return FlowUploadResult(success=True, flow=flow, error=step_error)

    result = parse_recording_to_steps(flow.id, capture)
    if result.error:
        return FlowUploadResult(
            success=True,
            flow=flow,
            steps=[],
            error=f"Flow {verb} but failed to parse steps: {result.error}",
        )

    if result.steps:
        batch = crud.insert_steps(session, result.steps)
        if not batch.success:
            return FlowUploadResult(
                success=True,
                flow=flow,
                steps=crud.get_steps(session, flow.id),
                error=(
                    f"Flow {verb} but some steps failed to save: "
                    + "; ".join(str(exc) for exc in batch.errors)
                ),
            )
    logger.info(f"Flow {flow.id} {verb} with {len(result.steps)} steps")
    return FlowUploadResult(success=True, flow=flow, steps=result.steps)
