"""Command line interface.

Usage:
    cursorflow upload recording.json --name "Create invoice" \
        --organization_id org-1 --user_id user-1
    cursorflow steps <flow_id>
    cursorflow project <step_id>
    cursorflow publish <flow_id>
"""

from __future__ import annotations

from dataclasses import asdict

from cursorflow.db import create_db, crud
from cursorflow.flows import process_recording_for_flow
from cursorflow.geometry import project_anchor
from cursorflow.normalizer import read_capture_file
from cursorflow.screenshots import ScreenshotStore, attach_screenshots
from cursorflow.storage import SQLStepStore


def _session_factory(db_url: str | None):
    _, Session = create_db(db_url)
    return Session


def upload(
    path: str,
    name: str,
    organization_id: str,
    user_id: str,
    flow_id: str | None = None,
    db_url: str | None = None,
    screenshot_dir: str | None = None,
) -> dict:
    """Create a flow from a capture file, or replace the steps of ``flow_id``."""
    Session = _session_factory(db_url)
    capture = read_capture_file(path)
    with Session() as session:
        result = process_recording_for_flow(
            session, capture, name, organization_id, user_id, existing_flow_id=flow_id
        )
        summary = {
            "success": result.success,
            "flow_id": result.flow.id if result.flow else None,
            "steps": len(result.steps or []),
            "error": result.error,
        }
    if result.steps:
        failures = attach_screenshots(
            ScreenshotStore(screenshot_dir), SQLStepStore(Session), result.steps
        )
        summary["screenshot_failures"] = sorted(failures)
    return summary


def steps(flow_id: str, db_url: str | None = None, include_removed: bool = False) -> list[dict]:
    """List a flow's steps in order."""
    Session = _session_factory(db_url)
    with Session() as session:
        return [
            {
                "id": step.id,
                "position": step.position,
                "kind": step.kind.value,
                "annotation": step.annotation_text,
                "anchor": [step.cursor_position_x, step.cursor_position_y],
                "removed": step.is_removed,
            }
            for step in crud.get_steps(session, flow_id, include_removed=include_removed)
        ]


def project(step_id: str, db_url: str | None = None) -> dict:
    """Print where a step's cursor overlay sits, as viewport percentages."""
    Session = _session_factory(db_url)
    with Session() as session:
        step = crud.get_step(session, step_id)
    if step is None:
        raise ValueError(f"No step found with id {step_id}")
    return asdict(project_anchor(step))


def publish(
    flow_id: str, user_id: str | None = None, db_url: str | None = None
) -> str | None:
    """Set a flow live."""
    Session = _session_factory(db_url)
    with Session() as session:
        flow = crud.publish_flow(session, flow_id, user_id=user_id)
        return flow.status if flow else None


def rollback(flow_id: str, db_url: str | None = None) -> str | None:
    """Return a published flow to draft."""
    Session = _session_factory(db_url)
    with Session() as session:
        flow = crud.rollback_flow(session, flow_id)
        return flow.status if flow else None


def renumber(flow_id: str, db_url: str | None = None) -> list[int]:
    """Respace a flow's step positions."""
    Session = _session_factory(db_url)
    with Session() as session:
        return [step.position for step in crud.renumber_steps(session, flow_id)]


def main() -> None:
    """Entry point for the cursorflow CLI."""
    import fire
    fire.Fire({
        "upload": upload,
        "steps": steps,
        "project": project,
        "publish": publish,
        "rollback": rollback,
        "renumber": renumber,
    })


if __name__ == "__main__":
    main()
