"""CRUD operations for the cursorflow database.

Write helpers raise ``PersistenceError`` on store failures after rolling the
session back; batch helpers collect failures instead of raising so callers
can report which rows did not land.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

import sqlalchemy as sa
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as SaSession

from cursorflow.config import config
from cursorflow.db.models import FLOW_STATUSES, CursorFlow, CursorFlowStep
from cursorflow.errors import PersistenceError
from cursorflow.steps import Step, position_for_index, step_from_row

# Step fields whose names differ from their column names
_STEP_FIELD_TO_COLUMN = {
    "interaction_payload": "step_data",
}


@dataclass
class BatchResult:
    """Outcome of a batched insert."""

    inserted: int = 0
    errors: list[Exception] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Whether every batch was written."""
        return not self.errors


@dataclass
class UpsertResult:
    """Outcome of a bulk upsert, per step id."""

    saved_ids: list[str] = field(default_factory=list)
    failed: dict[str, Exception] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        """Whether every row was written."""
        return not self.failed

    @property
    def failed_ids(self) -> list[str]:
        """Ids of rows that were not written."""
        return list(self.failed)


def _step_to_row_data(step: Step) -> dict[str, Any]:
    """Map a Step onto CursorFlowStep column values."""
    data = step.to_record()
    return {_STEP_FIELD_TO_COLUMN.get(key, key): value for key, value in data.items()}


def _commit(session: SaSession, action: str) -> None:
    """Commit, rolling back and raising PersistenceError on failure."""
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error(f"Failed to {action}: {exc}")
        raise PersistenceError(f"Failed to {action}: {exc}") from exc


# ---------------------------------------------------------------------------
# Flows
# ---------------------------------------------------------------------------


def insert_flow(session: SaSession, flow_data: dict) -> CursorFlow:
    """Insert a cursor flow into the db.

    Args:
        session (sa.orm.Session): The database session.
        flow_data (dict): Column values of the flow.

    Returns:
        CursorFlow: The flow object.
    """
    flow_data = {"status": "draft", **flow_data}
    db_obj = CursorFlow(**flow_data)
    session.add(db_obj)
    _commit(session, "insert flow")
    session.refresh(db_obj)
    logger.info(f"Created flow {db_obj.id} ({db_obj.name!r})")
    return db_obj


def get_flow(session: SaSession, flow_id: str) -> CursorFlow | None:
    """Retrieve a flow by id."""
    return session.get(CursorFlow, flow_id)


def get_flows(session: SaSession, organization_id: str | None = None) -> list[CursorFlow]:
    """Retrieve flows, newest first, optionally for one organization."""
    query = session.query(CursorFlow)
    if organization_id:
        query = query.filter(CursorFlow.organization_id == organization_id)
    return query.order_by(CursorFlow.created_at.desc()).all()


def update_flow(session: SaSession, flow_id: str, **values: Any) -> CursorFlow | None:
    """Update columns of a flow.

    Returns:
        The updated flow, or None if no flow has that id.
    """
    flow = get_flow(session, flow_id)
    if flow is None:
        logger.error(f"No flow found with id {flow_id}.")
        return None
    for key, value in values.items():
        setattr(flow, key, value)
    _commit(session, f"update flow {flow_id}")
    return flow


def update_flow_status(
    session: SaSession,
    flow_id: str,
    status: str,
    user_id: str | None = None,
) -> CursorFlow | None:
    """Set a flow's status.

    Publishing (status ``live``) records when and by whom.

    Raises:
        ValueError: If the status isn't a known flow status.
    """
    if status not in FLOW_STATUSES:
        raise ValueError(f"Unknown flow status: {status!r}")
    values: dict[str, Any] = {"status": status}
    if status == "live":
        values["published_at"] = datetime.now(timezone.utc)
        values["published_by"] = user_id
    flow = update_flow(session, flow_id, **values)
    if flow is not None:
        logger.info(f"Flow {flow_id} is now {status}")
    return flow


def publish_flow(
    session: SaSession, flow_id: str, user_id: str | None = None
) -> CursorFlow | None:
    """Publish a flow by setting its status to live."""
    return update_flow_status(session, flow_id, "live", user_id=user_id)


def rollback_flow(session: SaSession, flow_id: str) -> CursorFlow | None:
    """Roll a published flow back to draft."""
    return update_flow_status(session, flow_id, "draft")


def delete_flow(session: SaSession, flow_id: str) -> bool:
    """Delete a flow and hard-delete its steps.

    Returns:
        True if a flow was deleted.
    """
    flow = get_flow(session, flow_id)
    if flow is None:
        return False
    session.delete(flow)
    _commit(session, f"delete flow {flow_id}")
    logger.info(f"Deleted flow {flow_id}")
    return True


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


def insert_steps(
    session: SaSession,
    steps: Iterable[Step],
    batch_size: int | None = None,
) -> BatchResult:
    """Insert steps using the Core API, in batches.

    A failed batch is rolled back and recorded; later batches are still
    attempted.

    Args:
        session (sa.orm.Session): The database session.
        steps (Iterable[Step]): Steps to insert. Their ids are kept.
        batch_size (int, optional): Rows per statement. Defaults to
            config.STEP_INSERT_BATCH_SIZE.

    Returns:
        BatchResult: Number of rows written and the errors of failed batches.
    """
    batch_size = batch_size or config.STEP_INSERT_BATCH_SIZE
    rows = [_step_to_row_data(step) for step in steps]
    result = BatchResult()
    now = datetime.now(timezone.utc)
    for start in range(0, len(rows), batch_size):
        batch = rows[start:start + batch_size]
        for row in batch:
            row.setdefault("created_at", now)
            row.setdefault("updated_at", now)
        try:
            session.execute(sa.insert(CursorFlowStep), batch)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error(f"Error creating step batch at offset {start}: {exc}")
            result.errors.append(exc)
            continue
        result.inserted += len(batch)
    logger.info(f"Inserted {result.inserted}/{len(rows)} steps")
    return result


def get_step_rows(
    session: SaSession,
    flow_id: str,
    include_removed: bool = True,
) -> list[CursorFlowStep]:
    """Retrieve the step rows of a flow, ordered by position."""
    query = session.query(CursorFlowStep).filter(CursorFlowStep.flow_id == flow_id)
    if not include_removed:
        query = query.filter(CursorFlowStep.is_removed.is_(False))
    return query.order_by(CursorFlowStep.position).all()


def get_steps(
    session: SaSession,
    flow_id: str,
    include_removed: bool = True,
) -> list[Step]:
    """Retrieve the steps of a flow, ordered by position ascending.

    Args:
        session (sa.orm.Session): The database session.
        flow_id (str): The flow id.
        include_removed (bool): Whether to include soft-deleted steps.

    Returns:
        list[Step]: The steps.
    """
    return [
        step_from_row(row)
        for row in get_step_rows(session, flow_id, include_removed=include_removed)
    ]


def get_step(session: SaSession, step_id: str) -> Step | None:
    """Retrieve one step by id."""
    row = session.get(CursorFlowStep, step_id)
    return step_from_row(row) if row is not None else None


def _update_step(session: SaSession, step_id: str, values: dict[str, Any]) -> None:
    """Update only the given columns of one step.

    Raises:
        PersistenceError: If the step doesn't exist or the write fails.
    """
    try:
        result = session.execute(
            sa.update(CursorFlowStep)
            .where(CursorFlowStep.id == step_id)
            .values(**values, updated_at=datetime.now(timezone.utc))
        )
    except SQLAlchemyError as exc:
        session.rollback()
        raise PersistenceError(f"Failed to update step {step_id}: {exc}") from exc
    if result.rowcount == 0:
        session.rollback()
        raise PersistenceError(f"No step found with id {step_id}")
    _commit(session, f"update step {step_id}")


def update_step_position(session: SaSession, step_id: str, x: float, y: float) -> None:
    """Update a step's cursor anchor, leaving every other field untouched.

    Args:
        session (sa.orm.Session): The database session.
        step_id (str): The step id.
        x (float): Anchor x in capture-viewport pixels.
        y (float): Anchor y in capture-viewport pixels.
    """
    _update_step(session, step_id, {"cursor_position_x": x, "cursor_position_y": y})
    logger.debug(f"Saved anchor ({x:.1f}, {y:.1f}) for step {step_id}")


def update_step_annotation(session: SaSession, step_id: str, text: str) -> None:
    """Update only a step's annotation text."""
    _update_step(session, step_id, {"annotation_text": text})


def update_step_screenshot(session: SaSession, step_id: str, url: str | None) -> None:
    """Set or clear a step's screenshot URL."""
    _update_step(session, step_id, {"screenshot_url": url})


def mark_step_as_removed(session: SaSession, step_id: str, is_removed: bool = True) -> None:
    """Soft-delete (or restore) a step."""
    _update_step(session, step_id, {"is_removed": is_removed})
    logger.info(f"Step {step_id} {'removed' if is_removed else 'restored'}")


def upsert_steps(session: SaSession, steps: Iterable[Step]) -> UpsertResult:
    """Insert or wholesale replace steps keyed by id.

    Each row is committed on its own so one bad row does not discard the
    others.

    Args:
        session (sa.orm.Session): The database session.
        steps (Iterable[Step]): Steps with ids.

    Returns:
        UpsertResult: Saved ids and the errors of failed ids.
    """
    result = UpsertResult()
    for step in steps:
        try:
            session.merge(CursorFlowStep(**_step_to_row_data(step)))
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error(f"Error saving step {step.id}: {exc}")
            result.failed[step.id] = exc
            continue
        result.saved_ids.append(step.id)
    return result


def delete_step(session: SaSession, step_id: str) -> bool:
    """Hard-delete one step.

    Returns:
        True if a step was deleted.
    """
    result = session.execute(sa.delete(CursorFlowStep).where(CursorFlowStep.id == step_id))
    _commit(session, f"delete step {step_id}")
    return result.rowcount > 0


def delete_flow_steps(session: SaSession, flow_id: str) -> int:
    """Hard-delete every step of a flow.

    Returns:
        Number of steps deleted.
    """
    result = session.execute(
        sa.delete(CursorFlowStep).where(CursorFlowStep.flow_id == flow_id)
    )
    _commit(session, f"delete steps of flow {flow_id}")
    logger.info(f"Deleted {result.rowcount} steps of flow {flow_id}")
    return result.rowcount


def renumber_steps(session: SaSession, flow_id: str) -> list[Step]:
    """Reassign evenly spaced positions to a flow's steps, keeping their order.

    Returns:
        The renumbered steps.
    """
    rows = get_step_rows(session, flow_id)
    for index, row in enumerate(rows):
        row.position = position_for_index(index)
    _commit(session, f"renumber steps of flow {flow_id}")
    logger.info(f"Renumbered {len(rows)} steps of flow {flow_id}")
    return [step_from_row(row) for row in rows]
