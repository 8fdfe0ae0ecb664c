"""Step persistence boundary.

Editing code depends on the ``StepStore`` protocol only; ``SQLStepStore`` is
the implementation backed by ``cursorflow.db``.

Usage:
    engine, Session = create_db("sqlite:///flows.db")
    store = SQLStepStore(Session)
    store.update_step_position(step_id, 120.0, 48.5)
"""

from __future__ import annotations

from typing import Iterable, Protocol

from sqlalchemy.orm import sessionmaker

from cursorflow.db import crud
from cursorflow.steps import Step


class StepStore(Protocol):
    """Operations the editor needs from wherever steps are persisted."""

    def insert_steps(self, steps: Iterable[Step]) -> crud.BatchResult: ...

    def get_steps(self, flow_id: str, include_removed: bool = True) -> list[Step]: ...

    def update_step_position(self, step_id: str, x: float, y: float) -> None: ...

    def update_step_annotation(self, step_id: str, text: str) -> None: ...

    def update_step_screenshot(self, step_id: str, url: str | None) -> None: ...

    def upsert_steps(self, steps: Iterable[Step]) -> crud.UpsertResult: ...

    def mark_step_as_removed(self, step_id: str, is_removed: bool = True) -> None: ...

    def delete_flow_steps(self, flow_id: str) -> int: ...


class SQLStepStore:
    """StepStore backed by SQLAlchemy.

    Each call uses its own session, so a store may be shared with a worker
    thread that saves drag positions.
    """

    def __init__(self, Session: sessionmaker) -> None:
        """Initialize with a session factory."""
        self._Session = Session

    def insert_steps(self, steps: Iterable[Step]) -> crud.BatchResult:
        """Bulk-insert new steps."""
        with self._Session() as session:
            return crud.insert_steps(session, steps)

    def get_steps(self, flow_id: str, include_removed: bool = True) -> list[Step]:
        """Fetch a flow's steps ordered by position."""
        with self._Session() as session:
            return crud.get_steps(session, flow_id, include_removed=include_removed)

    def update_step_position(self, step_id: str, x: float, y: float) -> None:
        """Persist a step's cursor anchor."""
        with self._Session() as session:
            crud.update_step_position(session, step_id, x, y)

    def update_step_annotation(self, step_id: str, text: str) -> None:
        """Persist a step's annotation text."""
        with self._Session() as session:
            crud.update_step_annotation(session, step_id, text)

    def update_step_screenshot(self, step_id: str, url: str | None) -> None:
        """Persist a step's screenshot URL."""
        with self._Session() as session:
            crud.update_step_screenshot(session, step_id, url)

    def upsert_steps(self, steps: Iterable[Step]) -> crud.UpsertResult:
        """Insert or replace steps keyed by id."""
        with self._Session() as session:
            return crud.upsert_steps(session, steps)

    def mark_step_as_removed(self, step_id: str, is_removed: bool = True) -> None:
        """Soft-delete or restore a step."""
        with self._Session() as session:
            crud.mark_step_as_removed(session, step_id, is_removed)

    def delete_flow_steps(self, flow_id: str) -> int:
        """Hard-delete all steps of a flow."""
        with self._Session() as session:
            return crud.delete_flow_steps(session, flow_id)
