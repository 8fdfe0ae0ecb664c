"""SQLAlchemy models for cursorflow."""

import uuid
from datetime import datetime, timezone

import sqlalchemy as sa

from cursorflow.db import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# https://groups.google.com/g/sqlalchemy/c/wlr7sShU6-k
class ForceFloat(sa.TypeDecorator):
    """Custom SQLAlchemy type decorator for floating-point numbers."""

    impl = sa.Numeric(12, 3, asdecimal=False)
    cache_ok = True

    def process_result_value(
        self,
        value: int | float | str | None,
        dialect: str,
    ) -> float | None:
        """Convert the result value to float."""
        if value is not None:
            value = float(value)
        return value


FLOW_STATUSES = ("draft", "live", "archived", "paused", "requested")


class CursorFlow(Base):
    """Class representing a cursor flow in the database."""

    __tablename__ = "cursor_flow"

    id = sa.Column(sa.String(36), primary_key=True, default=_new_id)
    name = sa.Column(sa.String, nullable=False)
    description = sa.Column(sa.String)
    status = sa.Column(sa.String, nullable=False, default="draft")
    organization_id = sa.Column(sa.String)
    created_by = sa.Column(sa.String)
    created_at = sa.Column(sa.DateTime(timezone=True), default=_utcnow)
    updated_at = sa.Column(sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
    published_at = sa.Column(sa.DateTime(timezone=True))
    published_by = sa.Column(sa.String)

    steps = sa.orm.relationship(
        "CursorFlowStep",
        back_populates="flow",
        order_by="CursorFlowStep.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        sa.CheckConstraint(
            sa.column("status").in_(FLOW_STATUSES), name="status"
        ),
    )

    @property
    def is_editable(self) -> bool:
        """Whether the flow is a draft."""
        return self.status == "draft"


class CursorFlowStep(Base):
    """Class representing a cursor flow step in the database."""

    __tablename__ = "cursor_flow_step"

    id = sa.Column(sa.String(36), primary_key=True, default=_new_id)
    flow_id = sa.Column(
        sa.ForeignKey("cursor_flow.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = sa.Column(sa.Integer, nullable=False)
    step_data = sa.Column(sa.JSON)
    screenshot_url = sa.Column(sa.String)
    annotation_text = sa.Column(sa.String)
    cursor_position_x = sa.Column(ForceFloat)
    cursor_position_y = sa.Column(ForceFloat)
    is_removed = sa.Column(sa.Boolean, nullable=False, default=False)
    created_at = sa.Column(sa.DateTime(timezone=True), default=_utcnow)
    updated_at = sa.Column(sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    flow = sa.orm.relationship("CursorFlow", back_populates="steps")
