"""Exception types raised across cursorflow."""


class CursorFlowError(Exception):
    """Base class for cursorflow errors."""


class CaptureValidationError(CursorFlowError, ValueError):
    """An uploaded capture does not have the expected structure."""


class MissingDataError(CursorFlowError):
    """A step lacks data required to place its cursor overlay."""

    def __init__(self, step_id: str | None, message: str) -> None:
        """Initialize with the offending step id."""
        super().__init__(f"{message} (step={step_id})")
        self.step_id = step_id


class MissingAnchorError(MissingDataError):
    """A step has no complete cursor anchor."""


class MissingViewportError(MissingDataError):
    """A step's viewport has no usable width/height."""


class PersistenceError(CursorFlowError):
    """A write to the step store failed."""


class DragStateError(CursorFlowError):
    """A pointer event arrived that the drag session cannot accept."""


class FlowNotEditableError(CursorFlowError):
    """An edit was attempted on a flow that isn't a draft."""
