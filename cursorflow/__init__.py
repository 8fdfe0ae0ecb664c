"""cursorflow - recorded browser sessions as editable cursor walkthroughs.

Normalizes a capture into ordered steps and keeps each step's cursor overlay
anchored to the same logical pixel of its screenshot at any rendered size.
"""

__version__ = "0.1.0"

from cursorflow.config import config, config_override
from cursorflow.db.crud import BatchResult, UpsertResult
from cursorflow.drag import DragSession, Dragging, FlowEditState, Idle, PositionSaver, SaveOutcome
from cursorflow.editor import FlowEditor
from cursorflow.errors import (
    CaptureValidationError,
    CursorFlowError,
    DragStateError,
    FlowNotEditableError,
    MissingAnchorError,
    MissingDataError,
    MissingViewportError,
    PersistenceError,
)
from cursorflow.events import (
    ClickInteraction,
    CursorAnchor,
    ElementDescriptor,
    Interaction,
    InteractionKind,
    NavigationInteraction,
    PageInfo,
    Viewport,
    parse_interaction,
)
from cursorflow.flows import FlowUploadResult, process_recording_for_flow
from cursorflow.geometry import (
    Projection,
    Rect,
    clamp_anchor,
    overlay_position,
    project_anchor,
    screen_delta_to_capture_delta,
)
from cursorflow.normalizer import (
    NormalizationResult,
    parse_recording_to_steps,
    read_capture_file,
)
from cursorflow.screenshots import ScreenshotStore, attach_screenshots
from cursorflow.steps import Step, StepState, move_step, renumber_positions
from cursorflow.storage import SQLStepStore, StepStore

__all__ = [
    # Version
    "__version__",
    # Configuration
    "config",
    "config_override",
    # Capture model
    "InteractionKind",
    "Interaction",
    "ClickInteraction",
    "NavigationInteraction",
    "ElementDescriptor",
    "CursorAnchor",
    "PageInfo",
    "Viewport",
    "parse_interaction",
    # Steps
    "Step",
    "StepState",
    "move_step",
    "renumber_positions",
    # Normalization
    "NormalizationResult",
    "parse_recording_to_steps",
    "read_capture_file",
    # Geometry
    "Projection",
    "Rect",
    "project_anchor",
    "overlay_position",
    "screen_delta_to_capture_delta",
    "clamp_anchor",
    # Editing
    "FlowEditState",
    "FlowEditor",
    "DragSession",
    "Idle",
    "Dragging",
    "PositionSaver",
    "SaveOutcome",
    # Persistence
    "StepStore",
    "SQLStepStore",
    "BatchResult",
    "UpsertResult",
    "FlowUploadResult",
    "process_recording_for_flow",
    "ScreenshotStore",
    "attach_screenshots",
    # Errors
    "CursorFlowError",
    "CaptureValidationError",
    "MissingDataError",
    "MissingAnchorError",
    "MissingViewportError",
    "PersistenceError",
    "DragStateError",
    "FlowNotEditableError",
]
