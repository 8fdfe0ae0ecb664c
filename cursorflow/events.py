"""Wire model for captured browser interactions.

A capture is an ordered list of interactions emitted by the recording
extension. Field presence varies by kind, so each kind gets its own model
and ``parse_interaction`` dispatches on the ``type`` tag.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, TypeVar, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    WrapValidator,
    field_validator,
)


T = TypeVar("T")


def _none_if_invalid(value: Any, handler: Any) -> Any:
    # extension builds disagree on field shapes; an unreadable field is absent
    try:
        return handler(value)
    except ValidationError:
        return None


Lenient = Annotated[Union[T, None], WrapValidator(_none_if_invalid)]


class InteractionKind(str, Enum):
    """Kinds of recorded interactions."""

    CLICK = "click"
    NAVIGATION = "navigation"


class WireModel(BaseModel):
    """Base for capture models: camelCase on the wire, unknown fields kept."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class Viewport(WireModel):
    """Rendering surface at capture time."""

    width: Lenient[float] = None
    height: Lenient[float] = None
    scroll_x: Lenient[float] = Field(0, alias="scrollX")
    scroll_y: Lenient[float] = Field(0, alias="scrollY")
    device_pixel_ratio: Lenient[float] = Field(1, alias="devicePixelRatio")


class ElementDescriptor(WireModel):
    """The DOM element an interaction targeted."""

    tag_name: Lenient[str] = Field(None, alias="tagName")
    text_content: Lenient[str] = Field(None, alias="textContent")
    viewport: Lenient[Viewport] = None


class PageInfo(WireModel):
    """URL metadata of a page."""

    url: Lenient[str] = None
    title: Lenient[str] = None


class CursorAnchor(WireModel):
    """Cursor coordinate in capture-viewport pixels.

    Either coordinate may be missing; such an anchor can't be projected.
    """

    x: Lenient[float] = None
    y: Lenient[float] = None


class BaseInteraction(WireModel):
    """Fields shared by every interaction kind."""

    kind: InteractionKind = Field(alias="type")
    element: Lenient[ElementDescriptor] = None
    cursor_anchor: Lenient[CursorAnchor] = Field(
        None,
        validation_alias=AliasChoices("position", "cursorAnchor", "cursor_anchor"),
    )
    page_info: Lenient[PageInfo] = Field(None, alias="pageInfo")
    screenshot: Lenient[str] = None
    timestamp: Lenient[Union[float, str]] = None

    @property
    def text_content(self) -> str | None:
        """Visible text of the targeted element."""
        if self.element is None:
            return None
        return self.element.text_content

    @property
    def url(self) -> str | None:
        """URL of the page the interaction happened on."""
        if self.page_info is None:
            return None
        return self.page_info.url

    @property
    def viewport(self) -> Viewport | None:
        """Viewport snapshot recorded with the element, if any."""
        if self.element is None:
            return None
        return self.element.viewport


class ClickInteraction(BaseInteraction):
    """A click on an element."""

    kind: Literal[InteractionKind.CLICK] = Field(InteractionKind.CLICK, alias="type")


class NavigationInteraction(BaseInteraction):
    """A page navigation."""

    kind: Literal[InteractionKind.NAVIGATION] = Field(
        InteractionKind.NAVIGATION, alias="type"
    )
    from_page: Lenient[PageInfo] = Field(None, alias="fromPage")

    @field_validator("from_page", mode="before")
    @classmethod
    def _url_string_to_page(cls, value: Any) -> Any:
        # older extension builds send the previous URL as a bare string
        if isinstance(value, str):
            return {"url": value}
        return value


Interaction = Union[ClickInteraction, NavigationInteraction]

INTERACTION_TYPE_MAP: dict[InteractionKind, type[BaseInteraction]] = {
    InteractionKind.CLICK: ClickInteraction,
    InteractionKind.NAVIGATION: NavigationInteraction,
}


def get_interaction_kind(data: dict[str, Any] | None) -> InteractionKind:
    """Return the kind tag of a raw interaction, defaulting to click.

    Args:
        data: Raw interaction dict as found in the capture.

    Returns:
        InteractionKind; unrecognized or missing tags map to CLICK.
    """
    if not data:
        return InteractionKind.CLICK
    raw = data.get("type")
    if isinstance(raw, str) and raw.lower() == InteractionKind.NAVIGATION.value:
        return InteractionKind.NAVIGATION
    return InteractionKind.CLICK


def parse_interaction(data: dict[str, Any]) -> Interaction:
    """Validate a raw interaction dict into its kind-specific model.

    The input dict is not modified. Fields with an unexpected shape are read
    as missing rather than rejected.

    Args:
        data: Raw interaction dict.

    Returns:
        ClickInteraction or NavigationInteraction.
    """
    kind = get_interaction_kind(data)
    cls = INTERACTION_TYPE_MAP[kind]
    return cls.model_validate({**data, "type": kind})
