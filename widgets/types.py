"""Widget types for declarative UI trees

These types are the single source of truth for widget trees streamed to the
client, used across thread items, widget diffing and the streaming emitter.

Key features:
- Every component carries a `type` discriminator plus optional `id`/`key`
- Components with a stable `id` are addressable by incremental updates
- Text and Markdown are the text-bearing nodes whose `value` may stream
- Containers expose their children through `iter_children()` so tree walks
  are a typed visitor rather than generic attribute probing
- Unknown props are preserved (extra="allow") so trees round-trip unchanged
"""

from collections.abc import Iterator
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Shared Props
# ============================================================================


class ThemeColor(BaseModel):
    """Theme-aware color with separate light and dark values."""

    light: str
    dark: str


class WidgetStatus(BaseModel):
    """Status header displayed above a card or list."""

    text: str
    favicon: str | None = None  # URL rendered at the start of the status
    icon: str | None = None
    frame: bool | None = None


class ActionConfig(BaseModel):
    """Declarative action dispatched when the user interacts with a widget.

    Actions with handler="server" are sent back as `threads.custom_action`
    requests; handler="client" actions never reach the server.
    """

    type: str
    payload: Any = None
    handler: Literal["client", "server"] = "server"
    loadingBehavior: Literal["auto", "none", "self", "container"] = "auto"


class CardAction(BaseModel):
    """Confirm/cancel button shown in a card footer."""

    label: str
    action: ActionConfig


# ============================================================================
# Component Base
# ============================================================================


class WidgetComponentBase(BaseModel):
    """Base model for all widget components."""

    model_config = ConfigDict(extra="allow")

    type: str
    id: str | None = None
    key: str | None = None

    def iter_children(self) -> Iterator["WidgetComponentBase"]:
        """Yield direct child components. Leaf components have none."""
        return iter(())


class _Container(WidgetComponentBase):
    """Component that nests other components under `children`."""

    children: list["WidgetComponent"] = Field(default_factory=list)

    def iter_children(self) -> Iterator[WidgetComponentBase]:
        return iter(self.children)


# ============================================================================
# Text-bearing Components
# ============================================================================


class Text(WidgetComponentBase):
    """Plain text with typography controls, optionally streamed."""

    type: Literal["Text"] = "Text"
    value: str
    streaming: bool | None = None
    italic: bool | None = None
    lineThrough: bool | None = None
    color: str | ThemeColor | None = None
    weight: Literal["normal", "medium", "semibold", "bold"] | None = None
    width: float | str | None = None
    size: Literal["xs", "sm", "md", "lg", "xl"] | None = None
    textAlign: Literal["start", "center", "end"] | None = None
    truncate: bool | None = None
    minLines: int | None = None
    maxLines: int | None = None


class Markdown(WidgetComponentBase):
    """Markdown source, optionally streamed."""

    type: Literal["Markdown"] = "Markdown"
    value: str
    streaming: bool | None = None


# ============================================================================
# Leaf Components
# ============================================================================


class Title(WidgetComponentBase):
    type: Literal["Title"] = "Title"
    value: str
    size: str | None = None
    color: str | ThemeColor | None = None
    weight: str | None = None
    textAlign: Literal["start", "center", "end"] | None = None
    truncate: bool | None = None
    maxLines: int | None = None


class Caption(WidgetComponentBase):
    type: Literal["Caption"] = "Caption"
    value: str
    size: Literal["sm", "md", "lg"] | None = None
    color: str | ThemeColor | None = None
    weight: str | None = None
    textAlign: Literal["start", "center", "end"] | None = None
    truncate: bool | None = None
    maxLines: int | None = None


class Badge(WidgetComponentBase):
    type: Literal["Badge"] = "Badge"
    label: str
    color: str | None = None
    variant: Literal["solid", "soft", "outline"] | None = None
    size: Literal["sm", "md", "lg"] | None = None
    pill: bool | None = None


class Icon(WidgetComponentBase):
    type: Literal["Icon"] = "Icon"
    name: str
    color: str | ThemeColor | None = None
    size: str | None = None


class Image(WidgetComponentBase):
    type: Literal["Image"] = "Image"
    src: str
    alt: str | None = None
    fit: Literal["cover", "contain", "fill", "scale-down", "none"] | None = None
    radius: str | None = None
    height: float | str | None = None
    width: float | str | None = None


class Button(WidgetComponentBase):
    type: Literal["Button"] = "Button"
    label: str | None = None
    onClickAction: ActionConfig | None = None
    iconStart: str | None = None
    iconEnd: str | None = None
    style: Literal["primary", "secondary"] | None = None
    color: str | None = None
    variant: Literal["solid", "soft", "outline", "ghost"] | None = None
    size: str | None = None
    block: bool | None = None
    disabled: bool | None = None
    submit: bool | None = None


class Divider(WidgetComponentBase):
    type: Literal["Divider"] = "Divider"
    color: str | ThemeColor | None = None
    size: float | str | None = None
    spacing: float | str | None = None
    flush: bool | None = None


class Spacer(WidgetComponentBase):
    type: Literal["Spacer"] = "Spacer"
    minSize: float | str | None = None


# ============================================================================
# Layout Components
# ============================================================================


class Box(_Container):
    type: Literal["Box"] = "Box"
    direction: Literal["row", "col"] | None = None
    align: str | None = None
    justify: str | None = None
    gap: float | str | None = None
    padding: float | str | dict[str, Any] | None = None
    background: str | ThemeColor | None = None


class Row(_Container):
    type: Literal["Row"] = "Row"
    align: str | None = None
    justify: str | None = None
    gap: float | str | None = None
    padding: float | str | dict[str, Any] | None = None


class Col(_Container):
    type: Literal["Col"] = "Col"
    align: str | None = None
    justify: str | None = None
    gap: float | str | None = None
    padding: float | str | dict[str, Any] | None = None


class Form(_Container):
    type: Literal["Form"] = "Form"
    onSubmitAction: ActionConfig | None = None
    gap: float | str | None = None


class ListViewItem(_Container):
    """Single row inside a ListView."""

    type: Literal["ListViewItem"] = "ListViewItem"
    onClickAction: ActionConfig | None = None
    gap: float | str | None = None
    align: str | None = None


WidgetComponent = Annotated[
    Union[
        Text,
        Markdown,
        Title,
        Caption,
        Badge,
        Icon,
        Image,
        Button,
        Divider,
        Spacer,
        Box,
        Row,
        Col,
        Form,
        ListViewItem,
    ],
    Field(discriminator="type"),
]


# ============================================================================
# Roots
# ============================================================================


class Card(_Container):
    """Versatile root container for structuring widget content."""

    type: Literal["Card"] = "Card"
    asForm: bool | None = None
    background: str | ThemeColor | None = None
    size: Literal["sm", "md", "lg", "full"] | None = None
    padding: float | str | dict[str, Any] | None = None
    status: WidgetStatus | None = None
    collapsed: bool | None = None
    confirm: CardAction | None = None
    cancel: CardAction | None = None
    theme: Literal["light", "dark"] | None = None


class ListView(WidgetComponentBase):
    """Root container rendering a collection of list items."""

    type: Literal["ListView"] = "ListView"
    children: list[ListViewItem] = Field(default_factory=list)
    limit: int | Literal["auto"] | None = None
    status: WidgetStatus | None = None
    theme: Literal["light", "dark"] | None = None

    def iter_children(self) -> Iterator[WidgetComponentBase]:
        return iter(self.children)


class BasicRoot(_Container):
    """Layout-free root for dynamically composed widgets."""

    type: Literal["Basic"] = "Basic"
    gap: float | str | None = None
    padding: float | str | dict[str, Any] | None = None
    theme: Literal["light", "dark"] | None = None


WidgetRoot = Annotated[Union[Card, ListView, BasicRoot], Field(discriminator="type")]


for _model in (_Container, Box, Row, Col, Form, ListViewItem, Card, ListView, BasicRoot):
    _model.model_rebuild()


# ============================================================================
# Widget Updates
# ============================================================================


class WidgetStreamingTextValueDelta(BaseModel):
    """Append-only text update for a single Text/Markdown node."""

    type: Literal["widget.streaming_text.value_delta"] = "widget.streaming_text.value_delta"
    component_id: str
    delta: str
    done: bool


class WidgetRootUpdated(BaseModel):
    """Full replacement of the widget tree."""

    type: Literal["widget.root.updated"] = "widget.root.updated"
    widget: WidgetRoot


WidgetUpdate = Annotated[
    Union[WidgetStreamingTextValueDelta, WidgetRootUpdated],
    Field(discriminator="type"),
]


# ============================================================================
# Tree Helpers
# ============================================================================


STREAMING_TEXT_TYPES = (Text, Markdown)


def is_streaming_text(component: WidgetComponentBase) -> bool:
    """Return True for text-bearing nodes whose value may stream."""
    return isinstance(component, STREAMING_TEXT_TYPES)


def walk_components(component: WidgetComponentBase) -> Iterator[WidgetComponentBase]:
    """Depth-first pre-order walk over a widget tree, root included."""
    yield component
    for child in component.iter_children():
        yield from walk_components(child)
