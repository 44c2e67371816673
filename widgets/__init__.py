"""Widget package for declarative UI trees

This package provides:
- Widget component types (Card, ListView, Text, Markdown, ...) and roots
- Widget update types (text value deltas, full root replacement)
- The diff engine turning successive snapshots into minimal updates

This package has no I/O and no dependency on the server or store packages.
"""

from .diff import diff_widget
from .errors import NonCumulativeUpdateError, StructuralError, WidgetDiffError
from .types import (
    ActionConfig,
    Badge,
    BasicRoot,
    Box,
    Button,
    Caption,
    Card,
    CardAction,
    Col,
    Divider,
    Form,
    Icon,
    Image,
    ListView,
    ListViewItem,
    Markdown,
    Row,
    Spacer,
    Text,
    ThemeColor,
    Title,
    WidgetComponent,
    WidgetComponentBase,
    WidgetRoot,
    WidgetRootUpdated,
    WidgetStatus,
    WidgetStreamingTextValueDelta,
    WidgetUpdate,
    is_streaming_text,
    walk_components,
)

__all__ = [
    # Diff
    "diff_widget",
    # Errors
    "WidgetDiffError",
    "StructuralError",
    "NonCumulativeUpdateError",
    # Components
    "ActionConfig",
    "Badge",
    "BasicRoot",
    "Box",
    "Button",
    "Caption",
    "Card",
    "CardAction",
    "Col",
    "Divider",
    "Form",
    "Icon",
    "Image",
    "ListView",
    "ListViewItem",
    "Markdown",
    "Row",
    "Spacer",
    "Text",
    "ThemeColor",
    "Title",
    "WidgetComponent",
    "WidgetComponentBase",
    "WidgetRoot",
    "WidgetStatus",
    # Updates
    "WidgetRootUpdated",
    "WidgetStreamingTextValueDelta",
    "WidgetUpdate",
    # Tree helpers
    "is_streaming_text",
    "walk_components",
]
