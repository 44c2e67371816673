"""Errors raised by the widget diff engine.

Both errors signal a programming mistake in the code producing widget
snapshots. They are not meant to be recovered from.
"""


class WidgetDiffError(ValueError):
    """Base class for widget snapshot contract violations."""

    def __init__(self, component_id: str, message: str):
        super().__init__(message)
        self.component_id = component_id


class StructuralError(WidgetDiffError):
    """A node with an id appeared that was absent from the previous snapshot."""

    def __init__(self, component_id: str):
        super().__init__(
            component_id,
            f"Node {component_id} was not present when the widget was initially "
            "rendered. All nodes with ID must persist across all widget updates.",
        )


class NonCumulativeUpdateError(WidgetDiffError):
    """A streaming text value changed without extending the previous value."""

    def __init__(self, component_id: str):
        super().__init__(
            component_id,
            f"Node {component_id} was updated with a new value that does not extend "
            "its previous value. All widget updates must be cumulative.",
        )
