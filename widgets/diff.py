"""Widget snapshot diffing

Compares two snapshots of the same widget tree and produces the smallest
update the client needs to apply:
- A single WidgetRootUpdated when the structure or any non-streaming prop changed
- One WidgetStreamingTextValueDelta per streaming text node whose value grew
- An empty list when nothing visible changed
"""

from typing import Any

from .errors import NonCumulativeUpdateError, StructuralError
from .types import (
    Markdown,
    Text,
    WidgetComponentBase,
    WidgetRootUpdated,
    WidgetStreamingTextValueDelta,
    is_streaming_text,
    walk_components,
)


def _field_names(component: WidgetComponentBase) -> set[str]:
    return set(type(component).model_fields) | set(component.model_extra or {})


def _value_requires_replace(before: Any, after: Any) -> bool:
    """Compare one prop value from each snapshot.

    Lists are compared element-wise, nested components recursively. Any other
    value (plain models, dicts, scalars) is opaque and compared by equality.
    """
    if isinstance(before, list) and isinstance(after, list):
        if len(before) != len(after):
            return True
        return any(_value_requires_replace(b, a) for b, a in zip(before, after))
    if isinstance(before, WidgetComponentBase) and isinstance(after, WidgetComponentBase):
        return _requires_full_replace(before, after)
    return before != after


def _requires_full_replace(before: WidgetComponentBase, after: WidgetComponentBase) -> bool:
    if before.type != after.type or before.id != after.id or before.key != after.key:
        return True

    streaming_text = is_streaming_text(before) and is_streaming_text(after)

    for field in _field_names(before) | _field_names(after):
        if streaming_text:
            # Appends to `value` are sent as text deltas, and a `streaming`
            # flip is carried by the delta's `done` flag.
            if field == "value" and after.value.startswith(before.value):
                continue
            if field == "streaming":
                continue
        if _value_requires_replace(getattr(before, field, None), getattr(after, field, None)):
            return True

    return False


def _streaming_text_nodes(root: WidgetComponentBase) -> dict[str, Text | Markdown]:
    return {
        component.id: component
        for component in walk_components(root)
        if is_streaming_text(component) and component.id
    }


def diff_widget(
    before: WidgetComponentBase,
    after: WidgetComponentBase,
) -> list[WidgetStreamingTextValueDelta | WidgetRootUpdated]:
    """Diff two snapshots of a widget root.

    Args:
        before: Last snapshot sent to the client
        after: New snapshot

    Returns:
        Either [WidgetRootUpdated(widget=after)] or zero or more text deltas

    Raises:
        StructuralError: A streaming text node id in `after` is missing from `before`
        NonCumulativeUpdateError: A streaming text value did not extend its previous value
    """
    if _requires_full_replace(before, after):
        return [WidgetRootUpdated(widget=after)]

    before_nodes = _streaming_text_nodes(before)
    deltas: list[WidgetStreamingTextValueDelta | WidgetRootUpdated] = []

    for component_id, after_node in _streaming_text_nodes(after).items():
        before_node = before_nodes.get(component_id)
        if before_node is None:
            raise StructuralError(component_id)

        before_value = before_node.value or ""
        after_value = after_node.value or ""
        done = not after_node.streaming

        if before_value == after_value and bool(before_node.streaming) == bool(after_node.streaming):
            continue
        if not after_value.startswith(before_value):
            raise NonCumulativeUpdateError(component_id)

        deltas.append(
            WidgetStreamingTextValueDelta(
                component_id=component_id,
                delta=after_value[len(before_value):],
                done=done,
            )
        )

    return deltas
