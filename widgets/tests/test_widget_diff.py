"""Widget diff tests

These tests verify how successive widget snapshots are turned into updates:
- Text growth becomes a streaming text delta carrying only the suffix
- A streaming flag flip alone becomes an empty delta with done=True
- Any other change becomes a single full root replacement
- Identical snapshots produce no updates at all
"""

import pytest

import widgets.diff as diff_module
from widgets import (
    ActionConfig,
    BasicRoot,
    Button,
    Card,
    ListView,
    ListViewItem,
    Markdown,
    NonCumulativeUpdateError,
    Row,
    StructuralError,
    Text,
    Title,
    WidgetDiffError,
    WidgetRootUpdated,
    WidgetStreamingTextValueDelta,
    diff_widget,
)


def card(value: str, streaming: bool | None = True, title: str = "Weather") -> Card:
    return Card(
        children=[
            Title(value=title),
            Text(id="body", value=value, streaming=streaming),
        ]
    )


class TestStreamingTextDeltas:
    """Appends to streaming text nodes are sent as deltas."""

    def test_suffix_becomes_delta(self):
        """Extending a value yields exactly the appended suffix."""
        updates = diff_widget(card("Sunny"), card("Sunny with clouds"))

        assert updates == [
            WidgetStreamingTextValueDelta(component_id="body", delta=" with clouds", done=False)
        ]

    def test_done_follows_streaming_flag(self):
        """done is the negation of the new snapshot's streaming flag."""
        updates = diff_widget(card("Sunny"), card("Sunny all day", streaming=False))

        assert len(updates) == 1
        assert updates[0].delta == " all day"
        assert updates[0].done is True

    def test_missing_streaming_flag_counts_as_done(self):
        """A node without a streaming flag is finished."""
        updates = diff_widget(card("Sun", streaming=None), card("Sunny", streaming=None))

        assert updates == [WidgetStreamingTextValueDelta(component_id="body", delta="ny", done=True)]

    def test_streaming_flip_is_empty_delta(self):
        """Flipping streaming off with an unchanged value is not a full replace."""
        updates = diff_widget(card("Sunny", streaming=True), card("Sunny", streaming=False))

        assert updates == [WidgetStreamingTextValueDelta(component_id="body", delta="", done=True)]

    def test_markdown_nodes_stream(self):
        """Markdown is text-bearing like Text."""
        before = BasicRoot(children=[Markdown(id="md", value="# Ti", streaming=True)])
        after = BasicRoot(children=[Markdown(id="md", value="# Title", streaming=True)])

        assert diff_widget(before, after) == [
            WidgetStreamingTextValueDelta(component_id="md", delta="tle", done=False)
        ]

    def test_nested_nodes_each_get_a_delta(self):
        """Every streaming node found in the tree is diffed independently."""
        before = Card(
            children=[
                Row(children=[Text(id="a", value="1", streaming=True)]),
                Text(id="b", value="x", streaming=True),
            ]
        )
        after = Card(
            children=[
                Row(children=[Text(id="a", value="12", streaming=True)]),
                Text(id="b", value="xy", streaming=False),
            ]
        )

        assert diff_widget(before, after) == [
            WidgetStreamingTextValueDelta(component_id="a", delta="2", done=False),
            WidgetStreamingTextValueDelta(component_id="b", delta="y", done=True),
        ]

    def test_text_without_id_is_not_diffed(self):
        """Nodes without an id cannot be addressed, so growth is silent."""
        before = Card(children=[Text(value="a", streaming=True)])
        after = Card(children=[Text(value="ab", streaming=True)])

        assert diff_widget(before, after) == []


class TestFullReplace:
    """Non-streaming changes replace the whole widget."""

    def test_sibling_prop_change(self):
        """Changing a non-exempt field sends the complete new tree."""
        after = card("Sunny", title="Forecast")

        assert diff_widget(card("Sunny"), after) == [WidgetRootUpdated(widget=after)]

    def test_child_added(self):
        """Different children lengths always replace."""
        before = card("Sunny")
        after = Card(children=[*before.children, Button(label="More")])

        updates = diff_widget(before, after)
        assert len(updates) == 1
        assert isinstance(updates[0], WidgetRootUpdated)
        assert updates[0].widget == after

    def test_root_key_change(self):
        before = Card(key="one", children=[])
        after = Card(key="two", children=[])

        assert diff_widget(before, after) == [WidgetRootUpdated(widget=after)]

    def test_root_type_change(self):
        before = Card(children=[])
        after = ListView(children=[])

        assert diff_widget(before, after) == [WidgetRootUpdated(widget=after)]

    def test_non_prefix_value_replaces(self):
        """Rewriting a streamed value is a structural change, not a delta."""
        after = card("Rainy")

        assert diff_widget(card("Sunny"), after) == [WidgetRootUpdated(widget=after)]

    def test_nested_plain_model_compared_by_equality(self):
        """Plain models such as actions are opaque and compared as a whole."""
        before = Card(children=[Button(label="Go", onClickAction=ActionConfig(type="go", payload={"n": 1}))])
        after = Card(children=[Button(label="Go", onClickAction=ActionConfig(type="go", payload={"n": 2}))])

        assert diff_widget(before, after) == [WidgetRootUpdated(widget=after)]

    def test_extra_props_are_compared(self):
        """Unknown props kept via extra="allow" still participate."""
        before = Card(children=[], customProp="a")
        after = Card(children=[], customProp="b")

        assert diff_widget(before, after) == [WidgetRootUpdated(widget=after)]

    def test_list_view_item_change(self):
        before = ListView(children=[ListViewItem(children=[Title(value="One")])])
        after = ListView(children=[ListViewItem(children=[Title(value="Two")])])

        assert diff_widget(before, after) == [WidgetRootUpdated(widget=after)]


class TestIdempotence:
    """Diffing a snapshot with itself is a no-op."""

    @pytest.mark.parametrize(
        "widget",
        [
            card("Sunny"),
            card("", streaming=False),
            BasicRoot(children=[Markdown(id="m", value="**hi**")]),
            ListView(children=[ListViewItem(children=[Text(id="t", value="row", streaming=True)])]),
        ],
    )
    def test_same_snapshot_has_no_updates(self, widget):
        assert diff_widget(widget, widget) == []
        assert diff_widget(widget, widget.model_copy(deep=True)) == []


class TestContractViolations:
    """Errors raised when snapshots break node identity or cumulativeness.

    A structural mismatch normally triggers a full replace first, so these
    tests disable that check to exercise the delta path directly.
    """

    @pytest.fixture
    def no_full_replace(self, monkeypatch):
        monkeypatch.setattr(diff_module, "_requires_full_replace", lambda before, after: False)

    def test_new_id_raises_structural_error(self, no_full_replace):
        before = Card(children=[Text(id="a", value="x")])
        after = Card(children=[Text(id="b", value="x")])

        with pytest.raises(StructuralError) as exc_info:
            diff_widget(before, after)
        assert exc_info.value.component_id == "b"

    def test_rewritten_value_raises_non_cumulative(self, no_full_replace):
        before = Card(children=[Text(id="a", value="hello")])
        after = Card(children=[Text(id="a", value="help")])

        with pytest.raises(NonCumulativeUpdateError) as exc_info:
            diff_widget(before, after)
        assert exc_info.value.component_id == "a"

    def test_errors_share_a_value_error_base(self):
        assert issubclass(StructuralError, WidgetDiffError)
        assert issubclass(NonCumulativeUpdateError, WidgetDiffError)
        assert issubclass(WidgetDiffError, ValueError)
