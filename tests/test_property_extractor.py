"""
屬性萃取測試：文字、圖示位置、size 區間、variant / state 推論與優先順序
"""
import pytest

from figma_mapper.classifier import ComponentClassification, ComponentType, classify_node
from figma_mapper.config import HeuristicConfig
from figma_mapper.property_extractor import (
    DECLARED,
    DEFAULT,
    INFERRED,
    VERBATIM,
    extract_properties,
)
from figma_mapper.scene_graph import ingest_node


def as_type(component_type):
    return ComponentClassification(component_type, 1.0, ())


BUTTON = as_type(ComponentType.BUTTON)


def button(**raw):
    base = {"id": "1:1", "name": "Button", "type": "INSTANCE", "width": 120, "height": 36}
    base.update(raw)
    return ingest_node(base)


def extract(raw_node, classification=BUTTON, config=None):
    return extract_properties(raw_node, classification, config)


SEND_BUTTON = {
    "id": "1:1",
    "name": "Button",
    "type": "INSTANCE",
    "height": 36,
    "opacity": 1.0,
    "componentProperties": {"Button Text#1": {"type": "TEXT", "value": "Send"}},
    "children": [
        {"id": "1:2", "name": "Icon / Send", "type": "INSTANCE"},
        {"id": "1:3", "name": "Send", "type": "TEXT", "characters": "Send"},
        {"id": "1:4", "name": "Icon / Circle", "type": "INSTANCE"},
    ],
}


class TestSendButton:

    def setup_method(self):
        node = ingest_node(SEND_BUTTON)
        self.props = extract_properties(node, classify_node(node))

    def test_text(self):
        assert self.props.text == "Send"
        assert self.props.text_source == "property"

    def test_icons(self):
        assert self.props.left_icon_name == "Send"
        assert self.props.right_icon is not None
        assert self.props.right_icon.is_placeholder
        assert self.props.right_icon_name is None
        assert self.props.unknown_icons == ()

    def test_size_variant_state(self):
        assert self.props.size.value == "sm"
        assert self.props.size.source == INFERRED
        assert self.props.state.value == "default"
        assert self.props.variant.value == "default"

    def test_evidence_tags_non_verbatim_values(self):
        assert any(e.startswith("[inferred] size 'sm'") for e in self.props.evidence)
        assert any(e.startswith("[default] state") for e in self.props.evidence)


class TestText:

    def test_falls_back_to_first_text_descendant(self):
        node = button(children=[
            {"id": "w", "type": "FRAME", "children": [
                {"id": "t", "name": "Label", "type": "TEXT", "characters": "Go"},
            ]},
        ])
        props = extract(node)
        assert props.text == "Go"
        assert props.text_source == "child"
        assert "[inferred] text from child layer 'Label'" in props.evidence

    def test_property_keyword_per_type(self):
        node = ingest_node({"id": "1", "type": "INSTANCE", "componentProperties": {
            "Placeholder#3": {"type": "TEXT", "value": "Email"},
        }})
        assert extract(node, as_type(ComponentType.INPUT)).text == "Email"

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty_text_property_falls_back_to_child(self, value):
        node = button(
            componentProperties={"Button Text#1": {"type": "TEXT", "value": value}},
            children=[{"id": "t", "name": "Send", "type": "TEXT", "characters": "Send"}],
        )
        props = extract(node)
        assert props.text == "Send"
        assert props.text_source == "child"

    def test_no_text(self):
        props = extract(button())
        assert props.text is None and props.text_source is None


class TestIcons:

    def test_show_left_icon_false_hides_left(self):
        node = button(
            componentProperties={"Show Left Icon#2": {"type": "BOOLEAN", "value": False}},
            children=[
                {"id": "a", "name": "Icon / Plus", "type": "INSTANCE"},
                {"id": "b", "name": "Label", "type": "TEXT", "characters": "Add"},
            ],
        )
        props = extract(node)
        assert props.left_icon is None
        assert props.flags == {"show-left-icon": False}
        assert any("hidden" in e for e in props.evidence)

    def test_unknown_icon_reported(self):
        node = button(children=[
            {"id": "a", "name": "Icon / Foo", "type": "INSTANCE"},
            {"id": "b", "name": "Label", "type": "TEXT", "characters": "Foo"},
        ])
        props = extract(node)
        assert props.unknown_icons == ("Foo",)
        assert props.left_icon.is_unknown
        assert props.left_icon_name is None
        assert any(e.startswith("[unknown] icon 'Foo'") for e in props.evidence)

    def test_no_text_child_first_left_last_right(self):
        node = button(children=[
            {"id": "a", "name": "Icon / Plus", "type": "INSTANCE"},
            {"id": "b", "name": "Icon / Star", "type": "INSTANCE"},
            {"id": "c", "name": "Icon / Check", "type": "INSTANCE"},
        ])
        props = extract(node)
        assert [p.position for p in props.icons] == ["left", "inline", "right"]
        assert props.left_icon_name == "Plus"
        assert props.right_icon_name == "Check"

    def test_non_icon_children_ignored(self):
        node = button(children=[{"id": "a", "name": "Label", "type": "TEXT", "characters": "x"}])
        props = extract(node)
        assert props.icons == ()
        assert props.left_icon is None and props.right_icon is None


class TestSize:

    @pytest.mark.parametrize("height, size", [
        (35, "sm"), (36, "sm"), (37, "default"), (40, "default"),
        (43, "default"), (44, "lg"), (45, "lg"),
        (36.5, "default"), (43.5, "default"),
    ])
    def test_button_height_buckets(self, height, size):
        assert extract(button(height=height)).size.value == size

    def test_square_button_is_icon_size(self):
        assert extract(button(width=40, height=40)).size.value == "icon"

    @pytest.mark.parametrize("height, size", [(24, "sm"), (28, "sm"), (28.5, "default"), (32, "default"), (48, "lg")])
    def test_avatar_buckets(self, height, size):
        node = ingest_node({"id": "1", "type": "INSTANCE", "width": height, "height": height})
        assert extract(node, as_type(ComponentType.AVATAR)).size.value == size

    def test_verbatim_beats_declared_beats_inferred(self):
        verbatim = button(
            name="Size=lg",
            height=30,
            componentProperties={"Size": {"type": "VARIANT", "value": "sm"}},
        )
        assert extract(verbatim).size.value == "sm"
        assert extract(verbatim).size.source == VERBATIM

        declared = button(name="Size=lg", height=30)
        props = extract(declared)
        assert (props.size.value, props.size.source) == ("lg", DECLARED)

    def test_unbucketed_type_defaults(self):
        node = ingest_node({"id": "1", "type": "INSTANCE", "height": 40})
        props = extract(node, as_type(ComponentType.CARD))
        assert (props.size.value, props.size.source) == ("default", DEFAULT)


class TestVariant:

    def test_destructive_palette(self):
        node = button(fills=[{"type": "SOLID", "color": {"r": 0.9, "g": 0.1, "b": 0.1}}])
        props = extract(node)
        assert props.variant.value == "destructive"
        assert any("destructive' from fill #" in e for e in props.evidence)

    def test_secondary_palette(self):
        node = button(fills=[{"type": "SOLID", "color": {"r": 0.95, "g": 0.95, "b": 0.95}}])
        assert extract(node).variant.value == "secondary"

    def test_outline_from_stroke_without_fill(self):
        node = button(fills=[], strokes=[{"type": "SOLID", "color": {"r": 0, "g": 0, "b": 0}}])
        assert extract(node).variant.value == "outline"

    def test_ghost_from_no_fill_no_stroke(self):
        assert extract(button(fills=[], strokes=[])).variant.value == "ghost"

    def test_fills_absent_is_default(self):
        props = extract(button())
        assert (props.variant.value, props.variant.source) == ("default", DEFAULT)

    def test_variant_from_text_can_be_disabled(self):
        node = button(componentProperties={"Button Text": {"type": "TEXT", "value": "Outline"}})
        assert extract(node).variant.value == "outline"
        off = HeuristicConfig(variant_from_text=False)
        assert extract(node, config=off).variant.value == "default"

    def test_declared_variant(self):
        node = button(name="Variant=Ghost, Size=sm")
        props = extract(node)
        assert (props.variant.value, props.variant.source) == ("Ghost", DECLARED)


class TestState:

    def test_low_opacity_is_disabled(self):
        props = extract(button(opacity=0.4))
        assert props.state.value == "disabled"
        assert any("opacity 0.4" in e for e in props.evidence)

    def test_disabled_threshold_configurable(self):
        config = HeuristicConfig(disabled_opacity=0.3)
        assert extract(button(opacity=0.4), config=config).state.value == "default"

    def test_name_keyword(self):
        assert extract(button(name="Button Hover")).state.value == "hover"
        assert extract(button(name="Button Pressed")).state.value == "active"

    def test_loader_icon_is_loading(self):
        node = button(children=[
            {"id": "a", "name": "Icon / LoaderCircle", "type": "INSTANCE"},
            {"id": "b", "name": "Label", "type": "TEXT", "characters": "Save"},
        ])
        props = extract(node)
        assert props.left_icon_name == "Loader2"
        assert props.state.value == "loading"

    def test_hidden_loader_icon_ignored(self):
        node = button(
            componentProperties={"Show Left Icon": {"type": "BOOLEAN", "value": False}},
            children=[
                {"id": "a", "name": "Icon / LoaderCircle", "type": "INSTANCE"},
                {"id": "b", "name": "Label", "type": "TEXT", "characters": "Save"},
            ],
        )
        assert extract(node).state.value == "default"

    def test_loading_text(self):
        node = button(children=[{"id": "b", "type": "TEXT", "characters": "Please wait"}])
        assert extract(node).state.value == "loading"

    def test_verbatim_state(self):
        node = button(opacity=0.2, componentProperties={"State": {"type": "VARIANT", "value": "focus"}})
        props = extract(node)
        assert (props.state.value, props.state.source) == ("focus", VERBATIM)


def test_round_trip_dict():
    from figma_mapper.property_extractor import ExtractedProperties

    node = ingest_node(SEND_BUTTON)
    props = extract_properties(node, classify_node(node))
    assert ExtractedProperties.from_dict(props.to_dict()) == props


def test_flags_take_part_in_equality():
    from dataclasses import replace

    node = ingest_node(SEND_BUTTON)
    props = extract_properties(node, classify_node(node))
    assert replace(props, flags={"show-left-icon": False}) != props
