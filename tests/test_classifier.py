"""
分類器測試：名稱規則、結構訊號、同分順序、信心門檻、決定性
"""
import pytest

from figma_mapper.classifier import (
    CATALOG,
    RULES,
    ComponentType,
    classify_node,
    classify_tree,
)
from figma_mapper.config import HeuristicConfig
from figma_mapper.scene_graph import ingest_node


def node(**raw):
    raw.setdefault("id", "1:1")
    raw.setdefault("type", "INSTANCE")
    return ingest_node(raw)


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


class TestCatalog:

    def test_catalog_order(self):
        assert [t.value for t in CATALOG][:3] == ["Button", "Input", "Textarea"]
        assert ComponentType.CONTAINER not in CATALOG

    @pytest.mark.parametrize("component_type", CATALOG)
    def test_exact_type_name_classifies(self, component_type):
        """名稱剛好等於型別名稱，沒有其他訊號也能分類"""
        result = classify_node(node(name=component_type.value))
        assert result.component_type == component_type
        assert result.confidence >= 0.5

    def test_every_type_has_strong_name_rule(self):
        for component_type in CATALOG:
            weights = [r.weight for r in RULES if r.component_type == component_type and r.name == "name"]
            assert weights and weights[0] >= 0.5


class TestButton:

    def test_send_button(self):
        result = classify_node(ingest_node(SEND_BUTTON))
        assert result.component_type == ComponentType.BUTTON
        assert result.confidence == 1.0

    def test_evidence_in_firing_order(self):
        result = classify_node(ingest_node(SEND_BUTTON))
        assert result.evidence[0].startswith("Button.name:")
        assert any("Button.properties" in e and "button text" in e for e in result.evidence)
        assert all("(+" in e for e in result.evidence)

    def test_unnamed_button_from_structure(self):
        raw = dict(SEND_BUTTON, name="Primary / Large")
        result = classify_node(ingest_node(raw))
        assert result.component_type == ComponentType.BUTTON
        assert not any(e.startswith("Button.name") for e in result.evidence)


class TestConfidenceFloor:

    def test_no_signal_is_container(self):
        result = classify_node(node(name="Frame 12", type="FRAME"))
        assert result.component_type == ComponentType.CONTAINER
        assert result.is_unclassified
        assert result.evidence == ("no rule fired",)

    def test_weak_signal_below_floor_notes_best_candidate(self):
        # 只有 Avatar 的 initials 規則（0.1）
        weak = node(name="Thing", type="FRAME", children=[
            {"id": "t", "type": "TEXT", "characters": "AB"},
        ])
        result = classify_node(weak)
        assert result.component_type == ComponentType.CONTAINER
        assert "best candidate Avatar" in result.evidence[-1]

    def test_floor_is_configurable(self):
        weak = node(name="Thing", type="FRAME", children=[
            {"id": "t", "type": "TEXT", "characters": "AB"},
        ])
        result = classify_node(weak, HeuristicConfig(confidence_floor=0.05))
        assert result.component_type == ComponentType.AVATAR


class TestTieBreak:

    def test_equal_scores_resolve_to_earlier_catalog_entry(self):
        # Checkbox name (0.6) vs Icon name (0.6)
        result = classify_node(node(name="Icon checkbox"))
        assert result.component_type == ComponentType.CHECKBOX

    def test_icon_button_prefers_button_with_structure(self):
        result = classify_node(node(
            name="Icon Button",
            componentProperties={"Show Left Icon": {"type": "BOOLEAN", "value": True}},
        ))
        assert result.component_type == ComponentType.BUTTON


class TestStructuralSignals:

    def test_card_from_sections_and_shadow(self):
        card = node(
            name="Surface",
            type="FRAME",
            effects=[{"type": "DROP_SHADOW", "visible": True}],
            children=[
                {"id": "h", "name": "Header", "type": "FRAME"},
                {"id": "c", "name": "Content", "type": "FRAME"},
                {"id": "f", "name": "Footer", "type": "FRAME"},
            ],
        )
        assert classify_node(card).component_type == ComponentType.CARD

    def test_dialog_from_chrome(self):
        dialog = node(
            name="Modal",
            width=480, height=300,
            effects=[{"type": "DROP_SHADOW"}],
            children=[{"id": "x", "name": "Icon / X", "type": "INSTANCE"}],
        )
        result = classify_node(dialog)
        assert result.component_type == ComponentType.DIALOG
        assert result.confidence == 1.0

    def test_input_from_placeholder(self):
        field = node(
            name="Field",
            width=240, height=40,
            strokes=[{"type": "SOLID"}],
            componentProperties={"Placeholder#4": {"type": "TEXT", "value": "Email"}},
        )
        assert classify_node(field).component_type == ComponentType.INPUT

    def test_zero_dimensions_do_not_fire_geometry(self):
        result = classify_node(node(name="Blob", width=0, height=0, cornerRadius=99))
        assert result.component_type == ComponentType.CONTAINER


def test_deterministic():
    a = classify_node(ingest_node(SEND_BUTTON))
    b = classify_node(ingest_node(SEND_BUTTON))
    assert a == b


def test_classify_tree_root_and_instances():
    page = ingest_node({"id": "page", "name": "Page", "type": "FRAME", "children": [
        dict(SEND_BUTTON, id="b1"),
        {"id": "plain", "name": "Text", "type": "TEXT"},
        {"id": "c1", "name": "Card", "type": "INSTANCE"},
    ]})
    result = classify_tree(page)
    assert set(result) == {"page", "b1", "1:2", "1:4", "c1"}
    assert result["b1"].component_type == ComponentType.BUTTON
    assert result["c1"].component_type == ComponentType.CARD
    assert result["1:2"].component_type == ComponentType.ICON


def test_round_trip_dict():
    from figma_mapper.classifier import ComponentClassification

    result = classify_node(ingest_node(SEND_BUTTON))
    assert ComponentClassification.from_dict(result.to_dict()) == result
