"""
區塊分類與區塊 schema 對應測試
"""
import pytest

from figma_mapper.block_classifier import (
    BlockCategory,
    BlockSubType,
    analyze_layout,
    classify_block,
    classify_blocks,
)
from figma_mapper.block_mapper import BLOCK_SCHEMAS, find_block_schema, map_block
from figma_mapper.scene_graph import ingest_node


def frame(node_id, name, width, height, children=(), **raw):
    base = {
        "id": node_id, "name": name, "type": "FRAME",
        "width": width, "height": height, "children": list(children),
    }
    base.update(raw)
    return base


def box(node_id, name="", x=0, y=0, width=100, height=60, node_type="RECTANGLE", **raw):
    base = {"id": node_id, "name": name, "type": node_type, "x": x, "y": y, "width": width, "height": height}
    base.update(raw)
    return base


def hero_raw():
    return frame("hero", "Hero", 1440, 640, [
        box("h1", "Heading", node_type="TEXT", characters="Build faster"),
        box("h2", "Button", node_type="INSTANCE", width=120, height=40, children=[
            {"id": "h3", "name": "Label", "type": "TEXT", "characters": "Start"},
        ]),
    ])


def plan_card(i):
    return frame(f"c{i}", "Card / Tier", 360, 500, [
        box(f"c{i}-badge", "Badge", width=60, height=24),
        box(f"c{i}-btn", "Button", node_type="INSTANCE", width=200, height=40),
    ], x=i * 400, y=0)


class TestClassifyBlock:

    def test_hero(self):
        block = classify_block(ingest_node(hero_raw()))
        assert block.category == BlockCategory.HERO
        assert block.sub_type == BlockSubType.HERO_SIMPLE
        assert block.block_type == "Hero Simple"
        assert block.confidence == 1.0
        assert "name contains 'hero'" in block.reasons
        assert block.count("Button") == 1
        assert block.characteristics.is_full_width and block.characteristics.is_large_section

    def test_pricing_cards(self):
        node = ingest_node(frame("p", "Pricing", 1200, 600, [plan_card(i) for i in range(3)]))
        block = classify_block(node)
        assert block.category == BlockCategory.PRICING
        assert block.sub_type == BlockSubType.PRICING_CARDS
        assert (block.count("Card"), block.count("Badge"), block.count("Button")) == (3, 3, 3)
        card = next(c for c in block.composed_of if c.component_type == "Card")
        assert (card.location, card.confidence) == ("root", 0.9)

    def test_generic_fallback(self):
        node = ingest_node(frame("f", "Frame 12", 300, 200, [box("a"), box("b", y=80)]))
        block = classify_block(node)
        assert block.category == BlockCategory.LAYOUT
        assert block.sub_type == BlockSubType.UNKNOWN
        assert block.confidence == 0.3
        assert block.block_type == "Generic Layout Block"

    def test_large_generic_is_section(self):
        node = ingest_node(frame("f", "Frame 12", 300, 600, [box("a"), box("b", y=80)]))
        assert classify_block(node).category == BlockCategory.SECTION

    @pytest.mark.parametrize("width, height, children", [
        (150, 400, 2),
        (400, 80, 2),
        (400, 400, 1),
    ])
    def test_not_a_block(self, width, height, children):
        node = ingest_node(frame("f", "Hero", width, height, [box(str(i)) for i in range(children)]))
        assert classify_block(node) is None

    def test_authentication_login(self):
        node = ingest_node(frame("l", "Login", 400, 480, [
            box("t", "Title", node_type="TEXT", characters="Welcome back"),
            box("e", "Email Input", node_type="INSTANCE", y=80),
            box("p", "Password Input", node_type="INSTANCE", y=160),
            box("r", "Checkbox", node_type="INSTANCE", y=240),
            box("s", "Button", node_type="INSTANCE", y=320),
        ]))
        block = classify_block(node)
        assert (block.category, block.sub_type) == (BlockCategory.AUTHENTICATION, BlockSubType.LOGIN)
        assert block.count("Input") == 2
        assert block.characteristics.dominant_content == "forms"
        assert block.characteristics.estimated_complexity == 5


class TestLayout:

    def test_grid_rows_and_columns(self):
        node = ingest_node(frame("g", "Gallery", 800, 800, [
            box("a", x=0, y=0), box("b", x=200, y=0),
            box("c", x=0, y=200), box("d", x=200, y=200),
        ]))
        layout = analyze_layout(node)
        assert (layout.type, layout.columns, layout.rows) == ("grid", 2, 2)

    def test_auto_layout_direction(self):
        node = ingest_node(frame("h", "Row", 800, 200, [box("a"), box("b")], layoutMode="HORIZONTAL"))
        assert analyze_layout(node).type == "horizontal"

    def test_complexity_buckets(self):
        def layout_for(n):
            return analyze_layout(ingest_node(frame("f", "F", 800, 800, [box(str(i)) for i in range(n)])))

        assert layout_for(4).complexity == "simple"
        assert layout_for(5).complexity == "moderate"
        assert layout_for(15).complexity == "complex"


class TestClassifyBlocks:

    def test_instances_are_not_blocks(self):
        page = ingest_node(frame("page", "Page", 1440, 2000, [
            hero_raw(),
            box("inst", "Card", node_type="INSTANCE", width=400, height=400, children=[
                box("i1", "Title", node_type="TEXT", characters="x"),
                box("i2", "Body", node_type="TEXT", characters="y"),
            ]),
        ]))
        blocks = classify_blocks(page)
        assert "hero" in blocks
        assert "inst" not in blocks
        assert list(blocks)[0] == "page"

    def test_small_document_has_no_blocks(self):
        assert classify_blocks(ingest_node(box("r", "Button", node_type="INSTANCE"))) == {}


class TestBlockMapper:

    def test_hero_schema(self):
        mapping = map_block(classify_block(ingest_node(hero_raw())))
        assert mapping.schema.name == "Hero-Simple"
        assert mapping.schema.import_path == "@/components/blocks/hero"
        assert mapping.warnings == ()
        assert mapping.to_dict()["classification"]["category"] == "Hero"

    def test_missing_structure_warns(self):
        node = ingest_node(frame("p", "Pricing", 1200, 600, [
            frame("c1", "Card", 300, 400, [], x=0),
            frame("c2", "Card", 300, 400, [], x=400),
        ]))
        block = classify_block(node)
        assert block.sub_type == BlockSubType.PRICING_SIMPLE
        mapping = map_block(block)
        # Pricing-Simple 沒有專屬 schema，退回同類別的第一個
        assert mapping.schema.name == "Pricing-Cards"
        assert [w.slot for w in mapping.warnings] == ["Button"]

    def test_generic_block_has_no_schema(self):
        node = ingest_node(frame("f", "Frame 12", 300, 200, [box("a"), box("b", y=80)]))
        mapping = map_block(classify_block(node))
        assert mapping.schema is None
        assert mapping.to_dict()["schema"] is None

    def test_schema_lookup(self):
        assert find_block_schema(BlockCategory.AUTHENTICATION, BlockSubType.REGISTER).name == "Register-Form"
        assert find_block_schema(BlockCategory.LAYOUT, BlockSubType.UNKNOWN) is None
        assert len({s.name for s in BLOCK_SCHEMAS}) == len(BLOCK_SCHEMAS)
