"""
語意對應 — 子節點 → 元件 schema 的具名 slot

單次由左至右的貪婪配對：每個子節點放進第一個「尚未填入且有 matcher 接受」的 slot，
沒有 slot 接受的子節點記為 unmapped（不丟棄）。必要 slot 未填只產生警告。
子節點順序本身就是版面語意（icon / label / icon），所以不做二分圖最佳配對。
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from .classifier import ComponentClassification, ComponentType
from .errors import MappingWarning
from .icon_mapper import icon_layer_name
from .scene_graph import Node

logger = logging.getLogger(__name__)

_CONTAINER_TYPES = ("FRAME", "GROUP", "INSTANCE", "COMPONENT")
_SHAPE_TYPES = ("VECTOR", "BOOLEAN_OPERATION", "GROUP", "ELLIPSE", "RECTANGLE", "LINE", "STAR", "POLYGON")


@dataclass(frozen=True)
class SlotMatcher:
    """All given conditions must hold for the matcher to accept a child."""
    node_types: tuple = ()
    name_pattern: Optional[str] = None
    # True: must be an "Icon / …" layer, False: must not be
    icon_layer: Optional[bool] = None
    fill_type: Optional[str] = None
    # accepted only while this slot is still empty
    before_slot: Optional[str] = None
    # accepted only once this slot is filled
    after_slot: Optional[str] = None
    exclude_pattern: Optional[str] = None

    def accepts(self, child: Node, filled: dict) -> bool:
        if self.node_types and child.type not in self.node_types:
            return False
        name = child.name or ""
        if self.icon_layer is not None and (icon_layer_name(name) is not None) != self.icon_layer:
            return False
        if self.name_pattern and not re.search(self.name_pattern, name, re.IGNORECASE):
            return False
        if self.exclude_pattern and re.search(self.exclude_pattern, name, re.IGNORECASE):
            return False
        if self.fill_type and not any(p.type == self.fill_type for p in child.style.visible_fills()):
            return False
        if self.before_slot and self.before_slot in filled:
            return False
        if self.after_slot and self.after_slot not in filled:
            return False
        return True


@dataclass(frozen=True)
class SlotSpec:
    name: str
    required: bool = False
    matchers: tuple = ()
    # 可重複的 slot（tabs、radio options）對應到 id 清單
    allows_multiple: bool = False


@dataclass(frozen=True)
class ComponentSchema:
    component_type: ComponentType
    slots: tuple

    def slot(self, name: str) -> Optional[SlotSpec]:
        return next((s for s in self.slots if s.name == name), None)


@dataclass(frozen=True)
class SchemaMapping:
    schema: str
    slots: dict = field(default_factory=dict, hash=False)
    unmapped: tuple = ()
    warnings: tuple = ()

    def to_dict(self) -> dict:
        return {
            "schema": self.schema,
            "slots": {k: list(v) if isinstance(v, (list, tuple)) else v for k, v in self.slots.items()},
            "unmapped": list(self.unmapped),
            "warnings": [w.to_dict() for w in self.warnings],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SchemaMapping":
        return cls(
            schema=data["schema"],
            slots={k: tuple(v) if isinstance(v, list) else v for k, v in data.get("slots", {}).items()},
            unmapped=tuple(data.get("unmapped", ())),
            warnings=tuple(MappingWarning(**w) for w in data.get("warnings", ())),
        )


# ════════════════════════════════════════════════════════════
# Schema registry
# ════════════════════════════════════════════════════════════

_M = SlotMatcher
_TEXT = ("TEXT",)


def _icon(**kwargs) -> SlotMatcher:
    return SlotMatcher(icon_layer=True, **kwargs)


def _labelled(label: str = "label", required: bool = True) -> tuple:
    """leftIcon / label / rightIcon（Button、Badge、Input 共用）."""
    return (
        SlotSpec("leftIcon", matchers=(_icon(before_slot=label),)),
        SlotSpec(label, required=required, matchers=(_M(node_types=_TEXT),)),
        SlotSpec("rightIcon", matchers=(_icon(after_slot=label),)),
    )


_T = ComponentType

SCHEMAS: dict = {
    _T.BUTTON: ComponentSchema(_T.BUTTON, _labelled("label")),
    _T.INPUT: ComponentSchema(_T.INPUT, _labelled("value")),
    _T.TEXTAREA: ComponentSchema(_T.TEXTAREA, (
        SlotSpec("value", required=True, matchers=(_M(node_types=_TEXT),)),
    )),
    _T.CHECKBOX: ComponentSchema(_T.CHECKBOX, (
        SlotSpec("indicator", required=True, matchers=(
            _M(name_pattern=r"check|box|indicator|mark"),
            _icon(),
        )),
        SlotSpec("label", matchers=(_M(node_types=_TEXT),)),
    )),
    _T.RADIO_GROUP: ComponentSchema(_T.RADIO_GROUP, (
        SlotSpec("label", matchers=(_M(node_types=_TEXT, before_slot="options"),)),
        SlotSpec("options", required=True, allows_multiple=True, matchers=(
            _M(name_pattern=r"radio|option|item"),
        )),
    )),
    _T.SWITCH: ComponentSchema(_T.SWITCH, (
        SlotSpec("thumb", required=True, matchers=(_M(name_pattern=r"thumb|knob|handle"),)),
        SlotSpec("label", matchers=(_M(node_types=_TEXT),)),
    )),
    _T.SELECT: ComponentSchema(_T.SELECT, (
        SlotSpec("leftIcon", matchers=(_icon(before_slot="value"),)),
        SlotSpec("value", required=True, matchers=(_M(node_types=_TEXT),)),
        SlotSpec("trigger", matchers=(_icon(after_slot="value"), _M(name_pattern=r"chevron|arrow|trigger"))),
    )),
    _T.SLIDER: ComponentSchema(_T.SLIDER, (
        SlotSpec("track", required=True, matchers=(_M(name_pattern=r"track|rail"),)),
        SlotSpec("range", matchers=(_M(name_pattern=r"range|fill|progress"),)),
        SlotSpec("thumb", required=True, matchers=(_M(name_pattern=r"thumb|handle|knob"),)),
    )),
    _T.TABS: ComponentSchema(_T.TABS, (
        SlotSpec("tabs", required=True, allows_multiple=True, matchers=(
            _M(name_pattern=r"\btab\b|trigger", exclude_pattern=r"panel|content"),
        )),
        SlotSpec("content", matchers=(_M(name_pattern=r"content|panel"),)),
    )),
    _T.BADGE: ComponentSchema(_T.BADGE, _labelled("label")),
    _T.AVATAR: ComponentSchema(_T.AVATAR, (
        SlotSpec("image", matchers=(_M(fill_type="IMAGE"), _M(name_pattern=r"image|photo|picture"))),
        SlotSpec("fallback", matchers=(_M(node_types=_TEXT), _M(name_pattern=r"fallback|initials"))),
    )),
    _T.ALERT: ComponentSchema(_T.ALERT, (
        SlotSpec("icon", matchers=(_icon(before_slot="title"),)),
        SlotSpec("title", required=True, matchers=(
            _M(name_pattern=r"title|heading"),
            _M(node_types=_TEXT, before_slot="description"),
        )),
        SlotSpec("description", matchers=(
            _M(name_pattern=r"description|message|body"),
            _M(node_types=_TEXT, after_slot="title"),
        )),
        SlotSpec("action", matchers=(_M(name_pattern=r"action|button"),)),
    )),
    _T.DIALOG: ComponentSchema(_T.DIALOG, (
        SlotSpec("header", matchers=(_M(name_pattern=r"header"),)),
        SlotSpec("title", required=True, matchers=(
            _M(name_pattern=r"title|heading"),
            _M(node_types=_TEXT, before_slot="content"),
        )),
        SlotSpec("description", matchers=(_M(name_pattern=r"description|subtitle"),)),
        SlotSpec("content", matchers=(_M(name_pattern=r"content|body"),)),
        SlotSpec("footer", matchers=(_M(name_pattern=r"footer|actions?"),)),
        SlotSpec("close", matchers=(_M(name_pattern=r"close"), _M(name_pattern=r"^\s*icon\s*/\s*(x|close)\s*$"))),
    )),
    _T.CARD: ComponentSchema(_T.CARD, (
        SlotSpec("header", matchers=(_M(name_pattern=r"header"),)),
        SlotSpec("title", matchers=(
            _M(name_pattern=r"title|heading"),
            _M(node_types=_TEXT, before_slot="content"),
        )),
        SlotSpec("content", required=True, matchers=(
            _M(name_pattern=r"content|body"),
            _M(node_types=_CONTAINER_TYPES, exclude_pattern=r"header|title|footer|action"),
        )),
        SlotSpec("footer", matchers=(_M(name_pattern=r"footer|actions?"),)),
    )),
    _T.ICON: ComponentSchema(_T.ICON, (
        SlotSpec("glyph", allows_multiple=True, matchers=(_M(node_types=_SHAPE_TYPES),)),
    )),
}


def map_slots(node: Node, classification: ComponentClassification) -> SchemaMapping:
    """Greedy left-to-right slot assignment over the node's direct children."""
    component_type = classification.component_type
    schema = SCHEMAS.get(component_type)
    if schema is None:
        return SchemaMapping(
            schema=component_type.value,
            slots={},
            unmapped=tuple(c.id for c in node.children),
        )

    filled: dict = {}
    unmapped = []
    for child in node.children:
        target = None
        for spec in schema.slots:
            if spec.name in filled and not spec.allows_multiple:
                continue
            if any(m.accepts(child, filled) for m in spec.matchers):
                target = spec
                break
        if target is None:
            unmapped.append(child.id)
        elif target.allows_multiple:
            filled[target.name] = filled.get(target.name, ()) + (child.id,)
        else:
            filled[target.name] = child.id

    warnings = tuple(
        MappingWarning(spec.name, f"required slot '{spec.name}' of {component_type.value} is unfilled")
        for spec in schema.slots
        if spec.required and spec.name not in filled
    )
    for warning in warnings:
        logger.info("map %s '%s': %s", node.id, node.name, warning.message)

    # 保留 schema 宣告順序
    ordered = {spec.name: filled[spec.name] for spec in schema.slots if spec.name in filled}
    return SchemaMapping(
        schema=component_type.value,
        slots=ordered,
        unmapped=tuple(unmapped),
        warnings=warnings,
    )
