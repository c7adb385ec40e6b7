"""
Scene-graph ingestion — Figma plugin export → immutable Node tree

Validates structure only (id / type / children list). Every field the
engine does not model is kept in ``Node.extra`` so later stages can reach it.
Traversal uses an explicit work stack; export depth is not bounded.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Optional

from .errors import MalformedExportError

SUPPORTED_EXPORT_VERSIONS = ("1.0.0", "1.0")

# 其餘欄位一律進 extra
_MODELED_KEYS = {
    "id", "name", "type", "visible", "locked",
    "width", "height", "x", "y", "size", "absoluteBoundingBox",
    "fills", "strokes", "effects", "cornerRadius", "opacity", "strokeWeight",
    "characters", "fontSize", "fontName", "fontWeight",
    "componentProperties", "children",
}

_ENVELOPE_KEYS = {
    "version", "exportDate", "editDate", "fileKey", "fileName",
    "nodeId", "nodeName", "node", "document",
}


class PropertyKind(str, Enum):
    TEXT = "TEXT"
    BOOLEAN = "BOOLEAN"
    INSTANCE_SWAP = "INSTANCE_SWAP"
    VARIANT = "VARIANT"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class PropertyValue:
    kind: PropertyKind
    value: Any
    raw_type: str = ""

    def to_dict(self) -> dict:
        return {"type": self.raw_type or self.kind.value, "value": self.value}


@dataclass(frozen=True)
class Bounds:
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def aspect_ratio(self) -> Optional[float]:
        if self.width <= 0 or self.height <= 0:
            return None
        return self.width / self.height


@dataclass(frozen=True)
class Color:
    r: float
    g: float
    b: float
    a: float = 1.0

    def to_hex(self) -> str:
        return "#{:02x}{:02x}{:02x}".format(
            int(round(self.r * 255)), int(round(self.g * 255)), int(round(self.b * 255))
        )


@dataclass(frozen=True)
class Paint:
    """One fill or stroke. ``type`` is the variant tag (SOLID, GRADIENT_LINEAR, IMAGE, …)."""
    type: str
    visible: bool = True
    opacity: float = 1.0
    color: Optional[Color] = None

    @property
    def is_visible(self) -> bool:
        return self.visible and self.opacity > 0.1


@dataclass(frozen=True)
class Effect:
    type: str
    visible: bool = True
    radius: float = 0.0
    color: Optional[Color] = None
    offset_x: float = 0.0
    offset_y: float = 0.0
    spread: float = 0.0


@dataclass(frozen=True)
class Style:
    # None = the export did not carry the field at all
    fills: Optional[tuple] = None
    strokes: Optional[tuple] = None
    effects: tuple = ()
    corner_radius: float = 0.0
    opacity: float = 1.0
    stroke_weight: float = 0.0

    def visible_fills(self) -> list:
        return [p for p in (self.fills or ()) if p.is_visible]

    def visible_strokes(self) -> list:
        return [p for p in (self.strokes or ()) if p.visible]

    def has_drop_shadow(self) -> bool:
        return any(e.type == "DROP_SHADOW" and e.visible for e in self.effects)


@dataclass(frozen=True)
class Font:
    family: str = ""
    style: str = ""
    size: float = 0.0
    weight: float = 0.0


@dataclass(frozen=True)
class Node:
    id: str
    name: str
    type: str
    visible: bool = True
    locked: bool = False
    bounds: Bounds = field(default_factory=Bounds)
    style: Style = field(default_factory=Style)
    characters: Optional[str] = None
    font: Optional[Font] = None
    component_properties: dict = field(default_factory=dict, hash=False)
    children: tuple = ()
    extra: dict = field(default_factory=dict, hash=False)

    @property
    def is_instance(self) -> bool:
        return self.type == "INSTANCE"

    @property
    def is_text(self) -> bool:
        return self.type == "TEXT"

    @property
    def width(self) -> float:
        return self.bounds.width

    @property
    def height(self) -> float:
        return self.bounds.height


@dataclass(frozen=True)
class SceneDocument:
    version: str
    root: Node
    file_key: str = ""
    file_name: str = ""
    export_date: str = ""
    edit_date: str = ""
    node_id: str = ""
    node_name: str = ""
    extra: dict = field(default_factory=dict, hash=False)


# ════════════════════════════════════════════════════════════
# Ingestion
# ════════════════════════════════════════════════════════════

def ingest_export(raw: dict) -> SceneDocument:
    """Validate the export envelope and build the node tree."""
    if not isinstance(raw, dict):
        raise MalformedExportError("export must be a JSON object")
    version = raw.get("version")
    if version is None:
        raise MalformedExportError("export has no version tag")
    if str(version) not in SUPPORTED_EXPORT_VERSIONS:
        supported = ", ".join(SUPPORTED_EXPORT_VERSIONS)
        raise MalformedExportError(f"unrecognized export version '{version}' (supported: {supported})")

    root_raw = raw.get("node")
    if root_raw is None:
        root_raw = raw.get("document")
    if not isinstance(root_raw, dict):
        raise MalformedExportError("export has no root node")

    root = ingest_node(root_raw)
    return SceneDocument(
        version=str(version),
        root=root,
        file_key=raw.get("fileKey", "") or "",
        file_name=raw.get("fileName", "") or "",
        export_date=raw.get("exportDate", "") or "",
        edit_date=raw.get("editDate", "") or "",
        node_id=raw.get("nodeId", "") or root.id,
        node_name=raw.get("nodeName", "") or root.name,
        extra={k: v for k, v in raw.items() if k not in _ENVELOPE_KEYS},
    )


def ingest_node(raw: dict, path: str = "root") -> Node:
    """Build a Node tree from a raw node dict.

    Post-order over an explicit stack: a node is built once all of its
    children are built, so no Python recursion is involved.
    """
    _check_node(raw, path)
    root_slot: list = [None]
    # (raw, path, parent's child slots, index in parent, own child slots or None)
    stack: list = [(raw, path, root_slot, 0, None)]

    while stack:
        node_raw, node_path, parent_slots, index, slots = stack.pop()
        if slots is None:
            children = node_raw.get("children") or []
            slots = [None] * len(children)
            stack.append((node_raw, node_path, parent_slots, index, slots))
            for child_index, child in enumerate(children):
                child_path = f"{node_path}/{child_index}"
                _check_node(child, child_path)
                stack.append((child, child_path, slots, child_index, None))
            continue
        parent_slots[index] = _build_node(node_raw, tuple(slots))

    return root_slot[0]


def _check_node(raw: Any, path: str) -> None:
    if not isinstance(raw, dict):
        raise MalformedExportError("node must be an object", path)
    node_id = raw.get("id")
    if not isinstance(node_id, str) or not node_id:
        raise MalformedExportError("node is missing 'id'", path)
    node_type = raw.get("type")
    if not isinstance(node_type, str) or not node_type:
        raise MalformedExportError(f"node '{node_id}' is missing 'type'", path)
    children = raw.get("children")
    if children is not None and not isinstance(children, list):
        raise MalformedExportError(f"node '{node_id}' has a non-list 'children'", path)


def _build_node(raw: dict, children: tuple) -> Node:
    characters = raw.get("characters")
    return Node(
        id=raw["id"],
        name=raw.get("name") or "",
        type=raw["type"],
        visible=raw.get("visible", True) is not False,
        locked=bool(raw.get("locked", False)),
        bounds=_extract_bounds(raw),
        style=_extract_style(raw),
        characters=characters if isinstance(characters, str) else None,
        font=_extract_font(raw),
        component_properties=_extract_component_properties(raw.get("componentProperties")),
        children=children,
        extra={k: v for k, v in raw.items() if k not in _MODELED_KEYS},
    )


def _number(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value)


def _extract_bounds(raw: dict) -> Bounds:
    if "width" in raw or "height" in raw:
        return Bounds(
            x=_number(raw.get("x")),
            y=_number(raw.get("y")),
            width=_number(raw.get("width")),
            height=_number(raw.get("height")),
        )
    size = raw.get("size")
    if isinstance(size, dict):
        return Bounds(
            x=_number(raw.get("x")),
            y=_number(raw.get("y")),
            width=_number(size.get("x")),
            height=_number(size.get("y")),
        )
    bbox = raw.get("absoluteBoundingBox")
    if isinstance(bbox, dict):
        return Bounds(
            x=_number(bbox.get("x")),
            y=_number(bbox.get("y")),
            width=_number(bbox.get("width")),
            height=_number(bbox.get("height")),
        )
    return Bounds()


def _extract_color(raw: Any) -> Optional[Color]:
    if not isinstance(raw, dict):
        return None
    return Color(
        r=_number(raw.get("r")),
        g=_number(raw.get("g")),
        b=_number(raw.get("b")),
        a=_number(raw.get("a"), 1.0),
    )


def _extract_paints(raw: Any) -> Optional[tuple]:
    if not isinstance(raw, list):
        return None
    paints = []
    for paint in raw:
        if not isinstance(paint, dict):
            continue
        paints.append(Paint(
            type=str(paint.get("type", "SOLID")),
            visible=paint.get("visible", True) is not False,
            opacity=_number(paint.get("opacity"), 1.0),
            color=_extract_color(paint.get("color")),
        ))
    return tuple(paints)


def _extract_style(raw: dict) -> Style:
    effects = []
    for effect in raw.get("effects") or []:
        if not isinstance(effect, dict):
            continue
        offset = effect.get("offset") if isinstance(effect.get("offset"), dict) else {}
        effects.append(Effect(
            type=str(effect.get("type", "")),
            visible=effect.get("visible", True) is not False,
            radius=_number(effect.get("radius")),
            color=_extract_color(effect.get("color")),
            offset_x=_number(offset.get("x")),
            offset_y=_number(offset.get("y")),
            spread=_number(effect.get("spread")),
        ))
    return Style(
        fills=_extract_paints(raw.get("fills")),
        strokes=_extract_paints(raw.get("strokes")),
        effects=tuple(effects),
        corner_radius=_number(raw.get("cornerRadius")),
        opacity=_number(raw.get("opacity"), 1.0),
        stroke_weight=_number(raw.get("strokeWeight")),
    )


def _extract_font(raw: dict) -> Optional[Font]:
    if raw.get("type") != "TEXT":
        return None
    font_name = raw.get("fontName") if isinstance(raw.get("fontName"), dict) else {}
    return Font(
        family=str(font_name.get("family", "")),
        style=str(font_name.get("style", "")),
        size=_number(raw.get("fontSize")),
        weight=_number(raw.get("fontWeight")),
    )


def _extract_component_properties(raw: Any) -> dict:
    if not isinstance(raw, dict):
        return {}
    result = {}
    for key, entry in raw.items():
        if isinstance(entry, dict):
            raw_type = str(entry.get("type", ""))
            value = entry.get("value")
        else:
            raw_type, value = "", entry
        try:
            kind = PropertyKind(raw_type)
        except ValueError:
            kind = PropertyKind.UNKNOWN
        if kind == PropertyKind.BOOLEAN and isinstance(value, str):
            value = value.strip().lower() == "true"
        result[key] = PropertyValue(kind=kind, value=value, raw_type=raw_type)
    return result


# ════════════════════════════════════════════════════════════
# Traversal
# ════════════════════════════════════════════════════════════

def iter_nodes(root: Node) -> Iterator[Node]:
    """Pre-order, children in export order."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def iter_descendants(root: Node) -> Iterator[Node]:
    it = iter_nodes(root)
    next(it)
    yield from it


def find_instances(root: Node, outermost_only: bool = True) -> list:
    """INSTANCE nodes in pre-order; with outermost_only, instances nested in another instance are skipped."""
    if root.is_instance and outermost_only:
        return [root]
    found = []
    stack = [root]
    while stack:
        node = stack.pop()
        if node.is_instance and node is not root:
            found.append(node)
            if outermost_only:
                continue
        stack.extend(reversed(node.children))
    if root.is_instance:
        found.insert(0, root)
    return found


def count_nodes(root: Node) -> int:
    return sum(1 for _ in iter_nodes(root))
