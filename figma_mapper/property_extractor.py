"""
屬性萃取 — 文字、圖示、variant / size / state

優先順序（每一項都一樣）：
  componentProperties 原文（verbatim）
  → 圖層名稱中的 Key=Value（declared）
  → 啟發式推論（inferred）
  → 預設值（default）
非 verbatim 的值一律在 evidence 中標記來源。
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .classifier import ComponentClassification, ComponentType
from .config import HeuristicConfig
from .icon_mapper import IconRef, resolve_icon_layer
from .naming import normalize_property_key, parse_variant_name, to_kebab_case
from .scene_graph import Node, PropertyKind, iter_descendants

logger = logging.getLogger(__name__)

VERBATIM = "verbatim"
DECLARED = "declared"
INFERRED = "inferred"
DEFAULT = "default"

_T = ComponentType

# 文字屬性鍵的關鍵字（正規化後包含即可）
TEXT_SLOT_TOKENS: dict = {
    _T.BUTTON: ("button text", "text", "label"),
    _T.INPUT: ("placeholder", "value", "text", "label"),
    _T.TEXTAREA: ("placeholder", "value", "text", "label"),
    _T.CHECKBOX: ("label", "text"),
    _T.RADIO_GROUP: ("label", "text"),
    _T.SWITCH: ("label", "text"),
    _T.SELECT: ("placeholder", "value", "text", "label"),
    _T.SLIDER: ("label", "value"),
    _T.TABS: ("tab", "label", "text"),
    _T.BADGE: ("text", "label"),
    _T.AVATAR: ("initials", "fallback", "text"),
    _T.ALERT: ("title", "text", "description"),
    _T.DIALOG: ("title", "text"),
    _T.CARD: ("title", "text"),
    _T.ICON: (),
    _T.CONTAINER: ("text", "label"),
}

@dataclass(frozen=True)
class SizeBuckets:
    """height <= small_max → sm；height >= large_min → lg；其餘 default."""
    small_max: float
    large_min: float

    def label(self, height: float) -> str:
        if height <= self.small_max:
            return "sm"
        if height >= self.large_min:
            return "lg"
        return "default"


_FIELD_BUCKETS = SizeBuckets(small_max=36, large_min=44)
SIZE_BUCKETS: dict = {
    _T.BUTTON: _FIELD_BUCKETS,
    _T.INPUT: _FIELD_BUCKETS,
    _T.SELECT: _FIELD_BUCKETS,
    _T.TEXTAREA: _FIELD_BUCKETS,
    _T.AVATAR: SizeBuckets(small_max=28, large_min=48),
}

ICON_BUTTON_MAX_WIDTH = 50

# 單一 SOLID 填色的 RGB 範圍 → variant
VARIANT_PALETTES = (
    ("destructive", ((0.75, 1.0), (0.0, 0.4), (0.0, 0.4))),
    ("secondary", ((0.85, 0.97), (0.85, 0.97), (0.85, 0.97))),
    ("default", ((0.0, 0.2), (0.0, 0.2), (0.0, 0.25))),
)

# 文字剛好等於變體名稱
VARIANT_TEXTS = {
    "outline": "outline",
    "ghost": "ghost",
    "link": "link",
    "secondary": "secondary",
    "destructive": "destructive",
}

# 名稱關鍵字 → state，依序比對
STATE_NAME_KEYWORDS = (
    ("hover", "hover"),
    ("focus", "focus"),
    ("pressed", "active"),
    ("active", "active"),
    ("disabled", "disabled"),
    ("loading", "loading"),
)

LOADING_TEXT_MARKERS = ("wait", "loading", "...", "…")

_VARIANT_KEYS = ("variant", "type", "style")


@dataclass(frozen=True)
class InferredValue:
    value: str
    source: str

    def to_dict(self) -> dict:
        return {"value": self.value, "source": self.source}

    @classmethod
    def from_dict(cls, data: dict) -> "InferredValue":
        return cls(value=data["value"], source=data["source"])


@dataclass(frozen=True)
class IconPlacement:
    position: str  # left / right / inline
    ref: IconRef
    node_id: str

    def to_dict(self) -> dict:
        return {"position": self.position, "nodeId": self.node_id, **self.ref.to_dict()}

    @classmethod
    def from_dict(cls, data: dict) -> "IconPlacement":
        return cls(position=data["position"], ref=IconRef.from_dict(data), node_id=data["nodeId"])


@dataclass(frozen=True)
class ExtractedProperties:
    text: Optional[str]
    text_source: Optional[str]
    variant: InferredValue
    size: InferredValue
    state: InferredValue
    icons: tuple = ()
    left_icon: Optional[IconRef] = None
    right_icon: Optional[IconRef] = None
    unknown_icons: tuple = ()
    flags: dict = field(default_factory=dict, hash=False)
    evidence: tuple = ()

    @property
    def left_icon_name(self) -> Optional[str]:
        return self.left_icon.icon if self.left_icon else None

    @property
    def right_icon_name(self) -> Optional[str]:
        return self.right_icon.icon if self.right_icon else None

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "textSource": self.text_source,
            "variant": self.variant.to_dict(),
            "size": self.size.to_dict(),
            "state": self.state.to_dict(),
            "icons": [p.to_dict() for p in self.icons],
            "leftIcon": self.left_icon.to_dict() if self.left_icon else None,
            "rightIcon": self.right_icon.to_dict() if self.right_icon else None,
            "unknownIcons": list(self.unknown_icons),
            "flags": dict(self.flags),
            "evidence": list(self.evidence),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExtractedProperties":
        left = data.get("leftIcon")
        right = data.get("rightIcon")
        return cls(
            text=data.get("text"),
            text_source=data.get("textSource"),
            variant=InferredValue.from_dict(data["variant"]),
            size=InferredValue.from_dict(data["size"]),
            state=InferredValue.from_dict(data["state"]),
            icons=tuple(IconPlacement.from_dict(p) for p in data.get("icons", ())),
            left_icon=IconRef.from_dict(left) if left else None,
            right_icon=IconRef.from_dict(right) if right else None,
            unknown_icons=tuple(data.get("unknownIcons", ())),
            flags=dict(data.get("flags", {})),
            evidence=tuple(data.get("evidence", ())),
        )


def _verbatim_property(node: Node, keys: tuple) -> Optional[tuple]:
    """(normalized key, value) of the first TEXT/VARIANT property whose key is one of keys."""
    for key, prop in node.component_properties.items():
        normalized = normalize_property_key(key)
        if normalized in keys and prop.kind in (PropertyKind.TEXT, PropertyKind.VARIANT, PropertyKind.UNKNOWN):
            if prop.value is not None and str(prop.value) != "":
                return normalized, str(prop.value)
    return None


def _declared(declared: dict, keys: tuple) -> Optional[tuple]:
    for key in keys:
        if declared.get(key):
            return key, declared[key]
    return None


class _Extraction:
    """單一節點的萃取過程；evidence 依發生順序累積."""

    def __init__(self, node: Node, classification: ComponentClassification, config: HeuristicConfig):
        self.node = node
        self.component_type = classification.component_type
        self.config = config
        self.declared = parse_variant_name(node.name)
        self.evidence: list = []
        self.flags = self._boolean_flags()

    def _boolean_flags(self) -> dict:
        flags = {}
        for key, prop in self.node.component_properties.items():
            if prop.kind == PropertyKind.BOOLEAN:
                flags[to_kebab_case(normalize_property_key(key))] = bool(prop.value)
        return flags

    # ─── text ──────────────────────────────────────────────

    def text(self) -> tuple:
        tokens = TEXT_SLOT_TOKENS.get(self.component_type, ())
        for key, prop in self.node.component_properties.items():
            if prop.kind != PropertyKind.TEXT:
                continue
            normalized = normalize_property_key(key)
            if prop.value is None or str(prop.value) == "":
                continue
            if any(token in normalized for token in tokens):
                return str(prop.value), "property"
        for descendant in iter_descendants(self.node):
            if descendant.is_text and descendant.characters is not None:
                self.evidence.append(f"[inferred] text from child layer '{descendant.name}'")
                return descendant.characters, "child"
        return None, None

    # ─── icons ─────────────────────────────────────────────

    def icons(self) -> tuple:
        children = self.node.children
        text_index = next((i for i, c in enumerate(children) if c.is_text), None)
        found = []
        for index, child in enumerate(children):
            ref = resolve_icon_layer(child.name)
            if ref is not None:
                found.append((index, child, ref))

        placements = []
        for order, (index, child, ref) in enumerate(found):
            if text_index is not None:
                position = "left" if index < text_index else "right"
            elif order == 0:
                position = "left"
            elif order == len(found) - 1:
                position = "right"
            else:
                position = "inline"
            placements.append(IconPlacement(position, ref, child.id))

        unknown = []
        for placement in placements:
            if placement.ref.is_unknown:
                unknown.append(placement.ref.raw)
                self.evidence.append(f"[unknown] icon '{placement.ref.raw}' is not in the icon table")

        lefts = [p for p in placements if p.position == "left"]
        rights = [p for p in placements if p.position == "right"]
        left = lefts[0].ref if lefts else None
        right = rights[-1].ref if rights else None

        if self.flags.get("show-left-icon") is False and left is not None:
            self.evidence.append("left icon hidden by 'Show Left Icon' = false")
            left = None
        if self.flags.get("show-right-icon") is False and right is not None:
            self.evidence.append("right icon hidden by 'Show Right Icon' = false")
            right = None
        return tuple(placements), left, right, tuple(unknown)

    # ─── size ──────────────────────────────────────────────

    def size(self) -> InferredValue:
        verbatim = _verbatim_property(self.node, ("size",))
        if verbatim:
            return InferredValue(verbatim[1], VERBATIM)
        declared = _declared(self.declared, ("size",))
        if declared:
            self.evidence.append(f"[declared] size '{declared[1]}' from layer name")
            return InferredValue(declared[1], DECLARED)

        buckets = SIZE_BUCKETS.get(self.component_type)
        height = self.node.height
        if buckets is None or height <= 0:
            self.evidence.append("[default] size 'default'")
            return InferredValue("default", DEFAULT)

        label = buckets.label(height)
        width = self.node.width
        if (
            self.component_type == ComponentType.BUTTON
            and label == "default"
            and abs(width - height) < 5
            and width < ICON_BUTTON_MAX_WIDTH
        ):
            label = "icon"
        self.evidence.append(f"[inferred] size '{label}' from height {height:g}px")
        return InferredValue(label, INFERRED)

    # ─── variant ───────────────────────────────────────────

    def variant(self, text: Optional[str]) -> InferredValue:
        verbatim = _verbatim_property(self.node, _VARIANT_KEYS)
        if verbatim:
            return InferredValue(verbatim[1], VERBATIM)
        declared = _declared(self.declared, _VARIANT_KEYS)
        if declared:
            self.evidence.append(f"[declared] variant '{declared[1]}' from layer name")
            return InferredValue(declared[1], DECLARED)

        if self.config.variant_from_text and text:
            lowered = text.strip().lower()
            variant = VARIANT_TEXTS.get(lowered)
            if variant is None and "destruct" in lowered:
                variant = "destructive"
            if variant:
                self.evidence.append(
                    f"[inferred] variant '{variant}' from text '{text}' (label text taken as variant name)"
                )
                return InferredValue(variant, INFERRED)

        style = self.node.style
        fills = style.visible_fills()
        solid = next((p for p in fills if p.type == "SOLID" and p.color is not None), None)
        if solid is not None:
            color = solid.color
            for variant, ranges in VARIANT_PALETTES:
                if all(lo <= channel <= hi for channel, (lo, hi) in zip((color.r, color.g, color.b), ranges)):
                    self.evidence.append(f"[inferred] variant '{variant}' from fill {color.to_hex()}")
                    return InferredValue(variant, INFERRED)

        if style.fills is not None:
            has_stroke = bool(style.visible_strokes())
            if not fills and has_stroke:
                self.evidence.append("[inferred] variant 'outline' from stroke without fill")
                return InferredValue("outline", INFERRED)
            if not fills and not has_stroke:
                self.evidence.append("[inferred] variant 'ghost' from no fill and no stroke")
                return InferredValue("ghost", INFERRED)
            if has_stroke and solid is not None and min(solid.color.r, solid.color.g, solid.color.b) >= 0.97:
                self.evidence.append("[inferred] variant 'outline' from white fill with stroke")
                return InferredValue("outline", INFERRED)

        self.evidence.append("[default] variant 'default'")
        return InferredValue("default", DEFAULT)

    # ─── state ─────────────────────────────────────────────

    def state(self, text: Optional[str], icons: tuple) -> InferredValue:
        verbatim = _verbatim_property(self.node, ("state",))
        if verbatim:
            return InferredValue(verbatim[1], VERBATIM)
        declared = _declared(self.declared, ("state",))
        if declared:
            self.evidence.append(f"[declared] state '{declared[1]}' from layer name")
            return InferredValue(declared[1], DECLARED)

        lowered_name = (self.node.name or "").lower()
        for keyword, state in STATE_NAME_KEYWORDS:
            if keyword in lowered_name:
                self.evidence.append(f"[inferred] state '{state}' from name keyword '{keyword}'")
                return InferredValue(state, INFERRED)

        opacity = self.node.style.opacity
        if opacity < self.config.disabled_opacity:
            self.evidence.append(
                f"[inferred] state 'disabled' from opacity {opacity:g} < {self.config.disabled_opacity:g}"
            )
            return InferredValue("disabled", INFERRED)

        hidden = {side for side in ("left", "right") if self.flags.get(f"show-{side}-icon") is False}
        visible_refs = [p.ref for p in icons if p.position not in hidden]
        if any(ref.is_loader for ref in visible_refs):
            self.evidence.append("[inferred] state 'loading' from loader icon")
            return InferredValue("loading", INFERRED)

        if text:
            lowered_text = text.lower()
            marker = next((m for m in LOADING_TEXT_MARKERS if m in lowered_text), None)
            if marker:
                self.evidence.append(f"[inferred] state 'loading' from text marker '{marker}'")
                return InferredValue("loading", INFERRED)

        self.evidence.append("[default] state 'default'")
        return InferredValue("default", DEFAULT)


def extract_properties(
    node: Node,
    classification: ComponentClassification,
    config: Optional[HeuristicConfig] = None,
) -> ExtractedProperties:
    """萃取單一已分類節點的設定；對已擷取的節點不拋例外."""
    extraction = _Extraction(node, classification, config or HeuristicConfig())
    text, text_source = extraction.text()
    icons, left, right, unknown = extraction.icons()
    size = extraction.size()
    variant = extraction.variant(text)
    state = extraction.state(text, icons)
    logger.debug(
        "extract %s: text=%r variant=%s size=%s state=%s",
        node.id, text, variant.value, size.value, state.value,
    )
    return ExtractedProperties(
        text=text,
        text_source=text_source,
        variant=variant,
        size=size,
        state=state,
        icons=icons,
        left_icon=left,
        right_icon=right,
        unknown_icons=unknown,
        flags=extraction.flags,
        evidence=tuple(extraction.evidence),
    )
