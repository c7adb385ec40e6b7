"""
元件分類器 — 規則表 + 加權投票

每條規則是純函式 (Node) -> Optional[reason]，觸發時替某個元件類型加分。
同類型分數累加後上限 1.0；最高分勝出，同分取型錄中較前者；
低於 confidence_floor 時歸類為 Container，並在 evidence 中記下最佳候選。
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .config import HeuristicConfig
from .icon_mapper import icon_layer_name, normalize_icon_name
from .naming import normalize_property_key
from .scene_graph import Node, PropertyKind, iter_nodes

logger = logging.getLogger(__name__)


class ComponentType(str, Enum):
    BUTTON = "Button"
    INPUT = "Input"
    TEXTAREA = "Textarea"
    CHECKBOX = "Checkbox"
    RADIO_GROUP = "RadioGroup"
    SWITCH = "Switch"
    SELECT = "Select"
    SLIDER = "Slider"
    TABS = "Tabs"
    BADGE = "Badge"
    AVATAR = "Avatar"
    ALERT = "Alert"
    DIALOG = "Dialog"
    CARD = "Card"
    ICON = "Icon"
    CONTAINER = "Container"


# 宣告順序 = 同分時的優先順序
CATALOG = tuple(t for t in ComponentType if t != ComponentType.CONTAINER)


@dataclass(frozen=True)
class Rule:
    component_type: ComponentType
    name: str
    weight: float
    fn: Callable[[Node], Optional[str]]


@dataclass(frozen=True)
class ComponentClassification:
    component_type: ComponentType
    confidence: float
    evidence: tuple = ()

    @property
    def is_unclassified(self) -> bool:
        return self.component_type == ComponentType.CONTAINER

    def to_dict(self) -> dict:
        return {
            "componentType": self.component_type.value,
            "confidence": self.confidence,
            "evidence": list(self.evidence),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ComponentClassification":
        return cls(
            component_type=ComponentType(data["componentType"]),
            confidence=float(data["confidence"]),
            evidence=tuple(data.get("evidence", ())),
        )


# ─── helpers ───────────────────────────────────────────────

def _lower_name(node: Node) -> str:
    return (node.name or "").lower()


def _property_keys(node: Node) -> list:
    return [normalize_property_key(k) for k in node.component_properties]


def _child_names(node: Node) -> list:
    return [(c.name or "").lower() for c in node.children]


def _text_children(node: Node) -> list:
    return [c for c in node.children if c.is_text]


def _icon_children(node: Node) -> list:
    return [c for c in node.children if icon_layer_name(c.name) is not None]


def _is_square(node: Node, tolerance: float = 0.1) -> bool:
    ratio = node.bounds.aspect_ratio
    return ratio is not None and abs(ratio - 1.0) <= tolerance


def _has_positive_size(node: Node) -> bool:
    return node.width > 0 and node.height > 0


def _name_rule(pattern: str) -> Callable[[Node], Optional[str]]:
    regex = re.compile(pattern)

    def fn(node: Node) -> Optional[str]:
        match = regex.search(_lower_name(node))
        if match:
            return f"name matches '{match.group(0)}'"
        return None

    return fn


# ─── Button ────────────────────────────────────────────────

def _button_properties(node: Node) -> Optional[str]:
    for key in _property_keys(node):
        if "button text" in key or key in ("show left icon", "show right icon"):
            return f"component property '{key}'"
    return None


def _label_with_icons(node: Node) -> Optional[str]:
    if _text_children(node) and _icon_children(node):
        return "text label flanked by icon layers"
    return None


def _filled_label(node: Node) -> Optional[str]:
    if not _has_positive_size(node) or not 20 <= node.height <= 56:
        return None
    if node.style.visible_fills() and _text_children(node):
        return f"filled {node.height:g}px-high box around a text label"
    return None


def _pill_geometry(node: Node) -> Optional[str]:
    ratio = node.bounds.aspect_ratio
    if ratio is None or node.height > 56:
        return None
    if 1.5 <= ratio <= 8 and node.style.corner_radius > 0:
        return f"rounded horizontal box (aspect {ratio:.1f})"
    return None


# ─── Input / Textarea ──────────────────────────────────────

def _placeholder_property(node: Node) -> Optional[str]:
    for key in _property_keys(node):
        if "placeholder" in key:
            return f"component property '{key}'"
    return None


def _placeholder_child(node: Node) -> Optional[str]:
    if any("placeholder" in name for name in _child_names(node)):
        return "child layer named placeholder"
    return None


def _field_geometry(node: Node) -> Optional[str]:
    ratio = node.bounds.aspect_ratio
    if ratio is None or not 28 <= node.height <= 56:
        return None
    if ratio >= 3 and node.style.visible_strokes():
        return f"wide stroked field {node.width:g}x{node.height:g}"
    return None


def _multiline_field(node: Node) -> Optional[str]:
    ratio = node.bounds.aspect_ratio
    if ratio is None or node.height < 60:
        return None
    if ratio >= 1.5 and node.style.visible_strokes() and len(_text_children(node)) <= 1:
        return f"tall stroked field {node.width:g}x{node.height:g}"
    return None


# ─── Checkbox / Radio / Switch ─────────────────────────────

def _checked_property(node: Node) -> Optional[str]:
    for key, value in node.component_properties.items():
        normalized = normalize_property_key(key)
        if normalized in ("checked", "is checked") and value.kind in (PropertyKind.BOOLEAN, PropertyKind.VARIANT):
            return f"component property '{normalized}'"
    return None


def _small_stroked_square(node: Node) -> Optional[str]:
    if not _has_positive_size(node) or not _is_square(node):
        return None
    if 12 <= node.width <= 24 and node.style.visible_strokes():
        return f"small stroked square {node.width:g}px"
    return None


def _radio_items(node: Node) -> Optional[str]:
    count = sum(1 for name in _child_names(node) if "radio" in name or "option" in name)
    if count >= 2:
        return f"{count} radio/option children"
    return None


def _toggle_geometry(node: Node) -> Optional[str]:
    ratio = node.bounds.aspect_ratio
    if ratio is None or not 16 <= node.height <= 32:
        return None
    if 1.6 <= ratio <= 2.4 and node.style.corner_radius >= node.height / 2 - 1:
        return f"pill track {node.width:g}x{node.height:g}"
    return None


def _thumb_child(node: Node) -> Optional[str]:
    names = _child_names(node)
    if any("thumb" in name or "knob" in name or "handle" in name for name in names):
        return "child layer named thumb/knob"
    return None


# ─── Select / Slider / Tabs ────────────────────────────────

def _chevron_child(node: Node) -> Optional[str]:
    for child in _icon_children(node):
        ref = normalize_icon_name(child.name)
        if ref.icon == "ChevronDown" or ref.raw.lower() in ("chevronsupdown", "chevrondown"):
            return f"chevron icon '{ref.raw}'"
    return None


def _options_property(node: Node) -> Optional[str]:
    for key in _property_keys(node):
        if "option" in key or "selected" in key:
            return f"component property '{key}'"
    return None


def _track_and_thumb(node: Node) -> Optional[str]:
    names = _child_names(node)
    if any("track" in n or "range" in n for n in names) and any("thumb" in n or "handle" in n for n in names):
        return "track and thumb children"
    return None


def _tab_children(node: Node) -> Optional[str]:
    count = sum(1 for name in _child_names(node) if re.search(r"\btab\b", name))
    if count >= 2:
        return f"{count} tab children"
    return None


# ─── Badge / Avatar ────────────────────────────────────────

def _compact_label(node: Node) -> Optional[str]:
    if not _has_positive_size(node) or node.height > 28:
        return None
    if len(_text_children(node)) == 1 and node.style.corner_radius >= node.height / 2 - 2:
        return f"compact rounded label {node.height:g}px"
    return None


def _circular_or_image(node: Node) -> Optional[str]:
    if not _has_positive_size(node) or not _is_square(node):
        return None
    if any(p.type == "IMAGE" for p in node.style.visible_fills()):
        return "square image fill"
    if node.style.corner_radius >= node.width / 2 - 1 and node.width <= 96:
        return f"circle {node.width:g}px"
    return None


def _initials(node: Node) -> Optional[str]:
    texts = _text_children(node)
    if len(texts) == 1 and texts[0].characters and len(texts[0].characters.strip()) <= 2:
        return f"initials '{texts[0].characters.strip()}'"
    return None


# ─── Alert / Dialog / Card ─────────────────────────────────

def _title_and_description(node: Node) -> Optional[str]:
    names = _child_names(node)
    if any("title" in n for n in names) and any("description" in n for n in names):
        return "title and description children"
    return None


def _dialog_chrome(node: Node) -> Optional[str]:
    if node.style.has_drop_shadow() and node.width >= 320 and node.height >= 160:
        return f"large shadowed surface {node.width:g}x{node.height:g}"
    return None


def _close_control(node: Node) -> Optional[str]:
    for child in node.children:
        name = (child.name or "").lower()
        if "close" in name:
            return f"close control '{child.name}'"
        if icon_layer_name(child.name) is not None and normalize_icon_name(child.name).icon == "X":
            return f"close icon '{child.name}'"
    return None


def _actions_footer(node: Node) -> Optional[str]:
    if any("footer" in n or "actions" in n for n in _child_names(node)):
        return "footer/actions child"
    return None


def _elevated_surface(node: Node) -> Optional[str]:
    if len(node.children) < 2:
        return None
    if node.style.has_drop_shadow():
        return "drop shadow around grouped content"
    if node.style.visible_strokes() and node.style.corner_radius > 0:
        return "rounded stroked surface around grouped content"
    return None


def _card_sections(node: Node) -> Optional[str]:
    names = _child_names(node)
    sections = [s for s in ("header", "content", "footer") if any(s in n for n in names)]
    if len(sections) >= 2:
        return "sections " + "/".join(sections)
    return None


# ─── Icon ──────────────────────────────────────────────────

def _vector_glyph(node: Node) -> Optional[str]:
    if not _has_positive_size(node) or not _is_square(node, 0.2) or node.width > 48:
        return None
    if node.type == "VECTOR":
        return f"vector {node.width:g}px"
    shapes = [c for c in iter_nodes(node) if c is not node]
    if shapes and all(c.type in ("VECTOR", "BOOLEAN_OPERATION", "GROUP", "ELLIPSE", "LINE") for c in shapes):
        return f"small square of vector shapes {node.width:g}px"
    return None


_T = ComponentType

RULES: tuple = (
    Rule(_T.BUTTON, "name", 0.5, _name_rule(r"\b(button|btn|cta)\b")),
    Rule(_T.BUTTON, "properties", 0.4, _button_properties),
    Rule(_T.BUTTON, "label-with-icons", 0.2, _label_with_icons),
    Rule(_T.BUTTON, "filled-label", 0.2, _filled_label),
    Rule(_T.BUTTON, "pill-geometry", 0.1, _pill_geometry),

    Rule(_T.INPUT, "name", 0.6, _name_rule(r"\b(input|text ?field|search ?bar)\b")),
    Rule(_T.INPUT, "placeholder-property", 0.4, _placeholder_property),
    Rule(_T.INPUT, "placeholder-child", 0.2, _placeholder_child),
    Rule(_T.INPUT, "field-geometry", 0.2, _field_geometry),

    Rule(_T.TEXTAREA, "name", 0.6, _name_rule(r"\b(textarea|text ?area|multiline)\b")),
    Rule(_T.TEXTAREA, "multiline-field", 0.3, _multiline_field),

    Rule(_T.CHECKBOX, "name", 0.6, _name_rule(r"\b(checkbox|check ?box)\b")),
    Rule(_T.CHECKBOX, "checked-property", 0.4, _checked_property),
    Rule(_T.CHECKBOX, "small-square", 0.2, _small_stroked_square),

    Rule(_T.RADIO_GROUP, "name", 0.6, _name_rule(r"\bradio")),
    Rule(_T.RADIO_GROUP, "radio-items", 0.3, _radio_items),

    Rule(_T.SWITCH, "name", 0.6, _name_rule(r"\b(switch|toggle)\b")),
    Rule(_T.SWITCH, "toggle-geometry", 0.3, _toggle_geometry),
    Rule(_T.SWITCH, "thumb-child", 0.1, _thumb_child),

    Rule(_T.SELECT, "name", 0.6, _name_rule(r"\b(select|dropdown|combobox|picker)\b")),
    Rule(_T.SELECT, "chevron-child", 0.3, _chevron_child),
    Rule(_T.SELECT, "options-property", 0.2, _options_property),

    Rule(_T.SLIDER, "name", 0.6, _name_rule(r"\b(slider|range)\b")),
    Rule(_T.SLIDER, "track-and-thumb", 0.4, _track_and_thumb),

    Rule(_T.TABS, "name", 0.6, _name_rule(r"\b(tabs|tab ?bar|tab ?list|segmented)\b")),
    Rule(_T.TABS, "tab-children", 0.4, _tab_children),

    Rule(_T.BADGE, "name", 0.6, _name_rule(r"\b(badge|tag|chip|pill)\b")),
    Rule(_T.BADGE, "compact-label", 0.2, _compact_label),

    Rule(_T.AVATAR, "name", 0.6, _name_rule(r"\b(avatar|profile ?(pic|photo|image))\b")),
    Rule(_T.AVATAR, "circle-or-image", 0.3, _circular_or_image),
    Rule(_T.AVATAR, "initials", 0.1, _initials),

    Rule(_T.ALERT, "name", 0.6, _name_rule(r"\b(alert|banner|toast|callout)\b")),
    Rule(_T.ALERT, "title-and-description", 0.3, _title_and_description),

    Rule(_T.DIALOG, "name", 0.7, _name_rule(r"\b(dialog|modal|popup|popover)\b")),
    Rule(_T.DIALOG, "chrome", 0.2, _dialog_chrome),
    Rule(_T.DIALOG, "close-control", 0.2, _close_control),
    Rule(_T.DIALOG, "actions-footer", 0.1, _actions_footer),

    Rule(_T.CARD, "name", 0.5, _name_rule(r"\bcard\b")),
    Rule(_T.CARD, "elevated-surface", 0.2, _elevated_surface),
    Rule(_T.CARD, "sections", 0.3, _card_sections),

    Rule(_T.ICON, "name", 0.6, _name_rule(r"^\s*icon\b")),
    Rule(_T.ICON, "vector-glyph", 0.3, _vector_glyph),
)


def _round(score: float) -> float:
    return round(min(score, 1.0), 6)


def classify_node(node: Node, config: Optional[HeuristicConfig] = None) -> ComponentClassification:
    """Fold every rule over the node and pick the best-scoring component type."""
    config = config or HeuristicConfig()
    scores: dict = {}
    evidence = []
    for rule in RULES:
        reason = rule.fn(node)
        if reason is None:
            continue
        scores[rule.component_type] = scores.get(rule.component_type, 0.0) + rule.weight
        evidence.append(f"{rule.component_type.value}.{rule.name}: {reason} (+{rule.weight:g})")

    best: Optional[ComponentType] = None
    best_score = 0.0
    for component_type in CATALOG:
        score = _round(scores.get(component_type, 0.0))
        if score > best_score:
            best, best_score = component_type, score

    if best is None:
        evidence.append("no rule fired")
        logger.debug("classify %s '%s': no rule fired", node.id, node.name)
        return ComponentClassification(ComponentType.CONTAINER, 0.0, tuple(evidence))

    if best_score < config.confidence_floor:
        evidence.append(
            f"best candidate {best.value} ({best_score:g}) below confidence floor {config.confidence_floor:g}"
        )
        logger.debug("classify %s '%s': Container (best %s %.2f)", node.id, node.name, best.value, best_score)
        return ComponentClassification(ComponentType.CONTAINER, best_score, tuple(evidence))

    logger.debug("classify %s '%s': %s %.2f", node.id, node.name, best.value, best_score)
    return ComponentClassification(best, best_score, tuple(evidence))


def classify_tree(root: Node, config: Optional[HeuristicConfig] = None) -> dict[str, ComponentClassification]:
    """Classify the root and every INSTANCE node (each visited once)."""
    result = {}
    for node in iter_nodes(root):
        if node is root or node.is_instance:
            result[node.id] = classify_node(node, config)
    return result
