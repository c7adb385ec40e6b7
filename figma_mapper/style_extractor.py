"""
樣式萃取 — 填色、邊框、文字色、字型、陰影、圓角、內距

結果放進 ComponentRecord，程式碼生成不必再回頭讀原始場景圖。
padding / itemSpacing / lineHeight 等欄位 scene graph 沒有建模，從 Node.extra 讀取。
"""

from dataclasses import dataclass
from typing import Optional

from .scene_graph import Color, Node, iter_descendants

# 快取指紋必須涵蓋這些 extra 欄位
STYLE_EXTRA_KEYS = (
    "paddingTop", "paddingRight", "paddingBottom", "paddingLeft", "itemSpacing",
    "lineHeight", "letterSpacing", "textAlignHorizontal",
)

FONT_WEIGHTS = {
    "thin": 100,
    "extra light": 200,
    "extralight": 200,
    "light": 300,
    "regular": 400,
    "normal": 400,
    "medium": 500,
    "semi bold": 600,
    "semibold": 600,
    "bold": 700,
    "extra bold": 800,
    "extrabold": 800,
    "black": 900,
}

DEFAULT_FONT_SIZE = 14.0
DEFAULT_SHADOW_COLOR = "rgba(0, 0, 0, 0.100)"


@dataclass(frozen=True)
class ColorValue:
    hex: str
    rgba: str
    opacity: float
    role: str  # fill / stroke / text / shadow

    def to_dict(self) -> dict:
        return {"hex": self.hex, "rgba": self.rgba, "opacity": self.opacity, "role": self.role}

    @classmethod
    def from_dict(cls, data: dict) -> "ColorValue":
        return cls(hex=data["hex"], rgba=data["rgba"], opacity=float(data["opacity"]), role=data["role"])


@dataclass(frozen=True)
class Typography:
    font_family: str
    font_size: float
    font_weight: int
    font_style: str
    line_height: Optional[str] = None
    letter_spacing: Optional[str] = None
    text_align: str = "LEFT"

    def to_dict(self) -> dict:
        return {
            "fontFamily": self.font_family,
            "fontSize": self.font_size,
            "fontWeight": self.font_weight,
            "fontStyle": self.font_style,
            "lineHeight": self.line_height,
            "letterSpacing": self.letter_spacing,
            "textAlign": self.text_align,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Typography":
        return cls(
            font_family=data.get("fontFamily", ""),
            font_size=float(data.get("fontSize", DEFAULT_FONT_SIZE)),
            font_weight=int(data.get("fontWeight", 400)),
            font_style=data.get("fontStyle", ""),
            line_height=data.get("lineHeight"),
            letter_spacing=data.get("letterSpacing"),
            text_align=data.get("textAlign", "LEFT"),
        )


@dataclass(frozen=True)
class StyleSummary:
    fills: tuple = ()
    strokes: tuple = ()
    border_width: float = 0.0
    text_color: Optional[ColorValue] = None
    typography: Optional[Typography] = None
    box_shadow: str = ""
    corner_radius: float = 0.0
    opacity: float = 1.0
    # (top, right, bottom, left)
    padding: tuple = (0.0, 0.0, 0.0, 0.0)
    gap: Optional[float] = None

    @property
    def background(self) -> Optional[ColorValue]:
        return self.fills[0] if self.fills else None

    @property
    def is_uniform_padding(self) -> bool:
        return len(set(self.padding)) == 1

    @property
    def is_symmetric_padding(self) -> bool:
        top, right, bottom, left = self.padding
        return top == bottom and left == right

    def to_dict(self) -> dict:
        return {
            "fills": [c.to_dict() for c in self.fills],
            "strokes": [c.to_dict() for c in self.strokes],
            "borderWidth": self.border_width,
            "textColor": self.text_color.to_dict() if self.text_color else None,
            "typography": self.typography.to_dict() if self.typography else None,
            "boxShadow": self.box_shadow,
            "cornerRadius": self.corner_radius,
            "opacity": self.opacity,
            "padding": list(self.padding),
            "gap": self.gap,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StyleSummary":
        text_color = data.get("textColor")
        typography = data.get("typography")
        return cls(
            fills=tuple(ColorValue.from_dict(c) for c in data.get("fills", ())),
            strokes=tuple(ColorValue.from_dict(c) for c in data.get("strokes", ())),
            border_width=float(data.get("borderWidth", 0.0)),
            text_color=ColorValue.from_dict(text_color) if text_color else None,
            typography=Typography.from_dict(typography) if typography else None,
            box_shadow=data.get("boxShadow", ""),
            corner_radius=float(data.get("cornerRadius", 0.0)),
            opacity=float(data.get("opacity", 1.0)),
            padding=tuple(float(v) for v in data.get("padding", (0.0, 0.0, 0.0, 0.0))),
            gap=data.get("gap"),
        )


def color_value(color: Color, opacity: float, role: str) -> ColorValue:
    r, g, b = (int(round(channel * 255)) for channel in (color.r, color.g, color.b))
    return ColorValue(
        hex=color.to_hex(),
        rgba=f"rgba({r}, {g}, {b}, {opacity:.3f})",
        opacity=opacity,
        role=role,
    )


def _solid_colors(paints, role: str) -> tuple:
    return tuple(
        color_value(p.color, p.opacity, role)
        for p in (paints or ())
        if p.visible and p.type == "SOLID" and p.color is not None
    )


def font_weight(style_name: str) -> int:
    """'Semi Bold' → 600；不認得的樣式名稱當成 400."""
    return FONT_WEIGHTS.get((style_name or "").strip().lower(), 400)


def _measure(raw) -> Optional[str]:
    """{'value': 20, 'unit': 'PIXELS'} → '20px'；AUTO 與缺值回傳 None."""
    if not isinstance(raw, dict):
        return None
    unit = str(raw.get("unit") or raw.get("units") or "PIXELS").upper()
    value = raw.get("value")
    if unit == "AUTO" or not isinstance(value, (int, float)):
        return None
    if unit == "PERCENT":
        return f"{value:g}%"
    return f"{value:g}px"


def _text_source(node: Node) -> Optional[Node]:
    if node.is_text:
        return node
    return next((d for d in iter_descendants(node) if d.is_text and d.visible), None)


def extract_typography(text_node: Node) -> Optional[Typography]:
    font = text_node.font
    if font is None or not font.family:
        return None
    weight = int(font.weight) if font.weight > 0 else font_weight(font.style)
    return Typography(
        font_family=font.family,
        font_size=font.size or DEFAULT_FONT_SIZE,
        font_weight=weight,
        font_style=font.style,
        line_height=_measure(text_node.extra.get("lineHeight")),
        letter_spacing=_measure(text_node.extra.get("letterSpacing")),
        text_align=str(text_node.extra.get("textAlignHorizontal") or "LEFT"),
    )


def effects_to_box_shadow(effects) -> str:
    """DROP_SHADOW / INNER_SHADOW → CSS box-shadow；其他效果忽略."""
    shadows = []
    for effect in effects:
        if not effect.visible or effect.type not in ("DROP_SHADOW", "INNER_SHADOW"):
            continue
        inset = "inset " if effect.type == "INNER_SHADOW" else ""
        color = (
            color_value(effect.color, effect.color.a, "shadow").rgba
            if effect.color is not None
            else DEFAULT_SHADOW_COLOR
        )
        shadows.append(
            f"{inset}{effect.offset_x:g}px {effect.offset_y:g}px "
            f"{effect.radius:g}px {effect.spread:g}px {color}"
        )
    return ", ".join(shadows)


def _padding(node: Node) -> tuple:
    values = []
    for key in ("paddingTop", "paddingRight", "paddingBottom", "paddingLeft"):
        value = node.extra.get(key)
        values.append(float(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else 0.0)
    return tuple(values)


def extract_style(node: Node) -> StyleSummary:
    style = node.style
    text_node = _text_source(node)
    text_color = None
    typography = None
    if text_node is not None:
        text_fills = _solid_colors(text_node.style.fills, "text")
        text_color = text_fills[0] if text_fills else None
        typography = extract_typography(text_node)
    strokes = _solid_colors(style.strokes, "stroke")
    gap = node.extra.get("itemSpacing")
    return StyleSummary(
        fills=_solid_colors(style.fills, "fill"),
        strokes=strokes,
        border_width=style.stroke_weight if strokes else 0.0,
        text_color=text_color,
        typography=typography,
        box_shadow=effects_to_box_shadow(style.effects),
        corner_radius=style.corner_radius,
        opacity=style.opacity,
        padding=_padding(node),
        gap=float(gap) if isinstance(gap, (int, float)) and not isinstance(gap, bool) else None,
    )
