"""
區塊分類器 — 頁面層級的版面區塊（Hero、Pricing、Footer …）

元件分類看單一 instance；區塊分類看一整段 frame 的組成：
名稱關鍵字、子元件組成、版面型態（水平/垂直/格狀）與尺寸特徵。
依 BLOCK_CLASSIFIERS 的順序逐一嘗試，第一個達到 BLOCK_CONFIDENCE_FLOOR 的勝出；
都不符合時退回 Layout / Section（信心 0.3）。
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .scene_graph import Node, iter_descendants

logger = logging.getLogger(__name__)

BLOCK_CONFIDENCE_FLOOR = 0.5
GENERIC_BLOCK_CONFIDENCE = 0.3

MIN_BLOCK_WIDTH = 200
MIN_BLOCK_HEIGHT = 100
FULL_WIDTH = 1000
LARGE_SECTION_HEIGHT = 500
ROW_THRESHOLD = 50


class BlockCategory(str, Enum):
    HERO = "Hero"
    FEATURES = "Features"
    PRICING = "Pricing"
    TESTIMONIALS = "Testimonials"
    CTA = "CTA"
    FOOTER = "Footer"
    HEADER = "Header"
    AUTHENTICATION = "Authentication"
    DASHBOARD = "Dashboard"
    SIDEBAR = "Sidebar"
    STATS = "Stats"
    ECOMMERCE = "E-commerce"
    BLOG = "Blog"
    CONTENT_GRID = "ContentGrid"
    FORM = "Form"
    NAVIGATION = "Navigation"
    BREADCRUMB = "Breadcrumb"
    LAYOUT = "Layout"
    SECTION = "Section"


class BlockSubType(str, Enum):
    HERO_SIMPLE = "Hero-Simple"
    HERO_WITH_IMAGE = "Hero-WithImage"
    HERO_SPLIT = "Hero-Split"
    HERO_CENTERED = "Hero-Centered"
    FEATURES_GRID = "Features-Grid"
    FEATURES_LIST = "Features-List"
    FEATURES_CARDS = "Features-Cards"
    FEATURES_WITH_ICONS = "Features-WithIcons"
    PRICING_SIMPLE = "Pricing-Simple"
    PRICING_CARDS = "Pricing-Cards"
    PRICING_TABLE = "Pricing-Table"
    LOGIN = "Login"
    REGISTER = "Register"
    FORGOT_PASSWORD = "ForgotPassword"
    RESET_PASSWORD = "ResetPassword"
    TWO_FACTOR = "TwoFactor"
    DASHBOARD_STATS = "Dashboard-Stats"
    DASHBOARD_HEADER = "Dashboard-Header"
    DASHBOARD_SIDEBAR = "Dashboard-Sidebar"
    DASHBOARD_WIDGET = "Dashboard-Widget"
    PRODUCT_CARD = "Product-Card"
    PRODUCT_LIST = "Product-List"
    PRODUCT_DETAIL = "Product-Detail"
    CART_SUMMARY = "Cart-Summary"
    CHECKOUT_FORM = "Checkout-Form"
    BLOG_CARD = "Blog-Card"
    BLOG_LIST = "Blog-List"
    BLOG_POST = "Blog-Post"
    UNKNOWN = "Unknown"


# 名稱關鍵字 → 子元件種類，依序比對（'icon button' 算 Button）
COMPOSITION_KEYWORDS = (
    ("Button", ("button", "btn")),
    ("Input", ("input", "text-field", "textfield")),
    ("Card", ("card",)),
    ("Badge", ("badge", "tag")),
    ("Avatar", ("avatar", "profile")),
    ("Icon", ("icon",)),
    ("Image", ("image", "img", "picture")),
    ("Form", ("form",)),
    ("Table", ("table", "grid")),
    ("Chart", ("chart", "graph")),
)


@dataclass(frozen=True)
class ComponentComposition:
    component_type: str
    count: int
    location: str  # root / nested / deep
    confidence: float

    def to_dict(self) -> dict:
        return {
            "componentType": self.component_type,
            "count": self.count,
            "location": self.location,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class LayoutPattern:
    type: str  # vertical / horizontal / grid / unknown
    columns: Optional[int] = None
    rows: Optional[int] = None
    has_images: bool = False
    has_text: bool = False
    has_buttons: bool = False
    has_form: bool = False
    complexity: str = "simple"

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "columns": self.columns,
            "rows": self.rows,
            "hasImages": self.has_images,
            "hasText": self.has_text,
            "hasButtons": self.has_buttons,
            "hasForm": self.has_form,
            "complexity": self.complexity,
        }


@dataclass(frozen=True)
class BlockCharacteristics:
    is_full_width: bool
    is_large_section: bool
    has_multiple_columns: bool
    has_hierarchy: bool
    dominant_content: str  # text / images / forms / mixed
    estimated_complexity: int  # 1–10

    def to_dict(self) -> dict:
        return {
            "isFullWidth": self.is_full_width,
            "isLargeSection": self.is_large_section,
            "hasMultipleColumns": self.has_multiple_columns,
            "hasHierarchy": self.has_hierarchy,
            "dominantContent": self.dominant_content,
            "estimatedComplexity": self.estimated_complexity,
        }


@dataclass(frozen=True)
class BlockClassification:
    node_id: str
    category: BlockCategory
    sub_type: BlockSubType
    block_type: str
    confidence: float
    composed_of: tuple
    layout: LayoutPattern
    characteristics: BlockCharacteristics
    reasons: tuple = ()

    def count(self, component_type: str) -> int:
        return next((c.count for c in self.composed_of if c.component_type == component_type), 0)

    def to_dict(self) -> dict:
        return {
            "nodeId": self.node_id,
            "category": self.category.value,
            "subType": self.sub_type.value,
            "blockType": self.block_type,
            "confidence": self.confidence,
            "composedOf": [c.to_dict() for c in self.composed_of],
            "layout": self.layout.to_dict(),
            "characteristics": self.characteristics.to_dict(),
            "reasons": list(self.reasons),
        }


# ════════════════════════════════════════════════════════════
# Analysis
# ════════════════════════════════════════════════════════════

def is_likely_block(node: Node) -> bool:
    if node.width < MIN_BLOCK_WIDTH or node.height < MIN_BLOCK_HEIGHT:
        return False
    return len(node.children) >= 2


def infer_composition_type(node: Node) -> Optional[str]:
    name = (node.name or "").lower()
    for component_type, keywords in COMPOSITION_KEYWORDS:
        if any(k in name for k in keywords):
            return component_type
    return None


def analyze_composition(root: Node) -> tuple:
    """子元件種類統計（不含區塊本身）；深度越深信心越低（1 - 0.1 × depth）."""
    found: dict = {}
    stack = [(child, 1) for child in reversed(root.children)]
    while stack:
        node, depth = stack.pop()
        component_type = infer_composition_type(node)
        if component_type is not None:
            confidence = round(1 - depth * 0.1, 2)
            existing = found.get(component_type)
            if existing is None:
                location = "root" if depth == 1 else "nested" if depth == 2 else "deep"
                found[component_type] = [1, location, confidence]
            else:
                existing[0] += 1
                existing[2] = max(existing[2], confidence)
        stack.extend((child, depth + 1) for child in reversed(node.children))
    return tuple(
        ComponentComposition(component_type, count, location, confidence)
        for component_type, (count, location, confidence) in found.items()
    )


def _any_node(root: Node, predicate: Callable[[Node], bool]) -> bool:
    return any(predicate(n) for n in iter_descendants(root))


def _name_has(node: Node, *keywords: str) -> bool:
    name = (node.name or "").lower()
    return any(k in name for k in keywords)


def _row_count(children: tuple) -> int:
    ys = sorted(c.bounds.y for c in children)
    rows = 1
    for previous, current in zip(ys, ys[1:]):
        if abs(current - previous) > ROW_THRESHOLD:
            rows += 1
    return rows


def _first_row_columns(children: tuple) -> int:
    first = min(c.bounds.y for c in children)
    return sum(1 for c in children if abs(c.bounds.y - first) < ROW_THRESHOLD)


def analyze_layout(node: Node) -> LayoutPattern:
    layout_mode = node.extra.get("layoutMode")
    layout_type = {"HORIZONTAL": "horizontal", "VERTICAL": "vertical"}.get(layout_mode, "unknown")
    children = node.children
    columns = rows = None
    if len(children) >= 4 and _row_count(children) >= 2:
        layout_type = "grid"
        columns = _first_row_columns(children)
        rows = math.ceil(len(children) / (columns or 1))

    if len(children) < 5:
        complexity = "simple"
    elif len(children) < 15:
        complexity = "moderate"
    else:
        complexity = "complex"

    return LayoutPattern(
        type=layout_type,
        columns=columns,
        rows=rows,
        has_images=_any_node(node, lambda n: _name_has(n, "image", "img")),
        has_text=_any_node(node, lambda n: bool(n.characters)),
        has_buttons=_any_node(node, lambda n: _name_has(n, "button")),
        has_form=_any_node(node, lambda n: _name_has(n, "form", "input", "field")),
        complexity=complexity,
    )


def analyze_characteristics(node: Node, layout: LayoutPattern) -> BlockCharacteristics:
    has_multiple_columns = (layout.columns or 1) > 1
    if layout.has_form:
        dominant = "forms"
    elif layout.has_images and not layout.has_text:
        dominant = "images"
    elif layout.has_text and not layout.has_images:
        dominant = "text"
    else:
        dominant = "mixed"

    complexity = 1 + len(node.children) * 0.3
    complexity += 2 if has_multiple_columns else 0
    complexity += 2 if layout.has_form else 0
    complexity += 1 if layout.has_images else 0

    return BlockCharacteristics(
        is_full_width=node.width >= FULL_WIDTH,
        is_large_section=node.height >= LARGE_SECTION_HEIGHT,
        has_multiple_columns=has_multiple_columns,
        has_hierarchy=len(node.children) >= 3,
        dominant_content=dominant,
        estimated_complexity=min(int(complexity + 0.5), 10),
    )


def count_similar_children(children: tuple) -> int:
    """最大一組「尺寸相近」（以 50px 為格）的子節點數."""
    groups: dict = {}
    for child in children:
        key = (round(child.width / 50), round(child.height / 50))
        groups[key] = groups.get(key, 0) + 1
    return max(groups.values(), default=0)


# ════════════════════════════════════════════════════════════
# Category rules
# ════════════════════════════════════════════════════════════

@dataclass
class _Block:
    """各分類規則共用的輸入."""
    node: Node
    name: str
    composition: tuple
    layout: LayoutPattern
    traits: BlockCharacteristics

    def has(self, component_type: str) -> bool:
        return any(c.component_type == component_type for c in self.composition)

    def count(self, component_type: str) -> int:
        return next((c.count for c in self.composition if c.component_type == component_type), 0)


_Verdict = Optional[tuple]  # (category, sub_type, block_type or None, confidence, reasons)


def _hero(b: _Block) -> _Verdict:
    score, reasons = 0.0, []
    sub_type = BlockSubType.HERO_SIMPLE
    if "hero" in b.name:
        score += 0.8
        reasons.append("name contains 'hero'")
    if b.traits.is_large_section and b.traits.is_full_width:
        score += 0.3
        reasons.append("large full-width section")
    if b.layout.has_text and b.layout.has_buttons:
        score += 0.4
        reasons.append("text with call-to-action buttons")
    if b.layout.has_images and b.layout.type == "horizontal":
        sub_type = BlockSubType.HERO_SPLIT
        reasons.append("split layout with image")
    elif b.layout.has_images:
        sub_type = BlockSubType.HERO_WITH_IMAGE
        reasons.append("contains hero image")
    elif b.layout.type == "vertical":
        sub_type = BlockSubType.HERO_CENTERED
        reasons.append("centered vertical layout")
    return BlockCategory.HERO, sub_type, None, score, reasons


def _features(b: _Block) -> _Verdict:
    score, reasons = 0.0, []
    sub_type = BlockSubType.FEATURES_LIST
    if "feature" in b.name:
        score += 0.8
        reasons.append("name contains 'feature'")
    if b.layout.type == "grid" and b.traits.has_multiple_columns:
        score += 0.4
        sub_type = BlockSubType.FEATURES_GRID
        reasons.append("multi-column grid")
    if b.has("Icon"):
        score += 0.3
        sub_type = BlockSubType.FEATURES_WITH_ICONS
        reasons.append("contains icons")
    if b.has("Card"):
        score += 0.2
        sub_type = BlockSubType.FEATURES_CARDS
        reasons.append("uses cards")
    if len(b.node.children) >= 3:
        similar = count_similar_children(b.node.children)
        if similar >= 3:
            score += 0.2
            reasons.append(f"{similar} similar child elements")
    return BlockCategory.FEATURES, sub_type, None, score, reasons


def _pricing(b: _Block) -> _Verdict:
    score, reasons = 0.0, []
    sub_type = BlockSubType.PRICING_SIMPLE
    if any(k in b.name for k in ("pricing", "price", "plan")):
        score += 0.8
        reasons.append("name indicates pricing")
    if b.has("Card") and b.has("Button"):
        score += 0.4
        sub_type = BlockSubType.PRICING_CARDS
        reasons.append("cards with call-to-action buttons")
    if b.has("Badge"):
        score += 0.2
        reasons.append("contains plan badges")
    if b.layout.columns and 2 <= b.layout.columns <= 4:
        score += 0.3
        reasons.append(f"{b.layout.columns}-column layout")
    return BlockCategory.PRICING, sub_type, None, score, reasons


def _testimonials(b: _Block) -> _Verdict:
    score, reasons = 0.0, []
    if any(k in b.name for k in ("testimonial", "review", "quote")):
        score += 0.8
        reasons.append("name indicates testimonials")
    if b.has("Avatar"):
        score += 0.4
        reasons.append("contains avatars")
    if b.has("Card"):
        score += 0.2
        reasons.append("uses cards")
    return BlockCategory.TESTIMONIALS, BlockSubType.UNKNOWN, "Testimonials Section", score, reasons


def _cta(b: _Block) -> _Verdict:
    score, reasons = 0.0, []
    if any(k in b.name for k in ("cta", "call-to-action", "action")):
        score += 0.7
        reasons.append("name indicates call to action")
    if b.layout.type == "vertical" and b.layout.has_buttons:
        score += 0.4
        reasons.append("vertical layout with buttons")
    buttons = b.count("Button")
    if buttons:
        score += 0.3
        reasons.append(f"{buttons} button(s)")
    if b.traits.estimated_complexity <= 4:
        score += 0.2
        reasons.append("simple composition")
    return BlockCategory.CTA, BlockSubType.UNKNOWN, "Call-to-Action Section", score, reasons


def _footer(b: _Block) -> _Verdict:
    score, reasons = 0.0, []
    if "footer" in b.name:
        score += 0.9
        reasons.append("name contains 'footer'")
    if b.traits.is_full_width and b.traits.has_multiple_columns:
        score += 0.4
        reasons.append("full-width multi-column layout")
    if b.has("Icon") and b.layout.columns and b.layout.columns >= 3:
        score += 0.3
        reasons.append("icon columns")
    return BlockCategory.FOOTER, BlockSubType.UNKNOWN, "Footer Section", score, reasons


def _header(b: _Block) -> _Verdict:
    score, reasons = 0.0, []
    if any(k in b.name for k in ("header", "navbar", "nav")):
        score += 0.8
        reasons.append("name indicates header")
    if b.layout.type == "horizontal" and b.traits.is_full_width and b.node.height < 150:
        score += 0.4
        reasons.append("compact full-width horizontal bar")
    if b.has("Button") or b.has("Avatar"):
        score += 0.3
        reasons.append("contains actions or user avatar")
    return BlockCategory.HEADER, BlockSubType.UNKNOWN, "Header/Navigation", score, reasons


def _authentication(b: _Block) -> _Verdict:
    score, reasons = 0.0, []
    sub_type = BlockSubType.LOGIN
    if any(k in b.name for k in ("login", "sign-in", "signin")):
        score += 0.8
        reasons.append("name indicates login")
    elif any(k in b.name for k in ("register", "sign-up", "signup")):
        score += 0.8
        sub_type = BlockSubType.REGISTER
        reasons.append("name indicates registration")
    elif "forgot" in b.name or "reset" in b.name:
        score += 0.8
        sub_type = BlockSubType.FORGOT_PASSWORD if "forgot" in b.name else BlockSubType.RESET_PASSWORD
        reasons.append("name indicates password recovery")
    elif any(k in b.name for k in ("2fa", "two-factor", "otp")):
        score += 0.8
        sub_type = BlockSubType.TWO_FACTOR
        reasons.append("name indicates two-factor authentication")
    if b.has("Input") and b.has("Button"):
        score += 0.4
        reasons.append("inputs with submit button")
    if b.has("Card"):
        score += 0.2
        reasons.append("card wrapper")
    if b.layout.type == "vertical" and not b.traits.is_full_width:
        score += 0.2
        reasons.append("narrow vertical layout")
    return BlockCategory.AUTHENTICATION, sub_type, None, score, reasons


def _dashboard(b: _Block) -> _Verdict:
    score, reasons = 0.0, []
    sub_type = BlockSubType.DASHBOARD_WIDGET
    if "dashboard" in b.name:
        score += 0.7
        reasons.append("name contains 'dashboard'")
        if "stats" in b.name or "metric" in b.name:
            sub_type = BlockSubType.DASHBOARD_STATS
        elif "header" in b.name:
            sub_type = BlockSubType.DASHBOARD_HEADER
        elif "sidebar" in b.name:
            sub_type = BlockSubType.DASHBOARD_SIDEBAR
    if b.has("Card") and (b.has("Chart") or b.has("Badge")):
        score += 0.4
        reasons.append("cards with charts or metrics")
    if b.layout.type == "grid" and b.traits.estimated_complexity >= 5:
        score += 0.3
        reasons.append("complex grid")
    return BlockCategory.DASHBOARD, sub_type, None, score, reasons


def _sidebar(b: _Block) -> _Verdict:
    score, reasons = 0.0, []
    if "sidebar" in b.name or "side-bar" in b.name:
        score += 0.9
        reasons.append("name contains 'sidebar'")
    if b.layout.type == "vertical":
        if b.node.width < 400 and b.node.height > 500:
            score += 0.4
            reasons.append("narrow tall vertical layout")
        if b.has("Icon"):
            score += 0.3
            reasons.append("vertical list with icons")
    return BlockCategory.SIDEBAR, BlockSubType.DASHBOARD_SIDEBAR, "Sidebar Navigation", score, reasons


def _stats(b: _Block) -> _Verdict:
    score, reasons = 0.0, []
    if any(k in b.name for k in ("stats", "metric", "kpi")):
        score += 0.8
        reasons.append("name indicates metrics")
    if b.layout.type == "horizontal" or (b.layout.type == "grid" and b.layout.columns and b.layout.columns <= 4):
        score += 0.3
        reasons.append("horizontal or small grid layout")
    if b.has("Card") and 2 <= len(b.node.children) <= 6:
        score += 0.4
        reasons.append("several metric cards")
    return BlockCategory.STATS, BlockSubType.DASHBOARD_STATS, "Statistics/Metrics Section", score, reasons


def _ecommerce(b: _Block) -> _Verdict:
    score, reasons = 0.0, []
    sub_type = BlockSubType.PRODUCT_CARD
    if "product" in b.name:
        score += 0.7
        reasons.append("name contains 'product'")
        if "list" in b.name:
            sub_type = BlockSubType.PRODUCT_LIST
        elif "detail" in b.name:
            sub_type = BlockSubType.PRODUCT_DETAIL
    elif "cart" in b.name:
        score += 0.8
        sub_type = BlockSubType.CART_SUMMARY
        reasons.append("name contains 'cart'")
    elif "checkout" in b.name:
        score += 0.8
        sub_type = BlockSubType.CHECKOUT_FORM
        reasons.append("name contains 'checkout'")
    if b.layout.has_images and b.has("Badge") and b.layout.has_buttons:
        score += 0.4
        reasons.append("image, badge and button")
    return BlockCategory.ECOMMERCE, sub_type, None, score, reasons


def _blog(b: _Block) -> _Verdict:
    score, reasons = 0.0, []
    sub_type = BlockSubType.BLOG_CARD
    if any(k in b.name for k in ("blog", "article", "post")):
        score += 0.7
        reasons.append("name indicates blog content")
        if "card" in b.name:
            sub_type = BlockSubType.BLOG_CARD
        elif "list" in b.name:
            sub_type = BlockSubType.BLOG_LIST
        elif "post" in b.name:
            sub_type = BlockSubType.BLOG_POST
    if b.has("Card") and b.layout.has_images:
        score += 0.4
        reasons.append("card with image")
    if b.has("Badge"):
        score += 0.2
        reasons.append("category badges")
    return BlockCategory.BLOG, sub_type, None, score, reasons


def _content(b: _Block) -> _Verdict:
    score, reasons = 0.0, []
    if "content" in b.name or "section" in b.name:
        score += 0.5
        reasons.append("name indicates content section")
    if b.traits.is_full_width and b.layout.has_text:
        score += 0.3
        reasons.append("full-width text content")
    if 3 <= b.traits.estimated_complexity <= 6:
        score += 0.2
        reasons.append("moderate complexity")
    return BlockCategory.CONTENT_GRID, BlockSubType.UNKNOWN, "Content Section", score, reasons


def _form(b: _Block) -> _Verdict:
    score, reasons = 0.0, []
    if "form" in b.name and "login" not in b.name and "register" not in b.name:
        score += 0.7
        reasons.append("name contains 'form'")
    if "contact" in b.name:
        score += 0.3
        reasons.append("contact form")
    inputs = b.count("Input")
    if b.layout.has_form and inputs >= 2 and b.layout.has_buttons:
        score += 0.5
        reasons.append(f"{inputs} inputs with submit button")
    return BlockCategory.FORM, BlockSubType.UNKNOWN, "Form Block", score, reasons


def _navigation(b: _Block) -> _Verdict:
    score, reasons = 0.0, []
    if any(k in b.name for k in ("navigation", "nav", "menu")):
        score += 0.7
        reasons.append("name indicates navigation")
    if "breadcrumb" in b.name:
        reasons.append("breadcrumb navigation")
        return BlockCategory.BREADCRUMB, BlockSubType.UNKNOWN, "Breadcrumb Navigation", score + 0.9, reasons
    if b.layout.type == "horizontal":
        score += 0.3
        reasons.append("horizontal layout")
    return BlockCategory.NAVIGATION, BlockSubType.UNKNOWN, "Navigation Block", score, reasons


# 嘗試順序；第一個達門檻者勝出
BLOCK_CLASSIFIERS = (
    _hero,
    _features,
    _pricing,
    _testimonials,
    _cta,
    _footer,
    _header,
    _authentication,
    _dashboard,
    _sidebar,
    _stats,
    _ecommerce,
    _blog,
    _content,
    _form,
    _navigation,
)


def readable_sub_type(sub_type: BlockSubType) -> str:
    """'Hero-WithImage' → 'Hero Withimage'."""
    words = sub_type.value.replace("_", " ").replace("-", " ").split()
    return " ".join(w[:1].upper() + w[1:].lower() for w in words)


def classify_block(node: Node) -> Optional[BlockClassification]:
    """None when the node is too small or has fewer than two children."""
    if not is_likely_block(node):
        return None
    layout = analyze_layout(node)
    block = _Block(
        node=node,
        name=(node.name or "").lower(),
        composition=analyze_composition(node),
        layout=layout,
        traits=analyze_characteristics(node, layout),
    )

    for classifier in BLOCK_CLASSIFIERS:
        category, sub_type, block_type, score, reasons = classifier(block)
        if score >= BLOCK_CONFIDENCE_FLOOR:
            result = BlockClassification(
                node_id=node.id,
                category=category,
                sub_type=sub_type,
                block_type=block_type or readable_sub_type(sub_type),
                confidence=round(min(score, 1.0), 4),
                composed_of=block.composition,
                layout=layout,
                characteristics=block.traits,
                reasons=tuple(reasons),
            )
            logger.debug("block %s '%s': %s (%.2f)", node.id, node.name, category.value, result.confidence)
            return result

    reasons = ["no specific block type detected"]
    category = BlockCategory.LAYOUT
    if block.traits.is_large_section:
        category = BlockCategory.SECTION
        reasons.append("large section")
    return BlockClassification(
        node_id=node.id,
        category=category,
        sub_type=BlockSubType.UNKNOWN,
        block_type="Generic Layout Block",
        confidence=GENERIC_BLOCK_CONFIDENCE,
        composed_of=block.composition,
        layout=layout,
        characteristics=block.traits,
        reasons=tuple(reasons),
    )


def classify_blocks(root: Node) -> dict:
    """Every non-instance node that qualifies as a block, keyed by id, pre-order.

    Instances are components, not blocks; their subtrees are not searched.
    """
    blocks = {}
    stack = [root]
    while stack:
        node = stack.pop()
        if node.is_instance or node.is_text:
            continue
        block = classify_block(node)
        if block is not None:
            blocks[node.id] = block
        stack.extend(reversed(node.children))
    return blocks
