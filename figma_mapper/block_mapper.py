"""
區塊對應 — BlockClassification → 區塊 schema（wrapper、匯入路徑、Tailwind 類別、預期結構）

schema 以 (category, sub_type) 查詢，找不到時退回同 category 的第一個 schema。
schema 的 structure 列出預期的子元件；分類結果的組成缺少其中的元件時產生 MappingWarning。
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .block_classifier import BlockCategory, BlockClassification, BlockSubType
from .errors import MappingWarning

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlockSchema:
    name: str
    category: BlockCategory
    sub_type: BlockSubType
    wrapper: str
    import_path: str
    tailwind: str
    description: str
    # 預期出現的子元件種類（Button / Card / Input …）
    structure: tuple = ()

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "category": self.category.value,
            "subType": self.sub_type.value,
            "wrapper": self.wrapper,
            "importPath": self.import_path,
            "tailwind": self.tailwind,
            "description": self.description,
            "structure": list(self.structure),
        }


@dataclass(frozen=True)
class BlockMapping:
    classification: BlockClassification
    schema: Optional[BlockSchema] = None
    warnings: tuple = ()

    @property
    def node_id(self) -> str:
        return self.classification.node_id

    def to_dict(self) -> dict:
        return {
            "classification": self.classification.to_dict(),
            "schema": self.schema.to_dict() if self.schema else None,
            "warnings": [w.to_dict() for w in self.warnings],
        }


_C = BlockCategory
_T = BlockSubType
_SECTION = "section"
_BLOCKS = "@/components/blocks"

BLOCK_SCHEMAS = (
    BlockSchema(
        "Hero-Simple", _C.HERO, _T.HERO_SIMPLE, _SECTION, f"{_BLOCKS}/hero",
        "py-24 px-6 text-center", "Headline, supporting text and call-to-action buttons",
        ("Button",),
    ),
    BlockSchema(
        "Hero-Split", _C.HERO, _T.HERO_SPLIT, _SECTION, f"{_BLOCKS}/hero",
        "grid md:grid-cols-2 gap-12 items-center py-24 px-6", "Text column beside a hero image",
        ("Button", "Image"),
    ),
    BlockSchema(
        "Hero-Centered", _C.HERO, _T.HERO_CENTERED, _SECTION, f"{_BLOCKS}/hero",
        "flex flex-col items-center text-center py-32 px-6", "Centered stacked headline and actions",
        ("Button",),
    ),
    BlockSchema(
        "Hero-WithImage", _C.HERO, _T.HERO_WITH_IMAGE, _SECTION, f"{_BLOCKS}/hero",
        "relative py-24 px-6", "Headline over or above a hero image",
        ("Button", "Image"),
    ),
    BlockSchema(
        "Features-Grid", _C.FEATURES, _T.FEATURES_GRID, _SECTION, f"{_BLOCKS}/features",
        "grid gap-8 md:grid-cols-3 py-16 px-6", "Grid of feature items",
    ),
    BlockSchema(
        "Features-WithIcons", _C.FEATURES, _T.FEATURES_WITH_ICONS, _SECTION, f"{_BLOCKS}/features",
        "grid gap-8 md:grid-cols-3 py-16 px-6", "Feature items each led by an icon",
        ("Icon",),
    ),
    BlockSchema(
        "Features-Cards", _C.FEATURES, _T.FEATURES_CARDS, _SECTION, f"{_BLOCKS}/features",
        "grid gap-6 md:grid-cols-3 py-16 px-6", "Feature items rendered as cards",
        ("Card",),
    ),
    BlockSchema(
        "Pricing-Cards", _C.PRICING, _T.PRICING_CARDS, _SECTION, f"{_BLOCKS}/pricing",
        "grid gap-6 md:grid-cols-3 py-16 px-6", "One card per plan with price, features and action",
        ("Card", "Button"),
    ),
    BlockSchema(
        "Pricing-Table", _C.PRICING, _T.PRICING_TABLE, _SECTION, f"{_BLOCKS}/pricing",
        "overflow-x-auto py-16 px-6", "Plan comparison table",
        ("Table",),
    ),
    BlockSchema(
        "Login-Form", _C.AUTHENTICATION, _T.LOGIN, "div", f"{_BLOCKS}/auth",
        "mx-auto w-full max-w-sm space-y-6", "Email and password sign-in form",
        ("Input", "Button"),
    ),
    BlockSchema(
        "Register-Form", _C.AUTHENTICATION, _T.REGISTER, "div", f"{_BLOCKS}/auth",
        "mx-auto w-full max-w-sm space-y-6", "Account registration form",
        ("Input", "Button"),
    ),
    BlockSchema(
        "Forgot-Password-Form", _C.AUTHENTICATION, _T.FORGOT_PASSWORD, "div", f"{_BLOCKS}/auth",
        "mx-auto w-full max-w-sm space-y-6", "Email field to request a reset link",
        ("Input", "Button"),
    ),
    BlockSchema(
        "Dashboard-Stats", _C.DASHBOARD, _T.DASHBOARD_STATS, "div", f"{_BLOCKS}/dashboard",
        "grid gap-4 md:grid-cols-2 lg:grid-cols-4", "Row of metric cards",
        ("Card",),
    ),
    BlockSchema(
        "Dashboard-Header", _C.DASHBOARD, _T.DASHBOARD_HEADER, "header", f"{_BLOCKS}/dashboard",
        "flex items-center justify-between border-b px-6 py-4", "Dashboard title bar with actions",
        ("Button",),
    ),
    BlockSchema(
        "Stats", _C.STATS, _T.DASHBOARD_STATS, _SECTION, f"{_BLOCKS}/stats",
        "grid gap-4 md:grid-cols-4", "Key figures side by side",
        ("Card",),
    ),
    BlockSchema(
        "Product-Card", _C.ECOMMERCE, _T.PRODUCT_CARD, "div", f"{_BLOCKS}/ecommerce",
        "rounded-lg border p-4", "Product image, name, price and add-to-cart",
        ("Image", "Button"),
    ),
    BlockSchema(
        "Product-List", _C.ECOMMERCE, _T.PRODUCT_LIST, _SECTION, f"{_BLOCKS}/ecommerce",
        "grid gap-6 sm:grid-cols-2 lg:grid-cols-4", "Grid of product cards",
        ("Card",),
    ),
    BlockSchema(
        "Testimonials", _C.TESTIMONIALS, _T.UNKNOWN, _SECTION, f"{_BLOCKS}/testimonials",
        "grid gap-6 md:grid-cols-3 py-16 px-6", "Customer quotes with avatars",
        ("Avatar",),
    ),
    BlockSchema(
        "CTA", _C.CTA, _T.UNKNOWN, _SECTION, f"{_BLOCKS}/cta",
        "py-16 px-6 text-center", "Short pitch with a primary action",
        ("Button",),
    ),
    BlockSchema(
        "Footer", _C.FOOTER, _T.UNKNOWN, "footer", f"{_BLOCKS}/footer",
        "border-t py-12 px-6", "Link columns and legal text",
    ),
    BlockSchema(
        "Header", _C.HEADER, _T.UNKNOWN, "header", f"{_BLOCKS}/header",
        "flex items-center justify-between px-6 py-4", "Logo, navigation links and actions",
    ),
    BlockSchema(
        "Blog-Card", _C.BLOG, _T.BLOG_CARD, "article", f"{_BLOCKS}/blog",
        "rounded-lg border overflow-hidden", "Cover image, title, excerpt and category",
        ("Image",),
    ),
)


def find_block_schema(category: BlockCategory, sub_type: BlockSubType) -> Optional[BlockSchema]:
    exact = next((s for s in BLOCK_SCHEMAS if s.category == category and s.sub_type == sub_type), None)
    if exact is not None:
        return exact
    return next((s for s in BLOCK_SCHEMAS if s.category == category), None)


def map_block(classification: BlockClassification) -> BlockMapping:
    schema = find_block_schema(classification.category, classification.sub_type)
    if schema is None:
        return BlockMapping(classification)
    warnings = tuple(
        MappingWarning(
            slot=component_type,
            message=f"{schema.name} expects a {component_type} but none was found in the block",
        )
        for component_type in schema.structure
        if classification.count(component_type) == 0
    )
    for warning in warnings:
        logger.debug("block %s: %s", classification.node_id, warning.message)
    return BlockMapping(classification, schema, warnings)
