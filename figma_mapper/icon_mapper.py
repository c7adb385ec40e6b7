"""
圖示對應 — "Icon / {Name}" 圖層 → 標準圖示名稱（Lucide 命名）

normalize_icon_name 是全函式：
  已知名稱      → RESOLVED（icon = 標準名稱）
  佔位/隱藏圖示  → PLACEHOLDER（icon = None，明確的 null）
  未知名稱      → UNKNOWN（保留原名，必須回報，不可當成沒有圖示）
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .naming import compact

ICON_LAYER_RE = re.compile(r"^\s*icon\s*/\s*(.+?)\s*$", re.IGNORECASE)

# 載入中圖示 → state = loading
LOADER_ICONS = frozenset({"Loader2", "Loader"})

# 中性圓形 glyph 代表「隱藏 / 佔位」
PLACEHOLDER_ICONS = frozenset({"circle", "placeholder", "empty", "none", "blank"})

# compact(name) → Lucide 名稱
ICON_NAME_MAP: dict[str, str] = {
    # 文件
    "file": "File", "folder": "Folder", "folderopen": "FolderOpen",
    "document": "FileText", "doc": "FileText", "page": "FileText",
    "filetext": "FileText", "docs": "FileText", "documentation": "FileText",
    # 導覽
    "arrow": "ArrowRight", "arrowleft": "ArrowLeft", "arrowright": "ArrowRight",
    "arrowup": "ArrowUp", "arrowdown": "ArrowDown",
    "chevron": "ChevronRight", "chevronleft": "ChevronLeft",
    "chevronright": "ChevronRight", "chevronup": "ChevronUp",
    "chevrondown": "ChevronDown",
    # 連結
    "link": "Link", "external": "ExternalLink", "externallink": "ExternalLink",
    # UI
    "close": "X", "x": "X", "check": "Check", "checkmark": "Check",
    "plus": "Plus", "minus": "Minus", "search": "Search", "filter": "Filter",
    "menu": "Menu", "hamburger": "Menu", "settings": "Settings", "gear": "Settings",
    "user": "User", "profile": "User", "home": "Home", "heart": "Heart",
    "star": "Star", "bell": "Bell", "notification": "Bell", "send": "Send",
    "sun": "Sun", "moon": "Moon", "mail": "Mail", "calendar": "Calendar",
    # 媒體
    "play": "Play", "pause": "Pause", "stop": "Square", "image": "Image",
    "picture": "Image", "video": "Video", "camera": "Camera",
    # 動作
    "edit": "Edit", "pencil": "Pencil", "trash": "Trash", "delete": "Trash",
    "download": "Download", "upload": "Upload", "copy": "Copy", "share": "Share",
    # 狀態
    "info": "Info", "warning": "AlertTriangle", "alerttriangle": "AlertTriangle",
    "alert": "AlertCircle", "alertcircle": "AlertCircle", "error": "AlertCircle",
    "help": "HelpCircle", "helpcircle": "HelpCircle", "question": "HelpCircle",
    "loader": "Loader", "loader2": "Loader2", "loadercircle": "Loader2",
    "spinner": "Loader2",
    # 開發
    "code": "Code", "terminal": "Terminal", "git": "GitBranch",
    "github": "Github", "figma": "Figma",
}


class IconStatus(str, Enum):
    RESOLVED = "resolved"
    PLACEHOLDER = "placeholder"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class IconRef:
    raw: str
    status: IconStatus
    icon: Optional[str] = None

    @property
    def is_placeholder(self) -> bool:
        return self.status == IconStatus.PLACEHOLDER

    @property
    def is_unknown(self) -> bool:
        return self.status == IconStatus.UNKNOWN

    @property
    def is_loader(self) -> bool:
        return self.icon in LOADER_ICONS

    def to_dict(self) -> dict:
        return {"raw": self.raw, "status": self.status.value, "icon": self.icon}

    @classmethod
    def from_dict(cls, data: dict) -> "IconRef":
        return cls(raw=data["raw"], status=IconStatus(data["status"]), icon=data.get("icon"))


def icon_layer_name(name: str) -> Optional[str]:
    """'Icon / Send' → 'Send'；不是圖示圖層時回傳 None."""
    match = ICON_LAYER_RE.match(name or "")
    if not match:
        return None
    return match.group(1)


def normalize_icon_name(name: str) -> IconRef:
    """接受完整圖層名 'Icon / Send' 或單純 'Send'."""
    raw = icon_layer_name(name)
    if raw is None:
        raw = (name or "").strip()
    key = compact(raw)
    if key in PLACEHOLDER_ICONS:
        return IconRef(raw=raw, status=IconStatus.PLACEHOLDER)
    icon = ICON_NAME_MAP.get(key)
    if icon is None:
        return IconRef(raw=raw, status=IconStatus.UNKNOWN)
    return IconRef(raw=raw, status=IconStatus.RESOLVED, icon=icon)


def resolve_icon_layer(name: str) -> Optional[IconRef]:
    """Resolve a child layer name; None when the layer is not an icon layer at all."""
    if icon_layer_name(name) is None:
        return None
    return normalize_icon_name(name)
