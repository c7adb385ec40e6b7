"""
命名正規化 — componentProperties 鍵值、變體圖層名稱、識別字轉換

Figma 匯出的屬性鍵會帶有裝飾後綴（"Button Text#1:0"），
所有查找都必須經過 normalize_property_key，不可假設固定格式。
"""

import re

_SUFFIX_RE = re.compile(r"#[^#]*$")
_SPACE_RE = re.compile(r"\s+")
_VARIANT_PAIR_RE = re.compile(r"^\s*([^=,]+?)\s*=\s*([^=,]+?)\s*$")


def normalize_property_key(key: str) -> str:
    """'Button Text#1:0' → 'button text'；'Show  Left Icon#3' → 'show left icon'."""
    if not key:
        return ""
    stripped = _SUFFIX_RE.sub("", key)
    return _SPACE_RE.sub(" ", stripped).strip().lower()


def parse_variant_name(name: str) -> dict[str, str]:
    """解析 component set 變體名稱.

    'Variant=Outline, Size=sm, State=Hover' → {'variant': 'Outline', 'size': 'sm', 'state': 'Hover'}
    名稱不是 Key=Value 格式時回傳空 dict。
    """
    if not name or "=" not in name:
        return {}
    result = {}
    for part in name.split(","):
        match = _VARIANT_PAIR_RE.match(part)
        if not match:
            continue
        result[match.group(1).strip().lower()] = match.group(2).strip()
    return result


def to_pascal_case(s: str) -> str:
    s = re.sub(r"[^a-zA-Z0-9]", " ", s)
    words = s.split()
    return "".join(w[:1].upper() + w[1:] for w in words) if words else s


def to_kebab_case(name: str) -> str:
    out = []
    for ch in name:
        if ch.isalnum():
            out.append(ch.lower())
        else:
            out.append("-")
    slug = "".join(out).strip("-")
    while "--" in slug:
        slug = slug.replace("--", "-")
    return slug or "unnamed"


def compact(name: str) -> str:
    """Lower-case alphanumerics only: 'Arrow-Right' → 'arrowright'."""
    return re.sub(r"[^a-z0-9]", "", (name or "").lower())

