"""
外部協作者 — 程式碼生成（OpenRouter chat completion）與視覺驗證

兩者都是同步的 requests 呼叫，由 orchestrator 透過 asyncio.to_thread 執行。
錯誤分類：逾時 / 連線失敗 / 429 / 5xx → TransientExternalError（可重試），
其他 HTTP 錯誤或回應格式錯誤 → ExternalServiceError（不重試）。
"""

import json
import logging
import re
from typing import Optional, Protocol, runtime_checkable

import requests

from .config import OPENROUTER_URL
from .errors import ExternalServiceError, TransientExternalError
from .records import ComponentRecord

logger = logging.getLogger(__name__)


@runtime_checkable
class CodeGenerator(Protocol):
    def generate(self, record: ComponentRecord) -> str:
        ...


@runtime_checkable
class VisualValidator(Protocol):
    def validate(self, record: ComponentRecord, code: str) -> dict:
        ...


# ════════════════════════════════════════════════════════════
# Prompt
# ════════════════════════════════════════════════════════════

def _icon_imports(record: ComponentRecord) -> list:
    names = []
    for placement in record.properties.icons:
        icon = placement.ref.icon
        if icon and icon not in names:
            names.append(icon)
    return names


def format_properties_for_prompt(record: ComponentRecord) -> str:
    """元件設定摘要（文字、variant、size、state、左右圖示）."""
    props = record.properties
    lines = [f"# {record.component_type} Analysis"]
    if props.text is not None:
        lines.append(f"- Text: \"{props.text}\"")
    for label, value in (("Variant", props.variant), ("Size", props.size), ("State", props.state)):
        suffix = "" if value.source == "verbatim" else f" ({value.source})"
        lines.append(f"- {label}: {value.value}{suffix}")
    lines.append(f"- Left Icon: {props.left_icon_name or 'none'}")
    lines.append(f"- Right Icon: {props.right_icon_name or 'none'}")
    if props.unknown_icons:
        lines.append(f"- Unrecognized Icons: {', '.join(props.unknown_icons)}")
    if props.flags:
        flags = ", ".join(f"{k}={'true' if v else 'false'}" for k, v in props.flags.items())
        lines.append(f"- Flags: {flags}")
    return "\n".join(lines)


def format_style_for_prompt(record: ComponentRecord) -> str:
    """顏色、字型、陰影、圓角、內距；沒有資料的項目不列."""
    style = record.style
    lines = ["# Styles"]
    if style.background:
        lines.append(f"- Background: {style.background.hex} ({style.background.rgba})")
    if style.strokes:
        lines.append(f"- Border: {style.border_width:g}px {style.strokes[0].hex}")
    if style.text_color:
        lines.append(f"- Text Color: {style.text_color.hex}")
    if style.typography:
        t = style.typography
        font = f"- Font: {t.font_family} {t.font_size:g}px / {t.font_weight}"
        if t.line_height:
            font += f", line-height {t.line_height}"
        lines.append(font)
    if style.box_shadow:
        lines.append(f"- Box Shadow: {style.box_shadow}")
    if style.corner_radius:
        lines.append(f"- Corner Radius: {style.corner_radius:g}px")
    if any(style.padding):
        lines.append("- Padding: " + " ".join(f"{v:g}px" for v in style.padding))
    if style.gap is not None:
        lines.append(f"- Gap: {style.gap:g}px")
    if style.opacity < 1.0:
        lines.append(f"- Opacity: {style.opacity:g}")
    if len(lines) == 1:
        lines.append("- none extracted")
    return "\n".join(lines)


def build_generation_prompt(record: ComponentRecord) -> str:
    component = record.component_type
    icons = _icon_imports(record)
    icon_section = ""
    if icons:
        icon_section = (
            "\n# Icons Detected (IMPORTANT!)\n"
            "This component contains icons. Use Lucide React icons:\n\n"
            f"import {{ {', '.join(icons)} }} from 'lucide-react';\n\n"
            "- Import icons from 'lucide-react' (see above)\n"
            "- Use className \"w-4 h-4\" for 16px icons\n"
        )
    warnings = "\n".join(f"- {w.message}" for w in record.mapping.warnings) or "- none"
    return f"""You are an expert React + TypeScript + Tailwind CSS developer. Generate a React component using ShadCN UI components.

# Component Information
- Name: {record.name}
- Type: {component}
- Confidence: {record.classification.confidence * 100:.1f}%

{format_properties_for_prompt(record)}

{format_style_for_prompt(record)}

# Semantic Mapping
{json.dumps(record.mapping.to_dict(), indent=2, ensure_ascii=False)}

# Mapping Warnings
{warnings}
{icon_section}
# Requirements
1. Use the ShadCN "{component}" component as the base where appropriate
2. Reproduce the text, variant, size, state and icons listed above exactly
3. Match the listed colors, typography, shadow, radius and spacing with Tailwind classes
4. Create proper TypeScript interfaces for props
5. Use Tailwind CSS for all styling
6. Include accessibility attributes (ARIA labels, roles)

# Output Format
Return ONLY the TypeScript/React component code. No explanations, no markdown code blocks, just the raw code.
"""


_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n(.*?)\n```\s*$", re.DOTALL)


def strip_code_fences(text: str) -> str:
    match = _FENCE_RE.match(text.strip())
    return match.group(1) if match else text


# ════════════════════════════════════════════════════════════
# HTTP clients
# ════════════════════════════════════════════════════════════

def _post_json(session: requests.Session, url: str, payload: dict, timeout: float) -> dict:
    try:
        resp = session.post(url, json=payload, timeout=timeout)
    except (requests.Timeout, requests.ConnectionError) as e:
        raise TransientExternalError(f"{url}: {e}") from e
    if resp.status_code == 429 or resp.status_code >= 500:
        raise TransientExternalError(f"{url}: HTTP {resp.status_code}")
    try:
        resp.raise_for_status()
    except requests.HTTPError as e:
        raise ExternalServiceError(f"{url}: HTTP {resp.status_code} {resp.text[:200]}") from e
    try:
        return resp.json()
    except ValueError as e:
        raise ExternalServiceError(f"{url}: response is not JSON") from e


class OpenRouterGenerator:
    """OpenRouter chat completion → component source code."""

    def __init__(
        self,
        api_key: str,
        model: str,
        url: str = OPENROUTER_URL,
        timeout: float = 60.0,
        temperature: float = 0.2,
        max_tokens: int = 4000,
    ):
        self.model = model
        self.url = url
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        })

    def generate(self, record: ComponentRecord) -> str:
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": build_generation_prompt(record)}],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        data = _post_json(self.session, self.url, payload, self.timeout)
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ExternalServiceError("code generation response has no choices") from e
        logger.info("generated %d chars for %s", len(content or ""), record.name)
        return strip_code_fences(content or "")


class HttpVisualValidator:
    """POST {record, code} → validation report dict."""

    def __init__(self, url: str, timeout: float = 60.0, api_key: Optional[str] = None):
        self.url = url
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if api_key:
            self.session.headers["Authorization"] = f"Bearer {api_key}"

    def validate(self, record: ComponentRecord, code: str) -> dict:
        return _post_json(
            self.session,
            self.url,
            {"record": record.to_dict(), "code": code},
            self.timeout,
        )


# ════════════════════════════════════════════════════════════
# Code quality
# ════════════════════════════════════════════════════════════

QUALITY_WEIGHTS = {
    "hasTypeScript": 25,
    "hasReact": 25,
    "hasTailwind": 20,
    "hasProps": 15,
    "hasAccessibility": 10,
    "formatted": 5,
}

QUALITY_PASS_SCORE = 80


def assess_code_quality(code: str) -> dict:
    return {
        "hasTypeScript": "interface " in code or "type " in code,
        "hasReact": "import" in code and ("React" in code or 'from "react"' in code or "from 'react'" in code),
        "hasTailwind": "className=" in code,
        "hasProps": "Props" in code,
        "hasAccessibility": "aria-" in code or "role=" in code,
        "formatted": any(line.startswith("  ") for line in code.split("\n")),
    }


def quality_score(flags: dict) -> int:
    return sum(weight for key, weight in QUALITY_WEIGHTS.items() if flags.get(key))
