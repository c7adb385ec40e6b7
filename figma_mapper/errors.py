"""
錯誤類型 — 擷取、快取、外部呼叫的例外定義

只有結構錯誤與快取一致性錯誤是致命的；分類/萃取/對應階段不拋例外。
"""

from dataclasses import dataclass
from typing import Optional


class FigmaMapperError(Exception):
    """Base class for every error raised by figma_mapper."""


class MalformedExportError(FigmaMapperError):
    """The export is structurally invalid (missing root, bad version, bad node)."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        if path:
            message = f"{message} (at {path})"
        super().__init__(message)


class TransientExternalError(FigmaMapperError):
    """Network/timeout failure from an external call; safe to retry."""


class ExternalServiceError(FigmaMapperError):
    """External call failed in a way retrying will not fix (4xx, bad payload)."""


class CacheConsistencyError(FigmaMapperError):
    """Two different results were stored under one fingerprint."""

    def __init__(self, fingerprint: str, message: str = ""):
        self.fingerprint = fingerprint
        # run_batch 會把部分結果掛在這裡
        self.batch = None
        super().__init__(
            message or f"divergent result for fingerprint {fingerprint[:12]}…"
        )


class ConfigError(FigmaMapperError, ValueError):
    """Configuration values failed validation."""


@dataclass(frozen=True)
class MappingWarning:
    """A required schema slot was left unfilled. Attached to results, never raised."""
    slot: str
    message: str

    def to_dict(self) -> dict:
        return {"slot": self.slot, "message": self.message}
