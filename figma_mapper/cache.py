"""
結果快取 — 結構指紋 → ComponentRecord

指紋 = SHA-256(正規化 JSON(子樹結構) + 啟發式設定版本)。
不含節點 id 與 x/y 位置，結構相同的 instance 共用一筆。
寫入規則：先寫者勝；相同內容再寫是 no-op；不同內容寫同一指紋 → CacheConsistencyError。
"""

import hashlib
import json
import logging
import os
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from .errors import CacheConsistencyError
from .records import ComponentRecord
from .scene_graph import Node
from .style_extractor import STYLE_EXTRA_KEYS

logger = logging.getLogger(__name__)


# ════════════════════════════════════════════════════════════
# Fingerprint
# ════════════════════════════════════════════════════════════

def _describe(node: Node) -> dict:
    return {
        "name": node.name,
        "type": node.type,
        "visible": node.visible,
        "width": node.bounds.width,
        "height": node.bounds.height,
        "style": asdict(node.style),
        "characters": node.characters,
        "font": asdict(node.font) if node.font else None,
        "properties": {
            key: [prop.kind.value, prop.value]
            for key, prop in sorted(node.component_properties.items())
        },
        "layout": {key: node.extra[key] for key in STYLE_EXTRA_KEYS if key in node.extra},
        "childCount": len(node.children),
    }


def canonical_form(node: Node) -> list:
    """Pre-order list of [depth, description]; child counts make it unambiguous."""
    flat = []
    stack = [(node, 0)]
    while stack:
        current, depth = stack.pop()
        flat.append([depth, _describe(current)])
        for child in reversed(current.children):
            stack.append((child, depth + 1))
    return flat


def fingerprint_node(node: Node, config_version: str) -> str:
    payload = json.dumps(
        {"config": config_version, "nodes": canonical_form(node)},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


# ════════════════════════════════════════════════════════════
# Stores
# ════════════════════════════════════════════════════════════

class CacheStore:
    """Opaque string key → JSON payload."""

    def open(self) -> None:
        pass

    def close(self) -> None:
        pass

    def load(self, key: str) -> Optional[dict]:
        raise NotImplementedError

    def save(self, key: str, payload: dict) -> None:
        raise NotImplementedError


class MemoryStore(CacheStore):
    def __init__(self):
        self._data: dict[str, str] = {}

    def load(self, key: str) -> Optional[dict]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def save(self, key: str, payload: dict) -> None:
        # 存成字串，避免呼叫端改到快取內容
        self._data[key] = json.dumps(payload, ensure_ascii=False)

    def __len__(self) -> int:
        return len(self._data)


class JsonFileStore(CacheStore):
    """一個 key 一個 JSON 檔."""

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def open(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def load(self, key: str) -> Optional[dict]:
        path = self._path(key)
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    def save(self, key: str, payload: dict) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, path)


# ════════════════════════════════════════════════════════════
# ResultCache
# ════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CacheEntry:
    fingerprint: str
    record: ComponentRecord
    created_at: str

    def to_dict(self) -> dict:
        return {
            "fingerprint": self.fingerprint,
            "record": self.record.to_dict(),
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CacheEntry":
        return cls(
            fingerprint=data["fingerprint"],
            record=ComponentRecord.from_dict(data["record"]),
            created_at=data.get("createdAt", ""),
        )


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    writes: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class ResultCache:
    """Thread-safe first-write-wins cache over a CacheStore."""

    def __init__(self, store: Optional[CacheStore] = None):
        self.store = store if store is not None else MemoryStore()
        self.stats = CacheStats()
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        # fingerprint → [lock, 持有或等待中的執行緒數]
        self._key_locks: dict[str, list] = {}
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> "ResultCache":
        if not self._open:
            self.store.open()
            self._open = True
        return self

    def close(self) -> None:
        if self._open:
            self.store.close()
            self._open = False

    def __enter__(self) -> "ResultCache":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()

    def _ensure_open(self) -> None:
        if not self._open:
            raise RuntimeError("ResultCache is closed")

    def _lookup(self, fingerprint: str) -> Optional[CacheEntry]:
        entry = self._entries.get(fingerprint)
        if entry is None:
            payload = self.store.load(fingerprint)
            if payload is not None:
                entry = CacheEntry.from_dict(payload)
                self._entries[fingerprint] = entry
        return entry

    def get(self, fingerprint: str) -> Optional[CacheEntry]:
        self._ensure_open()
        with self._lock:
            entry = self._lookup(fingerprint)
            if entry is None:
                self.stats.misses += 1
            else:
                self.stats.hits += 1
            return entry

    def put(self, fingerprint: str, record: ComponentRecord) -> bool:
        """True = written; False = identical record already present."""
        self._ensure_open()
        with self._lock:
            existing = self._lookup(fingerprint)
            if existing is not None:
                if existing.record.to_dict() == record.to_dict():
                    return False
                raise CacheConsistencyError(fingerprint)
            entry = CacheEntry(
                fingerprint=fingerprint,
                record=record,
                created_at=datetime.now(timezone.utc).isoformat(),
            )
            self.store.save(fingerprint, entry.to_dict())
            self._entries[fingerprint] = entry
            self.stats.writes += 1
            logger.debug("cache write %s", fingerprint[:12])
            return True

    def _acquire_key(self, fingerprint: str) -> list:
        with self._lock:
            slot = self._key_locks.get(fingerprint)
            if slot is None:
                slot = self._key_locks[fingerprint] = [threading.Lock(), 0]
            slot[1] += 1
            return slot

    def _release_key(self, fingerprint: str, slot: list) -> None:
        with self._lock:
            slot[1] -= 1
            if slot[1] == 0:
                del self._key_locks[fingerprint]

    def get_or_compute(self, fingerprint: str, compute: Callable[[], ComponentRecord]) -> tuple:
        """(entry, hit). compute() runs at most once per fingerprint, whatever the thread count."""
        self._ensure_open()
        slot = self._acquire_key(fingerprint)
        try:
            with slot[0]:
                entry = self.get(fingerprint)
                if entry is not None:
                    return entry, True
                self.put(fingerprint, compute())
                with self._lock:
                    return self._entries[fingerprint], False
        finally:
            self._release_key(fingerprint, slot)

    def __len__(self) -> int:
        return len(self._entries)


def open_cache(store_dir: Optional[str] = None) -> ResultCache:
    """JsonFileStore when a directory is given, in-memory otherwise; returned open."""
    store = JsonFileStore(store_dir) if store_dir else MemoryStore()
    return ResultCache(store).open()
