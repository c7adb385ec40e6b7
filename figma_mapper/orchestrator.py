"""
Pipeline 編排 — 每個元件一個狀態機，批次以 Semaphore 限制並行

  PENDING → INGESTING → CLASSIFYING → EXTRACTING → MAPPING
          → AWAITING_GENERATION → AWAITING_VALIDATION → DONE
  任一階段 → FAILED；外部呼叫階段 ⇄ RETRYING；未開始或被中止 → CANCELLED

內部階段（擷取/分類/萃取/對應）是純函式，不重試；
只有外部呼叫在 TransientExternalError 時依指數退避重試。
CacheConsistencyError 會中止整個批次，並把部分結果掛在 exception.batch。
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable, Optional

from .block_classifier import classify_blocks
from .block_mapper import map_block
from .cache import ResultCache, fingerprint_node, open_cache
from .classifier import classify_node
from .config import PipelineConfig
from .errors import (
    CacheConsistencyError,
    ExternalServiceError,
    MalformedExportError,
    TransientExternalError,
)
from .generation import (
    QUALITY_PASS_SCORE,
    HttpVisualValidator,
    OpenRouterGenerator,
    assess_code_quality,
    quality_score,
)
from .property_extractor import extract_properties
from .records import ComponentRecord
from .icon_mapper import icon_layer_name
from .scene_graph import Node, SceneDocument, ingest_node
from .semantic_mapper import map_slots
from .style_extractor import extract_style

logger = logging.getLogger(__name__)


class UnitState(str, Enum):
    PENDING = "pending"
    INGESTING = "ingesting"
    CLASSIFYING = "classifying"
    EXTRACTING = "extracting"
    MAPPING = "mapping"
    AWAITING_GENERATION = "awaiting_generation"
    AWAITING_VALIDATION = "awaiting_validation"
    RETRYING = "retrying"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


_S = UnitState
_STOP = {_S.FAILED, _S.CANCELLED}

# 快取命中時 CLASSIFYING 直接跳到外部階段或 DONE
TRANSITIONS: dict = {
    _S.PENDING: {_S.INGESTING} | _STOP,
    _S.INGESTING: {_S.CLASSIFYING} | _STOP,
    _S.CLASSIFYING: {_S.EXTRACTING, _S.AWAITING_GENERATION, _S.DONE} | _STOP,
    _S.EXTRACTING: {_S.MAPPING} | _STOP,
    _S.MAPPING: {_S.AWAITING_GENERATION, _S.DONE} | _STOP,
    _S.AWAITING_GENERATION: {_S.AWAITING_VALIDATION, _S.RETRYING, _S.DONE} | _STOP,
    _S.AWAITING_VALIDATION: {_S.RETRYING, _S.DONE} | _STOP,
    _S.RETRYING: {_S.AWAITING_GENERATION, _S.AWAITING_VALIDATION} | _STOP,
    _S.DONE: set(),
    _S.FAILED: set(),
    _S.CANCELLED: set(),
}

TERMINAL_STATES = frozenset({_S.DONE, _S.FAILED, _S.CANCELLED})


@dataclass(frozen=True)
class ComponentUnit:
    """One processing unit; ``source`` is an ingested Node or a raw node dict."""
    unit_id: str
    name: str
    source: Any


class UnitCancelled(Exception):
    """Raised inside a unit when the cancel signal fires."""


def backoff_delay(retry: int, base: float, maximum: float) -> float:
    """Delay before the n-th retry (1-based): base·2^(n-1), capped."""
    return min(base * (2 ** (retry - 1)), maximum)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class UnitResult:
    unit_id: str
    name: str
    state: UnitState
    record: Optional[ComponentRecord] = None
    code: Optional[str] = None
    validation: Optional[dict] = None
    quality: Optional[dict] = None
    cache_hit: bool = False
    attempts: dict = field(default_factory=dict)
    error: Optional[str] = None
    error_type: Optional[str] = None
    history: tuple = ()
    warnings: tuple = ()
    duration: float = 0.0
    exception: Optional[BaseException] = field(default=None, repr=False, compare=False)

    @property
    def succeeded(self) -> bool:
        return self.state == UnitState.DONE

    def to_dict(self) -> dict:
        return {
            "unitId": self.unit_id,
            "name": self.name,
            "state": self.state.value,
            "record": self.record.to_dict() if self.record else None,
            "code": self.code,
            "validation": self.validation,
            "quality": self.quality,
            "cacheHit": self.cache_hit,
            "attempts": dict(self.attempts),
            "error": self.error,
            "errorType": self.error_type,
            "history": [s.value for s in self.history],
            "warnings": [w.to_dict() for w in self.warnings],
            "duration": round(self.duration, 4),
        }


class UnitLifecycle:
    """Tracks one unit's state; every move is checked against TRANSITIONS."""

    def __init__(self, unit: ComponentUnit):
        self.unit = unit
        self.state = UnitState.PENDING
        self.history = [UnitState.PENDING]
        self.attempts = {"generation": 0, "validation": 0}
        self.record: Optional[ComponentRecord] = None
        self.code: Optional[str] = None
        self.validation: Optional[dict] = None
        self.quality: Optional[dict] = None
        self.cache_hit = False
        self.error: Optional[BaseException] = None
        self._started = time.monotonic()

    def move(self, new_state: UnitState) -> None:
        if new_state not in TRANSITIONS[self.state]:
            raise RuntimeError(
                f"illegal transition {self.state.value} → {new_state.value} for unit {self.unit.unit_id}"
            )
        logger.debug("unit %s: %s → %s", self.unit.unit_id, self.state.value, new_state.value)
        self.state = new_state
        self.history.append(new_state)

    def fail(self, error: BaseException) -> None:
        self.error = error
        self.move(UnitState.FAILED)

    def result(self) -> UnitResult:
        error = self.error
        return UnitResult(
            unit_id=self.unit.unit_id,
            name=self.unit.name,
            state=self.state,
            record=self.record,
            code=self.code,
            validation=self.validation,
            quality=self.quality,
            cache_hit=self.cache_hit,
            attempts=dict(self.attempts),
            error=str(error) if error is not None else None,
            error_type=type(error).__name__ if error is not None else None,
            history=tuple(self.history),
            warnings=self.record.mapping.warnings if self.record else (),
            duration=time.monotonic() - self._started,
            exception=error,
        )


@dataclass
class BatchResult:
    results: dict = field(default_factory=dict)
    started_at: str = ""
    finished_at: str = ""
    halted: bool = False
    # node id → BlockMapping；只有 run_document 會填
    blocks: dict = field(default_factory=dict)

    def counts(self) -> dict:
        counts = {}
        for result in self.results.values():
            counts[result.state.value] = counts.get(result.state.value, 0) + 1
        return counts

    @property
    def succeeded(self) -> list:
        return [r for r in self.results.values() if r.state == UnitState.DONE]

    @property
    def failed(self) -> list:
        return [r for r in self.results.values() if r.state == UnitState.FAILED]

    @property
    def cancelled(self) -> list:
        return [r for r in self.results.values() if r.state == UnitState.CANCELLED]

    def to_dict(self) -> dict:
        return {
            "startedAt": self.started_at,
            "finishedAt": self.finished_at,
            "halted": self.halted,
            "total": len(self.results),
            "counts": self.counts(),
            "results": {unit_id: r.to_dict() for unit_id, r in self.results.items()},
            "blocks": {node_id: b.to_dict() for node_id, b in self.blocks.items()},
        }


def units_from_document(document: SceneDocument) -> list:
    """One unit per INSTANCE node, nested instances included, in pre-order.

    `Icon / {Name}` glyph layers inside another instance are not units of
    their own; the parent's icon extraction reports them. A document
    without instances is processed as one unit.
    """
    nodes = []
    stack = [(document.root, False)]
    while stack:
        node, inside_instance = stack.pop()
        if node.is_instance and not (inside_instance and icon_layer_name(node.name) is not None):
            nodes.append(node)
        nested = inside_instance or node.is_instance
        stack.extend((child, nested) for child in reversed(node.children))
    nodes = nodes or [document.root]
    return [ComponentUnit(unit_id=n.id, name=n.name, source=n) for n in nodes]


class Pipeline:
    """Sequences ingestion → analysis → generation → validation for component units."""

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        cache: Optional[ResultCache] = None,
        generator=None,
        validator=None,
    ):
        self.config = config or PipelineConfig()
        # 自己開的快取由 close() 關閉；呼叫端傳入的快取由呼叫端管理
        self._owns_cache = cache is None and self.config.enable_caching
        if self._owns_cache:
            cache = open_cache(self.config.cache_dir)
        self.cache = cache
        if generator is None and self.config.enable_generation:
            generator = OpenRouterGenerator(
                api_key=self.config.api_key,
                model=self.config.model,
                url=self.config.generation_url,
                timeout=self.config.timeout,
            )
        if validator is None and self.config.enable_visual_validation:
            validator = HttpVisualValidator(self.config.validation_url, timeout=self.config.timeout)
        self.generator = generator
        self.validator = validator

    def close(self) -> None:
        if self._owns_cache and self.cache is not None:
            self.cache.close()

    def __enter__(self) -> "Pipeline":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ─── pure stages ───────────────────────────────────────

    def _compute(self, node: Node, fingerprint: str, on_stage: Optional[Callable] = None) -> ComponentRecord:
        heuristics = self.config.heuristics
        classification = classify_node(node, heuristics)
        if on_stage:
            on_stage(UnitState.EXTRACTING)
        properties = extract_properties(node, classification, heuristics)
        if on_stage:
            on_stage(UnitState.MAPPING)
        mapping = map_slots(node, classification)
        record = ComponentRecord(
            node_id=node.id,
            name=node.name,
            fingerprint=fingerprint,
            classification=classification,
            properties=properties,
            mapping=mapping,
            style=extract_style(node),
        )
        return record.canonical(node)

    def _analyze(self, node: Node, on_stage: Optional[Callable] = None) -> tuple:
        fingerprint = fingerprint_node(node, self.config.heuristics.version())
        if self.cache is None:
            return self._compute(node, fingerprint, on_stage).bind(node), False
        entry, hit = self.cache.get_or_compute(
            fingerprint, lambda: self._compute(node, fingerprint, on_stage)
        )
        if hit:
            logger.debug("cache hit %s for %s", fingerprint[:12], node.id)
        return entry.record.bind(node), hit

    def analyze(self, node: Node) -> ComponentRecord:
        """Classify, extract and map one node; a cache hit skips all three."""
        record, _ = self._analyze(node)
        return record

    # ─── external stages ───────────────────────────────────

    @staticmethod
    async def _invoke(fn: Callable, *args):
        if inspect.iscoroutinefunction(fn):
            return await fn(*args)
        return await asyncio.to_thread(fn, *args)

    @staticmethod
    async def _race(coro, cancel_event: Optional[asyncio.Event]):
        """Await coro unless the cancel event fires first; a cancelled call's result is dropped."""
        if cancel_event is None:
            return await coro
        if cancel_event.is_set():
            coro.close()
            raise UnitCancelled()
        task = asyncio.ensure_future(coro)
        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
        if task.done():
            return task.result()
        task.cancel()
        raise UnitCancelled()

    async def _call_external(
        self,
        lifecycle: UnitLifecycle,
        stage: UnitState,
        label: str,
        fn: Callable,
        args: tuple,
        cancel_event: Optional[asyncio.Event],
    ):
        attempts = 1 + self.config.max_retries
        for attempt in range(1, attempts + 1):
            if attempt > 1:
                delay = backoff_delay(attempt - 1, self.config.retry_delay, self.config.max_retry_delay)
                lifecycle.move(UnitState.RETRYING)
                logger.warning(
                    "unit %s: %s retry %d/%d after %.2fs (previous error: %s)",
                    lifecycle.unit.unit_id, label, attempt - 1, self.config.max_retries,
                    delay, lifecycle.error,
                )
                await self._race(asyncio.sleep(delay), cancel_event)
                lifecycle.move(stage)
            lifecycle.attempts[label] += 1
            try:
                return await self._race(self._invoke(fn, *args), cancel_event)
            except TransientExternalError as e:
                lifecycle.error = e
                if attempt == attempts:
                    raise

    # ─── unit ──────────────────────────────────────────────

    async def _process(self, unit: ComponentUnit, cancel_event: Optional[asyncio.Event]) -> UnitResult:
        lifecycle = UnitLifecycle(unit)
        if cancel_event is not None and cancel_event.is_set():
            lifecycle.move(UnitState.CANCELLED)
            return lifecycle.result()
        try:
            lifecycle.move(UnitState.INGESTING)
            node = unit.source if isinstance(unit.source, Node) else ingest_node(unit.source)

            lifecycle.move(UnitState.CLASSIFYING)
            lifecycle.record, lifecycle.cache_hit = self._analyze(node, lifecycle.move)

            if self.generator is not None and self.config.enable_generation:
                lifecycle.move(UnitState.AWAITING_GENERATION)
                code = await self._call_external(
                    lifecycle, UnitState.AWAITING_GENERATION, "generation",
                    self.generator.generate, (lifecycle.record,), cancel_event,
                )
                lifecycle.code = code
                flags = assess_code_quality(code or "")
                score = quality_score(flags)
                lifecycle.quality = {
                    "flags": flags,
                    "score": score,
                    "status": "pass" if score >= QUALITY_PASS_SCORE else "needs-review",
                }

                if self.validator is not None and self.config.enable_visual_validation:
                    lifecycle.move(UnitState.AWAITING_VALIDATION)
                    lifecycle.validation = await self._call_external(
                        lifecycle, UnitState.AWAITING_VALIDATION, "validation",
                        self.validator.validate, (lifecycle.record, code), cancel_event,
                    )

            lifecycle.error = None
            lifecycle.move(UnitState.DONE)
            logger.info("unit %s '%s': done (%s)", unit.unit_id, unit.name, lifecycle.record.component_type)
        except UnitCancelled:
            lifecycle.move(UnitState.CANCELLED)
            logger.info("unit %s '%s': cancelled", unit.unit_id, unit.name)
        except CacheConsistencyError as e:
            lifecycle.fail(e)
            logger.error("unit %s '%s': cache consistency failure: %s", unit.unit_id, unit.name, e)
        except (MalformedExportError, TransientExternalError, ExternalServiceError) as e:
            lifecycle.fail(e)
            logger.error("unit %s '%s': failed: %s", unit.unit_id, unit.name, e)
        except Exception as e:
            lifecycle.fail(e)
            logger.exception("unit %s '%s': unexpected error", unit.unit_id, unit.name)
        return lifecycle.result()

    async def process_unit(self, unit: ComponentUnit, cancel_event: Optional[asyncio.Event] = None) -> UnitResult:
        result = await self._process(unit, cancel_event)
        if isinstance(result.exception, CacheConsistencyError):
            raise result.exception
        return result

    # ─── batch ─────────────────────────────────────────────

    async def run_batch(
        self,
        units: Iterable[ComponentUnit],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BatchResult:
        units = list(units)
        seen = set()
        for unit in units:
            if unit.unit_id in seen:
                raise ValueError(f"duplicate unit id '{unit.unit_id}'")
            seen.add(unit.unit_id)

        batch = BatchResult(started_at=_now())
        semaphore = asyncio.Semaphore(self.config.concurrency)
        stop = asyncio.Event()
        fatal: list = []

        async def _watch_cancel():
            await cancel_event.wait()
            stop.set()

        watcher = asyncio.ensure_future(_watch_cancel()) if cancel_event is not None else None

        async def _run_one(unit: ComponentUnit) -> UnitResult:
            async with semaphore:
                result = await self._process(unit, stop)
            if isinstance(result.exception, CacheConsistencyError):
                fatal.append(result.exception)
                stop.set()
            return result

        logger.info("batch: %d units, concurrency %d", len(units), self.config.concurrency)
        try:
            results = await asyncio.gather(*[_run_one(u) for u in units])
        finally:
            if watcher is not None:
                watcher.cancel()

        batch.results = {r.unit_id: r for r in results}
        batch.finished_at = _now()
        batch.halted = bool(fatal)
        logger.info("batch finished: %s", batch.counts())
        if fatal:
            error = fatal[0]
            error.batch = batch
            raise error
        return batch

    async def run_document(
        self,
        document: SceneDocument,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BatchResult:
        """Process every instance unit, then attach page-level block mappings."""
        blocks = {node_id: map_block(c) for node_id, c in classify_blocks(document.root).items()}
        logger.info("document %s: %d blocks", document.file_name or document.root.id, len(blocks))
        batch = await self.run_batch(units_from_document(document), cancel_event)
        batch.blocks = blocks
        return batch
