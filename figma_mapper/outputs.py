"""
輸出檔案 — 每個元件的 record / 程式碼 / metadata，以及批次摘要

create_subdirectories=True:
  <output>/<slug>/record.json, <slug>.tsx, metadata.json, validation-report.json
否則全部平放：<output>/<slug>.record.json …
"""

import json
import os
from datetime import datetime, timezone

from .naming import to_kebab_case
from .orchestrator import BatchResult, UnitResult


def _write_json(path: str, data) -> str:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    return path


def _unit_slugs(batch: BatchResult) -> dict:
    """unit id → 不重複的 slug（同名元件加上 id 後綴）."""
    slugs = {}
    used = set()
    for unit_id, result in batch.results.items():
        slug = to_kebab_case(result.name)
        if slug in used:
            slug = f"{slug}-{to_kebab_case(unit_id)}"
        used.add(slug)
        slugs[unit_id] = slug
    return slugs


def _metadata(result: UnitResult) -> dict:
    record = result.record
    return {
        "unitId": result.unit_id,
        "name": result.name,
        "state": result.state.value,
        "componentType": record.component_type if record else None,
        "confidence": record.classification.confidence if record else None,
        "fingerprint": record.fingerprint if record else None,
        "cacheHit": result.cache_hit,
        "quality": result.quality,
        "attempts": result.attempts,
        "error": result.error,
        "errorType": result.error_type,
        "warnings": [w.to_dict() for w in result.warnings],
        "history": [s.value for s in result.history],
        "duration": round(result.duration, 4),
        "generatedAt": datetime.now(timezone.utc).isoformat(),
    }


def save_unit(result: UnitResult, output_dir: str, slug: str, create_subdirectories: bool = True) -> dict:
    if create_subdirectories:
        base, prefix = os.path.join(output_dir, slug), ""
    else:
        base, prefix = output_dir, f"{slug}."

    paths = {}
    os.makedirs(base, exist_ok=True)
    if result.record is not None:
        paths["record"] = _write_json(os.path.join(base, f"{prefix}record.json"), result.record.to_dict())
    if result.code:
        code_path = os.path.join(base, f"{slug}.tsx")
        with open(code_path, "w", encoding="utf-8") as f:
            f.write(result.code)
        paths["code"] = code_path
    if result.validation is not None:
        paths["validation"] = _write_json(
            os.path.join(base, f"{prefix}validation-report.json"), result.validation
        )
    paths["metadata"] = _write_json(os.path.join(base, f"{prefix}metadata.json"), _metadata(result))
    return paths


def save_batch(batch: BatchResult, output_dir: str, create_subdirectories: bool = True) -> dict:
    """寫出所有元件檔案與 batch-summary.json；回傳 {unit id: {kind: path}, "summary": path}."""
    os.makedirs(output_dir, exist_ok=True)
    slugs = _unit_slugs(batch)
    written: dict = {}
    units = []
    for unit_id, result in batch.results.items():
        written[unit_id] = save_unit(result, output_dir, slugs[unit_id], create_subdirectories)
        units.append({
            "unitId": unit_id,
            "name": result.name,
            "slug": slugs[unit_id],
            "state": result.state.value,
            "componentType": result.record.component_type if result.record else None,
            "error": result.error,
        })

    summary = {
        "startedAt": batch.started_at,
        "finishedAt": batch.finished_at,
        "halted": batch.halted,
        "total": len(batch.results),
        "counts": batch.counts(),
        "units": units,
    }
    if batch.blocks:
        summary["blocks"] = [b.to_dict() for b in batch.blocks.values()]
    written["summary"] = _write_json(os.path.join(output_dir, "batch-summary.json"), summary)
    return written
