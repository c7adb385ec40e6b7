"""
figma-mapper — Figma 場景圖 → 元件分類、屬性萃取、slot 對應

分析引擎（分類/萃取/對應）是決定性的純函式；
Pipeline 負責快取、批次並行、外部程式碼生成與視覺驗證。
"""

__version__ = "0.1.0"

from .errors import (
    FigmaMapperError,
    MalformedExportError,
    TransientExternalError,
    ExternalServiceError,
    CacheConsistencyError,
    ConfigError,
    MappingWarning,
)
from .scene_graph import (
    Node,
    PropertyKind,
    PropertyValue,
    SceneDocument,
    ingest_export,
    ingest_node,
    iter_nodes,
    find_instances,
)
from .icon_mapper import IconRef, IconStatus, normalize_icon_name
from .classifier import ComponentType, ComponentClassification, classify_node, classify_tree
from .property_extractor import ExtractedProperties, InferredValue, extract_properties
from .semantic_mapper import SchemaMapping, SCHEMAS, map_slots
from .style_extractor import StyleSummary, extract_style
from .block_classifier import BlockCategory, BlockClassification, classify_block, classify_blocks
from .block_mapper import BLOCK_SCHEMAS, BlockMapping, map_block
from .records import ComponentRecord
from .cache import ResultCache, MemoryStore, JsonFileStore, fingerprint_node, open_cache
from .config import HeuristicConfig, PipelineConfig, load_config, validate_config, setup_logging
from .generation import OpenRouterGenerator, HttpVisualValidator, build_generation_prompt
from .orchestrator import (
    BatchResult,
    ComponentUnit,
    Pipeline,
    UnitResult,
    UnitState,
)
from .outputs import save_batch

__all__ = [
    "__version__",
    "FigmaMapperError",
    "MalformedExportError",
    "TransientExternalError",
    "ExternalServiceError",
    "CacheConsistencyError",
    "ConfigError",
    "MappingWarning",
    "Node",
    "PropertyKind",
    "PropertyValue",
    "SceneDocument",
    "ingest_export",
    "ingest_node",
    "iter_nodes",
    "find_instances",
    "IconRef",
    "IconStatus",
    "normalize_icon_name",
    "ComponentType",
    "ComponentClassification",
    "classify_node",
    "classify_tree",
    "ExtractedProperties",
    "InferredValue",
    "extract_properties",
    "SchemaMapping",
    "SCHEMAS",
    "map_slots",
    "StyleSummary",
    "extract_style",
    "BlockCategory",
    "BlockClassification",
    "classify_block",
    "classify_blocks",
    "BLOCK_SCHEMAS",
    "BlockMapping",
    "map_block",
    "ComponentRecord",
    "ResultCache",
    "MemoryStore",
    "JsonFileStore",
    "fingerprint_node",
    "open_cache",
    "HeuristicConfig",
    "PipelineConfig",
    "load_config",
    "validate_config",
    "setup_logging",
    "OpenRouterGenerator",
    "HttpVisualValidator",
    "build_generation_prompt",
    "BatchResult",
    "ComponentUnit",
    "Pipeline",
    "UnitResult",
    "UnitState",
    "save_batch",
]
