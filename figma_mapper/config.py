"""設定檔載入、環境變數覆寫、驗證與 logging 設定."""

import hashlib
import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from . import __version__
from .errors import ConfigError

DEFAULT_CONFIG_PATH = "figma-mapper.config.json"
OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"

# 規則表（RULES、SIZE_BUCKETS、VARIANT_PALETTES、ICON_NAME_MAP）修改時遞增；會讓舊快取全部失效
HEURISTICS_REVISION = 2

# 已知有效的頂層欄位
_KNOWN_TOP_KEYS = {"generation", "validation", "cache", "output", "pipeline", "heuristics", "logging"}

# 各區塊已知欄位（用於拼字提示）
_KNOWN_SECTION_KEYS = {
    "generation": {"apiKey", "model", "url", "enabled"},
    "validation": {"url", "enabled"},
    "cache": {"dir", "enabled"},
    "output": {"dir", "createSubdirectories"},
    "pipeline": {"maxRetries", "retryDelay", "maxRetryDelay", "timeout", "concurrency"},
    "heuristics": {"confidenceFloor", "disabledOpacity", "variantFromText"},
    "logging": {"level", "file"},
}

_VALID_LOG_LEVELS = {"debug", "info", "warning", "warn", "error"}

# JSON 欄位 → dataclass 欄位
_FIELD_MAP = {
    ("generation", "apiKey"): "api_key",
    ("generation", "model"): "model",
    ("generation", "url"): "generation_url",
    ("generation", "enabled"): "enable_generation",
    ("validation", "url"): "validation_url",
    ("validation", "enabled"): "enable_visual_validation",
    ("cache", "dir"): "cache_dir",
    ("cache", "enabled"): "enable_caching",
    ("output", "dir"): "output_dir",
    ("output", "createSubdirectories"): "create_subdirectories",
    ("pipeline", "maxRetries"): "max_retries",
    ("pipeline", "retryDelay"): "retry_delay",
    ("pipeline", "maxRetryDelay"): "max_retry_delay",
    ("pipeline", "timeout"): "timeout",
    ("pipeline", "concurrency"): "concurrency",
    ("logging", "level"): "log_level",
    ("logging", "file"): "log_file",
}

_HEURISTIC_FIELD_MAP = {
    "confidenceFloor": "confidence_floor",
    "disabledOpacity": "disabled_opacity",
    "variantFromText": "variant_from_text",
}


@dataclass
class HeuristicConfig:
    """分類/萃取啟發式參數；任何變動都會改變快取指紋."""
    confidence_floor: float = 0.4
    disabled_opacity: float = 0.6
    # 文字剛好是變體名稱（"Outline"）時是否當成變體
    variant_from_text: bool = True

    def version(self) -> str:
        payload = json.dumps(
            {"settings": asdict(self), "revision": HEURISTICS_REVISION, "package": __version__},
            sort_keys=True,
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


@dataclass
class PipelineConfig:
    """Pipeline 設定."""
    api_key: str = ""
    model: str = "anthropic/claude-sonnet-4.5"
    generation_url: str = OPENROUTER_URL
    validation_url: str = ""
    # None = 記憶體快取；設定目錄才寫入磁碟
    cache_dir: Optional[str] = None
    output_dir: str = "./output"
    enable_caching: bool = True
    enable_generation: bool = True
    enable_visual_validation: bool = False
    create_subdirectories: bool = True
    max_retries: int = 3
    retry_delay: float = 1.0
    max_retry_delay: float = 30.0
    timeout: float = 60.0
    concurrency: int = 4
    log_level: str = "info"
    log_file: Optional[str] = None
    heuristics: HeuristicConfig = field(default_factory=HeuristicConfig)


def _warn(msg: str) -> None:
    print(f"   ⚠️  [config] {msg}")


def check_config_keys(cfg: dict) -> None:
    """對 config 做欄位拼字檢查，印出警告但不拋例外。"""
    if not cfg:
        return

    # 頂層未知欄位
    for key in cfg:
        if key not in _KNOWN_TOP_KEYS:
            known = ", ".join(sorted(_KNOWN_TOP_KEYS))
            _warn(f"未知頂層欄位 '{key}'（已知欄位：{known}）")

    # 各區塊欄位
    for section, known_keys in _KNOWN_SECTION_KEYS.items():
        section_cfg = cfg.get(section, {})
        if not isinstance(section_cfg, dict):
            _warn(f"'{section}' 應為 JSON 物件，已忽略")
            continue
        for key in section_cfg:
            if key not in known_keys:
                known = ", ".join(sorted(known_keys))
                _warn(f"[{section}] 未知欄位 '{key}'（已知欄位：{known}）")


def config_from_dict(cfg: dict) -> PipelineConfig:
    """JSON dict → PipelineConfig；未知欄位只警告."""
    check_config_keys(cfg)
    config = PipelineConfig()
    for (section, key), attr in _FIELD_MAP.items():
        section_cfg = cfg.get(section)
        if isinstance(section_cfg, dict) and key in section_cfg:
            setattr(config, attr, section_cfg[key])
    heuristics_cfg = cfg.get("heuristics")
    if isinstance(heuristics_cfg, dict):
        for key, attr in _HEURISTIC_FIELD_MAP.items():
            if key in heuristics_cfg:
                setattr(config.heuristics, attr, heuristics_cfg[key])
    return config


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def apply_env_overrides(config: PipelineConfig, environ: Optional[dict] = None) -> PipelineConfig:
    """環境變數優先於設定檔."""
    env = os.environ if environ is None else environ
    api_key = env.get("OPENROUTER") or env.get("OPENROUTER_API_KEY")
    if api_key:
        config.api_key = api_key
    if env.get("CODE_GENERATION_MODEL"):
        config.model = env["CODE_GENERATION_MODEL"]
    if env.get("CACHE_DIR"):
        config.cache_dir = env["CACHE_DIR"]
    if env.get("OUTPUT_DIR"):
        config.output_dir = env["OUTPUT_DIR"]
    if env.get("LOG_LEVEL"):
        config.log_level = env["LOG_LEVEL"]
    if env.get("ENABLE_VISUAL_VALIDATION"):
        config.enable_visual_validation = _env_flag(env["ENABLE_VISUAL_VALIDATION"])
    return config


def validate_config(config: PipelineConfig) -> None:
    """一次列出所有問題；有問題就拋 ConfigError."""
    errors = []
    if config.enable_generation and not config.api_key:
        errors.append("OpenRouter API key is required when generation is enabled (set OPENROUTER)")
    if config.enable_generation and not config.model:
        errors.append("code generation model is required")
    if config.enable_visual_validation and not config.validation_url:
        errors.append("validation.url is required when visual validation is enabled")
    if not config.output_dir:
        errors.append("output directory is required")
    if not isinstance(config.max_retries, int) or config.max_retries < 0:
        errors.append("maxRetries must be an integer >= 0")
    if not isinstance(config.retry_delay, (int, float)) or config.retry_delay < 0:
        errors.append("retryDelay must be >= 0")
    if not isinstance(config.max_retry_delay, (int, float)) or config.max_retry_delay < 0:
        errors.append("maxRetryDelay must be >= 0")
    if not isinstance(config.timeout, (int, float)) or config.timeout <= 0:
        errors.append("timeout must be > 0")
    if not isinstance(config.concurrency, int) or config.concurrency < 1:
        errors.append("concurrency must be an integer >= 1")
    if str(config.log_level).lower() not in _VALID_LOG_LEVELS:
        valid = ", ".join(sorted(_VALID_LOG_LEVELS))
        errors.append(f"logLevel '{config.log_level}' is not one of {valid}")

    heuristics = config.heuristics
    if not 0.0 <= heuristics.confidence_floor <= 1.0:
        errors.append("heuristics.confidenceFloor must be within [0, 1]")
    if not 0.0 <= heuristics.disabled_opacity <= 1.0:
        errors.append("heuristics.disabledOpacity must be within [0, 1]")

    if errors:
        raise ConfigError("invalid configuration:\n  - " + "\n  - ".join(errors))


def load_config(
    config_path: str = DEFAULT_CONFIG_PATH,
    env_file: Optional[str] = None,
    validate: bool = True,
) -> PipelineConfig:
    """載入 JSON 設定檔（不存在則用預設值），套用 .env 與環境變數後驗證。"""
    load_dotenv(env_file)
    cfg: Any = {}
    path = Path(config_path)
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            cfg = json.load(f)
        if not isinstance(cfg, dict):
            _warn(f"'{config_path}' 格式錯誤，應為 JSON 物件，使用預設設定。")
            cfg = {}
    config = apply_env_overrides(config_from_dict(cfg))
    if validate:
        validate_config(config)
    return config


# ════════════════════════════════════════════════════════════
# Logging
# ════════════════════════════════════════════════════════════

_LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: str = "info", log_file: Optional[str] = None) -> logging.Logger:
    """設定 figma_mapper logger；重複呼叫只更新層級，不重複加 handler."""
    logger = logging.getLogger("figma_mapper")
    name = str(level).upper()
    if name == "WARN":
        name = "WARNING"
    logger.setLevel(getattr(logging, name, logging.INFO))
    if getattr(logger, "_figma_mapper_configured", False):
        return logger

    formatter = logging.Formatter(_LOG_FORMAT)
    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    logger.addHandler(stream)
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    logger._figma_mapper_configured = True
    return logger
