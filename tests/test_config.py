"""
設定載入測試：JSON 欄位對應、拼字警告、環境變數覆寫、驗證、logging
"""
import json
import logging

import pytest

from figma_mapper.config import (
    HeuristicConfig,
    PipelineConfig,
    apply_env_overrides,
    check_config_keys,
    config_from_dict,
    load_config,
    setup_logging,
    validate_config,
)
from figma_mapper.errors import ConfigError

_ENV_KEYS = (
    "OPENROUTER", "OPENROUTER_API_KEY", "CODE_GENERATION_MODEL", "CACHE_DIR",
    "OUTPUT_DIR", "LOG_LEVEL", "ENABLE_VISUAL_VALIDATION",
)


@pytest.fixture
def clean_env(monkeypatch):
    # setenv 先記下原值，.env 載入的變數在 teardown 時一併還原
    for key in _ENV_KEYS:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    return monkeypatch


class TestConfigFromDict:

    def test_sections_map_to_fields(self):
        config = config_from_dict({
            "generation": {"apiKey": "k", "model": "m", "enabled": False},
            "cache": {"dir": "/tmp/c", "enabled": False},
            "output": {"dir": "out", "createSubdirectories": False},
            "pipeline": {"maxRetries": 5, "retryDelay": 0.5, "concurrency": 2},
            "heuristics": {"confidenceFloor": 0.3, "variantFromText": False},
            "logging": {"level": "debug"},
        })
        assert config.api_key == "k"
        assert config.model == "m"
        assert config.enable_generation is False
        assert config.cache_dir == "/tmp/c"
        assert config.enable_caching is False
        assert config.output_dir == "out"
        assert config.create_subdirectories is False
        assert config.max_retries == 5
        assert config.retry_delay == 0.5
        assert config.concurrency == 2
        assert config.heuristics.confidence_floor == 0.3
        assert config.heuristics.variant_from_text is False
        assert config.log_level == "debug"

    def test_defaults(self):
        config = config_from_dict({})
        assert config == PipelineConfig()
        assert config.heuristics == HeuristicConfig()


class TestCheckConfigKeys:

    def test_unknown_top_level_key(self, capsys):
        check_config_keys({"genration": {}})
        out = capsys.readouterr().out
        assert "⚠️" in out
        assert "genration" in out

    def test_unknown_section_key(self, capsys):
        check_config_keys({"pipeline": {"maxRetry": 3}})
        out = capsys.readouterr().out
        assert "[pipeline]" in out
        assert "maxRetry" in out

    def test_non_object_section(self, capsys):
        check_config_keys({"cache": "yes"})
        assert "'cache'" in capsys.readouterr().out

    def test_known_keys_silent(self, capsys):
        check_config_keys({"pipeline": {"maxRetries": 1}, "logging": {"level": "info"}})
        assert capsys.readouterr().out == ""


class TestEnvOverrides:

    def test_environment_wins(self):
        config = PipelineConfig(api_key="file-key", model="file-model")
        apply_env_overrides(config, {
            "OPENROUTER": "env-key",
            "CODE_GENERATION_MODEL": "env-model",
            "CACHE_DIR": "/env/cache",
            "OUTPUT_DIR": "/env/out",
            "LOG_LEVEL": "error",
            "ENABLE_VISUAL_VALIDATION": "true",
        })
        assert config.api_key == "env-key"
        assert config.model == "env-model"
        assert config.cache_dir == "/env/cache"
        assert config.output_dir == "/env/out"
        assert config.log_level == "error"
        assert config.enable_visual_validation is True

    def test_openrouter_api_key_alias(self):
        config = apply_env_overrides(PipelineConfig(), {"OPENROUTER_API_KEY": "alias"})
        assert config.api_key == "alias"

    def test_empty_environment_keeps_values(self):
        config = apply_env_overrides(PipelineConfig(api_key="x"), {})
        assert config.api_key == "x"


class TestValidateConfig:

    def test_valid(self):
        validate_config(PipelineConfig(api_key="k"))

    def test_api_key_only_needed_for_generation(self):
        validate_config(PipelineConfig(enable_generation=False))
        with pytest.raises(ConfigError, match="API key"):
            validate_config(PipelineConfig())

    def test_lists_every_problem(self):
        config = PipelineConfig(
            api_key="k",
            max_retries=-1,
            concurrency=0,
            timeout=0,
            log_level="loud",
            enable_visual_validation=True,
        )
        config.heuristics.confidence_floor = 2.0
        with pytest.raises(ConfigError) as exc:
            validate_config(config)
        message = str(exc.value)
        for fragment in ("maxRetries", "concurrency", "timeout", "loud", "validation.url", "confidenceFloor"):
            assert fragment in message

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            validate_config(PipelineConfig(concurrency=0, enable_generation=False))


class TestLoadConfig:

    def test_missing_file_uses_defaults(self, tmp_path, clean_env):
        config = load_config(str(tmp_path / "nope.json"), env_file=str(tmp_path / ".env"), validate=False)
        assert config.concurrency == 4
        assert config.api_key == ""

    def test_loads_json_file(self, tmp_path, clean_env):
        path = tmp_path / "figma-mapper.config.json"
        path.write_text(json.dumps({
            "generation": {"apiKey": "from-file"},
            "pipeline": {"concurrency": 8},
        }), encoding="utf-8")
        config = load_config(str(path), env_file=str(tmp_path / ".env"))
        assert config.api_key == "from-file"
        assert config.concurrency == 8

    def test_env_file_is_loaded(self, tmp_path, clean_env):
        env_file = tmp_path / ".env"
        env_file.write_text("OPENROUTER=from-dotenv\n", encoding="utf-8")
        config = load_config(str(tmp_path / "nope.json"), env_file=str(env_file))
        assert config.api_key == "from-dotenv"

    def test_non_object_json_warns(self, tmp_path, clean_env, capsys):
        path = tmp_path / "bad.json"
        path.write_text("[1, 2]", encoding="utf-8")
        config = load_config(str(path), env_file=str(tmp_path / ".env"), validate=False)
        assert "格式錯誤" in capsys.readouterr().out
        assert config == PipelineConfig()

    def test_invalid_values_raise(self, tmp_path, clean_env):
        path = tmp_path / "c.json"
        path.write_text(json.dumps({"generation": {"enabled": False}, "pipeline": {"concurrency": 0}}))
        with pytest.raises(ConfigError, match="concurrency"):
            load_config(str(path), env_file=str(tmp_path / ".env"))


def test_setup_logging_is_idempotent():
    logger = setup_logging("debug")
    handlers = list(logger.handlers)
    assert logger.name == "figma_mapper"
    assert logger.level == logging.DEBUG

    again = setup_logging("warn")
    assert again is logger
    assert again.handlers == handlers
    assert again.level == logging.WARNING
    logger.setLevel(logging.NOTSET)
