from pathlib import Path

import pytest
import yaml

from pubsuggest.services.config_manager import ConfigManager, ConfigValidationError

SHIPPED_CONFIG = Path(__file__).resolve().parents[2] / "config" / "suggest_config.yaml"


@pytest.fixture
def valid_config_file(tmp_path):
    config_content = {
        "provider": {"timeout_seconds": 10, "crossref_mailto": "${TEST_MAILTO}"},
        "cache": {"cache_dir": str(tmp_path / "cache"), "ttl_record_days": 7},
        "suggestion": {"max_suggestions": 25},
        "scoring": {"boost_keywords": ["GRAPH"], "survey_boost_enabled": True},
        "log_level": "DEBUG",
    }
    config_file = tmp_path / "suggest_config.yaml"
    with open(config_file, "w") as f:
        yaml.dump(config_content, f)
    return config_file


def test_load_valid_config(valid_config_file, monkeypatch):
    monkeypatch.setenv("TEST_MAILTO", "me@example.org")
    manager = ConfigManager(config_path=str(valid_config_file))
    manager.env_loaded = True

    config = manager.load_config()

    assert config.provider.timeout_seconds == 10
    assert config.provider.crossref_mailto == "me@example.org"
    assert config.cache.ttl_record_days == 7
    assert config.suggestion.max_suggestions == 25
    assert config.suggestion.load_more_increment == 100
    assert config.scoring.survey_boost_enabled
    assert config.log_level == "DEBUG"
    # Cached after first load
    assert manager.load_config() is config


def test_unknown_variables_are_left_in_place(valid_config_file, monkeypatch):
    monkeypatch.delenv("TEST_MAILTO", raising=False)
    manager = ConfigManager(config_path=str(valid_config_file))
    manager.env_loaded = True

    assert manager.load_config().provider.crossref_mailto == "${TEST_MAILTO}"


def test_overrides_merge_into_sections(valid_config_file):
    manager = ConfigManager(config_path=str(valid_config_file))
    manager.env_loaded = True

    config = manager.load_config(overrides={"cache": {"enabled": False}})

    assert not config.cache.enabled
    assert config.cache.ttl_record_days == 7


def test_empty_file_gives_defaults(tmp_path):
    config_file = tmp_path / "empty.yaml"
    config_file.write_text("")
    manager = ConfigManager(config_path=str(config_file))
    manager.env_loaded = True

    config = manager.load_config()

    assert config.suggestion.max_suggestions == 100
    assert config.scoring.citations_per_year_weight == 0


def test_load_missing_config():
    manager = ConfigManager(config_path="nonexistent.yaml")
    manager.env_loaded = True
    with pytest.raises(FileNotFoundError):
        manager.load_config()


def test_invalid_yaml(tmp_path):
    config_file = tmp_path / "bad.yaml"
    config_file.write_text("provider: [unclosed")
    manager = ConfigManager(config_path=str(config_file))
    manager.env_loaded = True
    with pytest.raises(ConfigValidationError):
        manager.load_config()


def test_invalid_values(tmp_path):
    config_file = tmp_path / "bad.yaml"
    config_file.write_text("suggestion:\n  max_suggestions: 0\n")
    manager = ConfigManager(config_path=str(config_file))
    manager.env_loaded = True
    with pytest.raises(ConfigValidationError, match="Invalid configuration"):
        manager.load_config()


def test_non_mapping_root(tmp_path):
    config_file = tmp_path / "list.yaml"
    config_file.write_text("- a\n- b\n")
    manager = ConfigManager(config_path=str(config_file))
    manager.env_loaded = True
    with pytest.raises(ConfigValidationError):
        manager.load_config()


def test_shipped_config_is_valid():
    manager = ConfigManager(config_path=str(SHIPPED_CONFIG))
    manager.env_loaded = True
    config = manager.load_config()
    assert config.provider.publications_url.startswith("https://")
