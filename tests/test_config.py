"""Tests for configuration loading."""

from __future__ import annotations

from geocluster.config import AppConfig, load_config


def test_defaults_when_no_file(tmp_path):
    config = load_config(tmp_path / "missing.yaml")
    assert config == AppConfig()
    assert config.engine.default_max_clusters is None


def test_yaml_sections_applied(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "engine:\n"
        "  base_cell_degrees: 60.0\n"
        "  default_max_clusters: 200\n"
        "  not_a_setting: 1\n"
        "session:\n"
        "  debounce_ms: 50\n"
        "logging:\n"
        "  format: json\n"
    )
    config = load_config(path)
    assert config.engine.base_cell_degrees == 60.0
    assert config.engine.default_max_clusters == 200
    assert not hasattr(config.engine, "not_a_setting")
    assert config.session.debounce_ms == 50
    assert config.logging.format == "json"


def test_env_overrides_win(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text("server:\n  port: 9000\n")
    monkeypatch.setenv("GEOCLUSTER_SERVER_PORT", "9100")
    monkeypatch.setenv("GEOCLUSTER_ENGINE_MAX_CELLS", "1000")
    monkeypatch.setenv("GEOCLUSTER_ENGINE_DEFAULT_MAX_CLUSTERS", "none")
    monkeypatch.setenv("GEOCLUSTER_LOG_LEVEL", "debug")

    config = load_config(path)
    assert config.server.port == 9100
    assert config.engine.max_cells == 1000
    assert config.engine.default_max_clusters is None
    assert config.logging.level == "debug"


def test_empty_yaml_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")
    assert load_config(path) == AppConfig()
