"""Tests for configuration loading."""

import tempfile
from pathlib import Path

from snapsight.config import DEFAULT_CONFIG, load_config, use_mock

ENV_KEYS = ("ANTHROPIC_API_KEY", "DB_PATH", "VECTOR_STORE_PATH", "MAX_SIMILAR", "USE_MOCK_DATA")


def _clear_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults_with_explicit_empty_file(monkeypatch):
    _clear_env(monkeypatch)
    with tempfile.TemporaryDirectory() as tmpdir:
        cfg_file = Path(tmpdir) / "config.yaml"
        cfg_file.write_text("")
        cfg = load_config(cfg_file)
        assert cfg["max_similar"] == 3
        assert cfg["image"] == {"max_size": 1024, "jpeg_quality": 90}
        assert Path(cfg["db_path"]).is_absolute()
        assert cfg["db_path"].endswith("analyses-db.json")
        assert "claude_api_key" not in cfg


def test_file_values_deep_merge(monkeypatch):
    _clear_env(monkeypatch)
    with tempfile.TemporaryDirectory() as tmpdir:
        cfg_file = Path(tmpdir) / "config.yaml"
        cfg_file.write_text(
            f"db_path: {tmpdir}/db.json\n"
            "max_similar: 5\n"
            "image:\n"
            "  max_size: 512\n"
        )
        cfg = load_config(cfg_file)
        assert cfg["db_path"] == str((Path(tmpdir) / "db.json").resolve())
        assert cfg["max_similar"] == 5
        assert cfg["image"] == {"max_size": 512, "jpeg_quality": 90}


def test_loading_does_not_mutate_defaults(monkeypatch):
    _clear_env(monkeypatch)
    with tempfile.TemporaryDirectory() as tmpdir:
        cfg_file = Path(tmpdir) / "config.yaml"
        cfg_file.write_text("image:\n  jpeg_quality: 50\n")
        load_config(cfg_file)
    assert DEFAULT_CONFIG["image"]["jpeg_quality"] == 90


def test_env_overrides(monkeypatch):
    _clear_env(monkeypatch)
    with tempfile.TemporaryDirectory() as tmpdir:
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        monkeypatch.setenv("DB_PATH", f"{tmpdir}/env-db.json")
        monkeypatch.setenv("VECTOR_STORE_PATH", f"{tmpdir}/env-vectors.json")
        monkeypatch.setenv("MAX_SIMILAR", "7")
        monkeypatch.setenv("USE_MOCK_DATA", "true")
        cfg_file = Path(tmpdir) / "config.yaml"
        cfg_file.write_text("max_similar: 2\n")

        cfg = load_config(cfg_file)
        assert cfg["claude_api_key"] == "sk-test"
        assert cfg["db_path"].endswith("env-db.json")
        assert cfg["vector_store_path"].endswith("env-vectors.json")
        assert cfg["max_similar"] == 7
        assert cfg["use_mock_data"] is True


def test_use_mock():
    assert use_mock({}) is True
    assert use_mock({"claude_api_key": "sk-test"}) is False
    assert use_mock({"claude_api_key": "sk-test", "use_mock_data": True}) is True
