"""Tests for settings loading."""

import json
import os

from zynex.config import DEFAULT_CONFIG, get_config_file, load_config


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("VM_DIR", raising=False)
        config = load_config(str(tmp_path / "missing.json"))
        assert config["DEFAULT_DISK_SIZE"] == "20G"
        assert config["VMS_DIR"] == os.path.abspath(DEFAULT_CONFIG["VMS_DIR"])

    def test_returns_fresh_dict(self, tmp_path, monkeypatch):
        monkeypatch.delenv("VM_DIR", raising=False)
        config = load_config(str(tmp_path / "missing.json"))
        config["DEFAULT_CPUS"] = 64
        assert DEFAULT_CONFIG["DEFAULT_CPUS"] == 2

    def test_file_overrides_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("VM_DIR", raising=False)
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"DEFAULT_MEMORY_MB": 4096, "VMS_DIR": str(tmp_path / "from-file")}))

        config = load_config(str(config_file))
        assert config["DEFAULT_MEMORY_MB"] == 4096
        assert config["VMS_DIR"] == str(tmp_path / "from-file")

    def test_env_beats_file(self, tmp_path, monkeypatch):
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"VMS_DIR": str(tmp_path / "from-file")}))
        monkeypatch.setenv("VM_DIR", str(tmp_path / "from-env"))

        assert load_config(str(config_file))["VMS_DIR"] == str(tmp_path / "from-env")

    def test_overrides_beat_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("VM_DIR", str(tmp_path / "from-env"))
        config = load_config(str(tmp_path / "missing.json"),
                             overrides={"VMS_DIR": str(tmp_path / "from-flag"), "LOG_LEVEL": None})
        assert config["VMS_DIR"] == str(tmp_path / "from-flag")
        assert config["LOG_LEVEL"] == "INFO"

    def test_bad_file_ignored(self, tmp_path, monkeypatch):
        monkeypatch.delenv("VM_DIR", raising=False)
        config_file = tmp_path / "config.json"
        config_file.write_text("[not, an, object")
        assert load_config(str(config_file))["DEFAULT_CPUS"] == 2

    def test_config_file_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ZYNEX_CONFIG", str(tmp_path / "custom.json"))
        assert get_config_file() == str(tmp_path / "custom.json")
