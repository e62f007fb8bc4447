"""Tests for configuration loading."""

import json

import pytest

from wikibot.config import ENV_OVERRIDES, load_config
from wikibot.errors import ConfigError


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Run every test away from real config files and WIKIBOT_* variables."""
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def write_config(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults_without_file(self):
        """Without config.json the defaults should be returned."""
        config = load_config()
        assert config["wiki"]["site_url"] is None
        assert config["transport"]["max_retries"] == 3
        assert config["transport"]["retry_delay_seconds"] == 60.0
        assert config["logging"]["level"] == "INFO"

    def test_reads_default_path(self, tmp_path):
        """./config.json should be picked up automatically."""
        write_config(tmp_path / "config.json", {"wiki": {"site_url": "https://wiki.example.org"}})
        assert load_config()["wiki"]["site_url"] == "https://wiki.example.org"

    def test_merges_sections(self, tmp_path):
        """Settings from the file should override defaults key by key."""
        path = write_config(tmp_path / "custom.json", {"transport": {"delay_seconds": 2}})

        config = load_config(path)

        assert config["transport"]["delay_seconds"] == 2
        assert config["transport"]["timeout_seconds"] == 30.0

    def test_defaults_not_mutated(self, tmp_path):
        """Loading one config should not leak into the next."""
        path = write_config(tmp_path / "custom.json", {"cache": {"dir": "/elsewhere"}})
        load_config(path)
        assert load_config()["cache"]["dir"] == "./cache"

    def test_environment_wins(self, tmp_path, monkeypatch):
        """Environment variables should override the file."""
        path = write_config(tmp_path / "custom.json", {"wiki": {"username": "FileBot"}})
        monkeypatch.setenv("WIKIBOT_USERNAME", "EnvBot")
        monkeypatch.setenv("LOG_DIR", "/var/log/wikibot")

        config = load_config(path)

        assert config["wiki"]["username"] == "EnvBot"
        assert config["logging"]["dir"] == "/var/log/wikibot"

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ConfigError):
            load_config(path)

    def test_not_an_object(self, tmp_path):
        path = write_config(tmp_path / "list.json", ["a", "b"])

        with pytest.raises(ConfigError):
            load_config(path)
