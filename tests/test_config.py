"""Tests for configuration loading and overrides."""

import json
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tooltrim import config
from tooltrim.compactor import estimate_tokens


class TestConfig:
    def setup_method(self):
        config.reload()

    def teardown_method(self):
        config.reload()

    def _isolate(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.setenv("APPDATA", str(tmp_path))
        for key in config._DEFAULTS:
            monkeypatch.delenv(config.ENV_PREFIX + key.upper(), raising=False)

    def test_defaults(self, monkeypatch, tmp_path):
        self._isolate(monkeypatch, tmp_path)
        assert config.get("chars_per_token") == 4.0
        assert config.get("error_message_max_lines") == 5

    def test_env_override(self, monkeypatch, tmp_path):
        self._isolate(monkeypatch, tmp_path)
        monkeypatch.setenv("TOOLTRIM_CHARS_PER_TOKEN", "2")
        monkeypatch.setenv("TOOLTRIM_DEBUG", "yes")
        assert config.get("chars_per_token") == 2.0
        assert config.get("debug") is True

    def test_zero_divisor_falls_back(self, monkeypatch, tmp_path):
        self._isolate(monkeypatch, tmp_path)
        monkeypatch.setenv("TOOLTRIM_CHARS_PER_TOKEN", "0")
        assert config.get("chars_per_token") == 4.0
        assert estimate_tokens("abcdefgh") == 2

    def test_file_values_validated(self, monkeypatch, tmp_path):
        self._isolate(monkeypatch, tmp_path)
        data = tmp_path / ".tooltrim"
        data.mkdir()
        (data / "config.json").write_text(
            json.dumps(
                {
                    "compact_size_ratio": -1,
                    "coverage_compact_threshold": "high",
                    "error_message_max_lines": 3.0,
                    "chars_per_token": 3,
                }
            )
        )
        assert config.get("compact_size_ratio") == 1.0
        assert config.get("coverage_compact_threshold") == 80.0
        assert config.get("error_message_max_lines") == 3
        assert isinstance(config.get("error_message_max_lines"), int)
        assert config.get("chars_per_token") == 3

    def test_malformed_file_ignored(self, monkeypatch, tmp_path):
        self._isolate(monkeypatch, tmp_path)
        data = tmp_path / ".tooltrim"
        data.mkdir()
        (data / "config.json").write_text("{not json")
        assert config.get("compact_size_ratio") == 1.0
