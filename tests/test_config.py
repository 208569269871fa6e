"""
tests/test_config.py — YAML Configuration Loader
=================================================
"""

from __future__ import annotations

import pytest

from scrimhub.config import ScrimhubConfig, load_config


def _write(tmp_path, text: str):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig:
    def test_full_file(self, tmp_path):
        path = _write(tmp_path, (
            "platform_name: SV Scrims\n"
            "api_port: 8080\n"
            "registration_max_attempts: 5\n"
            "currency: USD\n"
        ))
        assert load_config(path) == ScrimhubConfig(
            platform_name="SV Scrims",
            api_port=8080,
            registration_max_attempts=5,
            currency="USD",
        )

    def test_defaults(self, tmp_path):
        cfg = load_config(_write(tmp_path, "platform_name: X\napi_port: 8000\n"))
        assert cfg.registration_max_attempts == 3
        assert cfg.currency == "INR"

    def test_missing_file_has_hint(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="config.yaml.example"):
            load_config(tmp_path / "nope.yaml")

    def test_missing_required_key(self, tmp_path):
        with pytest.raises(KeyError):
            load_config(_write(tmp_path, "api_port: 8000\n"))

    def test_zero_attempts_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            load_config(_write(tmp_path, (
                "platform_name: X\napi_port: 8000\nregistration_max_attempts: 0\n"
            )))

    def test_config_is_frozen(self, tmp_path):
        cfg = load_config(_write(tmp_path, "platform_name: X\napi_port: 8000\n"))
        with pytest.raises(AttributeError):
            cfg.api_port = 9000
