"""Tests for environment-driven gateway configuration."""

from __future__ import annotations

from biogrid.config import DEFAULT_GEMINI_MODEL, DEFAULT_TIMEOUT_SECONDS, GatewayConfig


def test_defaults_are_offline() -> None:
    config = GatewayConfig.from_env({})
    assert config.mode == "fake"
    assert not config.is_live
    assert config.api_key is None
    assert config.model == DEFAULT_GEMINI_MODEL
    assert config.timeout_seconds == DEFAULT_TIMEOUT_SECONDS


def test_live_settings_are_read() -> None:
    config = GatewayConfig.from_env(
        {
            "BIOGRID_LLM_MODE": "LIVE",
            "GEMINI_API_KEY": "primary",
            "GOOGLE_API_KEY": "secondary",
            "BIOGRID_GEMINI_MODEL": "gemini-1.5-flash",
            "BIOGRID_TIMEOUT_SECONDS": "7.5",
        }
    )
    assert config.is_live
    assert config.api_key == "primary"
    assert config.model == "gemini-1.5-flash"
    assert config.timeout_seconds == 7.5


def test_google_api_key_is_accepted() -> None:
    assert GatewayConfig.from_env({"GOOGLE_API_KEY": "alt"}).api_key == "alt"


def test_bad_values_fall_back_to_defaults() -> None:
    config = GatewayConfig.from_env({"BIOGRID_LLM_MODE": "shadow", "BIOGRID_TIMEOUT_SECONDS": "soon"})
    assert config.mode == "fake"
    assert config.timeout_seconds == DEFAULT_TIMEOUT_SECONDS
    assert GatewayConfig.from_env({"BIOGRID_TIMEOUT_SECONDS": "-1"}).timeout_seconds == DEFAULT_TIMEOUT_SECONDS


def test_non_finite_timeouts_fall_back_to_default() -> None:
    for raw in ("nan", "inf", "-inf"):
        config = GatewayConfig.from_env({"BIOGRID_TIMEOUT_SECONDS": raw})
        assert config.timeout_seconds == DEFAULT_TIMEOUT_SECONDS
