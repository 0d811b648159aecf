"""
Configuration constants for the BioGrid inference client.

This module centralises configuration values that are used across the
application.  New values should be added here deliberately.  Runtime
settings that depend on the environment (credentials, model name and
mode) are collected into a :class:`GatewayConfig` by the process entry
point and passed down explicitly; nothing in the package reads the
credential at import time.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from typing import Final, Mapping, Optional

# Branding for the project.  The product shown in the dashboard is
# BioGrid; the import package is ``biogrid``.
PROJECT_NAME: Final[str] = "BioGrid"

# Default model used for the generateContent endpoint.
DEFAULT_GEMINI_MODEL: Final[str] = "gemini-pro"

# Base URL of the Generative Language API.  The model name and the
# ``:generateContent`` verb are appended by the gateway.
GEMINI_API_BASE_URL: Final[str] = "https://generativelanguage.googleapis.com/v1beta/models"

# Explicit per-call timeout for the gateway in seconds.
DEFAULT_TIMEOUT_SECONDS: Final[float] = 15.0

# Refresh periods used by dashboard panels.  Grid-wide data (load
# balancing, climate impact) is refreshed every five minutes while
# chart ticks are refreshed every minute.
REFRESH_INTERVAL_GRID_SECONDS: Final[float] = 300.0
REFRESH_INTERVAL_CHART_SECONDS: Final[float] = 60.0

# Mode switch for the gateway.  Only ``live`` performs network calls;
# any other value selects the deterministic offline gateway.
LLM_MODES: Final[tuple[str, ...]] = ("fake", "live")
DEFAULT_LLM_MODE: Final[str] = "fake"

# Environment variable names.  Either credential variable satisfies the
# Gemini gateway; GEMINI_API_KEY takes precedence.
ENV_API_KEY: Final[str] = "GEMINI_API_KEY"
ENV_API_KEY_ALT: Final[str] = "GOOGLE_API_KEY"
ENV_LLM_MODE: Final[str] = "BIOGRID_LLM_MODE"
ENV_MODEL: Final[str] = "BIOGRID_GEMINI_MODEL"
ENV_TIMEOUT: Final[str] = "BIOGRID_TIMEOUT_SECONDS"


@dataclass(frozen=True)
class GatewayConfig:
    """Settings required to construct an inference gateway.

    Attributes:
        api_key: Credential for the Generative Language API.  ``None``
            is allowed; calls made without a credential fail with an
            authentication error and degrade to fallback results.
        model: Gemini model name.
        mode: ``"live"`` for network calls, ``"fake"`` for the
            deterministic offline gateway.
        timeout_seconds: Default per-call timeout.
        base_url: API base URL, overridable for tests and proxies.
    """

    api_key: Optional[str] = None
    model: str = DEFAULT_GEMINI_MODEL
    mode: str = DEFAULT_LLM_MODE
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    base_url: str = GEMINI_API_BASE_URL

    @property
    def is_live(self) -> bool:
        return self.mode == "live"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "GatewayConfig":
        """Build a configuration from environment variables.

        Unknown modes fall back to ``fake`` and an unparsable timeout
        falls back to :data:`DEFAULT_TIMEOUT_SECONDS`; neither is
        treated as fatal.
        """
        env = os.environ if environ is None else environ
        api_key = env.get(ENV_API_KEY) or env.get(ENV_API_KEY_ALT) or None
        mode = (env.get(ENV_LLM_MODE) or DEFAULT_LLM_MODE).strip().lower()
        if mode not in LLM_MODES:
            mode = DEFAULT_LLM_MODE
        model = env.get(ENV_MODEL) or DEFAULT_GEMINI_MODEL
        try:
            timeout = float(env.get(ENV_TIMEOUT, DEFAULT_TIMEOUT_SECONDS))
        except ValueError:
            timeout = DEFAULT_TIMEOUT_SECONDS
        if not math.isfinite(timeout) or timeout <= 0:
            timeout = DEFAULT_TIMEOUT_SECONDS
        return cls(api_key=api_key, model=model, mode=mode, timeout_seconds=timeout)


__all__ = [
    "PROJECT_NAME",
    "DEFAULT_GEMINI_MODEL",
    "GEMINI_API_BASE_URL",
    "DEFAULT_TIMEOUT_SECONDS",
    "REFRESH_INTERVAL_GRID_SECONDS",
    "REFRESH_INTERVAL_CHART_SECONDS",
    "LLM_MODES",
    "DEFAULT_LLM_MODE",
    "GatewayConfig",
]
