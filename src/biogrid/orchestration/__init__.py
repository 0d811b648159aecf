"""Orchestration helpers for BioGrid.

This package provides the periodic refresh scheduler used by
dashboard panels to keep model-backed results current.
"""

from .scheduler import RefreshScheduler, RefreshState, Subscription  # noqa: F401
