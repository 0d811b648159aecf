"""Top-level package for the BioGrid inference client.

This package provides the structured inference pipeline in
:mod:`biogrid.llm`, the refresh scheduler in
:mod:`biogrid.orchestration`, the consumer interface in
:mod:`biogrid.client` and a command-line interface via
:mod:`biogrid.cli`.
"""

__all__ = [
    "cli",
    "client",
    "config",
    "llm",
    "orchestration",
]
