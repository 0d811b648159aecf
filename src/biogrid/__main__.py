"""Entry point for running BioGrid as a module.

This allows the CLI to be invoked with ``python -m biogrid``.
"""

from .cli import cli

if __name__ == "__main__":  # pragma: no cover
    cli()
