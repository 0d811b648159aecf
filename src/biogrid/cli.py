"""Command-line interface for BioGrid.

This module uses the :mod:`click` library to expose the inference
pipeline for operators and for debugging panels: render a prompt, run
a one-shot inference, watch a periodically refreshed request or run
the extractor over captured model output.

Parameters are passed as ``-p name=value`` pairs; values are parsed as
JSON when possible (``-p demand=1000``, ``-p gridData='[...]'``) and
kept as strings otherwise.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any, Dict, Optional, Tuple

import click
from dotenv import load_dotenv

from .client import InferenceClient, build_client
from .config import ENV_API_KEY, ENV_API_KEY_ALT, GatewayConfig
from .llm.catalog import CATALOG
from .llm.errors import InputError
from .llm.extractor import ExtractionFailure, extract_payload
from .llm.models import InferenceKind, InferenceRequest, NormalizedResult
from .llm.normalizer import normalize
from .llm.prompts import build_prompt

KIND_CHOICE = click.Choice([k.value for k in InferenceKind], case_sensitive=False)


@click.group()
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level for pipeline diagnostics (written to stderr).",
)
def cli(log_level: str) -> None:
    """BioGrid structured inference client."""
    load_dotenv()
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _parse_params(pairs: Tuple[str, ...], params_json: Optional[str]) -> Dict[str, Any]:
    params: Dict[str, Any] = {}
    if params_json:
        try:
            loaded = json.loads(params_json)
        except ValueError as exc:
            raise click.BadParameter(f"not valid JSON: {exc}", param_hint="--params-json")
        if not isinstance(loaded, dict):
            raise click.BadParameter("must be a JSON object", param_hint="--params-json")
        params.update(loaded)
    for pair in pairs:
        name, sep, raw = pair.partition("=")
        if not sep or not name.strip():
            raise click.BadParameter(f"expected name=value, got {pair!r}", param_hint="--param")
        try:
            value: Any = json.loads(raw)
        except ValueError:
            value = raw
        params[name.strip()] = value
    return params


def _build_client() -> InferenceClient:
    """Construct the client from the environment.

    Factored out so tests can monkeypatch it with a client backed by a
    scripted gateway.
    """
    return build_client(GatewayConfig.from_env())


def _echo_result(result: NormalizedResult, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(result.model_dump(mode="json"), indent=2, sort_keys=True))
        return
    line = f"{result.kind.value}: source={result.source}"
    if result.failure:
        line += f" failure={result.failure}"
    if result.degraded_fields:
        line += f" degraded={','.join(result.degraded_fields)}"
    if result.stale:
        line += " stale"
    click.echo(line)
    click.echo(json.dumps(result.as_payload(), indent=2, sort_keys=True))


param_option = click.option(
    "-p",
    "--param",
    "pairs",
    multiple=True,
    help="Request parameter as name=value; repeatable.",
)
params_json_option = click.option(
    "--params-json",
    default=None,
    help="Request parameters as a JSON object; merged before --param values.",
)


@cli.command(name="config-check")
@click.option(
    "--mode",
    default=None,
    type=click.Choice(["fake", "live"], case_sensitive=False),
    help="Mode to validate; defaults to BIOGRID_LLM_MODE.",
)
def config_check(mode: Optional[str]) -> None:
    """Validate that required configuration variables are present.

    In fake mode this command always succeeds.  In live mode a missing
    Gemini credential is reported and the command exits with status 2.
    """
    config = GatewayConfig.from_env()
    mode_normalised = (mode or config.mode).lower()
    if mode_normalised != "live":
        click.echo("OK (fake); live keys not required")
        return
    if not (os.getenv(ENV_API_KEY) or os.getenv(ENV_API_KEY_ALT)):
        click.echo(f"Missing environment variables: {ENV_API_KEY}", err=True)
        ctx = click.get_current_context()
        ctx.exit(2)
    click.echo(f"OK (live) model={config.model} timeout={config.timeout_seconds:g}s")


@cli.command()
def kinds() -> None:
    """List request kinds and their parameters."""
    for kind, spec in CATALOG.items():
        required = ", ".join(spec.required_params) or "-"
        optional = ", ".join(p.name for p in spec.params if not p.required) or "-"
        click.echo(
            f"{kind.value}: required={required} optional={optional} "
            f"refresh={spec.refresh_interval:g}s"
        )


@cli.command()
@click.argument("kind", type=KIND_CHOICE)
@param_option
@params_json_option
@click.option("--schema", is_flag=True, default=False, help="Print the output JSON schema instead.")
def prompt(kind: str, pairs: Tuple[str, ...], params_json: Optional[str], schema: bool) -> None:
    """Render the prompt for KIND without calling the model."""
    request = InferenceRequest(kind=InferenceKind(kind.lower()), params=_parse_params(pairs, params_json))
    try:
        spec = build_prompt(request)
    except InputError as exc:
        raise click.ClickException(str(exc))
    if schema:
        click.echo(json.dumps(spec.output_schema, indent=2, sort_keys=True))
    else:
        click.echo(spec.text)


@cli.command()
@click.argument("kind", type=KIND_CHOICE)
@param_option
@params_json_option
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the full result as JSON.")
def infer(kind: str, pairs: Tuple[str, ...], params_json: Optional[str], as_json: bool) -> None:
    """Run a one-shot inference for KIND."""
    params = _parse_params(pairs, params_json)
    client = _build_client()
    try:
        result = asyncio.run(client.infer_once(kind.lower(), params))
    except InputError as exc:
        raise click.ClickException(str(exc))
    _echo_result(result, as_json)


@cli.command()
@click.argument("source", type=click.File("r"), default="-")
@click.option("--kind", type=KIND_CHOICE, default=None, help="Also normalize against KIND's schema.")
def extract(source, kind: Optional[str]) -> None:
    """Extract a JSON payload from captured model output (file or stdin)."""
    text = source.read()
    extraction = extract_payload(text)
    if isinstance(extraction, ExtractionFailure):
        click.echo(f"extraction failed: {extraction.reason}", err=True)
    else:
        click.echo(f"stage: {extraction.stage}")
        click.echo(json.dumps(extraction.value, indent=2, sort_keys=True))
    if kind is not None:
        spec = CATALOG[InferenceKind(kind.lower())]
        outcome = normalize(spec.result_model, extraction)
        click.echo(
            "normalized"
            + (f" (degraded: {', '.join(outcome.degraded_fields)})" if outcome.degraded else "")
            + ":"
        )
        click.echo(json.dumps(outcome.data.model_dump(by_alias=True), indent=2, sort_keys=True))
    if isinstance(extraction, ExtractionFailure):
        ctx = click.get_current_context()
        ctx.exit(1)


@cli.command()
@click.argument("kind", type=KIND_CHOICE)
@param_option
@params_json_option
@click.option("--interval", type=float, default=None, help="Refresh period in seconds; defaults to the kind's period.")
@click.option("--ticks", type=int, default=3, show_default=True, help="Number of updates to print before exiting.")
def watch(
    kind: str,
    pairs: Tuple[str, ...],
    params_json: Optional[str],
    interval: Optional[float],
    ticks: int,
) -> None:
    """Subscribe to KIND and print each refreshed result."""
    if ticks < 1:
        raise click.BadParameter("must be at least 1", param_hint="--ticks")
    params = _parse_params(pairs, params_json)
    client = _build_client()

    async def _watch() -> None:
        updates: asyncio.Queue[NormalizedResult] = asyncio.Queue()
        sub = client.subscribe(kind.lower(), params, interval, updates.put_nowait)
        try:
            for tick in range(1, ticks + 1):
                result = await updates.get()
                click.echo(f"[{tick}/{ticks}] seq={sub.state.sequence}")
                _echo_result(result, as_json=False)
        finally:
            sub.unsubscribe()

    try:
        asyncio.run(_watch())
    except InputError as exc:
        raise click.ClickException(str(exc))


__all__ = ["cli"]
