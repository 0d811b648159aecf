"""Tests for the BioGrid CLI inference commands.

The client builder is monkeypatched so every command runs against a
scripted fake gateway and never touches the network.
"""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from biogrid.cli import cli
from biogrid.client import build_client
from biogrid.config import GatewayConfig
from biogrid.llm.errors import NetworkError
from biogrid.llm.gateway import FakeGateway

PRICE_ARGS = ["-p", "demand=1000", "-p", "supply=1200", "-p", "historicalPrice=10"]


def _use_gateway(monkeypatch: pytest.MonkeyPatch, gateway: FakeGateway) -> None:
    monkeypatch.setattr(
        "biogrid.cli._build_client", lambda: build_client(GatewayConfig(), gateway=gateway)
    )


def test_help_lists_commands() -> None:
    result = CliRunner().invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "BioGrid structured inference client" in result.output
    for command in ("config-check", "kinds", "prompt", "infer", "extract", "watch"):
        assert command in result.output


def test_kinds_lists_catalog() -> None:
    result = CliRunner().invoke(cli, ["kinds"])
    assert result.exit_code == 0, result.output
    assert "price_forecast: required=demand, supply, historicalPrice" in result.output
    assert "chat_turn" in result.output


def test_prompt_renders_parameters() -> None:
    result = CliRunner().invoke(cli, ["prompt", "price_forecast", *PRICE_ARGS, "-p", "weather=Sunny"])
    assert result.exit_code == 0, result.output
    assert "- Current demand (demand): 1000 kW" in result.output
    assert '- Weather conditions (weather): "Sunny"' in result.output


def test_prompt_accepts_json_parameters() -> None:
    grid = json.dumps({"gridData": [{"region": "North", "load": 80}]})
    result = CliRunner().invoke(cli, ["prompt", "load_balancing", "--params-json", grid])
    assert result.exit_code == 0, result.output
    assert '"region": "North"' in result.output


def test_prompt_missing_parameter_is_reported() -> None:
    result = CliRunner().invoke(cli, ["prompt", "price_forecast", "-p", "demand=1000"])
    assert result.exit_code != 0
    assert "Missing required parameter" in result.output


def test_prompt_rejects_malformed_pair() -> None:
    result = CliRunner().invoke(cli, ["prompt", "price_forecast", "-p", "demand"])
    assert result.exit_code != 0


def test_infer_prints_source_and_payload(monkeypatch: pytest.MonkeyPatch) -> None:
    _use_gateway(
        monkeypatch,
        FakeGateway({"price_forecast": '```json\n{"predictedPrice": 11.4, "confidence": 80}\n```'}),
    )
    result = CliRunner().invoke(cli, ["infer", "price_forecast", *PRICE_ARGS])
    assert result.exit_code == 0, result.output
    assert "price_forecast: source=model" in result.output
    assert '"predictedPrice": 11.4' in result.output


def test_infer_json_output_on_fallback(monkeypatch: pytest.MonkeyPatch) -> None:
    _use_gateway(monkeypatch, FakeGateway({"price_forecast": NetworkError("down")}))
    result = CliRunner().invoke(cli, ["infer", "price_forecast", *PRICE_ARGS, "--json"])
    assert result.exit_code == 0, result.output
    # Diagnostics may precede the JSON document on the combined output
    body = json.loads(result.output[result.output.index("{"):])
    assert body["source"] == "fallback"
    assert body["failure"] == "network"
    assert body["data"]["predicted_price"] == 10.0


def test_extract_reads_stdin() -> None:
    text = 'Here it is:\n```json\n{"riskLevel": "HIGH"}\n```'
    result = CliRunner().invoke(cli, ["extract", "--kind", "risk_assessment"], input=text)
    assert result.exit_code == 0, result.output
    assert "stage: stripped" in result.output
    assert '"riskLevel": "high"' in result.output
    assert "degraded: riskScore" in result.output


def test_extract_failure_exits_non_zero() -> None:
    result = CliRunner().invoke(cli, ["extract"], input="no json here")
    assert result.exit_code == 1
    assert "extraction failed" in result.output


def test_watch_prints_each_tick(monkeypatch: pytest.MonkeyPatch) -> None:
    _use_gateway(
        monkeypatch,
        FakeGateway({"market_conditions": [json.dumps({"demand": 900}), NetworkError("down")]}),
    )
    result = CliRunner().invoke(
        cli, ["watch", "market_conditions", "--interval", "0.01", "--ticks", "2"]
    )
    assert result.exit_code == 0, result.output
    assert "[1/2]" in result.output
    assert "[2/2]" in result.output
    assert "market_conditions: source=degraded" in result.output
    assert "stale" in result.output
