"""Prompt builder for inference requests.

:func:`build_prompt` turns an :class:`InferenceRequest` into a
:class:`PromptSpec`.  The prompt has four parts in a fixed order: the
kind's instructions, a ``Parameters:`` section, an optional list of
considerations and the output-schema section generated from the
kind's result schema.  Rendering is deterministic so prompts can be
compared verbatim in tests.

Parameter values can never break the prompt's structure: strings are
JSON-quoted with braces written as ``\\u007b``/``\\u007d`` and code
fences neutralised, and non-finite numbers or unsupported types are
rejected with :class:`InputError`.  Parameter names must be plain
identifiers.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any, Dict, List, Mapping, Optional

from .catalog import KindSpec, get_spec
from .errors import InputError
from .models import InferenceRequest, PromptSpec

_PARAM_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*\Z")

JSON_ONLY_FOOTER = "The response should be ONLY the JSON, with no markdown and no explanation."


def _escape_string(value: str) -> str:
    text = json.dumps(value, ensure_ascii=False)
    text = text.replace("{", "\\u007b").replace("}", "\\u007d")
    return text.replace("```", "'''")


def render_value(value: Any, *, path: str = "") -> str:
    """Render a parameter value as prompt text.

    Raises:
        InputError: For non-finite numbers and unsupported types.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise InputError(f"Parameter {path or 'value'} must be a finite number, got {value!r}")
        return repr(value)
    if isinstance(value, str):
        return _escape_string(value)
    if isinstance(value, Mapping):
        items = []
        for key in sorted(value, key=str):
            items.append(
                f"{_escape_string(str(key))}: {render_value(value[key], path=f'{path}.{key}')}"
            )
        return "{" + ", ".join(items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(
            render_value(item, path=f"{path}[{idx}]") for idx, item in enumerate(value)
        ) + "]"
    raise InputError(
        f"Parameter {path or 'value'} has unsupported type {type(value).__name__}"
    )


def resolve_params(spec: KindSpec, params: Mapping[str, Any]) -> Dict[str, Any]:
    """Return parameters in prompt order with optional defaults filled in.

    Raises:
        InputError: If a required parameter is missing or a parameter
            name is not a plain identifier.
    """
    for name in params:
        if not isinstance(name, str) or not _PARAM_NAME.match(name):
            raise InputError(f"Parameter name {name!r} must be an identifier")
    missing = [p.name for p in spec.params if p.required and params.get(p.name) is None]
    if missing:
        raise InputError(
            f"Missing required parameter(s) for {spec.kind.value}: {', '.join(missing)}"
        )
    ordered: Dict[str, Any] = {}
    for p in spec.params:
        ordered[p.name] = params[p.name] if params.get(p.name) is not None else p.default
    declared = {p.name for p in spec.params}
    for name in sorted(k for k in params if k not in declared):
        ordered[name] = params[name]
    return ordered


# ---------------------------------------------------------------------------
# Output schema description
# ---------------------------------------------------------------------------


def _resolve(node: Dict[str, Any], defs: Dict[str, Any]) -> Dict[str, Any]:
    ref = node.get("$ref")
    if ref:
        return defs[ref.rsplit("/", 1)[-1]]
    return node


def _range(node: Dict[str, Any]) -> str:
    lo, hi = node.get("minimum"), node.get("maximum")
    if lo is not None and hi is not None:
        return f" ({lo:g} to {hi:g})"
    if lo is not None:
        return f" (>= {lo:g})"
    if hi is not None:
        return f" (<= {hi:g})"
    return ""


def _describe(node: Dict[str, Any], defs: Dict[str, Any], indent: int) -> str:
    node = _resolve(node, defs)
    if "enum" in node:
        return " or ".join(json.dumps(v) for v in node["enum"])
    kind = node.get("type")
    if kind == "object" and "properties" in node:
        pad = "  " * (indent + 1)
        lines = [
            f'{pad}"{name}": {_describe(sub, defs, indent + 1)}'
            for name, sub in node["properties"].items()
        ]
        return "{\n" + ",\n".join(lines) + "\n" + "  " * indent + "}"
    if kind == "object":
        values = node.get("additionalProperties") or {}
        return "{ string: " + _describe(values, defs, indent) + " }"
    if kind == "array":
        item = _describe(node.get("items") or {}, defs, indent)
        count = node.get("minItems")
        if count is not None and count == node.get("maxItems"):
            return f"[exactly {count} values, each {item}]"
        return f"[{item}]"
    if kind in ("number", "integer"):
        return "number" + _range(node)
    if kind == "boolean":
        return "boolean"
    if kind == "string":
        pattern = node.get("pattern")
        return 'string matching "HH:MM" or "N/A"' if pattern and "N/A" in pattern else "string"
    return "value"


def describe_schema(output_schema: Dict[str, Any], root: Optional[str] = None) -> str:
    """Render a JSON schema as the JSON-shaped template shown to the model."""
    defs = output_schema.get("$defs", {})
    if root is not None:
        array = output_schema["properties"][root]
        return _describe(array, defs, 0)
    return _describe(output_schema, defs, 0)


# ---------------------------------------------------------------------------
# Prompt assembly
# ---------------------------------------------------------------------------


def _parameter_lines(spec: KindSpec, params: Dict[str, Any]) -> List[str]:
    labels = {p.name: p for p in spec.params}
    lines = []
    for name, value in params.items():
        p = labels.get(name)
        label = p.label if p else name
        unit = f" {p.unit}" if p and p.unit else ""
        lines.append(f"- {label} ({name}): {render_value(value, path=name)}{unit}")
    return lines


def _chat_prompt(spec: KindSpec, params: Dict[str, Any]) -> str:
    history = params.get("history") or []
    if not isinstance(history, (list, tuple)):
        raise InputError("Parameter history must be a list of messages")
    turns = []
    for idx, turn in enumerate(history):
        if not isinstance(turn, Mapping) or "text" not in turn:
            raise InputError(f"Parameter history[{idx}] must be a mapping with a text entry")
        speaker = "Assistant" if turn.get("isBot") or turn.get("role") == "assistant" else "User"
        turns.append(f"{speaker}: {render_value(str(turn['text']), path=f'history[{idx}]')}")
    message = params["message"]
    if not isinstance(message, str) or not message.strip():
        raise InputError("Parameter message must be a non-empty string")
    parts = [
        spec.instructions,
        "Current chat history:\n" + ("\n".join(turns) if turns else "(none)"),
        f"User's latest message: {render_value(message, path='message')}",
        "Respond in a helpful and informative way while staying within your role as a smart grid assistant.",
    ]
    return "\n\n".join(parts)


def build_prompt(request: InferenceRequest) -> PromptSpec:
    """Render ``request`` into a :class:`PromptSpec`.

    Pure function: the same request always yields the same prompt.

    Raises:
        InputError: If a required parameter is missing or a value
            cannot be rendered safely.
    """
    spec = get_spec(request.kind)
    params = resolve_params(spec, request.params)
    model = spec.result_model
    output_schema = model.model_json_schema(by_alias=True)

    if not spec.structured:
        return PromptSpec(
            kind=spec.kind,
            text=_chat_prompt(spec, params),
            output_schema=output_schema,
            structured=False,
        )

    sections = [spec.instructions]
    lines = _parameter_lines(spec, params)
    if lines:
        sections.append("Parameters:\n" + "\n".join(lines))
    if spec.considerations:
        sections.append(
            "Consider:\n"
            + "\n".join(f"{idx}. {item}" for idx, item in enumerate(spec.considerations, 1))
        )
    root = model.payload_root
    shape = "a JSON array" if root else "a JSON object"
    sections.append(
        f"Return ONLY {shape} with this exact structure:\n" + describe_schema(output_schema, root)
    )
    sections.append(JSON_ONLY_FOOTER)
    return PromptSpec(
        kind=spec.kind,
        text="\n\n".join(sections),
        output_schema=output_schema,
        structured=True,
    )


__all__ = ["build_prompt", "render_value", "resolve_params", "describe_schema"]
