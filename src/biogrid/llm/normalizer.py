"""Coerce extracted payloads into total, schema-conformant results.

For each field of a result schema the normalizer takes the payload's
value when it is present and valid, and otherwise substitutes the
field's default, recording a :class:`FieldValidationIssue`.  Nested
objects and lists of objects are normalized recursively so that one
bad entry in an order book does not discard the whole book.  A payload
of the wrong top-level shape (or no payload at all) produces the
schema's fallback: every field at its default.

Field validation reuses the schema itself: a candidate value is
validated inside an otherwise default instance of the model, so every
type, enum, range and length constraint declared on the schema applies
exactly as written.
"""

from __future__ import annotations

import logging
import typing
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Type

from pydantic import ValidationError

from .extractor import ExtractedPayload, ExtractionFailure, ExtractionResult
from .models import FieldValidationIssue
from .schemas import ResultModel

logger = logging.getLogger(__name__)


@dataclass
class NormalizationOutcome:
    """Result of normalizing one payload against one schema.

    Attributes:
        data: Complete, valid schema instance.
        issues: Field-level problems, in the order they were found.
        fully_degraded: True when no usable payload was available and
            every field took its default.
    """

    data: ResultModel
    issues: List[FieldValidationIssue] = field(default_factory=list)
    fully_degraded: bool = False

    @property
    def degraded_fields(self) -> List[str]:
        seen: Dict[str, None] = {}
        for issue in self.issues:
            seen.setdefault(issue.field, None)
        return list(seen)

    @property
    def degraded(self) -> bool:
        return self.fully_degraded or bool(self.issues)


def _nested_model(annotation: Any) -> tuple[Optional[Type[ResultModel]], bool]:
    """Return ``(model, is_list)`` when a field holds result models."""
    if isinstance(annotation, type) and issubclass(annotation, ResultModel):
        return annotation, False
    origin = typing.get_origin(annotation)
    if origin in (list, List):
        args = typing.get_args(annotation)
        if args and isinstance(args[0], type) and issubclass(args[0], ResultModel):
            return args[0], True
    return None, False


def _wire_name(model_cls: Type[ResultModel], name: str) -> str:
    return model_cls.model_fields[name].alias or name


def _baseline(model_cls: Type[ResultModel], params: Mapping[str, Any]) -> Dict[str, Any]:
    """Return default field values, applying valid parameter-derived defaults."""
    base = model_cls().model_dump()
    for name, value in model_cls.param_defaults(params).items():
        if name not in model_cls.model_fields:
            continue
        ok, validated = _validate_field(model_cls, base, name, value)
        if ok:
            base[name] = validated
        else:
            logger.debug(
                "Ignoring parameter default for %s.%s: %r", model_cls.__name__, name, value
            )
    return base


def _validate_field(
    model_cls: Type[ResultModel], base: Dict[str, Any], name: str, value: Any
) -> tuple[bool, Any]:
    try:
        instance = model_cls.model_validate({**base, name: value})
    except ValidationError:
        return False, None
    return True, getattr(instance, name)


def _lookup(payload: Mapping[str, Any], model_cls: Type[ResultModel], name: str) -> tuple[bool, Any]:
    for key in (_wire_name(model_cls, name), name):
        if key in payload:
            return True, payload[key]
    return False, None


def _normalize_object(
    model_cls: Type[ResultModel],
    payload: Mapping[str, Any],
    params: Mapping[str, Any],
    prefix: str,
    issues: List[FieldValidationIssue],
) -> Dict[str, Any]:
    base = _baseline(model_cls, params)
    values = dict(base)
    for name, info in model_cls.model_fields.items():
        path = prefix + _wire_name(model_cls, name)
        present, raw = _lookup(payload, model_cls, name)
        if not present or raw is None:
            issues.append(FieldValidationIssue(field=path, problem="missing"))
            continue
        nested, is_list = _nested_model(info.annotation)
        if nested is not None and is_list and isinstance(raw, list):
            items = []
            for idx, item in enumerate(raw):
                if not isinstance(item, Mapping):
                    issues.append(
                        FieldValidationIssue(
                            field=f"{path}.{idx}",
                            problem="dropped",
                            detail=f"expected object, got {type(item).__name__}",
                        )
                    )
                    continue
                items.append(_normalize_object(nested, item, {}, f"{path}.{idx}.", issues))
            raw = items
        elif nested is not None and not is_list and isinstance(raw, Mapping):
            raw = _normalize_object(nested, raw, {}, f"{path}.", issues)
        ok, validated = _validate_field(model_cls, base, name, raw)
        if ok:
            values[name] = validated
        else:
            issues.append(
                FieldValidationIssue(
                    field=path, problem="invalid", detail=_describe(raw)
                )
            )
    return values


def _describe(value: Any) -> str:
    text = repr(value)
    return text if len(text) <= 80 else text[:77] + "..."


def _unwrap_root(model_cls: Type[ResultModel], value: Any) -> Any:
    """Adapt array-shaped payloads for schemas that declare a root field."""
    root = model_cls.payload_root
    if root is None:
        return value
    wire = _wire_name(model_cls, root)
    if isinstance(value, list):
        return {wire: value}
    if isinstance(value, Mapping) and wire not in value and root not in value:
        lists = [v for v in value.values() if isinstance(v, list)]
        if len(lists) == 1:
            return {wire: lists[0]}
    return value


def fallback_data(model_cls: Type[ResultModel], params: Mapping[str, Any]) -> ResultModel:
    """Return the schema instance with every field at its default."""
    return model_cls.model_validate(_baseline(model_cls, params))


def fallback_outcome(
    model_cls: Type[ResultModel], params: Mapping[str, Any], reason: str
) -> NormalizationOutcome:
    issues = [
        FieldValidationIssue(field=_wire_name(model_cls, name), problem="missing", detail=reason)
        for name in model_cls.model_fields
    ]
    return NormalizationOutcome(
        data=fallback_data(model_cls, params), issues=issues, fully_degraded=True
    )


def normalize(
    model_cls: Type[ResultModel],
    extraction: ExtractionResult,
    params: Optional[Mapping[str, Any]] = None,
) -> NormalizationOutcome:
    """Normalize an extraction result against ``model_cls``.

    Never raises for problems in the payload.  Field-level problems
    degrade individual fields to their defaults; a missing or
    wrong-shaped payload degrades the whole result.

    Args:
        model_cls: Result schema of the request kind.
        extraction: Output of :func:`biogrid.llm.extractor.extract_payload`.
        params: Request parameters used for parameter-derived defaults.

    Returns:
        A :class:`NormalizationOutcome` whose ``data`` is always valid.
    """
    params = params or {}
    if isinstance(extraction, ExtractionFailure):
        return fallback_outcome(model_cls, params, extraction.reason)
    if not isinstance(extraction, ExtractedPayload):
        raise TypeError(f"Unsupported extraction result: {type(extraction).__name__}")

    value = _unwrap_root(model_cls, extraction.value)
    if not isinstance(value, Mapping):
        return fallback_outcome(
            model_cls, params, f"expected object, got {type(value).__name__}"
        )

    issues: List[FieldValidationIssue] = []
    values = _normalize_object(model_cls, value, params, "", issues)
    try:
        data = model_cls.model_validate(values)
    except ValidationError as exc:
        logger.warning(
            "Normalized %s failed whole-model validation, using fallback: %s",
            model_cls.__name__,
            exc,
        )
        return fallback_outcome(model_cls, params, "whole-model validation failed")
    return NormalizationOutcome(data=data, issues=issues)


__all__ = [
    "NormalizationOutcome",
    "normalize",
    "fallback_data",
    "fallback_outcome",
]
