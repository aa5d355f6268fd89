"""Typed-value codec for the document store wire format.

The store wraps every value in a single-key object naming its kind, e.g.
``{"stringValue": "abc"}`` or ``{"mapValue": {"fields": {...}}}``. Integers
travel as decimal strings (``{"integerValue": "42"}``); that quirk is kept
on encode so writes stay byte-compatible with other clients.

Decoding is deliberately lossy for timestamp, reference, geo-point and bytes
values: they collapse to their literal payload and are never re-encoded as
those kinds.
"""

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from macro_ledger.errors import DecodeError

_INTEGER_TEXT = re.compile(r"-?[0-9]+")

# JSON has no literal for non-finite doubles; the store spells them as strings.
_NON_FINITE_TEXT = {"NaN": math.nan, "Infinity": math.inf, "-Infinity": -math.inf}


class ValueKind(Enum):
    """Kinds of typed values, keyed by their wire name."""

    NULL = "nullValue"
    BOOLEAN = "booleanValue"
    INTEGER = "integerValue"
    DOUBLE = "doubleValue"
    STRING = "stringValue"
    TIMESTAMP = "timestampValue"
    REFERENCE = "referenceValue"
    GEO_POINT = "geoPointValue"
    BYTES = "bytesValue"
    ARRAY = "arrayValue"
    MAP = "mapValue"
    UNKNOWN = "unknown"


_KIND_BY_WIRE = {
    kind.value: kind for kind in ValueKind if kind is not ValueKind.UNKNOWN
}


@dataclass(frozen=True)
class TypedValue:
    """A single wire value.

    ``payload`` holds the scalar payload for scalar kinds, a list of
    ``TypedValue`` for arrays, a dict of ``TypedValue`` for maps, and the
    untouched wire object for ``UNKNOWN``.
    """

    kind: ValueKind
    payload: object = None

    @classmethod
    def from_wire(cls, raw: object) -> "TypedValue":
        """Build a typed value from its JSON wire form."""
        if not isinstance(raw, Mapping):
            raise DecodeError(
                f"Typed value must be an object, got {type(raw).__name__}"
            )
        for key, payload in raw.items():
            kind = _KIND_BY_WIRE.get(key)
            if kind is None:
                continue
            if kind is ValueKind.ARRAY:
                values = payload.get("values") if isinstance(payload, Mapping) else None
                return cls(kind, [cls.from_wire(item) for item in values or []])
            if kind is ValueKind.MAP:
                fields = payload.get("fields") if isinstance(payload, Mapping) else None
                return cls(
                    kind, {str(k): cls.from_wire(v) for k, v in (fields or {}).items()}
                )
            return cls(kind, payload)
        return cls(ValueKind.UNKNOWN, dict(raw))

    def to_wire(self) -> dict[str, object]:
        """Return the JSON wire form of this value."""
        if self.kind is ValueKind.UNKNOWN:
            return dict(self.payload) if isinstance(self.payload, Mapping) else {}
        if self.kind is ValueKind.ARRAY:
            values = [item.to_wire() for item in self.payload]
            return {self.kind.value: {"values": values}}
        if self.kind is ValueKind.MAP:
            fields = {key: value.to_wire() for key, value in self.payload.items()}
            return {self.kind.value: {"fields": fields}}
        return {self.kind.value: self.payload}


def encode_value(value: object) -> TypedValue:
    """Encode a native value as a typed value."""
    if value is None:
        return TypedValue(ValueKind.NULL, None)
    # bool is a subclass of int, so it must be matched first.
    if isinstance(value, bool):
        return TypedValue(ValueKind.BOOLEAN, value)
    if isinstance(value, int):
        return TypedValue(ValueKind.INTEGER, str(value))
    if isinstance(value, float):
        return TypedValue(ValueKind.DOUBLE, _double_payload(value))
    if isinstance(value, str):
        return TypedValue(ValueKind.STRING, value)
    if isinstance(value, list | tuple):
        return TypedValue(ValueKind.ARRAY, [encode_value(item) for item in value])
    if isinstance(value, Mapping):
        return TypedValue(
            ValueKind.MAP, {str(key): encode_value(item) for key, item in value.items()}
        )
    raise DecodeError(f"Cannot encode value of type {type(value).__name__}")


def decode_value(value: TypedValue) -> object:
    """Decode a typed value into a native value."""
    if value.kind is ValueKind.NULL:
        return None
    if value.kind is ValueKind.INTEGER:
        return _parse_integer(value.payload)
    if value.kind is ValueKind.DOUBLE:
        return _parse_double(value.payload)
    if value.kind is ValueKind.ARRAY:
        return [decode_value(item) for item in value.payload]
    if value.kind is ValueKind.MAP:
        return {key: decode_value(item) for key, item in value.payload.items()}
    return value.payload


def encode_fields(values: Mapping[str, object]) -> dict[str, dict[str, object]]:
    """Encode a flat mapping into a wire ``fields`` object."""
    return {str(key): encode_value(item).to_wire() for key, item in values.items()}


def decode_fields(fields: Mapping[str, object] | None) -> dict[str, object]:
    """Decode a wire ``fields`` object into native values."""
    if not fields:
        return {}
    return {key: decode_value(TypedValue.from_wire(raw)) for key, raw in fields.items()}


def _parse_integer(payload: object) -> object:
    if isinstance(payload, bool):
        return payload
    if isinstance(payload, int):
        return payload
    if isinstance(payload, str) and _INTEGER_TEXT.fullmatch(payload):
        return int(payload)
    return payload


def _double_payload(value: float) -> object:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    return value


def _parse_double(payload: object) -> object:
    if isinstance(payload, str) and payload in _NON_FINITE_TEXT:
        return _NON_FINITE_TEXT[payload]
    return payload
