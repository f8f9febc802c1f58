"""
Canonical JSON

Deterministic serialization of request bodies for hashing.

Rules:
    - Object keys sorted ascending at every level: array-index keys ("0",
      "9", "10") first in numeric order, then the rest in UTF-16 code unit
      order. This is the order a JavaScript object gives sorted keys back in.
    - Arrays keep their order
    - Strings, numbers, booleans and null pass through
    - No whitespace; output matches JavaScript's JSON.stringify, which the
      verifying identity server uses to recompute the body hash
    - None, an empty object and an empty array all canonicalize to "{}"

The Python value is converted once into a tagged JsonValue; sorting and
serialization then dispatch on the tag only.
"""

import json
import math
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

from sso_proxy.core.signing.errors import CanonicalizationError


EMPTY_BODY = "{}"


class JsonKind(Enum):
    """Tag of a JsonValue."""
    OBJECT = "object"
    ARRAY = "array"
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    NULL = "null"


@dataclass(frozen=True)
class JsonValue:
    """
    A JSON value tagged with its kind.

    Payload by kind:
        OBJECT:  tuple of (key, JsonValue) pairs
        ARRAY:   tuple of JsonValue
        STRING:  str
        NUMBER:  int or float (finite)
        BOOLEAN: bool
        NULL:    None
    """
    kind: JsonKind
    payload: Any = None

    @classmethod
    def from_python(cls, value: Any) -> "JsonValue":
        """
        Build a JsonValue from a JSON-like Python value.

        Raises:
            CanonicalizationError: For unsupported types, non-string keys,
                non-finite floats or circular references
        """
        return _from_python(value, set())


def _from_python(value: Any, active: Set[int]) -> JsonValue:
    if value is None:
        return JsonValue(JsonKind.NULL)
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return JsonValue(JsonKind.BOOLEAN, value)
    if isinstance(value, str):
        return JsonValue(JsonKind.STRING, value)
    if isinstance(value, int):
        return JsonValue(JsonKind.NUMBER, value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise CanonicalizationError(f"Non-finite number cannot be serialized: {value!r}")
        return JsonValue(JsonKind.NUMBER, value)
    if isinstance(value, (dict, list, tuple)):
        marker = id(value)
        if marker in active:
            raise CanonicalizationError("Circular reference detected in request body")
        active.add(marker)
        try:
            if isinstance(value, dict):
                members: List[Tuple[str, JsonValue]] = []
                for key, member in value.items():
                    if not isinstance(key, str):
                        raise CanonicalizationError(
                            f"Object keys must be strings, got {type(key).__name__}"
                        )
                    members.append((key, _from_python(member, active)))
                return JsonValue(JsonKind.OBJECT, tuple(members))
            return JsonValue(JsonKind.ARRAY, tuple(_from_python(item, active) for item in value))
        finally:
            active.discard(marker)
    raise CanonicalizationError(f"Value of type {type(value).__name__} is not JSON-serializable")


_ARRAY_INDEX_LIMIT = 2 ** 32 - 1


def _is_array_index(key: str) -> bool:
    if not key.isdigit() or not key.isascii():
        return False
    if len(key) > 1 and key[0] == "0":
        return False
    return int(key) < _ARRAY_INDEX_LIMIT


def _key_order(key: str) -> Tuple[int, int, bytes]:
    """
    Sort key reproducing a JavaScript object's own-key order after a
    default Array.prototype.sort insertion: array indices ascending by value,
    then other strings by UTF-16 code units.
    """
    if _is_array_index(key):
        return (0, int(key), b"")
    return (1, 0, key.encode("utf-16-be", "surrogatepass"))


def sort_keys(value: JsonValue) -> JsonValue:
    """Return a copy of value with object keys sorted recursively."""
    if value.kind is JsonKind.OBJECT:
        members = sorted(value.payload, key=lambda member: _key_order(member[0]))
        return JsonValue(JsonKind.OBJECT, tuple((k, sort_keys(v)) for k, v in members))
    if value.kind is JsonKind.ARRAY:
        return JsonValue(JsonKind.ARRAY, tuple(sort_keys(item) for item in value.payload))
    if value.kind in (JsonKind.STRING, JsonKind.NUMBER, JsonKind.BOOLEAN, JsonKind.NULL):
        return value
    raise CanonicalizationError(f"Unknown JSON kind: {value.kind!r}")


def format_number(number: Any) -> str:
    """
    Format a number the way JavaScript's Number#toString does.

    Examples:
        >>> format_number(1.0)
        '1'
        >>> format_number(1e21)
        '1e+21'
        >>> format_number(1e-7)
        '1e-7'
        >>> format_number(0.000001)
        '0.000001'
    """
    if isinstance(number, int):
        return str(number)
    if number == 0:
        return "0"

    sign = "-" if number < 0 else ""
    # repr gives the shortest round-tripping digits, same as V8
    _, digit_tuple, exponent = Decimal(repr(abs(number))).as_tuple()
    digits = "".join(str(d) for d in digit_tuple).rstrip("0") or "0"
    exponent += len(digit_tuple) - len(digits)
    k = len(digits)
    n = exponent + k

    if k <= n <= 21:
        text = digits + "0" * (n - k)
    elif 0 < n <= 21:
        text = digits[:n] + "." + digits[n:]
    elif -6 < n <= 0:
        text = "0." + "0" * (-n) + digits
    else:
        e = n - 1
        mantissa = digits if k == 1 else digits[0] + "." + digits[1:]
        text = f"{mantissa}e{'+' if e >= 0 else '-'}{abs(e)}"
    return sign + text


def serialize(value: JsonValue) -> str:
    """Serialize a JsonValue compactly, in payload order."""
    if value.kind is JsonKind.OBJECT:
        members = ",".join(
            f"{json.dumps(k, ensure_ascii=False)}:{serialize(v)}" for k, v in value.payload
        )
        return "{" + members + "}"
    if value.kind is JsonKind.ARRAY:
        return "[" + ",".join(serialize(item) for item in value.payload) + "]"
    if value.kind is JsonKind.STRING:
        return json.dumps(value.payload, ensure_ascii=False)
    if value.kind is JsonKind.NUMBER:
        return format_number(value.payload)
    if value.kind is JsonKind.BOOLEAN:
        return "true" if value.payload else "false"
    if value.kind is JsonKind.NULL:
        return "null"
    raise CanonicalizationError(f"Unknown JSON kind: {value.kind!r}")


def canonicalize(body: Optional[Any]) -> str:
    """
    Canonicalize a request body.

    Args:
        body: JSON-like value or None

    Returns:
        Canonical JSON string; "{}" for None, an empty object or an empty array

    Raises:
        CanonicalizationError: If body is not JSON-serializable

    Example:
        >>> canonicalize({"b": 1, "a": {"d": [3, 1], "c": None}})
        '{"a":{"c":null,"d":[3,1]},"b":1}'
    """
    if body is None:
        return EMPTY_BODY
    value = JsonValue.from_python(body)
    # Empty containers hash like an absent body, as the verifier does
    if value.kind in (JsonKind.OBJECT, JsonKind.ARRAY) and not value.payload:
        return EMPTY_BODY
    return serialize(sort_keys(value))


def canonical_bytes(body: Optional[Any]) -> bytes:
    """UTF-8 encoded canonical form of body."""
    try:
        return canonicalize(body).encode("utf-8")
    except UnicodeEncodeError as e:
        raise CanonicalizationError(f"Request body contains unencodable text: {e.reason}") from e
