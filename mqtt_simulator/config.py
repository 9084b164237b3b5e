from __future__ import annotations

# Dataset parser.
#
# The config file is a JSON array of `{"topic": ..., "data": ...}` objects.
# `data` has no explicit type tag, so the variant is chosen structurally: the
# resolvers in `_RESOLVERS` are tried in order and the first match wins.
#
# The order matters. `{"value": 5}` is also a valid Int and a valid Float, but
# it must become a UInt because UInt is tried first.
#
# Once a variant is chosen its parameters are validated strictly: a bad `width`
# is an error, it never falls through to the next variant.

import json
import math
from typing import Any, Callable

from .errors import ParseError
from .values import (
    I64_MAX,
    I64_MIN,
    U64_MAX,
    ArrayValue,
    BoolValue,
    Endian,
    Entry,
    FloatValue,
    FloatWidth,
    IntValue,
    IntWidth,
    JsonValue,
    StringEncoding,
    StringValue,
    UIntValue,
    Value,
)

_WIDTH_NAMES = {"Eight": 8, "Sixteen": 16, "Thirtytwo": 32, "Sixtyfour": 64}


def parse(text: str) -> tuple[Entry, ...]:
    """Parse dataset text into entries, in file order.

    Raises:
        ParseError: invalid JSON, wrong document shape or an invalid parameter.
    """
    try:
        doc = json.loads(text, parse_constant=_reject_constant)
    except json.JSONDecodeError as e:
        raise ParseError(f"invalid JSON: {e}") from e
    except RecursionError as e:
        raise ParseError("JSON document is nested too deeply") from e

    if not isinstance(doc, list):
        raise ParseError("dataset must be a JSON array of {topic, data} objects")

    entries: list[Entry] = []
    for i, item in enumerate(doc):
        if not isinstance(item, dict):
            raise ParseError(f"entry {i}: expected an object, got {_kind(item)}")
        topic = item.get("topic")
        if not isinstance(topic, str):
            raise ParseError(f"entry {i}: 'topic' must be a string")
        if "data" not in item:
            raise ParseError(f"entry {i}: missing 'data'")
        try:
            value = parse_value(item["data"])
        except ParseError as e:
            raise ParseError(f"entry {i} ({topic}): {e}") from e
        except RecursionError as e:
            raise ParseError(f"entry {i} ({topic}): value is nested too deeply") from e
        entries.append(Entry(topic=topic, value=value))
    return tuple(entries)


def parse_value(node: Any) -> Value:
    """Resolve one decoded JSON node to a `Value`."""
    for matches, build in _RESOLVERS:
        if matches(node):
            return build(node)
    # JsonValue accepts everything, so this is unreachable.
    raise ParseError(f"no value variant matches {node!r}")


# -------------------- structural predicates --------------------


def _is_int(x: Any) -> bool:
    # bool is a subclass of int in Python; JSON keeps them apart.
    return isinstance(x, int) and not isinstance(x, bool)


def _field(node: Any) -> Any:
    if isinstance(node, dict) and "value" in node:
        return node["value"]
    return _MISSING


_MISSING = object()


def _match_bool(node: Any) -> bool:
    return isinstance(node, bool)


def _match_uint(node: Any) -> bool:
    v = _field(node)
    return _is_int(v) and 0 <= v <= U64_MAX


def _match_int(node: Any) -> bool:
    v = _field(node)
    return _is_int(v) and I64_MIN <= v <= I64_MAX


def _match_float(node: Any) -> bool:
    v = _field(node)
    return _is_int(v) or isinstance(v, float)


def _match_string(node: Any) -> bool:
    return isinstance(_field(node), str)


def _match_array(node: Any) -> bool:
    return isinstance(node, list)


def _match_any(node: Any) -> bool:
    return True


# -------------------- builders --------------------


def _build_bool(node: bool) -> Value:
    return BoolValue(node)


def _build_uint(node: dict[str, Any]) -> Value:
    return UIntValue(node["value"], endian=_endian(node), width=_int_width(node))


def _build_int(node: dict[str, Any]) -> Value:
    return IntValue(node["value"], endian=_endian(node), width=_int_width(node))


def _build_float(node: dict[str, Any]) -> Value:
    try:
        value = float(node["value"])
    except OverflowError:
        value = math.inf
    if not math.isfinite(value):
        raise ParseError(f"number out of range for a float: {node['value']!r}")
    return FloatValue(value, endian=_endian(node), width=_float_width(node))


def _build_string(node: dict[str, Any]) -> Value:
    value = node["value"]
    _check_encodable(value)
    return StringValue(value, encoding=_encoding(node))


def _build_array(node: list[Any]) -> Value:
    return ArrayValue(tuple(parse_value(item) for item in node))


def _build_json(node: Any) -> Value:
    try:
        text = json.dumps(node, ensure_ascii=False, allow_nan=False)
    except ValueError as e:
        raise ParseError(f"number out of range in JSON document: {e}") from e
    _check_encodable(text)
    return JsonValue(node)


_RESOLVERS: list[tuple[Callable[[Any], bool], Callable[[Any], Value]]] = [
    (_match_bool, _build_bool),
    (_match_uint, _build_uint),
    (_match_int, _build_int),
    (_match_float, _build_float),
    (_match_string, _build_string),
    (_match_array, _build_array),
    (_match_any, _build_json),
]


# -------------------- parameters --------------------


def _endian(node: dict[str, Any]) -> Endian:
    raw = node.get("endian", Endian.BIG.value)
    try:
        return Endian(raw)
    except ValueError:
        raise ParseError(f"invalid endian {raw!r}, expected LittleEndian or BigEndian") from None


def _encoding(node: dict[str, Any]) -> StringEncoding:
    raw = node.get("encoding", StringEncoding.UTF8.value)
    try:
        return StringEncoding(raw)
    except ValueError:
        raise ParseError(f"invalid encoding {raw!r}, expected UTF8, UTF16BE or UTF16LE") from None


def _width_bits(raw: Any) -> int | None:
    """Accept 8, "8" or "Eight"; return None for anything else."""
    if _is_int(raw):
        return raw
    if isinstance(raw, str):
        if raw in _WIDTH_NAMES:
            return _WIDTH_NAMES[raw]
        if raw.isdigit():
            return int(raw)
    return None


def _int_width(node: dict[str, Any]) -> IntWidth:
    if "width" not in node:
        return IntWidth.SIXTYFOUR
    raw = node["width"]
    try:
        return IntWidth(_width_bits(raw))
    except ValueError:
        raise ParseError(f"invalid integer width {raw!r}, expected 8, 16, 32 or 64") from None


def _float_width(node: dict[str, Any]) -> FloatWidth:
    if "width" not in node:
        return FloatWidth.SIXTYFOUR
    raw = node["width"]
    try:
        return FloatWidth(_width_bits(raw))
    except ValueError:
        raise ParseError(f"invalid float width {raw!r}, expected 32 or 64") from None


# -------------------- helpers --------------------


def _reject_constant(name: str) -> Any:
    raise ParseError(f"{name} is not valid JSON")


def _check_encodable(text: str) -> None:
    # json.loads lets lone surrogates such as "\ud800" through; they have no
    # UTF-8 or UTF-16 encoding.
    try:
        text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise ParseError(f"text is not valid unicode: {e}") from e


def _kind(x: Any) -> str:
    if isinstance(x, list):
        return "array"
    if x is None:
        return "null"
    return type(x).__name__
