"""Binary serializer: `Value` -> wire bytes.

The output is deterministic and exact:
- integers wrap silently to the declared width (two's complement)
- float32 is the standard narrowing of the double
- UTF-16 strings start with a byte-order mark in the declared order
- arrays are plain concatenation, no length prefix
- opaque JSON is compact JSON text with field order kept

Only sink write errors (`OSError`) escape from `serialize()`.
"""

from __future__ import annotations

import io
import json
import math
import struct
from typing import Protocol

from .values import (
    ArrayValue,
    BoolValue,
    FloatValue,
    FloatWidth,
    IntValue,
    JsonValue,
    StringEncoding,
    StringValue,
    UIntValue,
    Value,
)

_BOM = 0xFEFF


class ByteSink(Protocol):
    def write(self, data: bytes, /) -> object: ...


def serialize(value: Value, sink: ByteSink) -> None:
    """Write the encoding of `value` to `sink`."""
    if isinstance(value, BoolValue):
        sink.write(b"\x01" if value.value else b"\x00")
    elif isinstance(value, (UIntValue, IntValue)):
        sink.write(_pack_int(value))
    elif isinstance(value, FloatValue):
        sink.write(_pack_float(value))
    elif isinstance(value, StringValue):
        sink.write(_encode_string(value))
    elif isinstance(value, ArrayValue):
        for item in value.items:
            serialize(item, sink)
    elif isinstance(value, JsonValue):
        text = json.dumps(value.document, ensure_ascii=False, separators=(",", ":"))
        sink.write(text.encode("utf-8"))
    else:
        raise TypeError(f"not a Value: {value!r}")


def to_bytes(value: Value) -> bytes:
    """Serialize into a fresh buffer and return the bytes."""
    buf = io.BytesIO()
    serialize(value, buf)
    return buf.getvalue()


def _pack_int(value: UIntValue | IntValue) -> bytes:
    bits = value.width.value
    # Masking gives the two's complement bit pattern for negative values and
    # drops the high bits of values that do not fit.
    wrapped = value.value & ((1 << bits) - 1)
    return wrapped.to_bytes(bits // 8, value.endian.byteorder, signed=False)


def _pack_float(value: FloatValue) -> bytes:
    prefix = value.endian.struct_prefix
    if value.width is FloatWidth.SIXTYFOUR:
        return struct.pack(prefix + "d", value.value)
    try:
        return struct.pack(prefix + "f", value.value)
    except OverflowError:
        # struct refuses finite doubles beyond the float32 range; a C-style
        # narrowing conversion yields infinity of the same sign.
        return struct.pack(prefix + "f", math.copysign(math.inf, value.value))


def _encode_string(value: StringValue) -> bytes:
    if value.encoding is StringEncoding.UTF8:
        return value.value.encode("utf-8")
    byteorder = "big" if value.encoding is StringEncoding.UTF16BE else "little"
    codec = "utf-16-be" if byteorder == "big" else "utf-16-le"
    return _BOM.to_bytes(2, byteorder) + value.value.encode(codec)
