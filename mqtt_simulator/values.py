"""Typed value model.

A dataset entry carries one `Value`. The variants form a closed set; each one
holds its payload plus the encoding parameters the serializer needs.

Notes:
- All value classes are frozen dataclasses. A dataset is never edited in place,
  the watcher swaps in a whole new one instead.
- Defaults mirror the config file defaults: big endian, 64 bits, UTF-8.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

U64_MAX = 2**64 - 1
I64_MIN = -(2**63)
I64_MAX = 2**63 - 1


class Endian(Enum):
    LITTLE = "LittleEndian"
    BIG = "BigEndian"

    @property
    def byteorder(self) -> str:
        """Name accepted by `int.to_bytes`."""
        return "little" if self is Endian.LITTLE else "big"

    @property
    def struct_prefix(self) -> str:
        return "<" if self is Endian.LITTLE else ">"


class IntWidth(Enum):
    EIGHT = 8
    SIXTEEN = 16
    THIRTYTWO = 32
    SIXTYFOUR = 64


class FloatWidth(Enum):
    THIRTYTWO = 32
    SIXTYFOUR = 64


class StringEncoding(Enum):
    UTF8 = "UTF8"
    UTF16BE = "UTF16BE"
    UTF16LE = "UTF16LE"


@dataclass(frozen=True)
class BoolValue:
    value: bool


@dataclass(frozen=True)
class UIntValue:
    value: int
    endian: Endian = Endian.BIG
    width: IntWidth = IntWidth.SIXTYFOUR


@dataclass(frozen=True)
class IntValue:
    value: int
    endian: Endian = Endian.BIG
    width: IntWidth = IntWidth.SIXTYFOUR


@dataclass(frozen=True)
class FloatValue:
    value: float
    endian: Endian = Endian.BIG
    width: FloatWidth = FloatWidth.SIXTYFOUR


@dataclass(frozen=True)
class StringValue:
    value: str
    encoding: StringEncoding = StringEncoding.UTF8


@dataclass(frozen=True)
class ArrayValue:
    items: tuple[Value, ...] = ()


@dataclass(frozen=True)
class JsonValue:
    """Opaque JSON document, published as JSON text.

    `document` is whatever `json.loads` produced; it is not copied, so callers
    must not mutate it after parsing.
    """

    document: Any


Value = Union[BoolValue, UIntValue, IntValue, FloatValue, StringValue, ArrayValue, JsonValue]


@dataclass(frozen=True)
class Entry:
    """One dataset row: a value published under `topic`."""

    topic: str
    value: Value
