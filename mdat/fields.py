"""
Field sequence primitives for the .mdat format.

An encode pass flattens a document into an ordered list of
``EncodedField(value, kind)`` pairs. The same list is consumed twice:
once by ``size_of`` to compute the exact output length, and once by
``PrimitiveWriter`` to emit the bytes.

Field kinds (all little-endian):
- WORD: int16, 2 bytes
- DWORD: int32, 4 bytes
- FLOAT: IEEE-754 float32, 4 bytes
- BYTES: raw UTF-8 bytes of a text value, no terminator, no padding

Strings are framed as WORD(byte length) followed by BYTES.
"""

import math
import struct
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Union

from mdat.errors import size_mismatch, value_out_of_range

TEXT_ENCODING = "utf-8"

WORD_MIN, WORD_MAX = -(2 ** 15), 2 ** 15 - 1
DWORD_MIN, DWORD_MAX = -(2 ** 31), 2 ** 31 - 1
FLOAT32_MAX = 3.4028234663852886e38


class FieldKind(Enum):
    WORD = "word"
    DWORD = "dword"
    FLOAT = "float"
    BYTES = "bytes"


# struct formats for the fixed-width kinds; BYTES is variable
_FORMATS = {
    FieldKind.WORD: "<h",
    FieldKind.DWORD: "<i",
    FieldKind.FLOAT: "<f",
}

FIELD_WIDTHS = {kind: struct.calcsize(fmt) for kind, fmt in _FORMATS.items()}


@dataclass(frozen=True)
class EncodedField:
    """A single value queued for emission."""
    value: Union[int, float, str]
    kind: FieldKind

    @property
    def width(self) -> int:
        """Number of bytes this field occupies on the wire."""
        if self.kind is FieldKind.BYTES:
            return len(self.value.encode(TEXT_ENCODING))
        return FIELD_WIDTHS[self.kind]


def word(value: int) -> EncodedField:
    value = int(value)
    if not WORD_MIN <= value <= WORD_MAX:
        raise value_out_of_range("word", value, WORD_MIN, WORD_MAX)
    return EncodedField(value, FieldKind.WORD)


def dword(value: int) -> EncodedField:
    value = int(value)
    if not DWORD_MIN <= value <= DWORD_MAX:
        raise value_out_of_range("dword", value, DWORD_MIN, DWORD_MAX)
    return EncodedField(value, FieldKind.DWORD)


def float32(value: float) -> EncodedField:
    value = float(value)
    if math.isfinite(value) and abs(value) > FLOAT32_MAX:
        raise value_out_of_range("float", value, -FLOAT32_MAX, FLOAT32_MAX)
    return EncodedField(value, FieldKind.FLOAT)


def text(value: str) -> EncodedField:
    return EncodedField(str(value), FieldKind.BYTES)


def encode_string(value: str) -> List[EncodedField]:
    """
    Frame a text value as a length-prefixed string.

    The prefix is the UTF-8 byte count, not the character count, so
    "Café" is prefixed with 5.

    Args:
        value: Text to frame

    Returns:
        [WORD(byte_length), BYTES(value)]
    """
    value = str(value)
    byte_length = len(value.encode(TEXT_ENCODING))
    if byte_length > WORD_MAX:
        raise value_out_of_range("string length", byte_length, 0, WORD_MAX)
    return [word(byte_length), text(value)]


def size_of(fields: Iterable[EncodedField]) -> int:
    """
    Compute the exact byte length of a field sequence.

    Args:
        fields: Ordered fields, exactly as they will be written

    Returns:
        Total size in bytes
    """
    return sum(f.width for f in fields)


class PrimitiveWriter:
    """
    Appends fields to a pre-allocated buffer at a tracked offset.

    The buffer must be at least ``size_of(fields)`` bytes. Writing past its
    end is a programming error and raises ``SizeMismatch`` without touching
    the buffer.
    """

    def __init__(self, buffer: bytearray, offset: int = 0):
        self.buffer = buffer
        self.offset = offset

    def _reserve(self, width: int) -> int:
        start = self.offset
        if start + width > len(self.buffer):
            raise size_mismatch(
                f"Write of {width} bytes at offset {start} overruns buffer",
                expected=len(self.buffer),
                actual=start + width,
            )
        self.offset = start + width
        return start

    def _pack(self, kind: FieldKind, value) -> None:
        start = self._reserve(FIELD_WIDTHS[kind])
        struct.pack_into(_FORMATS[kind], self.buffer, start, value)

    def write_word(self, value: int) -> None:
        self._pack(FieldKind.WORD, value)

    def write_dword(self, value: int) -> None:
        self._pack(FieldKind.DWORD, value)

    def write_float(self, value: float) -> None:
        self._pack(FieldKind.FLOAT, value)

    def write_bytes(self, value: str) -> None:
        data = value.encode(TEXT_ENCODING)
        start = self._reserve(len(data))
        self.buffer[start:start + len(data)] = data

    def write(self, field: EncodedField) -> None:
        if field.kind is FieldKind.BYTES:
            self.write_bytes(field.value)
        else:
            self._pack(field.kind, field.value)

    def write_all(self, fields: Iterable[EncodedField]) -> int:
        """Write every field in order and return the final offset."""
        for field in fields:
            self.write(field)
        return self.offset
