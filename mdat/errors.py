"""Error definitions for the .mdat encoder.

Every failure that aborts an encode is an ``MdatError`` carrying a stable
code, a human readable message and optional context for reporting.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

E_UNSUPPORTED_PROPERTY = "E_UNSUPPORTED_PROPERTY"
E_VALUE_RANGE = "E_VALUE_RANGE"
E_SIZE_MISMATCH = "E_SIZE_MISMATCH"
E_WRITE_IO = "E_WRITE_IO"
E_TILE_REF = "E_TILE_REF"
E_ATLAS_WIDTH = "E_ATLAS_WIDTH"


@dataclass
class MdatError(Exception):
    code: str
    message: str
    context: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        return f"{self.code}: {self.message}" + (
            f" | ctx={self.context}" if self.context else ""
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context or {},
        }


class UnsupportedPropertyType(MdatError):
    """A property value has no encoding on the wire."""


class ValueOutOfRange(MdatError):
    """A value does not fit the width of the field it is written to."""


class SizeMismatch(MdatError):
    """Computed size and emitted bytes disagree."""


class StorageFailure(MdatError):
    """The encoded buffer could not be persisted."""


class InvalidTileReference(MdatError):
    """A tile layer cell names a tile no written tileset provides."""


class MissingAtlasWidth(MdatError):
    """A tileset has no atlas image width to place its tiles with."""


def unsupported_property(
    key: str, value: Any, context: Optional[Dict[str, Any]] = None
) -> UnsupportedPropertyType:
    ctx = {"key": key, "value_type": type(value).__name__}
    ctx.update(context or {})
    return UnsupportedPropertyType(
        code=E_UNSUPPORTED_PROPERTY,
        message=f"Property '{key}' has unsupported value {value!r}",
        context=ctx,
    )


def value_out_of_range(
    kind: str, value: Any, low: Any, high: Any
) -> ValueOutOfRange:
    return ValueOutOfRange(
        code=E_VALUE_RANGE,
        message=f"{kind} value {value!r} outside [{low}, {high}]",
        context={"kind": kind, "value": value},
    )


def size_mismatch(
    message: str, expected: int, actual: int
) -> SizeMismatch:
    return SizeMismatch(
        code=E_SIZE_MISMATCH,
        message=message,
        context={"expected": expected, "actual": actual},
    )


def storage_failure(path: Any, exc: OSError) -> StorageFailure:
    return StorageFailure(
        code=E_WRITE_IO,
        message=f"Could not write {path}: {exc}",
        context={"path": str(path), "errno": exc.errno},
    )


def invalid_tile_reference(layer: str, gid: int) -> InvalidTileReference:
    return InvalidTileReference(
        code=E_TILE_REF,
        message=f"Layer '{layer}' references gid {gid}, which no tileset provides",
        context={"layer": layer, "gid": gid},
    )


def missing_atlas_width(tileset: str, tile_id: int) -> MissingAtlasWidth:
    return MissingAtlasWidth(
        code=E_ATLAS_WIDTH,
        message=f"Tileset '{tileset}' has no atlas width; cannot place tile {tile_id}",
        context={"tileset": tileset, "tile_id": tile_id},
    )


__all__ = [
    "MdatError",
    "UnsupportedPropertyType",
    "ValueOutOfRange",
    "SizeMismatch",
    "StorageFailure",
    "InvalidTileReference",
    "MissingAtlasWidth",
    "unsupported_property",
    "value_out_of_range",
    "size_mismatch",
    "storage_failure",
    "invalid_tile_reference",
    "missing_atlas_width",
    "E_UNSUPPORTED_PROPERTY",
    "E_VALUE_RANGE",
    "E_SIZE_MISMATCH",
    "E_WRITE_IO",
    "E_TILE_REF",
    "E_ATLAS_WIDTH",
]
