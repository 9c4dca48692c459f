"""
mdat - Binary tilemap container for game runtimes.

.mdat files are fixed-layout, little-endian streams with:
- a header (format tag, map size, tile size, layer count)
- tile layers (one 16-bit id per cell) and object layers (geometry,
  shape, polygon points, custom properties)
- tileset/atlas metadata (per-tile type, atlas offset, custom properties)
"""

__version__ = "0.1.0"

from mdat.document import (
    Document, TileLayer, ObjectLayer, OtherLayer, MapObject, ObjectShape,
    Point, Tileset, Tile, make_document,
)
from mdat.encoder import MAGIC, build_fields, encode_map
from mdat.errors import (
    MdatError, UnsupportedPropertyType, ValueOutOfRange, SizeMismatch, StorageFailure,
    InvalidTileReference, MissingAtlasWidth,
)
from mdat.fields import EncodedField, FieldKind, PrimitiveWriter, encode_string, size_of
from mdat.properties import Property, PropertyType, encode_properties, make_properties
from mdat.storage import commit, write_mdat
from mdat.tmx import load_tmx

__all__ = [
    "Document",
    "TileLayer",
    "ObjectLayer",
    "OtherLayer",
    "MapObject",
    "ObjectShape",
    "Point",
    "Tileset",
    "Tile",
    "make_document",
    "MAGIC",
    "build_fields",
    "encode_map",
    "MdatError",
    "UnsupportedPropertyType",
    "ValueOutOfRange",
    "SizeMismatch",
    "StorageFailure",
    "InvalidTileReference",
    "MissingAtlasWidth",
    "EncodedField",
    "FieldKind",
    "PrimitiveWriter",
    "encode_string",
    "size_of",
    "Property",
    "PropertyType",
    "encode_properties",
    "make_properties",
    "commit",
    "write_mdat",
    "load_tmx",
]
