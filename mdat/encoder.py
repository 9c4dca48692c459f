"""
Map encoder: flattens a Document into the .mdat field sequence.

File layout (little-endian, str = WORD byte length + UTF-8 bytes):
- Header: magic (str), width, height, tile_width, tile_height,
  layer_count (WORD each; only tile and object layers are counted)
- Tile layer: name (str), one WORD tile id per cell, row-major
- Object layer: name (str), object_count (WORD), then per object:
  x, y, width, height (WORD, truncated), name (str), type (str),
  shape (WORD), point_count (WORD), x/y WORD pairs, properties block
- Tilesets: count (WORD), then per tileset: name (str), tile_count (WORD),
  then per tile: type (str), src_x, src_y (WORD), properties block

Tile ids in tile layers index the tiles of the written tilesets: the k-th
tile written (counting from 1 across tilesets in file order) has id k, and
0 is an empty cell. A reader recovers each tileset's range by summing the
tile counts that precede it, the same way Tiled assigns GIDs.
"""

import logging
from typing import Dict, List

import numpy as np

from mdat.document import Document, MapObject, ObjectLayer, TileLayer, Tileset
from mdat.errors import invalid_tile_reference, size_mismatch
from mdat.fields import EncodedField, PrimitiveWriter, encode_string, size_of, word
from mdat.properties import encode_properties
from mdat.storage import allocate

logger = logging.getLogger(__name__)

MAGIC = "MOROS1138_MAP_VERSION1"


def encode_header(document: Document, magic: str = MAGIC) -> List[EncodedField]:
    fields = encode_string(magic)
    fields.append(word(document.width))
    fields.append(word(document.height))
    fields.append(word(document.tile_width))
    fields.append(word(document.tile_height))
    fields.append(word(len(document.encodable_layers())))
    return fields


def number_tiles(tilesets: List[Tileset]) -> Dict[int, int]:
    """
    Map the GID of every written tile to its id in the file.

    Args:
        tilesets: Tilesets in the order they are written

    Returns:
        Dict of GID -> file tile id (1-based, contiguous across tilesets)
    """
    numbering = {}
    next_id = 1
    for tileset in tilesets:
        for tile in tileset.tiles:
            numbering[tileset.first_gid + tile.id] = next_id
            next_id += 1
    return numbering


def encode_tile_layer(layer: TileLayer, numbering: Dict[int, int]) -> List[EncodedField]:
    """
    Encode a tile layer, renumbering GIDs to file tile ids.

    Raises:
        InvalidTileReference: If a cell's GID is not in ``numbering``
    """
    unique, inverse = np.unique(layer.tiles, return_inverse=True)
    ids = []
    for gid in unique.tolist():
        if gid == 0:
            ids.append(0)
        elif gid in numbering:
            ids.append(numbering[gid])
        else:
            raise invalid_tile_reference(layer.name, gid)
    grid = np.asarray(ids, dtype=np.int64)[inverse.ravel()].reshape(layer.tiles.shape)

    fields = encode_string(layer.name)
    for row in grid:
        fields.extend(word(tile_id) for tile_id in row)
    return fields


def encode_object(obj: MapObject) -> List[EncodedField]:
    fields = [word(obj.x), word(obj.y), word(obj.width), word(obj.height)]
    fields.extend(encode_string(obj.name))
    fields.extend(encode_string(obj.type))
    fields.append(word(int(obj.shape)))
    fields.append(word(len(obj.polygon)))
    for point in obj.polygon:
        fields.append(word(point.x))
        fields.append(word(point.y))
    fields.extend(encode_properties(obj.properties))
    return fields


def encode_object_layer(layer: ObjectLayer) -> List[EncodedField]:
    fields = encode_string(layer.name)
    fields.append(word(len(layer.objects)))
    for obj in layer.objects:
        fields.extend(encode_object(obj))
    return fields


def encode_tileset(tileset: Tileset) -> List[EncodedField]:
    fields = encode_string(tileset.name)
    fields.append(word(len(tileset.tiles)))
    for tile in tileset.tiles:
        src_x, src_y = tileset.atlas_offset(tile.id)
        fields.extend(encode_string(tile.type))
        fields.append(word(src_x))
        fields.append(word(src_y))
        fields.extend(encode_properties(tile.properties))
    return fields


def build_fields(document: Document, magic: str = MAGIC) -> List[EncodedField]:
    """
    Flatten a document into its complete field sequence.

    Args:
        document: Map to encode; must not change during the call
        magic: Format tag written at the start of the header

    Returns:
        Ordered list of fields; the single source for both size and bytes

    Raises:
        UnsupportedPropertyType: If a property value has no encoding
        ValueOutOfRange: If a value does not fit its field width
        InvalidTileReference: If a cell names a tile no used tileset has
        MissingAtlasWidth: If a used tileset has no atlas width
    """
    fields = encode_header(document, magic)
    tilesets = document.used_tilesets()
    numbering = number_tiles(tilesets)

    for layer in document.encodable_layers():
        if isinstance(layer, TileLayer):
            section = encode_tile_layer(layer, numbering)
        else:
            section = encode_object_layer(layer)
        logger.debug("Layer '%s': %d fields, %d bytes",
                     layer.name, len(section), size_of(section))
        fields.extend(section)

    fields.append(word(len(tilesets)))
    for tileset in tilesets:
        section = encode_tileset(tileset)
        logger.debug("Tileset '%s': %d tiles, %d bytes",
                     tileset.name, len(tileset.tiles), size_of(section))
        fields.extend(section)

    return fields


def encode_fields(fields: List[EncodedField]) -> bytes:
    """
    Emit a field sequence into an exactly sized buffer.

    Raises:
        SizeMismatch: If the bytes written differ from the computed size
    """
    size = size_of(fields)
    buffer = allocate(size)
    written = PrimitiveWriter(buffer).write_all(fields)
    if written != size:
        raise size_mismatch(
            f"Computed {size} bytes but wrote {written}",
            expected=size,
            actual=written,
        )
    return bytes(buffer)


def encode_map(document: Document, magic: str = MAGIC) -> bytes:
    """
    Encode a document to .mdat bytes.

    Args:
        document: Map to encode
        magic: Format tag written at the start of the header

    Returns:
        Complete file contents

    Example:
        >>> from mdat.tmx import load_tmx
        >>> data = encode_map(load_tmx("level1.tmx"))
    """
    fields = build_fields(document, magic)
    data = encode_fields(fields)
    logger.debug("Encoded %d fields into %d bytes", len(fields), len(data))
    return data
