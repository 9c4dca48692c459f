"""
In-memory tilemap document consumed by the encoder.

A Document holds the map grid size, tile size, an ordered list of layers and
the tilesets known to the map. Tile layers store global tile ids (GIDs) in a
numpy array of shape [height, width]; 0 means empty.

Tileset GID ranges follow the Tiled convention: tilesets are ordered by
``first_gid`` and a GID belongs to the tileset with the largest
``first_gid`` not greater than it. Tile objects carry a GID as well.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from mdat.errors import missing_atlas_width
from mdat.properties import Property


class ObjectShape(IntEnum):
    """Object shape ids as numbered by the Tiled editor."""
    RECTANGLE = 0
    POLYGON = 1
    POLYLINE = 2
    ELLIPSE = 3
    TEXT = 4
    POINT = 5


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass
class MapObject:
    """Free-form object placed on an object layer."""
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    name: str = ""
    type: str = ""
    shape: ObjectShape = ObjectShape.RECTANGLE
    polygon: List[Point] = field(default_factory=list)
    properties: Dict[str, Property] = field(default_factory=dict)
    gid: int = 0  # tile objects only


@dataclass
class TileLayer:
    """Grid of tile references."""
    name: str
    tiles: np.ndarray

    def __post_init__(self):
        self.tiles = np.asarray(self.tiles, dtype=np.int64)
        if self.tiles.ndim != 2:
            raise ValueError(f"Tile grid must be 2D, got shape {self.tiles.shape}")

    @property
    def width(self) -> int:
        return int(self.tiles.shape[1])

    @property
    def height(self) -> int:
        return int(self.tiles.shape[0])

    def tile_id(self, x: int, y: int) -> int:
        return int(self.tiles[y, x])


@dataclass
class ObjectLayer:
    name: str
    objects: List[MapObject] = field(default_factory=list)


@dataclass
class OtherLayer:
    """Image, group or any other layer kind. Never encoded."""
    name: str
    kind: str = "other"


Layer = Union[TileLayer, ObjectLayer, OtherLayer]


@dataclass
class Tile:
    id: int
    type: str = ""
    properties: Dict[str, Property] = field(default_factory=dict)


@dataclass
class Tileset:
    """A named atlas image split into fixed-size, zero-margin tiles."""
    name: str
    tile_width: int
    tile_height: int
    image_width: int
    first_gid: int = 1
    tiles: List[Tile] = field(default_factory=list)

    def atlas_offset(self, tile_id: int) -> Tuple[int, int]:
        """
        Get the top-left pixel of a tile inside the atlas.

        Args:
            tile_id: Local tile index (row-major across the atlas)

        Returns:
            (src_x, src_y) in pixels

        Raises:
            MissingAtlasWidth: If the atlas image width is unknown

        Example:
            >>> Tileset("t", 16, 16, image_width=64).atlas_offset(5)
            (16, 16)
        """
        if self.image_width <= 0:
            raise missing_atlas_width(self.name, tile_id)
        linear = tile_id * self.tile_width
        return linear % self.image_width, (linear // self.image_width) * self.tile_height


@dataclass
class Document:
    """Root of a tilemap document."""
    width: int
    height: int
    tile_width: int
    tile_height: int
    layers: List[Layer] = field(default_factory=list)
    tilesets: List[Tileset] = field(default_factory=list)

    def encodable_layers(self) -> List[Union[TileLayer, ObjectLayer]]:
        """Tile and object layers, in document order."""
        return [l for l in self.layers if isinstance(l, (TileLayer, ObjectLayer))]

    def tileset_for_gid(self, gid: int) -> Optional[Tileset]:
        if gid <= 0:
            return None
        owner = None
        for tileset in sorted(self.tilesets, key=lambda t: t.first_gid):
            if tileset.first_gid <= gid:
                owner = tileset
            else:
                break
        return owner

    def used_tilesets(self) -> List[Tileset]:
        """
        Get the tilesets referenced by tile layers or tile objects.

        Order is first use: encodable layers in document order, cells in
        row-major order and objects in layer order.
        """
        if not self.tilesets:
            return []

        chunks = []
        for layer in self.encodable_layers():
            if isinstance(layer, TileLayer):
                chunks.append(layer.tiles.ravel())
            else:
                chunks.append(np.array([o.gid for o in layer.objects], dtype=np.int64))
        if not chunks:
            return []

        gids = np.concatenate(chunks)
        gids = gids[gids > 0]
        if gids.size == 0:
            return []

        # first occurrence of each distinct gid, in scan order
        unique, first_index = np.unique(gids, return_index=True)
        ordered_gids = unique[np.argsort(first_index, kind="stable")]

        used: List[Tileset] = []
        for gid in ordered_gids:
            tileset = self.tileset_for_gid(int(gid))
            if tileset is not None and all(t is not tileset for t in used):
                used.append(tileset)
        return used


def make_document(
    width: int,
    height: int,
    tile_width: int,
    tile_height: int,
    layers: Optional[Sequence[Layer]] = None,
    tilesets: Optional[Sequence[Tileset]] = None,
) -> Document:
    """Helper to create a Document with sane defaults."""
    return Document(
        width=width,
        height=height,
        tile_width=tile_width,
        tile_height=tile_height,
        layers=list(layers or []),
        tilesets=list(tilesets or []),
    )
