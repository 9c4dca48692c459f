"""
Read Tiled TMX maps into an mdat Document.

Supported:
- Orthogonal, finite maps
- Embedded and external (TSX) tilesets
- Tile layer data as CSV, XML or base64 (uncompressed, zlib, gzip)
- Object layers with rectangle, ellipse, point, polygon, polyline and text
  objects
- Typed custom properties on objects and tiles

Top-level image layers and group layers are kept as OtherLayer entries so
that layer order is preserved; the encoder skips them.
"""

import base64
import gzip
import logging
import xml.etree.ElementTree as ET
import zlib
from pathlib import Path
from typing import Dict, List, Tuple, Union

import numpy as np

try:
    import cv2
    HAS_CV2 = True
except ImportError:
    HAS_CV2 = False

from mdat.document import (
    Document, MapObject, ObjectLayer, ObjectShape, OtherLayer, Point,
    Tile, TileLayer, Tileset,
)
from mdat.errors import unsupported_property
from mdat.properties import Property, PropertyType

logger = logging.getLogger(__name__)

# Tiled stores flip/rotation flags in the top four bits of each GID
GID_MASK = 0x0FFFFFFF

_SHAPE_TAGS = {
    "ellipse": ObjectShape.ELLIPSE,
    "point": ObjectShape.POINT,
    "polygon": ObjectShape.POLYGON,
    "polyline": ObjectShape.POLYLINE,
    "text": ObjectShape.TEXT,
}


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1")


def parse_property(elem: ET.Element) -> Property:
    """
    Parse a <property> element into a tagged Property.

    Declared TMX types are kept as tags: a float property with value "4"
    stays FLOAT. color and file values are strings, object references are
    integers.
    """
    name = elem.get("name", "")
    prop_type = elem.get("type", "string")
    raw = elem.get("value")
    if raw is None:
        # multi-line string values live in the element text
        raw = elem.text or ""

    if prop_type == "bool":
        return Property(name, PropertyType.BOOL, _parse_bool(raw))
    if prop_type in ("int", "object"):
        return Property(name, PropertyType.INT, int(raw or 0))
    if prop_type == "float":
        return Property(name, PropertyType.FLOAT, float(raw or 0))
    if prop_type in ("string", "color", "file"):
        return Property(name, PropertyType.STRING, raw)
    raise unsupported_property(name, raw, {"tmx_type": prop_type})


def parse_properties(elem: ET.Element) -> Dict[str, Property]:
    bag: Dict[str, Property] = {}
    props_elem = elem.find("properties")
    if props_elem is not None:
        for prop_elem in props_elem.findall("property"):
            prop = parse_property(prop_elem)
            bag[prop.key] = prop
    return bag


def _class_name(elem: ET.Element) -> str:
    # Tiled 1.9 renamed "type" to "class"
    return elem.get("type") or elem.get("class") or ""


def decode_layer_data(data_elem: ET.Element, width: int, height: int) -> np.ndarray:
    """
    Decode a <data> element into a [height, width] GID grid.

    Flip and rotation flags are cleared, so every value is a plain GID.

    Raises:
        ValueError: If the encoding or compression is unsupported, or the
            tile count does not match the layer size
    """
    encoding = data_elem.get("encoding")
    compression = data_elem.get("compression")

    if data_elem.find("chunk") is not None:
        raise ValueError("Infinite maps (chunked layer data) are not supported")

    if encoding == "csv":
        csv_data = (data_elem.text or "").replace("\n", "")
        gids = np.array([int(x) for x in csv_data.split(",") if x.strip()], dtype=np.uint32)
    elif encoding == "base64":
        raw = base64.b64decode((data_elem.text or "").strip())
        if compression == "zlib":
            raw = zlib.decompress(raw)
        elif compression == "gzip":
            raw = gzip.decompress(raw)
        elif compression:
            raise ValueError(f"Unsupported layer compression: {compression}")
        gids = np.frombuffer(raw, dtype="<u4").astype(np.uint32)
    elif encoding is None:
        gids = np.array(
            [int(t.get("gid", 0)) for t in data_elem.findall("tile")], dtype=np.uint32
        )
    else:
        raise ValueError(f"Unsupported layer encoding: {encoding}")

    if gids.size != width * height:
        raise ValueError(
            f"Layer data has {gids.size} tiles, expected {width}x{height}={width * height}"
        )

    gids = gids & np.uint32(GID_MASK)
    return gids.astype(np.int64).reshape(height, width)


def parse_tile_layer(elem: ET.Element) -> TileLayer:
    width = int(elem.get("width", 0))
    height = int(elem.get("height", 0))
    data_elem = elem.find("data")
    if data_elem is None:
        tiles = np.zeros((height, width), dtype=np.int64)
    else:
        tiles = decode_layer_data(data_elem, width, height)
    return TileLayer(name=elem.get("name", ""), tiles=tiles)


def parse_points(points: str) -> List[Point]:
    """Parse a Tiled "x1,y1 x2,y2 ..." point list."""
    parsed = []
    for pair in points.split():
        x, y = pair.split(",")
        parsed.append(Point(float(x), float(y)))
    return parsed


def parse_object(elem: ET.Element) -> MapObject:
    obj = MapObject(
        x=float(elem.get("x", 0)),
        y=float(elem.get("y", 0)),
        width=float(elem.get("width", 0)),
        height=float(elem.get("height", 0)),
        name=elem.get("name", ""),
        type=_class_name(elem),
        properties=parse_properties(elem),
        gid=int(elem.get("gid", 0)) & GID_MASK,
    )

    for tag, shape in _SHAPE_TAGS.items():
        shape_elem = elem.find(tag)
        if shape_elem is None:
            continue
        obj.shape = shape
        if shape in (ObjectShape.POLYGON, ObjectShape.POLYLINE):
            obj.polygon = parse_points(shape_elem.get("points", ""))
        break

    return obj


def parse_object_layer(elem: ET.Element) -> ObjectLayer:
    layer = ObjectLayer(name=elem.get("name", ""))
    for obj_elem in elem.findall("object"):
        layer.objects.append(parse_object(obj_elem))
    return layer


def read_image_size(image_path: Union[str, Path]) -> Tuple[int, int]:
    """
    Read (width, height) of an atlas image from disk.

    Raises:
        ImportError: If opencv-python is not installed
        ValueError: If the image cannot be read
    """
    if not HAS_CV2:
        raise ImportError("opencv-python is required to read atlas image sizes. Install with: pip install opencv-python")

    image = cv2.imread(str(image_path), cv2.IMREAD_UNCHANGED)
    if image is None:
        raise ValueError(f"Could not read image: {image_path}")
    return int(image.shape[1]), int(image.shape[0])


def parse_tileset(elem: ET.Element, first_gid: int, base_dir: Path) -> Tileset:
    """
    Parse a <tileset> element (embedded or TSX root).

    Args:
        elem: The tileset element
        first_gid: First GID, always taken from the map
        base_dir: Directory that relative image paths resolve against

    Returns:
        Tileset with one Tile per atlas index
    """
    name = elem.get("name", "")
    tile_width = int(elem.get("tilewidth", 0))
    tile_height = int(elem.get("tileheight", 0))
    columns = int(elem.get("columns", 0))
    spacing = int(elem.get("spacing", 0))
    margin = int(elem.get("margin", 0))
    if spacing or margin:
        logger.warning(
            "Tileset '%s' has spacing=%d margin=%d; atlas offsets assume neither",
            name, spacing, margin,
        )

    image_width = image_height = 0
    img_elem = elem.find("image")
    if img_elem is not None:
        image_width = int(img_elem.get("width", 0))
        image_height = int(img_elem.get("height", 0))
        if not image_width and img_elem.get("source"):
            image_width, image_height = read_image_size(base_dir / img_elem.get("source"))

    listed = {}
    for tile_elem in elem.findall("tile"):
        tile_id = int(tile_elem.get("id", 0))
        listed[tile_id] = Tile(
            id=tile_id,
            type=_class_name(tile_elem),
            properties=parse_properties(tile_elem),
        )

    tile_count = int(elem.get("tilecount", 0))
    if not tile_count and image_width and tile_width and tile_height:
        columns = columns or image_width // tile_width
        tile_count = columns * (image_height // tile_height)
    if not tile_count and listed:
        tile_count = max(listed) + 1

    tiles = [listed.get(i, Tile(id=i)) for i in range(tile_count)]

    return Tileset(
        name=name,
        tile_width=tile_width,
        tile_height=tile_height,
        image_width=image_width,
        first_gid=first_gid,
        tiles=tiles,
    )


def _load_tileset(ts_elem: ET.Element, map_dir: Path) -> Tileset:
    first_gid = int(ts_elem.get("firstgid", 1))
    source = ts_elem.get("source")
    if not source:
        return parse_tileset(ts_elem, first_gid, map_dir)

    tsx_path = map_dir / source
    if not tsx_path.exists():
        raise FileNotFoundError(f"External tileset not found: {tsx_path}")
    logger.debug("Loading external tileset %s", tsx_path)
    tsx_root = ET.parse(tsx_path).getroot()
    return parse_tileset(tsx_root, first_gid, tsx_path.parent)


def load_tmx(path: Union[str, Path]) -> Document:
    """
    Load a TMX file as a Document.

    Args:
        path: Path to the .tmx file

    Returns:
        Parsed Document

    Raises:
        FileNotFoundError: If the map or an external tileset is missing
        ValueError: If the file is not a supported TMX map
        xml.etree.ElementTree.ParseError: If the XML is malformed
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Map not found: {path}")

    root = ET.parse(path).getroot()
    if root.tag != "map":
        raise ValueError(f"Not a TMX map: root element is <{root.tag}>")
    if root.get("infinite", "0") == "1":
        raise ValueError("Infinite maps are not supported")

    orientation = root.get("orientation", "orthogonal")
    if orientation != "orthogonal":
        logger.warning("Map orientation is '%s'; encoding grid as-is", orientation)

    document = Document(
        width=int(root.get("width", 0)),
        height=int(root.get("height", 0)),
        tile_width=int(root.get("tilewidth", 0)),
        tile_height=int(root.get("tileheight", 0)),
    )

    for ts_elem in root.findall("tileset"):
        document.tilesets.append(_load_tileset(ts_elem, path.parent))

    for elem in root:
        if elem.tag == "layer":
            document.layers.append(parse_tile_layer(elem))
        elif elem.tag == "objectgroup":
            document.layers.append(parse_object_layer(elem))
        elif elem.tag in ("imagelayer", "group"):
            document.layers.append(OtherLayer(name=elem.get("name", ""), kind=elem.tag))

    logger.info(
        "Loaded %s: %dx%d, %d layers, %d tilesets",
        path.name, document.width, document.height,
        len(document.layers), len(document.tilesets),
    )
    return document
