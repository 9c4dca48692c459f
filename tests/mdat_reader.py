"""Minimal .mdat reader used by the tests to check what the encoder wrote."""

import struct


class MdatReader:
    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    def _unpack(self, fmt: str):
        size = struct.calcsize(fmt)
        if self.offset + size > len(self.data):
            raise ValueError(f"Unexpected EOF at offset {self.offset}")
        value = struct.unpack_from(fmt, self.data, self.offset)[0]
        self.offset += size
        return value

    def word(self) -> int:
        return self._unpack("<h")

    def dword(self) -> int:
        return self._unpack("<i")

    def float(self) -> float:
        return self._unpack("<f")

    def string(self) -> str:
        length = self.word()
        raw = self.data[self.offset:self.offset + length]
        if len(raw) != length:
            raise ValueError(f"Unexpected EOF reading {length}-byte string")
        self.offset += length
        return raw.decode("utf-8")

    def properties(self) -> dict:
        props = {}
        for _ in range(self.word()):
            key = self.string()
            tag = self.word()
            if tag == 1:
                value = bool(self.word())
            elif tag == 2:
                value = self.dword()
            elif tag == 3:
                value = self.float()
            elif tag == 4:
                value = self.string()
            else:
                raise ValueError(f"Unknown property tag {tag} for '{key}'")
            props[key] = (tag, value)
        return props

    @property
    def at_end(self) -> bool:
        return self.offset == len(self.data)


def read_mdat(data: bytes, layer_kinds) -> dict:
    """
    Decode a complete .mdat buffer.

    The format does not tag layer kinds, so the caller passes the kind
    ("tiles" with (width, height), or "objects") of each encoded layer.
    """
    r = MdatReader(data)
    result = {
        "magic": r.string(),
        "width": r.word(),
        "height": r.word(),
        "tile_width": r.word(),
        "tile_height": r.word(),
        "layer_count": r.word(),
        "layers": [],
        "tilesets": [],
    }

    for kind in layer_kinds:
        layer = {"name": r.string()}
        if kind == "objects":
            objects = []
            for _ in range(r.word()):
                obj = {
                    "x": r.word(), "y": r.word(),
                    "width": r.word(), "height": r.word(),
                    "name": r.string(),
                    "type": r.string(),
                    "shape": r.word(),
                }
                obj["polygon"] = [(r.word(), r.word()) for _ in range(r.word())]
                obj["properties"] = r.properties()
                objects.append(obj)
            layer["objects"] = objects
        else:
            width, height = kind[1]
            layer["tiles"] = [[r.word() for _ in range(width)] for _ in range(height)]
        result["layers"].append(layer)

    for _ in range(r.word()):
        tileset = {"name": r.string(), "tiles": []}
        for _ in range(r.word()):
            tileset["tiles"].append({
                "type": r.string(),
                "src": (r.word(), r.word()),
                "properties": r.properties(),
            })
        result["tilesets"].append(tileset)

    if not r.at_end:
        raise ValueError(f"{len(data) - r.offset} trailing bytes")
    return result
