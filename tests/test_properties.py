"""Tests for properties.py - property tagging and block encoding."""

import numpy as np
import pytest

from mdat.errors import UnsupportedPropertyType
from mdat.fields import FieldKind, PrimitiveWriter, size_of
from mdat.properties import (
    Property, PropertyType, classify_value, encode_properties, make_properties,
)

from mdat_reader import MdatReader


def _decode(bag):
    fields = encode_properties(bag)
    buf = bytearray(size_of(fields))
    PrimitiveWriter(buf).write_all(fields)
    reader = MdatReader(bytes(buf))
    props = reader.properties()
    assert reader.at_end
    return props


class TestClassification:
    """Test tagging of raw host values."""

    def test_integer_number(self):
        assert classify_value("hp", 4) is PropertyType.INT

    def test_whole_float_is_int(self):
        """Whole-number floats are indistinguishable from integers."""
        assert classify_value("hp", 4.0) is PropertyType.INT

    def test_fractional_float(self):
        assert classify_value("speed", 4.5) is PropertyType.FLOAT

    def test_bool_before_int(self):
        assert classify_value("solid", True) is PropertyType.BOOL

    def test_string(self):
        assert classify_value("name", "door") is PropertyType.STRING

    def test_numpy_scalars(self):
        assert classify_value("n", np.int32(3)) is PropertyType.INT
        assert classify_value("f", np.float32(0.5)) is PropertyType.FLOAT
        assert classify_value("b", np.bool_(False)) is PropertyType.BOOL

    def test_unsupported(self):
        """Values with no encoding are rejected, not skipped."""
        with pytest.raises(UnsupportedPropertyType) as exc_info:
            classify_value("items", [1, 2])
        assert exc_info.value.context["key"] == "items"

        with pytest.raises(UnsupportedPropertyType):
            classify_value("nothing", None)


class TestEncodeProperties:
    """Test properties block layout."""

    def test_empty_bag(self):
        """An empty bag is just a zero count."""
        fields = encode_properties({})
        assert len(fields) == 1
        assert fields[0].value == 0
        assert size_of(fields) == 2

    def test_int_payload_is_dword(self):
        fields = encode_properties(make_properties({"hp": 4}))
        # count, key len, key, tag, payload
        assert fields[3].value == PropertyType.INT
        assert fields[4].kind is FieldKind.DWORD
        assert fields[4].width == 4

    def test_float_payload_is_float32(self):
        fields = encode_properties(make_properties({"speed": 4.5}))
        assert fields[3].value == PropertyType.FLOAT
        assert fields[4].kind is FieldKind.FLOAT
        assert fields[4].width == 4

    def test_bool_payload_is_word(self):
        fields = encode_properties(make_properties({"solid": True}))
        assert fields[3].value == PropertyType.BOOL
        assert fields[4].kind is FieldKind.WORD
        assert fields[4].value == 1

    def test_decodes_in_order(self):
        """Every type decodes back with its tag, in insertion order."""
        bag = make_properties({
            "solid": False,
            "hp": -12,
            "speed": 1.25,
            "label": "Ünïcode door",
        })
        props = _decode(bag)

        assert list(props) == ["solid", "hp", "speed", "label"]
        assert props["solid"] == (1, False)
        assert props["hp"] == (2, -12)
        assert props["speed"] == (3, 1.25)
        assert props["label"] == (4, "Ünïcode door")

    def test_explicit_tags_are_trusted(self):
        """A FLOAT-tagged whole number stays FLOAT on the wire."""
        bag = make_properties([Property("scale", PropertyType.FLOAT, 2.0)])
        assert _decode(bag)["scale"] == (3, 2.0)

    def test_none_tag_rejected(self):
        bag = make_properties([Property("x", PropertyType.NONE, None)])
        with pytest.raises(UnsupportedPropertyType):
            encode_properties(bag)

    def test_mismatched_tag_rejected(self):
        """A value that does not match its tag is an error."""
        bag = make_properties([Property("x", PropertyType.INT, "seven")])
        with pytest.raises(UnsupportedPropertyType):
            encode_properties(bag)

        bag = make_properties([Property("y", PropertyType.INT, 2.5)])
        with pytest.raises(UnsupportedPropertyType):
            encode_properties(bag)
