"""
Custom property bags and their wire encoding.

Properties block layout:
- count: WORD
- per entry: key (str), type tag (WORD), payload

Payload by tag:
- BOOL (1): WORD 0 or 1
- INT (2): DWORD
- FLOAT (3): FLOAT
- STRING (4): str
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Iterable, List, Mapping, Union

from mdat.errors import unsupported_property
from mdat.fields import EncodedField, dword, encode_string, float32, word


class PropertyType(IntEnum):
    NONE = 0
    BOOL = 1
    INT = 2
    FLOAT = 3
    STRING = 4


@dataclass(frozen=True)
class Property:
    """A named value with an explicit wire type."""
    key: str
    type: PropertyType
    value: Any

    @classmethod
    def infer(cls, key: str, value: Any) -> "Property":
        """
        Tag a raw host value.

        Numbers with no fractional part are tagged INT, so 4.0 and 4 are
        indistinguishable once encoded.
        """
        value = _as_python(value)
        return cls(key, classify_value(key, value), value)


def _as_python(value: Any) -> Any:
    # numpy scalars (np.int64, np.bool_, ...) unwrap to builtins
    if getattr(value, "shape", None) == () and callable(getattr(value, "item", None)):
        return value.item()
    return value


def classify_value(key: str, value: Any) -> PropertyType:
    value = _as_python(value)
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return PropertyType.BOOL
    if isinstance(value, int):
        return PropertyType.INT
    if isinstance(value, float):
        if value.is_integer():
            return PropertyType.INT
        return PropertyType.FLOAT
    if isinstance(value, str):
        return PropertyType.STRING
    raise unsupported_property(key, value)


PropertyBag = Mapping[str, Property]


def make_properties(
    values: Union[Mapping[str, Any], Iterable[Property], None] = None,
) -> Dict[str, Property]:
    """
    Build an ordered property bag.

    Args:
        values: Either a mapping of raw values (tagged with Property.infer)
                or an iterable of already tagged Property objects

    Returns:
        Dict keyed by property name, in insertion order
    """
    if values is None:
        return {}
    if isinstance(values, Mapping):
        bag = {}
        for key, value in values.items():
            bag[key] = value if isinstance(value, Property) else Property.infer(key, value)
        return bag
    return {prop.key: prop for prop in values}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _payload(prop: Property) -> List[EncodedField]:
    value = _as_python(prop.value)
    if prop.type is PropertyType.BOOL and isinstance(value, bool):
        return [word(1 if value else 0)]
    if prop.type is PropertyType.INT and _is_number(value):
        if isinstance(value, float) and not value.is_integer():
            raise unsupported_property(prop.key, value, {"tag": prop.type.name})
        return [dword(value)]
    if prop.type is PropertyType.FLOAT and _is_number(value):
        return [float32(value)]
    if prop.type is PropertyType.STRING and isinstance(value, str):
        return encode_string(value)
    raise unsupported_property(prop.key, value, {"tag": prop.type.name})


def encode_properties(bag: PropertyBag) -> List[EncodedField]:
    """
    Encode a property bag as a self-describing record list.

    Args:
        bag: Ordered mapping of key to tagged Property

    Returns:
        Field sequence for the whole properties block

    Raises:
        UnsupportedPropertyType: If a property is tagged NONE or its value
            does not match its tag
    """
    fields = [word(len(bag))]
    for key, prop in bag.items():
        payload = _payload(prop)
        fields.extend(encode_string(key))
        fields.append(word(int(prop.type)))
        fields.extend(payload)
    return fields
