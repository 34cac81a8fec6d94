# export/models.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union


class MalformedAttributeError(ValueError):
    pass


LocalizedString = Dict[str, str]
Label = Union[str, LocalizedString]


@dataclass(frozen=True)
class EnumValue:
    key: str
    label: Label


@dataclass(frozen=True)
class ScalarType:
    # text, ltext, number, boolean, money, date, reference, ...
    name: str


@dataclass(frozen=True)
class EnumType:
    name: str
    values: Tuple[EnumValue, ...]


@dataclass(frozen=True)
class LocalizedEnumType:
    name: str
    values: Tuple[EnumValue, ...]


@dataclass(frozen=True)
class SetType:
    name: str
    element_type: Union[ScalarType, EnumType, LocalizedEnumType]


AttributeType = Union[ScalarType, EnumType, LocalizedEnumType, SetType]


@dataclass(frozen=True)
class AttributeDefinition:
    """
    Typed view of one attribute definition of a product type.

    The exporter keeps projecting the raw mapping (key order matters for the
    column schema); this model is what decides whether a raw mapping has a
    shape the exporter can flatten at all.
    """
    name: str
    type: AttributeType
    label: Optional[Label] = None
    attribute_constraint: Optional[str] = None
    is_required: Optional[bool] = None
    is_searchable: Optional[bool] = None
    input_hint: Optional[str] = None
    display_group: Optional[str] = None

    @property
    def value_count(self) -> int:
        return enum_value_count(self.type)


def _is_localized(label: Any) -> bool:
    return isinstance(label, dict) and all(isinstance(v, str) for v in label.values())


def _parse_enum_values(raw_values: Any, type_name: str) -> Tuple[EnumValue, ...]:
    if not isinstance(raw_values, list):
        raise MalformedAttributeError(f"type '{type_name}' has no list of values")
    values = []
    for idx, raw in enumerate(raw_values):
        if not isinstance(raw, dict) or not isinstance(raw.get("key"), str):
            raise MalformedAttributeError(f"value #{idx} of type '{type_name}' has no key")
        label = raw.get("label")
        if not isinstance(label, str) and not _is_localized(label):
            raise MalformedAttributeError(f"value '{raw['key']}' of type '{type_name}' has no label")
        values.append(EnumValue(key=raw["key"], label=label))
    return tuple(values)


def parse_attribute_type(raw: Any, allow_set: bool = True) -> AttributeType:
    if not isinstance(raw, dict) or not isinstance(raw.get("name"), str):
        raise MalformedAttributeError("attribute type must be a mapping with a name")

    name = raw["name"]
    if "elementType" in raw:
        if not allow_set:
            raise MalformedAttributeError("a set cannot contain another set")
        element_type = parse_attribute_type(raw["elementType"], allow_set=False)
        return SetType(name=name, element_type=element_type)

    if "values" in raw:
        values = _parse_enum_values(raw["values"], name)
        if any(isinstance(v.label, dict) for v in values):
            return LocalizedEnumType(name=name, values=values)
        return EnumType(name=name, values=values)

    return ScalarType(name=name)


def parse_attribute(raw: Any) -> AttributeDefinition:
    if not isinstance(raw, dict):
        raise MalformedAttributeError(f"attribute definition must be a mapping, got {type(raw).__name__}")
    name = raw.get("name")
    if not isinstance(name, str) or not name:
        raise MalformedAttributeError("attribute definition has no name")
    try:
        attr_type = parse_attribute_type(raw.get("type"))
    except MalformedAttributeError as exc:
        raise MalformedAttributeError(f"attribute '{name}': {exc}") from exc

    return AttributeDefinition(
        name=name,
        type=attr_type,
        label=raw.get("label"),
        attribute_constraint=raw.get("attributeConstraint"),
        is_required=raw.get("isRequired"),
        is_searchable=raw.get("isSearchable"),
        input_hint=raw.get("inputHint"),
        display_group=raw.get("displayGroup"),
    )


def enum_value_count(attr_type: AttributeType) -> int:
    if isinstance(attr_type, SetType):
        return enum_value_count(attr_type.element_type)
    if isinstance(attr_type, (EnumType, LocalizedEnumType)):
        return len(attr_type.values)
    return 0
