from __future__ import annotations

import copy
from typing import Any, Dict, Iterator, List

import pytest


BREITE = {
    "name": "breite",
    "label": {"de": "Breite", "en": "Width"},
    "type": {"name": "number"},
    "attributeConstraint": "None",
    "isRequired": False,
    "isSearchable": False,
    "inputHint": "SingleLine",
}

FARBE = {
    "name": "farbe",
    "label": {"de": "Farbe", "en": "Color"},
    "type": {"name": "ltext"},
    "attributeConstraint": "None",
    "isRequired": False,
    "isSearchable": False,
    "inputHint": "SingleLine",
    "displayGroup": "Other",
}

BEARS = {
    "name": "bears",
    "label": {"de": "Bären", "en": "Bears"},
    "type": {
        "name": "enum",
        "values": [
            {"key": "grizzly", "label": "Grizzly"},
            {"key": "polar", "label": "Polar"},
        ],
    },
    "attributeConstraint": "None",
    "isRequired": False,
    "isSearchable": False,
    "displayGroup": "Other",
}

BIRDS = {
    "name": "localizedBirds",
    "label": {"de": "Vögel", "en": "Birds"},
    "type": {
        "name": "lenum",
        "values": [
            {"key": "robin", "label": {"en": "Robin redbreast", "de": "Rotkehlchen"}},
            {"key": "sparrow", "label": {"en": "Sparrow", "de": "Spatz"}},
        ],
    },
    "attributeConstraint": "None",
    "isRequired": False,
    "isSearchable": False,
    "displayGroup": "Other",
}

FLOWERS = {
    "name": "localizedFlowers",
    "label": {"de": "Blumen", "en": "Flowers"},
    "type": {
        "name": "set",
        "elementType": {
            "name": "lenum",
            "values": [
                {"key": "daisy", "label": {"en": "Daisy", "de": "Gänseblümchen"}},
                {"key": "dandelion", "label": {"en": "Dandelion", "de": "Löwenzahn"}},
            ],
        },
    },
    "attributeConstraint": "None",
    "isRequired": False,
    "isSearchable": False,
    "displayGroup": "Other",
}

BEAR_KINDS = [
    "grizzly", "polar", "panda", "black", "sloth", "spectacled",
    "asian", "ursinae", "short-faced", "kodiak", "syrian", "himalayan",
]


class FakeSource:
    def __init__(self, product_types: List[Dict[str, Any]]) -> None:
        self.product_types = product_types
        self.calls = 0

    def iter_product_types(self) -> Iterator[Dict[str, Any]]:
        self.calls += 1
        for pt in self.product_types:
            yield copy.deepcopy(pt)


class FailingSource:
    def __init__(self, message: str = "some-error") -> None:
        self.message = message

    def iter_product_types(self) -> Iterator[Dict[str, Any]]:
        raise RuntimeError(self.message)
        yield  # pragma: no cover


@pytest.fixture
def breite() -> Dict[str, Any]:
    return copy.deepcopy(BREITE)


@pytest.fixture
def farbe() -> Dict[str, Any]:
    return copy.deepcopy(FARBE)


@pytest.fixture
def bears() -> Dict[str, Any]:
    return copy.deepcopy(BEARS)


@pytest.fixture
def many_bears() -> Dict[str, Any]:
    attr = copy.deepcopy(BEARS)
    attr["type"]["values"] = [{"key": k, "label": k.capitalize()} for k in BEAR_KINDS]
    return attr


@pytest.fixture
def birds() -> Dict[str, Any]:
    return copy.deepcopy(BIRDS)


@pytest.fixture
def flowers() -> Dict[str, Any]:
    return copy.deepcopy(FLOWERS)


@pytest.fixture
def product_types() -> List[Dict[str, Any]]:
    return [
        {
            "id": "pt-1",
            "key": "furniture",
            "name": "furniture",
            "description": "Tables and chairs",
            "attributes": copy.deepcopy([BREITE, BEARS]),
        },
        {
            "id": "pt-2",
            "key": "garden",
            "name": "garden",
            "description": "Things for outside",
            "attributes": copy.deepcopy([BEARS, BIRDS, FLOWERS]),
        },
    ]
