# export/attributes.py
"""
Flattening of attribute definitions into a fixed column schema.

Raw keys are dot-joined leaf paths of one attribute definition, e.g.
``type.values.3.label.de`` or ``type.elementType.values.0.key``.
Canonical keys template the enum value index (``type.values.i.key``) and
unwrap sets, so every attribute of every shape projects onto one shared
list of columns. An attribute with N enum values becomes up to N rows.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import cmp_to_key
from typing import Any, Iterable, List, Optional, Sequence, Tuple


DEFAULT_ATTRIBUTES = [
    "name",
    "type.name",
    "attributeConstraint",
    "isRequired",
    "isSearchable",
]

ROW_INDEX_PLACEHOLDER = "i"

_VALUES_PREFIX = ("type", "values")


@dataclass(frozen=True)
class ColumnSchema:
    header_labels: Tuple[str, ...]
    canonical_keys: Tuple[str, ...]

    def __len__(self) -> int:
        return len(self.canonical_keys)


def _compare_attributes(a: str, b: str) -> int:
    a_pos = DEFAULT_ATTRIBUTES.index(a) if a in DEFAULT_ATTRIBUTES else -1
    b_pos = DEFAULT_ATTRIBUTES.index(b) if b in DEFAULT_ATTRIBUTES else -1

    if a_pos == -1 and b_pos != -1:
        return 1
    if a_pos != -1 and b_pos == -1:
        return -1
    if a_pos != -1 and b_pos != -1:
        return (a_pos > b_pos) - (a_pos < b_pos)
    return 0


def sort_attributes(attributes: Iterable[str]) -> List[str]:
    """
    Well-known keys first (in DEFAULT_ATTRIBUTES order), everything else
    keeps its relative order behind them.
    """
    return sorted(attributes, key=cmp_to_key(_compare_attributes))


def filter_duplicates(items: Iterable[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        out.append(item)
    return out


def extract_keys(obj: Any) -> List[str]:
    """All leaf paths of a nested attribute definition. List items are addressed by index."""
    if isinstance(obj, dict):
        items = [(str(k), v) for k, v in obj.items()]
    elif isinstance(obj, list):
        items = [(str(idx), v) for idx, v in enumerate(obj)]
    else:
        return []

    keys: List[str] = []
    for key, value in items:
        if isinstance(value, (dict, list)):
            keys.extend(f"{key}.{extracted}" for extracted in extract_keys(value))
        else:
            keys.append(key)
    return keys


def accumulate_keys(known_keys: Sequence[str], new_keys: Iterable[str]) -> List[str]:
    # unseen keys of the newer attribute go in front of the ones collected so far
    known = set(known_keys)
    return [k for k in new_keys if k not in known] + list(known_keys)


def _split(key: str) -> Tuple[str, ...]:
    return tuple(key.split("."))


def _unwrap_set(parts: Tuple[str, ...]) -> Tuple[str, ...]:
    # type.elementType.<rest> describes the set's element: same columns as a direct type.<rest>
    if len(parts) > 2 and parts[0] == "type" and parts[1] == "elementType":
        return _unwrap_set(("type",) + parts[2:])
    return parts


def _enum_value_index(parts: Tuple[str, ...]) -> Optional[int]:
    if len(parts) > 2 and parts[:2] == _VALUES_PREFIX and parts[2].isdigit():
        return int(parts[2])
    return None


def canonical_key(raw_key: str) -> str:
    parts = _unwrap_set(_split(raw_key))
    if _enum_value_index(parts) is not None and len(parts) > 3 and parts[3] in ("key", "label"):
        return ".".join(_VALUES_PREFIX + (ROW_INDEX_PLACEHOLDER,) + parts[3:])
    return ".".join(parts)


def header_label(key: str) -> str:
    """Column title for a canonical key."""
    parts = _split(key)
    if is_row_template(key) and len(parts) > 3:
        base = "enumKey" if parts[3] == "key" else "enumLabel"
        return ".".join((base,) + parts[4:])
    if key == "type.name":
        return "type"
    if key == "inputHint":
        return "textInputHint"
    return key


def filter_attribute_keys(raw_keys: Iterable[str]) -> List[str]:
    return filter_duplicates(canonical_key(k) for k in raw_keys)


def generate_attribute_header(raw_keys: Iterable[str]) -> List[str]:
    return [header_label(k) for k in filter_attribute_keys(raw_keys)]


def canonicalize(raw_keys: Iterable[str]) -> ColumnSchema:
    keys = filter_attribute_keys(raw_keys)
    return ColumnSchema(
        header_labels=tuple(header_label(k) for k in keys),
        canonical_keys=tuple(keys),
    )


def number_of_rows(raw_keys: Iterable[str]) -> int:
    """Highest enum value index across all raw keys (sets included) + 1."""
    highest = 0
    for key in raw_keys:
        idx = _enum_value_index(_unwrap_set(_split(key)))
        if idx is not None and idx > highest:
            highest = idx
    return highest + 1


def is_row_template(key: str) -> bool:
    parts = _split(key)
    return len(parts) > 2 and parts[:2] == _VALUES_PREFIX and parts[2] == ROW_INDEX_PLACEHOLDER


def _is_set(node: Any) -> bool:
    return isinstance(node, dict) and "elementType" in node


def _child(node: Any, field: str) -> Any:
    if isinstance(node, dict):
        return node.get(field)
    if isinstance(node, list) and field.isdigit():
        idx = int(field)
        return node[idx] if idx < len(node) else None
    return None


def get_value_for_key(obj: Any, key: str) -> Any:
    parts = key.split(".", 1)
    if len(parts) > 1:
        first, rest = parts
        # a set is addressed through its element type
        if first == "values" and _is_set(obj):
            return get_value_for_key(obj["elementType"], key)
        child = _child(obj, first)
        return get_value_for_key(child, rest) if child else None

    if key == "name" and _is_set(obj):
        return f"set:{get_value_for_key(obj['elementType'], key)}"
    return _child(obj, key)


def _is_scalar(value: Any) -> bool:
    return not isinstance(value, (dict, list))


def resolve(record: Any, key: str, row_index: int) -> Any:
    """
    Cell value of ``key`` for the given physical row of one attribute.

    Enum value columns read the value at ``row_index``; every other column
    only carries a value in row 0.
    """
    if is_row_template(key):
        parts = list(_split(key))
        parts[2] = str(row_index)
        value = get_value_for_key(record, ".".join(parts))
        # localized labels resolve to a mapping here, their locale columns carry the text
        return value if isinstance(value, str) else None

    if row_index != 0:
        return None
    value = get_value_for_key(record, key)
    return value if _is_scalar(value) else None


def project(record: Any, schema: ColumnSchema, row_count: int) -> List[List[Any]]:
    rows: List[List[Any]] = []
    for row_index in range(row_count):
        row = [resolve(record, key, row_index) for key in schema.canonical_keys]
        if not any(row):
            continue
        rows.append(row)
    return rows
