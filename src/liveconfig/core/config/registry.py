"""Key-path helpers: flattening options values into colon-delimited keys."""

from __future__ import annotations

import dataclasses
import datetime as _dt
import enum
import uuid
from decimal import Decimal
from pathlib import PurePath
from typing import Any, Dict, Iterable, List, Mapping, MutableSet, Protocol, Tuple, runtime_checkable

from pydantic import BaseModel

from .errors import CircularReferenceError, UnsupportedValueError

KEY_DELIMITER = ":"

SCALAR_TYPES = (
    str,
    bool,
    int,
    float,
    Decimal,
    enum.Enum,
    _dt.date,
    _dt.time,
    uuid.UUID,
    PurePath,
)


@runtime_checkable
class ConfigSerializable(Protocol):
    """Options types may list their own members instead of being introspected."""

    def config_items(self) -> Iterable[Tuple[str, Any]]:
        ...


def combine_path(*segments: str) -> str:
    """Join key segments with the key delimiter, skipping empty ones."""
    return KEY_DELIMITER.join(segment for segment in segments if segment)


def is_scalar(value: Any) -> bool:
    return isinstance(value, SCALAR_TYPES)


def format_scalar(value: Any) -> str:
    """Locale-independent string form of a leaf value."""
    if isinstance(value, enum.Enum):
        return format_scalar(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, (_dt.date, _dt.time)):
        return value.isoformat()
    return str(value)


def is_structured_value(value: Any) -> bool:
    """True when :func:`iter_members` can enumerate ``value``'s members."""
    if isinstance(value, (ConfigSerializable, BaseModel, Mapping)):
        return True
    if dataclasses.is_dataclass(value):
        return not isinstance(value, type)
    if isinstance(value, type) or callable(value):
        return False
    return hasattr(value, "__dict__") or bool(getattr(type(value), "__slots__", ()))


def iter_members(value: Any) -> List[Tuple[str, Any]]:
    """Public members of a structured value, in declaration order."""
    if isinstance(value, ConfigSerializable):
        return [(str(name), member) for name, member in value.config_items()]
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return [(f.name, getattr(value, f.name)) for f in dataclasses.fields(value)]
    if isinstance(value, BaseModel):
        return [(name, getattr(value, name)) for name in type(value).model_fields]
    if isinstance(value, Mapping):
        return [(str(key), member) for key, member in value.items()]
    attributes = getattr(value, "__dict__", None)
    if attributes is None:
        slots = getattr(type(value), "__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        return [
            (name, getattr(value, name))
            for name in slots
            if not name.startswith("_") and hasattr(value, name)
        ]
    return [(name, member) for name, member in attributes.items() if not name.startswith("_")]


def _flatten_value(value: Any, key: str, out: Dict[str, str], ancestors: MutableSet[int]) -> None:
    if value is None:
        out[key] = ""
        return
    if is_scalar(value):
        out[key] = format_scalar(value)
        return

    sequence = isinstance(value, (list, tuple, set, frozenset))
    if not sequence and not is_structured_value(value):
        raise UnsupportedValueError(key, type(value).__name__)

    marker = id(value)
    if marker in ancestors:
        raise CircularReferenceError(key)
    ancestors.add(marker)
    try:
        if sequence:
            for index, item in enumerate(value):
                _flatten_value(item, combine_path(key, str(index)), out, ancestors)
        else:
            for name, member in iter_members(value):
                _flatten_value(member, combine_path(key, name), out, ancestors)
    finally:
        ancestors.discard(marker)


def flatten_options(value: Any, prefix: str = "") -> Dict[str, str]:
    """
    Flatten an options value into ``colon-path -> string`` pairs.

    Keys are ``{prefix}:{member}``; with an empty prefix the runtime type
    name is used instead, e.g. ``AppOptions:Name``. ``None`` members become
    empty strings and list items are keyed by index. A value that contains
    one of its own ancestors raises ``CircularReferenceError``; a member
    that is neither a scalar nor a structure (``bytes``, ``complex``)
    raises ``UnsupportedValueError``.
    """
    root = prefix or type(value).__name__
    out: Dict[str, str] = {}
    _flatten_value(value, root, out, set())
    return out


def flatten(nested: Mapping[str, Any], prefix: str = "") -> Dict[str, str]:
    """Flatten a nested mapping (e.g. a parsed JSON document) to colon paths."""
    out: Dict[str, str] = {}
    ancestors: MutableSet[int] = {id(nested)}
    for key, value in nested.items():
        _flatten_value(value, combine_path(prefix, str(key)), out, ancestors)
    return out


def unflatten(flat: Mapping[str, Any]) -> Dict[str, Any]:
    """Convert a colon-path map to a nested dict; child keys win over leaf values."""
    nested: Dict[str, Any] = {}
    for key, value in flat.items():
        parts = key.split(KEY_DELIMITER)
        cursor = nested
        for part in parts[:-1]:
            if part not in cursor or not isinstance(cursor[part], dict):
                cursor[part] = {}
            cursor = cursor[part]
        if isinstance(cursor.get(parts[-1]), dict):
            continue
        cursor[parts[-1]] = value
    return nested
