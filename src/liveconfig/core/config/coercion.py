"""Value coercion utilities: binding configuration sections to options types."""

from __future__ import annotations

import collections.abc
import dataclasses
import datetime as _dt
import enum
import json
import types
import typing
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Type, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .errors import OptionsBindingError
from .registry import SCALAR_TYPES, combine_path, format_scalar

T = TypeVar("T")

_MISSING = object()


def _coerce_bool(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return value


def _coerce_int(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return value
    return value


def _coerce_float(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return value
    return value


def _coerce_decimal(value: Any) -> Any:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float, str)) and not isinstance(value, bool):
        try:
            return Decimal(str(value).strip())
        except InvalidOperation:
            return value
    return value


def _coerce_list(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, Mapping):
        if all(str(key).isdigit() for key in value):
            return [value[key] for key in sorted(value, key=lambda k: int(k))]
        return value
    if isinstance(value, str):
        trimmed = value.strip()
        if not trimmed:
            return []
        try:
            parsed = json.loads(trimmed)
            if isinstance(parsed, list):
                return parsed
        except json.JSONDecodeError:
            pass
        return [item.strip() for item in trimmed.split(",") if item.strip()]
    return value


def _coerce_dict(value: Any) -> Any:
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, str):
        trimmed = value.strip()
        if not trimmed:
            return {}
        try:
            parsed = json.loads(trimmed)
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass
    return value


def _coerce_enum(enum_type: Type[enum.Enum], value: Any) -> Any:
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError:
        pass
    text = str(value).strip()
    for member in enum_type:
        if format_scalar(member.value) == text or member.name.casefold() == text.casefold():
            return member
    return value


def _coerce_temporal(target: type, value: Any) -> Any:
    if isinstance(value, target):
        return value
    if isinstance(value, str):
        try:
            return target.fromisoformat(value.strip())
        except ValueError:
            return value
    return value


def is_structured_type(annotation: Any) -> bool:
    """True for dataclasses, pydantic models and plain annotated classes."""
    if not isinstance(annotation, type) or issubclass(annotation, SCALAR_TYPES):
        return False
    if dataclasses.is_dataclass(annotation):
        return True
    if issubclass(annotation, BaseModel):
        return True
    return bool(getattr(annotation, "__annotations__", None)) and annotation.__module__ != "builtins"


def _type_hints(cls: type) -> Dict[str, Any]:
    try:
        return typing.get_type_hints(cls)
    except (NameError, TypeError):
        return dict(getattr(cls, "__annotations__", {}))


def _fail(path: str, annotation: Any, raw: Any) -> OptionsBindingError:
    name = getattr(annotation, "__name__", str(annotation))
    return OptionsBindingError(path, f"cannot convert {raw!r} to {name}")


def coerce(annotation: Any, raw: Any, path: str) -> Any:
    """Coerce a raw configuration value (usually a string) to ``annotation``."""
    if annotation is Any or isinstance(annotation, (str, typing.ForwardRef)):
        return raw

    origin = typing.get_origin(annotation)
    args = typing.get_args(annotation)

    if origin is Union or origin is types.UnionType:
        allows_none = type(None) in args
        if raw is None or (allows_none and raw == ""):
            return None
        candidates = [arg for arg in args if arg is not type(None)]
        last_error: OptionsBindingError | None = None
        for candidate in candidates:
            try:
                return coerce(candidate, raw, path)
            except OptionsBindingError as exc:
                last_error = exc
        raise last_error or _fail(path, annotation, raw)

    if raw is None:
        return None

    if origin in (list, tuple, set, frozenset) or annotation in (list, tuple, set, frozenset):
        container = origin or annotation
        items = _coerce_list(raw)
        if not isinstance(items, list):
            raise _fail(path, annotation, raw)
        item_type = args[0] if args else Any
        coerced = [coerce(item_type, item, combine_path(path, str(i))) for i, item in enumerate(items)]
        return coerced if container is list else container(coerced)

    if origin in (dict, collections.abc.Mapping) or annotation is dict:
        mapping = _coerce_dict(raw)
        if not isinstance(mapping, dict):
            raise _fail(path, annotation, raw)
        value_type = args[1] if len(args) == 2 else Any
        return {
            str(key): coerce(value_type, value, combine_path(path, str(key)))
            for key, value in mapping.items()
        }

    if annotation is bool:
        value = _coerce_bool(raw)
    elif annotation is int:
        value = _coerce_int(raw)
    elif annotation is float:
        value = _coerce_float(raw)
    elif annotation is Decimal:
        value = _coerce_decimal(raw)
    elif annotation is str:
        if isinstance(raw, Mapping):
            raise _fail(path, annotation, raw)
        return raw if isinstance(raw, str) else format_scalar(raw)
    elif isinstance(annotation, type) and issubclass(annotation, enum.Enum):
        value = _coerce_enum(annotation, raw)
    elif annotation in (_dt.datetime, _dt.date, _dt.time):
        value = _coerce_temporal(annotation, raw)
    elif is_structured_type(annotation):
        if isinstance(raw, Mapping):
            return bind_structured(annotation, raw, path)
        if raw == "":
            return bind_structured(annotation, {}, path)
        raise _fail(path, annotation, raw)
    elif isinstance(annotation, type):
        if isinstance(raw, annotation):
            return raw
        try:
            return annotation(raw)
        except (TypeError, ValueError) as exc:
            raise OptionsBindingError(path, str(exc)) from exc
    else:
        return raw

    if not isinstance(value, annotation) or (annotation is int and isinstance(value, bool)):
        raise _fail(path, annotation, raw)
    return value


def _lookup(section: Mapping[str, Any]) -> Dict[str, Any]:
    return {str(key).casefold(): value for key, value in section.items()}


def bind_structured(cls: Type[T], section: Mapping[str, Any], path: str) -> T:
    """Bind a mapping onto a dataclass, pydantic model or plain class."""
    lookup = _lookup(section)

    if dataclasses.is_dataclass(cls):
        hints = _type_hints(cls)
        kwargs: Dict[str, Any] = {}
        for field in dataclasses.fields(cls):
            if not field.init:
                continue
            raw = lookup.get(field.name.casefold(), _MISSING)
            if raw is _MISSING:
                continue
            kwargs[field.name] = coerce(hints.get(field.name, Any), raw, combine_path(path, field.name))
        try:
            return cls(**kwargs)
        except TypeError as exc:
            raise OptionsBindingError(path, str(exc)) from exc

    if issubclass(cls, BaseModel):
        payload: Dict[str, Any] = {}
        for name, info in cls.model_fields.items():
            raw = lookup.get(name.casefold(), _MISSING)
            if raw is _MISSING and info.alias:
                raw = lookup.get(info.alias.casefold(), _MISSING)
            if raw is _MISSING:
                continue
            payload[info.alias or name] = coerce(info.annotation, raw, combine_path(path, name))
        try:
            return cls.model_validate(payload)
        except PydanticValidationError as exc:
            raise OptionsBindingError(path, str(exc)) from exc

    try:
        instance = cls()
    except TypeError as exc:
        raise OptionsBindingError(path, f"{cls.__name__} needs a no-argument constructor") from exc
    hints = _type_hints(cls)
    for name, annotation in hints.items():
        if name.startswith("_"):
            continue
        raw = lookup.get(name.casefold(), _MISSING)
        if raw is not _MISSING:
            setattr(instance, name, coerce(annotation, raw, combine_path(path, name)))
    return instance


def bind(options_type: Type[T], section: Mapping[str, Any] | None) -> T:
    """
    Bind a configuration section to ``options_type``.

    ``section`` is the nested mapping of string leaves produced by the
    configuration root. Missing members keep their defaults. A ``dict``
    options type receives the mapping itself.
    """
    section = section or {}
    if options_type is dict or typing.get_origin(options_type) is dict:
        return typing.cast(T, dict(section))
    if not is_structured_type(options_type):
        raise OptionsBindingError(
            getattr(options_type, "__name__", str(options_type)),
            "options type must be a dataclass, pydantic model, annotated class or dict",
        )
    return bind_structured(options_type, section, options_type.__name__)
