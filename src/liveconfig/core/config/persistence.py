"""Settings file persistence: tolerant reads and section-level rewrites."""

from __future__ import annotations

import asyncio
import codecs
import datetime as _dt
import enum
import json
import os
import re
import uuid
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path, PurePath
from typing import Any, BinaryIO, Dict, Iterator, MutableSet, Tuple, Union

import json5
from pydantic import BaseModel

from liveconfig.core.utils.logger import log_file_operation, log_warning

from .errors import CircularReferenceError, UnsupportedValueError
from .registry import combine_path, is_structured_value, iter_members

try:
    import msvcrt

    WINDOWS = True
except ImportError:
    WINDOWS = False
    msvcrt = None
    import fcntl

UTF8_BOM = codecs.BOM_UTF8
JSON_INDENT = 2

PathLike = Union[str, "os.PathLike[str]"]

# RFC 8259 number grammar; only literals matching it are written back verbatim.
_JSON_NUMBER = re.compile(r"-?(?:0|[1-9][0-9]*)(?:\.[0-9]+)?(?:[eE][+-]?[0-9]+)?\Z")


class NumberLiteral(float):
    """
    A float that remembers the text it was read from.

    Settings sections that an update does not touch are written back with
    their original number text (``1.10`` stays ``1.10``, ``1e400`` is not
    turned into ``Infinity``).
    """

    def __new__(cls, text: str) -> "NumberLiteral":
        value = super().__new__(cls, text)
        value.text = text
        return value

    def __reduce__(self):
        return (NumberLiteral, (self.text,))


def strip_bom(raw: bytes) -> Tuple[bytes, bool]:
    """Remove a leading UTF-8 byte-order mark, reporting whether one was present."""
    if raw.startswith(UTF8_BOM):
        return raw[len(UTF8_BOM):], True
    return raw, False


def parse_document(raw: bytes) -> Dict[str, Any]:
    """
    Parse settings bytes into an ordered dict.

    Comments and trailing commas are accepted. Fractional and exponent
    numbers are read as :class:`NumberLiteral`. The top-level value must be
    a JSON object. Raises ``ValueError`` for anything else.
    """
    body, _ = strip_bom(raw)
    document = json5.loads(body.decode("utf-8"), parse_float=NumberLiteral)
    if not isinstance(document, dict):
        raise ValueError(
            f"top-level JSON value must be an object, got {type(document).__name__}"
        )
    return document


def read_settings_document(path: PathLike) -> Tuple[Dict[str, Any], bool]:
    """Read a settings file, returning the parsed document and whether it had a BOM."""
    raw = Path(path).read_bytes()
    _, has_bom = strip_bom(raw)
    return parse_document(raw), has_bom


def _to_jsonable(value: Any, path: str, ancestors: MutableSet[int]) -> Any:
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, enum.Enum):
        return _to_jsonable(value.value, path, ancestors)
    if isinstance(value, Decimal):
        if value.is_finite() and value == value.to_integral_value():
            return int(value)
        if not value.is_finite():
            return float("nan") if value.is_nan() else float(value)
        return NumberLiteral(str(value))
    if isinstance(value, (_dt.date, _dt.time)):
        return value.isoformat()
    if isinstance(value, (uuid.UUID, PurePath)):
        return str(value)
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")

    sequence = isinstance(value, (list, tuple, set, frozenset))
    if not sequence and not is_structured_value(value):
        raise UnsupportedValueError(path, type(value).__name__)

    marker = id(value)
    if marker in ancestors:
        raise CircularReferenceError(path)
    ancestors.add(marker)
    try:
        if sequence:
            return [
                _to_jsonable(item, combine_path(path, str(index)), ancestors)
                for index, item in enumerate(value)
            ]
        return {
            name: _to_jsonable(member, combine_path(path, name), ancestors)
            for name, member in iter_members(value)
        }
    finally:
        ancestors.discard(marker)


def to_jsonable(value: Any, prefix: str = "") -> Any:
    """
    Convert an options value to plain JSON data, members in declaration order.

    Error paths start at ``prefix`` (the runtime type name when empty).
    Values that are neither scalars nor structures raise
    ``UnsupportedValueError``.
    """
    return _to_jsonable(value, prefix or type(value).__name__, set())


def _encode_float(value: float) -> str:
    text = getattr(value, "text", None)
    if text is not None and _JSON_NUMBER.match(text):
        return text
    return json.dumps(float(value), allow_nan=False)


def _encode(value: Any, level: int) -> str:
    """``json.dumps(value, indent=2, ensure_ascii=False)``, keeping number literals."""
    outer = "\n" + " " * (JSON_INDENT * level)
    inner = outer + " " * JSON_INDENT
    if isinstance(value, dict):
        if not value:
            return "{}"
        members = [
            f"{json.dumps(str(key), ensure_ascii=False)}: {_encode(member, level + 1)}"
            for key, member in value.items()
        ]
        return "{" + inner + ("," + inner).join(members) + outer + "}"
    if isinstance(value, (list, tuple)):
        if not value:
            return "[]"
        items = [_encode(item, level + 1) for item in value]
        return "[" + inner + ("," + inner).join(items) + outer + "]"
    if isinstance(value, float):
        return _encode_float(value)
    return json.dumps(value, ensure_ascii=False, allow_nan=False)


def render_document(
    document: Dict[str, Any], section_key: str, section_value: Any, has_bom: bool
) -> bytes:
    """
    Render ``document`` with ``section_key`` replaced by ``section_value``.

    Other top-level members keep their original order; a section missing
    from the document is appended last. Numbers read as ``NumberLiteral``
    keep their source text. Raises ``ValueError`` for NaN or infinite
    values, which JSON cannot represent.
    """
    members: Dict[str, Any] = {}
    found = False
    for key, value in document.items():
        if key == section_key:
            members[key] = section_value
            found = True
        else:
            members[key] = value
    if not found:
        members[section_key] = section_value

    text = _encode(members, 0) + "\n"
    payload = text.encode("utf-8")
    return UTF8_BOM + payload if has_bom else payload


def _lock(handle: BinaryIO) -> None:
    if WINDOWS:
        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)
    else:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)


def _unlock(handle: BinaryIO) -> None:
    if WINDOWS:
        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
    else:
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


@contextmanager
def exclusive_write(path: PathLike) -> Iterator[BinaryIO]:
    """
    Open an existing file for exclusive rewriting.

    The lock is non-blocking: if another writer holds it, ``OSError`` is
    raised before the file is truncated.
    """
    handle = open(path, "r+b")
    try:
        _lock(handle)
        try:
            handle.seek(0)
            handle.truncate()
            yield handle
            handle.flush()
            os.fsync(handle.fileno())
        finally:
            _unlock(handle)
    finally:
        handle.close()


def _write_payload(path: Path, payload: bytes) -> None:
    with exclusive_write(path) as handle:
        handle.write(payload)


def _patch_bytes(raw: bytes, section_key: str, section_value: Any) -> bytes:
    _, has_bom = strip_bom(raw)
    return render_document(parse_document(raw), section_key, section_value, has_bom)


def _report_failure(path: Path, exc: Exception) -> None:
    log_warning(
        "persistence",
        "Couldn't write the settings",
        context=f"path={path}; cause={exc.__class__.__name__}: {exc}",
    )


def patch_section(path: PathLike, section_key: str, new_value: Any) -> bool:
    """
    Replace one top-level section of a JSON settings file.

    Returns ``False`` (after logging a warning) when the file is missing,
    unreadable, malformed, locked by another writer or not writable, and
    when the result would hold a NaN or infinite number. Values that cannot
    be serialized raise before the file is opened.
    """
    target = Path(path)
    section_value = to_jsonable(new_value, section_key)
    try:
        payload = _patch_bytes(target.read_bytes(), section_key, section_value)
        _write_payload(target, payload)
    except (OSError, ValueError) as exc:
        _report_failure(target, exc)
        return False
    log_file_operation("write", str(target), True)
    return True


async def patch_section_async(path: PathLike, section_key: str, new_value: Any) -> bool:
    """Async variant of :func:`patch_section`; file I/O runs via ``asyncio.to_thread``."""
    target = Path(path)
    section_value = to_jsonable(new_value, section_key)
    try:
        raw = await asyncio.to_thread(target.read_bytes)
        payload = _patch_bytes(raw, section_key, section_value)
        await asyncio.to_thread(_write_payload, target, payload)
    except (OSError, ValueError) as exc:
        _report_failure(target, exc)
        return False
    log_file_operation("write", str(target), True)
    return True
