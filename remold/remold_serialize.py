from __future__ import annotations

import dataclasses
import datetime
import json
import re
from typing import Any, List, Optional, Tuple
import collections.abc

import yaml

from remold.remold_datatypes import SerializationError, TypeMismatch, to_value


# --------------------------
# Helpers
# --------------------------

def _norm_text(data: bytes | bytearray | str, *, encoding: Optional[str] = None) -> str:
    if isinstance(data, (bytes, bytearray)):
        enc = encoding or 'utf-8'
        try:
            return data.decode(enc)
        except (LookupError, UnicodeDecodeError) as e:
            raise SerializationError(f"Cannot decode input as {enc}: {e}") from e
    if isinstance(data, str):
        return data
    raise SerializationError(f"Expected text or bytes, got {type(data).__name__}")


def _encoding_from_content_type(content_type: Optional[str]) -> Optional[str]:
    if not content_type:
        return None
    m = re.search(r'charset\s*=\s*([^\s;]+)', content_type, re.IGNORECASE)
    if m:
        return m.group(1).strip('"').strip("'")
    return None


def _to_builtin(obj: Any) -> Any:
    # Plain dict/list tree; YAML timestamps become ISO strings.
    if isinstance(obj, (list, tuple)):
        return [_to_builtin(x) for x in obj]
    if isinstance(obj, collections.abc.Mapping):
        return {k: _to_builtin(v) for k, v in obj.items()}
    if isinstance(obj, (datetime.date, datetime.datetime)):
        return obj.isoformat()
    return obj


def detect_format(content_type: Optional[str] = None, data_hint: Optional[str] = None) -> Optional[str]:
    """
    Returns a canonical format name among: 'json', 'yaml'.
    Uses Content-Type first; falls back to simple data sniffing if provided.
    """
    ct = (content_type or "").lower()
    if 'json' in ct:
        return 'json'
    if 'yaml' in ct or 'x-yaml' in ct:
        return 'yaml'

    if data_hint is not None:
        s = data_hint.lstrip()
        if s.startswith('{') or s.startswith('['):
            return 'json'
    return None


# --------------------------
# Public API
# --------------------------

def deserialize(data: bytes | bytearray | str,
                *,
                content_type: Optional[str] = None,
                fmt: Optional[str] = None) -> Any:
    """
    Convert wire data (bytes/string) to a tree value.
    Supported fmt: 'json', 'yaml'. If fmt is None, uses content_type, then
    sniffing; text that does not look like JSON is read as YAML.
    """
    enc = _encoding_from_content_type(content_type)
    text = _norm_text(data, encoding=enc)
    f = (fmt or detect_format(content_type, text) or 'yaml').lower()
    if f == 'json':
        try:
            loaded = json.loads(text)
        except json.JSONDecodeError as je:
            # Declared JSON that is really YAML still loads; report the JSON error otherwise.
            try:
                loaded = yaml.safe_load(text)
            except yaml.YAMLError:
                raise SerializationError(f"Invalid JSON: {je}") from je
    elif f == 'yaml':
        try:
            loaded = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise SerializationError(f"Invalid YAML: {e}") from e
    else:
        raise SerializationError(f"Unsupported serialization format: {fmt!r}")
    try:
        return to_value(_to_builtin(loaded))
    except TypeMismatch as e:
        raise SerializationError(str(e)) from e


def serialize(value: Any,
              *,
              fmt: str = 'json',
              pretty: bool = True) -> str:
    """
    Convert a tree value into a textual representation.
    - fmt: 'json' | 'yaml'
    """
    f = (fmt or '').lower()
    built = _to_builtin(value)
    if f == 'json':
        return json.dumps(built, ensure_ascii=False, indent=2 if pretty else None)
    if f == 'yaml':
        return yaml.safe_dump(built, sort_keys=False, allow_unicode=True,
                              default_flow_style=None if pretty else True)
    raise SerializationError(f"Unsupported serialization format: {fmt!r}")


def to_tree(obj: Any) -> Any:
    """Decode caller-typed data (dataclasses, mappings, sequences) into a tree value."""
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        obj = dataclasses.asdict(obj)
    if isinstance(obj, collections.abc.Mapping):
        return to_value({k: to_tree(v) for k, v in obj.items()})
    if isinstance(obj, (list, tuple)):
        return [to_tree(v) for v in obj]
    if isinstance(obj, (datetime.date, datetime.datetime)):
        return obj.isoformat()
    return to_value(obj)


def from_tree(value: Any, into: Any = None) -> Any:
    """Encode a tree value into a target shape.

    - into=None: the value itself
    - a dataclass type: built from the object's keys
    - any other callable: called with the value
    """
    if into is None:
        return value
    if dataclasses.is_dataclass(into) and isinstance(into, type):
        if not isinstance(value, dict):
            raise TypeMismatch(f"Cannot build {into.__name__} from a non-object value")
        names = {f.name for f in dataclasses.fields(into)}
        return into(**{k: v for k, v in value.items() if k in names})
    if callable(into):
        return into(value)
    raise TypeError(f"Cannot encode into {into!r}")


def load_operations(data: bytes | bytearray | str,
                    *,
                    fmt: Optional[str] = None) -> List[Tuple[str, str]]:
    """
    Reads an operation list from JSON or YAML text.

    Each entry is either a mapping with 'source' and 'destination' keys or a
    two-element [getter, setter] list. Returns (getter, setter) text pairs.
    """
    loaded = deserialize(data, fmt=fmt)
    if not isinstance(loaded, list):
        raise SerializationError("An operation list must be an array")
    pairs: List[Tuple[str, str]] = []
    for i, entry in enumerate(loaded):
        if isinstance(entry, dict):
            missing = [k for k in ('source', 'destination') if k not in entry]
            if missing:
                raise SerializationError(f"Operation {i} is missing {', '.join(missing)}")
            getter, setter = entry['source'], entry['destination']
        elif isinstance(entry, list) and len(entry) == 2:
            getter, setter = entry
        else:
            raise SerializationError(
                f"Operation {i} must be an object with 'source'/'destination' or a [getter, setter] pair")
        if not isinstance(getter, str) or not isinstance(setter, str):
            raise SerializationError(f"Operation {i}: getter and setter must be strings")
        pairs.append((getter, setter))
    return pairs


__all__ = [
    "deserialize",
    "serialize",
    "detect_format",
    "to_tree",
    "from_tree",
    "load_operations",
]
