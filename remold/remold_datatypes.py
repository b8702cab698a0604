"""
Defines the core data types for the remold transformation engine.

Tree values are plain JSON-compatible Python data (None, bool, int, float,
str, list, dict). This module provides the helpers that query and coerce
them, the error taxonomy shared by every stage, and the classes for parsed
getter and setter expressions.
"""

from abc import ABC
from enum import Enum
from typing import List, Dict, Any, Optional
import collections.abc
import json

# =================================================================
# Errors
# =================================================================

class RemoldError(Exception):
    """Base class for every error raised by the engine."""
    pass


class ParseError(RemoldError, ValueError):
    """Malformed getter or setter text."""
    def __init__(self, message: str, text: Optional[str] = None, pos: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.text = text
        self.pos = pos

    def snippet(self) -> str:
        """Returns the offending text with a caret under the failing column."""
        if self.text is None:
            return ""
        caret = " " * max(self.pos or 0, 0)
        return f"  {self.text}\n  {caret}^"

    def __str__(self) -> str:
        if self.text is None:
            return self.message
        if self.pos is None:
            return f"{self.message}: {self.text!r}"
        return f"{self.message} (col {self.pos}): {self.text!r}"


class UnknownAction(RemoldError, LookupError):
    def __init__(self, name: str):
        super().__init__(f"Action '{name}' is not registered.")
        self.name = name


class ActionError(RemoldError):
    """An action failed while evaluating its resolved arguments."""
    pass


class TypeMismatch(ActionError, TypeError):
    """A value had the wrong variant for the requested coercion or action."""
    pass


class PathConflict(RemoldError, TypeError):
    """A setter segment clashes with structure already present in the output."""
    pass


class ModifierTypeMismatch(RemoldError, TypeError):
    """The resolved value has the wrong variant for the setter's modifier."""
    pass


class IndexLimitExceeded(RemoldError, ValueError):
    """A setter index is above the configured REMOLD_MAX_INDEX."""
    pass


class SerializationError(RemoldError, ValueError):
    pass

# =================================================================
# Tree value helpers
# =================================================================

def type_name(value: Any) -> str:
    """Names the variant of a tree value for messages."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_value(obj: Any) -> Any:
    """Normalizes a tree-like Python literal into a tree value.

    Tuples become lists and other mappings become dicts. Non-string keys
    and leaves that are not JSON-compatible raise TypeMismatch.
    """
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj
    if isinstance(obj, collections.abc.Mapping):
        out: Dict[str, Any] = {}
        for k, v in obj.items():
            if not isinstance(k, str):
                raise TypeMismatch(f"Object keys must be strings, not {type(k).__name__}")
            out[k] = to_value(v)
        return out
    if isinstance(obj, (list, tuple)):
        return [to_value(v) for v in obj]
    raise TypeMismatch(f"Cannot use {type(obj).__name__} as a tree value")


def value_equals(a: Any, b: Any) -> bool:
    """Structural equality that keeps bools and numbers apart."""
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, list):
        return isinstance(b, list) and len(a) == len(b) and all(value_equals(x, y) for x, y in zip(a, b))
    if isinstance(a, dict):
        if not isinstance(b, dict) or a.keys() != b.keys():
            return False
        return all(value_equals(a[k], b[k]) for k in a)
    if is_number(a):
        return is_number(b) and a == b
    return type_name(a) == type_name(b) and a == b


def as_string(value: Any) -> str:
    """String form used for display and concatenation.

    Strings are returned as-is; every other variant is rendered as compact JSON.
    """
    if isinstance(value, str):
        return value
    if value is None or isinstance(value, (bool, int, float, list, dict)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    raise TypeMismatch(f"Cannot render {type_name(value)} as a string")


def as_number(value: Any):
    if not is_number(value):
        raise TypeMismatch(f"Expected a number, got {type_name(value)}")
    return value


def as_array(value: Any) -> list:
    if not isinstance(value, list):
        raise TypeMismatch(f"Expected an array, got {type_name(value)}")
    return value


def as_object(value: Any) -> dict:
    if not isinstance(value, dict):
        raise TypeMismatch(f"Expected an object, got {type_name(value)}")
    return value

# =================================================================
# Path segments
# =================================================================

class PathSegment(ABC):
    """Abstract base class for all components of a path."""
    pass


class Field(PathSegment):
    """An object key segment, e.g. 'user' in `user.name` or `["a.b"]`."""
    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return f"Field<{self.name!r}>"

    def __eq__(self, other):
        return isinstance(other, Field) and self.name == other.name

    def __hash__(self):
        return hash(("field", self.name))


class Index(PathSegment):
    """An array position segment, e.g. `[0]`."""
    def __init__(self, index: int):
        if index < 0:
            raise ValueError("Index segments must be non-negative.")
        self.index = index

    def __repr__(self) -> str:
        return f"Index({self.index})"

    def __eq__(self, other):
        return isinstance(other, Index) and self.index == other.index

    def __hash__(self):
        return hash(("index", self.index))


class Modifier(Enum):
    """Write policy applied at the last segment of a setter."""
    NONE = ""
    APPEND = "[]"
    EXTEND = "[+]"
    MERGE_INDEX = "[-]"
    MERGE_OBJECT = "{}"

# =================================================================
# Expressions
# =================================================================

class _Printable:
    """Printing through the canonical Printer. Equality is structural per subclass."""
    _str_repr: Optional[str] = None

    def to_str_repr(self) -> str:
        from remold.remold_printer import Printer
        if self._str_repr is None:
            self._str_repr = Printer().pformat(self)
        return self._str_repr

    def __str__(self) -> str:
        return self.to_str_repr()


class ReadExpr(_Printable, ABC):
    """Abstract base class for getter expressions."""
    pass


class GetPath(ReadExpr):
    """Reads the value at a path of the input. No segments means the whole input."""
    def __init__(self, segments: List[PathSegment]):
        self.segments = tuple(segments)

    def __getitem__(self, key):
        return self.segments[key]

    def __len__(self) -> int:
        return len(self.segments)

    def __eq__(self, other):
        return isinstance(other, GetPath) and self.segments == other.segments

    def __hash__(self):
        return hash(("get", self.segments))

    def __repr__(self) -> str:
        return f"<GetPath segments={list(self.segments)!r}>"


class Call(ReadExpr):
    """Invokes a named action on the values of its argument expressions.

    The whole input has no spelling inside an argument list, so an empty
    GetPath is rejected as an argument.
    """
    def __init__(self, action: str, args: List[ReadExpr]):
        self.action = action
        self.args = tuple(args)
        for arg in self.args:
            if isinstance(arg, GetPath) and not arg.segments:
                raise ValueError(f"An empty path cannot be an argument of '{action}'")

    def __eq__(self, other):
        return isinstance(other, Call) and self.action == other.action and self.args == other.args

    def __hash__(self):
        return hash(("call", self.action, self.args))

    def __repr__(self) -> str:
        return f"<Call {self.action} args={list(self.args)!r}>"


class Literal(ReadExpr):
    """A constant tree value, e.g. the payload of `const(...)`."""
    def __init__(self, value: Any):
        self.value = value

    def __eq__(self, other):
        return isinstance(other, Literal) and value_equals(self.value, other.value)

    def __hash__(self):
        if isinstance(self.value, (list, dict)):
            return hash(("literal", type_name(self.value), len(self.value)))
        return hash(("literal", type_name(self.value), self.value))

    def __repr__(self) -> str:
        return f"Literal({self.value!r})"


class SetPath(_Printable):
    """Where and how a value is written into the output."""
    def __init__(self, segments: List[PathSegment], modifier: Modifier = Modifier.NONE):
        self.segments = tuple(segments)
        self.modifier = modifier

    def __getitem__(self, key):
        return self.segments[key]

    def __len__(self) -> int:
        return len(self.segments)

    def __eq__(self, other):
        return (isinstance(other, SetPath) and self.segments == other.segments
                and self.modifier is other.modifier)

    def __hash__(self):
        return hash(("set", self.segments, self.modifier))

    def __repr__(self) -> str:
        return f"<SetPath segments={list(self.segments)!r} modifier={self.modifier.name}>"


__all__ = [
    "RemoldError", "ParseError", "UnknownAction", "ActionError", "TypeMismatch",
    "PathConflict", "ModifierTypeMismatch", "IndexLimitExceeded", "SerializationError",
    "type_name", "is_number", "to_value", "value_equals",
    "as_string", "as_number", "as_array", "as_object",
    "PathSegment", "Field", "Index", "Modifier",
    "ReadExpr", "GetPath", "Call", "Literal", "SetPath",
]
