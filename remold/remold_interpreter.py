"""
The core remold interpreter, containing the Evaluator and PathResolver.
"""
import copy
import os
import sys
from typing import Any, List, Optional, Tuple

from remold.remold_datatypes import (
    GetPath, SetPath, Call, Literal, Field, Index, Modifier, ReadExpr,
    PathConflict, ModifierTypeMismatch, IndexLimitExceeded, type_name
)
from remold.remold_actions import ActionRegistry


def _max_index() -> Optional[int]:
    # Opt-in cap on auto-created array sizes; unset or invalid means no cap.
    raw = os.environ.get("REMOLD_MAX_INDEX")
    try:
        return int(raw) if raw else None
    except ValueError:
        return None


class PathResolver:
    """Reads paths from the input and writes setter targets into the output."""

    def __init__(self, evaluator: 'Evaluator'):
        self.evaluator = evaluator
        self.max_index = _max_index()

    # --- Reading ---

    def resolve(self, path: GetPath, source: Any) -> Any:
        """Walks a GetPath over the input. Anything missing resolves to None."""
        current = source
        for segment in path.segments:
            current = self._read_segment(current, segment)
            if current is None:
                return None
        return current

    def _read_segment(self, container: Any, segment) -> Any:
        match segment:
            case Field(name=name):
                if isinstance(container, dict):
                    return container.get(name)
                return None
            case Index(index=i):
                if isinstance(container, list) and i < len(container):
                    return container[i]
                return None
            case _:
                raise TypeError(f"Unsupported path segment: {type(segment).__name__}")

    # --- Writing ---

    def assign(self, root: Any, target: SetPath, value: Any) -> Any:
        """Writes value at target inside root and returns the (possibly new) root.

        Missing or null slots are created on the way down; the written value
        is deep-copied so the output never shares structure with the input.
        """
        holder: List[Any] = [root]
        container, key = holder, 0
        for depth, segment in enumerate(target.segments):
            container, key = self._descend(container, key, segment, target, depth)
        self._write_terminal(container, key, target, copy.deepcopy(value))
        return holder[0]

    def _slot(self, container: Any, key: Any) -> Any:
        if isinstance(container, dict):
            return container.get(key)
        return container[key]

    def _where(self, target: SetPath, depth: int) -> str:
        from remold.remold_printer import Printer
        prefix = Printer().pformat(SetPath(target.segments[:depth]))
        return f"'{prefix}'" if prefix else "the output root"

    def _descend(self, container: Any, key: Any, segment, target: SetPath, depth: int) -> Tuple[Any, Any]:
        slot = self._slot(container, key)
        match segment:
            case Field(name=name):
                if slot is None:
                    slot = {}
                    container[key] = slot
                elif not isinstance(slot, dict):
                    raise PathConflict(
                        f"Cannot set field {name!r}: {self._where(target, depth)} is {type_name(slot)}, not object")
                return slot, name
            case Index(index=i):
                if self.max_index is not None and i > self.max_index:
                    raise IndexLimitExceeded(f"Array index {i} exceeds REMOLD_MAX_INDEX ({self.max_index})")
                if slot is None:
                    slot = [None] * (i + 1)
                    container[key] = slot
                elif isinstance(slot, list):
                    if i >= len(slot):
                        slot.extend([None] * (i + 1 - len(slot)))
                else:
                    raise PathConflict(
                        f"Cannot set index [{i}]: {self._where(target, depth)} is {type_name(slot)}, not array")
                return slot, i
            case _:
                raise TypeError(f"Unsupported path segment: {type(segment).__name__}")

    def _write_terminal(self, container: Any, key: Any, target: SetPath, value: Any) -> None:
        modifier = target.modifier
        if modifier is Modifier.NONE:
            container[key] = value
            return

        depth = len(target.segments)
        existing = self._slot(container, key)

        if modifier in (Modifier.EXTEND, Modifier.MERGE_INDEX) and not isinstance(value, list):
            raise ModifierTypeMismatch(f"'{modifier.value}' requires an array value, got {type_name(value)}")
        if modifier is Modifier.MERGE_OBJECT and not isinstance(value, dict):
            raise ModifierTypeMismatch(f"'{{}}' requires an object value, got {type_name(value)}")

        if modifier is Modifier.MERGE_OBJECT:
            if existing is None:
                container[key] = value
            elif isinstance(existing, dict):
                existing.update(value)
            else:
                raise PathConflict(f"Cannot merge an object into {self._where(target, depth)}: it is {type_name(existing)}")
            return

        if existing is None:
            if modifier is Modifier.MERGE_INDEX:
                # Nothing to merge onto: the source array becomes the destination.
                container[key] = value
                return
            existing = []
            container[key] = existing
        elif not isinstance(existing, list):
            raise PathConflict(
                f"Cannot apply '{modifier.value}' to {self._where(target, depth)}: it is {type_name(existing)}, not array")

        match modifier:
            case Modifier.APPEND:
                existing.append(value)
            case Modifier.EXTEND:
                existing.extend(value)
            case Modifier.MERGE_INDEX:
                # Only overlapping positions are replaced; surplus source items are dropped.
                for i in range(min(len(existing), len(value))):
                    existing[i] = value[i]


class Evaluator:
    """Evaluates getter expressions against an input tree."""

    def __init__(self, registry: ActionRegistry):
        self.registry = registry
        self.path_resolver = PathResolver(self)

    def _dbg(self, *parts):
        if os.environ.get("REMOLD_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    def eval(self, expr: ReadExpr, source: Any) -> Any:
        match expr:
            case GetPath():
                return self.path_resolver.resolve(expr, source)
            case Literal():
                return expr.value
            case Call():
                # Arguments resolve depth-first, left to right, before the action runs.
                args = [self.eval(arg, source) for arg in expr.args]
                action = self.registry.get(expr.action)
                result = action.evaluate(args)
                self._dbg("CALL", expr.action, [type_name(a) for a in args], "->", type_name(result))
                return result
            case _:
                raise TypeError(f"Cannot evaluate {type(expr).__name__}")

    def write(self, root: Any, target: SetPath, value: Any) -> Any:
        self._dbg("SET", target, "<-", type_name(value))
        return self.path_resolver.assign(root, target, value)
