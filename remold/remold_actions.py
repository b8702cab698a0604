"""
Action registry and the standard library of built-in actions.
"""
import inspect
from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Optional

from remold.remold_datatypes import (
    RemoldError, UnknownAction, ActionError, TypeMismatch,
    type_name, is_number, as_string
)


class Action(ABC):
    """A named function from resolved argument values to a single value."""
    name: str = "<action>"

    @abstractmethod
    def evaluate(self, args: List[Any]) -> Any:
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class FunctionAction(Action):
    """Adapts a plain callable to the Action interface.

    The callable receives the resolved values positionally. Its signature
    is used to check arity before it is invoked.
    """
    def __init__(self, name: str, fn: Callable[..., Any]):
        if not callable(fn):
            raise TypeError(f"Action '{name}' must be callable, not {type(fn).__name__}")
        self.name = name
        self.fn = fn
        try:
            self._signature: Optional[inspect.Signature] = inspect.signature(fn)
        except (TypeError, ValueError):
            self._signature = None

    def evaluate(self, args: List[Any]) -> Any:
        if self._signature is not None:
            try:
                self._signature.bind(*args)
            except TypeError as e:
                raise ActionError(f"invalid arguments for ({self.name}): {e}") from e
        try:
            return self.fn(*args)
        except RemoldError:
            raise
        except Exception as e:
            raise ActionError(f"Action '{self.name}' failed: {e}") from e


class ActionRegistry:
    """Maps action names to Action objects.

    Registration happens while building. `freeze()` returns a read-only
    snapshot that compiled transformations hold on to.
    """
    def __init__(self, actions: Optional[Dict[str, Action]] = None):
        self._actions: Dict[str, Action] = dict(actions or {})
        self._frozen = False

    def register(self, name: str, evaluator: Any) -> Action:
        if self._frozen:
            raise TypeError("Cannot register actions on a frozen registry.")
        if not isinstance(name, str) or not name:
            raise ValueError("Action name must be a non-empty string.")
        action = evaluator if isinstance(evaluator, Action) else FunctionAction(name, evaluator)
        self._actions[name] = action
        return action

    def get(self, name: str) -> Action:
        try:
            return self._actions[name]
        except KeyError:
            raise UnknownAction(name) from None

    def names(self) -> Iterable[str]:
        return self._actions.keys()

    def __contains__(self, name: Any) -> bool:
        return name in self._actions

    def __len__(self) -> int:
        return len(self._actions)

    def copy(self) -> 'ActionRegistry':
        return ActionRegistry(dict(self._actions))

    def freeze(self) -> 'ActionRegistry':
        snapshot = ActionRegistry()
        snapshot._actions = MappingProxyType(dict(self._actions))
        snapshot._frozen = True
        return snapshot

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __repr__(self) -> str:
        names = ', '.join(sorted(self._actions))
        return f"<ActionRegistry actions=[{names}]{' frozen' if self._frozen else ''}>"


# ===================================================================
# The Standard Library
# ===================================================================
class StdLib:
    """Contains Python implementations for all built-in actions.

    Every method named `_<action>` is registered under `<action>`.
    A null argument means the value was absent in the input.
    """

    def install(self, registry: ActionRegistry) -> ActionRegistry:
        for name, member in inspect.getmembers(self):
            if name.startswith('_') and not name.startswith('__') and callable(member):
                registry.register(name[1:], member)
        return registry

    def _const(self, value):
        return value

    def _join(self, sep, first, *rest):
        if not isinstance(sep, str):
            raise TypeMismatch(f"join separator must be a string, got {type_name(sep)}")
        parts = [as_string(v) for v in (first, *rest) if v is not None]
        if not parts:
            return None
        return sep.join(parts)

    def _len(self, value):
        if value is None:
            return None
        if isinstance(value, (str, list, dict)):
            return len(value)
        raise TypeMismatch(f"len expects a string, array or object, got {type_name(value)}")

    def _count(self, value):
        if value is None:
            return 0
        if isinstance(value, list):
            return len(value)
        raise TypeMismatch(f"count expects an array, got {type_name(value)}")

    def _strip_start(self, prefix, value):
        return _strip_affix('strip_start', prefix, value, str.removeprefix)

    def _strip_end(self, suffix, value):
        return _strip_affix('strip_end', suffix, value, str.removesuffix)

    def _sum(self, first, *rest):
        total = 0
        for v in (first, *rest):
            if v is None:
                continue
            if isinstance(v, list):
                # Arrays contribute their numeric elements.
                for item in v:
                    if item is not None:
                        total += _addend(item)
                continue
            total += _addend(v)
        return total

    def _trim(self, value):
        return _strip_ws('trim', value, str.strip)

    def _trim_start(self, value):
        return _strip_ws('trim_start', value, str.lstrip)

    def _trim_end(self, value):
        return _strip_ws('trim_end', value, str.rstrip)


def _addend(v):
    if not is_number(v):
        raise TypeMismatch(f"sum expects numbers, got {type_name(v)}")
    return v


def _strip_affix(action, affix, value, fn):
    if not isinstance(affix, str):
        raise TypeMismatch(f"{action} expects a string to remove, got {type_name(affix)}")
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeMismatch(f"{action} expects a string, got {type_name(value)}")
    return fn(value, affix)


def _strip_ws(action, value, fn):
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeMismatch(f"{action} expects a string, got {type_name(value)}")
    return fn(value)


def default_registry() -> ActionRegistry:
    """A fresh registry holding only the built-in actions."""
    return StdLib().install(ActionRegistry())


# Registry that builders copy from when none is given.
DEFAULT_REGISTRY = default_registry()


def register_action(name: str, evaluator: Any) -> Action:
    """Adds or overrides an action on the default registry.

    Transformations snapshot the registry when they are built, so register
    custom actions before building the transformations that use them.
    """
    return DEFAULT_REGISTRY.register(name, evaluator)


__all__ = [
    "Action", "FunctionAction", "ActionRegistry", "StdLib",
    "DEFAULT_REGISTRY", "default_registry", "register_action",
]