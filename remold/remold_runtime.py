"""
Builds and runs transformations: the public entry points of the engine.
"""
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Literal, Optional, Tuple, Union

from remold.remold_datatypes import RemoldError, ParseError, ReadExpr, SetPath
from remold.remold_actions import ActionRegistry, DEFAULT_REGISTRY
from remold.remold_parser import ExprParser
from remold.remold_transformer import parse_getter, parse_setter
from remold.remold_interpreter import Evaluator
from remold.remold_serialize import deserialize, load_operations, to_tree, from_tree


@dataclass(frozen=True)
class Operation:
    """A compiled (getter, setter) pair."""
    getter: ReadExpr
    setter: SetPath
    getter_text: Optional[str] = field(default=None, compare=False)
    setter_text: Optional[str] = field(default=None, compare=False)

    @classmethod
    def parse(cls, getter: Union[str, ReadExpr], setter: Union[str, SetPath],
              parser: Optional[ExprParser] = None, **options) -> 'Operation':
        """Compiles text operands. `options` go to `parse_getter`."""
        g = parse_getter(getter, parser, **options) if isinstance(getter, str) else getter
        s = parse_setter(setter, parser) if isinstance(setter, str) else setter
        if not isinstance(g, ReadExpr):
            raise ParseError(f"Getter must be text or a ReadExpr, not {type(g).__name__}")
        if not isinstance(s, SetPath):
            raise ParseError(f"Setter must be text or a SetPath, not {type(s).__name__}")
        return cls(g, s,
                   getter if isinstance(getter, str) else None,
                   setter if isinstance(setter, str) else None)

    def __str__(self) -> str:
        return f"{self.getter} -> {self.setter}"


@dataclass
class ExecutionResult:
    """The structured result of running a transformation."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None
    operation_index: Optional[int] = None
    error: Optional[BaseException] = field(default=None, repr=False)

    @classmethod
    def from_error(cls, e: BaseException) -> 'ExecutionResult':
        return cls(status='error',
                   error_message=f"{type(e).__name__}: {e}",
                   operation_index=getattr(e, 'operation_index', None),
                   error=e)

    def format_error(self) -> str:
        """Formats the error with the failing operation and, for parse errors, a caret."""
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Unknown error")
        if self.operation_index is not None:
            op = getattr(self.error, 'operation', None)
            if isinstance(op, Operation):
                where = f" ({op})"
            elif isinstance(op, tuple) and len(op) == 2:
                where = f" ({op[0]!r} -> {op[1]!r})"
            else:
                where = ""
            msg = f"Error in operation {self.operation_index}{where}: {msg}"
        if isinstance(self.error, ParseError):
            snippet = self.error.snippet()
            if snippet:
                msg = f"{msg}\n{snippet}"
        return msg


class Transformation:
    """An immutable, ordered list of operations bound to a frozen action registry."""

    def __init__(self, operations: Iterable[Operation], registry: Optional[ActionRegistry] = None):
        self.operations: Tuple[Operation, ...] = tuple(operations)
        registry = registry if registry is not None else DEFAULT_REGISTRY
        self.registry = registry if registry.frozen else registry.freeze()

    def __len__(self) -> int:
        return len(self.operations)

    def __repr__(self) -> str:
        return f"<Transformation operations={len(self.operations)}>"

    def apply(self, source: Any) -> Any:
        """Runs every operation against `source` and returns the new output tree."""
        if not self.operations:
            return {}
        return self._fold(source, None)

    def apply_to_destination(self, source: Any, destination: Any) -> Any:
        """Runs the operations onto an existing destination and returns the resulting root.

        Containers in `destination` are updated in place; a setter that
        replaces the root returns the new root instead.
        """
        return self._fold(source, destination)

    def apply_from_str(self, text: Union[str, bytes], fmt: Optional[str] = None) -> Any:
        return self.apply(deserialize(text, fmt=fmt))

    def apply_to(self, obj: Any, into: Any = None) -> Any:
        return from_tree(self.apply(to_tree(obj)), into)

    def run(self, source: Any) -> ExecutionResult:
        try:
            return ExecutionResult(status='success', value=self.apply(source))
        except RemoldError as e:
            return ExecutionResult.from_error(e)

    def _fold(self, source: Any, root: Any) -> Any:
        evaluator = Evaluator(self.registry)
        for index, op in enumerate(self.operations):
            evaluator._dbg("OP", index, op)
            try:
                value = evaluator.eval(op.getter, source)
                root = evaluator.write(root, op.setter, value)
            except Exception as e:
                e.operation_index = index
                e.operation = op
                raise
        return root


class TransformBuilder:
    """Collects (getter, setter) pairs and compiles them into a Transformation.

    Parse errors are raised from `add` itself, annotated with the index of
    the offending pair. With `strict=True` action names are checked against
    the registry while parsing instead of when the transformation runs.
    """

    def __init__(self, registry: Optional[ActionRegistry] = None, strict: bool = False,
                 action_parsers: Optional[dict] = None):
        self.registry = registry if registry is not None else DEFAULT_REGISTRY
        self.strict = strict
        self.action_parsers = action_parsers
        self._owns_registry = False
        self._operations: List[Operation] = []

    @classmethod
    def from_text(cls, text: Union[str, bytes], fmt: Optional[str] = None, **kwargs) -> 'TransformBuilder':
        """A builder preloaded with the operation list in `text` (JSON or YAML)."""
        return cls(**kwargs).add_operations(load_operations(text, fmt=fmt))

    def _options(self) -> dict:
        return {'action_parsers': self.action_parsers,
                'known_actions': self.registry if self.strict else None}

    def register(self, name: str, evaluator: Any) -> 'TransformBuilder':
        """Registers an action for this builder only."""
        if not self._owns_registry:
            self.registry = self.registry.copy()
            self._owns_registry = True
        self.registry.register(name, evaluator)
        return self

    def add(self, getter: Union[str, ReadExpr], setter: Union[str, SetPath]) -> 'TransformBuilder':
        index = len(self._operations)
        try:
            op = Operation.parse(getter, setter, **self._options())
        except ParseError as e:
            e.operation_index = index
            e.operation = (getter, setter)
            raise
        self._operations.append(op)
        return self

    def add_operation(self, operation: Operation) -> 'TransformBuilder':
        if not isinstance(operation, Operation):
            raise TypeError(f"Expected an Operation, got {type(operation).__name__}")
        self._operations.append(operation)
        return self

    def add_operations(self, pairs: Iterable[Any]) -> 'TransformBuilder':
        for pair in pairs:
            if isinstance(pair, Operation):
                self.add_operation(pair)
            else:
                getter, setter = pair
                self.add(getter, setter)
        return self

    def __len__(self) -> int:
        return len(self._operations)

    def build(self) -> Transformation:
        return Transformation(self._operations, self.registry.freeze())


__all__ = ["Operation", "ExecutionResult", "Transformation", "TransformBuilder"]
