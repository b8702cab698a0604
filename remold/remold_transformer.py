"""
Transforms the raw parser nodes into expression objects from remold_datatypes.

Call arguments arrive as raw text. Here they are read as a `const` JSON
literal, handed to a registered action parser, or parsed as a getter or
quoted string.
"""
import json
from typing import Any, Callable, Dict, Iterable, List, Optional

from remold.remold_datatypes import (
    ParseError, GetPath, SetPath, Call, Literal, Field, Index, Modifier,
    ReadExpr, to_value, TypeMismatch
)
from remold.remold_parser import ExprParser

# Hooks keyed by action name: fn(name, raw_arg_texts) -> ReadExpr
ActionParserFn = Callable[[str, List[str]], ReadExpr]
ACTION_PARSERS: Dict[str, ActionParserFn] = {}

_MODIFIERS = {m.value: m for m in Modifier if m is not Modifier.NONE}
_TAGS = {'get-path', 'set-path', 'name', 'key', 'index', 'modifier', 'call', 'action', 'arg', 'string'}


def register_action_parser(name: str, fn: ActionParserFn) -> None:
    """Registers custom argument syntax for the action `name`.

    The hook receives the action name and the raw text of each top-level
    argument and returns a ReadExpr. Hooks are consulted before the
    built-in syntax, so they can also replace it.
    """
    if not callable(fn):
        raise TypeError(f"Action parser for '{name}' must be callable")
    ACTION_PARSERS[name] = fn


def _nodes(children: Any) -> Iterable[dict]:
    """Yields tagged nodes, flattening lists and untagged wrappers."""
    if isinstance(children, list):
        for child in children:
            yield from _nodes(child)
    elif isinstance(children, dict):
        if children.get('tag') in _TAGS:
            yield children
        else:
            yield from _nodes(children.get('children', []))


class ExprTransformer:
    def __init__(self, source: Optional[str] = None, parser: Optional[ExprParser] = None,
                 action_parsers: Optional[Dict[str, ActionParserFn]] = None,
                 known_actions: Optional[Any] = None):
        # Full expression text, used to point errors at a column.
        self.source = source
        self.parser = parser or ExprParser()
        self.action_parsers = ACTION_PARSERS if action_parsers is None else action_parsers
        # When set, action names are validated while transforming.
        self.known_actions = known_actions

    def _pos(self, node, extra=0):
        col = node.get('col')
        return col - 1 + extra if isinstance(col, int) and col > 0 else None

    def _error(self, message, node, extra=0):
        return ParseError(message, self.source, self._pos(node, extra))

    def transform(self, node: Any) -> Any:
        if isinstance(node, list):
            return [self.transform(n) for n in node]

        tag = node.get('tag')
        children = list(_nodes(node.get('children', [])))

        match tag:
            case 'get-path':
                return GetPath(self.transform(children))
            case 'set-path':
                modifier = Modifier.NONE
                if children and children[-1].get('tag') == 'modifier':
                    modifier = _MODIFIERS[children[-1]['text']]
                    children = children[:-1]
                return SetPath(self.transform(children), modifier)
            case 'modifier':
                raise self._error(f"Modifier '{node['text']}' is only valid at the end of a setter", node)

            # Path segments
            case 'name':
                return Field(node['text'])
            case 'key':
                # ["..."]: the quoted part follows JSON string rules.
                return Field(self._decode_string(node, node['text'][1:-1], extra=1))
            case 'index':
                return Index(int(node['text'][1:-1]))

            # Calls and literals
            case 'call':
                return self._call(node, children)
            case 'string':
                return Literal(self._decode_string(node, node['text']))
            case _:
                raise self._error(f"Unknown node tag {tag!r}", node)

    # --- Calls ---

    def _call(self, node, children):
        name = next(c['text'] for c in children if c.get('tag') == 'action')
        args = [c for c in children if c.get('tag') == 'arg']
        raw = [a['text'].strip() for a in args]
        if len(raw) == 1 and not raw[0]:
            args, raw = [], []
        for a, text in zip(args, raw):
            if not text:
                raise self._error("Empty argument", a)

        hook = self.action_parsers.get(name)
        if hook is not None:
            return self._run_hook(hook, name, raw, node)

        if name == 'const':
            if len(raw) != 1:
                raise self._error(f"const expects exactly 1 argument, got {len(raw)}", node)
            return Call('const', [Literal(self._decode_literal(args[0], raw[0]))])

        if self.known_actions is not None and name not in self.known_actions:
            raise self._error(f"Action '{name}' is not recognized", node)

        return Call(name, [self._argument(a, text) for a, text in zip(args, raw)])

    def _run_hook(self, hook, name, raw, node):
        try:
            expr = hook(name, raw)
        except ParseError:
            raise
        except Exception as e:
            raise self._error(f"Action parser for '{name}' failed: {e}", node) from e
        if not isinstance(expr, ReadExpr):
            raise self._error(f"Action parser for '{name}' returned {type(expr).__name__}, expected a ReadExpr", node)
        return expr

    def _argument(self, node, text):
        # Errors inside the argument are reported against the full source.
        lead = len(node['text']) - len(node['text'].lstrip())
        sub = ExprTransformer(text, self.parser, self.action_parsers, self.known_actions)
        try:
            return sub.transform(self.parser.parse_argument(text))
        except ParseError as e:
            if e.text != text:
                raise
            base = self._pos(node, lead)
            pos = base + e.pos if base is not None and e.pos is not None else base
            raise ParseError(e.message, self.source, pos) from e

    # --- Literals ---

    def _decode_string(self, node, quoted, extra=0):
        try:
            return json.loads(quoted)
        except json.JSONDecodeError as e:
            raise self._error(f"Invalid quoted string {quoted}: {e.msg}", node, extra) from e

    def _decode_literal(self, node, text):
        try:
            return to_value(json.loads(text))
        except (json.JSONDecodeError, TypeMismatch) as e:
            raise self._error(f"Invalid literal value {text!r}: {e}", node) from e


def parse_getter(text: str, parser: Optional[ExprParser] = None, **options) -> ReadExpr:
    """Compiles getter text into a ReadExpr.

    `options` are passed to ExprTransformer (`action_parsers`, `known_actions`).
    """
    parser = parser or ExprParser()
    node = parser.parse_getter(text)
    return ExprTransformer(text, parser, **options).transform(node)


def parse_setter(text: str, parser: Optional[ExprParser] = None) -> SetPath:
    """Compiles setter text into a SetPath."""
    parser = parser or ExprParser()
    node = parser.parse_setter(text)
    return ExprTransformer(text, parser).transform(node)


__all__ = ["ExprTransformer", "ACTION_PARSERS", "register_action_parser", "parse_getter", "parse_setter"]
