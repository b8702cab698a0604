"""
A pretty-printer for remold expressions and tree values.
"""
import json
import re

from remold.remold_datatypes import (
    GetPath, SetPath, Call, Literal, Field, Index, Modifier
)

# Field names that can be written without the explicit ["..."] form.
_BARE_NAME_RE = re.compile(r'^[^\s.\[\]{}(),"\\]+$')


class Printer:
    """Formats remold objects into readable, re-parsable source strings."""

    def __init__(self, indent_width=2, width=60):
        self._indent_char = " " * indent_width
        self._width = width
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj, level)

    def _get_handler(self, obj):
        """Dispatcher to find the correct formatting method."""
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        if isinstance(obj, Modifier):
            return self._pformat_modifier
        # Default to Python's repr for unknown types
        return lambda o, l: repr(o)

    def _create_handlers(self):
        return {
            str: self._pformat_inline,
            int: self._pformat_inline,
            float: self._pformat_inline,
            bool: self._pformat_inline,
            type(None): self._pformat_inline,
            list: self._pformat_list,
            dict: self._pformat_dict,
            GetPath: self._pformat_get_path,
            SetPath: self._pformat_set_path,
            Call: self._pformat_call,
            Literal: self._pformat_literal,
            Field: self._pformat_field,
            Index: self._pformat_index,
        }

    # --- Values ---

    def _pformat_inline(self, obj, level):
        return json.dumps(obj, ensure_ascii=False)

    def _pformat_block(self, items, level, open_char, close_char):
        outer_indent = self._indent_char * level
        inner_indent = self._indent_char * (level + 1)
        lines = [f"{inner_indent}{item}" for item in items]
        return f"{open_char}\n" + ",\n".join(lines) + f"\n{outer_indent}{close_char}"

    def _pformat_list(self, obj, level):
        inline = self._pformat_inline(obj, level)
        if not obj or len(inline) <= self._width:
            return inline
        items = [self.pformat(v, level + 1) for v in obj]
        return self._pformat_block(items, level, '[', ']')

    def _pformat_dict(self, obj, level):
        inline = self._pformat_inline(obj, level)
        if not obj or len(inline) <= self._width:
            return inline
        items = [f"{json.dumps(k, ensure_ascii=False)}: {self.pformat(v, level + 1)}" for k, v in obj.items()]
        return self._pformat_block(items, level, '{', '}')

    # --- Expressions ---

    def _pformat_path_contents(self, segments, level):
        parts = []
        for i, seg in enumerate(segments):
            text = self.pformat(seg, level)
            if i > 0 and isinstance(seg, Field) and not text.startswith('['):
                parts.append('.')
            parts.append(text)
        return "".join(parts)

    def _pformat_get_path(self, obj, level):
        return self._pformat_path_contents(obj.segments, level)

    def _pformat_set_path(self, obj, level):
        return self._pformat_path_contents(obj.segments, level) + self.pformat(obj.modifier, level)

    def _pformat_modifier(self, obj, level):
        return obj.value

    def _pformat_field(self, obj, level):
        if _BARE_NAME_RE.match(obj.name):
            return obj.name
        return f"[{json.dumps(obj.name, ensure_ascii=False)}]"

    def _pformat_index(self, obj, level):
        return f"[{obj.index}]"

    def _pformat_literal(self, obj, level):
        # Only strings have a bare literal form; the rest go through const().
        if isinstance(obj.value, str):
            return self._pformat_inline(obj.value, level)
        return f"const({self._pformat_inline(obj.value, level)})"

    def _pformat_call(self, obj, level):
        if obj.action == 'const' and len(obj.args) == 1 and isinstance(obj.args[0], Literal):
            return f"const({self._pformat_inline(obj.args[0].value, level)})"
        args = ", ".join(self.pformat(arg, level) for arg in obj.args)
        return f"{obj.action}({args})"


__all__ = ["Printer"]
