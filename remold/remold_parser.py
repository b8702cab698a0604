"""
Loads the remold expression grammar and runs it over getter and setter text.

The koine parser produces raw tagged nodes, plain dicts of the form
``{'tag': ..., 'text': ..., 'children': [...], 'col': ...}``, which
``ExprTransformer`` turns into expression objects.
"""
from pathlib import Path
from typing import Any, Dict, Optional

from koine import Parser

from remold.remold_datatypes import ParseError

GRAMMAR_PATH = Path(__file__).parent / "grammar" / "remold_grammar.yaml"

Node = Dict[str, Any]


class ExprParser:
    """Parses expression text into raw koine nodes.

    The grammar is loaded once and shared by every instance.
    """
    _parser: Optional[Parser] = None

    def __init__(self):
        if ExprParser._parser is None:
            ExprParser._parser = Parser.from_file(str(GRAMMAR_PATH))
        self.parser = ExprParser._parser

    def parse_getter(self, text: str) -> Node:
        if not isinstance(text, str):
            raise ParseError(f"Getter must be a string, not {type(text).__name__}")
        return self.parse(text, 'getter')

    def parse_setter(self, text: str) -> Node:
        if not isinstance(text, str):
            raise ParseError(f"Setter must be a string, not {type(text).__name__}")
        return self.parse(text, 'setter')

    def parse_argument(self, text: str) -> Node:
        return self.parse(text, 'argument')

    def parse(self, text: str, start_rule: str) -> Node:
        if not text.strip():
            # Blank text is the whole input (getter) or the whole output (setter).
            if start_rule == 'getter':
                return {'tag': 'get-path', 'text': text, 'children': [], 'col': 1}
            if start_rule == 'setter':
                return {'tag': 'set-path', 'text': text, 'children': [], 'col': 1}
            raise ParseError("Empty expression", text, 0)
        try:
            parse_out = self.parser.parse(text, start_rule=start_rule)
        except Exception as e:
            raise ParseError(f"Parse failed: {e}", text) from e

        if parse_out.get('status') != 'success':
            node = parse_out.get('error_node') or {}
            col = node.get('col')
            pos = col - 1 if isinstance(col, int) and col > 0 else None
            message = parse_out.get('error_message') or "Invalid expression"
            raise ParseError(message, text, pos)

        ast = parse_out.get('ast')
        # Promoted start rules may come back as a one-item list.
        while isinstance(ast, list) and len(ast) == 1:
            ast = ast[0]
        if not isinstance(ast, dict):
            raise ParseError("Parser returned no expression", text)
        return ast


__all__ = ["ExprParser", "GRAMMAR_PATH"]
