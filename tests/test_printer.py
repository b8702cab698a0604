import pytest

from remold.remold_datatypes import GetPath, SetPath, Call, Literal, Field, Index, Modifier
from remold.remold_printer import Printer
from remold.remold_transformer import parse_getter, parse_setter


@pytest.fixture
def printer():
    return Printer()


@pytest.mark.parametrize("expr, expected", [
    (GetPath([Field("a"), Field("b")]), "a.b"),
    (GetPath([Field("items"), Index(0), Field("id")]), "items[0].id"),
    (GetPath([Field("a.b[c]")]), '["a.b[c]"]'),
    (GetPath([Field("x"), Field("")]), 'x[""]'),
    (GetPath([Field('q"uote')]), '["q\\"uote"]'),
    (GetPath([]), ""),
    (Call("len", [GetPath([Field("name")])]), "len(name)"),
    (Call("join", [Literal(", "), GetPath([Field("a")]), GetPath([Field("b")])]), 'join(", ", a, b)'),
    (Call("const", [Literal({"k": [1, 2]})]), 'const({"k": [1, 2]})'),
    (Literal(1), "const(1)"),
    (Literal(None), "const(null)"),
    (Call("join", [Literal(","), Literal(1)]), 'join(",", const(1))'),
    (GetPath([Field("a\nb")]), '["a\\nb"]'),
])
def test_getter_formatting(printer, expr, expected):
    assert printer.pformat(expr) == expected


@pytest.mark.parametrize("target, expected", [
    (SetPath([Field("out")]), "out"),
    (SetPath([Field("out"), Field("list")], Modifier.APPEND), "out.list[]"),
    (SetPath([Field("out")], Modifier.EXTEND), "out[+]"),
    (SetPath([Field("out")], Modifier.MERGE_INDEX), "out[-]"),
    (SetPath([Field("out")], Modifier.MERGE_OBJECT), "out{}"),
    (SetPath([], Modifier.APPEND), "[]"),
])
def test_setter_formatting(printer, target, expected):
    assert printer.pformat(target) == expected


@pytest.mark.parametrize("text", [
    "a.b.c",
    "items[2].name",
    '["a.b[c]"].x',
    'meta["content-type"]',
    '["back\\\\slash"]',
    '["tab\\there"].x',
    'join(" - ", trim(first), strip_start("Mr ", last))',
    'const([1, 2.5, "three", null, true])',
    "sum(a, b[0], len(c))",
])
def test_printed_getters_reparse_to_equal_expressions(printer, text):
    expr = parse_getter(text)
    assert parse_getter(printer.pformat(expr)) == expr


@pytest.mark.parametrize("text", ["a.b[]", "x[3][+]", '["k.k"][-]', "obj{}", "[]"])
def test_printed_setters_reparse_to_equal_expressions(printer, text):
    target = parse_setter(text)
    assert parse_setter(printer.pformat(target)) == target


def test_str_uses_canonical_text():
    assert str(parse_getter("items.[0]")) == "items[0]"
    assert str(parse_setter("items[0]{}")) == "items[0]{}"


def test_equal_expressions_hash_alike():
    assert hash(parse_getter("items.[0]")) == hash(parse_getter("items[0]"))
    assert parse_getter("a") != parse_setter("a")


def test_long_values_break_across_lines():
    printer = Printer(width=20)
    out = printer.pformat({"alpha": "a" * 10, "beta": [1, 2, 3]})
    assert out.splitlines()[0] == "{"
    assert '"alpha": "aaaaaaaaaa"' in out


def test_short_values_stay_inline(printer):
    assert printer.pformat([1, "x", None]) == '[1, "x", null]'
