from dataclasses import dataclass
import threading

import pytest

from remold.remold_datatypes import (
    ParseError, UnknownAction, TypeMismatch, PathConflict, ModifierTypeMismatch,
    GetPath, SetPath, Field, SerializationError,
)
from remold.remold_actions import default_registry, register_action, DEFAULT_REGISTRY
from remold.remold_runtime import Operation, TransformBuilder, Transformation, ExecutionResult


def build(*pairs, **kwargs):
    return TransformBuilder(**kwargs).add_operations(pairs).build()


def assert_ok(res, expected=None):
    assert res.status == 'success', f"expected success, got {res.status}: {res.error_message}"
    if expected is not None:
        assert res.value == expected


def assert_error(res, contains: str | None = None):
    assert res.status == 'error', f"expected error, got {res.status} with value {res.value!r}"
    if contains:
        msg = res.error_message or ""
        assert contains in msg, f"error message did not contain {contains!r}: {msg!r}"


# --- Basic remapping ---

def test_rename_and_restructure():
    t = build(
        ("user.first", "person.name.given"),
        ("user.last", "person.name.family"),
        ("user.emails[0]", "person.email"),
        ('join(" ", user.first, user.last)', "person.display"),
    )
    source = {"user": {"first": "Ada", "last": "Lovelace", "emails": ["ada@example.com"]}}
    assert t.apply(source) == {
        "person": {
            "name": {"given": "Ada", "family": "Lovelace"},
            "email": "ada@example.com",
            "display": "Ada Lovelace",
        }
    }


def test_empty_transformation_yields_empty_object():
    assert TransformBuilder().build().apply({"a": 1}) == {}


def test_missing_reads_write_null():
    assert build(("x.y", "out")).apply({}) == {"out": None}


def test_empty_getter_and_setter_copy_the_whole_input():
    source = {"a": [1, {"b": 2}]}
    out = build(("", "")).apply(source)
    assert out == source
    assert out is not source
    out["a"][1]["b"] = 3
    assert source["a"][1]["b"] == 2


def test_apply_is_deterministic_and_leaves_the_input_alone():
    t = build(("items", "all[+]"), ("items[0]", "all[]"), ("meta", "m{}"))
    source = {"items": [1, 2], "meta": {"k": "v"}}
    first = t.apply(source)
    assert t.apply(source) == first == {"all": [1, 2, 1], "m": {"k": "v"}}
    assert source == {"items": [1, 2], "meta": {"k": "v"}}


def test_reads_see_the_input_not_the_output():
    t = build(("a", "b"), ("b", "c"))
    assert t.apply({"a": 1}) == {"b": 1, "c": None}


# --- Ordering and modifiers ---

def test_append_after_create_keeps_both_in_order():
    t = build(('const(["first"])', "list"), ('const("second")', "list[]"))
    assert t.apply({}) == {"list": ["first", "second"]}


def test_swapping_dependent_operations_changes_the_result():
    forward = build(('const({"k": 1})', "o"), ('const(2)', "o.j"))
    backward = build(('const(2)', "o.j"), ('const({"k": 1})', "o"))
    assert forward.apply({}) == {"o": {"k": 1, "j": 2}}
    assert backward.apply({}) == {"o": {"k": 1}}


def test_swapping_can_turn_success_into_failure():
    ok = build(('const(["a"])', "x"), ('const("b")', "x[]"))
    bad = build(('const("b")', "x[]"), ('const("a")', "x.y"))
    assert ok.apply({}) == {"x": ["a", "b"]}
    with pytest.raises(PathConflict):
        bad.apply({})


def test_two_appends_on_absent_path():
    t = build(("a", "out[]"), ("b", "out[]"))
    assert t.apply({"a": 1, "b": 2}) == {"out": [1, 2]}


def test_extend_onto_existing():
    t = build(('const(["x"])', "out"), ('const(["a", "b"])', "out[+]"))
    assert t.apply({}) == {"out": ["x", "a", "b"]}


def test_merge_index_discards_surplus():
    t = build(('const(["x", "y"])', "out"), ('const(["a", "b", "c"])', "out[-]"))
    assert t.apply({}) == {"out": ["a", "b"]}


def test_merge_object_keeps_other_keys():
    t = build(('const({"k": "old", "j": 1})', "out"), ('const({"k": "v"})', "out{}"))
    assert t.apply({}) == {"out": {"k": "v", "j": 1}}


# --- Actions ---

def test_builtin_actions_end_to_end():
    t = build(
        ('join(", ", const("a"), const("b"))', "joined"),
        ('sum(const(1), const(2.5))', "total"),
        ("len(name)", "name_len"),
        ("len(list)", "list_len"),
        ("len(obj)", "obj_len"),
        ("count(list)", "count"),
        ("count(missing)", "none"),
        ('strip_start("ID-", id)', "id"),
        ('strip_end(".json", file)', "stem"),
        ("trim(padded)", "trimmed"),
        ("sum(scores)", "score_total"),
    )
    source = {
        "name": "", "list": [], "obj": {}, "id": "ID-42", "file": "x.json",
        "padded": "  p  ", "scores": [1, 2, 3],
    }
    assert t.apply(source) == {
        "joined": "a, b", "total": 3.5, "name_len": 0, "list_len": 0, "obj_len": 0,
        "count": 0, "none": 0, "id": "42", "stem": "x", "trimmed": "p", "score_total": 6,
    }


def test_len_of_a_number_is_a_type_mismatch():
    with pytest.raises(TypeMismatch):
        build(("len(n)", "out")).apply({"n": 5})


def test_unknown_action_fails_at_apply_time():
    t = build(("frobnicate(a)", "out"))
    with pytest.raises(UnknownAction):
        t.apply({"a": 1})


def test_strict_builder_rejects_unknown_actions():
    builder = TransformBuilder(strict=True)
    with pytest.raises(ParseError, match="not recognized"):
        builder.add("frobnicate(a)", "out")


def test_builder_local_actions():
    t = TransformBuilder(strict=True).register("upper", lambda s: s.upper()).add("upper(a)", "b").build()
    assert t.apply({"a": "x"}) == {"b": "X"}
    assert "upper" not in DEFAULT_REGISTRY


def test_custom_registry():
    registry = default_registry()
    registry.register("double", lambda v: v * 2)
    t = build(("double(n)", "n"), registry=registry)
    assert t.apply({"n": 21}) == {"n": 42}


def test_registry_is_snapshotted_at_build():
    registry = default_registry()
    t = build(("late(a)", "out"), registry=registry)
    registry.register("late", lambda v: v)
    with pytest.raises(UnknownAction):
        t.apply({"a": 1})
    assert build(("late(a)", "out"), registry=registry).apply({"a": 1}) == {"out": 1}


def test_register_action_reaches_later_builders(monkeypatch):
    monkeypatch.setattr(DEFAULT_REGISTRY, "_actions", dict(DEFAULT_REGISTRY._actions))
    register_action("shout", lambda s: s + "!")
    assert build(("shout(a)", "b")).apply({"a": "hi"}) == {"b": "hi!"}


# --- Errors ---

def test_parse_errors_carry_the_operation_index():
    builder = TransformBuilder().add("a", "b")
    with pytest.raises(ParseError) as exc:
        builder.add("a..b", "c")
    assert exc.value.operation_index == 1
    assert exc.value.operation == ("a..b", "c")
    assert len(builder) == 1


def test_apply_errors_carry_the_operation():
    t = build(("a", "x"), ("b", "x.y"))
    with pytest.raises(PathConflict) as exc:
        t.apply({"a": 1, "b": 2})
    assert exc.value.operation_index == 1
    assert str(exc.value.operation) == "b -> x.y"


def test_modifier_mismatch_end_to_end():
    with pytest.raises(ModifierTypeMismatch):
        build(("a", "out[+]")).apply({"a": "not a list"})


def test_run_reports_success_and_failure():
    t = build(("a", "x"), ("len(a)", "y"))
    assert_ok(t.run({"a": "abc"}), {"x": "abc", "y": 3})

    res = t.run({"a": 5})
    assert_error(res, "TypeMismatch")
    assert res.operation_index == 1
    assert res.format_error().startswith("Error in operation 1 (len(a) -> y): TypeMismatch:")


def test_format_error_shows_a_caret_for_parse_errors():
    with pytest.raises(ParseError) as exc:
        TransformBuilder().add("len(a", "b")
    res = ExecutionResult.from_error(exc.value)
    text = res.format_error()
    assert text.startswith("Error in operation 0 ('len(a' -> 'b'): ParseError:")
    assert text.splitlines()[-1].strip() == "^"


def test_format_error_is_empty_on_success():
    assert ExecutionResult(status='success', value=1).format_error() == ""


# --- Adapters ---

def test_apply_to_destination_updates_in_place():
    t = build(("a", "meta.a"), ("b", "list[]"))
    destination = {"meta": {"keep": True}, "list": [0]}
    result = t.apply_to_destination({"a": 1, "b": 2}, destination)
    assert result is destination
    assert destination == {"meta": {"keep": True, "a": 1}, "list": [0, 2]}


def test_apply_from_str_accepts_json_and_yaml():
    t = build(("user.name", "name"))
    assert t.apply_from_str('{"user": {"name": "Ada"}}') == {"name": "Ada"}
    assert t.apply_from_str("user:\n  name: Grace\n", fmt="yaml") == {"name": "Grace"}
    with pytest.raises(SerializationError):
        t.apply_from_str('{"user": ', fmt="json")


@dataclass
class Person:
    name: str
    age: int


@dataclass
class Badge:
    label: str
    years: int


def test_apply_to_typed_objects():
    t = build(('join(" / ", name, age)', "label"), ("age", "years"))
    badge = t.apply_to(Person("Ada", 36), into=Badge)
    assert badge == Badge(label="Ada / 36", years=36)
    assert t.apply_to({"name": "Ada", "age": 36}) == {"label": "Ada / 36", "years": 36}


def test_from_text_loads_an_operation_list():
    text = '[{"source": "const(\\"value\\")", "destination": "new"}, ["a", "new2"]]'
    t = TransformBuilder.from_text(text).build()
    assert t.apply({"a": 2}) == {"new": "value", "new2": 2}


def test_operations_can_be_precompiled():
    op = Operation(GetPath([Field("a")]), SetPath([Field("b")]))
    assert Operation.parse("a", "b") == op
    t = TransformBuilder().add_operation(op).add(GetPath([Field("a")]), "c").build()
    assert len(t) == 2
    assert t.apply({"a": 1}) == {"b": 1, "c": 1}


def test_transformation_defaults_to_the_builtin_registry():
    t = Transformation([Operation.parse("len(a)", "n")])
    assert t.registry.frozen
    assert t.apply({"a": [1, 2]}) == {"n": 2}


def test_transformations_can_be_shared_across_threads():
    t = build(("n", "n"), ("sum(n, n)", "double"))
    results = {}

    def worker(i):
        results[i] = t.apply({"n": i})

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for th in threads:
        th.start()
    for th in threads:
        th.join()
    assert results == {i: {"n": i, "double": 2 * i} for i in range(8)}
