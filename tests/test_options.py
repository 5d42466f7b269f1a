import pytest

from chemconv.errors import MalformedOptionStringError
from chemconv.options import OptionScope, OptionStore, parse_compact_options


def test_presence_not_truthiness_signals_set():
    store = OptionStore()
    store.set("n", OptionScope.OUTPUT)
    store.set("t", OptionScope.OUTPUT, "")

    assert store.is_set("n", OptionScope.OUTPUT)
    assert store.get("n", OptionScope.OUTPUT) == ""
    assert store.get("t", OptionScope.OUTPUT) == ""
    assert store.get("x", OptionScope.OUTPUT) is None


def test_scopes_are_independent():
    store = OptionStore()
    store.set("a", OptionScope.INPUT, "1")

    assert store.get("a", OptionScope.INPUT) == "1"
    assert store.get("a", OptionScope.OUTPUT) is None
    assert store.get("a", OptionScope.GENERIC) is None


def test_set_overwrites_and_remove_reports_presence():
    store = OptionStore()
    store.set("f", OptionScope.GENERIC, "2")
    store.set("f", OptionScope.GENERIC, "3")

    assert store.get("f", OptionScope.GENERIC) == "3"
    assert store.remove("f", OptionScope.GENERIC) is True
    assert store.remove("f", OptionScope.GENERIC) is False
    assert not store.is_set("f", OptionScope.GENERIC)


def test_snapshot_is_read_only():
    store = OptionStore()
    store.set("a", OptionScope.INPUT)
    view = store.snapshot(OptionScope.INPUT)

    assert dict(view) == {"a": None}
    with pytest.raises(TypeError):
        view["b"] = None


def test_parse_compact_options_with_text():
    parsed = parse_compact_options('ab"some text"c')

    assert parsed == {"a": None, "b": "some text", "c": None}


def test_parse_compact_options_whitespace_and_empty():
    assert parse_compact_options("") == {}
    assert parse_compact_options(" a  b ") == {"a": None, "b": None}


@pytest.mark.parametrize(
    "spec, position",
    [
        ('a"unterminated', 1),
        ('"orphan"', 0),
        ('a "after space"', 2),
    ],
)
def test_malformed_option_strings(spec, position):
    with pytest.raises(MalformedOptionStringError) as excinfo:
        parse_compact_options(spec)

    assert excinfo.value.spec == spec
    assert excinfo.value.position == position


def test_parse_compact_leaves_store_untouched_on_error():
    store = OptionStore()
    store.set("z", OptionScope.OUTPUT, "keep")

    with pytest.raises(MalformedOptionStringError):
        store.parse_compact('ab"oops', OptionScope.OUTPUT)

    assert dict(store.snapshot(OptionScope.OUTPUT)) == {"z": "keep"}


def test_clear_one_scope_or_all():
    store = OptionStore()
    for scope in OptionScope:
        store.set("x", scope)

    store.clear(OptionScope.INPUT)
    assert not store.is_set("x", OptionScope.INPUT)
    assert store.is_set("x", OptionScope.OUTPUT)

    store.clear()
    assert not any(store.is_set("x", scope) for scope in OptionScope)
