import threading

import pytest

from chemconv.errors import DuplicateRegistrationWarning, NoDefaultFormatError, UnresolvedFormatError
from chemconv.formats import Format, FormatFlags, FormatRegistry, get_default_registry


class DummyFormat(Format):
    description = "Dummy format\nUsed in registry tests."


class DefaultFormat(Format):
    description = "Default dummy"
    flags = FormatFlags.DEFAULT_FORMAT


class WriteOnlyFormat(Format):
    description = "Write-only dummy"
    flags = FormatFlags.NOT_READABLE


def test_find_by_id_is_case_insensitive():
    registry = FormatRegistry()
    fmt = DummyFormat()
    registry.register("CML", fmt, "chemical/x-cml")

    assert registry.find_by_id("cml") is fmt
    assert registry.find_by_id("Cml") is fmt
    assert registry.find_by_id("CML") is fmt
    assert "cml" in registry


def test_unknown_identifier_returns_none():
    registry = FormatRegistry()
    registry.register("xyz", DummyFormat())

    assert registry.find_by_id("sdf") is None
    assert registry.find_by_id("") is None
    assert "sdf" not in registry


def test_find_by_mime_is_exact():
    registry = FormatRegistry()
    fmt = DummyFormat()
    registry.register("cml", fmt, "chemical/x-cml")

    assert registry.find_by_mime("chemical/x-cml") is fmt
    assert registry.find_by_mime("chemical/x-pdb") is None


def test_find_by_extension_uses_base_name():
    registry = FormatRegistry()
    fmt = DummyFormat()
    registry.register("xyz", fmt)

    assert registry.find_by_extension("molecule.XYZ") is fmt
    assert registry.find_by_extension("some.dir/molecule.xyz") is fmt
    assert registry.find_by_extension("some.xyz/molecule") is None
    assert registry.find_by_extension("README") is None
    assert registry.find_by_extension("trailing.") is None


def test_register_rejects_non_format_and_empty_id():
    registry = FormatRegistry()

    with pytest.raises(TypeError):
        registry.register("xyz", object())
    with pytest.raises(ValueError):
        registry.register("  ", DummyFormat())


def test_ordinals_increase_monotonically():
    registry = FormatRegistry()
    ordinals = [registry.register(name, DummyFormat()) for name in ("a", "b", "c")]

    assert ordinals == [1, 2, 3]


def test_duplicate_registration_warns_and_keeps_both():
    registry = FormatRegistry()
    first, second = DummyFormat(), DummyFormat()
    registry.register("xyz", first)

    with pytest.warns(DuplicateRegistrationWarning):
        ordinal = registry.register("XYZ", second)

    assert registry.find_by_id("xyz") is second
    assert registry.find_by_ordinal(1) is first
    assert registry.find_by_ordinal(ordinal) is second
    assert [e.format for e in registry.entries_for("xyz")] == [first, second]
    assert len(registry) == 2


def test_default_format_last_registered_wins():
    registry = FormatRegistry()
    registry.register("plain", DummyFormat())
    first, second = DefaultFormat(), DefaultFormat()
    registry.register("d1", first)
    registry.register("d2", second)

    assert registry.default_format() is second


def test_no_default_format_raises():
    registry = FormatRegistry()
    registry.register("plain", DummyFormat())

    with pytest.raises(NoDefaultFormatError):
        registry.default_format()
    # NoDefaultFormatError is a special case of an unresolved format
    with pytest.raises(UnresolvedFormatError):
        registry.default_format()


def test_iteration_yields_every_pair_once_and_restarts():
    registry = FormatRegistry()
    fmts = {name: DummyFormat() for name in ("a", "b", "c")}
    for name, fmt in fmts.items():
        registry.register(name, fmt)

    first_pass = list(registry.iterate())
    second_pass = list(registry)

    assert sorted(first_pass, key=lambda p: p[0]) == sorted(fmts.items())
    assert first_pass == second_pass


def test_id_of_returns_first_identifier():
    registry = FormatRegistry()
    fmt = DummyFormat()
    registry.register("rsmi", fmt)
    registry.register("smi", fmt)

    assert registry.id_of(fmt) == "rsmi"
    assert registry.id_of(DummyFormat()) is None


def test_lazy_load_runs_once():
    calls = []

    def loader(registry):
        calls.append(registry)
        registry.register("xyz", DummyFormat())

    registry = FormatRegistry(loader=loader)
    assert calls == []

    assert registry.find_by_id("xyz") is not None
    assert registry.find_by_id("sdf") is None
    assert len(registry) == 1
    assert calls == [registry]


def test_lazy_load_skipped_when_formats_already_registered():
    calls = []
    registry = FormatRegistry(loader=calls.append)
    registry.register("xyz", DummyFormat())

    assert registry.find_by_id("xyz") is not None
    assert calls == []


def test_concurrent_first_queries_load_once():
    calls = []
    barrier = threading.Barrier(8)

    def loader(registry):
        calls.append(1)
        registry.register("xyz", DummyFormat())

    registry = FormatRegistry(loader=loader)
    results = []

    def query():
        barrier.wait()
        results.append(registry.find_by_id("xyz"))

    threads = [threading.Thread(target=query) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(calls) == 1
    assert len(results) == 8
    assert all(r is results[0] and r is not None for r in results)


def test_to_dataframe_lists_capabilities():
    registry = FormatRegistry()
    registry.register("d", DefaultFormat())
    registry.register("w", WriteOnlyFormat(), "text/x-w")

    df = registry.to_dataframe()

    assert list(df.columns) == ["id", "mime", "description", "readable", "writable", "default"]
    assert list(df["id"]) == ["d", "w"]
    assert df.loc[0, "default"]
    assert not df.loc[1, "readable"]
    assert df.loc[1, "mime"] == "text/x-w"
    assert df.loc[0, "description"] == "Default dummy"


def test_default_registry_has_builtin_formats():
    registry = get_default_registry()

    assert registry is get_default_registry()
    for name in ("rsmi", "smi", "json", "csv", "copy"):
        assert registry.find_by_id(name) is not None
    assert registry.find_by_id("SMI") is registry.find_by_id("rsmi")
    assert registry.default_format() is registry.find_by_id("rsmi")
    assert registry.find_by_mime("application/json") is registry.find_by_id("json")
    assert not registry.find_by_id("copy").capabilities.readable


class _BrokenEntryPoint:
    name = "broken"
    value = "missing_pkg.formats:register"

    def load(self):
        raise ImportError("No module named 'missing_pkg'")


def test_broken_plugin_does_not_hide_builtin_formats(monkeypatch, caplog):
    from chemconv.formats import registry as registry_module

    monkeypatch.setattr(registry_module, "entry_points", lambda group: [_BrokenEntryPoint()])
    registry = FormatRegistry(loader=registry_module._register_builtin_formats)

    with caplog.at_level("ERROR", logger="chemconv.formats.registry"):
        fmt = registry.find_by_id("rsmi")

    assert fmt is not None
    assert registry.find_by_id("json") is not None
    assert "Format plugin 'broken' failed to load" in caplog.text
