import io
import json

import pytest

from chemconv.batch import batch_file_name, full_convert, incremented_file_name
from chemconv.conversion import Conversion
from chemconv.errors import FileOpenError, FormatReadError, InvalidOptionError
from chemconv.formats import Format, FormatFlags, FormatRegistry
from chemconv.options import OptionScope


class LineFormat(Format):
    description = "Plain lines"
    flags = FormatFlags.DEFAULT_FORMAT

    def read_object(self, session):
        line = session.in_stream.readline()
        if not line:
            return None
        if line.strip() == "boom":
            raise ValueError("bad line")
        return line.rstrip("\n")

    def write_object(self, obj, session):
        session.out_stream.write(f"{obj}\n")


class SingleObjectFormat(LineFormat):
    flags = FormatFlags.WRITE_ONE_ONLY


class FlagRecorder(LineFormat):
    def __init__(self):
        self.flags_seen = []

    def write_object(self, obj, session):
        self.flags_seen.append(session.more_files_to_come)
        super().write_object(obj, session)


@pytest.fixture
def registry():
    reg = FormatRegistry()
    reg.register("txt", LineFormat())
    reg.register("one", SingleObjectFormat())
    return reg


def _write(path, *lines):
    path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
    return path


def test_batch_file_name_substitutes_base_name():
    assert batch_file_name("out_*.mol", "a.xyz") == "out_a.mol"
    assert batch_file_name("out_*.mol", "data/set.v2/a.xyz") == "out_a.mol"
    assert batch_file_name("*_*.mol", "a.xyz") == "a_*.mol"
    assert batch_file_name("fixed.mol", "a.xyz") == "fixed.mol"


def test_incremented_file_name_substitutes_counter():
    assert incremented_file_name("frag_*.sdf", 3) == "frag_3.sdf"
    assert incremented_file_name("frag.sdf", 3) == "frag.sdf"


def test_one_to_one_with_wildcard(tmp_path, registry):
    a = _write(tmp_path / "a.txt", "a1", "a2")
    b = _write(tmp_path / "b.txt", "b1")
    session = Conversion(registry=registry)

    result = full_convert(session, [a, b], tmp_path / "out_*.txt", aggregate=False)

    assert result.output_files == [str(tmp_path / "out_a.txt"), str(tmp_path / "out_b.txt")]
    assert (tmp_path / "out_a.txt").read_text(encoding="utf-8") == "a1\na2\n"
    assert (tmp_path / "out_b.txt").read_text(encoding="utf-8") == "b1\n"
    assert result.counts == {str(a): 2, str(b): 1}
    assert result.ok
    assert result.total == 3


def test_fixed_output_name_is_overwritten(tmp_path, registry):
    a = _write(tmp_path / "a.txt", "a1")
    b = _write(tmp_path / "b.txt", "b1")
    session = Conversion(registry=registry)

    result = full_convert(session, [a, b], tmp_path / "out.txt", aggregate=False)

    assert result.output_files == [str(tmp_path / "out.txt")]
    assert (tmp_path / "out.txt").read_text(encoding="utf-8") == "b1\n"


def test_aggregation_sets_more_files_to_come(tmp_path, registry):
    inputs = [_write(tmp_path / f"{name}.txt", name) for name in ("a", "b", "c")]
    recorder = FlagRecorder()
    session = Conversion(registry=registry)
    session.set_out_format(recorder)
    session.add_option("j", OptionScope.GENERIC)

    result = full_convert(session, inputs, tmp_path / "joined.txt")

    assert recorder.flags_seen == [True, True, False]
    assert result.output_files == [str(tmp_path / "joined.txt")]
    assert (tmp_path / "joined.txt").read_text(encoding="utf-8") == "a\nb\nc\n"
    assert session.more_files_to_come is False


def test_aggregation_into_session_stream(tmp_path, registry):
    inputs = [_write(tmp_path / "a.txt", "a"), _write(tmp_path / "b.txt", "b")]
    out = io.StringIO()
    session = Conversion(out_stream=out, registry=registry)

    result = full_convert(session, inputs)

    assert out.getvalue() == "a\nb\n"
    assert result.output_files == []
    assert result.total == 2


def test_split_numbers_files_from_one(tmp_path, registry):
    src = _write(tmp_path / "five.txt", "m1", "m2", "m3", "m4", "m5")
    session = Conversion(registry=registry)
    session.add_option("m", OptionScope.GENERIC)

    result = full_convert(session, [src], tmp_path / "mol_*.txt")

    expected = [str(tmp_path / f"mol_{i}.txt") for i in range(1, 6)]
    assert result.output_files == expected
    for i in range(1, 6):
        assert (tmp_path / f"mol_{i}.txt").read_text(encoding="utf-8") == f"m{i}\n"
    assert not (tmp_path / "mol_0.txt").exists()
    assert not (tmp_path / "mol_6.txt").exists()
    assert result.counts == {str(src): 5}


def test_split_skips_vetoed_objects_without_gaps(tmp_path, registry):
    src = _write(tmp_path / "src.txt", "keep1", "drop", "keep2")
    session = Conversion(registry=registry, transforms=[lambda o: None if o == "drop" else o])

    result = full_convert(session, [src], tmp_path / "part_*.txt", split=True)

    assert result.output_files == [str(tmp_path / "part_1.txt"), str(tmp_path / "part_2.txt")]
    assert (tmp_path / "part_2.txt").read_text(encoding="utf-8") == "keep2\n"
    assert result.stats.n_discarded == 1


def test_write_one_only_output_implies_split(tmp_path, registry):
    src = _write(tmp_path / "src.txt", "x", "y")
    session = Conversion(registry=registry)

    result = full_convert(session, [src], tmp_path / "frag_*.one", aggregate=False)

    assert result.output_files == [str(tmp_path / "frag_1.one"), str(tmp_path / "frag_2.one")]


def test_missing_input_file_is_skipped(tmp_path, registry):
    a = _write(tmp_path / "a.txt", "a1")
    missing = tmp_path / "missing.txt"
    b = _write(tmp_path / "b.txt", "b1")
    session = Conversion(registry=registry)

    result = full_convert(session, [a, missing, b], tmp_path / "out_*.txt", aggregate=False, progress=True)

    assert result.output_files == [str(tmp_path / "out_a.txt"), str(tmp_path / "out_b.txt")]
    assert not (tmp_path / "out_missing.txt").exists()
    assert not result.ok
    assert len(result.errors) == 1
    assert result.errors[0].path == str(missing)
    assert isinstance(result.errors[0].error, FileOpenError)
    assert result.stats.per_file[str(missing)].error
    assert result.stats.n_failed == 1


def test_conversion_failure_is_isolated_per_file(tmp_path, registry):
    bad = _write(tmp_path / "bad.txt", "ok", "boom", "never")
    good = _write(tmp_path / "good.txt", "g1", "g2")
    session = Conversion(registry=registry)

    result = full_convert(session, [bad, good], tmp_path / "out_*.txt", aggregate=False)

    assert len(result.errors) == 1
    assert isinstance(result.errors[0].error, FormatReadError)
    assert result.counts == {str(bad): 1, str(good): 2}
    assert (tmp_path / "out_good.txt").read_text(encoding="utf-8") == "g1\ng2\n"


def test_batch_stats_per_file(tmp_path, registry):
    a = _write(tmp_path / "a.txt", "a1", "a2")
    b = _write(tmp_path / "b.txt", "b1")
    session = Conversion(registry=registry)

    result = full_convert(session, [a, b], tmp_path / "out_*.txt", aggregate=False)
    df = result.stats.to_dataframe()

    assert result.stats.n_read == 3
    assert result.stats.n_written == 3
    assert list(df["file"]) == [str(a), str(b)]
    assert list(df["written"]) == [2, 1]


def test_split_and_aggregate_are_exclusive(tmp_path, registry):
    session = Conversion(registry=registry)

    with pytest.raises(InvalidOptionError):
        full_convert(session, [], tmp_path / "x_*.txt", split=True, aggregate=True)


def test_split_requires_template(registry):
    session = Conversion(out_stream=io.StringIO(), registry=registry)

    with pytest.raises(InvalidOptionError):
        full_convert(session, [], split=True, aggregate=False)


def test_split_option_without_template_names_the_template(registry):
    session = Conversion(out_stream=io.StringIO(), registry=registry)
    session.add_option("m", OptionScope.GENERIC)

    with pytest.raises(InvalidOptionError, match="template"):
        full_convert(session, [])


def test_aggregate_json_with_empty_last_file(tmp_path):
    a = _write(tmp_path / "a.rsmi", "C>>CC\tr1")
    b = tmp_path / "b.rsmi"
    b.write_text("", encoding="utf-8")
    session = Conversion()
    session.set_in_format("rsmi")

    result = full_convert(session, [a, b], tmp_path / "joined.json")

    assert result.ok
    payload = json.loads((tmp_path / "joined.json").read_text(encoding="utf-8"))
    assert [entry["title"] for entry in payload] == ["r1"]


def test_aggregate_json_closed_when_last_file_is_missing(tmp_path):
    a = _write(tmp_path / "a.rsmi", "C>>CC\tr1", "CC>>CCC\tr2")
    session = Conversion()
    session.set_in_format("rsmi")

    result = full_convert(session, [a, tmp_path / "missing.rsmi"], tmp_path / "joined.json")

    assert not result.ok
    payload = json.loads((tmp_path / "joined.json").read_text(encoding="utf-8"))
    assert [entry["title"] for entry in payload] == ["r1", "r2"]


def test_one_to_one_json_empty_input_writes_empty_list(tmp_path):
    a = tmp_path / "a.rsmi"
    a.write_text("", encoding="utf-8")
    session = Conversion()

    result = full_convert(session, [a], tmp_path / "out_*.json", aggregate=False)

    assert result.counts == {str(a): 0}
    assert json.loads((tmp_path / "out_a.json").read_text(encoding="utf-8")) == []


def test_split_json_files_are_complete(tmp_path):
    src = _write(tmp_path / "src.rsmi", "C>>CC\tr1", "CC>>CCC\tr2")
    session = Conversion()

    result = full_convert(session, [src], tmp_path / "rxn_*.json", split=True)

    assert len(result.output_files) == 2
    second = json.loads((tmp_path / "rxn_2.json").read_text(encoding="utf-8"))
    assert [entry["title"] for entry in second] == ["r2"]


class CountingFormat(LineFormat):
    created = 0

    def make_new_instance(self):
        CountingFormat.created += 1
        return CountingFormat()


def test_resolved_formats_are_instantiated_once_per_file(tmp_path):
    reg = FormatRegistry()
    reg.register("cnt", CountingFormat())
    reg.register("txt", LineFormat())
    a = _write(tmp_path / "a.cnt", "x")
    b = _write(tmp_path / "b.cnt", "y")
    CountingFormat.created = 0
    session = Conversion(registry=reg)
    session.set_out_format("txt")

    full_convert(session, [a, b], tmp_path / "out_*.txt", aggregate=False)

    assert CountingFormat.created == 2
