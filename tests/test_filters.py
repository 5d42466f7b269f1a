import io

import pytest

from chemconv.conversion import Conversion
from chemconv.filters import (
    ReactionFilter,
    default_filters,
    max_smiles_length,
    metadata_matches,
    rejection_counts,
    require_product,
    require_valid_smiles,
)
from chemconv.smiles import parse_reaction_smiles
from chemconv.transforms import apply_transforms, canonicalize_step, filter_step
from chemconv.types import ReactionRecord


def _rec(reactants, reagents, products, meta=None):
    return ReactionRecord(
        reaction_smiles="dummy",
        reactants=reactants,
        reagents=reagents,
        products=products,
        extra_metadata=meta or {},
    )


def test_require_product_counts_rejections():
    f = require_product()

    assert f.keeps(_rec(["CCO"], [], ["CC=O"]))
    assert not f.keeps(_rec(["CCO"], [], []))
    assert (f.seen, f.rejected) == (2, 1)

    f.reset()
    assert (f.seen, f.rejected) == (0, 0)


def test_require_valid_smiles():
    f = require_valid_smiles()

    assert f.keeps(_rec(["CCO"], ["O"], ["CC=O"]))
    assert not f.keeps(_rec(["CCO"], [], ["not_a_smiles"]))


def test_max_smiles_length():
    f = max_smiles_length(3)

    assert f.keeps(_rec(["CCO"], [], ["CC"]))
    assert not f.keeps(_rec(["CCCC"], [], ["CC"]))
    assert f.keeps(_rec([], [], []))
    assert f.name == "max_smiles_length(3)"
    with pytest.raises(ValueError):
        max_smiles_length(0)


def test_metadata_matches_rejects_missing_fields():
    def recent(meta):
        return meta["year"] > 2000

    f = metadata_matches(recent)

    assert f.keeps(_rec([], [], [], {"year": 2010}))
    assert not f.keeps(_rec([], [], [], {"year": 1990}))
    assert not f.keeps(_rec([], [], [], {}))
    assert f.name == "metadata_matches(recent)"


def test_filter_is_a_transform_step():
    f = require_product()
    kept = _rec(["C"], [], ["CC"])

    assert apply_transforms(_rec(["C"], [], []), [f]) is None
    assert apply_transforms(kept, [f]) is kept


def test_filter_step_wraps_plain_predicates():
    def has_reagent(record):
        return bool(record.reagents)

    step = filter_step(has_reagent)

    assert isinstance(step, ReactionFilter)
    assert step.name == "has_reagent"
    assert apply_transforms(_rec(["C"], [], ["CC"]), [step]) is None
    assert step.rejected == 1
    assert filter_step(step) is step


def test_default_filters_are_fresh_instances():
    first, second = default_filters(), default_filters()

    assert [f.name for f in first] == ["require_product", "require_valid_smiles"]
    assert all(a is not b for a, b in zip(first, second))


def test_conversion_reports_rejections_per_filter():
    text = "CCO>>CC=O\tgood\nCCO>>\tno product\nXX>>YY\tgarbage\nC>>CC\tok\n"
    steps = default_filters() + [canonicalize_step()]
    out = io.StringIO()
    session = Conversion(io.StringIO(text), out, transforms=steps)
    session.set_in_and_out_formats("rsmi", "rsmi")

    assert session.convert() == 2
    assert rejection_counts(steps) == {"require_product": 1, "require_valid_smiles": 1}
    assert session.stats.n_discarded == 2
    assert out.getvalue() == "CCO>>CC=O\tgood\nC>>CC\tok\n"


def test_default_filters_drop_invalid_reactions():
    good = parse_reaction_smiles("CCO>>CC=O")
    no_product = parse_reaction_smiles("CCO>>")

    assert apply_transforms(good, default_filters()) is good
    assert apply_transforms(no_product, default_filters()) is None


def test_canonicalize_step_returns_new_record():
    original = parse_reaction_smiles("OCC>>C(C)=O")
    original.title = "t"

    result = apply_transforms(original, [canonicalize_step()])

    assert result is not original
    assert result.reaction_smiles == "CCO>>CC=O"
    assert result.products == ["CC=O"]
    assert result.title == "t"
    assert original.reactants == ["OCC"]


def test_apply_transforms_stops_at_first_veto():
    calls = []

    def veto(obj):
        calls.append("veto")
        return None

    def never(obj):
        calls.append("never")
        return obj

    assert apply_transforms("x", [veto, never]) is None
    assert calls == ["veto"]
