# demo_convert_dummy_data.py
"""
A minimal demo:
convert a few reaction SMILES to JSON and CSV, dropping invalid reactions
on the way, then split the valid ones into one file per reaction.
"""

import io
import logging
import sys
import tempfile
from pathlib import Path

from chemconv import (
    Conversion,
    OptionScope,
    canonicalize_step,
    default_filters,
    full_convert,
    get_default_registry,
    rejection_counts,
)


RAW_REACTIONS = """\
CCO.CCBr>[Na+].[OH-]>CCOCC\tethyl ether
CC(=O)Cl.N>>CC(N)=O\tacetamide
Brc1ccccc1>[Mg]>[Mg]c1ccccc1\tgrignard
CCO>>\tno product
this_is_not_smiles>>CCOC\tgarbage
"""


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print(get_default_registry().to_dataframe().to_string(index=False))
    print()

    steps = default_filters() + [canonicalize_step()]
    out = io.StringIO()
    session = Conversion(io.StringIO(RAW_REACTIONS), out, transforms=steps)
    session.set_in_and_out_formats("rsmi", "json")
    n = session.convert()
    print(f"Converted {n} reactions to JSON:")
    print(out.getvalue())
    print(session.stats.summary())
    print(f"Rejected by filter: {rejection_counts(steps)}")

    with tempfile.TemporaryDirectory() as tmp:
        src = Path(tmp) / "dummy.rsmi"
        src.write_text(RAW_REACTIONS, encoding="utf-8")

        session = Conversion(transforms=steps)
        session.add_option("m", OptionScope.GENERIC)
        result = full_convert(session, [src], Path(tmp) / "rxn_*.csv")
        for path in result.output_files:
            print(f"--- {Path(path).name}")
            sys.stdout.write(Path(path).read_text(encoding="utf-8"))


if __name__ == "__main__":
    main()
