# chemconv/formats/rsmi.py

from __future__ import annotations

import logging
from typing import IO, TYPE_CHECKING, Optional

from ..options import OptionScope
from ..smiles import canonical_reaction_smiles, join_reaction_smiles, parse_reaction_smiles
from ..types import ReactionRecord
from .base import Format, FormatFlags

if TYPE_CHECKING:
    from ..conversion import Conversion

logger = logging.getLogger(__name__)


def _next_line(stream: IO) -> Optional[str]:
    """Return the next non-blank line without its line ending, or None at EOF."""
    while True:
        line = stream.readline()
        if not line:
            return None
        line = line.rstrip("\r\n")
        if line.strip():
            return line


class ReactionSmilesFormat(Format):
    """Line-oriented reaction SMILES, as in the USPTO ``.rsmi`` dumps."""

    description = (
        "Reaction SMILES\n"
        "One reaction per line: reactants>reagents>products, optionally followed\n"
        "by a tab and a title. Further tab-separated fields are kept in\n"
        "extra_metadata['fields'].\n"
        "\n"
        "Input options:\n"
        "  a  strip atom-map numbers (original kept in atom_mapping)\n"
        "Output options:\n"
        "  n  omit the title\n"
        "  c  write RDKit canonical SMILES\n"
    )
    specification_url = "https://www.daylight.com/dayhtml/doc/theory/theory.smiles.html"
    flags = FormatFlags.DEFAULT_FORMAT

    def read_object(self, session: "Conversion") -> Optional[ReactionRecord]:
        line = _next_line(session.in_stream)
        if line is None:
            return None

        parts = line.split("\t")
        record = parse_reaction_smiles(
            parts[0],
            strict=False,
            strip_atom_mapping=session.is_option("a", OptionScope.INPUT) is not None,
        )
        title = parts[1].strip() if len(parts) > 1 else ""
        record.title = title or session.title
        if len(parts) > 2:
            record.extra_metadata["fields"] = parts[2:]
        record.source = "rsmi"
        record.source_file_path = session.in_filename or None
        return record

    def skip_objects(self, n: int, session: "Conversion") -> bool:
        for skipped in range(n):
            if _next_line(session.in_stream) is None:
                logger.debug("Input ended after skipping %d reactions", skipped)
                break
        return True

    def write_object(self, record: ReactionRecord, session: "Conversion") -> None:
        if session.is_option("c") is not None:
            smiles = canonical_reaction_smiles(record)
        else:
            smiles = record.reaction_smiles or join_reaction_smiles(
                record.reactants, record.reagents, record.products
            )
        if "\n" in smiles or "\t" in smiles:
            raise ValueError(f"Reaction SMILES contains a line break or tab: {smiles!r}")

        line = smiles
        if record.title and session.is_option("n") is None:
            line += "\t" + record.title
        session.out_stream.write(line + "\n")
