# chemconv/formats/csv_format.py

from __future__ import annotations

import csv
import json
from typing import IO, TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from ..smiles import parse_reaction_smiles
from ..types import ReactionRecord
from .base import Format

if TYPE_CHECKING:
    from ..conversion import Conversion

FIELDNAMES = [
    "title",
    "reaction_id",
    "reaction_smiles",
    "reactants",
    "reagents",
    "products",
    "extra_metadata",
]


def _dumps(obj: Iterable[str] | dict | None) -> str:
    if obj is None:
        return ""
    return json.dumps(obj, ensure_ascii=False)


def _parse_json_list(value: Optional[str], row_idx: int, field: str) -> List[str]:
    if not value:
        return []
    try:
        payload = json.loads(value)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Row {row_idx}: unable to parse {field} as JSON list") from exc
    if not isinstance(payload, list):
        raise ValueError(
            f"Row {row_idx}: expected {field} to decode to a list, got {type(payload)!r}"
        )
    return [str(item) for item in payload]


def _parse_json_meta(value: Optional[str], row_idx: int) -> Dict[str, Any]:
    if not value:
        return {}
    try:
        payload = json.loads(value)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Row {row_idx}: unable to parse extra_metadata JSON") from exc
    if not isinstance(payload, dict):
        raise ValueError(
            f"Row {row_idx}: expected extra_metadata to decode to a dict, "
            f"got {type(payload)!r}"
        )
    return payload


def _next_row(stream: IO) -> Optional[List[str]]:
    # One physical line per row so that input positions stay exact.
    while True:
        line = stream.readline()
        if not line:
            return None
        if line.strip():
            return next(csv.reader([line]))


class CsvFormat(Format):
    """Comma-separated reaction records with a header row.

    The header read from each input stream is kept on the instance, so the
    session uses a fresh instance per use (``make_new_instance``).
    """

    description = (
        "CSV reaction records\n"
        "Header row followed by one reaction per line. Columns: "
        + ", ".join(FIELDNAMES)
        + ".\nList and metadata columns hold JSON; only reaction_smiles is required.\n"
    )
    mime_type = "text/csv"

    def __init__(self) -> None:
        self._fieldnames: Optional[List[str]] = None
        self._row_idx = 0

    def make_new_instance(self) -> "CsvFormat":
        return CsvFormat()

    def read_object(self, session: "Conversion") -> Optional[ReactionRecord]:
        stream = session.in_stream
        if session.is_first_input() or self._fieldnames is None:
            header = _next_row(stream)
            if header is None:
                return None
            if "reaction_smiles" not in header:
                raise ValueError("CSV is missing required column: reaction_smiles")
            self._fieldnames = header
            self._row_idx = 0

        row = _next_row(stream)
        if row is None:
            return None
        idx = self._row_idx
        self._row_idx += 1
        values = dict(zip(self._fieldnames, row))

        rxn_smiles = (values.get("reaction_smiles") or "").strip()
        reactants = _parse_json_list(values.get("reactants"), idx, "reactants")
        reagents = _parse_json_list(values.get("reagents"), idx, "reagents")
        products = _parse_json_list(values.get("products"), idx, "products")
        if rxn_smiles and not (reactants or reagents or products):
            parsed = parse_reaction_smiles(rxn_smiles, strict=False)
            reactants, reagents, products = (
                parsed.reactants,
                parsed.reagents,
                parsed.products,
            )

        return ReactionRecord(
            title=values.get("title") or session.title,
            reaction_id=values.get("reaction_id") or "",
            source="csv",
            source_file_path=session.in_filename or None,
            reaction_smiles=rxn_smiles,
            reactants=reactants,
            reagents=reagents,
            products=products,
            extra_metadata=_parse_json_meta(values.get("extra_metadata"), idx),
        )

    def write_object(self, record: ReactionRecord, session: "Conversion") -> None:
        writer = csv.writer(session.out_stream, lineterminator="\n")
        if session.output_index == 0:
            writer.writerow(FIELDNAMES)
        writer.writerow(
            [
                record.title,
                record.reaction_id,
                record.reaction_smiles,
                _dumps(list(record.reactants)),
                _dumps(list(record.reagents)),
                _dumps(list(record.products)),
                _dumps(record.extra_metadata),
            ]
        )
