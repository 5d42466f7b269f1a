# chemconv/formats/json_format.py
"""JSON list of reaction records."""

from __future__ import annotations

import json
import textwrap
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..errors import InvalidOptionError
from ..types import ReactionRecord
from .base import Format

if TYPE_CHECKING:
    from ..conversion import Conversion

DEFAULT_INDENT = 2


class JsonFormat(Format):
    """Records serialized with ``ReactionRecord.to_dict`` inside one JSON list.

    A whole input stream is one JSON document, so a single pipeline read
    hands every record of the stream to the session at once. On output the
    list brackets are written around the objects of an output stream: the
    opening bracket with the first object, the closing one from ``write_end``.
    An output stream that received no record holds ``[]``.
    """

    description = (
        "JSON reaction records\n"
        "A JSON list of objects with the ReactionRecord fields.\n"
        "\n"
        "Output options:\n"
        '  i"N"  indent nested values by N spaces (default 2, 0 for compact)\n'
    )
    specification_url = "https://www.json.org/"
    mime_type = "application/json"

    @staticmethod
    def _load_payload(session: "Conversion") -> Optional[List[Dict[str, Any]]]:
        text = session.in_stream.read()
        if not text.strip():
            return None
        payload = json.loads(text)
        if isinstance(payload, dict):
            payload = [payload]
        if not isinstance(payload, list):
            raise ValueError("JSON payload must be a list of reaction records")
        for idx, entry in enumerate(payload):
            if not isinstance(entry, dict):
                raise ValueError(
                    f"Reaction entry at index {idx} must be a mapping, got {type(entry)!r}"
                )
        return payload

    @staticmethod
    def _to_record(entry: Dict[str, Any], session: "Conversion") -> ReactionRecord:
        record = ReactionRecord.from_dict(entry)
        if not record.title:
            record.title = session.title
        return record

    def read_chem_object(self, session: "Conversion") -> bool:
        payload = self._load_payload(session)
        if payload is None:
            return False
        for entry in payload:
            session.add_object(self._to_record(entry, session))
        return True

    def read_object(self, session: "Conversion") -> Optional[ReactionRecord]:
        payload = self._load_payload(session)
        if not payload:
            return None
        if len(payload) > 1:
            raise ValueError(
                f"JSON input holds {len(payload)} records; read it with "
                "Conversion.convert() instead of read()"
            )
        return self._to_record(payload[0], session)

    @staticmethod
    def _indent(session: "Conversion") -> int:
        text = session.is_option("i")
        if not text:
            return DEFAULT_INDENT
        try:
            return max(int(text), 0)
        except ValueError:
            raise InvalidOptionError(f"JSON indent must be an integer, got {text!r}") from None

    def write_object(self, record: ReactionRecord, session: "Conversion") -> None:
        indent = self._indent(session)
        out = session.out_stream
        body = json.dumps(record.to_dict(), indent=indent or None, ensure_ascii=False)
        if indent:
            body = textwrap.indent(body, " " * indent)

        out.write("[\n" if session.output_index == 0 else ",\n")
        out.write(body)

    def write_end(self, session: "Conversion") -> None:
        session.out_stream.write("\n]\n" if session.output_index else "[]\n")
