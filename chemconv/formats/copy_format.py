# chemconv/formats/copy_format.py

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .base import Format, FormatFlags

if TYPE_CHECKING:
    from ..conversion import Conversion


class CopyFormat(Format):
    """Echo each object's original input text instead of re-serializing it.

    Useful together with start/end bounds or filters to cut a subset out of a
    file without touching its formatting.
    """

    description = (
        "Copy raw input\n"
        "Writes the unmodified source text of every converted object.\n"
        "Requires a seekable input stream.\n"
    )
    flags = FormatFlags.NOT_READABLE

    def write_chem_object(self, session: "Conversion") -> None:
        handle = session.take_object()
        text = session.source_text()
        handle.consume()
        session.out_stream.write(text)

    def write_object(self, obj: Any, session: "Conversion") -> None:
        raise NotImplementedError(
            "The copy format needs the input position of the object; "
            "use Conversion.convert()"
        )
