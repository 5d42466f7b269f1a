# chemconv/formats/base.py
"""Format interface shared by every encoding.

A format is a codec with two pairs of entry points:

* The API interface (``read_object`` / ``write_object``) reads or writes a
  single object and never takes ownership of it.
* The pipeline interface (``read_chem_object`` / ``write_chem_object``) is
  driven by :class:`chemconv.conversion.Conversion`. Reads push new objects
  into the session with ``session.add_object``; writes pull them back with
  ``session.take_object`` and must either consume or discard the returned
  handle.

Formats do not know their own identifier. Identity is assigned by the
registry at registration time.
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from ..conversion import Conversion


class FormatFlags(enum.IntFlag):
    """Capability bits a format advertises through ``Format.flags``."""

    NONE = 0
    NOT_READABLE = 0x01
    READ_ONE_ONLY = 0x02
    READ_BINARY = 0x04
    NOT_WRITABLE = 0x10
    WRITE_ONE_ONLY = 0x20
    WRITE_BINARY = 0x40
    DEFAULT_FORMAT = 0x4000


class Capabilities:
    """Named predicates over a :class:`FormatFlags` value."""

    __slots__ = ("flags",)

    def __init__(self, flags: FormatFlags = FormatFlags.NONE):
        self.flags = FormatFlags(flags)

    def _has(self, flag: FormatFlags) -> bool:
        return bool(self.flags & flag)

    @property
    def readable(self) -> bool:
        return not self._has(FormatFlags.NOT_READABLE)

    @property
    def writable(self) -> bool:
        return not self._has(FormatFlags.NOT_WRITABLE)

    @property
    def read_one_only(self) -> bool:
        return self._has(FormatFlags.READ_ONE_ONLY)

    @property
    def write_one_only(self) -> bool:
        return self._has(FormatFlags.WRITE_ONE_ONLY)

    @property
    def read_binary(self) -> bool:
        return self._has(FormatFlags.READ_BINARY)

    @property
    def write_binary(self) -> bool:
        return self._has(FormatFlags.WRITE_BINARY)

    @property
    def is_default(self) -> bool:
        return self._has(FormatFlags.DEFAULT_FORMAT)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Capabilities):
            return NotImplemented
        return self.flags == other.flags

    def __repr__(self) -> str:
        return f"Capabilities({self.flags!r})"


class Format:
    """Base class for a pluggable encoding of domain objects.

    Subclasses override the read and/or write halves they support and set
    ``flags`` accordingly. Unsupported entry points raise
    ``NotImplementedError``.

    Attributes:
        description: Help text. The first line is used as a short title;
            format-specific options may be listed below it.
        specification_url: Where the encoding is defined, if anywhere.
        mime_type: Chemical MIME type associated with the encoding.
        target_class_description: Description of the object type handled.
        flags: Capability bits, see :class:`FormatFlags`.
    """

    description: str = ""
    specification_url: str = ""
    mime_type: str = ""
    target_class_description: str = "reaction records"
    flags: FormatFlags = FormatFlags.NONE

    @property
    def capabilities(self) -> Capabilities:
        return Capabilities(self.flags)

    # ---------------------- API interface ---------------------- #

    def read_object(self, session: "Conversion") -> Optional[Any]:
        """Read one object from ``session.in_stream``.

        Args:
            session: Session holding the input stream and options.

        Returns:
            The object read, or ``None`` when the input is exhausted.
        """
        raise NotImplementedError(f"{type(self).__name__} is not a valid input format")

    def write_object(self, obj: Any, session: "Conversion") -> None:
        """Write ``obj`` to ``session.out_stream``; raise on failure."""
        raise NotImplementedError(
            f"{type(self).__name__} is not a valid output format"
        )

    # ---------------------- pipeline interface ---------------------- #

    def read_chem_object(self, session: "Conversion") -> bool:
        """Read the next object(s) and hand them to ``session.add_object``.

        Returns:
            False when the input had nothing more to offer, True otherwise.
        """
        obj = self.read_object(session)
        if obj is None:
            return False
        session.add_object(obj)
        return True

    def write_chem_object(self, session: "Conversion") -> None:
        """Take the next pending object from the session and write it."""
        handle = session.take_object()
        self.write_object(handle.consume(), session)

    def write_end(self, session: "Conversion") -> None:
        """Terminate the current output stream after its last object.

        Called once per output stream, also when nothing was written to it
        (``session.output_index`` is then 0).
        """

    # ---------------------- optional capabilities ---------------------- #

    def skip_objects(self, n: int, session: "Conversion") -> bool:
        """Advance the input past ``n`` objects without building them.

        Returns:
            True when the objects were skipped, False when the format does not
            implement skipping (the session then reads and discards instead).
        """
        return False

    def make_new_instance(self) -> Optional["Format"]:
        """Return a fresh instance when per-use state must not be shared."""
        return None

    def short_description(self) -> str:
        return self.description.strip().splitlines()[0] if self.description else ""

    def __repr__(self) -> str:
        return f"<{type(self).__name__}>"
