# chemconv/errors.py
"""Exception types raised by the registry, option store, sessions and batches."""

from __future__ import annotations

from typing import Optional


class ConversionError(Exception):
    """Base class for every error raised by ``chemconv``."""

    pass


class UnresolvedFormatError(ConversionError, ValueError):
    """No format could be determined for an identifier, extension or MIME type."""

    pass


class NoDefaultFormatError(UnresolvedFormatError):
    """No registered format carries the ``DEFAULT_FORMAT`` flag."""

    pass


class MalformedOptionStringError(ConversionError, ValueError):
    """A compact option string such as ``ab"text"c`` could not be parsed.

    Attributes:
        spec: The offending option string.
        position: Character offset at which parsing failed.
    """

    def __init__(self, message: str, spec: str, position: int):
        super().__init__(f"{message} (at offset {position} in {spec!r})")
        self.spec = spec
        self.position = position


class InvalidOptionError(ConversionError, ValueError):
    """An option is set but its text payload is not usable."""

    pass


class _CountedError(ConversionError):
    """Failure that remembers how many objects were written before it."""

    def __init__(self, message: str, count: int = 0):
        super().__init__(message)
        self.count = count


class FormatReadError(_CountedError):
    """A format failed while reading (or transforming) an object."""

    pass


class FormatWriteError(_CountedError):
    """A format failed while writing an object."""

    pass


class FileOpenError(ConversionError, OSError):
    """A batch input or output file could not be opened."""

    def __init__(self, path: str, reason: Optional[BaseException] = None):
        detail = f": {reason}" if reason is not None else ""
        super().__init__(f"Cannot open file {path!r}{detail}")
        self.path = path
        self.reason = reason


class HandleStateError(ConversionError, RuntimeError):
    """A pipeline object handle was used after it reached a terminal state."""

    pass


class DuplicateRegistrationWarning(UserWarning):
    """A format identifier was registered more than once."""

    pass
