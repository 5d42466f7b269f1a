# chemconv/options.py
"""Scoped option storage for conversion sessions."""

from __future__ import annotations

import enum
import logging
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from .errors import MalformedOptionStringError

logger = logging.getLogger(__name__)

_QUOTE = '"'
_MISSING = object()


class OptionScope(enum.Enum):
    """Which side of a conversion an option applies to."""

    INPUT = "input"
    OUTPUT = "output"
    GENERIC = "generic"


class OptionStore:
    """Three independent ``name -> Optional[text]`` mappings.

    An option is set when its key is present, whatever its text. ``get``
    therefore returns ``None`` for an unset option and ``""`` for an option
    set without text.
    """

    def __init__(self) -> None:
        self._scopes: Dict[OptionScope, Dict[str, Optional[str]]] = {
            scope: {} for scope in OptionScope
        }

    def set(
        self, opt: str, scope: OptionScope, text: Optional[str] = None
    ) -> None:
        """Insert or overwrite ``opt`` in ``scope``."""
        if not opt:
            raise ValueError("Option name must be a non-empty string.")
        self._scopes[scope][opt] = text

    def remove(self, opt: str, scope: OptionScope) -> bool:
        """Remove ``opt`` from ``scope``; return True if it was present."""
        return self._scopes[scope].pop(opt, _MISSING) is not _MISSING

    def is_set(self, opt: str, scope: OptionScope) -> bool:
        return opt in self._scopes[scope]

    def get(self, opt: str, scope: OptionScope) -> Optional[str]:
        """Return the option text, ``""`` when set without text, ``None`` if unset."""
        scope_map = self._scopes[scope]
        if opt not in scope_map:
            return None
        text = scope_map[opt]
        return "" if text is None else text

    def snapshot(self, scope: OptionScope) -> Mapping[str, Optional[str]]:
        """Return a read-only live view of ``scope``."""
        return MappingProxyType(self._scopes[scope])

    def clear(self, scope: Optional[OptionScope] = None) -> None:
        scopes = [scope] if scope is not None else list(OptionScope)
        for s in scopes:
            self._scopes[s].clear()

    def parse_compact(self, spec: str, scope: OptionScope) -> None:
        """Apply single-character options written as ``ab"btext"c``.

        Each character is an option; a double-quoted string directly after
        it becomes that option's text. Whitespace between options is
        ignored. Either every option in ``spec`` is applied or none is.

        Raises:
            MalformedOptionStringError: On an unterminated quote or a quoted
                text with no option in front of it.
        """
        parsed = parse_compact_options(spec)
        self._scopes[scope].update(parsed)
        logger.debug("Set %s options %s", scope.value, sorted(parsed))

    def __repr__(self) -> str:
        parts = ", ".join(
            f"{scope.value}={dict(values)!r}" for scope, values in self._scopes.items()
        )
        return f"OptionStore({parts})"


def parse_compact_options(spec: str) -> Dict[str, Optional[str]]:
    """Parse a compact option string into a fresh dictionary.

    Args:
        spec: String such as ``'ab"some text"c'``.

    Returns:
        Mapping of option character to its text (``None`` when no text).

    Raises:
        MalformedOptionStringError: If a quote is unterminated or orphaned.
    """
    result: Dict[str, Optional[str]] = {}
    last_opt: Optional[str] = None
    pos = 0
    while pos < len(spec):
        ch = spec[pos]
        if ch == _QUOTE:
            if last_opt is None:
                raise MalformedOptionStringError(
                    "Quoted text without a preceding option", spec, pos
                )
            end = spec.find(_QUOTE, pos + 1)
            if end < 0:
                raise MalformedOptionStringError("Unterminated quote", spec, pos)
            result[last_opt] = spec[pos + 1 : end]
            last_opt = None
            pos = end + 1
            continue
        if ch.isspace():
            last_opt = None
        else:
            result[ch] = None
            last_opt = ch
        pos += 1
    return result
