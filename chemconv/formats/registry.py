# chemconv/formats/registry.py
from __future__ import annotations

import logging
import os
import threading
import warnings
from dataclasses import dataclass
from importlib.metadata import entry_points
from typing import Callable, Dict, Iterator, List, Optional, Tuple

import pandas as pd

from ..errors import DuplicateRegistrationWarning, NoDefaultFormatError
from .base import Format

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "chemconv.formats"

FormatLoader = Callable[["FormatRegistry"], None]


@dataclass(frozen=True)
class RegistryEntry:
    """One ``register`` call.

    Attributes:
        ordinal: Monotonically increasing number unique to the call.
        id: Identifier as registered (original spelling).
        mime: MIME type registered alongside, if any.
        format: The registered format instance (not owned by the registry).
    """

    ordinal: int
    id: str
    mime: Optional[str]
    format: Format


def _normalize_id(format_id: str) -> str:
    key = format_id.strip().casefold()
    if not key:
        raise ValueError("Format identifier must be a non-empty string.")
    return key


class FormatRegistry:
    """Catalog resolving identifiers, extensions and MIME types to formats.

    Identifiers are matched case-insensitively, MIME types exactly. On the
    first query the registry runs its ``loader`` once if nothing has been
    registered yet; the load is serialized so concurrent first queries never
    observe a partially populated catalog.

    Registering an identifier twice keeps both entries: lookups by
    identifier return the latest one, earlier ones stay reachable through
    :meth:`find_by_ordinal` and :meth:`entries_for`. The same
    last-registered-wins rule applies to the default format.
    """

    def __init__(self, loader: Optional[FormatLoader] = None):
        self._loader = loader
        self._loaded = loader is None
        self._lock = threading.RLock()
        self._entries: List[RegistryEntry] = []
        self._by_id: Dict[str, RegistryEntry] = {}
        self._by_mime: Dict[str, RegistryEntry] = {}
        self._default: Optional[Format] = None

    # ---------------------- registration ---------------------- #

    def register(self, format_id: str, fmt: Format, mime: Optional[str] = None) -> int:
        """Add ``format_id -> fmt`` (and ``mime -> fmt`` when given).

        Args:
            format_id: Identifier such as ``"rsmi"`` or ``"CML"``.
            fmt: Format instance; it must outlive the registry.
            mime: Optional MIME type to register alongside.

        Returns:
            The ordinal assigned to this registration.
        """
        key = _normalize_id(format_id)
        if not isinstance(fmt, Format):
            raise TypeError(
                f"Format for '{format_id}' must be a Format instance, "
                f"got {type(fmt)!r}"
            )

        with self._lock:
            entry = RegistryEntry(
                ordinal=len(self._entries) + 1,
                id=format_id.strip(),
                mime=mime or None,
                format=fmt,
            )
            previous = self._by_id.get(key)
            self._entries.append(entry)
            self._by_id[key] = entry
            if entry.mime:
                self._by_mime[entry.mime] = entry
            if fmt.capabilities.is_default:
                if self._default is not None and self._default is not fmt:
                    logger.debug(
                        "Default format replaced by '%s' (ordinal %d)",
                        entry.id,
                        entry.ordinal,
                    )
                self._default = fmt

        if previous is not None:
            message = (
                f"Format '{entry.id}' registered again (ordinal {entry.ordinal}); "
                f"ordinal {previous.ordinal} remains reachable by ordinal."
            )
            logger.warning(message)
            warnings.warn(message, DuplicateRegistrationWarning, stacklevel=2)
        else:
            logger.debug("Registered format '%s' (ordinal %d)", entry.id, entry.ordinal)
        return entry.ordinal

    # ---------------------- lazy loading ---------------------- #

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        with self._lock:
            if self._loaded:
                return
            try:
                if not self._entries and self._loader is not None:
                    logger.debug("Loading formats into registry %r", self)
                    self._loader(self)
            finally:
                self._loaded = True

    # ---------------------- lookup ---------------------- #

    def find_by_id(self, format_id: str) -> Optional[Format]:
        """Return the format registered under ``format_id`` (any case)."""
        self._ensure_loaded()
        key = format_id.strip().casefold()
        entry = self._by_id.get(key) if key else None
        return entry.format if entry is not None else None

    def find_by_extension(self, filename: str) -> Optional[Format]:
        """Resolve a format from the extension of ``filename``.

        The extension is the text after the last ``.`` of the base name;
        names without one resolve to ``None``.
        """
        base = os.path.basename(os.fspath(filename))
        _, dot, ext = base.rpartition(".")
        if not dot or not ext:
            return None
        return self.find_by_id(ext)

    def find_by_mime(self, mime: str) -> Optional[Format]:
        """Return the format registered with exactly this MIME type."""
        self._ensure_loaded()
        entry = self._by_mime.get(mime)
        return entry.format if entry is not None else None

    def find_by_ordinal(self, ordinal: int) -> Optional[Format]:
        self._ensure_loaded()
        if 1 <= ordinal <= len(self._entries):
            return self._entries[ordinal - 1].format
        return None

    def entries_for(self, format_id: str) -> List[RegistryEntry]:
        """Return every registration of ``format_id``, oldest first."""
        self._ensure_loaded()
        key = format_id.strip().casefold()
        return [e for e in list(self._entries) if e.id.casefold() == key]

    def id_of(self, fmt: Format) -> Optional[str]:
        """Return the first identifier under which ``fmt`` was registered."""
        self._ensure_loaded()
        for entry in list(self._entries):
            if entry.format is fmt:
                return entry.id
        return None

    def default_format(self) -> Format:
        """Return the format flagged ``DEFAULT_FORMAT``.

        Raises:
            NoDefaultFormatError: If no registered format carries the flag.
        """
        self._ensure_loaded()
        if self._default is None:
            raise NoDefaultFormatError("No default format has been registered.")
        return self._default

    # ---------------------- enumeration ---------------------- #

    def __iter__(self) -> Iterator[Tuple[str, Format]]:
        self._ensure_loaded()
        for entry in list(self._entries):
            yield entry.id, entry.format

    def iterate(self) -> Iterator[Tuple[str, Format]]:
        """Yield every ``(id, format)`` pair once per traversal."""
        return iter(self)

    def __len__(self) -> int:
        self._ensure_loaded()
        return len(self._entries)

    def __contains__(self, format_id: object) -> bool:
        return isinstance(format_id, str) and self.find_by_id(format_id) is not None

    def to_dataframe(self) -> pd.DataFrame:
        """Tabulate registered formats, e.g. for help listings.

        Returns:
            DataFrame with one row per registration and columns ``id``,
            ``mime``, ``description``, ``readable``, ``writable`` and
            ``default``.
        """
        self._ensure_loaded()
        rows = []
        for entry in list(self._entries):
            caps = entry.format.capabilities
            rows.append(
                {
                    "id": entry.id,
                    "mime": entry.mime,
                    "description": entry.format.short_description(),
                    "readable": caps.readable,
                    "writable": caps.writable,
                    "default": caps.is_default,
                }
            )
        return pd.DataFrame(
            rows,
            columns=["id", "mime", "description", "readable", "writable", "default"],
        )

    def __repr__(self) -> str:
        return f"<FormatRegistry entries={len(self._entries)} loaded={self._loaded}>"


# ---------------------- process default registry ---------------------- #


def _register_builtin_formats(registry: FormatRegistry) -> None:
    """Register built-in formats, then any ``chemconv.formats`` entry points."""
    from .copy_format import CopyFormat
    from .csv_format import CsvFormat
    from .json_format import JsonFormat
    from .rsmi import ReactionSmilesFormat

    rsmi = ReactionSmilesFormat()
    registry.register("rsmi", rsmi)
    registry.register("smi", rsmi, "chemical/x-daylight-smiles")
    registry.register("json", JsonFormat(), "application/json")
    registry.register("csv", CsvFormat(), "text/csv")
    registry.register("copy", CopyFormat())

    for ep in entry_points(group=ENTRY_POINT_GROUP):
        logger.info("Loading format plugin '%s' from %s", ep.name, ep.value)
        try:
            plugin = ep.load()
            plugin(registry)
        except Exception:
            logger.exception("Format plugin '%s' failed to load; skipped", ep.name)


_DEFAULT_REGISTRY: Optional[FormatRegistry] = None
_DEFAULT_REGISTRY_LOCK = threading.Lock()


def get_default_registry() -> FormatRegistry:
    """Return the process-wide registry, creating it on first use."""
    global _DEFAULT_REGISTRY
    if _DEFAULT_REGISTRY is None:
        with _DEFAULT_REGISTRY_LOCK:
            if _DEFAULT_REGISTRY is None:
                _DEFAULT_REGISTRY = FormatRegistry(loader=_register_builtin_formats)
    return _DEFAULT_REGISTRY


def register_format(format_id: str, fmt: Format, mime: Optional[str] = None) -> int:
    """Register ``fmt`` with the process default registry."""
    registry = get_default_registry()
    # load the built-in formats first so they are not skipped by the lazy load
    registry._ensure_loaded()
    return registry.register(format_id, fmt, mime)


def find_format(format_id: str) -> Optional[Format]:
    """Look ``format_id`` up in the process default registry."""
    return get_default_registry().find_by_id(format_id)
