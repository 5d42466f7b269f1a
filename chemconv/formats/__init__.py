# chemconv/formats/__init__.py

from .base import Capabilities, Format, FormatFlags
from .registry import (
    ENTRY_POINT_GROUP,
    FormatRegistry,
    RegistryEntry,
    find_format,
    get_default_registry,
    register_format,
)

__all__ = [
    "Capabilities",
    "Format",
    "FormatFlags",
    "ENTRY_POINT_GROUP",
    "FormatRegistry",
    "RegistryEntry",
    "find_format",
    "get_default_registry",
    "register_format",
]
