# chemconv/__init__.py


__version__ = "0.1.0"

from .types import ReactionRecord
from .errors import (
    ConversionError,
    UnresolvedFormatError,
    NoDefaultFormatError,
    MalformedOptionStringError,
    InvalidOptionError,
    FormatReadError,
    FormatWriteError,
    FileOpenError,
    HandleStateError,
    DuplicateRegistrationWarning,
)
from .formats import (
    Capabilities,
    Format,
    FormatFlags,
    FormatRegistry,
    find_format,
    get_default_registry,
    register_format,
)
from .options import OptionScope, OptionStore, parse_compact_options
from .pipeline import HandleState, ObjectHandle
from .conversion import Conversion, SessionState
from .batch import BatchResult, batch_file_name, full_convert, incremented_file_name
from .filters import (
    ReactionFilter,
    default_filters,
    max_smiles_length,
    metadata_matches,
    rejection_counts,
    require_product,
    require_valid_smiles,
)
from .transforms import canonicalize_step, filter_step
from .reporter import ConversionStats, FileStats

__all__ = [
    # types
    "ReactionRecord",
    # errors
    "ConversionError",
    "UnresolvedFormatError",
    "NoDefaultFormatError",
    "MalformedOptionStringError",
    "InvalidOptionError",
    "FormatReadError",
    "FormatWriteError",
    "FileOpenError",
    "HandleStateError",
    "DuplicateRegistrationWarning",
    # formats
    "Capabilities",
    "Format",
    "FormatFlags",
    "FormatRegistry",
    "find_format",
    "get_default_registry",
    "register_format",
    # session
    "OptionScope",
    "OptionStore",
    "parse_compact_options",
    "HandleState",
    "ObjectHandle",
    "Conversion",
    "SessionState",
    # batch
    "BatchResult",
    "batch_file_name",
    "full_convert",
    "incremented_file_name",
    # transforms
    "ReactionFilter",
    "require_product",
    "require_valid_smiles",
    "max_smiles_length",
    "metadata_matches",
    "default_filters",
    "rejection_counts",
    "canonicalize_step",
    "filter_step",
    # stats
    "ConversionStats",
    "FileStats",
]
