# chemconv/filters.py
"""Keep/drop rules for reaction records.

A :class:`ReactionFilter` is itself a transform step: it returns the record
it keeps and ``None`` for the record it rejects, so it can be placed
directly in ``Conversion(transforms=[...])``. Every filter counts what it
saw and what it rejected; :func:`rejection_counts` collects those counts
after a run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from .smiles import is_valid_smiles
from .types import ReactionRecord

logger = logging.getLogger(__name__)

Predicate = Callable[[ReactionRecord], bool]


@dataclass
class ReactionFilter:
    """A named predicate with veto counters.

    Attributes:
        name: Label used in log messages and in :func:`rejection_counts`.
        predicate: Returns True for records to keep.
        seen: Records checked so far.
        rejected: Records the predicate refused.
    """

    name: str
    predicate: Predicate
    seen: int = 0
    rejected: int = 0

    def keeps(self, record: ReactionRecord) -> bool:
        self.seen += 1
        if self.predicate(record):
            return True
        self.rejected += 1
        logger.debug(
            "%s rejected %s", self.name, record.title or record.reaction_smiles or "<record>"
        )
        return False

    def __call__(self, record: ReactionRecord) -> Optional[ReactionRecord]:
        return record if self.keeps(record) else None

    def reset(self) -> None:
        self.seen = 0
        self.rejected = 0


def _molecules(record: ReactionRecord) -> List[str]:
    return [*record.reactants, *record.reagents, *record.products]


def require_product() -> ReactionFilter:
    """Reject reactions that list no product."""
    return ReactionFilter("require_product", lambda record: bool(record.products))


def require_valid_smiles() -> ReactionFilter:
    """Reject reactions with a reactant, reagent or product RDKit cannot parse."""
    return ReactionFilter(
        "require_valid_smiles",
        lambda record: all(is_valid_smiles(s) for s in _molecules(record)),
    )


def max_smiles_length(limit: int) -> ReactionFilter:
    """Reject reactions holding a molecule SMILES longer than ``limit`` characters."""
    if limit < 1:
        raise ValueError(f"SMILES length limit must be positive, got {limit}")
    return ReactionFilter(
        f"max_smiles_length({limit})",
        lambda record: max(map(len, _molecules(record)), default=0) <= limit,
    )


def metadata_matches(test: Callable[[Dict[str, Any]], bool], name: Optional[str] = None) -> ReactionFilter:
    """Keep reactions whose ``extra_metadata`` passes ``test``.

    A record whose metadata makes ``test`` raise ``KeyError``, ``TypeError``
    or ``ValueError`` (a missing or malformed field) is rejected.
    """
    label = name or getattr(test, "__name__", type(test).__name__)

    def _check(record: ReactionRecord) -> bool:
        try:
            return bool(test(record.extra_metadata or {}))
        except (KeyError, TypeError, ValueError) as exc:
            logger.debug("metadata test %s failed on %s: %s", label, record.title, exc)
            return False

    return ReactionFilter(f"metadata_matches({label})", _check)


def default_filters() -> List[ReactionFilter]:
    """Fresh instances of the filters applied by default: a product and parseable SMILES."""
    return [require_product(), require_valid_smiles()]


def rejection_counts(steps: Sequence[Any]) -> Dict[str, int]:
    """Map each :class:`ReactionFilter` in ``steps`` to how many records it rejected."""
    return {step.name: step.rejected for step in steps if isinstance(step, ReactionFilter)}
