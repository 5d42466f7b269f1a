# chemconv/transforms.py
"""Transformation steps applied to each object between read and write.

A step takes an object and returns the object to pass on (the same one or a
replacement) or ``None`` to veto it. A vetoed object is discarded by the
session and never reaches the output format.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Callable, Optional, Sequence

from .filters import Predicate, ReactionFilter
from .smiles import canonical_reaction_smiles, canonicalize_smiles
from .types import ReactionRecord

logger = logging.getLogger(__name__)

TransformStep = Callable[[Any], Optional[Any]]


def step_name(step: Callable[..., Any]) -> str:
    if isinstance(step, ReactionFilter):
        return step.name
    return getattr(step, "__name__", step.__class__.__name__)


def filter_step(predicate: Predicate) -> ReactionFilter:
    """Turn a keep/drop predicate into a counting step that vetoes rejected objects.

    A :class:`ReactionFilter` is already a step and is returned unchanged.
    """
    if isinstance(predicate, ReactionFilter):
        return predicate
    return ReactionFilter(step_name(predicate), predicate)


def canonicalize_step(isomeric: bool = True) -> TransformStep:
    """Build a step replacing each record by one with canonical SMILES.

    Args:
        isomeric: Preserve stereochemistry in the canonical output.

    Returns:
        Step producing a new ``ReactionRecord``; the input record is left
        untouched.
    """

    def _step(record: ReactionRecord) -> ReactionRecord:
        return dataclasses.replace(
            record,
            reaction_smiles=canonical_reaction_smiles(record, isomeric=isomeric),
            reactants=[canonicalize_smiles(s, isomeric) for s in record.reactants],
            reagents=[canonicalize_smiles(s, isomeric) for s in record.reagents],
            products=[canonicalize_smiles(s, isomeric) for s in record.products],
            extra_metadata=dict(record.extra_metadata or {}),
        )

    _step.__name__ = f"canonicalize(isomeric={isomeric})"
    return _step


def apply_transforms(obj: Any, steps: Sequence[TransformStep]) -> Optional[Any]:
    """Run ``obj`` through ``steps`` in order.

    Returns:
        The final object, or ``None`` as soon as one step vetoes it.
    """
    for step in steps:
        obj = step(obj)
        if obj is None:
            logger.debug("Object vetoed by %s", step_name(step))
            return None
    return obj
