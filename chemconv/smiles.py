# chemconv/smiles.py

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Tuple

from rdkit import Chem

from .types import ReactionRecord

logger = logging.getLogger(__name__)

# Atom-map numbers inside bracketed atoms, e.g. ``[CH3:1]``.
_ATOM_MAP_PATTERN = re.compile(r"(\[[^\[\]]*?):\d+([^\[\]]*\])")


def split_smiles_block(smiles_block: str) -> List[str]:
    """Split a dot-delimited block such as ``'CCO.CCBr'`` into molecules."""
    if not smiles_block:
        return []
    return [s for s in (part.strip() for part in smiles_block.split(".")) if s]


def canonicalize_smiles(smiles: str, isomeric: bool = True) -> str:
    """Return the RDKit canonical form of ``smiles``.

    Raises:
        ValueError: If the SMILES string is empty or cannot be parsed.
    """
    if not smiles:
        raise ValueError("Empty SMILES string cannot be canonicalized.")
    mol = Chem.MolFromSmiles(smiles)
    if mol is None:
        logger.error("Invalid SMILES (cannot parse): %r", smiles)
        raise ValueError(f"Invalid SMILES (cannot parse): {smiles!r}")
    return Chem.MolToSmiles(mol, isomericSmiles=isomeric)


def is_valid_smiles(smiles: str) -> bool:
    return bool(smiles) and Chem.MolFromSmiles(smiles) is not None


def strip_atom_maps(rxn_smiles: str) -> Tuple[str, Optional[str]]:
    """Remove atom-map numbers from a reaction SMILES string.

    Returns:
        ``(stripped, original)`` where ``original`` is ``None`` when nothing
        was stripped.
    """
    updated = rxn_smiles
    while True:
        stripped = _ATOM_MAP_PATTERN.sub(r"\1\2", updated)
        if stripped == updated:
            break
        updated = stripped
    return (updated, None) if updated == rxn_smiles else (updated, rxn_smiles)


def parse_reaction_smiles(
    rxn_smiles: str,
    strict: bool = True,
    strip_atom_mapping: bool = False,
) -> ReactionRecord:
    """Parse ``reactants>reagents>products`` into a ``ReactionRecord``.

    Args:
        rxn_smiles: Reaction SMILES to parse.
        strict: Require exactly three ``>``-separated parts; when False,
            missing parts are padded with empty blocks.
        strip_atom_mapping: Remove atom-map numbers and keep the original in
            ``atom_mapping``.

    Raises:
        ValueError: If ``rxn_smiles`` is malformed and ``strict`` is True.
    """
    if rxn_smiles is None:
        raise ValueError("rxn_smiles cannot be None.")

    rxn_smiles = rxn_smiles.strip()
    atom_mapping: Optional[str] = None
    if strip_atom_mapping:
        rxn_smiles, atom_mapping = strip_atom_maps(rxn_smiles)

    parts = rxn_smiles.split(">")
    if len(parts) != 3:
        if strict:
            raise ValueError(f"Invalid reaction SMILES format: {rxn_smiles!r}")
        parts = (parts + ["", "", ""])[:3]

    reactants_block, reagents_block, products_block = parts
    return ReactionRecord(
        reaction_smiles=rxn_smiles,
        reactants=split_smiles_block(reactants_block),
        reagents=split_smiles_block(reagents_block),
        products=split_smiles_block(products_block),
        atom_mapping=atom_mapping,
    )


def join_reaction_smiles(
    reactants: Iterable[str], reagents: Iterable[str], products: Iterable[str]
) -> str:
    return ">".join(".".join(block) for block in (reactants, reagents, products))


def canonical_reaction_smiles(record: ReactionRecord, isomeric: bool = True) -> str:
    """Build a reaction SMILES from the record's canonicalized molecules."""
    return join_reaction_smiles(
        [canonicalize_smiles(s, isomeric) for s in record.reactants],
        [canonicalize_smiles(s, isomeric) for s in record.reagents],
        [canonicalize_smiles(s, isomeric) for s in record.products],
    )
