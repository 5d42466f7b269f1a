# chemconv/types.py
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ReactionRecord:
    """Domain object produced and consumed by the built-in formats.

    The conversion engine never looks inside records; only formats and
    transforms do.

    Attributes:
        title: Human-readable title; formats fall back to the input file name.
        reaction_id: Identifier within the source dataset.
        source: Identifier of the format the record was read with.
        source_file_path: File the record was read from, when known.
        reaction_smiles: Reaction SMILES ``reactants>reagents>products``.
        reactants: Reactant SMILES strings.
        reagents: Reagent/agent SMILES strings.
        products: Product SMILES strings.
        atom_mapping: Original atom-mapped reaction SMILES when maps were
            stripped on input.
        extra_metadata: Unstructured metadata carried through conversion.
    """

    title: str = ""
    reaction_id: str = ""
    source: str = ""
    source_file_path: Optional[str] = None
    reaction_smiles: str = ""
    reactants: List[str] = field(default_factory=list)
    reagents: List[str] = field(default_factory=list)
    products: List[str] = field(default_factory=list)
    atom_mapping: Optional[str] = None
    extra_metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-serializable shallow copy of every field."""
        return {
            "title": self.title,
            "reaction_id": self.reaction_id,
            "source": self.source,
            "source_file_path": self.source_file_path,
            "reaction_smiles": self.reaction_smiles,
            "reactants": list(self.reactants),
            "reagents": list(self.reagents),
            "products": list(self.products),
            "atom_mapping": self.atom_mapping,
            "extra_metadata": dict(self.extra_metadata or {}),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReactionRecord":
        """Build a record from ``to_dict`` output.

        Unknown top-level keys are folded into ``extra_metadata``.
        """
        extra_meta = dict(data.get("extra_metadata") or {})
        known_keys = set(cls.__dataclass_fields__.keys())
        for key, value in data.items():
            if key not in known_keys and key not in extra_meta:
                extra_meta[key] = value

        return cls(
            title=data.get("title") or "",
            reaction_id=data.get("reaction_id") or "",
            source=data.get("source") or "",
            source_file_path=data.get("source_file_path"),
            reaction_smiles=data.get("reaction_smiles") or "",
            reactants=list(data.get("reactants") or []),
            reagents=list(data.get("reagents") or []),
            products=list(data.get("products") or []),
            atom_mapping=data.get("atom_mapping"),
            extra_metadata=extra_meta,
        )

    def __post_init__(self) -> None:
        if self.extra_metadata is None:
            self.extra_metadata = {}
