# chemconv/reporter.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional

import pandas as pd


@dataclass
class FileStats:
    """Counters for a single input file of a batch.

    Attributes:
        name: Input file path.
        read: Objects read from the file.
        written: Objects written from the file.
        discarded: Objects vetoed by the transform stage or outside bounds.
        error: Message of the failure that stopped the file, if any.
    """

    name: str
    read: int = 0
    written: int = 0
    discarded: int = 0
    error: Optional[str] = None

    def format(self) -> str:
        """Return a concise one-line summary of the counts."""
        text = (
            f"{self.name}: read={self.read}, written={self.written}, "
            f"discarded={self.discarded}"
        )
        if self.error:
            text += f", error={self.error}"
        return text

    def __str__(self) -> str:
        return self.format()


@dataclass
class ConversionStats:
    """Aggregate counters for one or more conversion runs.

    Attributes:
        n_read: Objects handed to the session by input formats.
        n_written: Objects written by output formats.
        n_discarded: Objects explicitly discarded (vetoed or out of bounds).
        n_failed: Runs or files that ended with an error.
        per_file: Mapping of input file name to per-file counters.
    """

    n_read: int = 0
    n_written: int = 0
    n_discarded: int = 0
    n_failed: int = 0
    per_file: Dict[str, FileStats] = field(default_factory=dict)

    def _merge_file_stats(self, source: Dict[str, FileStats]) -> None:
        for name, fstats in source.items():
            merged = self.per_file.setdefault(name, FileStats(name=name))
            merged.read += fstats.read
            merged.written += fstats.written
            merged.discarded += fstats.discarded
            merged.error = fstats.error or merged.error

    def __iadd__(self, other: "ConversionStats") -> "ConversionStats":
        if not isinstance(other, ConversionStats):
            return NotImplemented

        self.n_read += other.n_read
        self.n_written += other.n_written
        self.n_discarded += other.n_discarded
        self.n_failed += other.n_failed
        self._merge_file_stats(other.per_file)
        return self

    def __add__(self, other: "ConversionStats") -> "ConversionStats":
        if not isinstance(other, ConversionStats):
            return NotImplemented

        combined = ConversionStats()
        combined += self
        combined += other
        return combined

    @classmethod
    def combine(cls, stats_list: Iterable["ConversionStats"]) -> "ConversionStats":
        """Sum several ``ConversionStats`` objects.

        Args:
            stats_list: Iterable of statistics objects to aggregate.

        Returns:
            Aggregate statistics across all provided objects.
        """
        combined = cls()
        for stats in stats_list:
            combined += stats
        return combined

    def summary(self, include_files: bool = True) -> str:
        """Return a multiline, human-readable summary.

        Args:
            include_files: Whether to include the per-file breakdown.
        """
        lines = [
            f"Read: {self.n_read}, written: {self.n_written}, "
            f"discarded: {self.n_discarded}, failed: {self.n_failed}"
        ]
        if include_files and self.per_file:
            lines.append("Per-file:")
            for name in self.per_file:
                lines.append(f"  {self.per_file[name]}")
        return "\n".join(lines)

    def to_dataframe(self) -> pd.DataFrame:
        """Return the per-file counters as a ``pandas.DataFrame``."""
        return pd.DataFrame(
            [
                {
                    "file": f.name,
                    "read": f.read,
                    "written": f.written,
                    "discarded": f.discarded,
                    "error": f.error,
                }
                for f in self.per_file.values()
            ],
            columns=["file", "read", "written", "discarded", "error"],
        )

    def __str__(self) -> str:
        return self.summary()
