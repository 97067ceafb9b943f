"""
Pseudotime artifacts shared by every trajectory method.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterator, Optional, Sequence

import numpy as np
import pandas as pd


class DegenerateKernelWarning(UserWarning):
    """Diffusion kernel is near-identity, near-constant or disconnected."""


def _readonly(values) -> np.ndarray:
    arr = np.array(values, dtype=float)
    arr.setflags(write=False)
    return arr


def rank_pseudotime(values) -> np.ndarray:
    """
    Stable 1-based ordinal ranks; ties keep input order, NaN stays NaN.
    """
    values = np.asarray(values, dtype=float)
    ranks = np.full(values.shape, np.nan)
    defined = np.flatnonzero(~np.isnan(values))
    order = defined[np.argsort(values[defined], kind="stable")]
    ranks[order] = np.arange(1, len(order) + 1)
    return ranks


@dataclass(frozen=True, eq=False)
class Pseudotime:
    """
    One pseudotime estimate per cell.

    ``values`` is a read-only float array; NaN marks cells whose pseudotime
    is undefined (e.g. unreachable from the root).
    """

    method: str
    values: np.ndarray
    cell_names: tuple
    kind: str = "raw"
    root: Optional[int] = None
    meta: Mapping = field(default_factory=dict, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "values", _readonly(self.values))
        object.__setattr__(self, "cell_names", tuple(str(c) for c in self.cell_names))
        object.__setattr__(self, "meta", MappingProxyType(dict(self.meta)))
        if self.values.ndim != 1:
            raise ValueError(f"Pseudotime values must be 1-D, got shape {self.values.shape}.")
        if len(self.cell_names) != len(self.values):
            raise ValueError(
                f"{len(self.values)} pseudotime values for {len(self.cell_names)} cells."
            )
        if self.kind not in ("raw", "rank"):
            raise ValueError(f"Unknown pseudotime kind '{self.kind}'.")

    def __len__(self) -> int:
        return len(self.values)

    @property
    def defined(self) -> np.ndarray:
        return ~np.isnan(self.values)

    def ranked(self) -> "Pseudotime":
        if self.kind == "rank":
            return self
        return Pseudotime(
            method=self.method,
            values=rank_pseudotime(self.values),
            cell_names=self.cell_names,
            kind="rank",
            root=self.root,
            meta=dict(self.meta),
        )

    def to_series(self) -> pd.Series:
        return pd.Series(np.array(self.values), index=list(self.cell_names), name=self.method)


class PseudotimeSet(Mapping):
    """
    Immutable mapping of method name -> :class:`Pseudotime` over one set of cells.

    New estimates are added with :meth:`with_pseudotime`, which returns a new set.
    """

    def __init__(self, pseudotimes: Sequence[Pseudotime] = ()):
        items = {}
        cell_names = None
        for pt in pseudotimes:
            if cell_names is None:
                cell_names = pt.cell_names
            elif pt.cell_names != cell_names:
                raise ValueError(
                    f"Pseudotime '{pt.method}' is defined over different cells than the set."
                )
            if pt.method in items:
                raise ValueError(f"Duplicate pseudotime method '{pt.method}'.")
            items[pt.method] = pt
        self._items = items
        self._cell_names = cell_names

    def __getitem__(self, method: str) -> Pseudotime:
        return self._items[method]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"PseudotimeSet({list(self._items)})"

    @property
    def cell_names(self) -> Optional[tuple]:
        return self._cell_names

    def with_pseudotime(self, pseudotime: Pseudotime) -> "PseudotimeSet":
        return PseudotimeSet(list(self._items.values()) + [pseudotime])

    def to_frame(self) -> pd.DataFrame:
        """Cells x methods table of all pseudotime vectors."""
        if not self._items:
            return pd.DataFrame()
        return pd.concat([pt.to_series() for pt in self._items.values()], axis=1)
