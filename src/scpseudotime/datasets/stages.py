"""
Ordered developmental-stage labels.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple

import numpy as np
import pandas as pd
from anndata import AnnData

# Deng et al. (2014) mouse pre-implantation stages, earliest first.
DENG_STAGES: Tuple[str, ...] = (
    "zy",
    "early2cell",
    "mid2cell",
    "late2cell",
    "4cell",
    "8cell",
    "16cell",
    "earlyblast",
    "midblast",
    "lateblast",
)


@dataclass(frozen=True)
class StageLabels:
    """
    Per-cell stage labels over a fixed, ordered vocabulary.

    Parameters
    ----------
    categorical : pd.Categorical
        Ordered categorical whose categories are the vocabulary.
    """

    categorical: pd.Categorical

    @classmethod
    def from_values(cls, values: Iterable, vocabulary: Sequence[str] = DENG_STAGES) -> "StageLabels":
        """
        Build labels from raw values (strings, or an existing categorical).

        Raises
        ------
        ValueError
            If a value is missing or not part of ``vocabulary``.
        """
        vocabulary = tuple(str(v) for v in vocabulary)
        if len(set(vocabulary)) != len(vocabulary):
            raise ValueError("Stage vocabulary contains duplicate entries.")

        raw = pd.Series(list(values), dtype=object)
        if raw.isna().any():
            raise ValueError(f"{int(raw.isna().sum())} cells have no stage label.")
        raw = raw.astype(str)

        unknown = sorted(set(raw) - set(vocabulary))
        if unknown:
            raise ValueError(
                f"Unknown stage labels {unknown}; expected one of {list(vocabulary)}."
            )
        cat = pd.Categorical(raw, categories=list(vocabulary), ordered=True)
        return cls(cat)

    def __len__(self) -> int:
        return len(self.categorical)

    @property
    def vocabulary(self) -> Tuple[str, ...]:
        return tuple(self.categorical.categories)

    @property
    def codes(self) -> np.ndarray:
        """Ordinal stage index per cell (0 = earliest stage in the vocabulary)."""
        codes = np.asarray(self.categorical.codes, dtype=int).copy()
        codes.setflags(write=False)
        return codes

    def counts(self) -> pd.Series:
        """Number of cells per stage, in vocabulary order (zero-filled)."""
        return pd.Series(self.categorical).value_counts(sort=False).reindex(
            list(self.vocabulary), fill_value=0
        )

    def earliest(self) -> str:
        """Earliest stage that actually has cells."""
        return self.vocabulary[int(self.codes.min())]


def set_stage_labels(
    adata: AnnData, key: str = "cell_type2", vocabulary: Sequence[str] = DENG_STAGES
) -> AnnData:
    """
    Return a copy of ``adata`` whose ``obs[key]`` is an ordered categorical
    over ``vocabulary``.
    """
    if key not in adata.obs:
        raise ValueError(f"Stage key '{key}' not found in adata.obs.")
    labels = StageLabels.from_values(adata.obs[key].values, vocabulary)
    out = adata.copy()
    out.obs[key] = pd.Categorical(
        labels.categorical, categories=labels.vocabulary, ordered=True
    )
    return out


def get_stage_labels(
    adata: AnnData, key: str = "cell_type2", vocabulary: Sequence[str] | None = None
) -> StageLabels:
    """Read ``obs[key]`` as :class:`StageLabels`, reusing its categories when ordered."""
    if key not in adata.obs:
        raise ValueError(f"Stage key '{key}' not found in adata.obs.")
    col = adata.obs[key]
    if vocabulary is None:
        if isinstance(col.dtype, pd.CategoricalDtype) and col.cat.ordered:
            vocabulary = list(col.cat.categories)
        else:
            vocabulary = DENG_STAGES
    return StageLabels.from_values(col.values, vocabulary)
