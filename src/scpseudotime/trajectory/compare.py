"""
Agreement between pseudotime estimates.
"""

from typing import Mapping, Sequence, Union

import numpy as np
import pandas as pd
from scipy.stats import spearmanr

from .base import Pseudotime, PseudotimeSet


def correlate_pseudotimes(
    pseudotimes: Union[PseudotimeSet, Mapping[str, Pseudotime], Sequence[Pseudotime]],
    method: str = "spearman",
) -> pd.DataFrame:
    """
    Pairwise correlation between pseudotime estimates.

    Each pair uses only the cells where both estimates are defined, so a NaN
    in one method only affects the pairs involving that method.

    Parameters
    ----------
    pseudotimes : PseudotimeSet, mapping or sequence of Pseudotime
    method : {'spearman', 'pearson', 'kendall'}

    Returns
    -------
    pd.DataFrame
        Symmetric methods x methods matrix with unit diagonal.
    """
    if method not in ("spearman", "pearson", "kendall"):
        raise ValueError(f"Unknown correlation method '{method}'.")
    if not isinstance(pseudotimes, PseudotimeSet):
        items = pseudotimes.values() if isinstance(pseudotimes, Mapping) else pseudotimes
        pseudotimes = PseudotimeSet(list(items))
    if len(pseudotimes) < 1:
        raise ValueError("Need at least one pseudotime estimate to compare.")

    frame = pseudotimes.to_frame()
    print(f"Correlating {frame.shape[1]} pseudotime estimates ({method}, complete-case per pair)...")
    corr = frame.corr(method=method)
    values = corr.values.copy()
    np.fill_diagonal(values, 1.0)
    values = 0.5 * (values + values.T)
    return pd.DataFrame(values, index=corr.index, columns=corr.columns)


def stage_agreement(pseudotime: Pseudotime, stages) -> float:
    """
    Spearman correlation between a pseudotime and the ordinal stage of each
    cell, over cells with a defined pseudotime.

    Parameters
    ----------
    pseudotime : Pseudotime
    stages : StageLabels
    """
    if len(stages) != len(pseudotime):
        raise ValueError(f"{len(stages)} stage labels for {len(pseudotime)} cells.")
    defined = pseudotime.defined
    if defined.sum() < 2:
        return np.nan
    return float(spearmanr(np.asarray(pseudotime.values)[defined], stages.codes[defined])[0])
