"""
Genes whose expression changes along pseudotime.

Functions
---------
scan_pseudotime_genes
    Fit a generalized additive model (Gaussian GLMGam with a B-spline
    smooth of pseudotime) for each gene and F-test it against a flat,
    intercept-only fit. Returns a DataFrame ranked by p-value.

smooth_gene_trend
    LOESS curve of one gene against pseudotime, for plotting.

Notes
-----
P-values are reported raw: no multiple-testing correction is applied, so
with many genes tested a fraction of small p-values are false positives.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
import pandas as pd
import scipy.sparse as sp
import statsmodels.api as sm
from anndata import AnnData
from scipy import stats
from statsmodels.gam.api import BSplines, GLMGam

from .base import Pseudotime
from ..preprocessing.core import select_top_variance_genes


def _gam_f_test(y: np.ndarray, t: np.ndarray, df: int, degree: int, alpha: float):
    """F-test of a spline smooth of ``t`` against the intercept-only fit."""
    n = len(y)
    rss0 = float(((y - y.mean()) ** 2).sum())
    if rss0 <= 1e-12:
        return 1.0, 0.0, 0.0

    smoother = BSplines(t[:, None], df=[df], degree=[degree])
    res = GLMGam(
        y,
        exog=np.ones((n, 1)),
        smoother=smoother,
        alpha=alpha,
        family=sm.families.Gaussian(),
    ).fit()

    rss1 = float((np.asarray(res.resid_response) ** 2).sum())
    edf_total = float(np.sum(res.edf))
    edf = edf_total - 1.0
    df_resid = n - edf_total
    if edf <= 0 or df_resid <= 0:
        return np.nan, np.nan, edf
    if rss1 <= 1e-12:
        return 0.0, np.inf, edf

    f_stat = ((rss0 - rss1) / edf) / (rss1 / df_resid)
    f_stat = max(f_stat, 0.0)
    return float(stats.f.sf(f_stat, edf, df_resid)), f_stat, edf


def scan_pseudotime_genes(
    adata: AnnData,
    pseudotime: Pseudotime,
    n_top_genes: int = 100,
    df: int = 5,
    degree: int = 3,
    alpha: float = 0.0,
) -> pd.DataFrame:
    """
    Test each of the top-variance genes for a non-flat trend along pseudotime.

    Parameters
    ----------
    adata : AnnData
        Log-normalised expression, cells in the same order as ``pseudotime``.
    pseudotime : Pseudotime
        Pseudotime estimate; cells with NaN are left out.
    n_top_genes : int
        Number of highest-variance genes to test. ``None`` tests all genes.
    df : int
        B-spline basis size for the smooth term.
    degree : int
        B-spline degree.
    alpha : float
        Smoothing penalty weight of the GAM (0 = unpenalised regression spline).

    Returns
    -------
    pd.DataFrame
        Columns gene, pval, f_stat, edf, n_cells, direction; sorted ascending
        by pval. P-values are not corrected for multiple testing.
    """
    if tuple(adata.obs_names) != pseudotime.cell_names:
        raise ValueError("Pseudotime cells do not match adata.obs_names (same cells, same order).")

    defined = pseudotime.defined
    t = np.asarray(pseudotime.values)[defined]
    n_cells = int(defined.sum())
    if np.unique(t).size <= df:
        raise ValueError(
            f"Need more than {df} distinct pseudotime values to fit a spline with df={df}, "
            f"got {np.unique(t).size}."
        )

    sub = adata[defined]
    if n_top_genes is not None:
        sub = select_top_variance_genes(sub, n_top=n_top_genes)
    X = sub.X
    if sp.issparse(X):
        X = X.toarray()
    X = np.asarray(X, dtype=float)
    genes = np.array(sub.var_names)

    print(f"  Fitting GAMs for {X.shape[1]} genes vs '{pseudotime.method}' "
          f"({n_cells} cells)...")

    rows = []
    n_failed = 0
    for i in range(X.shape[1]):
        y = X[:, i]
        try:
            pval, f_stat, edf = _gam_f_test(y, t, df, degree, alpha)
        except (np.linalg.LinAlgError, ValueError) as err:
            n_failed += 1
            print(f"  GAM fit failed for {genes[i]}: {err}")
            pval, f_stat, edf = np.nan, np.nan, np.nan

        if np.ptp(y) == 0:
            direction = "flat"
        else:
            r = stats.spearmanr(t, y)[0]
            direction = "up" if r > 0 else "down"
        rows.append({
            "gene": genes[i],
            "pval": pval,
            "f_stat": f_stat,
            "edf": edf,
            "n_cells": n_cells,
            "direction": direction,
        })

    res_df = pd.DataFrame(rows, columns=["gene", "pval", "f_stat", "edf", "n_cells", "direction"])
    res_df = res_df.sort_values("pval", kind="stable", na_position="last").reset_index(drop=True)

    n_sig = int((res_df["pval"] < 0.05).sum())
    print(f"  {n_sig} genes with p < 0.05 (uncorrected for multiple testing).")
    if n_failed:
        print(f"  {n_failed} genes could not be fitted and have NaN p-values.")
    return res_df


def smooth_gene_trend(
    expression: np.ndarray,
    pseudotime: np.ndarray,
    frac: float = 0.5,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    LOESS trend of expression along pseudotime (NaN pseudotime dropped).

    Returns
    -------
    (t_sorted, fitted) : tuple of np.ndarray
    """
    expression = np.asarray(expression, dtype=float).ravel()
    pseudotime = np.asarray(pseudotime, dtype=float).ravel()
    if expression.shape != pseudotime.shape:
        raise ValueError(
            f"{expression.size} expression values for {pseudotime.size} pseudotime values."
        )
    keep = ~np.isnan(pseudotime)
    fit = sm.nonparametric.lowess(expression[keep], pseudotime[keep], frac=frac, return_sorted=True)
    return fit[:, 0], fit[:, 1]
