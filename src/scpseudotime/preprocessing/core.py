"""
Normalization and gene selection.
"""

import numpy as np
import scanpy as sc
import scipy.sparse as sp
from anndata import AnnData


def normalize_and_log(adata: AnnData, target_sum: float = 1e4) -> AnnData:
    """
    Total-count normalize (library-size correct) each cell to ``target_sum``
    reads and logarithmize. Returns a new object; ``adata`` is left untouched.
    """
    out = adata.copy()
    sc.pp.normalize_total(out, target_sum=target_sum)
    sc.pp.log1p(out)
    return out


def gene_variances(adata: AnnData) -> np.ndarray:
    """Per-gene variance across cells (population variance)."""
    X = adata.X
    if sp.issparse(X):
        mean = np.asarray(X.mean(axis=0)).ravel()
        mean_sq = np.asarray(X.multiply(X).mean(axis=0)).ravel()
        return mean_sq - mean ** 2
    return np.asarray(X, dtype=float).var(axis=0)


def select_top_variance_genes(adata: AnnData, n_top: int = 100) -> AnnData:
    """
    Restrict ``adata`` to the ``n_top`` most variable genes.

    Genes with equal variance keep their original order. The result is a
    copy; gene order follows decreasing variance.
    """
    if n_top < 1:
        raise ValueError(f"n_top must be >= 1, got {n_top}.")
    var = gene_variances(adata)
    n_top = min(n_top, adata.n_vars)
    order = np.argsort(-var, kind="stable")[:n_top]
    print(f"Selected {n_top} top-variance genes out of {adata.n_vars}.")
    return adata[:, order].copy()
