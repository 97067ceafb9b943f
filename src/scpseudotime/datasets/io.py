"""
Data input functions for expression matrices with per-cell stage metadata.
"""

from typing import Optional, Sequence

import numpy as np
import pandas as pd
import scanpy as sc
import scipy.sparse as sp
from anndata import AnnData

from .stages import DENG_STAGES, set_stage_labels


def validate_expression(adata: AnnData) -> None:
    """
    Check that the expression matrix is usable downstream.

    Raises
    ------
    ValueError
        If the matrix is empty, contains NaN or negative values, or if the
        metadata row count does not match the number of cells.
    """
    if adata.n_obs == 0 or adata.n_vars == 0:
        raise ValueError(f"Empty expression matrix ({adata.n_obs} cells x {adata.n_vars} genes).")
    if adata.obs.shape[0] != adata.X.shape[0]:
        raise ValueError(
            f"Metadata has {adata.obs.shape[0]} rows but the matrix has {adata.X.shape[0]} cells."
        )

    values = adata.X.data if sp.issparse(adata.X) else np.asarray(adata.X)
    if np.isnan(values).any():
        raise ValueError("Expression matrix contains NaN values.")
    if (values < 0).any():
        raise ValueError(
            "Expression matrix contains negative values; expected (log-transformed) counts."
        )


def from_matrix(
    matrix,
    metadata: pd.DataFrame,
    genes: Optional[Sequence[str]] = None,
    stage_key: str = "cell_type2",
    vocabulary: Sequence[str] = DENG_STAGES,
) -> AnnData:
    """
    Build an AnnData from a genes x cells matrix and a per-cell metadata table.

    Parameters
    ----------
    matrix : array-like or sparse matrix
        Expression values, rows = genes, columns = cells.
    metadata : pd.DataFrame
        One row per cell, in the same order as the matrix columns.
    genes : sequence of str, optional
        Gene names for the matrix rows. Defaults to ``gene_0 .. gene_n``.
    stage_key : str
        Column of ``metadata`` holding the developmental stage.
    vocabulary : sequence of str
        Ordered stage vocabulary.

    Returns
    -------
    AnnData
        Cells x genes object with ``obs[stage_key]`` as an ordered categorical.
    """
    if sp.issparse(matrix):
        X = sp.csr_matrix(matrix).T.tocsr()
    else:
        X = np.asarray(matrix, dtype=float)
        if X.ndim != 2:
            raise ValueError(f"Expected a 2-D genes x cells matrix, got shape {X.shape}.")
        X = X.T.copy()

    n_cells, n_genes = X.shape
    if len(metadata) != n_cells:
        raise ValueError(
            f"Metadata has {len(metadata)} rows but the matrix has {n_cells} cell columns."
        )
    if genes is None:
        genes = [f"gene_{i}" for i in range(n_genes)]
    genes = [str(g) for g in genes]
    if len(genes) != n_genes:
        raise ValueError(f"Got {len(genes)} gene names for {n_genes} matrix rows.")

    obs = metadata.copy()
    obs.index = obs.index.astype(str)
    adata = AnnData(X=X, obs=obs, var=pd.DataFrame(index=genes))
    adata.var_names_make_unique()
    validate_expression(adata)
    return set_stage_labels(adata, key=stage_key, vocabulary=vocabulary)


def read_h5ad(
    path: str,
    stage_key: str = "cell_type2",
    vocabulary: Sequence[str] = DENG_STAGES,
) -> AnnData:
    """
    Read a Scanpy/AnnData file and type its stage column.
    """
    print(f"Reading Scanpy/AnnData file: {path}")
    adata = sc.read_h5ad(path)
    validate_expression(adata)
    adata = set_stage_labels(adata, key=stage_key, vocabulary=vocabulary)
    print(f"Loaded {adata.n_obs} cells x {adata.n_vars} genes.")
    return adata


def read_csv_matrix(
    counts_csv: str,
    metadata_csv: str,
    stage_key: str = "cell_type2",
    vocabulary: Sequence[str] = DENG_STAGES,
) -> AnnData:
    """
    Read a genes x cells CSV (gene names in the first column, cell names in
    the header) and a per-cell metadata CSV (cell names in the first column).
    """
    print(f"Reading expression matrix from: {counts_csv}")
    counts = pd.read_csv(counts_csv, index_col=0)
    metadata = pd.read_csv(metadata_csv, index_col=0)

    if len(metadata) == counts.shape[1] and not metadata.index.equals(counts.columns):
        missing = set(counts.columns.astype(str)) - set(metadata.index.astype(str))
        if missing:
            raise ValueError(
                f"{len(missing)} matrix columns have no metadata row (e.g. {sorted(missing)[:3]})."
            )
        metadata = metadata.loc[counts.columns]

    return from_matrix(
        counts.values,
        metadata,
        genes=counts.index.astype(str),
        stage_key=stage_key,
        vocabulary=vocabulary,
    )
