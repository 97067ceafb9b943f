"""
Cluster labels for lineage reconstruction.
"""

import numpy as np
import pandas as pd
import scanpy as sc
import anndata as ad
from sklearn.cluster import KMeans


def cluster_cells(
    embedding: np.ndarray,
    method: str = "kmeans",
    n_clusters: int = 5,
    resolution: float = 0.5,
    n_neighbors: int = 15,
    random_state: int = 42,
) -> pd.Categorical:
    """
    Cluster cells in a low-dimensional embedding.

    Parameters
    ----------
    embedding : np.ndarray
        Cells x components (e.g. PCA coordinates).
    method : str
        'kmeans' (scikit-learn) or 'leiden' (scanpy kNN graph + Leiden).
    n_clusters : int
        Number of clusters for k-means.
    resolution : float
        Leiden resolution.
    n_neighbors : int
        kNN graph size for Leiden.
    random_state : int
        Seed for both methods.

    Returns
    -------
    pd.Categorical
        Cluster label per cell, as strings.
    """
    embedding = np.asarray(embedding, dtype=float)
    n_cells = embedding.shape[0]

    if method == "kmeans":
        if not 1 <= n_clusters <= n_cells:
            raise ValueError(f"n_clusters must be in [1, {n_cells}], got {n_clusters}.")
        print(f"Clustering {n_cells} cells with k-means (k={n_clusters})...")
        km = KMeans(n_clusters=n_clusters, n_init=10, random_state=random_state)
        labels = km.fit_predict(embedding).astype(str)

    elif method == "leiden":
        print(f"Clustering {n_cells} cells with Leiden (resolution={resolution})...")
        tmp = ad.AnnData(X=np.zeros((n_cells, 1), dtype=np.float32))
        tmp.obsm["X_emb"] = embedding
        sc.pp.neighbors(
            tmp,
            n_neighbors=min(n_neighbors, n_cells - 1),
            use_rep="X_emb",
            random_state=random_state,
        )
        sc.tl.leiden(tmp, resolution=resolution, key_added="leiden", random_state=random_state)
        labels = tmp.obs["leiden"].astype(str).values

    else:
        raise ValueError(f"Unknown clustering method '{method}'. Use 'kmeans' or 'leiden'.")

    cats = sorted(set(labels), key=lambda c: (len(c), c))
    print(f"Found {len(cats)} clusters.")
    return pd.Categorical(labels, categories=cats)
