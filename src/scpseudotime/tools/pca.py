"""
PCA embedding and first-component pseudotime.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np
import scipy.sparse as sp
from anndata import AnnData
from sklearn.decomposition import PCA
from sklearn.preprocessing import StandardScaler

from ..trajectory.base import Pseudotime, rank_pseudotime


@dataclass(frozen=True, eq=False)
class PCAEmbedding:
    """
    Cells x components principal-component scores.

    Columns are mutually orthogonal and ordered by non-increasing
    explained variance.
    """

    coords: np.ndarray
    explained_variance: np.ndarray
    explained_variance_ratio: np.ndarray
    loadings: np.ndarray
    cell_names: tuple
    feature_names: tuple

    @property
    def n_comps(self) -> int:
        return self.coords.shape[1]


def _as_matrix(data):
    if isinstance(data, AnnData):
        X = data.X
        cells, features = tuple(data.obs_names), tuple(data.var_names)
    else:
        X = data
        cells, features = None, None
    if sp.issparse(X):
        X = X.toarray()
    X = np.asarray(X, dtype=float)
    if X.ndim != 2:
        raise ValueError(f"Expected a 2-D cells x features matrix, got shape {X.shape}.")
    if cells is None:
        cells = tuple(f"cell_{i}" for i in range(X.shape[0]))
        features = tuple(f"feature_{j}" for j in range(X.shape[1]))
    return X, cells, features


def run_pca(
    data: Union[AnnData, np.ndarray],
    n_comps: int = 50,
    scale: bool = False,
    random_state: int = 42,
) -> PCAEmbedding:
    """
    Center (and optionally scale) features and project cells onto the top
    ``n_comps`` principal components.

    Parameters
    ----------
    data : AnnData or array
        Cells x genes expression (AnnData) or a cells x features matrix.
    n_comps : int
        Number of components; clipped to ``min(n_cells, n_features)``.
    scale : bool
        If True, scale each feature to unit variance before the SVD.
    random_state : int
        Seed passed to scikit-learn.

    Returns
    -------
    PCAEmbedding
    """
    X, cells, features = _as_matrix(data)
    if X.shape[0] < 2:
        raise ValueError("PCA needs at least 2 cells.")

    max_comps = min(X.shape)
    if n_comps > max_comps:
        print(f"Requested {n_comps} PCs but only {max_comps} are available; using {max_comps}.")
        n_comps = max_comps
    if n_comps < 1:
        raise ValueError(f"n_comps must be >= 1, got {n_comps}.")

    if scale:
        X = StandardScaler().fit_transform(X)

    print(f"Computing {n_comps} principal components over {X.shape[0]} cells...")
    pca = PCA(n_components=n_comps, svd_solver="full", random_state=random_state)
    coords = pca.fit_transform(X)

    return PCAEmbedding(
        coords=coords,
        explained_variance=pca.explained_variance_,
        explained_variance_ratio=pca.explained_variance_ratio_,
        loadings=pca.components_,
        cell_names=cells,
        feature_names=features,
    )


def pca_pseudotime(
    embedding: Union[PCAEmbedding, np.ndarray],
    component: int = 0,
    root: Optional[int] = None,
    cell_names: Optional[Sequence[str]] = None,
    method: str = "pca",
) -> Pseudotime:
    """
    Rank cells by their coordinate on one principal component.

    Ties are broken by input order. PCA axes have an arbitrary sign; when
    ``root`` is given the axis is flipped if needed so that the root cell
    lies on the low side (at or below the median). The root is not moved
    to rank 1; only the direction of the axis is fixed.

    Parameters
    ----------
    embedding : PCAEmbedding or array
        Cells x components scores.
    component : int
        Zero-based component index (0 = PC1).
    root : int, optional
        Index of a known early cell used to orient the axis.
    cell_names : sequence of str, optional
        Required when ``embedding`` is a plain array without names.

    Returns
    -------
    Pseudotime
        Ranks 1..n (``kind="rank"``).
    """
    if isinstance(embedding, PCAEmbedding):
        coords = embedding.coords
        names = embedding.cell_names if cell_names is None else cell_names
    else:
        coords = np.asarray(embedding, dtype=float)
        names = cell_names
        if coords.ndim == 1:
            coords = coords[:, None]
    if names is None:
        names = [f"cell_{i}" for i in range(coords.shape[0])]
    if not 0 <= component < coords.shape[1]:
        raise ValueError(f"Component {component} out of range for {coords.shape[1]} components.")

    axis = np.array(coords[:, component], dtype=float)
    if root is not None:
        if not 0 <= root < len(axis):
            raise ValueError(f"Root index {root} out of range for {len(axis)} cells.")
        if axis[root] > np.median(axis):
            axis = -axis

    return Pseudotime(
        method=method,
        values=rank_pseudotime(axis),
        cell_names=tuple(names),
        kind="rank",
        root=root,
        meta={"component": component},
    )
