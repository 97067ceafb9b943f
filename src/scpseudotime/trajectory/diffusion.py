"""
Diffusion maps over cells.

A Gaussian affinity kernel over pairwise Euclidean distances is turned
into a row-stochastic transition operator P = D^-1 K. Its spectrum is
obtained from the symmetric conjugate D^-1/2 K D^-1/2, so eigenvalues are
real and eigenvectors well conditioned. The leading eigenpair (eigenvalue
1, constant eigenvector) is the stationary one and is kept separately
from the diffusion components.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import numpy as np
from scipy.linalg import eigh
from scipy.sparse import csr_matrix
from scipy.sparse.csgraph import connected_components
from scipy.spatial.distance import pdist, squareform

from .base import DegenerateKernelWarning

Bandwidth = Union[str, float]


def select_bandwidth(distances: np.ndarray, method: Bandwidth = "median", k: int = 5):
    """
    Choose the kernel bandwidth sigma.

    Parameters
    ----------
    distances : np.ndarray
        Square matrix of pairwise distances.
    method : {'median', 'local'} or float
        * float: fixed global sigma.
        * 'median': global sigma with sigma^2 = median squared pairwise distance.
        * 'local': one sigma per cell, the distance to its k-th nearest neighbour.
    k : int
        Neighbour rank for 'local'.

    Returns
    -------
    float or np.ndarray
    """
    n = distances.shape[0]
    if isinstance(method, (int, float)) and not isinstance(method, bool):
        sigma = float(method)
        if not np.isfinite(sigma) or sigma <= 0:
            raise ValueError(f"Kernel bandwidth must be positive, got {method}.")
        return sigma

    if method == "median":
        d2 = distances[np.triu_indices(n, k=1)] ** 2
        sigma = float(np.sqrt(np.median(d2))) if d2.size else 0.0
        if sigma <= 0:
            raise ValueError("Median pairwise distance is zero; all cells are identical.")
        return sigma

    if method == "local":
        if k < 1:
            raise ValueError(f"k must be >= 1 for local bandwidths, got {k}.")
        k_eff = min(k, n - 1)
        sigma = np.sort(distances, axis=1)[:, k_eff]
        positive = sigma[sigma > 0]
        if positive.size == 0:
            raise ValueError("All local bandwidths are zero; cells are duplicated.")
        # duplicated cells: borrow the smallest positive neighbour distance
        return np.where(sigma > 0, sigma, positive.min())

    raise ValueError(f"Unknown bandwidth method '{method}'. Use 'median', 'local' or a float.")


def compute_affinity(
    X: np.ndarray,
    sigma: Bandwidth = "median",
    k: int = 5,
    min_affinity: float = 1e-12,
) -> Tuple[np.ndarray, Union[float, np.ndarray]]:
    """
    Gaussian affinity matrix over the rows of ``X``.

    A global bandwidth gives ``exp(-d^2 / sigma^2)``; per-cell bandwidths give
    the locally scaled kernel
    ``sqrt(2 s_i s_j / (s_i^2 + s_j^2)) * exp(-d^2 / (s_i^2 + s_j^2))``.
    Entries below ``min_affinity`` are set to zero. The diagonal is 1.
    """
    X = np.asarray(X, dtype=float)
    distances = squareform(pdist(X, metric="euclidean"))
    s = select_bandwidth(distances, sigma, k)
    d2 = distances ** 2

    if np.ndim(s) == 0:
        K = np.exp(-d2 / s ** 2)
    else:
        si, sj = s[:, None], s[None, :]
        denom = si ** 2 + sj ** 2
        K = np.sqrt(2 * si * sj / denom) * np.exp(-d2 / denom)

    K[K < min_affinity] = 0.0
    return K, s


def _spectrum(kernel: np.ndarray, n_eigs: Optional[int] = None):
    """
    Eigenpairs of P = D^-1 K from its symmetric conjugate.

    Returns eigenvalues in descending order and the matching right
    eigenvectors of P (columns), signs fixed so the largest-magnitude
    entry of each column is positive.
    """
    n = kernel.shape[0]
    d = kernel.sum(axis=1)
    d_isqrt = 1.0 / np.sqrt(d)
    S = kernel * d_isqrt[:, None] * d_isqrt[None, :]
    S = 0.5 * (S + S.T)

    if n_eigs is None or n_eigs >= n:
        evals, evecs = eigh(S)
    else:
        evals, evecs = eigh(S, subset_by_index=[n - n_eigs, n - 1])

    order = np.argsort(-evals, kind="stable")
    evals = np.clip(evals[order], -1.0, 1.0)
    psi = evecs[:, order] * d_isqrt[:, None]

    idx = np.argmax(np.abs(psi), axis=0)
    signs = np.sign(psi[idx, np.arange(psi.shape[1])])
    signs[signs == 0] = 1.0
    return evals, psi * signs


@dataclass(frozen=True, eq=False)
class DiffusionMap:
    """
    Diffusion operator and its leading spectrum.

    ``eigenvalues[0]`` / ``eigenvectors[:, 0]`` are the trivial stationary
    pair; :attr:`components` and :attr:`eigenvalues_nontrivial` drop it.
    """

    kernel: np.ndarray
    degrees: np.ndarray
    transitions: np.ndarray
    eigenvalues: np.ndarray
    eigenvectors: np.ndarray
    sigma: Union[float, np.ndarray]
    component_labels: np.ndarray
    cell_names: tuple

    @property
    def n_cells(self) -> int:
        return self.transitions.shape[0]

    @property
    def n_connected(self) -> int:
        return int(self.component_labels.max()) + 1

    @property
    def components(self) -> np.ndarray:
        return self.eigenvectors[:, 1:]

    @property
    def eigenvalues_nontrivial(self) -> np.ndarray:
        return self.eigenvalues[1:]

    def embedding(self, t: float = 1.0) -> np.ndarray:
        """Diffusion coordinates psi_k * lambda_k^t (trivial pair excluded)."""
        return self.components * self.eigenvalues_nontrivial ** t


def diffusion_map(
    X: np.ndarray,
    n_comps: int = 10,
    sigma: Bandwidth = "median",
    k: int = 5,
    density_normalize: bool = True,
    min_affinity: float = 1e-12,
    cell_names: Optional[Sequence[str]] = None,
) -> DiffusionMap:
    """
    Build a diffusion map over the rows of ``X``.

    Parameters
    ----------
    X : np.ndarray
        Cells x features (typically PCA coordinates).
    n_comps : int
        Number of non-trivial diffusion components to keep.
    sigma : {'median', 'local'} or float
        Kernel bandwidth, see :func:`select_bandwidth`.
    k : int
        Neighbour rank for local bandwidths.
    density_normalize : bool
        Divide the kernel by the product of kernel densities
        (Coifman-Lafon, alpha = 1) so sampling density does not drive the
        embedding.
    min_affinity : float
        Affinities below this are treated as disconnected.
    cell_names : sequence of str, optional
        Names for the rows of ``X``.

    Returns
    -------
    DiffusionMap
    """
    X = np.asarray(X, dtype=float)
    if X.ndim != 2:
        raise ValueError(f"Expected a 2-D cells x features matrix, got shape {X.shape}.")
    n = X.shape[0]
    if n < 3:
        raise ValueError(f"A diffusion map needs at least 3 cells, got {n}.")
    if not np.isfinite(X).all():
        raise ValueError("Input coordinates contain NaN or infinite values.")
    if n_comps < 1:
        raise ValueError(f"n_comps must be >= 1, got {n_comps}.")
    if n_comps > n - 1:
        print(f"Only {n - 1} non-trivial diffusion components are available; using {n - 1}.")
        n_comps = n - 1
    if cell_names is None:
        cell_names = [f"cell_{i}" for i in range(n)]
    if len(cell_names) != n:
        raise ValueError(f"{len(cell_names)} cell names for {n} cells.")

    print(f"Computing diffusion map over {n} cells...")
    K, s = compute_affinity(X, sigma=sigma, k=k, min_affinity=min_affinity)

    off = K[~np.eye(n, dtype=bool)]
    if off.min() > 0.99:
        warnings.warn(
            "Kernel bandwidth is too large: all cells are near-equally connected "
            "and the diffusion components carry little structure.",
            DegenerateKernelWarning,
        )

    if density_normalize:
        q = K.sum(axis=1)
        K = K / np.outer(q, q)

    degrees = K.sum(axis=1)
    P = K / degrees[:, None]

    if np.mean(np.diag(P)) > 0.99:
        warnings.warn(
            "Kernel bandwidth is too small: the transition operator is close to "
            "the identity and cells are effectively isolated.",
            DegenerateKernelWarning,
        )

    n_cc, labels = connected_components(csr_matrix(K > 0), directed=False)
    if n_cc > 1:
        warnings.warn(
            f"Affinity graph has {n_cc} disconnected components; eigenvalue 1 is "
            "repeated and diffusion pseudotime is undefined across components.",
            DegenerateKernelWarning,
        )

    evals, psi = _spectrum(K, n_eigs=n_comps + 1)

    print(f"Diffusion map finished. Leading eigenvalues: {np.round(evals[:4], 4).tolist()}")
    return DiffusionMap(
        kernel=K,
        degrees=degrees,
        transitions=P,
        eigenvalues=evals,
        eigenvectors=psi,
        sigma=s,
        component_labels=labels,
        cell_names=tuple(str(c) for c in cell_names),
    )
