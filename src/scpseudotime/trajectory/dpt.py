"""
Diffusion pseudotime (DPT) from a designated root cell.
"""

from __future__ import annotations

import warnings
from typing import Optional, Sequence, Union

import numpy as np
import scanpy as sc
from anndata import AnnData

from .base import DegenerateKernelWarning, Pseudotime
from .diffusion import DiffusionMap, _spectrum

Root = Union[int, str]


def resolve_root(root: Root, cell_names: Sequence[str]) -> int:
    """
    Turn a root given as an integer index or a cell name into an index.
    """
    n = len(cell_names)
    if isinstance(root, (int, np.integer)) and not isinstance(root, bool):
        if not 0 <= root < n:
            raise ValueError(f"Root index {root} out of range for {n} cells.")
        return int(root)
    if isinstance(root, str):
        matches = np.flatnonzero(np.asarray(cell_names, dtype=object) == root)
        if matches.size == 0:
            raise ValueError(f"Root cell '{root}' not found among cell names.")
        return int(matches[0])
    raise ValueError(f"Root must be a cell index or a cell name, got {root!r}.")


def root_from_stage(stages, coords: np.ndarray, stage: Optional[str] = None) -> int:
    """
    Pick a root among the cells of ``stage`` (default: earliest populated stage).

    The chosen cell is the one lying furthest towards that stage's side of the
    first coordinate axis, e.g. the first diffusion component.

    Parameters
    ----------
    stages : StageLabels
        Stage of every cell.
    coords : np.ndarray
        Cells x components; only column 0 is used.
    stage : str, optional
        Stage to draw the root from.
    """
    stage = stages.earliest() if stage is None else stage
    if stage not in stages.vocabulary:
        raise ValueError(f"Unknown stage '{stage}'.")
    axis = np.asarray(coords, dtype=float)
    axis = axis[:, 0] if axis.ndim == 2 else axis
    if len(axis) != len(stages):
        raise ValueError(f"{len(axis)} coordinates for {len(stages)} stage labels.")

    members = np.flatnonzero(np.asarray(stages.categorical == stage))
    if members.size == 0:
        raise ValueError(f"No cells at stage '{stage}'.")
    side = np.sign(axis[members].mean() - axis.mean()) or 1.0
    return int(members[np.argmax(side * axis[members])])


def diffusion_pseudotime(
    dmap: DiffusionMap,
    root: Root,
    n_eigs: Optional[int] = None,
    method: str = "dpt",
) -> Pseudotime:
    """
    Diffusion pseudotime of every cell relative to ``root``.

    Uses the closed form over the spectrum of the transition operator,

        dpt(r, x)^2 = sum_{k >= 1} (lambda_k / (1 - lambda_k))^2 (psi_k(r) - psi_k(x))^2,

    which accumulates random-walk steps of every length. The spectrum is
    recomputed on the connected component containing the root; cells in
    other components get NaN.

    Parameters
    ----------
    dmap : DiffusionMap
        Output of :func:`diffusion_map`.
    root : int or str
        Root cell index or name.
    n_eigs : int, optional
        Number of non-trivial eigenpairs to sum over. Default: all.

    Returns
    -------
    Pseudotime
        0 at the root, non-negative for reachable cells, NaN otherwise.
    """
    root = resolve_root(root, dmap.cell_names)
    print(f"Computing diffusion pseudotime from root cell '{dmap.cell_names[root]}'...")

    labels = dmap.component_labels
    members = np.flatnonzero(labels == labels[root])
    values = np.full(dmap.n_cells, np.nan)

    if members.size > 1:
        sub = dmap.kernel[np.ix_(members, members)]
        evals, psi = _spectrum(sub, n_eigs=None if n_eigs is None else n_eigs + 1)
        # drop the stationary pair and any numerically repeated eigenvalue 1
        keep = np.arange(len(evals)) >= 1
        keep &= evals < 1.0 - 1e-10
        evals, psi = evals[keep], psi[:, keep]

        local_root = int(np.flatnonzero(members == root)[0])
        weights = evals / (1.0 - evals)
        diff = (psi[local_root] - psi) * weights
        dist = np.sqrt((diff ** 2).sum(axis=1))
        dist[local_root] = 0.0
        values[members] = dist
    else:
        values[root] = 0.0

    n_unreachable = dmap.n_cells - members.size
    if n_unreachable:
        warnings.warn(
            f"{n_unreachable} cells are not connected to the root; their diffusion "
            "pseudotime is undefined (NaN).",
            DegenerateKernelWarning,
        )

    print(f"Pseudotime stored under '{method}'.")
    return Pseudotime(
        method=method,
        values=values,
        cell_names=dmap.cell_names,
        kind="raw",
        root=root,
        meta={"n_eigs": n_eigs, "n_unreachable": int(n_unreachable)},
    )


def scanpy_dpt(
    adata: AnnData,
    root: Root,
    n_pcs: int = 10,
    n_neighbors: int = 15,
    n_dcs: int = 10,
    random_state: int = 42,
    method: str = "dpt_scanpy",
) -> Pseudotime:
    """
    Diffusion pseudotime computed by Scanpy's kNN-graph DPT, for comparison
    with :func:`diffusion_pseudotime`. Works on a private copy of ``adata``.

    Cells Scanpy cannot reach (infinite pseudotime) are reported as NaN.
    """
    root = resolve_root(root, list(adata.obs_names))
    print(f"Running Scanpy DPT from root cell '{adata.obs_names[root]}'...")

    tmp = adata.copy()
    n = tmp.n_obs
    n_pcs = max(1, min(n_pcs, min(tmp.shape) - 1))
    sc.tl.pca(tmp, n_comps=n_pcs, random_state=random_state)
    sc.pp.neighbors(
        tmp,
        n_neighbors=max(2, min(n_neighbors, n - 1)),
        use_rep="X_pca",
        random_state=random_state,
    )
    n_comps = max(2, min(15, n - 2))
    sc.tl.diffmap(tmp, n_comps=n_comps)
    tmp.uns["iroot"] = root
    sc.tl.dpt(tmp, n_dcs=min(n_dcs, n_comps))

    values = tmp.obs["dpt_pseudotime"].values.astype(float)
    values[~np.isfinite(values)] = np.nan
    print(f"Pseudotime stored under '{method}'.")
    return Pseudotime(
        method=method,
        values=values,
        cell_names=tuple(adata.obs_names),
        kind="raw",
        root=root,
    )
