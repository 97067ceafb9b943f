"""
Slingshot-style lineage inference.

Lineages are read off a minimum spanning tree (MST) over cluster centroids,
rooted at a start cluster. Each lineage is a piecewise-linear curve through
the centroids of its clusters; cells of those clusters are projected onto
the curve and their arc length from the start is the lineage pseudotime.

These are Slingshot-style initial curves only: there is no principal-curve
refinement or shrinkage, so results approximate but do not reproduce the
Slingshot package.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

import networkx as nx
import numpy as np
import pandas as pd
from scipy.spatial import distance_matrix

from .base import Pseudotime


@dataclass(frozen=True, eq=False)
class SlingshotResult:
    """
    Output of :func:`slingshot`.

    Attributes
    ----------
    tree : nx.Graph
        MST over clusters, edge attribute 'weight' = centroid distance.
    lineages : dict
        Lineage name -> ordered tuple of clusters, start cluster first.
    pseudotime_frame : pd.DataFrame
        Cells x lineages arc-length pseudotime; NaN where a cell is not
        assigned to the lineage.
    weights : pd.DataFrame
        Cells x lineages 0/1 assignment.
    centroids : pd.DataFrame
        Clusters x dimensions centroid coordinates.
    start_cluster : str
    """

    tree: nx.Graph
    lineages: dict
    pseudotime_frame: pd.DataFrame
    weights: pd.DataFrame
    centroids: pd.DataFrame
    start_cluster: str

    def pseudotime(self, lineage: Optional[str] = None, method: str = "slingshot") -> Pseudotime:
        """
        Pseudotime for one lineage, or (default) the per-cell mean over every
        lineage the cell is assigned to.
        """
        frame = self.pseudotime_frame
        if lineage is not None:
            if lineage not in frame.columns:
                raise ValueError(f"Unknown lineage '{lineage}'; have {list(frame.columns)}.")
            values = frame[lineage].values
        else:
            vals = frame.values
            assigned = ~np.isnan(vals)
            n_assigned = assigned.sum(axis=1)
            totals = np.where(assigned, vals, 0.0).sum(axis=1)
            values = np.full(len(frame), np.nan)
            has = n_assigned > 0
            values[has] = totals[has] / n_assigned[has]

        return Pseudotime(
            method=method if lineage is None else f"{method}_{lineage}",
            values=values,
            cell_names=tuple(frame.index),
            kind="raw",
            meta={"start_cluster": self.start_cluster, "lineage": lineage},
        )


def _cluster_tree(centroids: pd.DataFrame, end_clusters: Sequence[str]) -> nx.Graph:
    names = list(centroids.index)
    dist = distance_matrix(centroids.values, centroids.values)
    pos = {c: i for i, c in enumerate(names)}

    core = [c for c in names if c not in end_clusters]
    G = nx.Graph()
    G.add_nodes_from(core)
    for i, c1 in enumerate(core):
        for c2 in core[i + 1:]:
            G.add_edge(c1, c2, weight=dist[pos[c1], pos[c2]])
    T = nx.minimum_spanning_tree(G)

    # forced end clusters hang off their nearest core cluster
    for c in end_clusters:
        nearest = min(core, key=lambda o: dist[pos[c], pos[o]])
        T.add_edge(c, nearest, weight=dist[pos[c], pos[nearest]])
    return T


def _project_onto_curve(points: np.ndarray, curve: np.ndarray) -> np.ndarray:
    """
    Arc length of the orthogonal projection of each point onto a polyline.

    The first and last segments are extended beyond the curve ends.
    """
    seg_start = curve[:-1]
    seg_vec = curve[1:] - curve[:-1]
    seg_len = np.linalg.norm(seg_vec, axis=1)
    offsets = np.concatenate([[0.0], np.cumsum(seg_len)[:-1]])
    n_seg = len(seg_len)

    best_dist = np.full(len(points), np.inf)
    best_arc = np.zeros(len(points))
    for s in range(n_seg):
        if seg_len[s] == 0:
            continue
        t = (points - seg_start[s]) @ seg_vec[s] / seg_len[s] ** 2
        lo = -np.inf if s == 0 else 0.0
        hi = np.inf if s == n_seg - 1 else 1.0
        t = np.clip(t, lo, hi)
        proj = seg_start[s] + t[:, None] * seg_vec[s]
        d = np.linalg.norm(points - proj, axis=1)
        better = d < best_dist
        best_dist[better] = d[better]
        best_arc[better] = offsets[s] + t[better] * seg_len[s]
    return best_arc


def _single_cluster_curve(points: np.ndarray) -> np.ndarray:
    center = points.mean(axis=0)
    if len(points) < 2:
        return np.vstack([center, center + 1.0])
    _, _, vt = np.linalg.svd(points - center, full_matrices=False)
    return np.vstack([center - vt[0], center + vt[0]])


def slingshot(
    embedding: np.ndarray,
    clusters: Union[Sequence, pd.Categorical],
    start_cluster: str,
    end_clusters: Optional[Sequence[str]] = None,
    cell_names: Optional[Sequence[str]] = None,
) -> SlingshotResult:
    """
    Infer lineages and per-lineage pseudotime from clusters in an embedding,
    using Slingshot-style initial curves (centroid polylines).

    Parameters
    ----------
    embedding : np.ndarray
        Cells x dimensions (e.g. the first PCs).
    clusters : sequence
        Cluster label per cell.
    start_cluster : str
        Cluster at the root of every lineage.
    end_clusters : sequence of str, optional
        Clusters constrained to be lineage end points.
    cell_names : sequence of str, optional

    Returns
    -------
    SlingshotResult
    """
    embedding = np.asarray(embedding, dtype=float)
    labels = np.asarray([str(c) for c in clusters], dtype=object)
    n = embedding.shape[0]
    if len(labels) != n:
        raise ValueError(f"{len(labels)} cluster labels for {n} cells.")
    if cell_names is None:
        cell_names = [f"cell_{i}" for i in range(n)]
    start_cluster = str(start_cluster)

    names = sorted(set(labels), key=lambda c: (len(c), c))
    if start_cluster not in names:
        raise ValueError(f"Start cluster '{start_cluster}' not found among clusters {names}.")
    end_clusters = [str(c) for c in (end_clusters or [])]
    unknown = [c for c in end_clusters if c not in names]
    if unknown:
        raise ValueError(f"End clusters {unknown} not found among clusters {names}.")
    if start_cluster in end_clusters:
        raise ValueError("The start cluster cannot also be an end cluster.")

    print(f"Running Slingshot lineage inference over {len(names)} clusters from '{start_cluster}'...")

    centroids = pd.DataFrame(
        np.vstack([embedding[labels == c].mean(axis=0) for c in names]),
        index=names,
    )
    T = _cluster_tree(centroids, end_clusters)

    leaves = [c for c in T.nodes if T.degree(c) <= 1 and c != start_cluster]
    paths: List[tuple] = [tuple(nx.shortest_path(T, start_cluster, leaf)) for leaf in leaves]
    if not paths:
        paths = [(start_cluster,)]
    paths.sort(key=lambda p: (-len(p), p[-1]))
    lineages = {f"Lineage{i + 1}": p for i, p in enumerate(paths)}

    pt = pd.DataFrame(np.nan, index=[str(c) for c in cell_names], columns=list(lineages))
    weights = pd.DataFrame(0, index=pt.index, columns=list(lineages))
    for name, path in lineages.items():
        member = np.isin(labels, path)
        points = embedding[member]
        if len(path) == 1:
            curve = _single_cluster_curve(points)
        else:
            curve = centroids.loc[list(path)].values
        arc = _project_onto_curve(points, curve)
        pt.loc[member, name] = arc - arc.min()
        weights.loc[member, name] = 1

    for name, path in lineages.items():
        print(f"  {name}: {' -> '.join(path)}")
    print("Slingshot pseudotime computed.")

    return SlingshotResult(
        tree=T,
        lineages=lineages,
        pseudotime_frame=pt,
        weights=weights,
        centroids=centroids,
        start_cluster=start_cluster,
    )
