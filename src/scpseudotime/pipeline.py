"""
End-to-end pseudotime workflow: PCA -> diffusion pseudotime -> Slingshot
-> gene scan -> method comparison.

Each stage consumes the artifacts of the previous ones and returns new ones;
the input AnnData is never modified.
"""

import os
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import numpy as np
import pandas as pd
from anndata import AnnData

from .datasets.io import validate_expression
from .datasets.stages import DENG_STAGES, StageLabels, get_stage_labels
from .tools.clustering import cluster_cells
from .tools.pca import PCAEmbedding, pca_pseudotime, run_pca
from .trajectory.base import PseudotimeSet
from .trajectory.compare import correlate_pseudotimes, stage_agreement
from .trajectory.diffusion import DiffusionMap, diffusion_map
from .trajectory.dpt import diffusion_pseudotime, resolve_root, root_from_stage, scanpy_dpt
from .trajectory.pseudotime_genes import scan_pseudotime_genes
from .trajectory.slingshot import SlingshotResult, slingshot


@dataclass(frozen=True)
class PipelineConfig:
    """
    Parameters for :func:`run_pipeline`.

    ``root`` may be a cell index or name; when None, the root is the
    earliest-stage cell at the extreme of the first diffusion component.
    ``cluster_method='stage'`` uses the stage labels as Slingshot clusters.
    """

    stage_key: str = "cell_type2"
    vocabulary: Tuple[str, ...] = DENG_STAGES
    root: Optional[Union[int, str]] = None
    n_pcs: int = 10
    scale: bool = False
    sigma: Union[str, float] = "median"
    k: int = 5
    n_dcs: int = 10
    density_normalize: bool = True
    run_scanpy_dpt: bool = False
    cluster_method: str = "stage"
    n_clusters: int = 5
    resolution: float = 0.5
    slingshot_n_pcs: int = 5
    start_cluster: Optional[str] = None
    gene_scan_method: str = "slingshot"
    n_top_genes: int = 100
    spline_df: int = 5
    gam_alpha: float = 0.0
    correlation_method: str = "spearman"
    random_state: int = 42
    out_dir: Optional[str] = None


@dataclass(frozen=True, eq=False)
class TrajectoryResult:
    """Artifacts produced by :func:`run_pipeline`."""

    config: PipelineConfig
    stages: StageLabels
    pca: PCAEmbedding
    dmap: DiffusionMap
    root: int
    clusters: pd.Categorical
    slingshot: SlingshotResult
    pseudotimes: PseudotimeSet
    genes: pd.DataFrame
    correlations: pd.DataFrame
    stage_agreement: pd.Series

    def obs_table(self, adata: AnnData) -> pd.DataFrame:
        """Cell metadata joined with every pseudotime column (a new frame)."""
        obs = adata.obs.copy()
        obs.index = obs.index.astype(str)
        table = obs.join(self.pseudotimes.to_frame())
        table["slingshot_cluster"] = np.asarray(self.clusters, dtype=str)
        return table


def _check_config(config: PipelineConfig) -> None:
    """Reject unusable settings before any processing starts."""
    if config.cluster_method not in ("stage", "kmeans", "leiden"):
        raise ValueError(
            f"Unknown cluster_method '{config.cluster_method}'. "
            "Use 'stage', 'kmeans' or 'leiden'."
        )
    scan_methods = ["pca", "dpt", "slingshot"]
    if config.run_scanpy_dpt:
        scan_methods.append("dpt_scanpy")
    if config.gene_scan_method not in scan_methods:
        raise ValueError(
            f"Unknown pseudotime '{config.gene_scan_method}' for the gene scan; "
            f"choose from {scan_methods}."
        )
    if config.correlation_method not in ("spearman", "pearson", "kendall"):
        raise ValueError(f"Unknown correlation method '{config.correlation_method}'.")
    if isinstance(config.sigma, str) and config.sigma not in ("median", "local"):
        raise ValueError(f"Unknown bandwidth method '{config.sigma}'. Use 'median', 'local' or a float.")


def run_pipeline(adata: AnnData, config: Optional[PipelineConfig] = None) -> TrajectoryResult:
    """
    Run every pseudotime method on ``adata`` and compare them.

    Parameters
    ----------
    adata : AnnData
        Log-normalised expression with stage labels in ``obs[config.stage_key]``.
    config : PipelineConfig, optional

    Returns
    -------
    TrajectoryResult
    """
    config = PipelineConfig() if config is None else config
    print(f"Running pseudotime pipeline on {adata.n_obs} cells x {adata.n_vars} genes...")

    _check_config(config)
    validate_expression(adata)
    stages = get_stage_labels(adata, key=config.stage_key, vocabulary=config.vocabulary)
    cell_names = tuple(adata.obs_names)
    if config.root is not None:
        root = resolve_root(config.root, cell_names)

    pca = run_pca(adata, n_comps=config.n_pcs, scale=config.scale, random_state=config.random_state)
    dmap = diffusion_map(
        pca.coords,
        n_comps=config.n_dcs,
        sigma=config.sigma,
        k=config.k,
        density_normalize=config.density_normalize,
        cell_names=cell_names,
    )

    if config.root is None:
        root = root_from_stage(stages, dmap.components)
        print(f"Using root cell '{cell_names[root]}' (earliest stage '{stages.earliest()}').")

    pseudotimes = PseudotimeSet([pca_pseudotime(pca, root=root)])
    pseudotimes = pseudotimes.with_pseudotime(diffusion_pseudotime(dmap, root))
    if config.run_scanpy_dpt:
        pseudotimes = pseudotimes.with_pseudotime(
            scanpy_dpt(adata, root, n_pcs=config.n_pcs, n_dcs=config.n_dcs,
                       random_state=config.random_state)
        )

    sling_coords = pca.coords[:, :config.slingshot_n_pcs]
    if config.cluster_method == "stage":
        labels = np.asarray(stages.categorical, dtype=str)
        present = set(labels)
        clusters = pd.Categorical(labels, categories=[s for s in stages.vocabulary if s in present])
        start = stages.earliest() if config.start_cluster is None else config.start_cluster
    else:
        clusters = cluster_cells(
            sling_coords,
            method=config.cluster_method,
            n_clusters=config.n_clusters,
            resolution=config.resolution,
            random_state=config.random_state,
        )
        start = str(clusters[root]) if config.start_cluster is None else config.start_cluster

    sling = slingshot(sling_coords, clusters, start_cluster=start, cell_names=cell_names)
    pseudotimes = pseudotimes.with_pseudotime(sling.pseudotime())

    genes = scan_pseudotime_genes(
        adata,
        pseudotimes[config.gene_scan_method],
        n_top_genes=config.n_top_genes,
        df=config.spline_df,
        alpha=config.gam_alpha,
    )

    correlations = correlate_pseudotimes(pseudotimes, method=config.correlation_method)
    agreement = pd.Series(
        {name: stage_agreement(pt, stages) for name, pt in pseudotimes.items()},
        name="stage_spearman",
    )
    print("Agreement with stage order (Spearman):")
    for name, r in agreement.items():
        print(f"  {name}: {r:.3f}")

    result = TrajectoryResult(
        config=config,
        stages=stages,
        pca=pca,
        dmap=dmap,
        root=root,
        clusters=clusters,
        slingshot=sling,
        pseudotimes=pseudotimes,
        genes=genes,
        correlations=correlations,
        stage_agreement=agreement,
    )
    if config.out_dir:
        export_results(result, adata, config.out_dir)
    print("Pseudotime pipeline complete.")
    return result


def export_results(result: TrajectoryResult, adata: AnnData, out_dir: str) -> dict:
    """
    Write the pseudotime table, ranked gene list and correlation matrix as CSV.

    Returns
    -------
    dict
        Artifact name -> written path.
    """
    os.makedirs(out_dir, exist_ok=True)
    paths = {
        "pseudotime": os.path.join(out_dir, "pseudotime.csv"),
        "genes": os.path.join(out_dir, "pseudotime_genes.csv"),
        "correlations": os.path.join(out_dir, "pseudotime_correlations.csv"),
    }
    result.obs_table(adata).to_csv(paths["pseudotime"])
    result.genes.to_csv(paths["genes"], index=False)
    result.correlations.to_csv(paths["correlations"])
    for path in paths.values():
        print(f"  Saved {path}")
    return paths
