from .pca import PCAEmbedding, run_pca, pca_pseudotime
from .clustering import cluster_cells
from ..trajectory.base import rank_pseudotime

__all__ = [
    "PCAEmbedding",
    "run_pca",
    "pca_pseudotime",
    "rank_pseudotime",
    "cluster_cells",
]
