from .base import Pseudotime, PseudotimeSet, DegenerateKernelWarning, rank_pseudotime
from .diffusion import DiffusionMap, diffusion_map, compute_affinity, select_bandwidth
from .dpt import diffusion_pseudotime, scanpy_dpt, resolve_root, root_from_stage
from .slingshot import SlingshotResult, slingshot
from .pseudotime_genes import scan_pseudotime_genes, smooth_gene_trend
from .compare import correlate_pseudotimes, stage_agreement

__all__ = [
    "Pseudotime",
    "PseudotimeSet",
    "DegenerateKernelWarning",
    "rank_pseudotime",
    "DiffusionMap",
    "diffusion_map",
    "compute_affinity",
    "select_bandwidth",
    "diffusion_pseudotime",
    "scanpy_dpt",
    "resolve_root",
    "root_from_stage",
    "SlingshotResult",
    "slingshot",
    "scan_pseudotime_genes",
    "smooth_gene_trend",
    "correlate_pseudotimes",
    "stage_agreement",
]
