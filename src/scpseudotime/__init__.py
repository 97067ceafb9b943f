"""
scpseudotime: trajectory inference and pseudotime comparison for scRNA-seq.
"""

__version__ = "0.1.0"

from . import preprocessing as pp
from . import tools as tl
from . import plotting as pl
from . import datasets
from . import trajectory
from .pipeline import PipelineConfig, TrajectoryResult, run_pipeline, export_results

__all__ = [
    "pp",
    "tl",
    "pl",
    "datasets",
    "trajectory",
    "PipelineConfig",
    "TrajectoryResult",
    "run_pipeline",
    "export_results",
]
