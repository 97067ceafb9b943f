from .stages import DENG_STAGES, StageLabels, set_stage_labels, get_stage_labels
from .io import read_h5ad, read_csv_matrix, from_matrix, validate_expression
from .mock_data import make_mock_trajectory, make_toy_linear

__all__ = [
    "DENG_STAGES",
    "StageLabels",
    "set_stage_labels",
    "get_stage_labels",
    "read_h5ad",
    "read_csv_matrix",
    "from_matrix",
    "validate_expression",
    "make_mock_trajectory",
    "make_toy_linear",
]
