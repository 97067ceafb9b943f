from .pseudotime import (
    plot_pseudotime_by_stage,
    plot_embedding,
    plot_correlation_heatmap,
    plot_gene_trends,
)
from .style import apply_seurat_theme, stage_colors, STAGE_COLORS

__all__ = [
    "plot_pseudotime_by_stage",
    "plot_embedding",
    "plot_correlation_heatmap",
    "plot_gene_trends",
    "apply_seurat_theme",
    "stage_colors",
    "STAGE_COLORS",
]
