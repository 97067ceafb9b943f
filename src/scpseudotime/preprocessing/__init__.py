from .core import normalize_and_log, gene_variances, select_top_variance_genes

__all__ = [
    "normalize_and_log",
    "gene_variances",
    "select_top_variance_genes",
]
