"""
Pseudotime figures: per-stage strip plots, embeddings, method correlation
heatmaps and gene trends.
"""

from typing import Optional, Sequence

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
import scipy.sparse as sp
from anndata import AnnData

from .style import (
    apply_seurat_theme, stage_colors, CORR_CMAP, PSEUDOTIME_CMAP, POINT_SIZE,
    TITLE_SIZE, LABEL_SIZE, TICK_SIZE, TREND_COLOR,
)
from ..datasets.stages import StageLabels
from ..trajectory.base import Pseudotime
from ..trajectory.pseudotime_genes import smooth_gene_trend


def _finish(fig, save: Optional[str], show: bool, what: str):
    if save:
        fig.savefig(save, bbox_inches="tight", dpi=150)
        print(f"  Saved {what}: {save}")
    if show:
        plt.show()
    if not show and not save:
        return fig
    plt.close(fig)
    return None


def plot_pseudotime_by_stage(
    pseudotime: Pseudotime,
    stages: StageLabels,
    title: Optional[str] = None,
    figsize: tuple = (7, 4),
    show: bool = True,
    save: Optional[str] = None,
):
    """
    Jittered strip plot of pseudotime per developmental stage.
    Cells with undefined pseudotime are not drawn.
    """
    if len(stages) != len(pseudotime):
        raise ValueError(f"{len(stages)} stage labels for {len(pseudotime)} cells.")

    df = pd.DataFrame({
        "stage": np.asarray(stages.categorical, dtype=str),
        "pseudotime": np.asarray(pseudotime.values),
    }).dropna()
    order = [s for s in stages.vocabulary if s in set(df["stage"])]

    fig, ax = plt.subplots(figsize=figsize)
    apply_seurat_theme(ax)
    sns.stripplot(
        data=df, x="stage", y="pseudotime", hue="stage", order=order, hue_order=order,
        palette=stage_colors(stages.vocabulary), jitter=0.25, size=4, legend=False, ax=ax,
    )
    ax.set_xlabel("Stage", fontsize=LABEL_SIZE)
    ylabel = f"{pseudotime.method} ({'rank' if pseudotime.kind == 'rank' else 'pseudotime'})"
    ax.set_ylabel(ylabel, fontsize=LABEL_SIZE)
    ax.set_title(title or f"{pseudotime.method} pseudotime by stage", fontsize=TITLE_SIZE)
    plt.setp(ax.get_xticklabels(), rotation=45, ha="right")
    return _finish(fig, save, show, "pseudotime strip plot")


def plot_embedding(
    coords: np.ndarray,
    color,
    dims: Sequence[int] = (0, 1),
    axis_label: str = "PC",
    title: str = "",
    figsize: tuple = (5, 4.5),
    show: bool = True,
    save: Optional[str] = None,
):
    """
    2-D scatter of an embedding coloured by stage (StageLabels) or by a
    per-cell value (Pseudotime or array; NaN drawn in grey).
    """
    coords = np.asarray(coords, dtype=float)
    x, y = coords[:, dims[0]], coords[:, dims[1]]

    fig, ax = plt.subplots(figsize=figsize)
    apply_seurat_theme(ax)

    if isinstance(color, StageLabels):
        colors = stage_colors(color.vocabulary)
        labels = np.asarray(color.categorical, dtype=str)
        for stage in color.vocabulary:
            mask = labels == stage
            if mask.any():
                ax.scatter(x[mask], y[mask], s=POINT_SIZE, color=colors[stage], label=stage)
        ax.legend(loc="upper left", bbox_to_anchor=(1.02, 1), frameon=False, fontsize=TICK_SIZE)
    else:
        values = np.asarray(color.values if isinstance(color, Pseudotime) else color, dtype=float)
        nan = np.isnan(values)
        ax.scatter(x[nan], y[nan], s=POINT_SIZE, color="lightgray")
        sca = ax.scatter(x[~nan], y[~nan], s=POINT_SIZE, c=values[~nan], cmap=PSEUDOTIME_CMAP)
        fig.colorbar(sca, ax=ax, shrink=0.8)

    ax.set_xlabel(f"{axis_label}{dims[0] + 1}", fontsize=LABEL_SIZE)
    ax.set_ylabel(f"{axis_label}{dims[1] + 1}", fontsize=LABEL_SIZE)
    if title:
        ax.set_title(title, fontsize=TITLE_SIZE)
    return _finish(fig, save, show, "embedding plot")


def plot_correlation_heatmap(
    corr: pd.DataFrame,
    title: str = "Pseudotime correlation",
    figsize: tuple = (5, 4),
    show: bool = True,
    save: Optional[str] = None,
):
    """Annotated heatmap of a method x method correlation matrix."""
    fig, ax = plt.subplots(figsize=figsize)
    sns.heatmap(
        corr, annot=True, fmt=".2f", cmap=CORR_CMAP, vmin=-1, vmax=1,
        square=True, cbar_kws={"shrink": 0.8}, ax=ax,
    )
    ax.set_title(title, fontsize=TITLE_SIZE)
    ax.tick_params(labelsize=TICK_SIZE)
    return _finish(fig, save, show, "correlation heatmap")


def plot_gene_trends(
    adata: AnnData,
    pseudotime: Pseudotime,
    genes: Sequence[str],
    frac: float = 0.5,
    ncols: int = 3,
    show: bool = True,
    save: Optional[str] = None,
):
    """
    Expression of each gene against pseudotime with a LOESS trend line.
    """
    missing = [g for g in genes if g not in adata.var_names]
    if missing:
        raise ValueError(f"Genes not found in adata.var_names: {missing}")
    if not genes:
        print("No genes given. Nothing to plot.")
        return None

    t = np.asarray(pseudotime.values)
    nrows = int(np.ceil(len(genes) / ncols))
    ncols = min(ncols, len(genes))
    fig, axes = plt.subplots(nrows, ncols, figsize=(3.2 * ncols, 2.8 * nrows), squeeze=False)

    for ax, gene in zip(axes.ravel(), genes):
        expr = adata[:, gene].X
        expr = (expr.toarray() if sp.issparse(expr) else np.asarray(expr)).ravel()
        apply_seurat_theme(ax)
        ax.scatter(t, expr, s=6, color="gray", alpha=0.5)
        ts, fit = smooth_gene_trend(expr, t, frac=frac)
        ax.plot(ts, fit, color=TREND_COLOR, lw=2)
        ax.set_title(gene, fontsize=LABEL_SIZE)
        ax.set_xlabel(pseudotime.method, fontsize=TICK_SIZE)
    for ax in axes.ravel()[len(genes):]:
        ax.axis("off")

    fig.tight_layout()
    return _finish(fig, save, show, "gene trend plot")
