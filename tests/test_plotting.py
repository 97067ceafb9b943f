import matplotlib
matplotlib.use("Agg")

import pytest
import numpy as np
import matplotlib.pyplot as plt
from scpseudotime import plotting as pl
from scpseudotime import tools as tl, trajectory as tr
from scpseudotime.datasets import make_mock_trajectory, get_stage_labels


@pytest.fixture
def mock_adata():
    return make_mock_trajectory(n_cells=60, n_genes=30, n_stages=3, random_state=5)


@pytest.fixture
def pseudotime(mock_adata):
    return tr.Pseudotime("true", mock_adata.obs["true_time"].values, mock_adata.obs_names)


def test_plot_pseudotime_by_stage(mock_adata, pseudotime):
    stages = get_stage_labels(mock_adata)
    fig = pl.plot_pseudotime_by_stage(pseudotime, stages, show=False)
    assert fig is not None
    plt.close("all")


def test_plot_embedding_by_stage_and_value(mock_adata, pseudotime):
    pca = tl.run_pca(mock_adata, n_comps=3)
    stages = get_stage_labels(mock_adata)
    assert pl.plot_embedding(pca.coords, stages, show=False) is not None
    values = np.array(pseudotime.values)
    values[:3] = np.nan
    assert pl.plot_embedding(pca.coords, values, show=False) is not None
    plt.close("all")


def test_plot_correlation_heatmap_saves(tmp_path, pseudotime):
    corr = tr.correlate_pseudotimes([pseudotime, tr.Pseudotime("rank", pseudotime.ranked().values, pseudotime.cell_names)])
    out = tmp_path / "corr.png"
    assert pl.plot_correlation_heatmap(corr, show=False, save=str(out)) is None
    assert out.exists()


def test_plot_gene_trends(mock_adata, pseudotime):
    fig = pl.plot_gene_trends(mock_adata, pseudotime, ["gene_0", "gene_15"], show=False)
    assert fig is not None
    with pytest.raises(ValueError):
        pl.plot_gene_trends(mock_adata, pseudotime, ["not_a_gene"], show=False)
    plt.close("all")


def test_apply_seurat_theme_hides_top_right_spines():
    fig, ax = plt.subplots()
    pl.apply_seurat_theme(ax)
    assert not ax.spines["top"].get_visible()
    assert not ax.spines["right"].get_visible()
    assert ax.spines["left"].get_visible()
    pl.apply_seurat_theme(ax, spines="none")
    assert not ax.spines["left"].get_visible()
    plt.close(fig)
