import os

import pytest
import numpy as np
import scpseudotime as spt
from scpseudotime import datasets, tools as tl, trajectory as tr


@pytest.fixture
def mock_adata():
    return datasets.make_mock_trajectory(n_cells=150, n_genes=60, n_stages=4, random_state=3)


def test_toy_linear_trajectory_matches_stage_order():
    adata = datasets.make_toy_linear()
    stages = datasets.get_stage_labels(adata)

    pca = tl.run_pca(adata, n_comps=2)
    pca_pt = tl.pca_pseudotime(pca, root=0)

    dmap = tr.diffusion_map(adata.X, n_comps=3, cell_names=adata.obs_names)
    dpt = tr.diffusion_pseudotime(dmap, root=0)

    naive = tr.Pseudotime("stage", stages.codes, adata.obs_names)

    assert tr.stage_agreement(pca_pt, stages) >= 0.9
    assert tr.stage_agreement(dpt, stages) >= 0.9
    assert tr.stage_agreement(naive, stages) == pytest.approx(1.0)
    corr = tr.correlate_pseudotimes([pca_pt, dpt, naive])
    assert (corr.values >= 0.9).all()


def test_run_pipeline(mock_adata):
    before = mock_adata.obs.copy()
    config = spt.PipelineConfig(n_pcs=5, n_dcs=5, n_top_genes=20)
    result = spt.run_pipeline(mock_adata, config)

    assert list(result.pseudotimes) == ["pca", "dpt", "slingshot"]
    assert result.correlations.shape == (3, 3)
    np.testing.assert_allclose(np.diag(result.correlations.values), 1.0)
    assert len(result.genes) == 20
    assert result.pseudotimes["dpt"].values[result.root] == 0.0
    assert result.stages.earliest() == "zy"
    assert str(mock_adata.obs["cell_type2"].iloc[result.root]) == "zy"
    assert result.stage_agreement["pca"] > 0.8
    assert result.stage_agreement["dpt"] > 0.5

    # input untouched
    assert list(mock_adata.obs.columns) == list(before.columns)
    assert "X_pca" not in mock_adata.obsm


def test_run_pipeline_root_by_name_and_kmeans(mock_adata):
    config = spt.PipelineConfig(
        root="cell_0",
        n_pcs=5,
        n_dcs=5,
        cluster_method="kmeans",
        n_clusters=4,
        gene_scan_method="dpt",
        n_top_genes=10,
    )
    result = spt.run_pipeline(mock_adata, config)
    assert result.root == 0
    assert result.slingshot.start_cluster == str(result.clusters[0])
    assert result.pseudotimes["dpt"].values[0] == 0.0


def test_run_pipeline_unknown_scan_method(mock_adata, capsys):
    config = spt.PipelineConfig(n_pcs=5, n_dcs=5, gene_scan_method="monocle")
    with pytest.raises(ValueError, match="monocle"):
        spt.run_pipeline(mock_adata, config)
    out = capsys.readouterr().out
    assert "principal components" not in out
    assert "diffusion map" not in out
    assert "Slingshot" not in out


@pytest.mark.parametrize("settings", [
    {"cluster_method": "louvain"},
    {"correlation_method": "cosine"},
    {"sigma": "mean"},
    {"gene_scan_method": "dpt_scanpy"},
    {"root": "no_such_cell"},
])
def test_run_pipeline_rejects_config_before_work(mock_adata, capsys, settings):
    config = spt.PipelineConfig(n_pcs=5, n_dcs=5, **settings)
    with pytest.raises(ValueError):
        spt.run_pipeline(mock_adata, config)
    assert "principal components" not in capsys.readouterr().out


def test_obs_table_and_export(tmp_path, mock_adata):
    config = spt.PipelineConfig(n_pcs=5, n_dcs=5, n_top_genes=10, out_dir=str(tmp_path))
    result = spt.run_pipeline(mock_adata, config)

    table = result.obs_table(mock_adata)
    for col in ("cell_type2", "pca", "dpt", "slingshot", "slingshot_cluster"):
        assert col in table.columns
    assert list(table.index) == list(mock_adata.obs_names)

    for name in ("pseudotime.csv", "pseudotime_genes.csv", "pseudotime_correlations.csv"):
        assert os.path.exists(tmp_path / name)
