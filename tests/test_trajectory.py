import warnings

import pytest
import numpy as np
import pandas as pd
import anndata as ad
from scpseudotime import trajectory as tr
from scpseudotime.datasets import StageLabels, make_mock_trajectory
from scpseudotime.trajectory import DegenerateKernelWarning, Pseudotime, PseudotimeSet


@pytest.fixture
def curve_cells():
    np.random.seed(42)
    t = np.sort(np.random.uniform(0, 1, 40))
    X = np.column_stack([t * 4, np.sin(t * 3), np.random.normal(0, 0.05, 40)])
    return X


@pytest.fixture
def two_blobs():
    np.random.seed(0)
    a = np.random.normal(0, 0.1, (10, 2))
    b = np.random.normal(100, 0.1, (8, 2))
    return np.vstack([a, b])


@pytest.fixture
def branch_cells():
    np.random.seed(3)
    centers = {"0": (0, 0), "1": (2, 0), "2": (4, 1.5), "3": (4, -1.5)}
    X, labels = [], []
    for name, c in centers.items():
        X.append(np.random.normal(c, 0.1, (10, 2)))
        labels += [name] * 10
    return np.vstack(X), labels


# ── Pseudotime artifacts ─────────────────────────────────────────────────────

def test_pseudotime_is_read_only():
    pt = Pseudotime("m", [0.0, 1.0], ["a", "b"])
    with pytest.raises(ValueError):
        pt.values[0] = 5.0


def test_pseudotime_meta_is_read_only():
    info = {"component": 0}
    pt = Pseudotime("m", [0.0, 1.0], ["a", "b"], meta=info)
    with pytest.raises(TypeError):
        pt.meta["component"] = 1
    info["component"] = 2
    assert pt.meta["component"] == 0
    assert pt.ranked().meta["component"] == 0


def test_pseudotime_length_mismatch():
    with pytest.raises(ValueError):
        Pseudotime("m", [0.0, 1.0], ["a"])


def test_pseudotime_set_is_additive():
    a = Pseudotime("a", [0.0, 1.0], ["x", "y"])
    b = Pseudotime("b", [1.0, 0.0], ["x", "y"])
    s1 = PseudotimeSet([a])
    s2 = s1.with_pseudotime(b)
    assert list(s1) == ["a"]
    assert list(s2) == ["a", "b"]
    assert list(s2.to_frame().columns) == ["a", "b"]


def test_pseudotime_set_rejects_other_cells():
    a = Pseudotime("a", [0.0, 1.0], ["x", "y"])
    b = Pseudotime("b", [1.0, 0.0], ["y", "x"])
    with pytest.raises(ValueError):
        PseudotimeSet([a, b])


def test_ranked_keeps_nan():
    pt = Pseudotime("m", [0.3, np.nan, 0.1], ["a", "b", "c"]).ranked()
    assert pt.kind == "rank"
    assert pt.values[0] == 2 and pt.values[2] == 1
    assert np.isnan(pt.values[1])


# ── Diffusion map ────────────────────────────────────────────────────────────

def test_transition_rows_sum_to_one(curve_cells):
    dmap = tr.diffusion_map(curve_cells, n_comps=5)
    np.testing.assert_allclose(dmap.transitions.sum(axis=1), 1.0, atol=1e-10)


def test_leading_eigenvalue_is_trivial(curve_cells):
    dmap = tr.diffusion_map(curve_cells, n_comps=5)
    assert dmap.eigenvalues[0] == pytest.approx(1.0, abs=1e-8)
    trivial = dmap.eigenvectors[:, 0]
    np.testing.assert_allclose(trivial, trivial[0], rtol=1e-6)
    assert dmap.components.shape == (40, 5)
    assert len(dmap.eigenvalues_nontrivial) == 5
    assert np.all(dmap.eigenvalues_nontrivial < 1.0)
    assert np.all(np.abs(dmap.eigenvalues) <= 1.0)
    assert np.all(np.diff(dmap.eigenvalues) <= 1e-12)


def test_eigenvectors_are_right_eigenvectors(curve_cells):
    dmap = tr.diffusion_map(curve_cells, n_comps=3, density_normalize=False)
    for k in range(4):
        psi = dmap.eigenvectors[:, k]
        np.testing.assert_allclose(dmap.transitions @ psi, dmap.eigenvalues[k] * psi, atol=1e-8)


def test_local_bandwidth(curve_cells):
    dmap = tr.diffusion_map(curve_cells, n_comps=3, sigma="local", k=5)
    assert np.ndim(dmap.sigma) == 1
    np.testing.assert_allclose(dmap.transitions.sum(axis=1), 1.0, atol=1e-10)


def test_affinity_symmetric(curve_cells):
    K, sigma = tr.compute_affinity(curve_cells, sigma=0.5)
    np.testing.assert_allclose(K, K.T)
    np.testing.assert_allclose(np.diag(K), 1.0)
    assert sigma == 0.5


def test_invalid_bandwidth(curve_cells):
    with pytest.raises(ValueError):
        tr.diffusion_map(curve_cells, sigma=-1.0)
    with pytest.raises(ValueError):
        tr.diffusion_map(curve_cells, sigma="widest")


def test_tiny_bandwidth_warns(curve_cells):
    with pytest.warns(DegenerateKernelWarning):
        tr.diffusion_map(curve_cells, n_comps=3, sigma=1e-6)


def test_huge_bandwidth_warns(curve_cells):
    with pytest.warns(DegenerateKernelWarning, match="too large"):
        tr.diffusion_map(curve_cells, n_comps=3, sigma=1e4)


def test_too_few_cells():
    with pytest.raises(ValueError):
        tr.diffusion_map(np.zeros((2, 2)))


# ── Diffusion pseudotime ─────────────────────────────────────────────────────

def test_dpt_zero_at_root_and_non_negative(curve_cells):
    dmap = tr.diffusion_map(curve_cells, n_comps=5)
    pt = tr.diffusion_pseudotime(dmap, root=0)
    assert pt.values[0] == 0.0
    assert np.all(pt.values >= 0)
    assert not np.isnan(pt.values).any()
    assert pt.root == 0


def test_dpt_follows_curve(curve_cells):
    dmap = tr.diffusion_map(curve_cells, n_comps=10)
    pt = tr.diffusion_pseudotime(dmap, root=0)
    from scipy.stats import spearmanr
    assert spearmanr(pt.values, np.arange(40))[0] > 0.9


def test_dpt_root_by_name(curve_cells):
    names = [f"c{i}" for i in range(40)]
    dmap = tr.diffusion_map(curve_cells, n_comps=5, cell_names=names)
    pt = tr.diffusion_pseudotime(dmap, root="c5")
    assert pt.values[5] == 0.0
    with pytest.raises(ValueError):
        tr.diffusion_pseudotime(dmap, root="missing")
    with pytest.raises(ValueError):
        tr.diffusion_pseudotime(dmap, root=40)


def test_disconnected_cells_undefined(two_blobs):
    with pytest.warns(DegenerateKernelWarning):
        dmap = tr.diffusion_map(two_blobs, n_comps=5, sigma=1.0)
    assert dmap.n_connected == 2
    with pytest.warns(DegenerateKernelWarning, match="not connected"):
        pt = tr.diffusion_pseudotime(dmap, root=0)
    assert pt.values[0] == 0.0
    assert np.all(np.isfinite(pt.values[:10]))
    assert np.all(np.isnan(pt.values[10:]))
    assert pt.meta["n_unreachable"] == 8


def test_root_from_stage():
    coords = np.array([[0.0], [1.0], [-1.0], [5.0], [6.0]])
    stages = StageLabels.from_values(["zy", "zy", "zy", "4cell", "4cell"])
    # later cells sit at high values, so the root is the lowest zygote
    assert tr.root_from_stage(stages, coords) == 2


def test_scanpy_dpt():
    adata = make_mock_trajectory(n_cells=80, n_genes=40, n_stages=3, random_state=1)
    pt = tr.scanpy_dpt(adata, root=0, n_pcs=5, n_neighbors=10)
    assert pt.method == "dpt_scanpy"
    assert pt.values[0] == pytest.approx(0.0)
    assert len(pt) == 80


# ── Slingshot ────────────────────────────────────────────────────────────────

def test_slingshot_branching_lineages(branch_cells):
    X, labels = branch_cells
    res = tr.slingshot(X, labels, start_cluster="0")
    assert {frozenset(e) for e in res.tree.edges()} == {frozenset(("0", "1")), frozenset(("1", "2")), frozenset(("1", "3"))}
    assert res.lineages == {"Lineage1": ("0", "1", "2"), "Lineage2": ("0", "1", "3")}

    pt = res.pseudotime_frame
    labels = np.array(labels)
    assert pt.loc[labels == "3", "Lineage1"].isna().all()
    assert pt.loc[labels == "2", "Lineage2"].isna().all()
    assert pt["Lineage1"].min() == pytest.approx(0.0)
    means = [pt.loc[labels == c, "Lineage1"].mean() for c in ("0", "1", "2")]
    assert means[0] < means[1] < means[2]
    assert res.weights.loc[labels == "1"].values.sum() == 20


def test_slingshot_curve_is_centroid_polyline():
    # collinear cells: arc length along the centroid polyline is the x coordinate
    x = np.arange(30, dtype=float)
    X = np.column_stack([x, np.zeros(30)])
    labels = [str(int(v) // 10) for v in x]
    res = tr.slingshot(X, labels, start_cluster="0")
    assert res.lineages == {"Lineage1": ("0", "1", "2")}
    assert np.allclose(res.pseudotime_frame["Lineage1"].values, x)


def test_slingshot_mean_pseudotime(branch_cells):
    X, labels = branch_cells
    res = tr.slingshot(X, labels, start_cluster="0")
    pt = res.pseudotime()
    assert pt.method == "slingshot"
    assert not np.isnan(pt.values).any()
    single = res.pseudotime("Lineage2")
    assert single.method == "slingshot_Lineage2"
    assert np.isnan(single.values).sum() == 10


def test_slingshot_end_clusters(branch_cells):
    X, labels = branch_cells
    res = tr.slingshot(X, labels, start_cluster="0", end_clusters=["1"])
    ends = {path[-1] for path in res.lineages.values()}
    assert "1" in ends


def test_slingshot_errors(branch_cells):
    X, labels = branch_cells
    with pytest.raises(ValueError):
        tr.slingshot(X, labels, start_cluster="9")
    with pytest.raises(ValueError):
        tr.slingshot(X, labels[:-1], start_cluster="0")
    with pytest.raises(ValueError):
        tr.slingshot(X, labels, start_cluster="0", end_clusters=["0"])


def test_slingshot_single_cluster():
    np.random.seed(0)
    X = np.random.normal(size=(15, 2))
    res = tr.slingshot(X, ["a"] * 15, start_cluster="a")
    assert list(res.lineages.values()) == [("a",)]
    assert res.pseudotime().values.min() == pytest.approx(0.0)


# ── Comparator ───────────────────────────────────────────────────────────────

def _three_methods(seed=0):
    rng = np.random.default_rng(seed)
    t = np.linspace(0, 1, 30)
    names = [f"c{i}" for i in range(30)]
    return [
        Pseudotime("a", t, names),
        Pseudotime("b", t + rng.normal(0, 0.2, 30), names),
        Pseudotime("c", t ** 2 + rng.normal(0, 0.3, 30), names),
    ]


@pytest.mark.parametrize("method", ["spearman", "pearson", "kendall"])
def test_correlation_symmetric_unit_diagonal(method):
    corr = tr.correlate_pseudotimes(_three_methods(), method=method)
    assert list(corr.index) == ["a", "b", "c"]
    np.testing.assert_allclose(corr.values, corr.values.T)
    np.testing.assert_allclose(np.diag(corr.values), 1.0)


def test_correlation_nan_only_affects_own_pairs():
    a, b, c = _three_methods()
    full = tr.correlate_pseudotimes([a, b, c])
    c_vals = np.array(c.values)
    c_vals[:5] = np.nan
    c_nan = Pseudotime("c", c_vals, c.cell_names)
    partial = tr.correlate_pseudotimes({"a": a, "b": b, "c": c_nan})
    assert partial.loc["a", "b"] == pytest.approx(full.loc["a", "b"])
    assert partial.loc["a", "c"] != pytest.approx(full.loc["a", "c"])


def test_correlation_unknown_method():
    with pytest.raises(ValueError):
        tr.correlate_pseudotimes(_three_methods(), method="cosine")


def test_stage_agreement():
    stages = StageLabels.from_values(["zy", "zy", "early2cell", "early2cell", "mid2cell", "mid2cell"])
    pt = Pseudotime("m", [0.0, 0.1, 0.5, 0.4, 0.9, np.nan], [str(i) for i in range(6)])
    assert tr.stage_agreement(pt, stages) > 0.9


# ── Gene scan ────────────────────────────────────────────────────────────────

@pytest.fixture
def trend_adata():
    return make_mock_trajectory(n_cells=150, n_genes=40, n_stages=3, random_state=7)


def _true_time(adata):
    return Pseudotime("true", adata.obs["true_time"].values, adata.obs_names)


def test_gene_scan_finds_trend_genes(trend_adata):
    res = tr.scan_pseudotime_genes(trend_adata, _true_time(trend_adata), n_top_genes=None)
    assert list(res.columns) == ["gene", "pval", "f_stat", "edf", "n_cells", "direction"]
    assert len(res) == 40
    assert np.all(np.diff(res["pval"].values) >= 0)
    assert res["pval"].between(0, 1).all()

    program = trend_adata.var["program"]
    top = res["gene"].head(10)
    assert (program[top] != "noise").all()
    up_genes = program.index[program == "up"]
    assert (res.set_index("gene").loc[up_genes, "direction"] == "up").all()


def test_gene_scan_drops_undefined_cells(trend_adata):
    values = np.array(trend_adata.obs["true_time"].values)
    values[:20] = np.nan
    pt = Pseudotime("partial", values, trend_adata.obs_names)
    res = tr.scan_pseudotime_genes(trend_adata, pt, n_top_genes=5)
    assert len(res) == 5
    assert (res["n_cells"] == 130).all()


def test_gene_scan_constant_gene():
    t = np.linspace(0, 1, 40)
    X = np.column_stack([np.full(40, 2.0), 3 * t + np.sin(6 * t)])
    adata = ad.AnnData(X=X, var=pd.DataFrame(index=["flat", "trend"]))
    adata.obs_names = [f"c{i}" for i in range(40)]
    res = tr.scan_pseudotime_genes(adata, Pseudotime("t", t, adata.obs_names), n_top_genes=None)
    flat = res.set_index("gene").loc["flat"]
    assert flat["pval"] == 1.0
    assert flat["direction"] == "flat"
    assert res["gene"].iloc[0] == "trend"


def test_gene_scan_cell_mismatch(trend_adata):
    pt = Pseudotime("t", np.arange(10.0), [f"x{i}" for i in range(10)])
    with pytest.raises(ValueError):
        tr.scan_pseudotime_genes(trend_adata, pt)


def test_smooth_gene_trend():
    t = np.array([0.5, 0.1, np.nan, 0.9, 0.3, 0.7])
    y = np.array([1.0, 0.2, 5.0, 1.8, 0.6, 1.4])
    ts, fit = tr.smooth_gene_trend(y, t, frac=0.8)
    assert len(ts) == 5
    assert np.all(np.diff(ts) >= 0)
