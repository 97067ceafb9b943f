"""
Synthetic datasets with a known developmental ordering.
"""

from typing import Sequence

import numpy as np
import pandas as pd
import anndata as ad

from .stages import DENG_STAGES, set_stage_labels


def make_mock_trajectory(
    n_cells: int = 300,
    n_genes: int = 200,
    n_stages: int = 5,
    branch: bool = False,
    vocabulary: Sequence[str] = DENG_STAGES,
    stage_key: str = "cell_type2",
    random_state: int = 42,
) -> ad.AnnData:
    """
    Generate log-count scRNA-seq data along a latent developmental time.

    Cells are sampled uniformly on a latent time in [0, 1] and assigned to
    ``n_stages`` equal-width stages. Gene programs:

    * the first 20% of genes rise with time,
    * the next 20% fall with time,
    * the next 10% peak transiently mid-trajectory,
    * the next 10% (``branch=True`` only) rise in branch "B" after t = 0.5,
    * the rest are background noise.

    Parameters
    ----------
    n_cells : int
        Number of cells.
    n_genes : int
        Number of genes.
    n_stages : int
        Number of stages, taken from the start of ``vocabulary``.
    branch : bool
        If True, cells past t = 0.5 split into two lineages ("A" and "B").
    vocabulary : sequence of str
        Ordered stage vocabulary.
    stage_key : str
        obs column for the stage labels.
    random_state : int
        Seed for the generator.

    Returns
    -------
    anndata.AnnData
        Log1p counts, with ``obs[stage_key]``, ``obs["true_time"]`` and
        ``obs["branch"]``.
    """
    if n_stages < 1 or n_stages > len(vocabulary):
        raise ValueError(f"n_stages must be between 1 and {len(vocabulary)}.")
    if n_genes < 10:
        raise ValueError("n_genes must be at least 10.")

    rng = np.random.default_rng(random_state)

    t = np.sort(rng.uniform(0, 1, n_cells))
    stage_idx = np.minimum((t * n_stages).astype(int), n_stages - 1)
    stages = [vocabulary[i] for i in stage_idx]

    lineage = np.full(n_cells, "root", dtype=object)
    if branch:
        late = t > 0.5
        lineage[late] = rng.choice(["A", "B"], size=late.sum())

    n_up = int(0.2 * n_genes)
    n_down = int(0.2 * n_genes)
    n_peak = int(0.1 * n_genes)
    n_branch = int(0.1 * n_genes) if branch else 0

    rates = np.full((n_cells, n_genes), 0.5)
    rates *= rng.lognormal(0.0, 0.3, size=(1, n_genes))

    col = 0
    amp = rng.uniform(5, 15, n_up)
    rates[:, col:col + n_up] += np.outer(t, amp)
    col += n_up

    amp = rng.uniform(5, 15, n_down)
    rates[:, col:col + n_down] += np.outer(1 - t, amp)
    col += n_down

    centers = rng.uniform(0.3, 0.7, n_peak)
    amp = rng.uniform(5, 15, n_peak)
    rates[:, col:col + n_peak] += amp * np.exp(-((t[:, None] - centers) ** 2) / (2 * 0.1 ** 2))
    col += n_peak

    if n_branch:
        in_b = (lineage == "B").astype(float)
        amp = rng.uniform(8, 15, n_branch)
        rates[:, col:col + n_branch] += np.outer(in_b * np.clip(t - 0.5, 0, None) * 2, amp)
        # lineage A rises on the up-program faster
        in_a = (lineage == "A").astype(float)
        rates[:, :n_up] += np.outer(in_a * np.clip(t - 0.5, 0, None), np.full(n_up, 4.0))

    counts = rng.poisson(rates).astype(np.float32)
    X = np.log1p(counts)

    obs = pd.DataFrame(
        {
            stage_key: stages,
            "true_time": t,
            "branch": lineage.astype(str),
        },
        index=[f"cell_{i}" for i in range(n_cells)],
    )
    var = pd.DataFrame(index=[f"gene_{i}" for i in range(n_genes)])
    var["program"] = (
        ["up"] * n_up
        + ["down"] * n_down
        + ["transient"] * n_peak
        + ["branch_B"] * n_branch
        + ["noise"] * (n_genes - n_up - n_down - n_peak - n_branch)
    )

    adata = ad.AnnData(X=X, obs=obs, var=var)
    return set_stage_labels(adata, key=stage_key, vocabulary=vocabulary)


def make_toy_linear(
    vocabulary: Sequence[str] = DENG_STAGES,
    stage_key: str = "cell_type2",
) -> ad.AnnData:
    """
    Six cells, two per stage for the first three stages of ``vocabulary``,
    evenly spaced along a straight line in a two-feature space.

    ``cell_0`` is the earliest cell.
    """
    x = np.arange(6, dtype=float)
    offsets = np.array([0.0, 0.1, -0.1, 0.1, -0.1, 0.0])
    X = np.column_stack([x, 1.0 + 0.5 * x + offsets])

    obs = pd.DataFrame(
        {stage_key: [vocabulary[i // 2] for i in range(6)]},
        index=[f"cell_{i}" for i in range(6)],
    )
    var = pd.DataFrame(index=["feature_a", "feature_b"])
    adata = ad.AnnData(X=X, obs=obs, var=var)
    return set_stage_labels(adata, key=stage_key, vocabulary=vocabulary)
