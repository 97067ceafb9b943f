import os
import scpseudotime as spt
from scpseudotime.datasets import make_mock_trajectory


def main():
    print("Generating demo trajectory data...")
    adata = make_mock_trajectory(n_cells=400, n_genes=300, n_stages=6, branch=True, random_state=42)

    os.makedirs("demo_figs", exist_ok=True)

    config = spt.PipelineConfig(
        n_pcs=10,
        n_dcs=10,
        cluster_method="kmeans",
        n_clusters=6,
        n_top_genes=100,
        run_scanpy_dpt=True,
        out_dir="demo_figs",
    )
    result = spt.run_pipeline(adata, config)

    print("Plotting pseudotime by stage...")
    for name, pt in result.pseudotimes.items():
        spt.pl.plot_pseudotime_by_stage(
            pt, result.stages, save=f"demo_figs/{name}_by_stage.png", show=False
        )

    print("Plotting embeddings...")
    spt.pl.plot_embedding(
        result.pca.coords, result.stages, title="PCA by stage",
        save="demo_figs/pca_stages.png", show=False,
    )
    spt.pl.plot_embedding(
        result.dmap.components, result.pseudotimes["dpt"], axis_label="DC",
        title="Diffusion components, DPT", save="demo_figs/diffmap_dpt.png", show=False,
    )

    print("Plotting method correlations...")
    spt.pl.plot_correlation_heatmap(
        result.correlations, save="demo_figs/pseudotime_correlations.png", show=False
    )

    print("Plotting top pseudotime genes...")
    top = result.genes["gene"].head(6).tolist()
    spt.pl.plot_gene_trends(
        adata, result.pseudotimes[config.gene_scan_method], top,
        save="demo_figs/top_gene_trends.png", show=False,
    )

    print("Pseudotime Demo Complete. Figures and tables saved to demo_figs/.")


if __name__ == "__main__":
    main()
