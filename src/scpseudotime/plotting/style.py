# scpseudotime plotting style

# ── Discrete palette (NPG colours, one per developmental stage) ─────────────
STAGE_COLORS = [
    "#3C5488",   # navy blue
    "#4DBBD5",   # teal
    "#00A087",   # green-teal
    "#91D1C2",   # mint
    "#A9D18E",   # moss green
    "#FFDC91",   # straw
    "#F39B7F",   # salmon
    "#E64B35",   # red-orange
    "#DC0000",   # crimson
    "#7E6148",   # umber
]

# ── Continuous palettes ───────────────────────────────────────────────────────
PSEUDOTIME_CMAP = "viridis"
CORR_CMAP       = "RdBu_r"      # correlation heatmaps (-1..+1)

# ── Typography / layout ───────────────────────────────────────────────────────
TITLE_SIZE  = 13
LABEL_SIZE  = 9
TICK_SIZE   = 8
FIG_BG      = "white"
SPINE_COLOR = "#CCCCCC"
POINT_SIZE  = 12.0
TREND_COLOR = "#E64B35"


def apply_seurat_theme(ax, spines="bl"):
    """
    Clean axes: white background, light spines, small ticks.

    Parameters
    ----------
    ax     : matplotlib.axes.Axes
    spines : str
        'bl' = bottom+left only, 'none' = hidden, 'all' = keep all
    """
    ax.set_facecolor(FIG_BG)
    if spines == "none":
        for s in ax.spines.values():
            s.set_visible(False)
    elif spines == "bl":
        ax.spines["top"].set_visible(False)
        ax.spines["right"].set_visible(False)
        for s in ["bottom", "left"]:
            ax.spines[s].set_color(SPINE_COLOR)
    else:
        for s in ax.spines.values():
            s.set_color(SPINE_COLOR)

    ax.tick_params(axis="both", labelsize=TICK_SIZE, length=3, width=0.6, color=SPINE_COLOR)
    return ax


def stage_colors(vocabulary):
    """Map each stage to a colour, cycling the palette if needed."""
    return {s: STAGE_COLORS[i % len(STAGE_COLORS)] for i, s in enumerate(vocabulary)}
