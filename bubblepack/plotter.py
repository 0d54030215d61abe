from pathlib import Path
from typing import Dict, Optional, Sequence, Union

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.patches import Circle, Rectangle

from bubblepack.layout import LayoutResult
from bubblepack.legend import LegendEntry


def _group_colors(groups: Sequence[str], cmap: str) -> Dict[str, tuple]:
    keys = list(dict.fromkeys(groups))
    cmap_obj = plt.get_cmap(cmap, max(2, len(keys)))
    return {k: cmap_obj(i) for i, k in enumerate(keys)}


def plot_layout(
    result: LayoutResult,
    positions: Optional[np.ndarray] = None,
    *,
    legend: Optional[Sequence[LegendEntry]] = None,
    title: Optional[str] = None,
    figsize=(9, 9),
    cmap: str = "tab20",
    draw_cells: bool = True,
    draw_group_labels: bool = True,
    fill_alpha: float = 0.55,
    output_path: Optional[Union[Path, str]] = None,
    dpi: int = 120,
):
    """
    Draw a layout as filled circles, colored by group, in screen orientation (y grows down).

    Parameters
    ----------
    result : LayoutResult
        Output of `BubbleLayout.compute_layout`.
    positions : (n, 2) array | None
        Positions to draw instead of the layout targets, e.g. a smoothing snapshot.
    legend : list[LegendEntry] | None
        Reference circles drawn in the top margin.
    draw_cells : bool
        Outline the grid cells of clustered views.
    output_path : path | None
        If given, the figure is saved there and closed.
    """
    xy = result.xy if positions is None else np.asarray(positions, float)
    r = result.radii
    groups = list(result.groups) if result.groups else ["all"] * len(result.ids)
    colors = _group_colors(groups, cmap)
    top, right, bottom, left = result.margin

    fig, ax = plt.subplots(figsize=figsize)
    for (x, y), rr, g, approx in zip(
        xy, r, groups, (cid in result.approximate_ids for cid in result.ids)
    ):
        ax.add_patch(Circle((x, y), rr, facecolor=colors[g], edgecolor="k",
                            linewidth=0.8 if not approx else 1.4,
                            linestyle="-" if not approx else "--",
                            alpha=fill_alpha))

    if draw_cells:
        for key, cell in result.cells.items():
            b = cell.bounds
            ax.add_patch(Rectangle((b.x0, b.y0), b.width, b.height, fill=False,
                                   linestyle=":", linewidth=0.8, edgecolor="gray", alpha=0.6))
    if draw_group_labels:
        for key, cell in result.cells.items():
            b = cell.bounds
            ax.text(cell.center_x, b.y0 + 2, key, ha="center", va="top", fontsize=8, color="dimgray")

    if legend:
        x = 0.0
        for entry in legend:
            x += entry.radius
            ax.add_patch(Circle((x, -top / 2), entry.radius, fill=False, edgecolor="gray"))
            ax.text(x, -top / 2, f"{entry.value:g}", ha="center", va="center", fontsize=7)
            x += entry.radius + 12

    width = result.viewport.width - left - right
    ax.set_xlim(-left, width + right)
    ax.set_ylim(result.content_height - top, -top)
    ax.set_aspect("equal", "box")
    ax.set_xticks([]); ax.set_yticks([])
    ax.set_title(title if title is not None else f"{result.mode.value}: {len(result.ids)} circles")
    plt.tight_layout()

    if output_path is not None:
        fig.savefig(output_path, dpi=dpi)
        plt.close(fig)
    return fig, ax
