"""
Consistent visual styles for expression visualizations.

Conventions
-----------
- Expression heatmaps use the RdBu_r diverging colormap (red = high) on
  row-scaled data, viridis on unscaled intensities
- Sample groups are coloured from a colorblind-safe categorical palette,
  assigned in sorted group order so colours are stable across figures
- Missing group labels are grey
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Literal

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns


@dataclass(frozen=True)
class Palette:
    """
    Color palette for expression visualizations.

    Attributes
    ----------
    categorical : str
        Seaborn palette name for sample groups and clusters
    missing : str
        Color for samples without a group label
    neutral : str
        Color for reference lines (dendrogram cut height)
    diverging : str
        Colormap for centred data (row z-scores)
    sequential : str
        Colormap for raw intensities
    """
    categorical: str = "colorblind"
    missing: str = "#9ca3af"     # Gray-400
    neutral: str = "#6b7280"     # Gray-500
    diverging: str = "RdBu_r"
    sequential: str = "viridis"

    def for_groups(self, groups: Iterable[object]) -> dict[object, str]:
        """
        Map group labels to hex colors.

        Labels are sorted (by their string form) before colours are
        assigned, so the same groups always get the same colours.
        """
        unique = sorted({g for g in groups if not pd.isna(g)}, key=str)
        colors = sns.color_palette(self.categorical, max(len(unique), 1)).as_hex()
        return {group: colors[i % len(colors)] for i, group in enumerate(unique)}

    def sample_colors(self, labels: pd.Series) -> pd.Series:
        """Per-sample colour Series for a group label Series (same index)."""
        mapping = self.for_groups(labels)
        return labels.astype(object).map(lambda g: self.missing if pd.isna(g) else mapping[g])


PALETTES = {
    "default": Palette(),
    "print": Palette(
        categorical="Greys",
        missing="#e6e6e6",
        neutral="#808080",
        diverging="RdGy",
        sequential="Greys",
    ),
}


def configure_style(
    style: Literal["paper", "notebook"] = "paper",
    palette: str | Palette = "default",
    font_scale: float = 1.0,
) -> Palette:
    """
    Configure matplotlib and seaborn for a consistent look.

    Parameters
    ----------
    style : {"paper", "notebook"}
        paper: high DPI, small fonts; notebook: screen-friendly sizes.
    palette : str or Palette
        Palette name or instance.
    font_scale : float
        Multiplier for all font sizes.

    Returns
    -------
    Palette
        The configured palette.
    """
    if isinstance(palette, str):
        palette = PALETTES.get(palette, PALETTES["default"])

    if style == "paper":
        params = {"font.size": 9 * font_scale, "figure.dpi": 300, "savefig.dpi": 300}
        context = "paper"
    else:
        params = {"font.size": 11 * font_scale, "figure.dpi": 100, "savefig.dpi": 150}
        context = "notebook"

    sns.set_theme(style="white", context=context, font_scale=font_scale)
    plt.rcParams.update({
        "figure.facecolor": "white",
        "axes.facecolor": "white",
        "legend.frameon": False,
        **params,
    })
    return palette
