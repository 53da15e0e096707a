"""
Figure wrapper shared by the heatmap and dendrogram plots.

Plots are returned as ``Figure`` so the workflow can save and close them
without knowing whether a plain matplotlib figure or a seaborn ClusterGrid
sits underneath.
"""

from __future__ import annotations

import base64
import io
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Literal, Optional

import matplotlib.figure
import matplotlib.pyplot as plt

OutputFormat = Literal["png", "pdf", "svg", "html"]
SUPPORTED_FORMATS = ("png", "pdf", "svg", "html")


@dataclass
class Figure:
    """
    A plot together with its title and the parameters it was drawn with.

    Attributes
    ----------
    fig : matplotlib.figure.Figure
        Figure to save
    title : str
        Plot title (also used as the html page title)
    grid : object, optional
        ClusterGrid owning ``fig``, for the heatmap's row/column orderings
    metadata : dict
        Parameters of the plot (features shown, scaling, linkage, ...)
    """
    fig: matplotlib.figure.Figure
    title: str
    grid: Optional[Any] = None
    metadata: dict = field(default_factory=dict)

    def save(
        self,
        path: Path | str,
        format: Optional[OutputFormat] = None,
        dpi: int = 300,
    ) -> Path:
        """
        Write the figure to ``path`` and return it.

        The format comes from the extension unless given; anything
        unrecognized is written as png. An html file is a single page
        with the png inlined.
        """
        path = Path(path)
        fmt = format or path.suffix.lstrip(".").lower()
        if fmt not in SUPPORTED_FORMATS:
            fmt = "png"
        path.parent.mkdir(parents=True, exist_ok=True)

        if fmt == "html":
            path.write_text(
                f"<!DOCTYPE html>\n<html><head><title>{self.title}</title></head>\n"
                f'<body><img src="data:image/png;base64,{self._png_base64(dpi)}" '
                f'alt="{self.title}"></body></html>\n'
            )
        else:
            self.fig.savefig(path, format=fmt, dpi=dpi, bbox_inches="tight", facecolor="white")
        return path

    def _png_base64(self, dpi: int) -> str:
        buf = io.BytesIO()
        self.fig.savefig(buf, format="png", dpi=dpi, bbox_inches="tight")
        return base64.b64encode(buf.getvalue()).decode()

    def close(self) -> None:
        plt.close(self.fig)


class FigureCollection:
    """Figures of one analysis run, keyed by name and kept in insertion order."""

    def __init__(self):
        self.figures: dict[str, Figure] = {}

    def add(self, key: str, fig: Figure) -> FigureCollection:
        self.figures[key] = fig
        return self

    def __getitem__(self, key: str) -> Figure:
        return self.figures[key]

    def __len__(self) -> int:
        return len(self.figures)

    def __iter__(self) -> Iterator[tuple[str, Figure]]:
        return iter(self.figures.items())

    def save_all(
        self,
        output_dir: Path | str,
        format: OutputFormat = "png",
        dpi: int = 300,
    ) -> dict[str, Path]:
        """Save each figure as ``{output_dir}/{key}.{format}``; returns paths by key."""
        output_dir = Path(output_dir)
        return {
            key: fig.save(output_dir / f"{key}.{format}", format=format, dpi=dpi)
            for key, fig in self
        }

    def close_all(self) -> None:
        for _, fig in self:
            fig.close()
