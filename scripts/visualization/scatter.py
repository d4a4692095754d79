"""
Label-colored scatter plots of 2D embeddings.

``build_scatter`` turns an embedding and its labels into a ScatterSeries
payload; the ``create_figure``/``write_scatter_html`` helpers hand that payload
to plotly, and ``save_scatter_png`` renders a static matplotlib preview.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

import numpy as np
import plotly.colors
import plotly.express as px
import plotly.graph_objects as go

from scripts.analysis.dimension_reduction import EmbeddingResult
from scripts.errors import DimensionMismatchError, ShapeMismatchError

logger = logging.getLogger('embedding.visualization')

DEFAULT_TITLE = "PaCMAP Embedding"
DEFAULT_WIDTH = 600
DEFAULT_HEIGHT = 600
DEFAULT_OUTPUT = "pacmap_visualization.html"


def available_palettes() -> List[str]:
    """Names of the discrete palettes accepted by PlotStyle."""
    return sorted(
        name for name in dir(px.colors.qualitative)
        if not name.startswith('_') and isinstance(getattr(px.colors.qualitative, name), list)
    )


def get_palette(name: str) -> List[str]:
    """Return a copy of a plotly qualitative palette by name."""
    palette = getattr(px.colors.qualitative, name, None)
    if not isinstance(palette, list) or name.startswith('_'):
        raise ValueError(f"Unknown palette '{name}'. Available: {', '.join(available_palettes())}")
    return list(palette)


def _to_rgb_tuple(color: str):
    """Convert a plotly '#rrggbb' or 'rgb(r, g, b)' string to a matplotlib RGB tuple."""
    if color.startswith('#'):
        rgb = plotly.colors.hex_to_rgb(color)
    else:
        rgb = plotly.colors.unlabel_rgb(color)
    return tuple(float(c) / 255.0 for c in rgb)


@dataclass
class PlotStyle:
    """Presentation options for a scatter plot."""
    marker_size: int = 2
    show_color_scale: bool = True
    palette: Optional[str] = None

    def __post_init__(self):
        if self.marker_size <= 0:
            raise ValueError(f"marker_size must be positive, got {self.marker_size}")
        if self.palette is not None:
            get_palette(self.palette)


@dataclass
class ScatterSeries:
    """Point positions, per-point color keys and presentation attributes."""
    x: np.ndarray
    y: np.ndarray
    labels: np.ndarray
    marker_size: int = 2
    show_color_scale: bool = True
    palette: Optional[str] = None

    def __len__(self) -> int:
        return len(self.x)


def build_scatter(embedding: EmbeddingResult, labels: np.ndarray,
                  style: Optional[PlotStyle] = None) -> ScatterSeries:
    """
    Build a scatter payload from a 2D embedding.

    Args:
        embedding: Result with coordinates of shape (n_samples, 2)
        labels: Integer label per sample, used as the color key
        style: Presentation options; defaults to PlotStyle()

    Returns:
        ScatterSeries whose x[i], y[i] are embedding row i

    Raises:
        DimensionMismatchError: if the embedding is not two-dimensional
        ShapeMismatchError: if the label count differs from the sample count
    """
    style = style if style is not None else PlotStyle()
    coordinates = np.asarray(embedding.coordinates)

    if coordinates.ndim != 2 or coordinates.shape[1] != 2:
        raise DimensionMismatchError(
            f"Scatter plots need a 2D embedding, got coordinates of shape {coordinates.shape}",
            stage="visualize"
        )

    labels = np.asarray(labels)
    if labels.ndim != 1 or labels.shape[0] != coordinates.shape[0]:
        raise ShapeMismatchError(
            f"{coordinates.shape[0]} points but labels of shape {labels.shape}",
            stage="visualize"
        )

    return ScatterSeries(
        x=coordinates[:, 0].copy(),
        y=coordinates[:, 1].copy(),
        labels=labels.copy(),
        marker_size=style.marker_size,
        show_color_scale=style.show_color_scale,
        palette=style.palette,
    )


def create_figure(series: ScatterSeries, title: str = DEFAULT_TITLE,
                  width: int = DEFAULT_WIDTH, height: int = DEFAULT_HEIGHT) -> go.Figure:
    """Create a plotly figure for a scatter payload."""
    fig = go.Figure()

    if series.palette is None:
        fig.add_trace(go.Scattergl(
            x=series.x,
            y=series.y,
            mode='markers',
            marker=dict(
                color=series.labels,
                showscale=series.show_color_scale,
                size=series.marker_size,
            ),
        ))
    else:
        # One trace per label so the legend lists the categories
        palette = get_palette(series.palette)
        for i, label in enumerate(np.unique(series.labels)):
            mask = series.labels == label
            fig.add_trace(go.Scattergl(
                x=series.x[mask],
                y=series.y[mask],
                mode='markers',
                name=str(label),
                marker=dict(color=palette[i % len(palette)], size=series.marker_size),
            ))
        fig.update_layout(showlegend=series.show_color_scale)

    fig.update_layout(title=dict(text=title), width=width, height=height)
    return fig


def write_scatter_html(series: ScatterSeries, output_path: Union[str, Path] = DEFAULT_OUTPUT,
                       title: str = DEFAULT_TITLE, width: int = DEFAULT_WIDTH,
                       height: int = DEFAULT_HEIGHT) -> Path:
    """Write a self-contained interactive HTML document and return its path."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    fig = create_figure(series, title=title, width=width, height=height)
    fig.write_html(str(output_path), include_plotlyjs=True)
    logger.info(f"Interactive plot saved to {output_path}")
    return output_path


def save_scatter_png(series: ScatterSeries, output_path: Union[str, Path],
                     title: str = DEFAULT_TITLE, width: int = DEFAULT_WIDTH,
                     height: int = DEFAULT_HEIGHT, dpi: int = 100) -> Path:
    """Save a static preview of the scatter plot with matplotlib."""
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    fig, ax = plt.subplots(figsize=(width / dpi, height / dpi), dpi=dpi)
    # matplotlib sizes are areas in points^2
    point_area = float(series.marker_size) ** 2

    if series.palette is None:
        sc = ax.scatter(series.x, series.y, c=series.labels, cmap='viridis', s=point_area)
        if series.show_color_scale:
            fig.colorbar(sc, ax=ax)
    else:
        colors = [_to_rgb_tuple(color) for color in get_palette(series.palette)]
        for i, label in enumerate(np.unique(series.labels)):
            mask = series.labels == label
            ax.scatter(series.x[mask], series.y[mask], color=colors[i % len(colors)],
                       s=point_area, label=str(label))
        if series.show_color_scale:
            ax.legend(markerscale=4, fontsize='small')

    ax.set_title(title)
    plt.tight_layout()
    plt.savefig(output_path, dpi=dpi)
    plt.close(fig)
    logger.info(f"Static preview saved to {output_path}")
    return output_path
