"""
Visualization of low-dimensional embeddings.

This package builds label-colored scatter payloads from 2D embeddings and
exports them as interactive plotly documents or static previews.
"""

from .scatter import PlotStyle, ScatterSeries, build_scatter, write_scatter_html

__all__ = ['PlotStyle', 'ScatterSeries', 'build_scatter', 'write_scatter_html']
