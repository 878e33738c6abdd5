"""
Analysis Package
================

Heat map rendering and report figures.

This package provides two main interfaces:

    HeatmapRenderer
        Draws a long-form relation as a categorical tile grid coloured
        through a three-anchor diverging scale described by ``RenderSpec``.

    Visualizer
        Writes the report figures (correlation and loading heat maps,
        masked correlation matrix, explained variance, strongest pairs)
        to a configurable output directory.

Usage::

    from corrmap.analysis import HeatmapRenderer, RenderSpec, Visualizer

    image = HeatmapRenderer().render(relation, RenderSpec.correlation())
    image.save("figures/correlation.png")

    viz = Visualizer(output_dir="./figures")
    viz.plot_correlation_heatmap(frame, min_abs_value=0.5)
"""

from .heatmap import (
    DivergingScale,
    HeatmapRenderer,
    RenderedImage,
    RenderSpec,
    Tile,
    render_heatmap,
)
from .visualization import PlotConfig, Visualizer

__all__ = [
    "DivergingScale",
    "HeatmapRenderer",
    "PlotConfig",
    "RenderedImage",
    "RenderSpec",
    "Tile",
    "Visualizer",
    "render_heatmap",
]
