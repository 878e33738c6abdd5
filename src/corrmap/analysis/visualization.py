"""
Visualization Module
====================

Saved report figures for exploratory correlation and PCA analysis.

Each ``plot_*`` method builds a figure, writes it to the configured
output directory and closes it, returning the saved path. The tile heat
maps go through the reducer and ``HeatmapRenderer``; the remaining plots
are standard seaborn / matplotlib charts used alongside them.

Plot Types
----------
    Correlation Heat Map
        One tile per distinct variable pair (upper triangle in label
        order), optionally filtered to strong correlations only.

    Loadings Heat Map
        Absolute PCA loadings, variables x components.

    Correlation Matrix
        Full seaborn heat map with the redundant upper triangle masked,
        optionally reordered by hierarchical clustering.

    Explained Variance
        Scree bars with the cumulative variance curve.

    Top Pairs
        Horizontal bars for the strongest pairwise scores.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import numpy as np
import pandas as pd

import matplotlib
matplotlib.use("Agg")  # Non-interactive backend for server/CLI use
import matplotlib.pyplot as plt
import seaborn as sns

from ..reduction.reducer import LongFormRelation, MatrixReducer
from ..scores.pairwise import PCAResult, cluster_order, correlation_matrix
from .heatmap import HeatmapRenderer, RenderSpec

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Configuration dataclass
# ---------------------------------------------------------------------------

@dataclass
class PlotConfig:
    """Configuration for plot aesthetics and output.

    Attributes:
        figsize: Default figure size as (width, height) in inches.
        dpi: Resolution for saved figures.
        file_format: Output file format ('png', 'pdf', 'svg').
        style: Seaborn style preset.
        palette: Seaborn color palette name.
        font_scale: Scaling factor for all font sizes.
        context: Seaborn context preset.
        title_fontsize: Font size for plot titles.
        label_fontsize: Font size for axis labels.
        annotation_fontsize: Font size for text annotations on plots.
        highlight_color: Bar color for pairs involving the target.
    """
    figsize: tuple[float, float] = (10, 8)
    dpi: int = 150
    file_format: str = "png"
    style: str = "white"
    palette: str = "deep"
    font_scale: float = 1.0
    context: str = "notebook"
    title_fontsize: int = 14
    label_fontsize: int = 12
    annotation_fontsize: int = 8
    highlight_color: str = "#D32F2F"


# ---------------------------------------------------------------------------
# Main visualizer class
# ---------------------------------------------------------------------------

class Visualizer:
    """
    Report figure writer.

    Parameters
    ----------
    output_dir : str or Path
        Directory where all plots will be saved. Created automatically
        if it does not exist.
    config : PlotConfig, optional
        Styling and output configuration.
    render_defaults : dict, optional
        Overrides applied to every ``RenderSpec`` built by this visualizer
        (e.g. tick order, annotation).
    diverging_colors : dict, optional
        ``low_color`` / ``mid_color`` / ``high_color`` for the signed
        correlation scale only; magnitude plots keep the loadings preset.

    Examples
    --------
    >>> viz = Visualizer(output_dir="./figures")
    >>> path, relation = viz.plot_correlation_heatmap(frame, min_abs_value=0.5)
    >>> viz.plot_loadings_heatmap(pca_loadings(frame), n_components=4)
    """

    def __init__(
        self,
        output_dir: str | Path = "./figures",
        config: Optional[PlotConfig] = None,
        render_defaults: Optional[dict] = None,
        diverging_colors: Optional[dict] = None,
    ):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.config = config or PlotConfig()
        self.render_defaults = dict(render_defaults or {})
        self.diverging_colors = dict(diverging_colors or {})
        self.reducer = MatrixReducer()
        self.renderer = HeatmapRenderer()

        sns.set_theme(
            style=self.config.style,
            palette=self.config.palette,
            font_scale=self.config.font_scale,
            context=self.config.context,
        )

        logger.info(f"Visualizer initialized, output directory: {self.output_dir}")

    def _save_figure(
        self,
        fig: plt.Figure,
        filename: str,
        tight_layout: bool = True,
    ) -> Path:
        """Save a figure to the output directory and close it."""
        if tight_layout:
            fig.tight_layout()

        filepath = self.output_dir / f"{filename}.{self.config.file_format}"
        fig.savefig(
            filepath,
            dpi=self.config.dpi,
            format=self.config.file_format,
            bbox_inches="tight",
            facecolor="white",
            edgecolor="none",
        )
        plt.close(fig)
        logger.info(f"Saved plot: {filepath}")
        return filepath

    def _spec(self, base: RenderSpec, signed: bool = False, **overrides) -> RenderSpec:
        colors = self.diverging_colors if signed else {}
        for key, value in {**self.render_defaults, **colors, **overrides}.items():
            setattr(base, key, value)
        return base

    # ------------------------------------------------------------------
    # Tile heat maps
    # ------------------------------------------------------------------

    def plot_correlation_heatmap(
        self,
        data: pd.DataFrame,
        min_abs_value: Optional[float] = None,
        absolute: bool = False,
        is_matrix: bool = False,
        method: str = "pearson",
        filename: str = "correlation_heatmap",
        title: Optional[str] = None,
    ) -> tuple[Path, LongFormRelation]:
        """
        Tile heat map of distinct variable pairs.

        Parameters
        ----------
        data : DataFrame
            Raw table (correlations computed here) or, with
            ``is_matrix=True``, a precomputed square correlation matrix.
        min_abs_value : float, optional
            Keep only pairs with ``|r| > min_abs_value``.
        absolute : bool
            Plot ``|r|`` instead of signed correlations.
        method : str
            Correlation method when computing from raw data.

        Returns
        -------
        (Path, LongFormRelation)
            Saved file and the relation that was drawn.
        """
        matrix = data if is_matrix else correlation_matrix(data, method=method)
        relation = self.reducer.reduce(
            matrix,
            value_transform=abs if absolute else None,
            min_abs_value=min_abs_value,
        )
        if not relation:
            logger.warning("No correlation pairs left to plot after filtering")

        if title is None:
            title = "Correlation Heat Map"
            if min_abs_value is not None:
                title += f" (|r| > {min_abs_value:g})"

        if absolute:
            spec = self._spec(
                RenderSpec.loadings(colorbar_label="|Correlation|"),
                title=title,
            )
        else:
            spec = self._spec(RenderSpec.correlation(), signed=True, title=title)

        image = self.renderer.render(relation, spec)
        return self._save_figure(image.figure, filename), relation

    def plot_loadings_heatmap(
        self,
        loadings: Union[PCAResult, pd.DataFrame],
        n_components: Optional[int] = None,
        min_abs_value: Optional[float] = None,
        filename: str = "pca_loadings",
        title: Optional[str] = None,
    ) -> tuple[Path, LongFormRelation]:
        """
        Tile heat map of absolute PCA loadings (variables x components).

        Components keep their natural ``PC1, PC2, ...`` order on the x axis.
        """
        table = loadings.loadings if isinstance(loadings, PCAResult) else loadings
        if n_components is not None:
            table = table.iloc[:, :n_components]

        relation = self.reducer.reduce_loadings(
            table,
            value_transform=abs,
            min_abs_value=min_abs_value,
        )
        if not relation:
            logger.warning("No loadings left to plot after filtering")

        spec = self._spec(
            RenderSpec.loadings(),
            tick_order="appearance",
            x_label_rotation=0.0,
            title=title or f"PCA Loadings ({table.shape[1]} components)",
        )
        image = self.renderer.render(relation, spec)
        return self._save_figure(image.figure, filename), relation

    # ------------------------------------------------------------------
    # Full correlation matrix
    # ------------------------------------------------------------------

    def plot_correlation_matrix(
        self,
        matrix: pd.DataFrame,
        cluster: bool = False,
        annotate: bool = True,
        filename: str = "correlation_matrix",
        title: Optional[str] = None,
    ) -> Path:
        """Seaborn heat map of the full matrix with the upper triangle masked."""
        if cluster:
            order = cluster_order(matrix)
            matrix = matrix.loc[order, order]

        n = matrix.shape[0]
        mask = np.triu(np.ones((n, n), dtype=bool))

        fig_width = max(8, n * 0.6 + 3)
        fig_height = max(6, n * 0.5 + 2)
        fig, ax = plt.subplots(figsize=(fig_width, fig_height))

        sns.heatmap(
            matrix,
            mask=mask,
            annot=annotate,
            fmt=".2f",
            cmap=sns.diverging_palette(250, 10, as_cmap=True),
            vmin=-1,
            vmax=1,
            center=0,
            square=True,
            linewidths=0.5,
            linecolor="white",
            cbar_kws={"label": "Correlation", "shrink": 0.8},
            annot_kws={"fontsize": self.config.annotation_fontsize},
            ax=ax,
        )
        ax.set_xticklabels(ax.get_xticklabels(), rotation=45, ha="right")
        ax.set_yticklabels(ax.get_yticklabels(), rotation=0)

        if title is None:
            title = f"Correlation Matrix ({n} variables)"
        ax.set_title(title, fontsize=self.config.title_fontsize, pad=20)

        return self._save_figure(fig, filename)

    # ------------------------------------------------------------------
    # PCA variance profile
    # ------------------------------------------------------------------

    def plot_explained_variance(
        self,
        pca_result: PCAResult,
        threshold: Optional[float] = None,
        filename: str = "explained_variance",
        title: Optional[str] = None,
    ) -> Path:
        """Scree plot: per-component variance bars and the cumulative curve."""
        components = pca_result.components
        ratios = pca_result.explained_variance_ratio
        cumulative = pca_result.cumulative_variance
        x = np.arange(len(components))

        fig, ax = plt.subplots(figsize=(max(6, len(components) * 0.6 + 2), 5))
        color = sns.color_palette(self.config.palette)[0]

        ax.bar(x, ratios, color=color, alpha=0.8, label="Individual")
        ax.plot(x, cumulative, marker="o", color="black", linewidth=1.2, label="Cumulative")

        if threshold is not None:
            ax.axhline(threshold, color=self.config.highlight_color, linestyle="--", linewidth=1)
            k = pca_result.n_components_for(threshold)
            ax.axvline(k - 1, color=self.config.highlight_color, linestyle=":", linewidth=1)
            ax.text(
                k - 1,
                threshold,
                f" {k} components reach {threshold:.0%}",
                va="bottom",
                fontsize=self.config.annotation_fontsize,
            )

        ax.set_xticks(x)
        ax.set_xticklabels(components)
        ax.set_ylim(0, 1.05)
        ax.set_ylabel("Explained Variance Ratio", fontsize=self.config.label_fontsize)
        ax.legend(loc="center right")

        if title is None:
            title = f"Explained Variance ({pca_result.n_samples} samples)"
        ax.set_title(title, fontsize=self.config.title_fontsize)

        return self._save_figure(fig, filename)

    # ------------------------------------------------------------------
    # Strongest pairs
    # ------------------------------------------------------------------

    def plot_top_pairs(
        self,
        relation: LongFormRelation,
        top_n: int = 15,
        highlight_label: Optional[str] = None,
        filename: str = "top_pairs",
        title: Optional[str] = None,
    ) -> Path:
        """Horizontal bar chart of the ``top_n`` pairs by ``|value|``."""
        ranked = relation.sorted_by_magnitude().top(top_n)

        fig_height = max(4, len(ranked) * 0.4 + 2)
        fig, ax = plt.subplots(figsize=(self.config.figsize[0], fig_height))

        if not ranked:
            logger.warning("No pairs to rank")
            ax.text(0.5, 0.5, "No pairs above threshold", ha="center", va="center")
            ax.set_axis_off()
            return self._save_figure(fig, filename)

        base_color = sns.color_palette(self.config.palette)[0]
        labels = [f"{e.row_label} / {e.col_label}" for e in ranked]
        values = [e.value for e in ranked]
        colors = [
            self.config.highlight_color
            if highlight_label in (e.row_label, e.col_label)
            else base_color
            for e in ranked
        ]

        y_pos = range(len(ranked))
        ax.barh(y_pos, values, color=colors, edgecolor="white", linewidth=0.5)
        ax.axvline(0, color="gray", linewidth=0.8)
        ax.set_yticks(y_pos)
        ax.set_yticklabels(labels, fontsize=self.config.annotation_fontsize + 1)
        ax.invert_yaxis()  # Strongest at top
        ax.set_xlabel("Score", fontsize=self.config.label_fontsize)

        for i, value in enumerate(values):
            ax.text(
                value,
                i,
                f" {value:.2f} ",
                va="center",
                ha="left" if value >= 0 else "right",
                fontsize=self.config.annotation_fontsize,
            )

        if title is None:
            title = f"Strongest Pairs (Top {len(ranked)})"
        ax.set_title(title, fontsize=self.config.title_fontsize)

        return self._save_figure(fig, filename)
