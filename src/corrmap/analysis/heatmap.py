"""
Heatmap Renderer
================

Draws a ``LongFormRelation`` as a grid of coloured tiles.

The column label of each entry selects the x position and the row label the
y position; both axes are categorical with one tick per distinct label.
Tile colour comes from a three-anchor diverging scale:

    value <= lower bound    -> low colour
    value == midpoint       -> mid colour
    value >= upper bound    -> high colour

with linear RGBA interpolation between the anchors, computed separately on
each side of the midpoint. Asymmetric bounds therefore give the two halves
of the scale different slopes.

Only the matrix entries that survived reduction are drawn, so a
correlation heat map shows the lower/upper triangle and nothing else, and
an empty relation renders an empty, tick-less axes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Optional

import numpy as np

import matplotlib
matplotlib.use("Agg")  # Non-interactive backend for server/CLI use
import matplotlib.pyplot as plt
from matplotlib.collections import PatchCollection
from matplotlib.colors import LinearSegmentedColormap, Normalize, to_rgba
from matplotlib.patches import Rectangle

from ..reduction.reducer import LongFormRelation

logger = logging.getLogger(__name__)

RGBA = tuple[float, float, float, float]
TickOrder = Literal["lexicographic", "appearance"]


# ---------------------------------------------------------------------------
# Render configuration
# ---------------------------------------------------------------------------

@dataclass
class RenderSpec:
    """How a long-form relation maps onto coloured tiles.

    Attributes:
        low_color: Colour for values at or below ``value_lower_bound``.
        mid_color: Colour for ``midpoint_value``.
        high_color: Colour for values at or above ``value_upper_bound``.
        midpoint_value: Value mapped to ``mid_color``.
        value_lower_bound: Lower clamp of the colour domain.
        value_upper_bound: Upper clamp of the colour domain.
        absolute: Colour ``|value|`` instead of the signed value. Used for
            loading magnitudes.
        tick_order: ``'lexicographic'`` (default) or ``'appearance'``.
        x_label_rotation: Rotation of x tick labels in degrees.
        tile_border_color: Edge colour drawn around every tile.
        annotate: Write the value inside each tile.
        value_format: Format spec for annotations.
        title: Optional axes title.
        colorbar_label: Label for the colour bar; ``None`` hides the bar.
        figsize: Figure size in inches; derived from label counts if ``None``.
    """
    low_color: str = "blue"
    mid_color: str = "white"
    high_color: str = "red"
    midpoint_value: float = 0.0
    value_lower_bound: float = -1.0
    value_upper_bound: float = 1.0
    absolute: bool = False
    tick_order: TickOrder = "lexicographic"
    x_label_rotation: float = 45.0
    tile_border_color: str = "white"
    annotate: bool = False
    value_format: str = ".2f"
    title: Optional[str] = None
    colorbar_label: Optional[str] = "Pearson\nCorrelation"
    figsize: Optional[tuple[float, float]] = None

    @classmethod
    def correlation(cls, **overrides) -> RenderSpec:
        """Signed correlations: blue / white / red over [-1, 1]."""
        return cls(**overrides)

    @classmethod
    def loadings(cls, **overrides) -> RenderSpec:
        """Loading magnitudes: white to dark blue over [0, 1]."""
        params = dict(
            low_color="white",
            mid_color="#6BAED6",
            high_color="#08306B",
            midpoint_value=0.5,
            value_lower_bound=0.0,
            value_upper_bound=1.0,
            absolute=True,
            colorbar_label="|Loading|",
        )
        params.update(overrides)
        return cls(**params)


# ---------------------------------------------------------------------------
# Colour scale
# ---------------------------------------------------------------------------

class DivergingScale:
    """Piecewise-linear three-anchor colour scale."""

    def __init__(
        self,
        low_color: str,
        mid_color: str,
        high_color: str,
        lower: float,
        midpoint: float,
        upper: float,
    ):
        if not lower < upper:
            raise ValueError(f"Lower bound {lower} must be below upper bound {upper}")
        if not lower <= midpoint <= upper:
            raise ValueError(
                f"Midpoint {midpoint} must lie within [{lower}, {upper}]"
            )
        self.low = np.array(to_rgba(low_color))
        self.mid = np.array(to_rgba(mid_color))
        self.high = np.array(to_rgba(high_color))
        self.lower = float(lower)
        self.midpoint = float(midpoint)
        self.upper = float(upper)

    @classmethod
    def from_spec(cls, spec: RenderSpec) -> DivergingScale:
        return cls(
            spec.low_color,
            spec.mid_color,
            spec.high_color,
            spec.value_lower_bound,
            spec.midpoint_value,
            spec.value_upper_bound,
        )

    def __call__(self, value: float) -> RGBA:
        if np.isnan(value):
            raise ValueError("Cannot map NaN to a colour")
        if value <= self.lower:
            rgba = self.low
        elif value >= self.upper:
            rgba = self.high
        elif value == self.midpoint:
            rgba = self.mid
        elif value < self.midpoint:
            t = (value - self.lower) / (self.midpoint - self.lower)
            rgba = self.low + t * (self.mid - self.low)
        else:
            t = (value - self.midpoint) / (self.upper - self.midpoint)
            rgba = self.mid + t * (self.high - self.mid)
        return tuple(float(c) for c in rgba)

    def to_colormap(self, name: str = "corrmap_diverging") -> LinearSegmentedColormap:
        """Matplotlib colormap equivalent over ``Normalize(lower, upper)``."""
        pos = (self.midpoint - self.lower) / (self.upper - self.lower)
        return LinearSegmentedColormap.from_list(
            name,
            [(0.0, tuple(self.low)), (pos, tuple(self.mid)), (1.0, tuple(self.high))],
        )

    def norm(self) -> Normalize:
        return Normalize(vmin=self.lower, vmax=self.upper, clip=True)


# ---------------------------------------------------------------------------
# Render output
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Tile:
    """One drawn cell: position by labels, transformed value and colour."""
    x_label: str
    y_label: str
    value: float
    color: RGBA


@dataclass
class RenderedImage:
    """Handle on a rendered heat map."""
    figure: plt.Figure
    axes: plt.Axes
    tiles: tuple[Tile, ...] = field(default_factory=tuple)
    x_labels: tuple[str, ...] = field(default_factory=tuple)
    y_labels: tuple[str, ...] = field(default_factory=tuple)

    @property
    def n_tiles(self) -> int:
        return len(self.tiles)

    def save(self, path: str | Path, dpi: int = 150) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.figure.savefig(path, dpi=dpi, bbox_inches="tight", facecolor="white")
        logger.info(f"Saved heatmap: {path}")
        return path

    def close(self) -> None:
        plt.close(self.figure)


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------

def _axis_labels(labels: list[str], order: str) -> tuple[str, ...]:
    if order == "lexicographic":
        return tuple(sorted(labels))
    if order == "appearance":
        return tuple(labels)
    raise ValueError(f"Unknown tick order: {order}. Use 'lexicographic' or 'appearance'.")


class HeatmapRenderer:
    """
    Stateless tile renderer for long-form relations.

    Examples
    --------
    >>> relation = MatrixReducer().reduce(frame.corr())
    >>> image = HeatmapRenderer().render(relation, RenderSpec.correlation())
    >>> image.save("figures/correlation.png")
    """

    def render(self, relation: LongFormRelation, spec: RenderSpec) -> RenderedImage:
        """
        Render ``relation`` as a tile grid.

        Parameters
        ----------
        relation : LongFormRelation
            Entries to draw, one tile each at (col_label, row_label).
        spec : RenderSpec
            Colour domain and cosmetic settings.

        Returns
        -------
        RenderedImage
            Figure handle plus the computed tiles and tick labels. The
            caller owns the figure and should ``close()`` it when done.
        """
        scale = DivergingScale.from_spec(spec)
        defined = [score for score in relation if not np.isnan(score.value)]
        if len(defined) < len(relation):
            logger.warning(f"Skipping {len(relation) - len(defined)} NaN entries")
            relation = LongFormRelation(tuple(defined))
        x_labels = _axis_labels(relation.col_labels, spec.tick_order)
        y_labels = _axis_labels(relation.row_labels, spec.tick_order)
        x_pos = {label: i for i, label in enumerate(x_labels)}
        y_pos = {label: i for i, label in enumerate(y_labels)}

        tiles: list[Tile] = []
        for score in relation:
            value = abs(score.value) if spec.absolute else score.value
            tiles.append(Tile(score.col_label, score.row_label, value, scale(value)))

        figsize = spec.figsize or (
            max(6.0, len(x_labels) * 0.6 + 3),
            max(5.0, len(y_labels) * 0.5 + 2),
        )
        fig, ax = plt.subplots(figsize=figsize)

        if tiles:
            patches = [
                Rectangle((x_pos[t.x_label] - 0.5, y_pos[t.y_label] - 0.5), 1.0, 1.0)
                for t in tiles
            ]
            collection = PatchCollection(
                patches,
                facecolors=[t.color for t in tiles],
                edgecolors=spec.tile_border_color,
                linewidths=0.5,
            )
            ax.add_collection(collection)

            if spec.annotate:
                for t in tiles:
                    ax.text(
                        x_pos[t.x_label],
                        y_pos[t.y_label],
                        format(t.value, spec.value_format),
                        ha="center",
                        va="center",
                        fontsize=8,
                    )

        ax.set_xlim(-0.5, max(len(x_labels), 1) - 0.5)
        ax.set_ylim(-0.5, max(len(y_labels), 1) - 0.5)
        ax.set_xticks(range(len(x_labels)))
        ax.set_xticklabels(
            x_labels,
            rotation=spec.x_label_rotation,
            ha="right" if spec.x_label_rotation else "center",
        )
        ax.set_yticks(range(len(y_labels)))
        ax.set_yticklabels(y_labels)
        ax.set_aspect("equal")
        ax.grid(False)
        ax.set_xlabel("")
        ax.set_ylabel("")

        if spec.colorbar_label is not None:
            mappable = plt.cm.ScalarMappable(norm=scale.norm(), cmap=scale.to_colormap())
            mappable.set_array([])
            cbar = fig.colorbar(mappable, ax=ax, shrink=0.8, pad=0.02)
            cbar.set_label(spec.colorbar_label)

        if spec.title:
            ax.set_title(spec.title)

        if not tiles:
            logger.info("Rendering empty relation: no tiles drawn")

        return RenderedImage(
            figure=fig,
            axes=ax,
            tiles=tuple(tiles),
            x_labels=x_labels,
            y_labels=y_labels,
        )


def render_heatmap(
    relation: LongFormRelation,
    spec: Optional[RenderSpec] = None,
) -> RenderedImage:
    """Functional shorthand for :meth:`HeatmapRenderer.render`."""
    return HeatmapRenderer().render(relation, spec or RenderSpec.correlation())
