"""
Configuration
=============

Central configuration for the corrmap pipeline.
Loads from YAML config files with sensible defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml


@dataclass
class DataConfig:
    """Input table configuration."""
    path: str = "data/dataset.csv"
    target: Optional[str] = None
    drop_columns: list[str] = field(default_factory=list)
    dropna: bool = False
    separator: str = ","


@dataclass
class CorrelationConfig:
    """Correlation heat map configuration."""
    method: str = "pearson"  # "pearson", "spearman", "kendall"
    min_periods: int = 1
    min_abs_value: Optional[float] = None
    absolute: bool = False
    include_target: bool = True
    top_n: int = 15


@dataclass
class LoadingsConfig:
    """PCA loadings configuration."""
    n_components: Optional[int] = None
    plot_components: Optional[int] = None
    variance_threshold: float = 0.9
    standardize: bool = True
    min_abs_value: Optional[float] = None


@dataclass
class RenderConfig:
    """Heat map configuration. The colours apply to the signed correlation scale only."""
    low_color: str = "blue"
    mid_color: str = "white"
    high_color: str = "red"
    tick_order: str = "lexicographic"  # "lexicographic" or "appearance"
    annotate: bool = True


@dataclass
class AnalysisConfig:
    """Output configuration."""
    output_dir: str = "output"
    generate_plots: bool = True
    file_format: str = "png"
    dpi: int = 150
    cluster_matrix: bool = False


@dataclass
class PipelineConfig:
    """Master configuration for the full pipeline."""
    data: DataConfig = field(default_factory=DataConfig)
    correlation: CorrelationConfig = field(default_factory=CorrelationConfig)
    loadings: LoadingsConfig = field(default_factory=LoadingsConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)

    # Pipeline control: which phases to run
    phases: list[str] = field(default_factory=lambda: [
        "data",
        "correlation",
        "loadings",
        "report",
    ])

    @classmethod
    def from_yaml(cls, path: str | Path) -> PipelineConfig:
        """Load configuration from a YAML file."""
        path = Path(path)
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        config = cls()

        if "data" in data:
            config.data = DataConfig(**data["data"])
        if "correlation" in data:
            config.correlation = CorrelationConfig(**data["correlation"])
        if "loadings" in data:
            config.loadings = LoadingsConfig(**data["loadings"])
        if "render" in data:
            config.render = RenderConfig(**data["render"])
        if "analysis" in data:
            config.analysis = AnalysisConfig(**data["analysis"])
        if "phases" in data:
            config.phases = data["phases"]

        return config

    def to_yaml(self, path: str | Path) -> None:
        """Save configuration to a YAML file."""
        import dataclasses
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = dataclasses.asdict(self)
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
