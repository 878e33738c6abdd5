"""
Main Pipeline
=============

Orchestrates an exploratory correlation / PCA report for one table.

Pipeline Phases:
    1. DATA        - Load the CSV, drop configured columns, select numeric columns
    2. CORRELATION - Correlation matrix and its de-duplicated pair list
    3. LOADINGS    - PCA on the numeric features and its loading table
    4. REPORT      - Heat maps and companion charts

Each phase can be run independently or as part of the full pipeline, as
long as the phases it depends on ran first. Results are saved to the
output directory after each phase.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Optional

import pandas as pd

from .config import PipelineConfig
from .reduction.reducer import LongFormRelation, MatrixReducer
from .scores.pairwise import PCAResult, correlation_matrix, numeric_columns, pca_loadings

logger = logging.getLogger(__name__)


class Pipeline:
    """
    Orchestrates the correlation / PCA report.

    Usage:
        config = PipelineConfig.from_yaml("configs/default.yaml")
        pipeline = Pipeline(config)
        results = pipeline.run()
    """

    def __init__(self, config: PipelineConfig):
        self.config = config
        self.output_dir = Path(config.analysis.output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.reducer = MatrixReducer()

        # Pipeline state: populated as phases complete
        self.data: Optional[pd.DataFrame] = None
        self.numeric: list[str] = []
        self.correlation: Optional[pd.DataFrame] = None
        self.correlation_pairs: Optional[LongFormRelation] = None
        self.pca_result: Optional[PCAResult] = None
        self.loading_pairs: Optional[LongFormRelation] = None

    @property
    def target(self) -> Optional[str]:
        return self.config.data.target

    @property
    def features(self) -> list[str]:
        """Numeric columns other than the target."""
        return [c for c in self.numeric if c != self.target]

    def run(self) -> dict:
        """
        Run all configured pipeline phases.

        Returns:
            Dict of phase_name -> result summary.
        """
        results = {}
        phases = self.config.phases
        total_start = time.time()

        logger.info("Starting corrmap pipeline")
        logger.info(f"Phases to run: {phases}")
        logger.info(f"Output directory: {self.output_dir}")

        for phase in phases:
            phase_start = time.time()
            logger.info(f"\n{'='*60}")
            logger.info(f"PHASE: {phase.upper()}")
            logger.info(f"{'='*60}")

            try:
                if phase == "data":
                    results[phase] = self._run_data()
                elif phase == "correlation":
                    results[phase] = self._run_correlation()
                elif phase == "loadings":
                    results[phase] = self._run_loadings()
                elif phase == "report":
                    results[phase] = self._run_report()
                else:
                    logger.warning(f"Unknown phase: {phase}, skipping")
                    continue

                elapsed = time.time() - phase_start
                logger.info(f"Phase {phase} completed in {elapsed:.1f}s")

            except Exception as e:
                logger.error(f"Phase {phase} failed: {e}", exc_info=True)
                results[phase] = {"error": str(e)}

        total_elapsed = time.time() - total_start
        logger.info(f"\n{'='*60}")
        logger.info(f"Pipeline completed in {total_elapsed:.1f}s")
        logger.info(f"{'='*60}")

        self._save_summary(results, total_elapsed)

        return results

    def load_frame(self, frame: pd.DataFrame) -> dict:
        """Use an in-memory table instead of reading ``config.data.path``."""
        return self._prepare(frame, source="<dataframe>")

    def _run_data(self) -> dict:
        """Phase 1: Load the input table."""
        if self.data is not None:
            logger.info("Data already loaded, skipping CSV read")
            return self._data_summary(source="<dataframe>")

        cfg = self.config.data
        path = Path(cfg.path)
        if not path.exists():
            raise FileNotFoundError(f"Data file not found: {path}")

        frame = pd.read_csv(path, sep=cfg.separator)
        return self._prepare(frame, source=str(path))

    def _prepare(self, frame: pd.DataFrame, source: str) -> dict:
        cfg = self.config.data

        absent = [c for c in cfg.drop_columns if c not in frame.columns]
        if absent:
            logger.warning(f"Columns to drop not present: {absent}")
        frame = frame.drop(columns=[c for c in cfg.drop_columns if c in frame.columns])

        if cfg.dropna:
            before = len(frame)
            frame = frame.dropna()
            logger.info(f"Dropped {before - len(frame)} rows with missing values")

        if cfg.target is not None and cfg.target not in frame.columns:
            raise ValueError(f"Target column '{cfg.target}' not in data")

        self.data = frame
        self.numeric = numeric_columns(frame)

        summary = self._data_summary(source)
        logger.info(
            f"Data loaded: {summary['rows']} rows, {summary['columns']} columns, "
            f"{len(self.numeric)} numeric"
        )
        return summary

    def _data_summary(self, source: str) -> dict:
        frame = self.data
        return {
            "source": source,
            "rows": int(len(frame)),
            "columns": int(frame.shape[1]),
            "numeric_columns": list(self.numeric),
            "missing_values": {
                str(c): int(n) for c, n in frame.isna().sum().items() if n
            },
            "target": self.target,
        }

    def _run_correlation(self) -> dict:
        """Phase 2: Correlation matrix and pair list."""
        if self.data is None:
            raise RuntimeError("Data must be loaded before correlation phase")

        cfg = self.config.correlation
        columns = self.numeric if cfg.include_target else self.features
        self.correlation = correlation_matrix(
            self.data,
            method=cfg.method,
            min_periods=cfg.min_periods,
            columns=columns,
        )
        self.correlation_pairs = self.reducer.reduce(
            self.correlation,
            value_transform=abs if cfg.absolute else None,
            min_abs_value=cfg.min_abs_value,
        )

        ranked = self.correlation_pairs.sorted_by_magnitude()
        ranked.to_frame().to_csv(self.output_dir / "correlation_pairs.csv", index=False)

        results_summary = {
            "method": cfg.method,
            "n_variables": int(self.correlation.shape[0]),
            "n_pairs": len(self.correlation_pairs),
            "min_abs_value": cfg.min_abs_value,
            "top_pairs": [
                {"pair": [e.row_label, e.col_label], "value": e.value}
                for e in ranked.top(cfg.top_n)
            ],
        }

        if self.target is not None and self.target in self.correlation.index:
            target_pairs = self.reducer.reduce(self.correlation).involving(self.target)
            target_pairs = target_pairs.sorted_by_magnitude()
            target_pairs.to_frame().to_csv(
                self.output_dir / "target_correlations.csv", index=False
            )
            results_summary["target_correlations"] = {
                (e.col_label if e.row_label == self.target else e.row_label): e.value
                for e in target_pairs
            }

        logger.info(
            f"Correlation: {results_summary['n_pairs']} pairs retained "
            f"from {results_summary['n_variables']} variables"
        )
        return results_summary

    def _run_loadings(self) -> dict:
        """Phase 3: PCA loadings on the feature columns."""
        if self.data is None:
            raise RuntimeError("Data must be loaded before loadings phase")

        cfg = self.config.loadings
        self.pca_result = pca_loadings(
            self.data,
            n_components=cfg.n_components,
            standardize=cfg.standardize,
            columns=self.features,
        )
        self.loading_pairs = self.reducer.reduce_loadings(
            self.pca_result.loadings,
            value_transform=abs,
            min_abs_value=cfg.min_abs_value,
        )

        self.loading_pairs.to_frame().to_csv(self.output_dir / "pca_loadings.csv", index=False)
        variance = self.pca_result.variance_summary()
        with open(self.output_dir / "explained_variance.json", "w") as f:
            json.dump(variance, f, indent=2)

        k = self.pca_result.n_components_for(cfg.variance_threshold)
        results_summary = {
            "n_components": len(self.pca_result.components),
            "n_samples": self.pca_result.n_samples,
            "n_loadings": len(self.loading_pairs),
            "components_for_threshold": k,
            "variance_threshold": cfg.variance_threshold,
        }
        logger.info(
            f"PCA: {k} components explain {cfg.variance_threshold:.0%} of variance"
        )
        return results_summary

    def _run_report(self) -> dict:
        """Phase 4: Figures."""
        if not self.config.analysis.generate_plots:
            return {"plots_generated": False}
        if self.correlation is None and self.pca_result is None:
            raise RuntimeError("Correlation or loadings phase must run before report phase")

        from .analysis.visualization import PlotConfig, Visualizer

        acfg = self.config.analysis
        rcfg = self.config.render
        viz = Visualizer(
            output_dir=self.output_dir,
            config=PlotConfig(dpi=acfg.dpi, file_format=acfg.file_format),
            render_defaults={
                "tick_order": rcfg.tick_order,
                "annotate": rcfg.annotate,
            },
            diverging_colors={
                "low_color": rcfg.low_color,
                "mid_color": rcfg.mid_color,
                "high_color": rcfg.high_color,
            },
        )

        paths: list[Path] = []
        if self.correlation is not None:
            ccfg = self.config.correlation
            path, _ = viz.plot_correlation_heatmap(
                self.correlation,
                is_matrix=True,
                min_abs_value=ccfg.min_abs_value,
                absolute=ccfg.absolute,
            )
            paths.append(path)
            paths.append(viz.plot_correlation_matrix(
                self.correlation,
                cluster=acfg.cluster_matrix,
            ))
            if self.correlation_pairs is not None:
                paths.append(viz.plot_top_pairs(
                    self.correlation_pairs,
                    top_n=ccfg.top_n,
                    highlight_label=self.target,
                ))

        if self.pca_result is not None:
            lcfg = self.config.loadings
            path, _ = viz.plot_loadings_heatmap(
                self.pca_result,
                n_components=lcfg.plot_components,
                min_abs_value=lcfg.min_abs_value,
            )
            paths.append(path)
            paths.append(viz.plot_explained_variance(
                self.pca_result,
                threshold=lcfg.variance_threshold,
            ))

        return {
            "plots_generated": True,
            "files": [p.name for p in paths],
        }

    def _save_summary(self, results: dict, total_elapsed: float) -> None:
        """Save pipeline run summary."""
        summary = {
            "total_elapsed_seconds": total_elapsed,
            "phases_run": list(results.keys()),
            "config": {
                "data_path": self.config.data.path,
                "target": self.config.data.target,
                "correlation_method": self.config.correlation.method,
                "min_abs_value": self.config.correlation.min_abs_value,
            },
            "results": {},
        }

        # Serialize results (handle non-serializable types)
        for phase, result in results.items():
            try:
                json.dumps(result)
                summary["results"][phase] = result
            except (TypeError, ValueError):
                summary["results"][phase] = str(result)

        with open(self.output_dir / "pipeline_summary.json", "w") as f:
            json.dump(summary, f, indent=2, default=str)

        logger.info(f"Summary saved to {self.output_dir / 'pipeline_summary.json'}")


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for running the pipeline from command line."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Correlation and PCA loadings heat map report",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run with default config
    python -m corrmap.pipeline

    # Run with custom config
    python -m corrmap.pipeline --config configs/admission.yaml

    # Strong correlations only, for a given CSV
    python -m corrmap.pipeline --data data/games.csv --target blueWins --threshold 0.5

    # Specific phases only
    python -m corrmap.pipeline --phases data correlation report
        """,
    )
    parser.add_argument(
        "--config", "-c",
        default="configs/default.yaml",
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--phases", "-p",
        nargs="+",
        help="Specific phases to run (overrides config)",
    )
    parser.add_argument(
        "--data", "-d",
        help="Input CSV (overrides config)",
    )
    parser.add_argument(
        "--target", "-t",
        help="Target column (overrides config)",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        help="Keep only correlations with |r| above this value",
    )
    parser.add_argument(
        "--output", "-o",
        help="Output directory (overrides config)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args(argv)

    # Configure logging
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Load config
    config_path = Path(args.config)
    if config_path.exists():
        config = PipelineConfig.from_yaml(config_path)
    else:
        logger.info(f"Config file {config_path} not found, using defaults")
        config = PipelineConfig()

    # Apply overrides
    if args.phases:
        config.phases = args.phases
    if args.data:
        config.data.path = args.data
    if args.target:
        config.data.target = args.target
    if args.threshold is not None:
        config.correlation.min_abs_value = args.threshold
    if args.output:
        config.analysis.output_dir = args.output

    pipeline = Pipeline(config)
    results = pipeline.run()

    # Print summary
    print("\n" + "=" * 60)
    print("PIPELINE COMPLETE")
    print("=" * 60)
    failed = False
    for phase, result in results.items():
        if isinstance(result, dict) and "error" in result:
            print(f"  {phase}: FAILED - {result['error']}")
            failed = True
        else:
            print(f"  {phase}: OK")
    print(f"\nResults saved to: {config.analysis.output_dir}/")

    return 1 if failed else 0


if __name__ == "__main__":
    import sys
    sys.exit(main())
