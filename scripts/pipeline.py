#!/usr/bin/env python3
"""
PaCMAP Embedding Pipeline

Downloads a labeled digits dataset, flattens it into an (n_samples, n_features)
matrix, embeds it in 2D with PaCMAP and writes an interactive, label-colored
scatter plot.

Two data sources are supported:
    - usps:  USPS digits stored as a pair of NPY files (features + labels)
    - mnist: the MNIST IDX distribution (training and test splits merged)

Usage:
    # USPS digits (default)
    python scripts/pipeline.py --output_dir results/usps

    # MNIST from the default mirror, first 10k training images only
    python scripts/pipeline.py --source mnist --train_count 10000 --test_count 0

    # MNIST from a local directory holding the four IDX files
    python scripts/pipeline.py --source mnist --mnist_base data/mnist --palette D3

Output Files:
    - pacmap_visualization.html: interactive plotly scatter plot
    - pacmap_visualization.png: static preview (with --save_png)
    - pacmap_log_{timestamp}.txt: run log
"""

import argparse
import datetime
import logging
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

import numpy as np

# Allow running as a plain script from the repository root
sys.path.append(str(Path(__file__).parent.parent))

from scripts.analysis.dimension_reduction import EmbeddingResult, FitTransform, pacmap_fit_transform, reduce
from scripts.errors import PipelineError
from scripts.preprocessing.data_sources import (
    USPS_DATA_URL, USPS_LABELS_URL, DataSourceStrategy, PackagedImageDataset, RemoteArrayPair
)
from scripts.preprocessing.image_dataset import DEFAULT_MNIST_BASE, ImageSourceConfig
from scripts.preprocessing.normalize import check_sample_counts, to_feature_matrix
from scripts.visualization.scatter import (
    DEFAULT_HEIGHT, DEFAULT_OUTPUT, DEFAULT_TITLE, DEFAULT_WIDTH,
    PlotStyle, build_scatter, save_scatter_png, write_scatter_html
)

SOURCES = ("usps", "mnist")


@dataclass
class PipelineConfig:
    """Configuration container for a pipeline run."""

    # Data source
    source: str = "usps"
    data_url: str = USPS_DATA_URL
    labels_url: str = USPS_LABELS_URL
    mnist_base: str = DEFAULT_MNIST_BASE
    train_count: int = 60_000
    test_count: int = 10_000

    # Output
    output_dir: Path = Path(".")
    output_name: str = DEFAULT_OUTPUT
    save_png: bool = False
    log_to_file: bool = True

    # Plot presentation
    title: str = DEFAULT_TITLE
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    marker_size: int = 2
    show_color_scale: bool = True
    palette: Optional[str] = None

    # Reproducibility
    seed: Optional[int] = None

    def __post_init__(self):
        """Validate and process configuration after initialization."""
        self.output_dir = Path(self.output_dir)
        self.source = self.source.lower()
        if self.source not in SOURCES:
            raise ValueError(f"Unknown data source '{self.source}', expected one of {SOURCES}")
        if self.train_count < 0 or self.test_count < 0:
            raise ValueError(
                f"Split sizes must be non-negative, got train={self.train_count}, test={self.test_count}"
            )
        # Fail on bad presentation options before any data is fetched
        self.plot_style()

    @property
    def output_path(self) -> Path:
        return self.output_dir / self.output_name

    def plot_style(self) -> PlotStyle:
        return PlotStyle(
            marker_size=self.marker_size,
            show_color_scale=self.show_color_scale,
            palette=self.palette,
        )


def create_data_source(config: PipelineConfig) -> DataSourceStrategy:
    """Build the data source strategy selected by the configuration."""
    if config.source == "mnist":
        return PackagedImageDataset(ImageSourceConfig(
            base_location=config.mnist_base,
            train_count=config.train_count,
            test_count=config.test_count,
        ))
    return RemoteArrayPair(config.data_url, config.labels_url)


class EmbeddingPipeline:
    """Orchestrates loading, reshaping, embedding and plotting."""

    def __init__(self, config: PipelineConfig,
                 data_source: Optional[DataSourceStrategy] = None,
                 fit_transform: FitTransform = pacmap_fit_transform):
        self.config = config
        self.start_time = datetime.datetime.now()
        self.logger = self._setup_logging()
        self.data_source = data_source if data_source is not None else create_data_source(config)
        self.fit_transform = fit_transform

    def _setup_logging(self) -> logging.Logger:
        """Setup logging configuration."""
        logger = logging.getLogger('embedding')
        logger.setLevel(logging.INFO)
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter('%(levelname)s - %(message)s'))
        logger.addHandler(console_handler)

        log_file = None
        if self.config.log_to_file:
            self.config.output_dir.mkdir(parents=True, exist_ok=True)
            timestamp = self.start_time.strftime("%Y%m%d_%H%M%S")
            log_file = self.config.output_dir / f"pacmap_log_{timestamp}.txt"
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
            logger.addHandler(file_handler)

        logger.info("=" * 60)
        logger.info("PACMAP EMBEDDING PIPELINE")
        logger.info("=" * 60)
        if log_file is not None:
            logger.info(f"Log file: {log_file}")
        logger.info(f"Started at: {self.start_time.strftime('%Y-%m-%d %H:%M:%S')}")
        logger.info(f"Data source: {self.config.source}")
        logger.info("=" * 60)

        return logger

    def prepare_data(self) -> Tuple[np.ndarray, np.ndarray]:
        """Load the dataset and return a validated (features, labels) pair."""
        raw, labels = self.data_source.load()
        features = to_feature_matrix(raw)
        del raw
        check_sample_counts(features, labels)
        self.logger.info(f"Feature matrix: {features.shape[0]} samples x {features.shape[1]} features")
        return features, labels

    def embed(self, features: np.ndarray) -> EmbeddingResult:
        """Run PaCMAP and log its wall-clock duration."""
        self.logger.info(f"Running PaCMAP on x with shape {features.shape}...")
        start = time.perf_counter()
        result = reduce(features, fit_transform=self.fit_transform, random_state=self.config.seed)
        duration_ms = (time.perf_counter() - start) * 1000
        self.logger.info(f"PaCMAP completed in {duration_ms:.0f} ms")
        return result

    def visualize(self, result: EmbeddingResult, labels: np.ndarray) -> Path:
        """Build the scatter payload and export it."""
        series = build_scatter(result, labels, self.config.plot_style())

        self.logger.info("Saving visualization...")
        output_path = write_scatter_html(
            series, self.config.output_path,
            title=self.config.title, width=self.config.width, height=self.config.height
        )
        if self.config.save_png:
            save_scatter_png(
                series, output_path.with_suffix('.png'),
                title=self.config.title, width=self.config.width, height=self.config.height
            )
        return output_path

    def run(self) -> Path:
        """Execute the complete pipeline and return the path of the HTML plot."""
        try:
            features, labels = self.prepare_data()
            result = self.embed(features)
            output_path = self.visualize(result, labels)
        except PipelineError as e:
            self.logger.error(f"Pipeline failed: {e}")
            raise
        finally:
            for handler in self.logger.handlers:
                handler.flush()

        self.logger.info(f"Done! Visualization saved to {output_path}")
        self.logger.info(f"Total duration: {datetime.datetime.now() - self.start_time}")
        return output_path


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure command-line argument parser."""
    parser = argparse.ArgumentParser(
        description="Embed a labeled digits dataset with PaCMAP and plot it",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    # Data source
    parser.add_argument("--source", choices=SOURCES, default="usps",
                       help="Dataset to embed")
    parser.add_argument("--data_url", type=str, default=USPS_DATA_URL,
                       help="NPY feature matrix (URL or path), usps source only")
    parser.add_argument("--labels_url", type=str, default=USPS_LABELS_URL,
                       help="NPY label vector (URL or path), usps source only")
    parser.add_argument("--mnist_base", type=str, default=DEFAULT_MNIST_BASE,
                       help="URL prefix or directory holding the MNIST IDX files")
    parser.add_argument("--train_count", type=int, default=60_000,
                       help="Number of MNIST training images to use")
    parser.add_argument("--test_count", type=int, default=10_000,
                       help="Number of MNIST test images to use")

    # Output
    parser.add_argument("--output_dir", type=Path, default=Path("."),
                       help="Directory for the plot and log file")
    parser.add_argument("--output_name", type=str, default=DEFAULT_OUTPUT,
                       help="File name of the interactive HTML plot")
    parser.add_argument("--save_png", action="store_true",
                       help="Also save a static PNG preview")
    parser.add_argument("--no_log_file", action="store_true",
                       help="Log to the console only")

    # Plot presentation
    parser.add_argument("--title", type=str, default=DEFAULT_TITLE,
                       help="Plot title")
    parser.add_argument("--width", type=int, default=DEFAULT_WIDTH,
                       help="Plot width in pixels")
    parser.add_argument("--height", type=int, default=DEFAULT_HEIGHT,
                       help="Plot height in pixels")
    parser.add_argument("--marker_size", type=int, default=2,
                       help="Marker size in pixels")
    parser.add_argument("--palette", type=str, default=None,
                       help="Discrete plotly palette (e.g. D3, Set1); continuous color scale if omitted")
    parser.add_argument("--no_color_scale", action="store_true",
                       help="Hide the color scale / legend")

    parser.add_argument("--seed", type=int, default=None,
                       help="Random seed for PaCMAP")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        config = PipelineConfig(
            source=args.source,
            data_url=args.data_url,
            labels_url=args.labels_url,
            mnist_base=args.mnist_base,
            train_count=args.train_count,
            test_count=args.test_count,
            output_dir=args.output_dir,
            output_name=args.output_name,
            save_png=args.save_png,
            log_to_file=not args.no_log_file,
            title=args.title,
            width=args.width,
            height=args.height,
            marker_size=args.marker_size,
            show_color_scale=not args.no_color_scale,
            palette=args.palette,
            seed=args.seed,
        )
    except ValueError as e:
        parser.error(str(e))

    pipeline = EmbeddingPipeline(config)
    try:
        pipeline.run()
    except PipelineError:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
