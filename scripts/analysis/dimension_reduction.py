"""
PaCMAP dimension reduction for the embedding pipeline.

The reduction routine itself lives in the ``pacmap`` package. This module only
assembles its configuration, hands the feature matrix over (by reference) and
checks that the returned coordinates have the requested shape.

Usage:
    result = reduce(features)                      # fixed defaults: 2D, 10 neighbors
    result = reduce(features, fit_transform=stub)  # swap in another routine
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

import numpy as np
import pacmap

from scripts.errors import DimensionMismatchError, EmbeddingError, ShapeMismatchError

logger = logging.getLogger('embedding.reduction')

EMBEDDING_DIMENSIONS = 2
OVERRIDE_NEIGHBORS = 10
MID_NEAR_RATIO = 0.5
FAR_PAIR_RATIO = 2.0


@dataclass
class ReductionConfig:
    """
    Configuration for a PaCMAP run.

    Attributes:
        embedding_dimensions: Number of output dimensions
        override_neighbors: Nearest neighbors per point; replaces the
            sample-count based default of the reduction routine
        mid_near_ratio: Mid-near pairs sampled per nearest-neighbor pair
        far_pair_ratio: Far (negative) pairs sampled per nearest-neighbor pair
        random_state: Optional seed for reproducible layouts
    """
    embedding_dimensions: int = EMBEDDING_DIMENSIONS
    override_neighbors: Optional[int] = OVERRIDE_NEIGHBORS
    mid_near_ratio: float = MID_NEAR_RATIO
    far_pair_ratio: float = FAR_PAIR_RATIO
    random_state: Optional[int] = None


@dataclass
class EmbeddingResult:
    """Low-dimensional coordinates plus whatever the routine returned alongside them."""
    coordinates: np.ndarray
    auxiliary: Any = None

    @property
    def n_samples(self) -> int:
        return int(self.coordinates.shape[0])

    @property
    def embedding_dimensions(self) -> int:
        return int(self.coordinates.shape[1]) if self.coordinates.ndim > 1 else 1


FitTransform = Callable[[np.ndarray, ReductionConfig], Tuple[np.ndarray, Any]]


def pacmap_fit_transform(matrix: np.ndarray, config: ReductionConfig) -> Tuple[np.ndarray, Any]:
    """Run PaCMAP on ``matrix`` and return (embedding, fitted_reducer)."""
    reducer = pacmap.PaCMAP(
        n_components=config.embedding_dimensions,
        n_neighbors=config.override_neighbors,
        MN_ratio=config.mid_near_ratio,
        FP_ratio=config.far_pair_ratio,
        random_state=config.random_state,
    )
    embedding = reducer.fit_transform(matrix)
    return embedding, reducer


def reduce(features: np.ndarray,
           dims: int = EMBEDDING_DIMENSIONS,
           knn_override: Optional[int] = OVERRIDE_NEIGHBORS,
           mid_near_ratio: float = MID_NEAR_RATIO,
           far_pair_ratio: float = FAR_PAIR_RATIO,
           fit_transform: FitTransform = pacmap_fit_transform,
           random_state: Optional[int] = None) -> EmbeddingResult:
    """
    Embed a feature matrix into ``dims`` dimensions.

    Args:
        features: Matrix of shape (n_samples, n_features)
        dims: Target embedding dimensionality
        knn_override: Nearest neighbors per point
        mid_near_ratio: Ratio of mid-near pairs to nearest-neighbor pairs
        far_pair_ratio: Ratio of far pairs to nearest-neighbor pairs
        fit_transform: Reduction routine, called as fit_transform(features, config)
        random_state: Optional seed forwarded to the routine

    Returns:
        EmbeddingResult with coordinates of shape (n_samples, dims); the
        auxiliary value is passed through untouched

    Raises:
        EmbeddingError: if the reduction routine raises
        ShapeMismatchError: if the routine returns a different number of rows
        DimensionMismatchError: if the routine returns a different number of columns
    """
    config = ReductionConfig(
        embedding_dimensions=dims,
        override_neighbors=knn_override,
        mid_near_ratio=mid_near_ratio,
        far_pair_ratio=far_pair_ratio,
        random_state=random_state,
    )
    logger.debug(f"Reduction config: {config}")

    try:
        embedding, auxiliary = fit_transform(features, config)
    except Exception as e:
        raise EmbeddingError(f"PaCMAP failed: {e}", stage="reduce") from e

    embedding = np.asarray(embedding)
    if embedding.ndim != 2 or embedding.shape[1] != dims:
        raise DimensionMismatchError(
            f"Expected a ({features.shape[0]}, {dims}) embedding, got shape {embedding.shape}",
            stage="reduce"
        )
    if embedding.shape[0] != features.shape[0]:
        raise ShapeMismatchError(
            f"Embedding has {embedding.shape[0]} rows for {features.shape[0]} samples",
            stage="reduce"
        )

    return EmbeddingResult(coordinates=embedding, auxiliary=auxiliary)
