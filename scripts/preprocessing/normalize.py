"""Reshape raw arrays into the (n_samples, n_features) matrix used for reduction."""
from __future__ import annotations

import logging

import numpy as np

from scripts.errors import ShapeMismatchError

logger = logging.getLogger('embedding.data')

PIXEL_MAX = 255.0


def normalize_pixels(values: np.ndarray) -> np.ndarray:
    """Scale 0-255 pixel intensities to float32 values in [0, 1]."""
    return values.astype(np.float32) / np.float32(PIXEL_MAX)


def to_feature_matrix(raw: np.ndarray) -> np.ndarray:
    """
    Flatten every dimension after the first into a single feature axis.

    The reshape is row-major and never reorders elements, so the flattened
    element sequence of the result equals that of the input. Integer inputs
    are cast to float32.

    Args:
        raw: Array of rank >= 2, samples along the first axis

    Returns:
        Floating-point matrix of shape (n_samples, n_features)

    Raises:
        ShapeMismatchError: if the array has rank < 2, is empty along either
            axis of the result, or the reshape would not preserve the element count
    """
    if raw.ndim < 2:
        raise ShapeMismatchError(f"Feature arrays need rank >= 2, got shape {raw.shape}", stage="normalize")

    n_samples = int(raw.shape[0])
    n_features = int(np.prod(raw.shape[1:], dtype=np.int64))
    if n_samples == 0 or n_features == 0:
        raise ShapeMismatchError(f"Feature arrays need at least one sample and one feature, got shape {raw.shape}",
                                 stage="normalize")
    if n_samples * n_features != raw.size:
        raise ShapeMismatchError(
            f"Cannot reshape {raw.shape} ({raw.size} elements) to ({n_samples}, {n_features})",
            stage="normalize"
        )

    matrix = np.reshape(raw, (n_samples, n_features))
    if not np.issubdtype(matrix.dtype, np.floating):
        matrix = matrix.astype(np.float32)

    logger.debug(f"Reshaped {raw.shape} -> {matrix.shape}")
    return matrix


def check_sample_counts(features: np.ndarray, labels: np.ndarray) -> None:
    """Raise ShapeMismatchError unless labels is 1D with one entry per feature row."""
    if labels.ndim != 1:
        raise ShapeMismatchError(f"Labels must be 1D, got shape {labels.shape}", stage="normalize")
    if labels.shape[0] != features.shape[0]:
        raise ShapeMismatchError(
            f"{features.shape[0]} samples but {labels.shape[0]} labels",
            stage="normalize"
        )
