"""
MNIST-style image/label distribution loader.

Reads the four IDX files of a training/test distribution (from a URL prefix or
a local directory), truncates each split to the configured size, concatenates
training samples before test samples and scales pixels to [0, 1].
"""
from __future__ import annotations

import gzip
import logging
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple, Union

import numpy as np

from scripts.errors import ParseError, ShapeMismatchError
from scripts.preprocessing.array_source import is_remote, read_bytes
from scripts.preprocessing.normalize import normalize_pixels

logger = logging.getLogger('embedding.data')

DEFAULT_MNIST_BASE = "https://ossci-datasets.s3.amazonaws.com/mnist/"

TRAIN_IMAGES = "train-images-idx3-ubyte"
TRAIN_LABELS = "train-labels-idx1-ubyte"
TEST_IMAGES = "t10k-images-idx3-ubyte"
TEST_LABELS = "t10k-labels-idx1-ubyte"

IDX_UBYTE = 0x08
GZIP_MAGIC = b"\x1f\x8b"


@dataclass
class ImageSourceConfig:
    """Location and split sizes of an image/label distribution."""
    base_location: Union[str, Path] = DEFAULT_MNIST_BASE
    train_count: int = 60_000
    test_count: int = 10_000

    def __post_init__(self):
        if self.train_count < 0 or self.test_count < 0:
            raise ValueError(
                f"Split sizes must be non-negative, got train={self.train_count}, test={self.test_count}"
            )
        if not is_remote(self.base_location):
            self.base_location = Path(self.base_location)


def _locate(base_location: Union[str, Path], name: str) -> Union[str, Path]:
    """Resolve a distribution file name against the base location."""
    if is_remote(base_location):
        return str(base_location).rstrip('/') + '/' + name + '.gz'

    plain = Path(base_location) / name
    if plain.exists():
        return plain
    return plain.with_name(name + '.gz')


def _maybe_decompress(payload: bytes, resource: str) -> bytes:
    if not payload.startswith(GZIP_MAGIC):
        return payload
    try:
        return gzip.decompress(payload)
    except (OSError, EOFError, zlib.error) as e:
        raise ParseError(f"Corrupt gzip stream: {e}", resource=resource, stage="parse") from e


def parse_idx(payload: bytes, expected_rank: int, resource: str = "<bytes>") -> np.ndarray:
    """
    Decode an IDX payload holding unsigned bytes.

    The header is two zero bytes, a type code, the number of dimensions and
    one big-endian uint32 per dimension. The data follows in row-major order.

    Raises:
        ParseError: on a malformed header, a type code other than unsigned
            byte, an unexpected rank or a payload of the wrong length
    """
    if len(payload) < 4 or payload[0] != 0 or payload[1] != 0:
        raise ParseError("Malformed IDX magic number", resource=resource, stage="parse")

    type_code, ndim = payload[2], payload[3]
    if type_code != IDX_UBYTE:
        raise ParseError(f"Unsupported IDX type code 0x{type_code:02x}", resource=resource, stage="parse")
    if ndim != expected_rank:
        raise ParseError(f"Expected {expected_rank} IDX dimensions, header declares {ndim}",
                         resource=resource, stage="parse")

    header_end = 4 + 4 * ndim
    if len(payload) < header_end:
        raise ParseError("Truncated IDX header", resource=resource, stage="parse")

    shape = tuple(int(d) for d in np.frombuffer(payload, dtype='>u4', count=ndim, offset=4))
    n_elements = int(np.prod(shape, dtype=np.int64))
    if len(payload) - header_end != n_elements:
        raise ParseError(
            f"IDX shape {shape} needs {n_elements} bytes, payload holds {len(payload) - header_end}",
            resource=resource, stage="parse"
        )

    return np.frombuffer(payload, dtype=np.uint8, offset=header_end).reshape(shape).copy()


def _load_split(config: ImageSourceConfig, images_name: str, labels_name: str,
                count: int) -> Tuple[np.ndarray, np.ndarray]:
    """Load one split and keep its first ``count`` samples."""
    arrays = []
    for name, rank in ((images_name, 3), (labels_name, 1)):
        locator = _locate(config.base_location, name)
        resource = str(locator)
        logger.info(f"Loading {name} from {resource}")
        payload = _maybe_decompress(read_bytes(locator), resource)
        array = parse_idx(payload, expected_rank=rank, resource=resource)
        if array.shape[0] < count:
            raise ShapeMismatchError(
                f"Split holds {array.shape[0]} samples, {count} requested",
                resource=resource, stage="load"
            )
        arrays.append(array[:count])
    return arrays[0], arrays[1]


def concatenate_splits(train: np.ndarray, test: np.ndarray) -> np.ndarray:
    """Stack the training split followed by the test split along the sample axis."""
    return np.concatenate([train, test], axis=0)


def load_image_dataset(source_config: ImageSourceConfig) -> Tuple[np.ndarray, np.ndarray]:
    """
    Load and merge the training and test splits of an image distribution.

    Args:
        source_config: Base location and per-split sample counts

    Returns:
        Tuple of (images, labels): float32 images of shape (n, height, width)
        scaled to [0, 1], and int64 labels of shape (n,), training samples first

    Raises:
        TransferError: if a distribution file cannot be retrieved
        ParseError: if a distribution file cannot be decoded
        ShapeMismatchError: if image and label counts disagree
    """
    train_images, train_labels = _load_split(source_config, TRAIN_IMAGES, TRAIN_LABELS,
                                             source_config.train_count)
    test_images, test_labels = _load_split(source_config, TEST_IMAGES, TEST_LABELS,
                                           source_config.test_count)

    if train_images.shape[1:] != test_images.shape[1:]:
        raise ShapeMismatchError(
            f"Training images are {train_images.shape[1:]}, test images are {test_images.shape[1:]}",
            resource=str(source_config.base_location), stage="load"
        )

    images = concatenate_splits(train_images, test_images)
    labels = concatenate_splits(train_labels, test_labels)
    # The per-split arrays are consumed by the merge
    del train_images, test_images, train_labels, test_labels

    if images.shape[0] != labels.shape[0]:
        raise ShapeMismatchError(
            f"{images.shape[0]} images but {labels.shape[0]} labels",
            resource=str(source_config.base_location), stage="load"
        )

    logger.info(f"Loaded {images.shape[0]} images of size {images.shape[1]}x{images.shape[2]}")
    return normalize_pixels(images), labels.astype(np.int64)
