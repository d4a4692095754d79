"""Pytest configuration and shared fixtures."""

import gzip
import io
import struct
import sys
import tempfile
from pathlib import Path

import numpy as np
import pytest

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


def make_npy_bytes(array: np.ndarray) -> bytes:
    """Serialize an array the way np.save writes it to disk."""
    buffer = io.BytesIO()
    np.save(buffer, array, allow_pickle=False)
    return buffer.getvalue()


def make_idx_bytes(array: np.ndarray) -> bytes:
    """Serialize a uint8 array as an IDX payload."""
    array = np.asarray(array, dtype=np.uint8)
    header = bytes([0, 0, 0x08, array.ndim]) + struct.pack(f">{array.ndim}I", *array.shape)
    return header + array.tobytes()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def npy_bytes():
    """Factory turning an array into NPY bytes."""
    return make_npy_bytes


@pytest.fixture
def idx_bytes():
    """Factory turning a uint8 array into IDX bytes."""
    return make_idx_bytes


@pytest.fixture
def mnist_splits():
    """Small deterministic training and test splits (images 4x3, labels 0-9)."""
    rng = np.random.default_rng(42)
    train_images = rng.integers(0, 256, size=(6, 4, 3), dtype=np.uint8)
    train_labels = np.arange(6, dtype=np.uint8)
    test_images = rng.integers(0, 256, size=(4, 4, 3), dtype=np.uint8)
    test_labels = np.array([9, 8, 7, 6], dtype=np.uint8)
    return train_images, train_labels, test_images, test_labels


@pytest.fixture
def mnist_dir(temp_dir, mnist_splits):
    """Directory holding an MNIST-style distribution; the test split is gzipped."""
    train_images, train_labels, test_images, test_labels = mnist_splits
    (temp_dir / "train-images-idx3-ubyte").write_bytes(make_idx_bytes(train_images))
    (temp_dir / "train-labels-idx1-ubyte").write_bytes(make_idx_bytes(train_labels))
    (temp_dir / "t10k-images-idx3-ubyte.gz").write_bytes(gzip.compress(make_idx_bytes(test_images)))
    (temp_dir / "t10k-labels-idx1-ubyte.gz").write_bytes(gzip.compress(make_idx_bytes(test_labels)))
    return temp_dir


@pytest.fixture
def usps_like_files(temp_dir):
    """NPY feature matrix (150 x 4, float32) and int32 label vector on disk."""
    rng = np.random.default_rng(0)
    features = rng.random((150, 4), dtype=np.float32)
    labels = rng.integers(0, 10, size=150).astype(np.int32)
    data_path = temp_dir / "features.npy"
    labels_path = temp_dir / "labels.npy"
    np.save(data_path, features)
    np.save(labels_path, labels)
    return data_path, labels_path, features, labels


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
