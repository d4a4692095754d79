"""
Data source strategies for the embedding pipeline.

Each strategy yields a raw feature array (samples along the first axis) and a
label vector. The pipeline takes care of reshaping and validation.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional, Tuple

import numpy as np

from scripts.preprocessing.array_source import Locator, fetch_array
from scripts.preprocessing.image_dataset import ImageSourceConfig, load_image_dataset

logger = logging.getLogger('embedding.data')

USPS_DATA_URL = "https://raw.githubusercontent.com/YingfanWang/PaCMAP/master/data/USPS.npy"
USPS_LABELS_URL = "https://raw.githubusercontent.com/YingfanWang/PaCMAP/master/data/USPS_labels.npy"


class DataSourceStrategy(ABC):
    """Interface for anything that can produce a (features, labels) pair."""

    @abstractmethod
    def load(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Load the dataset.

        Returns:
            Tuple of (raw_features, labels) with features of rank >= 2
        """

    @abstractmethod
    def describe(self) -> str:
        """Short human-readable description used in log output."""


class RemoteArrayPair(DataSourceStrategy):
    """A feature matrix and a label vector stored as two NPY resources."""

    def __init__(self, data_locator: Locator = USPS_DATA_URL,
                 labels_locator: Locator = USPS_LABELS_URL,
                 feature_rank: int = 2):
        self.data_locator = data_locator
        self.labels_locator = labels_locator
        self.feature_rank = feature_rank

    def load(self) -> Tuple[np.ndarray, np.ndarray]:
        logger.info("Downloading and loading data...")
        features = fetch_array(self.data_locator, expected_rank=self.feature_rank)
        logger.info("Downloading and loading labels...")
        labels = fetch_array(self.labels_locator, expected_rank=1)
        return features, labels

    def describe(self) -> str:
        return f"NPY pair ({self.data_locator}, {self.labels_locator})"


class PackagedImageDataset(DataSourceStrategy):
    """An MNIST-style IDX distribution with training and test splits."""

    def __init__(self, config: Optional[ImageSourceConfig] = None):
        self.config = config if config is not None else ImageSourceConfig()

    def load(self) -> Tuple[np.ndarray, np.ndarray]:
        logger.info(
            f"Loading image dataset ({self.config.train_count} train + {self.config.test_count} test)..."
        )
        return load_image_dataset(self.config)

    def describe(self) -> str:
        return f"IDX image distribution at {self.config.base_location}"
