"""
Data acquisition and preprocessing for the embedding pipeline.

This package contains loaders for NPY array pairs and MNIST-style IDX
distributions, and the reshaping step that turns raw arrays into the
(n_samples, n_features) matrix consumed by the reduction step.
"""
