"""
Dimension reduction for the embedding pipeline.

This package wraps the external PaCMAP routine behind a single
fit_transform(matrix, config) interface.
"""
