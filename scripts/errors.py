"""
Error kinds raised by the embedding pipeline.

Every stage fails fast: errors are raised with the resource and stage that
produced them and are never recovered locally.
"""
from __future__ import annotations

from typing import Optional


class PipelineError(Exception):
    """Base class for all pipeline failures."""

    def __init__(self, message: str, resource: Optional[str] = None, stage: Optional[str] = None):
        self.message = message
        self.resource = resource
        self.stage = stage
        super().__init__(self._format())

    def _format(self) -> str:
        context = []
        if self.stage:
            context.append(f"stage={self.stage}")
        if self.resource:
            context.append(f"resource={self.resource}")
        if context:
            return f"{self.message} ({', '.join(context)})"
        return self.message


class TransferError(PipelineError):
    """Retrieving a remote or local resource failed."""


class ParseError(PipelineError):
    """A binary payload was malformed or used an unsupported element type."""


class ShapeMismatchError(PipelineError):
    """Sample or element counts of paired arrays disagree."""


class DimensionMismatchError(PipelineError):
    """An embedding has an unexpected number of dimensions."""


class EmbeddingError(PipelineError):
    """The external reduction routine failed."""
