"""Common utilities shared across the toolkit."""

from __future__ import annotations

from .thresholds import (
    IMAGE_THRESHOLDS,
    LAYOUT_THRESHOLDS,
    ImageProcessingThresholds,
    LayoutThresholds,
)

__all__ = [
    "IMAGE_THRESHOLDS",
    "LAYOUT_THRESHOLDS",
    "ImageProcessingThresholds",
    "LayoutThresholds",
]
