"""Centralized threshold and magic number configuration.

Pixel classification limits and geometry constants used by the trimming,
deduplication and compositing steps. Keeping them in one place makes
tuning easier.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ImageProcessingThresholds:
    """Thresholds for pixel classification and trimming."""

    ink_threshold: int = 200  # Any channel below this counts as ink (edge peel)
    white_threshold: int = 250  # All channels at/above this count as white
    peel_safety_ratio: float = 0.3  # Max fraction of a dimension peeled per edge
    jpeg_quality: int = 95  # Question image encoding quality
    page_jpeg_quality: int = 90  # Full-page render encoding quality


@dataclass(frozen=True)
class LayoutThresholds:
    """Thresholds for box geometry and canvas layout."""

    normalized_scale: int = 1000  # Detection boxes live in a 0..1000 space
    containment_tolerance: int = 10  # Units of slack when testing box containment
    fragment_gap: int = 10  # Vertical pixels between stacked fragments
    final_padding: int = 10  # Uniform padding after the final whitespace trim


IMAGE_THRESHOLDS = ImageProcessingThresholds()
LAYOUT_THRESHOLDS = LayoutThresholds()
