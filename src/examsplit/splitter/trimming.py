"""
Module: splitter.trimming

Purpose:
    Pixel-level trimming of question crops. Two strategies with different
    jobs:

    * Edge peel strips thin printed artifacts (scan bleed, rule lines,
      black borders) from the edges of a fresh crop. It removes ink-bearing
      lines from each edge until a clean line is found, never peeling more
      than a safety fraction of the dimension.
    * Whitespace trim finds the tight content box of an image by dropping
      fully white rows and columns. It is used for final cleanup and before
      stacking two images, never to remove printed content.

Key Functions:
    - edge_peel_bounds(): Artifact-stripping trim rectangle
    - whitespace_bounds(): Tight content rectangle
    - trim_and_pad(): Whitespace trim followed by uniform padding

Dependencies:
    - numpy: Vectorized ink/white masks
    - PIL.Image: Image handling

Used By:
    - splitter.slicing.compositor: Edge peel per fragment
    - splitter.slicing.merger: Whitespace trim before stacking
    - splitter.slicing.aligner: Trim-and-pad normalization
"""

from __future__ import annotations

import logging

import numpy as np
from PIL import Image

from examsplit.common.thresholds import IMAGE_THRESHOLDS
from examsplit.core.models.bounds import TrimRect

from .imaging import new_canvas

logger = logging.getLogger(__name__)


def ink_mask(image: Image.Image, threshold: int = IMAGE_THRESHOLDS.ink_threshold) -> np.ndarray:
    """
    Boolean mask of ink pixels.

    A pixel is ink when it is not fully transparent and any colour channel
    is below threshold.
    """
    arr = np.asarray(image.convert("RGBA"))
    return (arr[:, :, 3] > 0) & (arr[:, :, :3].min(axis=2) < threshold)


def content_mask(image: Image.Image, threshold: int = IMAGE_THRESHOLDS.white_threshold) -> np.ndarray:
    """Boolean mask of pixels that are not white (any channel below threshold)."""
    arr = np.asarray(image.convert("RGB"))
    return arr.min(axis=2) < threshold


def edge_peel_bounds(
    image: Image.Image,
    *,
    threshold: int = IMAGE_THRESHOLDS.ink_threshold,
    safety_ratio: float = IMAGE_THRESHOLDS.peel_safety_ratio,
) -> TrimRect:
    """
    Compute the artifact-free rectangle of a crop by peeling its edges.

    Each edge is peeled one line at a time while the line carries ink
    within the current rectangle, and never past ``safety_ratio`` of the
    dimension. Runs that end on a clean line are committed first, edge by
    edge, until nothing moves. Edges that still sit on ink after that (a
    thick border, or bleed on two adjacent edges where each keeps the
    other inky) are then peeled in turn, one line each, until they reach a
    clean line or the limit.

    When every edge ends on a clean line the result is stable: trimming the
    trimmed crop again returns the whole crop. An edge stopped by the limit
    may lose more on a second pass.

    Args:
        image: Crop to analyse.
        threshold: Channel value below which a pixel counts as ink.
        safety_ratio: Largest fraction of width/height one edge may lose.

    Returns:
        TrimRect relative to image; TrimRect.empty() for zero-size input.

    Example:
        >>> crop = Image.new("RGB", (100, 50), "white")
        >>> crop.paste((0, 0, 0), (0, 0, 100, 2))  # scan line on top
        >>> edge_peel_bounds(crop)
        TrimRect(x=0, y=2, w=100, h=48)
    """
    width, height = image.size
    if width <= 0 or height <= 0:
        return TrimRect.empty()
    return _peel(ink_mask(image, threshold), safety_ratio)


def _peel(ink: np.ndarray, safety_ratio: float) -> TrimRect:
    """Edge peel over an ink mask: clean-ending runs first, then capped peeling."""
    height, width = ink.shape
    cap_y = int(height * safety_ratio)
    cap_x = int(width * safety_ratio)
    top, bottom, left, right = 0, height, 0, width

    def row_has_ink(y: int) -> bool:
        return bool(ink[y, left:right].any())

    def col_has_ink(x: int) -> bool:
        return bool(ink[top:bottom, x].any())

    # Pass 1: only commit runs that end on a clean line inside the cap.
    moved = True
    while moved:
        moved = False

        t = top
        while t < cap_y and t < bottom and row_has_ink(t):
            t += 1
        if t != top and t < bottom and not row_has_ink(t):
            top, moved = t, True

        b = bottom
        while height - b < cap_y and b > top and row_has_ink(b - 1):
            b -= 1
        if b != bottom and b > top and not row_has_ink(b - 1):
            bottom, moved = b, True

        lft = left
        while lft < cap_x and lft < right and col_has_ink(lft):
            lft += 1
        if lft != left and lft < right and not col_has_ink(lft):
            left, moved = lft, True

        r = right
        while width - r < cap_x and r > left and col_has_ink(r - 1):
            r -= 1
        if r != right and r > left and not col_has_ink(r - 1):
            right, moved = r, True

    # Pass 2: edges still on ink peel one line per turn until clean or capped.
    active = {"top", "bottom", "left", "right"}
    while active:
        if "top" in active:
            if top < cap_y and top < bottom and row_has_ink(top):
                top += 1
            else:
                active.discard("top")
        if "bottom" in active:
            if height - bottom < cap_y and bottom > top and row_has_ink(bottom - 1):
                bottom -= 1
            else:
                active.discard("bottom")
        if "left" in active:
            if left < cap_x and left < right and col_has_ink(left):
                left += 1
            else:
                active.discard("left")
        if "right" in active:
            if width - right < cap_x and right > left and col_has_ink(right - 1):
                right -= 1
            else:
                active.discard("right")

    if (top, bottom, left, right) != (0, height, 0, width):
        logger.debug(f"Edge peel: top={top} bottom={height - bottom} left={left} right={width - right}")
    return TrimRect(x=left, y=top, w=max(0, right - left), h=max(0, bottom - top))


def whitespace_bounds(
    image: Image.Image,
    *,
    threshold: int = IMAGE_THRESHOLDS.white_threshold,
) -> TrimRect:
    """
    Tight bounding rectangle of all non-white content.

    A row or column is trimmed only when every pixel in it is white; there
    is no safety cap.

    Args:
        image: Image to analyse.
        threshold: Channel value at/above which a pixel counts as white.

    Returns:
        TrimRect of the content; TrimRect.empty() if the image is blank.
    """
    if image.width == 0 or image.height == 0:
        return TrimRect.empty()

    mask = content_mask(image, threshold)
    rows = np.flatnonzero(mask.any(axis=1))
    if rows.size == 0:
        return TrimRect.empty()
    cols = np.flatnonzero(mask.any(axis=0))

    top, bottom = int(rows[0]), int(rows[-1]) + 1
    left, right = int(cols[0]), int(cols[-1]) + 1
    return TrimRect(x=left, y=top, w=right - left, h=bottom - top)


def trim_and_pad(image: Image.Image, padding: int) -> Image.Image:
    """
    Trim surrounding whitespace, then add a uniform white border.

    Blank images are returned unchanged.

    Args:
        image: Image to normalize.
        padding: Pixels of white to add on every side.

    Returns:
        New image of size (content_w + 2*padding, content_h + 2*padding).
    """
    bounds = whitespace_bounds(image)
    if bounds.is_empty:
        logger.debug("trim_and_pad: blank image left unchanged")
        return image

    canvas = new_canvas(bounds.w + padding * 2, bounds.h + padding * 2, image.mode)
    canvas.paste(bounds.crop_from(image), (padding, padding))
    return canvas
