"""
Module: splitter.slicing.compositor

Purpose:
    Creates one question image from the boxes of a single detection. Each
    box is cropped from the rendered page, edge-peeled, and the resulting
    fragments are stacked top to bottom in reading order. Fragments keep
    their indentation relative to each other: every fragment is shifted by
    the distance between its own left ink edge and the leftmost ink edge of
    the set, measured in page coordinates.

Key Functions:
    - cut_fragment(): Crop and edge-peel one box
    - composite_fragments(): Stack fragments into final/original images
    - composite_detection(): Dedup, cut and stack a detection's boxes

Key Classes:
    - Fragment: Cropped box plus its trim rectangle
    - Composite: Final image and optional untrimmed comparison image

Dependencies:
    - PIL.Image: Image stitching
    - splitter.trimming: Edge peel
    - splitter.dedup: Box deduplication

Used By:
    - splitter.pipeline: Creates a composite for each detection
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from PIL import Image

from examsplit.core.models.bounds import NormalizedBox, PixelRect, TrimRect

from ..config import CropConfig
from ..dedup import deduplicate_boxes
from ..imaging import new_canvas
from ..trimming import edge_peel_bounds

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Fragment:
    """
    One cropped box of a detection.

    Attributes:
        crop: Padded crop taken from the page.
        rect: Where the crop was taken, in page pixels.
        trim: Edge-peeled content rectangle relative to crop.
    """
    crop: Image.Image
    rect: PixelRect
    trim: TrimRect

    @property
    def absolute_ink_x(self) -> int:
        """Left edge of the trimmed content in page coordinates."""
        return self.rect.left + self.trim.x

    @property
    def is_degenerate(self) -> bool:
        return self.trim.is_empty

    @property
    def was_trimmed(self) -> bool:
        return self.trim.shrinks(self.crop.width, self.crop.height)

    def trimmed(self) -> Image.Image:
        return self.trim.crop_from(self.crop)


@dataclass(frozen=True)
class Composite:
    """
    Result of compositing one detection.

    Attributes:
        final: Trimmed, ink-anchored composite.
        original: Untrimmed composite for before/after comparison; None
            when no fragment lost any pixels to trimming.
        fragment_count: Number of fragments drawn.
    """
    final: Image.Image
    original: Optional[Image.Image]
    fragment_count: int


def cut_fragment(page: Image.Image, box: NormalizedBox, padding: int) -> Fragment:
    """
    Crop one detection box from a page and edge-peel it.

    Args:
        page: Rendered page image.
        box: Box in 0..1000 space.
        padding: Pixels added around the box before cropping.

    Returns:
        Fragment (possibly degenerate).
    """
    rect = box.to_pixels(page.width, page.height, padding)
    crop = rect.crop_from(page)
    return Fragment(crop=crop, rect=rect, trim=edge_peel_bounds(crop))


def composite_width(fragments: Sequence[Fragment], config: CropConfig) -> int:
    """
    Width of the final canvas for a fragment set.

    max_i(inkX_i - min inkX + trimW_i) + left padding + right padding
    """
    min_ink_x = min(f.absolute_ink_x for f in fragments)
    content = max(f.absolute_ink_x - min_ink_x + f.trim.w for f in fragments)
    return content + config.canvas_padding_left + config.canvas_padding_right


def composite_fragments(fragments: Sequence[Fragment], config: CropConfig) -> Composite:
    """
    Stack non-degenerate fragments into a single image.

    Args:
        fragments: Fragments in reading order (at least one).
        config: Canvas padding and gap settings.

    Returns:
        Composite with the final image and, if any fragment was trimmed,
        the untrimmed comparison image.

    Raises:
        ValueError: If fragments is empty.
    """
    if not fragments:
        raise ValueError("No fragments to composite")

    gap = config.fragment_gap
    pad_left = config.canvas_padding_left
    pad_y = config.canvas_padding_y
    mode = fragments[0].crop.mode
    gaps = gap * (len(fragments) - 1)

    min_ink_x = min(f.absolute_ink_x for f in fragments)
    width = composite_width(fragments, config)
    height = sum(f.trim.h for f in fragments) + gaps + pad_y * 2

    final = new_canvas(width, height, mode)
    y = pad_y
    for fragment in fragments:
        offset_x = pad_left + (fragment.absolute_ink_x - min_ink_x)
        final.paste(fragment.trimmed(), (offset_x, y))
        y += fragment.trim.h + gap

    original = None
    if any(f.was_trimmed for f in fragments):
        raw_width = max(f.crop.width for f in fragments) + pad_left + config.canvas_padding_right
        raw_height = sum(f.crop.height for f in fragments) + gaps + pad_y * 2
        original = new_canvas(raw_width, raw_height, mode)
        y = pad_y
        for fragment in fragments:
            original.paste(fragment.crop, (pad_left, y))
            y += fragment.crop.height + gap

    return Composite(final=final, original=original, fragment_count=len(fragments))


def composite_detection(
    page: Image.Image,
    boxes: Sequence[NormalizedBox],
    config: CropConfig,
) -> Optional[Composite]:
    """
    Turn one detection's boxes into a composite image.

    Pipeline:
    1. Drop boxes contained in other boxes (order preserved)
    2. Crop each remaining box with padding and edge-peel it
    3. Drop fragments whose trimmed area is zero
    4. Stack the rest, anchored on the leftmost ink edge

    Args:
        page: Rendered page image.
        boxes: Detection boxes in reading order.
        config: Crop and canvas settings.

    Returns:
        Composite, or None when no usable fragment remains.
    """
    kept = deduplicate_boxes(boxes, config.containment_tolerance)
    fragments: List[Fragment] = []
    for box in kept:
        fragment = cut_fragment(page, box, config.crop_padding)
        if fragment.is_degenerate:
            logger.debug(f"Dropping degenerate fragment {box.to_list()}")
            continue
        fragments.append(fragment)

    if not fragments:
        return None
    return composite_fragments(fragments, config)
