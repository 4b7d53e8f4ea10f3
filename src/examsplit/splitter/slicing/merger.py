"""
Module: splitter.slicing.merger

Purpose:
    Joins a continuation fragment (the top of a page that finishes the
    previous page's last question) onto the question it belongs to.

Key Functions:
    - stack_vertically(): Whitespace-trim two images and stack them
    - merge_continuation(): Replace the last question with its merged form

Used By:
    - splitter.pipeline
"""

from __future__ import annotations

import logging
from typing import Optional

from PIL import Image

from examsplit.core.models.questions import QuestionArena

from ..imaging import new_canvas
from ..trimming import whitespace_bounds
from .compositor import Composite

logger = logging.getLogger(__name__)


def stack_vertically(top: Image.Image, bottom: Image.Image, gap: int = 0) -> Image.Image:
    """
    Stack bottom under top, both stripped of surrounding whitespace.

    Both images are left-aligned. A negative gap pulls bottom up into top
    to remove double margins.

    Args:
        top: Upper image.
        bottom: Lower image.
        gap: Pixels between the two (may be negative).

    Returns:
        New image of width max(top_w, bottom_w) and height
        top_h + bottom_h + gap, measured after trimming. An overlap larger
        than top_h is clamped so bottom never starts above the canvas, and
        the canvas is never shorter than top.
    """
    top_bounds = whitespace_bounds(top)
    bottom_bounds = whitespace_bounds(bottom)

    offset = max(0, top_bounds.h + gap)
    width = max(top_bounds.w, bottom_bounds.w)
    height = max(top_bounds.h, offset + bottom_bounds.h)
    canvas = new_canvas(width, height, top.mode)

    if not top_bounds.is_empty:
        canvas.paste(top_bounds.crop_from(top), (0, 0))
    if not bottom_bounds.is_empty:
        canvas.paste(bottom_bounds.crop_from(bottom).convert(top.mode), (0, offset))
    return canvas


def merge_continuation(
    arena: QuestionArena,
    composite: Composite,
    merge_overlap: int = 0,
) -> Optional[int]:
    """
    Merge a continuation composite into the last question of a document.

    The raw comparison view is merged too whenever either side has one;
    a side without a raw view contributes its final image.

    Args:
        arena: Questions of the current document.
        composite: Continuation composite.
        merge_overlap: Pixels of overlap (merge gap is -merge_overlap).

    Returns:
        Index of the replaced question, or None when there is no question
        to attach to (the continuation is discarded).
    """
    index = arena.last_index
    if index is None:
        logger.warning("Continuation found but no previous question exists. Skipping.")
        return None

    previous = arena[index]
    gap = -merge_overlap
    pixels = stack_vertically(previous.pixels, composite.final, gap)

    raw = None
    if previous.raw_pixels is not None or composite.original is not None:
        raw = stack_vertically(
            previous.raw_pixels if previous.raw_pixels is not None else previous.pixels,
            composite.original if composite.original is not None else composite.final,
            gap,
        )

    arena.replace(index, previous.with_pixels(pixels, raw))
    logger.debug(f"Merged continuation into question {previous.id} (index {index})")
    return index
