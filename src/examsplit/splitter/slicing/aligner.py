"""
Module: splitter.slicing.aligner

Purpose:
    Final normalization of a document's questions: optional trim-and-pad of
    every image, then padding on the right so all question images share the
    widest width.

Key Functions:
    - normalize_questions(): Trim whitespace and add uniform padding
    - align_widths(): Pad every question to the maximum width

Used By:
    - splitter.pipeline
"""

from __future__ import annotations

import logging

from examsplit.core.models.questions import QuestionArena

from ..imaging import border_color, new_canvas
from ..trimming import trim_and_pad

logger = logging.getLogger(__name__)


def normalize_questions(arena: QuestionArena, padding: int) -> None:
    """Trim-and-pad every final and raw image in place (by index)."""
    for index in arena.indices():
        question = arena[index]
        raw = trim_and_pad(question.raw_pixels, padding) if question.raw_pixels is not None else None
        arena.replace(index, question.with_pixels(trim_and_pad(question.pixels, padding), raw))


def align_widths(arena: QuestionArena) -> int:
    """
    Extend every narrower question image to the widest width.

    Images are left-aligned on a canvas filled with their own background
    colour; images already at the maximum width are left untouched.

    Args:
        arena: Questions of one document.

    Returns:
        The common width (0 for an empty arena).
    """
    if len(arena) == 0:
        return 0

    max_width = max(q.width for q in arena)
    logger.debug(f"Aligning {len(arena)} question(s) to {max_width}px")

    for index in arena.indices():
        question = arena[index]
        if question.width == max_width:
            continue
        canvas = new_canvas(
            max_width,
            question.height,
            question.pixels.mode,
            fill=border_color(question.pixels),
        )
        canvas.paste(question.pixels, (0, 0))
        arena.replace(index, question.with_pixels(canvas))

    return max_width
