"""
Tests for splitter.slicing.merger
"""

import logging

from PIL import Image

from conftest import draw_block
from examsplit.core.models.questions import QuestionArena, QuestionImage
from examsplit.splitter.slicing.compositor import Composite
from examsplit.splitter.slicing.merger import merge_continuation, stack_vertically
from examsplit.splitter.trimming import whitespace_bounds


def _top():
    # Content box 20x10 at (10, 10)
    return draw_block(Image.new("RGB", (60, 40), "white"), 10, 10, 30, 20)


def _bottom():
    # Content box 40x5 at (5, 20)
    return draw_block(Image.new("RGB", (80, 50), "white"), 5, 20, 45, 25)


class TestStackVertically:
    """Tests for stack_vertically()."""

    def test_stack_when_no_gap_then_trims_and_concatenates(self):
        out = stack_vertically(_top(), _bottom())
        assert out.size == (40, 15)
        assert out.getpixel((0, 0)) == (0, 0, 0)
        assert out.getpixel((39, 14)) == (0, 0, 0)
        assert out.getpixel((25, 5)) == (255, 255, 255)

    def test_stack_when_positive_gap_then_adds_space(self):
        out = stack_vertically(_top(), _bottom(), gap=4)
        assert out.size == (40, 19)
        assert out.getpixel((0, 12)) == (255, 255, 255)

    def test_stack_when_negative_gap_then_overlaps(self):
        out = stack_vertically(_top(), _bottom(), gap=-3)
        assert out.size == (40, 12)

    def test_stack_when_overlap_exceeds_top_then_clamps_to_top(self):
        out = stack_vertically(_top(), _bottom(), gap=-30)
        assert out.size == (40, 10)

    def test_stack_when_bottom_blank_then_returns_trimmed_top(self):
        out = stack_vertically(_top(), Image.new("RGB", (30, 30), "white"))
        assert out.size == (20, 10)


class TestMergeContinuation:
    """Tests for merge_continuation()."""

    def test_merge_when_previous_exists_then_replaces_in_place(self):
        arena = QuestionArena()
        arena.add(QuestionImage("1", 1, Image.new("RGB", (10, 10), "white")))
        idx = arena.add(QuestionImage("2", 1, _top()))

        result = merge_continuation(arena, Composite(final=_bottom(), original=None, fragment_count=1))

        assert result == idx
        assert len(arena) == 2
        assert arena[idx].id == "2"
        assert arena[idx].pixels.size == (40, 15)
        assert arena[idx].raw_pixels is None

    def test_merge_when_continuation_has_raw_then_merges_raw_against_final(self):
        arena = QuestionArena()
        arena.add(QuestionImage("1", 1, _top()))
        raw_cont = _bottom()
        draw_block(raw_cont, 0, 49, 80, 50)

        merge_continuation(arena, Composite(final=_bottom(), original=raw_cont, fragment_count=1))

        raw = arena[0].raw_pixels
        assert raw is not None
        assert whitespace_bounds(raw).w == 80

    def test_merge_when_overlap_then_uses_negative_gap(self):
        arena = QuestionArena()
        arena.add(QuestionImage("1", 1, _top()))
        merge_continuation(arena, Composite(_bottom(), None, 1), merge_overlap=3)
        assert arena[0].pixels.size == (40, 12)

    def test_merge_when_no_previous_question_then_skips_with_warning(self, caplog):
        arena = QuestionArena()
        with caplog.at_level(logging.WARNING):
            result = merge_continuation(arena, Composite(_bottom(), None, 1))
        assert result is None
        assert len(arena) == 0
        assert "no previous question" in caplog.text
