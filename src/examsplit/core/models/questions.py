"""
Module: questions

Purpose:
    Per-document question image records. Records are immutable; a document
    keeps them in a QuestionArena and addresses them by a stable index, so
    a continuation merge replaces the record at that index rather than
    mutating a shared object.

Key Classes:
    - QuestionImage: One extracted question image
    - QuestionArena: Index-addressed collection owned by one document run

Used By:
    - splitter.slicing.merger
    - splitter.slicing.aligner
    - splitter.pipeline
    - splitter.archive
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterator, List, Optional

from PIL import Image


@dataclass(frozen=True)
class QuestionImage:
    """
    Image of one question.

    Attributes:
        id: Question identifier as reported by the detector.
        page_number: 1-indexed page the question started on.
        pixels: Final (trimmed, composited) image.
        raw_pixels: Untrimmed comparison view; present only when trimming
            actually removed content.
    """
    id: str
    page_number: int
    pixels: Image.Image
    raw_pixels: Optional[Image.Image] = None

    @property
    def width(self) -> int:
        return self.pixels.width

    @property
    def height(self) -> int:
        return self.pixels.height

    def with_pixels(
        self,
        pixels: Image.Image,
        raw_pixels: Optional[Image.Image] = None,
    ) -> QuestionImage:
        """Copy of this record with new images (raw kept unless given)."""
        return replace(
            self,
            pixels=pixels,
            raw_pixels=raw_pixels if raw_pixels is not None else self.raw_pixels,
        )


class QuestionArena:
    """
    Ordered, index-addressed store of QuestionImage records.

    Indices are assigned on insertion and never change for the lifetime of
    the arena.

    Example:
        >>> arena = QuestionArena()
        >>> idx = arena.add(QuestionImage("1", 1, img))
        >>> arena.replace(idx, arena[idx].with_pixels(bigger))
        >>> [q.id for q in arena]
        ['1']
    """

    def __init__(self) -> None:
        self._records: List[QuestionImage] = []

    def add(self, record: QuestionImage) -> int:
        """Append a record and return its index."""
        self._records.append(record)
        return len(self._records) - 1

    def replace(self, index: int, record: QuestionImage) -> None:
        """Swap the record stored at index."""
        if not 0 <= index < len(self._records):
            raise IndexError(f"No question at index {index}")
        self._records[index] = record

    @property
    def last_index(self) -> Optional[int]:
        """Index of the most recently added record, None if empty."""
        return len(self._records) - 1 if self._records else None

    def __getitem__(self, index: int) -> QuestionImage:
        return self._records[index]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[QuestionImage]:
        return iter(list(self._records))

    def indices(self) -> range:
        return range(len(self._records))
