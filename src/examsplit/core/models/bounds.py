"""
Module: bounds

Purpose:
    Geometry value types used along the fragment pipeline. A detection
    arrives as NormalizedBox values in the detector's 0..1000 space, is
    projected onto a page as a PixelRect, and is tightened by trimming into
    a TrimRect relative to the cropped fragment.

Key Classes:
    - NormalizedBox: [ymin, xmin, ymax, xmax] in 0..1000 space
    - PixelRect: Page-space crop rectangle (left/top/right/bottom)
    - TrimRect: Crop-relative content rectangle (x/y/w/h)

Dependencies:
    - dataclasses (std)
    - math (std)
    - PIL.Image (TYPE_CHECKING only)

Used By:
    - core.models.detections
    - splitter.dedup
    - splitter.trimming
    - splitter.slicing.compositor
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from numbers import Real
from typing import TYPE_CHECKING, List, Sequence

from examsplit.common.thresholds import LAYOUT_THRESHOLDS

if TYPE_CHECKING:
    from PIL import Image


_SCALE = LAYOUT_THRESHOLDS.normalized_scale


@dataclass(frozen=True, slots=True)
class NormalizedBox:
    """
    Bounding box in the detector's normalized coordinate space.

    Coordinates are integers in [0, 1000], relative to the page image the
    detector was shown, in the order the detector reports them.

    Attributes:
        ymin: Top edge.
        xmin: Left edge.
        ymax: Bottom edge.
        xmax: Right edge.

    Invariants:
        - 0 <= ymin <= ymax <= 1000
        - 0 <= xmin <= xmax <= 1000

    Example:
        >>> box = NormalizedBox(100, 50, 400, 500)
        >>> box.to_pixels(2000, 3000)
        PixelRect(100, 300, 1000, 1200)
    """

    ymin: int
    xmin: int
    ymax: int
    xmax: int

    def __post_init__(self) -> None:
        """Validate range and ordering on construction."""
        for name in ("ymin", "xmin", "ymax", "xmax"):
            value = getattr(self, name)
            if not 0 <= value <= _SCALE:
                raise ValueError(f"{name} must be within 0..{_SCALE}: {value}")
        if self.ymin > self.ymax:
            raise ValueError(f"ymin must be <= ymax: {self.ymin} > {self.ymax}")
        if self.xmin > self.xmax:
            raise ValueError(f"xmin must be <= xmax: {self.xmin} > {self.xmax}")

    # ─────────────────────────────────────────────────────────────────────────
    # Construction
    # ─────────────────────────────────────────────────────────────────────────

    @classmethod
    def from_sequence(cls, values: Sequence[object]) -> NormalizedBox:
        """
        Build a box from raw detector output.

        Model output is loosely typed, so values are rounded to integers,
        clamped into 0..1000 and swapped edges are put back in order.

        Args:
            values: Four numbers [ymin, xmin, ymax, xmax].

        Returns:
            NormalizedBox instance.

        Raises:
            ValueError: If values is not a sequence of exactly four numbers.
        """
        if not isinstance(values, (list, tuple)) or len(values) != 4:
            raise ValueError(f"Expected [ymin, xmin, ymax, xmax], got {values!r}")
        if not all(isinstance(v, Real) and not isinstance(v, bool) for v in values):
            raise ValueError(f"Box coordinates must be numbers, got {values!r}")

        y0, x0, y1, x1 = (min(_SCALE, max(0, int(round(float(v))))) for v in values)
        return cls(min(y0, y1), min(x0, x1), max(y0, y1), max(x0, x1))

    # ─────────────────────────────────────────────────────────────────────────
    # Query Methods
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def area(self) -> int:
        """Area in squared normalized units."""
        return (self.ymax - self.ymin) * (self.xmax - self.xmin)

    def is_within(self, outer: NormalizedBox, tolerance: int = 0) -> bool:
        """
        Check whether every edge of this box lies inside outer's padded extent.

        Args:
            outer: Candidate containing box.
            tolerance: Slack added to each side of outer.

        Returns:
            True if this box is contained in outer (within tolerance).
        """
        return (
            self.ymin >= outer.ymin - tolerance
            and self.xmin >= outer.xmin - tolerance
            and self.ymax <= outer.ymax + tolerance
            and self.xmax <= outer.xmax + tolerance
        )

    def to_pixels(self, width: int, height: int, padding: float = 0) -> PixelRect:
        """
        Project this box onto a page of the given pixel size.

        The rectangle is expanded by padding on every side and clamped to
        the page bounds.

        Args:
            width: Page width in pixels.
            height: Page height in pixels.
            padding: Pixels to add on each side before clamping.

        Returns:
            PixelRect in page coordinates.
        """
        left = math.floor(self.xmin * width / _SCALE - padding)
        top = math.floor(self.ymin * height / _SCALE - padding)
        right = math.ceil(self.xmax * width / _SCALE + padding)
        bottom = math.ceil(self.ymax * height / _SCALE + padding)
        left = min(width, max(0, left))
        top = min(height, max(0, top))
        return PixelRect(
            left=left,
            top=top,
            right=max(left, min(width, right)),
            bottom=max(top, min(height, bottom)),
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Serialization
    # ─────────────────────────────────────────────────────────────────────────

    def to_list(self) -> List[int]:
        """Wire form: [ymin, xmin, ymax, xmax]."""
        return [self.ymin, self.xmin, self.ymax, self.xmax]


@dataclass(frozen=True, slots=True)
class PixelRect:
    """
    Crop rectangle in page pixel coordinates.

    The region is [left, right) x [top, bottom). Zero-size rectangles are
    allowed; they describe a detection that collapsed after clamping.
    """

    left: int
    top: int
    right: int
    bottom: int

    def __post_init__(self) -> None:
        if self.left < 0 or self.top < 0:
            raise ValueError(f"left/top must be >= 0: {self.left}, {self.top}")
        if self.right < self.left:
            raise ValueError(f"right must be >= left: {self.right} < {self.left}")
        if self.bottom < self.top:
            raise ValueError(f"bottom must be >= top: {self.bottom} < {self.top}")

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    def crop_from(self, image: Image.Image) -> Image.Image:
        """Crop this region from an image."""
        return image.crop((self.left, self.top, self.right, self.bottom))

    def __repr__(self) -> str:
        return f"PixelRect({self.left}, {self.top}, {self.right}, {self.bottom})"


@dataclass(frozen=True, slots=True)
class TrimRect:
    """
    Content rectangle relative to a cropped image.

    Attributes:
        x: Left edge (inclusive).
        y: Top edge (inclusive).
        w: Width in pixels (may be 0).
        h: Height in pixels (may be 0).
    """

    x: int
    y: int
    w: int
    h: int

    @classmethod
    def full(cls, width: int, height: int) -> TrimRect:
        """Rectangle covering a whole image."""
        return cls(0, 0, width, height)

    @classmethod
    def empty(cls) -> TrimRect:
        return cls(0, 0, 0, 0)

    @property
    def is_empty(self) -> bool:
        """True when the rectangle has zero area."""
        return self.w <= 0 or self.h <= 0

    def shrinks(self, width: int, height: int) -> bool:
        """True if this rectangle is smaller than a width x height image."""
        return self.w < width or self.h < height

    def as_box(self) -> tuple[int, int, int, int]:
        """Get as (left, top, right, bottom) tuple for PIL."""
        return (self.x, self.y, self.x + self.w, self.y + self.h)

    def crop_from(self, image: Image.Image) -> Image.Image:
        """Crop this region from an image."""
        return image.crop(self.as_box())
