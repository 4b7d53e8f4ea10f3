"""Small PIL helpers shared by the slicing modules."""

from __future__ import annotations

from typing import Tuple, Union

import numpy as np
from PIL import Image

Color = Union[int, Tuple[int, ...]]


def white_for(mode: str) -> Color:
    """White in the given PIL mode."""
    if mode in ("1", "L", "I", "F"):
        return 255
    if mode == "RGBA":
        return (255, 255, 255, 255)
    if mode == "LA":
        return (255, 255)
    return (255, 255, 255)


def new_canvas(
    width: int,
    height: int,
    mode: str = "RGB",
    fill: Color | None = None,
) -> Image.Image:
    """Blank canvas filled with white (or fill)."""
    return Image.new(mode, (max(0, width), max(0, height)), white_for(mode) if fill is None else fill)


def border_color(image: Image.Image) -> Color:
    """
    Median colour of the outermost pixel ring.

    Used as the background colour when an image has to be extended.
    Falls back to white for empty images.
    """
    if image.width == 0 or image.height == 0:
        return white_for(image.mode)

    arr = np.asarray(image)
    if arr.ndim == 2:
        arr = arr[:, :, None]
    ring = np.concatenate(
        [arr[0, :, :], arr[-1, :, :], arr[:, 0, :], arr[:, -1, :]],
        axis=0,
    )
    median = np.median(ring, axis=0).astype(int)
    if median.shape[0] == 1:
        return int(median[0])
    return tuple(int(v) for v in median)
