"""
Module: splitter.rendering

Purpose:
    PDF page rendering and image encoding. Renders whole pages to RGB
    images at a scale factor, and encodes images for the detector payload
    and the output archive.

Key Classes:
    - RenderedPage: One rendered page
    - FitzPageRenderer: Context-managed renderer over a PDF file

Key Functions:
    - encode_jpeg(): Encode an image as JPEG bytes

Dependencies:
    - fitz (PyMuPDF): PDF rendering
    - PIL.Image: Image handling

Used By:
    - splitter.pipeline: Renders pages for detection and cropping
    - splitter.archive: Encodes images for the ZIP
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

import fitz
from PIL import Image

logger = logging.getLogger(__name__)

DEFAULT_SCALE = 3.0


@dataclass(frozen=True)
class RenderedPage:
    """
    A rendered PDF page.

    Attributes:
        page_number: 1-indexed page number.
        image: RGB render.
    """
    page_number: int
    image: Image.Image

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height


class FitzPageRenderer:
    """
    Renders pages of one PDF with PyMuPDF.

    Usage:
        with FitzPageRenderer(pdf_path) as renderer:
            for page in renderer.iter_pages(scale=3.0):
                ...
    """

    def __init__(self, pdf_path: Path):
        self._pdf_path = pdf_path
        self._doc: Optional[fitz.Document] = None

    def open(self) -> "FitzPageRenderer":
        if not self._pdf_path.exists():
            raise FileNotFoundError(f"PDF not found: {self._pdf_path}")
        self._doc = fitz.open(self._pdf_path)
        if self._doc.page_count == 0:
            self.close()
            raise ValueError(f"PDF has no pages: {self._pdf_path}")
        return self

    def close(self) -> None:
        if self._doc is not None:
            self._doc.close()
            self._doc = None

    @property
    def page_count(self) -> int:
        if self._doc is None:
            raise RuntimeError("Renderer is not open")
        return self._doc.page_count

    def render(self, index: int, scale: float = DEFAULT_SCALE) -> RenderedPage:
        """
        Render one page.

        Args:
            index: 0-indexed page number.
            scale: Zoom factor (1.0 = 72 DPI).

        Returns:
            RenderedPage with 1-indexed page_number.
        """
        if self._doc is None:
            raise RuntimeError("Renderer is not open")
        page = self._doc[index]
        matrix = fitz.Matrix(scale, scale)
        pix = page.get_pixmap(matrix=matrix, alpha=False, colorspace=fitz.csRGB)
        image = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
        return RenderedPage(page_number=index + 1, image=image)

    def iter_pages(self, scale: float = DEFAULT_SCALE) -> Iterator[RenderedPage]:
        """Render pages lazily, strictly in order."""
        for index in range(self.page_count):
            yield self.render(index, scale)

    def __enter__(self) -> "FitzPageRenderer":
        return self.open()

    def __exit__(self, *args) -> None:
        self.close()


def encode_jpeg(image: Image.Image, quality: int = 95) -> bytes:
    """Encode an image as JPEG bytes (converted to RGB first)."""
    buffer = io.BytesIO()
    image.convert("RGB").save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()
