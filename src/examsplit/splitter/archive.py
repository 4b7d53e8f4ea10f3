"""
Module: splitter.archive

Purpose:
    Write one document's results as a ZIP archive.

    Archive layout:
        exam.zip
        ├── analysis_data.json      # Per-page size and detections, no images
        ├── full_pages/
        │   └── Page_1.jpg          # Full-page renders
        ├── exam_Q1.jpg             # One image per question
        ├── exam_Q1_2.jpg           # Repeated id gets a counter
        └── originals/
            └── exam_Q1.jpg         # Untrimmed view, when trimming removed content

Key Functions:
    - write_document_archive(): Main entry point
    - realign_archive(): Trim, pad and width-align an existing archive
    - question_filenames(): Archive names for a list of question ids

Dependencies:
    - zipfile (std)
    - PIL.Image: Decoding archived question images
    - splitter.rendering: JPEG encoding
    - splitter.slicing.aligner: Trim-and-pad and width alignment

Used By:
    - splitter.pipeline
    - cli: align subcommand
"""

from __future__ import annotations

import io
import json
import logging
import re
import tempfile
import zipfile
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Sequence

from PIL import Image

from examsplit.core.models.questions import QuestionArena, QuestionImage

from .rendering import encode_jpeg
from .slicing.aligner import align_widths, normalize_questions

if TYPE_CHECKING:
    from .pipeline import SplitResult

logger = logging.getLogger(__name__)

METADATA_NAME = "analysis_data.json"
PAGES_DIR = "full_pages/"
ORIGINALS_DIR = "originals/"

_UNSAFE = re.compile(r'[\\/:*?"<>|\s]+')


def _sanitize_filename(label: str) -> str:
    """
    Convert a question id to a filesystem-safe name fragment.

    Converts:
        "13"      -> "13"
        "2 (1)"   -> "2_(1)"
        "a/b"     -> "a_b"
    """
    return _UNSAFE.sub("_", label.strip()) or "unknown"


def question_filenames(base_name: str, question_ids: Sequence[str]) -> List[str]:
    """
    Archive names for question images, numbering repeated ids.

    Example:
        >>> question_filenames("exam", ["1", "2", "2"])
        ['exam_Q1.jpg', 'exam_Q2.jpg', 'exam_Q2_2.jpg']
    """
    counts: Dict[str, int] = {}
    names = []
    for question_id in question_ids:
        safe = _sanitize_filename(question_id)
        counts[safe] = counts.get(safe, 0) + 1
        count = counts[safe]
        suffix = f"_{count}" if count > 1 else ""
        names.append(f"{base_name}_Q{safe}{suffix}.jpg")
    return names


@contextmanager
def _building_zip(output_path: Path) -> Iterator[zipfile.ZipFile]:
    """Yield a ZipFile written beside output_path, moved into place on success."""
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with tempfile.NamedTemporaryFile(
        mode="wb",
        suffix=".zip.part",
        dir=output_path.parent,
        delete=False,
    ) as f:
        temp_path = Path(f.name)
        try:
            with zipfile.ZipFile(f, "w", zipfile.ZIP_DEFLATED) as zf:
                yield zf
        except BaseException:
            f.close()
            temp_path.unlink(missing_ok=True)
            raise

    temp_path.replace(output_path)


def write_document_archive(
    result: SplitResult,
    output_path: Path,
    base_name: str,
    *,
    jpeg_quality: int = 95,
    page_jpeg_quality: int = 90,
) -> Path:
    """
    Write pages, metadata and question images to a ZIP file.

    The archive is built next to output_path and moved into place; the
    final name only ever holds a complete archive.

    Args:
        result: Split result of one document.
        output_path: Target .zip path.
        base_name: Prefix for question image names (usually the PDF stem).
        jpeg_quality: Encoding quality for question images.
        page_jpeg_quality: Encoding quality for full-page renders.

    Returns:
        Path to the created archive.
    """
    with _building_zip(output_path) as zf:
        metadata = [page.to_dict() for page in result.pages]
        zf.writestr(METADATA_NAME, json.dumps(metadata, indent=2, ensure_ascii=False))

        for page in result.pages:
            zf.writestr(f"{PAGES_DIR}Page_{page.page_number}.jpg", encode_jpeg(page.image, page_jpeg_quality))

        names = question_filenames(base_name, [q.id for q in result.questions])
        for name, question in zip(names, result.questions):
            zf.writestr(name, encode_jpeg(question.pixels, jpeg_quality))
            if question.raw_pixels is not None:
                zf.writestr(f"{ORIGINALS_DIR}{name}", encode_jpeg(question.raw_pixels, jpeg_quality))

    logger.info(f"Wrote {len(result.questions)} question image(s) to {output_path}")
    return output_path


def aligned_archive_path(input_path: Path) -> Path:
    """Default output of realign_archive(): exam.zip -> exam_aligned.zip."""
    return input_path.with_name(f"{input_path.stem}_aligned.zip")


def _is_question_image(name: str) -> bool:
    return "/" not in name and name.lower().endswith(".jpg")


def realign_archive(
    input_path: Path,
    output_path: Optional[Path] = None,
    *,
    padding: int = 10,
    align: bool = True,
    jpeg_quality: int = 95,
) -> Path:
    """
    Re-normalize the question images of an existing archive.

    Every top-level question image is trimmed of surrounding whitespace,
    given a uniform border of padding pixels and, unless align is False,
    extended to the widest width. Metadata, full-page renders and
    untrimmed originals are copied unchanged.

    Args:
        input_path: Archive written by write_document_archive().
        output_path: Target archive; defaults to <input>_aligned.zip.
        padding: Border added after trimming (px).
        align: Pad every image to the common maximum width.
        jpeg_quality: Encoding quality for the rewritten images.

    Returns:
        Path to the created archive.

    Raises:
        FileNotFoundError: If input_path does not exist.
        ValueError: If the archive holds no question images.
    """
    input_path = Path(input_path)
    if not input_path.exists():
        raise FileNotFoundError(f"Archive not found: {input_path}")
    output_path = Path(output_path) if output_path else aligned_archive_path(input_path)

    with zipfile.ZipFile(input_path) as source:
        entries = [info for info in source.infolist() if not info.is_dir()]
        question_names = [info.filename for info in entries if _is_question_image(info.filename)]
        if not question_names:
            raise ValueError(f"No question images found in {input_path}")

        arena = QuestionArena()
        for name in question_names:
            with Image.open(io.BytesIO(source.read(name))) as image:
                arena.add(QuestionImage(name, 0, image.convert("RGB")))
        logger.info(f"Loaded {len(arena)} question image(s) from {input_path.name}")

        normalize_questions(arena, padding)
        width = align_widths(arena) if align else None

        with _building_zip(output_path) as zf:
            for info in entries:
                if not _is_question_image(info.filename):
                    zf.writestr(info, source.read(info))
            for question in arena:
                zf.writestr(question.id, encode_jpeg(question.pixels, jpeg_quality))

    if width is not None:
        logger.info(f"Aligned {len(arena)} question image(s) to {width}px in {output_path}")
    else:
        logger.info(f"Trimmed {len(arena)} question image(s) into {output_path}")
    return output_path
