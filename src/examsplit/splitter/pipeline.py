"""
Module: splitter.pipeline

Purpose:
    Per-document orchestrator. Renders a PDF page by page, asks the
    detector for question boxes, composites each detection into a question
    image, merges continuations into the previous question, normalizes the
    finished set and writes the output archive.

Key Functions:
    - split_pages(): Run detection + compositing over rendered pages
    - process_document(): Render, split and archive one PDF

Key Classes:
    - PageRecord: Rendered page plus its detections
    - SplitResult: Questions, pages and warnings of one document
    - DocumentResult: Summary returned to the batch runner

Dependencies:
    - splitter.rendering: PDF page rendering
    - splitter.detection: Detection service with retry
    - splitter.slicing: Compositing, merging, alignment
    - splitter.archive: ZIP output

Used By:
    - batch.runner: One call per document job
    - cli: Single-file splitting
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from PIL import Image

from examsplit.core.models.detections import Detection
from examsplit.core.models.questions import QuestionArena, QuestionImage

from .archive import write_document_archive
from .call_log import DetectionCallLog
from .config import SplitConfig
from .detection.client import DetectionClient, detect_page
from .rendering import FitzPageRenderer, RenderedPage
from .slicing.aligner import align_widths, normalize_questions
from .slicing.compositor import composite_detection
from .slicing.merger import merge_continuation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageRecord:
    """
    A processed page.

    Attributes:
        page_number: 1-indexed page number.
        image: Full-page render that was sent to the detector.
        detections: Detections returned for the page.
    """
    page_number: int
    image: Image.Image
    detections: List[Detection]

    def to_dict(self) -> dict:
        """Metadata without the image."""
        return {
            "pageNumber": self.page_number,
            "width": self.image.width,
            "height": self.image.height,
            "detections": [d.to_dict() for d in self.detections],
        }


@dataclass
class SplitResult:
    """
    Result of splitting one document.

    Attributes:
        questions: Question images in page order.
        pages: Every processed page.
        warnings: Non-fatal problems (orphan continuations, empty detections).
    """
    questions: List[QuestionImage] = field(default_factory=list)
    pages: List[PageRecord] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class DocumentResult:
    """
    Result of processing a PDF end to end.

    Attributes:
        question_count: Number of questions written.
        question_ids: Question ids in output order.
        warnings: Non-fatal problems.
        output_path: Archive that was written.
    """
    question_count: int
    question_ids: List[str]
    warnings: List[str]
    output_path: Path


def split_pages(
    pages: Iterable[RenderedPage],
    detector: DetectionClient,
    config: Optional[SplitConfig] = None,
    *,
    call_log: Optional[DetectionCallLog] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> SplitResult:
    """
    Extract question images from rendered pages.

    Pages are processed strictly in order, since a continuation on page N
    belongs to the last question seen up to page N-1.

    Args:
        pages: Rendered pages in document order.
        detector: Detection client.
        config: Split settings.
        call_log: Optional detection call log.
        sleep: Delay function for detection retries.

    Returns:
        SplitResult with one image per question.

    Raises:
        PageDetectionError: If a page cannot be detected after all retries.
    """
    config = config or SplitConfig()
    result = SplitResult()
    arena = QuestionArena()

    for page in pages:
        logger.info(f"Processing page {page.page_number}...")
        detections = detect_page(
            detector,
            page,
            config.detection,
            jpeg_quality=config.page_jpeg_quality,
            call_log=call_log,
            sleep=sleep,
        )
        logger.info(f"Found {len(detections)} question(s) on page {page.page_number}")
        result.pages.append(PageRecord(page.page_number, page.image, detections))

        for detection in detections:
            composite = composite_detection(page.image, detection.boxes, config.crop)
            if composite is None:
                msg = f"Question {detection.id} on page {page.page_number} produced no image"
                logger.warning(msg)
                result.warnings.append(msg)
                continue

            if detection.is_continuation:
                if merge_continuation(arena, composite, config.crop.merge_overlap) is None:
                    result.warnings.append(
                        f"Continuation on page {page.page_number} has no previous question; skipped"
                    )
                continue

            arena.add(QuestionImage(
                id=detection.id,
                page_number=page.page_number,
                pixels=composite.final,
                raw_pixels=composite.original,
            ))

    if config.enable_alignment and len(arena) > 0:
        normalize_questions(arena, config.final_padding)
        width = align_widths(arena)
        logger.debug(f"Aligned {len(arena)} question(s) to {width}px")

    result.questions = list(arena)
    return result


def process_document(
    pdf_path: Path,
    output_path: Path,
    detector: DetectionClient,
    *,
    config: Optional[SplitConfig] = None,
    call_log_path: Optional[Path] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> DocumentResult:
    """
    Split one PDF into question images and write them to a ZIP archive.

    Args:
        pdf_path: PDF to process.
        output_path: ZIP file to write.
        detector: Detection client.
        config: Split settings.
        call_log_path: Optional JSONL file for detection call records.
        sleep: Delay function for detection retries.

    Returns:
        DocumentResult summary.

    Raises:
        FileNotFoundError: If pdf_path doesn't exist.
        ValueError: If the PDF has no pages.
        PageDetectionError: If a page cannot be detected.

    Example:
        >>> result = process_document(Path("exam.pdf"), Path("out/exam.zip"), client)
        >>> print(f"Extracted {result.question_count} questions")
        Extracted 22 questions
    """
    config = config or SplitConfig()
    call_log = DetectionCallLog(call_log_path, pdf_path.name) if call_log_path else None

    logger.info(f"Loading PDF: {pdf_path}")
    with FitzPageRenderer(pdf_path) as renderer:
        logger.info(f"Total pages: {renderer.page_count}")
        result = split_pages(
            renderer.iter_pages(config.scale),
            detector,
            config,
            call_log=call_log,
            sleep=sleep,
        )

    write_document_archive(
        result,
        output_path,
        pdf_path.stem,
        jpeg_quality=config.jpeg_quality,
        page_jpeg_quality=config.page_jpeg_quality,
    )

    question_ids = [q.id for q in result.questions]
    logger.info(
        f"Completed {pdf_path.name}: {len(question_ids)} questions from {len(result.pages)} pages",
        extra={"pdf_name": pdf_path.name, "question_count": len(question_ids)},
    )
    return DocumentResult(
        question_count=len(question_ids),
        question_ids=question_ids,
        warnings=result.warnings,
        output_path=output_path,
    )
