"""
Tests for splitter.pipeline

Test Coverage:
- split_pages(): compositing, continuation merge, orphan continuation,
  degenerate detections, alignment, page-level failure
- process_document(): end to end on a generated PDF
"""

import json
import zipfile

import fitz
import pytest
from PIL import Image

from conftest import FakeDetector, draw_block
from examsplit.splitter.call_log import read_call_log
from examsplit.splitter.config import CropConfig, DetectionConfig, SplitConfig
from examsplit.splitter.detection.client import PageDetectionError, RateLimitError
from examsplit.splitter.pipeline import process_document, split_pages
from examsplit.splitter.rendering import RenderedPage


def _page(number, *blocks):
    image = Image.new("RGB", (1000, 1000), "white")
    for block in blocks:
        draw_block(image, *block)
    return RenderedPage(number, image)


@pytest.fixture
def two_pages():
    """Question 1 on page 1, its continuation and question 2 on page 2."""
    return [
        _page(1, (200, 150, 800, 250)),
        _page(2, (200, 50, 500, 120), (150, 250, 300, 350)),
    ]


TWO_PAGE_RESPONSES = [
    [{"id": "1", "boxes_2d": [[100, 100, 300, 900]]}],
    [
        {"id": "continuation", "boxes_2d": [[0, 100, 150, 900]]},
        {"id": "2", "boxes_2d": [[200, 100, 400, 600]]},
    ],
]


class TestSplitPages:
    """Tests for split_pages()."""

    def test_split_when_continuation_then_merged_into_previous(self, two_pages, no_sleep):
        detector = FakeDetector(TWO_PAGE_RESPONSES)
        config = SplitConfig(enable_alignment=False)

        result = split_pages(two_pages, detector, config, sleep=no_sleep)

        assert [q.id for q in result.questions] == ["1", "2"]
        assert result.questions[0].pixels.size == (600, 170)
        assert result.questions[0].page_number == 1
        assert result.questions[1].pixels.size == (550, 250)
        assert result.warnings == []
        assert detector.calls == 2

    def test_split_when_alignment_enabled_then_widths_match(self, two_pages, no_sleep):
        result = split_pages(two_pages, FakeDetector(TWO_PAGE_RESPONSES), SplitConfig(), sleep=no_sleep)

        assert [q.width for q in result.questions] == [620, 620]
        assert [q.height for q in result.questions] == [190, 120]

    def test_split_when_orphan_continuation_then_warns_without_output(self, no_sleep):
        """A continuation on the first page has nothing to attach to."""
        page = _page(1, (200, 50, 500, 120))
        detector = FakeDetector([[{"id": "continuation", "boxes_2d": [[0, 100, 150, 900]]}]])

        result = split_pages([page], detector, sleep=no_sleep)

        assert result.questions == []
        assert len(result.warnings) == 1
        assert "Continuation on page 1" in result.warnings[0]

    def test_split_when_detection_degenerate_then_warns(self, no_sleep):
        page = _page(1, (200, 150, 800, 250))
        detector = FakeDetector([[
            {"id": "1", "boxes_2d": [[100, 500, 300, 500]]},
            {"id": "2", "boxes_2d": [[100, 100, 300, 900]]},
        ]])
        config = SplitConfig(crop=CropConfig(crop_padding=0))

        result = split_pages([page], detector, config, sleep=no_sleep)

        assert [q.id for q in result.questions] == ["2"]
        assert result.warnings == ["Question 1 on page 1 produced no image"]

    def test_split_when_page_keeps_failing_then_raises_page_error(self, no_sleep):
        detector = FakeDetector([RateLimitError("429 Too Many Requests")])
        config = SplitConfig(detection=DetectionConfig(max_retries=2))

        with pytest.raises(PageDetectionError) as excinfo:
            split_pages([_page(1)], detector, config, sleep=no_sleep)

        assert excinfo.value.page_number == 1
        assert excinfo.value.rate_limited is True
        assert detector.calls == 2
        assert no_sleep.delays == [2]

    def test_split_when_no_detections_then_empty_result(self, no_sleep):
        result = split_pages([_page(1)], FakeDetector([[]]), sleep=no_sleep)
        assert result.questions == []
        assert len(result.pages) == 1


@pytest.fixture
def sample_pdf(tmp_path):
    """One 200x200pt page with a filled rectangle."""
    path = tmp_path / "exam.pdf"
    doc = fitz.open()
    page = doc.new_page(width=200, height=200)
    page.draw_rect(fitz.Rect(40, 40, 120, 80), color=(0, 0, 0), fill=(0, 0, 0))
    doc.save(str(path))
    doc.close()
    return path


class TestProcessDocument:
    """Integration tests for process_document()."""

    def test_process_when_valid_pdf_then_writes_archive(self, sample_pdf, tmp_path, no_sleep):
        # Arrange
        output = tmp_path / "out" / "exam.zip"
        detector = FakeDetector([[{"id": "1", "boxes_2d": [[100, 100, 500, 700]]}]])
        call_log = tmp_path / "calls.jsonl"

        # Act
        result = process_document(
            sample_pdf,
            output,
            detector,
            config=SplitConfig(scale=1.0),
            call_log_path=call_log,
            sleep=no_sleep,
        )

        # Assert
        assert result.question_count == 1
        assert result.question_ids == ["1"]
        assert result.output_path == output
        with zipfile.ZipFile(output) as zf:
            names = set(zf.namelist())
            metadata = json.loads(zf.read("analysis_data.json"))
        assert {"analysis_data.json", "full_pages/Page_1.jpg", "exam_Q1.jpg"} <= names
        assert metadata == [{
            "pageNumber": 1,
            "width": 200,
            "height": 200,
            "detections": [{"id": "1", "boxes_2d": [[100, 100, 500, 700]]}],
        }]

        entries = read_call_log(call_log)
        assert len(entries) == 1
        assert entries[0].success is True
        assert entries[0].pdf_file == "exam.pdf"

    def test_process_when_pdf_missing_then_raises_error(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            process_document(tmp_path / "missing.pdf", tmp_path / "x.zip", FakeDetector([[]]))

    def test_process_when_detection_fails_then_no_archive(self, sample_pdf, tmp_path, no_sleep):
        output = tmp_path / "exam.zip"
        detector = FakeDetector([RateLimitError("429")])
        config = SplitConfig(scale=1.0, detection=DetectionConfig(max_retries=1))

        with pytest.raises(PageDetectionError):
            process_document(sample_pdf, output, detector, config=config, sleep=no_sleep)
        assert not output.exists()
