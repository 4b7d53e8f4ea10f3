"""
Tests for splitter.archive
"""

import io
import json
import zipfile

import pytest
from PIL import Image

from conftest import draw_block
from examsplit.core.models.bounds import NormalizedBox
from examsplit.core.models.detections import BasicDetection
from examsplit.core.models.questions import QuestionImage
from examsplit.splitter.archive import question_filenames, realign_archive, write_document_archive
from examsplit.splitter.pipeline import PageRecord, SplitResult


def _result():
    page = Image.new("RGB", (300, 400), "white")
    detection = BasicDetection(id="1", boxes=(NormalizedBox(0, 0, 500, 500),))
    return SplitResult(
        questions=[
            QuestionImage("1", 1, Image.new("RGB", (50, 20), "white")),
            QuestionImage("2 (a)", 1, Image.new("RGB", (50, 30), "white"),
                          raw_pixels=Image.new("RGB", (60, 40), "white")),
            QuestionImage("1", 2, Image.new("RGB", (50, 10), "white")),
        ],
        pages=[PageRecord(1, page, [detection]), PageRecord(2, page, [])],
    )


class TestQuestionFilenames:
    """Tests for question_filenames()."""

    def test_filenames_when_repeated_id_then_numbered(self):
        assert question_filenames("exam", ["1", "2", "2", "2"]) == [
            "exam_Q1.jpg", "exam_Q2.jpg", "exam_Q2_2.jpg", "exam_Q2_3.jpg",
        ]

    def test_filenames_when_unsafe_characters_then_sanitized(self):
        assert question_filenames("exam", ["2 (1)", "a/b", "  "]) == [
            "exam_Q2_(1).jpg", "exam_Qa_b.jpg", "exam_Qunknown.jpg",
        ]


class TestWriteDocumentArchive:
    """Tests for write_document_archive()."""

    def test_write_when_result_then_archive_has_expected_layout(self, tmp_path):
        output = tmp_path / "nested" / "exam.zip"

        write_document_archive(_result(), output, "exam")

        with zipfile.ZipFile(output) as zf:
            names = zf.namelist()
            metadata = json.loads(zf.read("analysis_data.json"))
            question = Image.open(io.BytesIO(zf.read("exam_Q2_(a).jpg")))
            original = Image.open(io.BytesIO(zf.read("originals/exam_Q2_(a).jpg")))

        assert sorted(names) == sorted([
            "analysis_data.json",
            "full_pages/Page_1.jpg",
            "full_pages/Page_2.jpg",
            "exam_Q1.jpg",
            "exam_Q2_(a).jpg",
            "exam_Q1_2.jpg",
            "originals/exam_Q2_(a).jpg",
        ])
        assert metadata[0] == {
            "pageNumber": 1,
            "width": 300,
            "height": 400,
            "detections": [{"id": "1", "boxes_2d": [[0, 0, 500, 500]]}],
        }
        assert question.size == (50, 30)
        assert original.size == (60, 40)

    def test_write_when_done_then_no_temp_files_left(self, tmp_path):
        write_document_archive(_result(), tmp_path / "exam.zip", "exam")
        assert [p.name for p in tmp_path.iterdir()] == ["exam.zip"]

    def test_write_when_archive_exists_then_replaced(self, tmp_path):
        output = tmp_path / "exam.zip"
        output.write_bytes(b"stale")
        write_document_archive(_result(), output, "exam")
        assert zipfile.is_zipfile(output)


def _question(size, block):
    return draw_block(Image.new("RGB", size, "white"), *block)


def _sizes(path):
    with zipfile.ZipFile(path) as zf:
        return {
            name: Image.open(io.BytesIO(zf.read(name))).size
            for name in zf.namelist()
            if "/" not in name and name.endswith(".jpg")
        }


@pytest.fixture
def written_archive(tmp_path):
    result = SplitResult(
        questions=[
            QuestionImage("1", 1, _question((80, 40), (10, 5, 30, 15))),
            QuestionImage("2", 1, _question((60, 30), (5, 5, 55, 25)),
                          raw_pixels=Image.new("RGB", (70, 40), "white")),
        ],
        pages=[PageRecord(1, Image.new("RGB", (300, 400), "white"), [])],
    )
    return write_document_archive(result, tmp_path / "exam.zip", "exam")


class TestRealignArchive:
    """Tests for realign_archive()."""

    def test_realign_when_default_output_then_writes_aligned_sibling(self, written_archive):
        output = realign_archive(written_archive)
        assert output == written_archive.with_name("exam_aligned.zip")
        assert output.exists()

    def test_realign_when_aligned_then_all_questions_share_widest_width(self, written_archive):
        sizes = _sizes(realign_archive(written_archive, padding=10))

        assert set(sizes) == {"exam_Q1.jpg", "exam_Q2.jpg"}
        widths = {w for w, _ in sizes.values()}
        assert len(widths) == 1
        # 50px of content plus 10px on each side, give or take JPEG edge noise
        assert 68 <= widths.pop() <= 74

    def test_realign_when_alignment_disabled_then_widths_follow_content(self, written_archive):
        sizes = _sizes(realign_archive(written_archive, padding=10, align=False))

        assert 38 <= sizes["exam_Q1.jpg"][0] <= 44
        assert 68 <= sizes["exam_Q2.jpg"][0] <= 74

    def test_realign_when_done_then_other_entries_copied_unchanged(self, written_archive):
        output = realign_archive(written_archive)

        with zipfile.ZipFile(written_archive) as before, zipfile.ZipFile(output) as after:
            for name in ("analysis_data.json", "full_pages/Page_1.jpg", "originals/exam_Q2.jpg"):
                assert after.read(name) == before.read(name)

    def test_realign_when_no_question_images_then_raises_error(self, tmp_path):
        path = tmp_path / "empty.zip"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("analysis_data.json", "[]")
        with pytest.raises(ValueError, match="No question images"):
            realign_archive(path)

    def test_realign_when_archive_missing_then_raises_error(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Archive not found"):
            realign_archive(tmp_path / "missing.zip")
