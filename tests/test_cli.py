"""
Tests for the examsplit command line.
"""

import io
import zipfile
from pathlib import Path

from PIL import Image

from examsplit.cli import build_parser, main, split_config_from_args


class TestParser:
    """Tests for build_parser()."""

    def test_batch_when_no_options_then_defaults(self):
        args = build_parser().parse_args(["batch"])
        assert args.concurrency == 5
        assert args.retries == 3
        assert args.input == Path("exams")
        assert args.output == Path("output")
        assert args.force is False
        assert args.max_rounds == 5
        assert args.state_file == Path(".batch-state.json")

    def test_align_when_options_then_parsed(self):
        args = build_parser().parse_args(["align", "exam.zip", "-o", "out.zip", "-p", "4", "--no-alignment"])
        assert args.archive == Path("exam.zip")
        assert args.output == Path("out.zip")
        assert args.padding == 4
        assert args.no_alignment is True

    def test_batch_when_short_options_then_parsed(self):
        args = build_parser().parse_args(["batch", "-c", "2", "-r", "4", "-i", "in", "-o", "out", "--force"])
        assert (args.concurrency, args.retries) == (2, 4)
        assert args.input == Path("in")
        assert args.force is True

    def test_split_when_options_then_config_built(self):
        args = build_parser().parse_args([
            "split", "exam.pdf",
            "--scale", "2",
            "--crop-padding", "10",
            "--merge-overlap", "5",
            "--no-alignment",
            "--detailed",
        ])
        config = split_config_from_args(args)
        assert config.scale == 2.0
        assert config.crop.crop_padding == 10
        assert config.crop.merge_overlap == 5
        assert config.enable_alignment is False
        assert config.detection.variant == "detailed"


class TestMain:
    """Tests for main()."""

    def test_main_when_api_key_missing_then_returns_error(self, monkeypatch, tmp_path):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        assert main(["split", str(tmp_path / "exam.pdf")]) == 1

    def test_main_when_input_folder_missing_then_returns_error(self, monkeypatch, tmp_path):
        monkeypatch.setenv("GEMINI_API_KEY", "test-key")
        monkeypatch.chdir(tmp_path)
        code = main(["batch", "-i", str(tmp_path / "missing"), "-o", str(tmp_path / "out")])
        assert code == 1

    def test_main_when_align_then_writes_aligned_archive(self, tmp_path):
        archive = tmp_path / "exam.zip"
        buffer = io.BytesIO()
        Image.new("RGB", (40, 20), "black").save(buffer, format="JPEG")
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("exam_Q1.jpg", buffer.getvalue())

        assert main(["align", str(archive), "-p", "5"]) == 0

        with zipfile.ZipFile(tmp_path / "exam_aligned.zip") as zf:
            image = Image.open(io.BytesIO(zf.read("exam_Q1.jpg")))
        assert image.size == (50, 30)

    def test_main_when_align_archive_missing_then_returns_error(self, tmp_path):
        assert main(["align", str(tmp_path / "missing.zip")]) == 1
