"""
Module: cli

Purpose:
    Command-line entry point.

    examsplit split exam.pdf -o output/exam.zip
    examsplit batch -c 5 -r 3 -i exams -o output
    examsplit align output/exam.zip -p 10

Key Functions:
    - build_parser(): argparse definition
    - main(): Console script entry
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
import zipfile
from pathlib import Path
from typing import List, Optional

from examsplit import __version__
from examsplit.batch.config import BatchConfig
from examsplit.batch.interrupts import install_interrupt_handler
from examsplit.batch.rounds import RoundController, StopReason
from examsplit.batch.runner import make_document_runner
from examsplit.splitter.archive import realign_archive
from examsplit.splitter.call_log import DEFAULT_CALL_LOG
from examsplit.splitter.config import CropConfig, DetectionConfig, SplitConfig
from examsplit.splitter.detection.client import DetectionError, GeminiDetectionClient
from examsplit.splitter.pipeline import process_document

logger = logging.getLogger("examsplit.cli")


def _add_split_options(parser: argparse.ArgumentParser) -> None:
    defaults = SplitConfig()
    crop = defaults.crop
    parser.add_argument("--scale", type=float, default=defaults.scale, help="PDF render scale")
    parser.add_argument("--crop-padding", type=int, default=crop.crop_padding, help="Padding around each box (px)")
    parser.add_argument("--canvas-padding-left", type=int, default=crop.canvas_padding_left, help="Left canvas margin (px)")
    parser.add_argument("--canvas-padding-right", type=int, default=crop.canvas_padding_right, help="Right canvas margin (px)")
    parser.add_argument("--canvas-padding-y", type=int, default=crop.canvas_padding_y, help="Top/bottom canvas margin (px)")
    parser.add_argument("--merge-overlap", type=int, default=crop.merge_overlap, help="Continuation merge overlap (px)")
    parser.add_argument("--final-padding", type=int, default=defaults.final_padding, help="Padding after final trim (px)")
    parser.add_argument("--no-alignment", action="store_true", help="Skip trim-and-pad and width alignment")
    parser.add_argument("--detailed", action="store_true", help="Request detailed detection records")
    parser.add_argument("--model", default=defaults.detection.model, help="Detection model name")
    parser.add_argument("--call-log", type=Path, default=DEFAULT_CALL_LOG, help="JSONL log of detection calls")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="examsplit", description="Split exam PDFs into question images")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    split = sub.add_parser("split", help="Split one PDF")
    split.add_argument("pdf", type=Path, help="PDF file")
    split.add_argument("-o", "--output", type=Path, help="Output ZIP (default: output/<name>.zip)")
    _add_split_options(split)

    defaults = BatchConfig()
    batch = sub.add_parser("batch", help="Split every PDF in a folder")
    batch.add_argument("-c", "--concurrency", type=int, default=defaults.concurrency, help="Concurrent documents")
    batch.add_argument("-r", "--retries", type=int, default=defaults.max_retries, help="Max attempts per document")
    batch.add_argument("-i", "--input", type=Path, default=defaults.input_dir, help="Input folder")
    batch.add_argument("-o", "--output", type=Path, default=defaults.output_dir, help="Output folder")
    batch.add_argument("--force", action="store_true", help="Reprocess files that already have an archive")
    batch.add_argument("--max-rounds", type=int, default=defaults.max_rounds, help="Maximum retry rounds")
    batch.add_argument("--state-file", type=Path, default=defaults.state_path, help="Batch state file")
    _add_split_options(batch)

    align = sub.add_parser("align", help="Trim, pad and width-align the questions of an existing archive")
    align.add_argument("archive", type=Path, help="Archive written by split or batch")
    align.add_argument("-o", "--output", type=Path, help="Output ZIP (default: <archive>_aligned.zip)")
    align.add_argument("-p", "--padding", type=int, default=SplitConfig().final_padding, help="Padding after trimming (px)")
    align.add_argument("--no-alignment", action="store_true", help="Only trim and pad, keep each width")
    return parser


def split_config_from_args(args: argparse.Namespace) -> SplitConfig:
    """Build SplitConfig from parsed split options."""
    return SplitConfig(
        scale=args.scale,
        enable_alignment=not args.no_alignment,
        final_padding=args.final_padding,
        crop=CropConfig(
            crop_padding=args.crop_padding,
            canvas_padding_left=args.canvas_padding_left,
            canvas_padding_right=args.canvas_padding_right,
            canvas_padding_y=args.canvas_padding_y,
            merge_overlap=args.merge_overlap,
        ),
        detection=DetectionConfig(
            model=args.model,
            variant="detailed" if args.detailed else "basic",
        ),
    )


def _run_split(args: argparse.Namespace) -> int:
    config = split_config_from_args(args)
    output = args.output or Path("output") / f"{args.pdf.stem}.zip"
    detector = GeminiDetectionClient(config.detection)
    result = process_document(args.pdf, output, detector, config=config, call_log_path=args.call_log)
    for warning in result.warnings:
        logger.warning(warning)
    logger.info(f"Extracted {result.question_count} questions to {result.output_path}")
    return 0


def _run_align(args: argparse.Namespace) -> int:
    if args.padding < 0:
        raise ValueError(f"padding must be >= 0, got {args.padding}")
    output = realign_archive(args.archive, args.output, padding=args.padding, align=not args.no_alignment)
    logger.info(f"Saved {output}")
    return 0


def _run_batch(args: argparse.Namespace) -> int:
    config = BatchConfig(
        input_dir=args.input,
        output_dir=args.output,
        concurrency=args.concurrency,
        max_retries=args.retries,
        force=args.force,
        max_rounds=args.max_rounds,
        state_path=args.state_file,
    )
    split_config = split_config_from_args(args)
    detector = GeminiDetectionClient(split_config.detection)
    runner = make_document_runner(detector, split_config, call_log_path=args.call_log)

    logger.info(f"Input:  {config.input_dir.resolve()}")
    logger.info(f"Output: {config.output_dir.resolve()}")
    logger.info(f"Concurrency: {config.concurrency}, max retries: {config.max_retries}")

    stop_event = threading.Event()
    previous_handler = install_interrupt_handler(stop_event)
    try:
        result = RoundController(config, runner, stop_event=stop_event).run()
    finally:
        signal.signal(signal.SIGINT, previous_handler)
    if result.stop_reason is StopReason.CANCELLED:
        return 130
    return 0 if not result.failed else 1


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "split":
            return _run_split(args)
        if args.command == "align":
            return _run_align(args)
        return _run_batch(args)
    except (FileNotFoundError, ValueError, RuntimeError, DetectionError, zipfile.BadZipFile) as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
