"""
Data models shared by the splitter and the batch runner.

Exports:
    - NormalizedBox, PixelRect, TrimRect: Geometry
    - BasicDetection, DetailedDetection, Detection: Detector records
    - QuestionImage, QuestionArena: Per-document results
"""

from .bounds import NormalizedBox, PixelRect, TrimRect
from .detections import (
    CONTINUATION_ID,
    BasicDetection,
    DetailedDetection,
    Detection,
    DetectionFormatError,
    parse_detection,
    parse_detections,
)
from .questions import QuestionArena, QuestionImage

__all__ = [
    "NormalizedBox",
    "PixelRect",
    "TrimRect",
    "CONTINUATION_ID",
    "BasicDetection",
    "DetailedDetection",
    "Detection",
    "DetectionFormatError",
    "parse_detection",
    "parse_detections",
    "QuestionArena",
    "QuestionImage",
]
