"""
Per-document question splitting.

Renders a PDF, detects question boxes on every page and rebuilds one clean
image per question.

Exports:
    - process_document: Main entry point, PDF in, ZIP archive out
    - split_pages: Detection + compositing over already rendered pages
    - SplitConfig, CropConfig, DetectionConfig: Settings
    - SplitResult, DocumentResult, PageRecord: Results
"""

from .config import CropConfig, DetectionConfig, SplitConfig
from .pipeline import DocumentResult, PageRecord, SplitResult, process_document, split_pages

__all__ = [
    "CropConfig",
    "DetectionConfig",
    "SplitConfig",
    "DocumentResult",
    "PageRecord",
    "SplitResult",
    "process_document",
    "split_pages",
]
