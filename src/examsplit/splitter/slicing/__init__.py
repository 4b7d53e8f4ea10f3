"""
Module: splitter.slicing

Purpose:
    Turning detection boxes into question images: compositing fragments,
    merging continuations and aligning widths.

Key Modules:
    - compositor: Crop, edge-peel and stack the boxes of one detection
    - merger: Attach continuation fragments to the previous question
    - aligner: Trim-and-pad and width alignment for a finished document

Dependencies:
    - PIL: Image manipulation
    - examsplit.core.models: Geometry and question records

Used By:
    - splitter.pipeline
"""

from .aligner import align_widths, normalize_questions
from .compositor import Composite, Fragment, composite_detection, composite_fragments, cut_fragment
from .merger import merge_continuation, stack_vertically

__all__ = [
    "align_widths",
    "normalize_questions",
    "Composite",
    "Fragment",
    "composite_detection",
    "composite_fragments",
    "cut_fragment",
    "merge_continuation",
    "stack_vertically",
]
