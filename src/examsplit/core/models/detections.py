"""
Module: detections

Purpose:
    Detection records returned by the question detector. The detector can
    be asked for two record shapes; they are modeled as separate frozen
    classes tagged by a ``kind`` literal so callers can match on them
    exhaustively instead of probing optional fields.

Key Classes:
    - BasicDetection: id + boxes
    - DetailedDetection: id + boxes + analysis fields

Key Functions:
    - parse_detection(): Build one record from wire JSON
    - parse_detections(): Build a list of records from a wire payload

Used By:
    - splitter.detection.client
    - splitter.pipeline
    - splitter.archive
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Mapping, Tuple, Union

from .bounds import NormalizedBox

logger = logging.getLogger(__name__)

CONTINUATION_ID = "continuation"

DetectionVariant = Literal["basic", "detailed"]


class DetectionFormatError(ValueError):
    """Raised when a detector payload cannot be turned into detections."""


@dataclass(frozen=True)
class BasicDetection:
    """
    One detected question on a page.

    Attributes:
        id: Question number as printed, or CONTINUATION_ID for the tail of
            the previous page's last question.
        boxes: Boxes in reading order (column by column).
    """
    id: str
    boxes: Tuple[NormalizedBox, ...]
    kind: Literal["basic"] = field(default="basic", init=False)

    @property
    def is_continuation(self) -> bool:
        return self.id == CONTINUATION_ID

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "boxes_2d": [b.to_list() for b in self.boxes]}


@dataclass(frozen=True)
class DetailedDetection:
    """
    Detected question with the detector's content analysis attached.

    Attributes:
        id: Question number or CONTINUATION_ID.
        boxes: Boxes in reading order.
        markdown: Transcribed question text.
        tags: Knowledge-point tags.
        question_type: e.g. "choice", "fill", "solve".
        difficulty: Detector's difficulty estimate (1-5), if given.
        analysis: Free-text solution notes.
        graphic_boxes: Boxes of figures inside the question.
    """
    id: str
    boxes: Tuple[NormalizedBox, ...]
    markdown: str = ""
    tags: Tuple[str, ...] = ()
    question_type: str = ""
    difficulty: int | None = None
    analysis: str = ""
    graphic_boxes: Tuple[NormalizedBox, ...] = ()
    kind: Literal["detailed"] = field(default="detailed", init=False)

    @property
    def is_continuation(self) -> bool:
        return self.id == CONTINUATION_ID

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "id": self.id,
            "boxes_2d": [b.to_list() for b in self.boxes],
            "markdown": self.markdown,
            "tags": list(self.tags),
            "type": self.question_type,
            "analysis": self.analysis,
        }
        if self.difficulty is not None:
            d["difficulty"] = self.difficulty
        if self.graphic_boxes:
            d["graphic_boxes_2d"] = [b.to_list() for b in self.graphic_boxes]
        return d


Detection = Union[BasicDetection, DetailedDetection]


def _parse_boxes(raw: Any, *, record_id: str) -> Tuple[NormalizedBox, ...]:
    """Parse a boxes_2d value, tolerating a single flat box."""
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise DetectionFormatError(f"boxes_2d for '{record_id}' must be a list")
    # Some responses give one box as a flat [ymin, xmin, ymax, xmax]
    if len(raw) == 4 and all(isinstance(v, (int, float)) for v in raw):
        raw = [raw]

    boxes: List[NormalizedBox] = []
    for item in raw:
        try:
            boxes.append(NormalizedBox.from_sequence(item))
        except (TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed box for question '{record_id}': {e}")
    return tuple(boxes)


def _parse_tags(raw: Any) -> Tuple[str, ...]:
    """Tag list from the wire; a bare string is a single tag."""
    if not raw:
        return ()
    if isinstance(raw, str):
        raw = [raw]
    return tuple(str(t) for t in raw)


def parse_detection(
    record: Mapping[str, Any],
    variant: DetectionVariant = "basic",
) -> Detection:
    """
    Build a detection from one wire record.

    Args:
        record: JSON object with at least ``id`` and ``boxes_2d``.
        variant: Which record shape to build.

    Returns:
        BasicDetection or DetailedDetection.

    Raises:
        DetectionFormatError: If the record is not an object or has no id.
    """
    if not isinstance(record, Mapping):
        raise DetectionFormatError(f"Detection record must be an object, got {type(record).__name__}")
    raw_id = record.get("id")
    if raw_id is None or str(raw_id).strip() == "":
        raise DetectionFormatError(f"Detection record has no id: {dict(record)!r}")
    record_id = str(raw_id).strip()

    boxes = _parse_boxes(record.get("boxes_2d"), record_id=record_id)

    if variant == "basic":
        return BasicDetection(id=record_id, boxes=boxes)

    difficulty = record.get("difficulty")
    return DetailedDetection(
        id=record_id,
        boxes=boxes,
        markdown=str(record.get("markdown") or ""),
        tags=_parse_tags(record.get("tags")),
        question_type=str(record.get("type") or ""),
        difficulty=int(difficulty) if isinstance(difficulty, (int, float)) else None,
        analysis=str(record.get("analysis") or ""),
        graphic_boxes=_parse_boxes(record.get("graphic_boxes_2d"), record_id=record_id),
    )


def parse_detections(
    payload: Any,
    variant: DetectionVariant = "basic",
) -> List[Detection]:
    """
    Build detections from a full detector response.

    Raises:
        DetectionFormatError: If payload is not a JSON array.
    """
    if not isinstance(payload, list):
        raise DetectionFormatError("Invalid response format: Expected Array")
    return [parse_detection(record, variant) for record in payload]
