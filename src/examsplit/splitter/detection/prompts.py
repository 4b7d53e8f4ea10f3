"""Prompt text and response schemas sent to the question detector."""

from __future__ import annotations

from typing import Any, Dict

BASIC_PROMPT = """\
Analyse this exam page image and split it into individual questions. The page
may use a multi-column or a single-column layout.

Rules:
1. One question number = one object. Every main question number on the page
   ("13.", "14.", "15.") gets its own JSON object. Never merge different
   question numbers.
2. Exclude section headings such as "Part I: Multiple choice" and
   instructions like "this section is worth N marks". A question's box starts
   tightly at its number.
3. Include everything that belongs to the question: sub-questions, figures,
   graphs and answer options (A, B, C, D).
4. When a question spans two columns (bottom of the left column to the top
   of the right column), give one box per part in boxes_2d, in reading order.
5. If the top of the page is clearly the unfinished tail of a question from
   the previous page (no new question number), mark it with id="continuation".

Output:
- Only a JSON array of detected items.
- boxes_2d uses normalized coordinates [ymin, xmin, ymax, xmax] (0-1000).
- A single-column question has exactly one box.

Example item:
{"id": "13", "boxes_2d": [[ymin, xmin, ymax, xmax]]}
"""

DETAILED_SUFFIX = """
For every item also return:
- markdown: the question text transcribed as Markdown (LaTeX for formulas)
- tags: knowledge-point tags
- type: one of "choice", "fill", "solve"
- difficulty: integer 1-5
- analysis: a short solution outline
- graphic_boxes_2d: boxes of figures inside the question (may be empty)
"""

_BOX_LIST = {
    "type": "ARRAY",
    "items": {"type": "ARRAY", "items": {"type": "NUMBER"}},
}


def build_prompt(variant: str = "basic") -> str:
    """Prompt for the requested record shape."""
    if variant == "detailed":
        return BASIC_PROMPT + DETAILED_SUFFIX
    return BASIC_PROMPT


def build_response_schema(variant: str = "basic") -> Dict[str, Any]:
    """Structured-output schema: an array of detection records."""
    properties: Dict[str, Any] = {
        "id": {
            "type": "STRING",
            "description": "Question number such as '1' or '13'; 'continuation' for carried-over content.",
        },
        "boxes_2d": {
            **_BOX_LIST,
            "description": "Boxes of the question [ymin, xmin, ymax, xmax] (0-1000), in reading order.",
        },
    }
    required = ["id", "boxes_2d"]

    if variant == "detailed":
        properties.update({
            "markdown": {"type": "STRING"},
            "tags": {"type": "ARRAY", "items": {"type": "STRING"}},
            "type": {"type": "STRING", "enum": ["choice", "fill", "solve"]},
            "difficulty": {"type": "INTEGER"},
            "analysis": {"type": "STRING"},
            "graphic_boxes_2d": dict(_BOX_LIST),
        })
        required += ["markdown", "type"]

    return {
        "type": "ARRAY",
        "items": {"type": "OBJECT", "properties": properties, "required": required},
    }
