"""
Question detection service access.

Exports:
    - GeminiDetectionClient, DetectionClient: Service clients
    - detect_page: Per-page detection with retry
    - DetectionError, RateLimitError, PageDetectionError: Failure types
"""

from .client import (
    DetectionClient,
    DetectionError,
    GeminiDetectionClient,
    PageDetectionError,
    RateLimitError,
    detect_page,
)
from .prompts import build_prompt, build_response_schema

__all__ = [
    "DetectionClient",
    "DetectionError",
    "GeminiDetectionClient",
    "PageDetectionError",
    "RateLimitError",
    "detect_page",
    "build_prompt",
    "build_response_schema",
]
