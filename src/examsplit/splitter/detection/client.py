"""
Module: splitter.detection.client

Purpose:
    Client for the question detection service and the per-page retry
    policy around it. The service receives one JPEG page and returns a JSON
    array of {id, boxes_2d} records.

Key Classes:
    - DetectionClient: Protocol for anything that can detect a page
    - GeminiDetectionClient: generateContent over HTTP (requests)

Key Functions:
    - detect_page(): Detect one rendered page with retry and backoff

Dependencies:
    - requests: HTTP transport
    - core.models.detections: Record parsing

Used By:
    - splitter.pipeline
"""

from __future__ import annotations

import base64
import json
import logging
import os
import time
from typing import Any, Callable, List, Optional, Protocol

import requests

from examsplit.core.models.detections import (
    Detection,
    DetectionFormatError,
    parse_detections,
)

from ..call_log import DetectionCallLog
from ..config import DetectionConfig
from ..rendering import RenderedPage, encode_jpeg
from .prompts import build_prompt, build_response_schema

logger = logging.getLogger(__name__)


class DetectionError(Exception):
    """A detection call failed."""


class RateLimitError(DetectionError):
    """The detection service rejected the call with HTTP 429."""


class PageDetectionError(DetectionError):
    """Detection for a page failed after every retry."""

    def __init__(self, message: str, *, page_number: int, rate_limited: bool = False):
        super().__init__(message)
        self.page_number = page_number
        self.rate_limited = rate_limited


class DetectionClient(Protocol):
    """Anything that turns a JPEG page into a raw detection payload."""

    def detect(self, image_jpeg: bytes) -> Any:
        ...


class GeminiDetectionClient:
    """
    Detection over the Gemini generateContent endpoint.

    Attributes:
        config: Model, endpoint and timeout settings.

    Example:
        >>> client = GeminiDetectionClient(DetectionConfig())
        >>> payload = client.detect(jpeg_bytes)
        >>> payload[0]["id"]
        '13'
    """

    def __init__(
        self,
        config: Optional[DetectionConfig] = None,
        *,
        api_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config or DetectionConfig()
        self._api_key = api_key or os.getenv(self.config.api_key_env)
        if not self._api_key:
            raise RuntimeError(
                f"{self.config.api_key_env} environment variable is required "
                "for the detection service"
            )
        self._session = session or requests.Session()
        self._prompt = build_prompt(self.config.variant)
        self._schema = build_response_schema(self.config.variant)

    @property
    def url(self) -> str:
        return f"{self.config.base_url.rstrip('/')}/models/{self.config.model}:generateContent"

    def _request_body(self, image_jpeg: bytes) -> dict:
        return {
            "contents": [{
                "parts": [
                    {"inline_data": {
                        "mime_type": "image/jpeg",
                        "data": base64.b64encode(image_jpeg).decode("ascii"),
                    }},
                    {"text": self._prompt},
                ],
            }],
            "generationConfig": {
                "response_mime_type": "application/json",
                "response_schema": self._schema,
            },
        }

    def detect(self, image_jpeg: bytes) -> Any:
        """
        Send one page and return the decoded JSON payload.

        Raises:
            RateLimitError: On HTTP 429.
            DetectionError: On transport errors or other non-2xx responses.
            DetectionFormatError: If the response has no JSON text part.
        """
        try:
            response = self._session.post(
                self.url,
                params={"key": self._api_key},
                json=self._request_body(image_jpeg),
                timeout=self.config.timeout,
            )
        except requests.RequestException as e:
            raise DetectionError(f"API request failed: {e}") from e

        if response.status_code == 429:
            raise RateLimitError(f"API request failed: 429 {response.text[:500]}")
        if not response.ok:
            raise DetectionError(f"API request failed: {response.status_code} {response.text[:500]}")

        try:
            data = response.json()
            parts = data["candidates"][0]["content"]["parts"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise DetectionFormatError("Invalid API response format") from e

        text = next((p["text"] for p in parts if isinstance(p, dict) and p.get("text")), None)
        if text is None:
            raise DetectionFormatError("No text content in API response")
        try:
            return json.loads(text)
        except ValueError as e:
            raise DetectionFormatError(f"Response text is not JSON: {e}") from e


def detect_page(
    client: DetectionClient,
    page: RenderedPage,
    config: DetectionConfig,
    *,
    jpeg_quality: int = 90,
    call_log: Optional[DetectionCallLog] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> List[Detection]:
    """
    Detect the questions on one page, retrying transient failures.

    Rate-limited attempts wait 2**attempt seconds; other failures wait
    config.retry_delay seconds.

    Args:
        client: Detection client.
        page: Rendered page.
        config: Retry ceiling, delay and record variant.
        jpeg_quality: Encoding quality of the uploaded page.
        call_log: Optional per-attempt log.
        sleep: Delay function (injected in tests).

    Returns:
        Parsed detections in the order the service returned them.

    Raises:
        PageDetectionError: After config.max_retries failed attempts.
    """
    payload = encode_jpeg(page.image, jpeg_quality)
    last_error: Optional[Exception] = None
    rate_limited = False

    for attempt in range(1, config.max_retries + 1):
        started = time.monotonic()
        try:
            detections = parse_detections(client.detect(payload), config.variant)
        except (DetectionError, DetectionFormatError) as e:
            last_error = e
            rate_limited = isinstance(e, RateLimitError)
            duration_ms = int((time.monotonic() - started) * 1000)
            if call_log:
                call_log.record_failure(page.page_number, str(e), duration_ms, attempt)
            if attempt >= config.max_retries:
                break
            wait = 2 ** attempt if rate_limited else config.retry_delay
            logger.warning(
                f"Detection attempt {attempt} for page {page.page_number} failed: {e}. "
                f"Retrying in {wait}s..."
            )
            sleep(wait)
            continue

        duration_ms = int((time.monotonic() - started) * 1000)
        if call_log:
            call_log.record_success(page.page_number, len(detections), duration_ms, attempt)
        return detections

    raise PageDetectionError(
        f"Detection failed for page {page.page_number} after {config.max_retries} attempts: {last_error}",
        page_number=page.page_number,
        rate_limited=rate_limited,
    ) from last_error
