"""
Module: splitter.config

Purpose:
    Configuration dataclasses for the per-document splitting pipeline.
    Provides immutable settings for rendering scale, crop padding, canvas
    layout and the detection service.

Key Classes:
    - CropConfig: Fragment cropping and compositing settings
    - DetectionConfig: Detection service settings
    - SplitConfig: Main configuration for one document run

Dependencies:
    - dataclasses: For frozen dataclass support

Used By:
    - splitter.pipeline: Uses SplitConfig for pipeline settings
    - splitter.slicing.compositor: Uses CropConfig for padding
    - splitter.detection.client: Uses DetectionConfig
"""

from dataclasses import dataclass, field

from examsplit.common.thresholds import IMAGE_THRESHOLDS, LAYOUT_THRESHOLDS

DETECTION_VARIANTS = ("basic", "detailed")


@dataclass(frozen=True)
class CropConfig:
    """
    Configuration for cutting and stitching question fragments.

    Attributes:
        crop_padding: Pixels added around each detection box before cropping.
        canvas_padding_left: Left margin of the composite canvas.
        canvas_padding_right: Right margin of the composite canvas.
        canvas_padding_y: Top and bottom margin of the composite canvas.
        fragment_gap: Vertical pixels between stacked fragments.
        merge_overlap: Pixels a continuation is pulled up into the previous
            question when merging (negative merge gap).
        containment_tolerance: Slack (0..1000 units) for box deduplication.
    """
    crop_padding: int = 25
    canvas_padding_left: int = 0
    canvas_padding_right: int = 0
    canvas_padding_y: int = 0
    fragment_gap: int = LAYOUT_THRESHOLDS.fragment_gap
    merge_overlap: int = 0
    containment_tolerance: int = LAYOUT_THRESHOLDS.containment_tolerance

    def __post_init__(self) -> None:
        """Validate configuration on construction."""
        for name in (
            "crop_padding",
            "canvas_padding_left",
            "canvas_padding_right",
            "canvas_padding_y",
            "fragment_gap",
            "merge_overlap",
            "containment_tolerance",
        ):
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"{name} must be non-negative: {value}")


@dataclass(frozen=True)
class DetectionConfig:
    """
    Configuration for the question detection service.

    Attributes:
        model: Model identifier sent to the service.
        base_url: Service root; the request goes to
            ``{base_url}/models/{model}:generateContent``.
        api_key_env: Environment variable holding the API key.
        variant: "basic" or "detailed" record shape.
        max_retries: Attempts per page before the page is fatal.
        retry_delay: Seconds between attempts for non rate-limit failures.
        timeout: HTTP timeout in seconds.
    """
    model: str = "gemini-3-flash-preview"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    api_key_env: str = "GEMINI_API_KEY"
    variant: str = "basic"
    max_retries: int = 5
    retry_delay: float = 2.0
    timeout: float = 120.0

    def __post_init__(self) -> None:
        """Validate configuration on construction."""
        if self.variant not in DETECTION_VARIANTS:
            raise ValueError(f"variant must be one of {DETECTION_VARIANTS}: {self.variant!r}")
        if not self.model:
            raise ValueError("model must not be empty")
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1: {self.max_retries}")
        if self.retry_delay < 0:
            raise ValueError(f"retry_delay must be non-negative: {self.retry_delay}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive: {self.timeout}")


@dataclass(frozen=True)
class SplitConfig:
    """
    Configuration for splitting one PDF into question images.

    Attributes:
        scale: PDF render scale factor (default 3.0)
        jpeg_quality: Encoding quality for question images
        page_jpeg_quality: Encoding quality for full-page renders
        enable_alignment: Trim-and-pad every question then align widths
        final_padding: Uniform padding after the final whitespace trim
        crop: Fragment cropping settings
        detection: Detection service settings
    """
    scale: float = 3.0
    jpeg_quality: int = IMAGE_THRESHOLDS.jpeg_quality
    page_jpeg_quality: int = IMAGE_THRESHOLDS.page_jpeg_quality
    enable_alignment: bool = True
    final_padding: int = LAYOUT_THRESHOLDS.final_padding
    crop: CropConfig = field(default_factory=CropConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)

    def __post_init__(self) -> None:
        """Validate configuration on construction."""
        if self.scale <= 0:
            raise ValueError(f"scale must be positive: {self.scale}")
        if not 1 <= self.jpeg_quality <= 100:
            raise ValueError(f"jpeg_quality must be in 1..100: {self.jpeg_quality}")
        if not 1 <= self.page_jpeg_quality <= 100:
            raise ValueError(f"page_jpeg_quality must be in 1..100: {self.page_jpeg_quality}")
        if self.final_padding < 0:
            raise ValueError(f"final_padding must be non-negative: {self.final_padding}")
