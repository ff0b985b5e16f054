# -*- coding: utf-8 -*-
"""
src/quickcopy/core/ocr_result.py

Result types produced by the recognizer adapter.

Bounding boxes on TextBlock and TextLine are in source-image pixel space:
origin at the top-left corner, Y growing downward.
"""

from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

from .errors import ErrorKind


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class TextLine:
    """A single recognized line of text within a block."""
    text: str
    bounding_box: Rect
    confidence: float = 1.0


@dataclass(frozen=True)
class TextBlock:
    """A recognized text span with its bounding box and the lines inside it."""
    text: str
    bounding_box: Rect
    confidence: float = 1.0
    lines: Tuple[TextLine, ...] = ()


@dataclass(frozen=True)
class RecognitionResult:
    """
    Outcome of one recognition call.

    Exactly one of the success payload (``text``/``blocks``) and ``error`` is
    populated. Use the ``ok``, ``empty`` and ``failure`` constructors.

    Attributes:
        success (bool): Whether the recognizer produced a result.
        text (Optional[str]): Full recognized text; never None on success,
            possibly empty.
        blocks (Tuple[TextBlock, ...]): Structured blocks, in reading order.
        processing_ms (float): Wall time of the recognition call.
        image_width (int): Width of the image the recognizer saw.
        image_height (int): Height of the image the recognizer saw.
        error (Optional[str]): Technical failure description.
        error_kind (Optional[ErrorKind]): Category of the failure.
    """
    success: bool
    text: Optional[str] = None
    blocks: Tuple[TextBlock, ...] = field(default_factory=tuple)
    processing_ms: float = 0.0
    image_width: int = 0
    image_height: int = 0
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @classmethod
    def ok(cls, text: Optional[str], blocks=None, processing_ms: float = 0.0) -> "RecognitionResult":
        return cls(
            success=True,
            text=text if text is not None else "",
            blocks=tuple(blocks or ()),
            processing_ms=processing_ms,
        )

    @classmethod
    def empty(cls) -> "RecognitionResult":
        return cls(success=True, text="")

    @classmethod
    def failure(cls, message: str,
                kind: ErrorKind = ErrorKind.RECOGNITION_FAILED) -> "RecognitionResult":
        return cls(success=False, error=message or "Unknown OCR error", error_kind=kind)

    @property
    def has_text(self) -> bool:
        return self.success and bool(self.text and self.text.strip())

    def with_timing(self, processing_ms: float, image_width: int, image_height: int) -> "RecognitionResult":
        """Returns a copy stamped with duration and source image dimensions."""
        return replace(
            self,
            processing_ms=processing_ms,
            image_width=image_width,
            image_height=image_height,
        )
