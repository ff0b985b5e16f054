# -*- coding: utf-8 -*-
"""
The Core Processing Package for QuickCopy.

This package holds the pipeline from frame capture to clipboard delivery:

- `pixel_buffer`: The in-memory raster type shared by every stage.
- `image_processor`: Pixel transforms, codecs and the preprocessing chain.
- `recognizer`: The adapter around the text-recognition service.
- `easyocr_service`: The EasyOCR-backed recognition service.
- `coordinate_mapper`: Maps recognized boxes into display space.
- `capture`: Camera/screen frame acquisition.
- `pipeline`: The orchestrator state machine.

`easyocr_service` is not imported here so the rest of the core can be used
without loading the OCR model stack.
"""

from .capture import CaptureSource
from .errors import ErrorKind, QuickCopyError
from .image_processor import ImageProcessor, PreprocessOptions
from .ocr_result import Rect, RecognitionResult, TextBlock, TextLine
from .pipeline import CycleOutcome, PipelineEvents, PipelineOrchestrator, PipelineSettings, PipelineState
from .pixel_buffer import PixelBuffer, PixelFormat
from .recognizer import FakeRecognizerAdapter, RecognizerAdapter, ServiceRecognizerAdapter

__all__ = [
    "CaptureSource",
    "CycleOutcome",
    "ErrorKind",
    "FakeRecognizerAdapter",
    "ImageProcessor",
    "PipelineEvents",
    "PipelineOrchestrator",
    "PipelineSettings",
    "PipelineState",
    "PixelBuffer",
    "PixelFormat",
    "PreprocessOptions",
    "QuickCopyError",
    "Rect",
    "RecognitionResult",
    "RecognizerAdapter",
    "ServiceRecognizerAdapter",
    "TextBlock",
    "TextLine",
]
