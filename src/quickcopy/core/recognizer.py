# -*- coding: utf-8 -*-
"""
src/quickcopy/core/recognizer.py

The call boundary between the pipeline and the text-recognition engine.

The engine itself is treated as an opaque service that accepts encoded image
bytes and answers with either plain text, a structured payload (JSON text or
a mapping with per-block bounding boxes), or an ``"ERROR: ..."`` string.
``RecognizerAdapter`` normalizes all of those into a RecognitionResult and
never lets a malformed payload or a service exception escape.

Two implementations are selected at construction time:
- ServiceRecognizerAdapter wraps a real service (see easyocr_service.py).
- FakeRecognizerAdapter returns scripted results for tests and for running
  the app without an OCR model.
"""

import json
import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Iterable, List, Mapping, Optional, Protocol, Union

from .errors import ErrorKind, InvalidInputError
from .image_processor import DEFAULT_JPEG_QUALITY, encode_jpeg
from .ocr_result import Rect, RecognitionResult, TextBlock, TextLine
from .pixel_buffer import PixelBuffer

logger = logging.getLogger(__name__)

ERROR_PREFIX = "ERROR:"

ServicePayload = Union[str, Mapping[str, Any], None]


class RecognizerService(Protocol):
    """
    Opaque text-recognition engine.

    Implementations accept encoded image bytes and return plain text, a
    structured payload, or an ``"ERROR: ..."`` string.
    """

    def initialize(self) -> bool:
        ...

    def recognize(self, image_bytes: bytes) -> ServicePayload:
        ...

    def close(self) -> None:
        ...


# =============================================================================
# Payload normalization
# =============================================================================

def _clamp01(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return min(max(value, 0.0), 1.0)


def _parse_rect(raw: Mapping[str, Any]) -> Rect:
    return Rect(
        x=float(raw.get("left", 0.0)),
        y=float(raw.get("top", 0.0)),
        width=float(raw.get("width", 0.0)),
        height=float(raw.get("height", 0.0)),
    )


def _parse_line(raw: Mapping[str, Any]) -> TextLine:
    return TextLine(
        text=str(raw.get("text", "")),
        bounding_box=_parse_rect(raw),
        confidence=_clamp01(float(raw.get("confidence", 1.0))),
    )


def _parse_block(raw: Mapping[str, Any]) -> TextBlock:
    lines = tuple(_parse_line(line) for line in (raw.get("lines") or ()))
    return TextBlock(
        text=str(raw.get("text", "")),
        bounding_box=_parse_rect(raw),
        confidence=_clamp01(float(raw.get("confidence", 1.0))),
        lines=lines,
    )


def _parse_blocks(raw_blocks: Any) -> List[TextBlock]:
    if not raw_blocks:
        return []
    try:
        return [_parse_block(block) for block in raw_blocks]
    except (TypeError, ValueError, AttributeError) as e:
        # Keep the text; only the structure is lost.
        logger.warning(f"Discarding malformed block data: {e}")
        return []


def _from_mapping(payload: Mapping[str, Any], raw_text: Optional[str]) -> RecognitionResult:
    error = payload.get("error")
    if error:
        return RecognitionResult.failure(str(error))

    text = payload.get("text")
    if not isinstance(text, str):
        if raw_text is not None:
            # Structure we do not understand; the raw reply is the text.
            return RecognitionResult.ok(raw_text)
        text = "" if text is None else str(text)

    return RecognitionResult.ok(text, _parse_blocks(payload.get("blocks")))


def parse_service_payload(payload: ServicePayload) -> RecognitionResult:
    """
    Normalizes a recognizer service reply into a RecognitionResult.

    - ``None`` or an empty string is an empty success.
    - A string starting with ``"ERROR:"`` or a mapping with an ``"error"``
      key is a failure.
    - A JSON object string or a mapping with ``text``/``blocks`` is a
      structured success.
    - Any other string (including unparseable JSON) is plain text.
    """
    if payload is None:
        return RecognitionResult.empty()

    if isinstance(payload, Mapping):
        return _from_mapping(payload, raw_text=None)

    if not isinstance(payload, str):
        return RecognitionResult.ok(str(payload))

    if payload == "":
        return RecognitionResult.empty()

    if payload.startswith(ERROR_PREFIX):
        return RecognitionResult.failure(payload[len(ERROR_PREFIX):].strip())

    try:
        decoded = json.loads(payload)
    except ValueError:
        return RecognitionResult.ok(payload)

    if isinstance(decoded, Mapping):
        return _from_mapping(decoded, raw_text=payload)
    return RecognitionResult.ok(payload)


# =============================================================================
# Adapters
# =============================================================================

class RecognizerAdapter(ABC):
    """
    Capability interface for text recognition.

    ``recognize`` is synchronous and may take hundreds of milliseconds; the
    orchestrator runs it on a worker thread. It always returns a result and
    reports every failure through ``success=False``.
    """

    def __init__(self):
        self._initialized = False
        self._busy = threading.Lock()

    @property
    def is_ready(self) -> bool:
        return self._initialized and not self._busy.locked()

    @abstractmethod
    def initialize(self) -> bool:
        ...

    @abstractmethod
    def _recognize(self, buf: PixelBuffer, quality: int) -> RecognitionResult:
        ...

    def recognize(self, buf: Optional[PixelBuffer],
                  quality: int = DEFAULT_JPEG_QUALITY) -> RecognitionResult:
        """
        Recognizes text in ``buf``.

        Args:
            buf (PixelBuffer): The preprocessed image.
            quality (int): JPEG quality used when encoding for the service.

        Returns:
            RecognitionResult: Stamped with processing time and the
            dimensions of ``buf``.
        """
        if not self._initialized:
            return RecognitionResult.failure("OCR model not ready", ErrorKind.RECOGNIZER_UNAVAILABLE)
        if buf is None or buf.data is None or buf.data.size == 0:
            return RecognitionResult.failure("Image is null", ErrorKind.INVALID_INPUT)
        if not self._busy.acquire(blocking=False):
            return RecognitionResult.failure("Already processing an image")

        start = time.perf_counter()
        try:
            logger.info(f"Processing image: {buf.width}x{buf.height}")
            try:
                result = self._recognize(buf, quality)
            except InvalidInputError as e:
                result = RecognitionResult.failure(str(e), ErrorKind.INVALID_INPUT)
            except Exception as e:
                logger.error(f"Processing error: {e}", exc_info=True)
                result = RecognitionResult.failure(f"{type(e).__name__}: {e}")

            elapsed_ms = (time.perf_counter() - start) * 1000.0
            result = result.with_timing(elapsed_ms, buf.width, buf.height)
            logger.info(f"OCR completed in {elapsed_ms:.0f}ms. Found {len(result.blocks)} blocks")
            return result
        finally:
            self._busy.release()

    def close(self) -> None:
        self._initialized = False


class ServiceRecognizerAdapter(RecognizerAdapter):
    """
    Adapter over a real recognizer service.

    ``min_confidence`` is advisory: blocks below it are counted in the log
    but kept in the result.
    """

    def __init__(self, service: RecognizerService, min_confidence: float = 0.3):
        super().__init__()
        self.service = service
        self.min_confidence = min_confidence

    def initialize(self) -> bool:
        logger.info("Initializing recognizer service...")
        try:
            self._initialized = bool(self.service.initialize())
        except Exception as e:
            logger.error(f"Recognizer initialization error: {e}")
            self._initialized = False

        if self._initialized:
            logger.info("Recognizer service initialized successfully")
        else:
            logger.error("Failed to initialize recognizer service")
        return self._initialized

    def _recognize(self, buf: PixelBuffer, quality: int) -> RecognitionResult:
        image_bytes = encode_jpeg(buf, quality)
        result = parse_service_payload(self.service.recognize(image_bytes))

        if result.success and result.blocks:
            low = sum(1 for block in result.blocks if block.confidence < self.min_confidence)
            if low:
                logger.debug(f"{low} of {len(result.blocks)} blocks below confidence {self.min_confidence:.2f}")
        return result

    def close(self) -> None:
        logger.info("Cleaning up recognizer resources...")
        try:
            self.service.close()
        finally:
            super().close()


def default_mock_result() -> RecognitionResult:
    """The canned two-block response used when no real recognizer is present."""
    blocks = [
        TextBlock("Hello World", Rect(100, 100, 200, 50), 0.95),
        TextBlock("Sample OCR Text", Rect(100, 200, 250, 50), 0.92),
    ]
    return RecognitionResult.ok("Hello World\nSample OCR Text", blocks)


class FakeRecognizerAdapter(RecognizerAdapter):
    """
    Scripted recognizer.

    Returns queued results in order, then ``default`` for every further call.
    Items in ``results`` may also be exceptions, which are raised from inside
    the call to exercise the adapter's failure path.

    Attributes:
        calls (List[PixelBuffer]): Every buffer passed to ``recognize``.
    """

    def __init__(self, results: Iterable[Union[RecognitionResult, Exception]] = (),
                 default: Optional[RecognitionResult] = None,
                 latency: float = 0.0, ready: bool = True):
        super().__init__()
        self._queue = deque(results)
        self.default = default or default_mock_result()
        self.latency = latency
        self._ready_on_init = ready
        self.calls: List[PixelBuffer] = []
        self.closed = False
        if ready:
            self._initialized = True

    def initialize(self) -> bool:
        self._initialized = self._ready_on_init
        if self._initialized:
            logger.info("OCR initialized (fake recognizer)")
        else:
            logger.error("Fake recognizer configured as not ready")
        return self._initialized

    def _recognize(self, buf: PixelBuffer, quality: int) -> RecognitionResult:
        self.calls.append(buf)
        if self.latency:
            time.sleep(self.latency)
        outcome = self._queue.popleft() if self._queue else self.default
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self) -> None:
        self.closed = True
        super().close()
