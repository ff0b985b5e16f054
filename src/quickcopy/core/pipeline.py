# -*- coding: utf-8 -*-
"""
src/quickcopy/core/pipeline.py

The capture-to-clipboard state machine.

PipelineOrchestrator drives one scan cycle at a time:

    Idle -> Capturing -> Processing -> (Copied | Error) -> Idle

A trigger is accepted only in Idle; anything arriving mid-cycle is logged and
dropped. Each accepted trigger ends in exactly one Copied or Error
notification, after which the orchestrator settles back to Idle on its own.
Collaborators (capture source, recognizer, clipboard, history) are passed in
at construction; UI feedback leaves through PipelineEvents listeners.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Protocol

from .coordinate_mapper import map_blocks
from .errors import (
    ErrorKind,
    InvalidInputError,
    NoTextDetectedError,
    QuickCopyError,
    RecognitionFailedError,
    RecognizerUnavailableError,
    StageTimeoutError,
)
from .image_processor import DEFAULT_JPEG_QUALITY, ImageProcessor, PreprocessOptions
from .ocr_result import Rect, RecognitionResult
from .pixel_buffer import PixelBuffer
from .recognizer import RecognizerAdapter

logger = logging.getLogger(__name__)


class PipelineState(Enum):
    IDLE = "Idle"
    CAPTURING = "Capturing"
    PROCESSING = "Processing"
    COPIED = "Copied"
    ERROR = "Error"


# --- User-facing messages ---

NO_TEXT_MESSAGE = "No text detected. Point at clearer text."
GENERIC_ERROR_MESSAGE = "Error processing image. Please try again."
INIT_FAILED_MESSAGE = "OCR initialization failed. Please restart app."

# Technical-cause keywords (matched case-insensitively) and the message shown
# for each. The first matching bucket wins.
ERROR_MESSAGE_BUCKETS = (
    (("model",), "Downloading OCR model... Please wait and try again."),
    (("memory",), "Out of memory. Please restart the app."),
    (("camera", "passthrough", "screen"), "Camera access error. Check permissions."),
)


def user_message_for(technical_message: Optional[str]) -> str:
    """Maps a technical failure description to a short user-facing message."""
    lowered = (technical_message or "").lower()
    for keywords, message in ERROR_MESSAGE_BUCKETS:
        if any(keyword in lowered for keyword in keywords):
            return message
    return GENERIC_ERROR_MESSAGE


def truncate_preview(text: str, limit: int) -> str:
    """Flattens newlines to spaces and cuts to ``limit`` characters plus '...'."""
    if not text:
        return ""
    text = text.replace("\n", " ").replace("\r", " ")
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


# =============================================================================
# Collaborator interfaces
# =============================================================================

class FrameSource(Protocol):
    async def capture(self) -> PixelBuffer:
        ...

    def close(self) -> None:
        ...


class DeliverySink(Protocol):
    def set_text(self, text: str) -> None:
        ...


class HistorySink(Protocol):
    def append(self, text: str) -> None:
        ...


class PipelineEvents:
    """
    Fire-and-forget feedback hooks.

    Listeners are called synchronously in registration order, in the same
    order as the state transitions that cause them. A listener that raises
    is logged and skipped; it never affects the pipeline.
    """

    def __init__(self):
        self.state_changed: List[Callable[[PipelineState], None]] = []
        self.highlight: List[Callable[[List[Rect]], None]] = []
        self.toast: List[Callable[[str], None]] = []
        self.haptic_success: List[Callable[[], None]] = []
        self.haptic_error: List[Callable[[], None]] = []

    @staticmethod
    def _fire(listeners, *args) -> None:
        for listener in list(listeners):
            try:
                listener(*args)
            except Exception as e:
                logger.error(f"Error in feedback listener {listener!r}: {e}", exc_info=True)

    def emit_state_changed(self, state: PipelineState) -> None:
        self._fire(self.state_changed, state)

    def emit_highlight(self, boxes: List[Rect]) -> None:
        self._fire(self.highlight, boxes)

    def emit_toast(self, message: str) -> None:
        logger.info(f"Toast: {message}")
        self._fire(self.toast, message)

    def emit_haptic_success(self) -> None:
        self._fire(self.haptic_success)

    def emit_haptic_error(self) -> None:
        self._fire(self.haptic_error)


# =============================================================================
# Settings and outcome
# =============================================================================

@dataclass
class PipelineSettings:
    """
    Values that shape a scan cycle.

    ``display_width``/``display_height`` describe the space highlights are
    drawn in; when unset, boxes are mapped onto the recognized image's own
    dimensions. ``min_confidence`` is advisory and filters nothing.
    """
    jpeg_quality: int = DEFAULT_JPEG_QUALITY
    min_confidence: float = 0.3
    freeze_duration: float = 0.5
    settle_delay: float = 0.5
    preview_char_limit: int = 30
    display_width: Optional[int] = None
    display_height: Optional[int] = None
    capture_timeout: float = 5.0
    recognition_timeout: float = 10.0
    preprocess: PreprocessOptions = field(default_factory=PreprocessOptions)


@dataclass
class CycleOutcome:
    """Summary of one completed scan cycle."""
    state: PipelineState
    message: str
    text: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    highlights: List[Rect] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def copied(self) -> bool:
        return self.state is PipelineState.COPIED


def _error_for_result(result: RecognitionResult) -> QuickCopyError:
    if result.error_kind is ErrorKind.RECOGNIZER_UNAVAILABLE:
        return RecognizerUnavailableError(result.error)
    if result.error_kind is ErrorKind.INVALID_INPUT:
        return InvalidInputError(result.error)
    return RecognitionFailedError(result.error)


# =============================================================================
# Orchestrator
# =============================================================================

class PipelineOrchestrator:
    """
    Owns the pipeline state and sequences one scan cycle at a time.

    Create one instance per process and hand it to whatever issues triggers.
    All methods must be called on the event loop that runs the pipeline.
    """

    def __init__(self, capture_source: FrameSource, recognizer: RecognizerAdapter,
                 clipboard: DeliverySink, history: Optional[HistorySink] = None,
                 settings: Optional[PipelineSettings] = None,
                 events: Optional[PipelineEvents] = None):
        self.capture_source = capture_source
        self.recognizer = recognizer
        self.clipboard = clipboard
        self.history = history
        self.settings = settings or PipelineSettings()
        self.events = events or PipelineEvents()
        self.image_processor = ImageProcessor(self.settings.preprocess)

        self._state = PipelineState.IDLE
        self._initialized = False
        self._shut_down = False

    # --- State ---

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def initialized(self) -> bool:
        return self._initialized

    def _set_state(self, new_state: PipelineState) -> None:
        if self._state is new_state:
            return
        logger.info(f"State: {self._state.value} -> {new_state.value}")
        self._state = new_state
        self.events.emit_state_changed(new_state)

    # --- Lifecycle ---

    async def initialize(self) -> bool:
        """Brings up the recognizer. Triggers are ignored until this succeeds."""
        logger.info("Initializing QuickCopy pipeline...")
        try:
            ready = await asyncio.to_thread(self.recognizer.initialize)
        except Exception as e:
            logger.error(f"Initialization error: {e}", exc_info=True)
            ready = False

        if not ready:
            logger.error("Failed to initialize OCR processor")
            self.events.emit_toast(INIT_FAILED_MESSAGE)
            return False

        self._initialized = True
        logger.info("QuickCopy pipeline initialized successfully")
        return True

    def shutdown(self) -> None:
        """Releases capture resources and the recognizer. Idempotent."""
        if self._shut_down:
            return
        self._shut_down = True
        logger.info("Shutting down pipeline, cleaning up...")
        try:
            self.capture_source.close()
        finally:
            self.recognizer.close()

    # --- Cycle ---

    async def trigger(self) -> Optional[CycleOutcome]:
        """
        Runs one scan cycle if the pipeline is idle.

        Returns:
            The cycle's outcome, or None if the trigger was dropped because a
            cycle is already running, the pipeline is not initialized, or it
            has been shut down.
        """
        if not self._initialized or self._shut_down or self._state is not PipelineState.IDLE:
            logger.info(f"Capture ignored - State: {self._state.value}, Initialized: {self._initialized}")
            return None

        # Claimed synchronously: no other trigger can interleave before this.
        self._set_state(PipelineState.CAPTURING)
        try:
            return await self._run_cycle()
        finally:
            try:
                await asyncio.sleep(self.settings.settle_delay)
            finally:
                self._set_state(PipelineState.IDLE)

    async def _run_cycle(self) -> CycleOutcome:
        start = time.perf_counter()
        logger.info("Starting capture and process...")
        try:
            frame = await self._capture()

            # Freeze pause so the user sees what was captured.
            await asyncio.sleep(self.settings.freeze_duration)

            self._set_state(PipelineState.PROCESSING)
            result = await self._recognize(frame)
            del frame

            if not result.success:
                raise _error_for_result(result)
            if not result.has_text:
                raise NoTextDetectedError("Recognizer returned blank text")

            return self._deliver(result, start)

        except QuickCopyError as e:
            return self._fail(e.kind, str(e), start)
        except Exception as e:
            return self._fail(ErrorKind.RECOGNITION_FAILED, f"{type(e).__name__}: {e}", start)

    async def _capture(self) -> PixelBuffer:
        try:
            return await asyncio.wait_for(self.capture_source.capture(), self.settings.capture_timeout)
        except asyncio.TimeoutError:
            raise StageTimeoutError(f"Capture timed out after {self.settings.capture_timeout:.1f}s")

    async def _recognize(self, frame: PixelBuffer) -> RecognitionResult:
        # The processor takes ownership of the frame; only its output is used.
        image = await asyncio.to_thread(self.image_processor.process, frame)
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.recognizer.recognize, image, self.settings.jpeg_quality),
                self.settings.recognition_timeout,
            )
        except asyncio.TimeoutError:
            raise StageTimeoutError(f"Recognition timed out after {self.settings.recognition_timeout:.1f}s")

    def _map_highlights(self, result: RecognitionResult) -> List[Rect]:
        if not result.blocks or result.image_width <= 0 or result.image_height <= 0:
            return []
        dst_width = self.settings.display_width or result.image_width
        dst_height = self.settings.display_height or result.image_height
        return map_blocks(result.blocks, result.image_width, result.image_height, dst_width, dst_height)

    def _deliver(self, result: RecognitionResult, start: float) -> CycleOutcome:
        text = result.text
        highlights = self._map_highlights(result)
        if highlights:
            self.events.emit_highlight(highlights)

        # Raises DeliveryError; that fails the cycle.
        self.clipboard.set_text(text)

        if self.history is not None:
            try:
                self.history.append(text)
            except Exception as e:
                logger.warning(f"Could not record history entry: {e}")

        message = f"Copied: {truncate_preview(text, self.settings.preview_char_limit)}"
        self.events.emit_toast(message)
        self._set_state(PipelineState.COPIED)
        self.events.emit_haptic_success()

        duration_ms = (time.perf_counter() - start) * 1000.0
        logger.info(f"OCR completed in {duration_ms:.0f}ms. Text length: {len(text)} chars")
        return CycleOutcome(
            state=PipelineState.COPIED,
            message=message,
            text=text,
            highlights=highlights,
            duration_ms=duration_ms,
        )

    def _fail(self, kind: ErrorKind, technical_message: str, start: float) -> CycleOutcome:
        if kind is ErrorKind.NO_TEXT_DETECTED:
            logger.warning("No text detected in capture")
            message = NO_TEXT_MESSAGE
        else:
            logger.error(f"Capture/process error ({kind.value}): {technical_message}")
            message = user_message_for(technical_message)

        self.events.emit_toast(message)
        self._set_state(PipelineState.ERROR)
        self.events.emit_haptic_error()

        return CycleOutcome(
            state=PipelineState.ERROR,
            message=message,
            error=technical_message,
            error_kind=kind,
            duration_ms=(time.perf_counter() - start) * 1000.0,
        )
