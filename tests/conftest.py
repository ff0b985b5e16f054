"""
Pytest configuration and global fixtures.
"""
import asyncio
from typing import List, Optional

import numpy as np
import pytest

from quickcopy.core.errors import DeliveryError
from quickcopy.core.image_processor import PreprocessOptions
from quickcopy.core.pipeline import PipelineEvents, PipelineOrchestrator, PipelineSettings
from quickcopy.core.pixel_buffer import PixelBuffer, PixelFormat
from quickcopy.core.recognizer import FakeRecognizerAdapter


# --- Buffer factories ---

@pytest.fixture
def make_buffer():
    """Factory for solid-colour buffers of any format."""
    def _make(width=8, height=6, pixel_format=PixelFormat.RGB24, fill=128):
        return PixelBuffer.blank(width, height, pixel_format, fill)
    return _make


@pytest.fixture
def gradient_buffer():
    """Factory for an RGB24 buffer whose gray level ramps from ``low`` to ``high``."""
    def _make(width=64, height=32, low=0, high=255):
        ramp = np.linspace(low, high, width).round().astype(np.uint8)
        gray = np.tile(ramp, (height, 1))
        return PixelBuffer.from_array(np.stack([gray, gray, gray], axis=-1))
    return _make


@pytest.fixture
def random_buffer():
    """Factory for a deterministic noisy buffer (every pixel distinct enough to detect permutations)."""
    def _make(width=7, height=5, pixel_format=PixelFormat.RGB24, seed=1234):
        rng = np.random.default_rng(seed)
        data = rng.integers(0, 256, size=(height, width, pixel_format.channels), dtype=np.uint8)
        return PixelBuffer(width, height, pixel_format, data)
    return _make


# --- Collaborator doubles ---

class FakeCaptureSource:
    """
    Scripted frame source.

    Each capture pops the next item from ``frames``; exceptions are raised,
    buffers are returned as fresh copies. When the script runs out the last
    frame is repeated.
    """

    def __init__(self, frames=None, delay: float = 0.0):
        self.frames = list(frames) if frames is not None else [PixelBuffer.blank(320, 240, fill=200)]
        self.delay = delay
        self.capture_count = 0
        self.close_count = 0

    async def capture(self) -> PixelBuffer:
        self.capture_count += 1
        await asyncio.sleep(self.delay)
        item = self.frames.pop(0) if len(self.frames) > 1 else self.frames[0]
        if isinstance(item, BaseException):
            raise item
        return item.copy()

    def close(self) -> None:
        self.close_count += 1


class RecordingClipboard:
    def __init__(self, fail: bool = False):
        self.texts: List[str] = []
        self.fail = fail

    def set_text(self, text: str) -> None:
        if self.fail:
            raise DeliveryError("Clipboard is not available")
        self.texts.append(text)


class RecordingHistory:
    def __init__(self, fail: bool = False):
        self.texts: List[str] = []
        self.fail = fail

    def append(self, text: str) -> None:
        if self.fail:
            raise OSError("disk full")
        self.texts.append(text)


class EventRecorder:
    """Records every pipeline event as ``(name, payload)`` in emission order."""

    def __init__(self, events: PipelineEvents):
        self.log = []
        events.state_changed.append(lambda state: self.log.append(("state", state)))
        events.highlight.append(lambda boxes: self.log.append(("highlight", boxes)))
        events.toast.append(lambda message: self.log.append(("toast", message)))
        events.haptic_success.append(lambda: self.log.append(("haptic_success", None)))
        events.haptic_error.append(lambda: self.log.append(("haptic_error", None)))

    def of(self, name):
        return [payload for event, payload in self.log if event == name]

    @property
    def states(self):
        return self.of("state")

    @property
    def names(self):
        return [event for event, _ in self.log]


@pytest.fixture
def capture_source():
    return FakeCaptureSource()


@pytest.fixture
def clipboard():
    return RecordingClipboard()


@pytest.fixture
def history():
    return RecordingHistory()


@pytest.fixture
def fast_settings():
    """Pipeline settings with every pacing delay removed."""
    return PipelineSettings(
        freeze_duration=0.0,
        settle_delay=0.0,
        capture_timeout=2.0,
        recognition_timeout=2.0,
        preprocess=PreprocessOptions(),
    )


@pytest.fixture
def make_orchestrator(capture_source, clipboard, history, fast_settings):
    """
    Factory for an orchestrator wired to recording doubles.

    Returns ``(orchestrator, recorder)``. The orchestrator is initialized
    unless ``initialize=False``.
    """
    def _make(recognizer: Optional[FakeRecognizerAdapter] = None, source=None,
              sink=None, history_sink=None, settings=None, initialize=True):
        events = PipelineEvents()
        recorder = EventRecorder(events)
        orchestrator = PipelineOrchestrator(
            capture_source=source if source is not None else capture_source,
            recognizer=recognizer if recognizer is not None else FakeRecognizerAdapter(),
            clipboard=sink if sink is not None else clipboard,
            history=history_sink if history_sink is not None else history,
            settings=settings or fast_settings,
            events=events,
        )
        if initialize:
            assert asyncio.run(orchestrator.initialize())
        return orchestrator, recorder
    return _make
