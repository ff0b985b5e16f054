# -*- coding: utf-8 -*-
"""
src/quickcopy/core/capture.py

Frame acquisition for the pipeline.

CaptureSource produces exactly one PixelBuffer per accepted request. It tries
its frame grabbers in order (by default a camera through OpenCV first, then
a screen grab through mss) and refuses overlapping requests instead of
queuing them.
"""

import asyncio
import logging
from typing import List, Optional, Sequence

import cv2
import mss
import numpy as np

from .errors import CaptureBusyError, CaptureFailedError
from .image_processor import downscale
from .pixel_buffer import PixelBuffer

logger = logging.getLogger(__name__)


class FrameGrabber:
    """One acquisition strategy. ``grab`` returns None when it cannot deliver."""

    name = "grabber"

    def grab(self) -> Optional[PixelBuffer]:
        raise NotImplementedError

    def close(self) -> None:
        pass


class CameraFrameGrabber(FrameGrabber):
    """
    Reads one frame from a camera via ``cv2.VideoCapture``.

    The device is opened on first use and kept open between captures; it is
    released by ``close()``.
    """

    name = "camera"

    def __init__(self, camera_index: int = 0, width: Optional[int] = None, height: Optional[int] = None):
        self.camera_index = camera_index
        self.width = width
        self.height = height
        self._device = None

    def _open(self):
        if self._device is not None and self._device.isOpened():
            return self._device

        device = cv2.VideoCapture(self.camera_index)
        if not device.isOpened():
            device.release()
            logger.warning(f"Camera {self.camera_index} could not be opened.")
            return None
        if self.width and self.height:
            device.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
            device.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self._device = device
        logger.info(f"Opened camera {self.camera_index}.")
        return device

    def grab(self) -> Optional[PixelBuffer]:
        device = self._open()
        if device is None:
            return None
        ok, frame = device.read()
        if not ok or frame is None or frame.size == 0:
            logger.warning("Camera returned no frame.")
            return None
        # OpenCV delivers BGR.
        return PixelBuffer.from_array(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))

    def close(self) -> None:
        if self._device is not None:
            self._device.release()
            self._device = None
            logger.info(f"Released camera {self.camera_index}.")


class ScreenFrameGrabber(FrameGrabber):
    """
    Grabs a monitor (or a region of it) with mss.

    Args:
        monitor_index (int): Index into ``mss().monitors``; 1 is the primary
            monitor, 0 the union of all monitors.
        region (Optional[dict]): An mss region dict with ``top``, ``left``,
            ``width`` and ``height``; overrides ``monitor_index``.
    """

    name = "screen"

    def __init__(self, monitor_index: int = 1, region: Optional[dict] = None):
        self.monitor_index = monitor_index
        self.region = region

    def grab(self) -> Optional[PixelBuffer]:
        # A fresh mss instance per grab: mss handles are bound to the thread
        # that created them and captures run on worker threads.
        with mss.mss() as sct:
            monitor = self.region
            if monitor is None:
                if self.monitor_index >= len(sct.monitors):
                    logger.warning(f"Monitor {self.monitor_index} not found.")
                    return None
                monitor = sct.monitors[self.monitor_index]
            sct_img = sct.grab(monitor)
            # mss returns BGRA.
            img = np.array(sct_img)
        return PixelBuffer.from_array(cv2.cvtColor(img, cv2.COLOR_BGRA2RGB))


class CaptureSource:
    """
    Acquires one frame per request, with primary/fallback strategies.

    Frames larger than the target dimensions are shrunk to fit. The caller
    owns the returned buffer; the source keeps no reference to it.
    """

    def __init__(self, grabbers: Sequence[FrameGrabber],
                 target_width: int = 1920, target_height: int = 1080):
        self.grabbers: List[FrameGrabber] = list(grabbers)
        self.target_width = target_width
        self.target_height = target_height
        self._capturing = False
        logger.info(f"Capture source ready: {[g.name for g in self.grabbers]} "
                    f"target {target_width}x{target_height}")

    @property
    def busy(self) -> bool:
        return self._capturing

    async def capture(self) -> PixelBuffer:
        """
        Captures one frame.

        The source stays busy until the grab thread itself returns. A caller
        that stops waiting (e.g. on a timeout) does not end the capture, so
        requests arriving meanwhile are still refused.

        Raises:
            CaptureBusyError: Immediately, if a capture is already outstanding.
            CaptureFailedError: If every grabber failed.
        """
        if self._capturing:
            logger.warning("Capture already in progress")
            raise CaptureBusyError("Capture already in progress")

        self._capturing = True
        try:
            worker = asyncio.get_running_loop().run_in_executor(None, self._capture_worker)
        except RuntimeError:
            self._capturing = False
            raise

        try:
            frame = await asyncio.shield(worker)
        except asyncio.CancelledError:
            logger.warning("Capture abandoned while a frame grab is still running")
            worker.add_done_callback(_log_abandoned_capture)
            raise

        logger.info(f"Frame captured: {frame.width}x{frame.height}")
        return frame

    def _capture_worker(self) -> PixelBuffer:
        try:
            return self._capture_blocking()
        finally:
            self._capturing = False

    def _capture_blocking(self) -> PixelBuffer:
        for grabber in self.grabbers:
            try:
                frame = grabber.grab()
            except Exception as e:
                logger.warning(f"{grabber.name} capture failed: {e}")
                continue
            if frame is None:
                continue

            if frame.width > self.target_width or frame.height > self.target_height:
                frame = downscale(frame, self.target_width, self.target_height)
            return frame

        raise CaptureFailedError("Failed to capture frame from camera or screen")

    def close(self) -> None:
        """Releases every grabber's device handles and buffers."""
        for grabber in self.grabbers:
            try:
                grabber.close()
            except Exception as e:
                logger.error(f"Error releasing {grabber.name} grabber: {e}")


def _log_abandoned_capture(worker: "asyncio.Future") -> None:
    # Retrieves the outcome nobody is awaiting any more.
    if worker.cancelled():
        return
    error = worker.exception()
    if error is not None:
        logger.warning(f"Abandoned capture failed: {error}")
    else:
        logger.info("Abandoned capture finished; frame discarded")
