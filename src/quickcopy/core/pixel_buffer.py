# -*- coding: utf-8 -*-
"""
src/quickcopy/core/pixel_buffer.py

In-memory raster image used by every stage of the pipeline.

A PixelBuffer wraps a contiguous NumPy ``uint8`` array of shape
``(height, width, channels)``. Buffers are owned by exactly one stage at a
time: transforms either mutate the buffer they are handed and return it, or
return a brand-new buffer, in which case the caller drops the old one.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from .errors import InvalidInputError

# Perceptual gray weights (ITU-R BT.601), applied to normalized R, G, B.
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float32)


class PixelFormat(Enum):
    """Supported 8-bit-per-channel layouts. The value is the channel count."""
    GRAY8 = 1
    RGB24 = 3
    RGBA32 = 4

    @property
    def channels(self) -> int:
        return self.value

    @property
    def has_alpha(self) -> bool:
        return self is PixelFormat.RGBA32

    @classmethod
    def from_channels(cls, channels: int) -> "PixelFormat":
        for fmt in cls:
            if fmt.value == channels:
                return fmt
        raise InvalidInputError(f"Unsupported channel count: {channels}")


@dataclass(eq=False)
class PixelBuffer:
    """
    A width x height raster with explicit pixel format.

    Attributes:
        width (int): Number of columns, at least 1.
        height (int): Number of rows, at least 1.
        pixel_format (PixelFormat): Channel layout of ``data``.
        data (np.ndarray): ``uint8`` samples shaped ``(height, width, channels)``.
    """
    width: int
    height: int
    pixel_format: PixelFormat
    data: np.ndarray

    def __post_init__(self):
        if self.width < 1 or self.height < 1:
            raise InvalidInputError(f"Invalid buffer size {self.width}x{self.height}")
        expected = self.width * self.height * self.pixel_format.channels
        if self.data.dtype != np.uint8 or self.data.size != expected:
            raise InvalidInputError(
                f"Buffer data does not match {self.width}x{self.height} {self.pixel_format.name}: "
                f"got {self.data.size} samples of {self.data.dtype}, expected {expected} uint8"
            )
        self.data = np.ascontiguousarray(
            self.data.reshape(self.height, self.width, self.pixel_format.channels)
        )

    # --- Construction helpers ---

    @classmethod
    def from_array(cls, array: np.ndarray) -> "PixelBuffer":
        """
        Wraps an ``(h, w)`` or ``(h, w, c)`` uint8 array without copying it.
        """
        if array is None or array.size == 0:
            raise InvalidInputError("Cannot build a PixelBuffer from an empty array")
        if array.ndim == 2:
            array = array[:, :, np.newaxis]
        if array.ndim != 3:
            raise InvalidInputError(f"Expected a 2D or 3D array, got {array.ndim}D")
        height, width, channels = array.shape
        return cls(width, height, PixelFormat.from_channels(channels), array.astype(np.uint8, copy=False))

    @classmethod
    def blank(cls, width: int, height: int,
              pixel_format: PixelFormat = PixelFormat.RGB24, fill: int = 0) -> "PixelBuffer":
        data = np.full((height, width, pixel_format.channels), fill, dtype=np.uint8)
        return cls(width, height, pixel_format, data)

    # --- Accessors ---

    @property
    def channels(self) -> int:
        return self.pixel_format.channels

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def shape(self):
        return self.data.shape

    def copy(self) -> "PixelBuffer":
        """Returns an independent buffer with the same dimensions and content."""
        return PixelBuffer(self.width, self.height, self.pixel_format, self.data.copy())

    def normalized(self) -> np.ndarray:
        """The samples as float32 in [0, 1]."""
        return self.data.astype(np.float32) / 255.0

    def store_normalized(self, values: np.ndarray) -> None:
        """Writes [0, 1] floats back into ``data`` in place, rounding to uint8."""
        np.copyto(self.data, np.rint(np.clip(values, 0.0, 1.0) * 255.0).astype(np.uint8))

    def luminance(self) -> np.ndarray:
        """Per-pixel perceptual gray value in [0, 1], shaped ``(height, width)``."""
        return luminance_of(self.normalized(), self.pixel_format)

    def content_equals(self, other: "PixelBuffer") -> bool:
        return (
            self.width == other.width
            and self.height == other.height
            and self.pixel_format is other.pixel_format
            and np.array_equal(self.data, other.data)
        )

    def __repr__(self) -> str:
        return f"PixelBuffer({self.width}x{self.height}, {self.pixel_format.name})"


def luminance_of(normalized: np.ndarray, pixel_format: PixelFormat) -> np.ndarray:
    """Computes luminance from a normalized ``(h, w, c)`` float array."""
    if pixel_format is PixelFormat.GRAY8:
        return normalized[:, :, 0]
    return normalized[:, :, :3] @ LUMA_WEIGHTS


def require_buffer(buf: Optional[PixelBuffer], operation: str) -> PixelBuffer:
    """Rejects missing or empty buffers with InvalidInputError."""
    if buf is None or buf.data is None or buf.data.size == 0:
        raise InvalidInputError(f"{operation}: buffer is missing or empty")
    return buf
