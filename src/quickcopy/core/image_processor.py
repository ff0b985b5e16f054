# -*- coding: utf-8 -*-
"""
src/quickcopy/core/image_processor.py

Implements the pixel-buffer transforms and the preprocessing chain that runs
between frame capture and text recognition.

Every transform is deterministic. Transforms documented as "in place" mutate
the buffer they are given and return that same instance; the others leave
their input untouched and return a new, independently owned buffer.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

from .errors import InvalidInputError
from .pixel_buffer import PixelBuffer, PixelFormat, luminance_of, require_buffer

logger = logging.getLogger(__name__)

# --- Module-level Configuration ---

# Upper bound on the number of pixels inspected when estimating the
# luminance range for auto-contrast.
CONTRAST_SAMPLE_LIMIT = 10000

# Below this luminance range the image is considered flat and left alone.
CONTRAST_MIN_RANGE = 0.01

# An image whose sampled luminance already reaches both of these bounds is
# treated as full-range.
CONTRAST_FULL_RANGE_LOW = 0.10
CONTRAST_FULL_RANGE_HIGH = 0.90

# Pixels darker than this keep their value (factor 1) during the stretch.
CONTRAST_DARK_EPSILON = 0.001

DEFAULT_JPEG_QUALITY = 90


# =============================================================================
# Geometry
# =============================================================================

def downscale(buf: PixelBuffer, max_width: int, max_height: int) -> PixelBuffer:
    """
    Shrinks a buffer to fit within ``max_width`` x ``max_height``.

    The aspect ratio is preserved and the image is never enlarged. When no
    shrinking is needed an independent copy at the original size is returned.
    The input is never mutated.

    Args:
        buf (PixelBuffer): Source image.
        max_width (int): Maximum width of the result.
        max_height (int): Maximum height of the result.

    Returns:
        PixelBuffer: A new buffer, resampled bilinearly when shrunk.
    """
    require_buffer(buf, "downscale")
    scale = min(max_width / buf.width, max_height / buf.height, 1.0)
    if scale >= 1.0:
        return buf.copy()

    new_width = max(int(round(buf.width * scale)), 1)
    new_height = max(int(round(buf.height * scale)), 1)

    # INTER_LINEAR is OpenCV's bilinear filter.
    resized = cv2.resize(buf.data, (new_width, new_height), interpolation=cv2.INTER_LINEAR)
    resized = resized.reshape(new_height, new_width, buf.channels)
    logger.debug(f"Downscaled {buf.width}x{buf.height} -> {new_width}x{new_height}")
    return PixelBuffer(new_width, new_height, buf.pixel_format, resized)


def rotate(buf: PixelBuffer, degrees: int) -> PixelBuffer:
    """
    Rotates clockwise by a multiple of 90 degrees into a new buffer.

    ``degrees`` is normalized into {0, 90, 180, 270}; other values are
    truncated to the quarter turn below them. Pixels are permuted exactly,
    without interpolation.
    """
    require_buffer(buf, "rotate")
    degrees = ((int(degrees) % 360) + 360) % 360
    quarter_turns = degrees // 90

    if quarter_turns == 0:
        return buf.copy()

    # np.rot90 turns counter-clockwise for positive k.
    rotated = np.ascontiguousarray(np.rot90(buf.data, k=-quarter_turns, axes=(0, 1)))
    height, width = rotated.shape[:2]
    return PixelBuffer(width, height, buf.pixel_format, rotated)


def crop(buf: PixelBuffer, x: int, y: int, width: int, height: int) -> PixelBuffer:
    """
    Cuts a region out of a buffer into a new buffer.

    The origin is clamped inside the image and the size is clamped so the
    region never extends past the image edge, and never drops below 1x1.
    """
    require_buffer(buf, "crop")
    x = min(max(int(x), 0), buf.width - 1)
    y = min(max(int(y), 0), buf.height - 1)
    width = min(max(int(width), 1), buf.width - x)
    height = min(max(int(height), 1), buf.height - y)

    region = buf.data[y:y + height, x:x + width].copy()
    return PixelBuffer(width, height, buf.pixel_format, region)


# =============================================================================
# Tone
# =============================================================================

def _color_channels(pixel_format: PixelFormat) -> int:
    return 3 if pixel_format.channels >= 3 else 1


def auto_contrast(buf: PixelBuffer) -> PixelBuffer:
    """
    Stretches the luminance histogram to the full [0, 1] range, in place.

    The luminance range is estimated from at most ``CONTRAST_SAMPLE_LIMIT``
    evenly strided pixels. Flat images and images that already span the
    range are returned untouched. Otherwise every pixel's colour channels are
    scaled by one common factor, so hue is kept; alpha is never modified.
    """
    require_buffer(buf, "auto_contrast")
    values = buf.normalized()
    lum = luminance_of(values, buf.pixel_format)

    step = max(1, buf.pixel_count // CONTRAST_SAMPLE_LIMIT)
    samples = lum.reshape(-1)[::step]
    min_lum = float(samples.min())
    max_lum = float(samples.max())
    lum_range = max_lum - min_lum

    if lum_range < CONTRAST_MIN_RANGE:
        logger.debug(f"Auto-contrast skipped: flat image (range {lum_range:.4f})")
        return buf
    if min_lum < CONTRAST_FULL_RANGE_LOW and max_lum > CONTRAST_FULL_RANGE_HIGH:
        logger.debug(f"Auto-contrast skipped: already full range ({min_lum:.2f}..{max_lum:.2f})")
        return buf

    stretched = np.clip((lum - min_lum) / lum_range, 0.0, 1.0)
    safe_lum = np.where(lum > CONTRAST_DARK_EPSILON, lum, 1.0)
    factor = np.where(lum > CONTRAST_DARK_EPSILON, stretched / safe_lum, 1.0)

    cc = _color_channels(buf.pixel_format)
    values[:, :, :cc] = np.clip(values[:, :, :cc] * factor[:, :, np.newaxis], 0.0, 1.0)
    buf.store_normalized(values)
    logger.debug(f"Auto-contrast stretched luminance {min_lum:.2f}..{max_lum:.2f}")
    return buf


def to_grayscale(buf: PixelBuffer) -> PixelBuffer:
    """Replaces each pixel's colour channels with its luminance, in place."""
    require_buffer(buf, "to_grayscale")
    values = buf.normalized()
    lum = luminance_of(values, buf.pixel_format)
    cc = _color_channels(buf.pixel_format)
    values[:, :, :cc] = lum[:, :, np.newaxis]
    if buf.pixel_format.has_alpha:
        values[:, :, 3] = 1.0
    buf.store_normalized(values)
    return buf


def sharpen(buf: PixelBuffer, strength: float = 1.0) -> PixelBuffer:
    """
    Applies a 5-point sharpening kernel to interior pixels, in place.

    The centre weight is ``1 + 4 * strength`` and each of the four direct
    neighbours weighs ``-strength``. The first and last rows and columns are
    left as they were. Results are clamped to [0, 1].
    """
    require_buffer(buf, "sharpen")
    if buf.width < 3 or buf.height < 3:
        return buf

    # Neighbours are always read from this untouched scratch copy.
    original = buf.normalized()
    result = original.copy()

    center = 1.0 + 4.0 * strength
    edge = -strength
    cc = _color_channels(buf.pixel_format)

    interior = (
        original[1:-1, 1:-1, :cc] * center
        + original[1:-1, :-2, :cc] * edge    # left
        + original[1:-1, 2:, :cc] * edge     # right
        + original[:-2, 1:-1, :cc] * edge    # up
        + original[2:, 1:-1, :cc] * edge     # down
    )
    result[1:-1, 1:-1, :cc] = np.clip(interior, 0.0, 1.0)
    if buf.pixel_format.has_alpha:
        result[1:-1, 1:-1, 3] = 1.0

    buf.store_normalized(result)
    return buf


def threshold(buf: PixelBuffer, level: float = 0.5) -> PixelBuffer:
    """Binarizes every pixel to black or white by ``luminance > level``, in place."""
    require_buffer(buf, "threshold")
    values = buf.normalized()
    binary = (luminance_of(values, buf.pixel_format) > level).astype(np.float32)
    cc = _color_channels(buf.pixel_format)
    values[:, :, :cc] = binary[:, :, np.newaxis]
    if buf.pixel_format.has_alpha:
        values[:, :, 3] = 1.0
    buf.store_normalized(values)
    return buf


# =============================================================================
# Codecs
# =============================================================================

def _to_bgr(buf: PixelBuffer, keep_alpha: bool) -> np.ndarray:
    if buf.pixel_format is PixelFormat.GRAY8:
        return buf.data[:, :, 0]
    if buf.pixel_format is PixelFormat.RGBA32:
        code = cv2.COLOR_RGBA2BGRA if keep_alpha else cv2.COLOR_RGBA2BGR
        return cv2.cvtColor(buf.data, code)
    return cv2.cvtColor(buf.data, cv2.COLOR_RGB2BGR)


def encode_jpeg(buf: PixelBuffer, quality: int = DEFAULT_JPEG_QUALITY) -> bytes:
    """Encodes a buffer as JPEG bytes. Alpha is dropped."""
    require_buffer(buf, "encode_jpeg")
    quality = min(max(int(quality), 1), 100)
    ok, encoded = cv2.imencode(".jpg", _to_bgr(buf, keep_alpha=False),
                               [int(cv2.IMWRITE_JPEG_QUALITY), quality])
    if not ok:
        raise InvalidInputError(f"JPEG encoding failed for {buf!r}")
    return encoded.tobytes()


def encode_png(buf: PixelBuffer) -> bytes:
    require_buffer(buf, "encode_png")
    ok, encoded = cv2.imencode(".png", _to_bgr(buf, keep_alpha=True))
    if not ok:
        raise InvalidInputError(f"PNG encoding failed for {buf!r}")
    return encoded.tobytes()


def decode_image(data: bytes) -> PixelBuffer:
    """
    Decodes JPEG/PNG (or any format OpenCV reads) into an RGB24 buffer.

    Raises:
        InvalidInputError: If ``data`` is empty or cannot be decoded.
    """
    if not data:
        raise InvalidInputError("decode_image: no image data")
    raw = np.frombuffer(data, dtype=np.uint8)
    bgr = cv2.imdecode(raw, cv2.IMREAD_COLOR)
    if bgr is None:
        raise InvalidInputError("decode_image: data is not a readable image")
    return PixelBuffer.from_array(cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB))


# =============================================================================
# Preprocessing chain
# =============================================================================

@dataclass
class PreprocessOptions:
    """
    Settings for the chain applied to a captured frame before recognition.

    The defaults give the standard chain: shrink to the recognizer's maximum
    dimensions when needed, then auto-contrast.
    """
    max_width: int = 1920
    max_height: int = 1080
    crop_region: Optional[Tuple[int, int, int, int]] = None
    rotation: int = 0
    grayscale: bool = False
    sharpen_strength: float = 0.0
    binarize_threshold: Optional[float] = None


class ImageProcessor:
    """
    Runs the preprocessing chain on captured frames.

    The processor takes ownership of the buffer passed to ``process``; the
    caller must use only the returned buffer afterwards.
    """

    def __init__(self, options: Optional[PreprocessOptions] = None):
        self.options = options or PreprocessOptions()

    def process(self, frame: PixelBuffer) -> PixelBuffer:
        return preprocess_for_recognition(frame, self.options)


def preprocess_for_recognition(frame: PixelBuffer, opts: PreprocessOptions) -> PixelBuffer:
    """
    Applies crop, rotation, downscale, auto-contrast and the optional
    grayscale/sharpen/binarize steps, in that order.

    Every intermediate buffer that gets replaced is dropped here; only the
    returned buffer is live afterwards.
    """
    buf = require_buffer(frame, "preprocess")

    if opts.crop_region is not None:
        buf = crop(buf, *opts.crop_region)

    if opts.rotation % 360:
        buf = rotate(buf, opts.rotation)

    if buf.width > opts.max_width or buf.height > opts.max_height:
        buf = downscale(buf, opts.max_width, opts.max_height)
        logger.info(f"Downscaled to: {buf.width}x{buf.height}")

    buf = auto_contrast(buf)

    if opts.grayscale:
        buf = to_grayscale(buf)
    if opts.sharpen_strength > 0:
        buf = sharpen(buf, opts.sharpen_strength)
    if opts.binarize_threshold is not None:
        buf = threshold(buf, opts.binarize_threshold)

    return buf
