# -*- coding: utf-8 -*-
"""
src/quickcopy/core/errors.py

Error kinds raised and reported by the capture-to-clipboard pipeline.
"""

from enum import Enum


class ErrorKind(Enum):
    """Names the failure categories carried on results and cycle outcomes."""
    INVALID_INPUT = "InvalidInput"
    BUSY = "Busy"
    CAPTURE_FAILED = "CaptureFailed"
    RECOGNIZER_UNAVAILABLE = "RecognizerUnavailable"
    RECOGNITION_FAILED = "RecognitionFailed"
    NO_TEXT_DETECTED = "NoTextDetected"
    DELIVERY_FAILED = "DeliveryFailed"
    TIMEOUT = "Timeout"


class QuickCopyError(Exception):
    """Base class for all pipeline errors."""
    kind = ErrorKind.RECOGNITION_FAILED


class InvalidInputError(QuickCopyError, ValueError):
    """A transform or codec was handed a missing or empty buffer."""
    kind = ErrorKind.INVALID_INPUT


class CaptureBusyError(QuickCopyError):
    """A capture was requested while another one is still outstanding."""
    kind = ErrorKind.BUSY


class CaptureFailedError(QuickCopyError):
    """Every frame acquisition strategy failed."""
    kind = ErrorKind.CAPTURE_FAILED


class RecognizerUnavailableError(QuickCopyError):
    kind = ErrorKind.RECOGNIZER_UNAVAILABLE


class RecognitionFailedError(QuickCopyError):
    kind = ErrorKind.RECOGNITION_FAILED


class NoTextDetectedError(QuickCopyError):
    """Recognition succeeded but produced blank text."""
    kind = ErrorKind.NO_TEXT_DETECTED


class DeliveryError(QuickCopyError):
    """The clipboard sink could not take the recognized text."""
    kind = ErrorKind.DELIVERY_FAILED


class StageTimeoutError(QuickCopyError):
    """A capture or recognition stage did not finish within its time bound."""
    kind = ErrorKind.TIMEOUT
