# -*- coding: utf-8 -*-
"""
src/quickcopy/core/easyocr_service.py

Recognizer service backed by EasyOCR.

The service speaks the adapter's wire contract: it accepts encoded image
bytes and answers with a JSON document of the form

    {"text": "...", "blockCount": N,
     "blocks": [{"text", "left", "top", "width", "height", "confidence",
                 "lines": [{"text", "left", "top", "width", "height", "confidence"}]}]}

or with ``"ERROR: <message>"`` when recognition fails.
"""

import json
import logging
import threading
from typing import Any, Dict, List, Optional

import cv2
import easyocr
import numpy as np

logger = logging.getLogger(__name__)


def _box_to_ltwh(bbox) -> Dict[str, float]:
    # easyocr returns the four corners [[x1,y1], [x2,y2], [x3,y3], [x4,y4]]
    xs = [float(point[0]) for point in bbox]
    ys = [float(point[1]) for point in bbox]
    left, top = min(xs), min(ys)
    return {"left": left, "top": top, "width": max(xs) - left, "height": max(ys) - top}


class EasyOCRService:
    """
    Wraps an ``easyocr.Reader``.

    The reader is expensive to build, so it is created once by
    ``initialize()`` and reused for the life of the process.
    """

    def __init__(self, languages: Optional[List[str]] = None, gpu: bool = False):
        if languages is None:
            languages = ['en']
        self.languages = languages
        self.gpu = gpu
        self.reader = None
        self._lock = threading.Lock()

    def initialize(self) -> bool:
        if self.reader is not None:
            return True

        logger.info(f"Initializing EasyOCR Reader for languages: {self.languages}...")
        try:
            self.reader = easyocr.Reader(self.languages, gpu=self.gpu)
            logger.info("EasyOCR Reader initialized successfully.")
            return True
        except Exception as e:
            logger.critical(f"Failed to initialize EasyOCR Reader: {e}")
            logger.critical("Please ensure you have the necessary model files and dependencies.")
            self.reader = None
            return False

    def is_model_ready(self) -> bool:
        return self.reader is not None

    def recognize(self, image_bytes: bytes) -> str:
        if self.reader is None:
            return "ERROR: OCR model not ready"
        if not image_bytes:
            return "ERROR: Image data is empty"

        image = cv2.imdecode(np.frombuffer(image_bytes, dtype=np.uint8), cv2.IMREAD_COLOR)
        if image is None:
            return "ERROR: Failed to decode image data"

        try:
            with self._lock:
                # detail=1 gives boxes and confidences; paragraph=False keeps
                # one entry per detected line.
                detections = self.reader.readtext(image, detail=1, paragraph=False)
        except Exception as e:
            logger.error(f"An error occurred during OCR processing: {e}")
            return f"ERROR: {e}"

        return json.dumps(self._build_payload(detections))

    @staticmethod
    def _build_payload(detections) -> Dict[str, Any]:
        # Reading order: top to bottom, then left to right.
        entries = []
        for bbox, text, conf in detections:
            box = _box_to_ltwh(bbox)
            entries.append((box, str(text), float(conf)))
        entries.sort(key=lambda item: (item[0]["top"], item[0]["left"]))

        blocks = []
        for box, text, conf in entries:
            line = dict(box, text=text, confidence=conf)
            blocks.append(dict(box, text=text, confidence=conf, lines=[line]))

        return {
            "text": "\n".join(block["text"] for block in blocks),
            "blocks": blocks,
            "blockCount": len(blocks),
        }

    def close(self) -> None:
        if self.reader is not None:
            logger.info("Releasing EasyOCR Reader.")
        self.reader = None
