"""
Unit tests for quickcopy.core.easyocr_service module.
"""
import json

import numpy as np
import pytest

pytest.importorskip("easyocr")

from quickcopy.core.easyocr_service import EasyOCRService, _box_to_ltwh
from quickcopy.core.ocr_result import Rect
from quickcopy.core.recognizer import parse_service_payload


# Shaped like easyocr.Reader.readtext(detail=1): (corners, text, confidence).
DETECTIONS = [
    ([[10, 40], [110, 40], [110, 70], [10, 70]], "World", 0.8),
    ([[np.int32(5), np.int32(5)], [np.int32(60), np.int32(5)],
      [np.int32(60), np.int32(15)], [np.int32(5), np.int32(15)]], "Hello", np.float64(0.9)),
]


class TestBoxToLtwh:
    """Tests for _box_to_ltwh function."""

    def test_axis_aligned(self):
        """Test four corners become left/top/width/height."""
        box = _box_to_ltwh([[10, 40], [110, 40], [110, 70], [10, 70]])

        assert box == {"left": 10.0, "top": 40.0, "width": 100.0, "height": 30.0}

    def test_skewed_box_uses_bounds(self):
        """Test a rotated quadrilateral is reduced to its bounding rectangle."""
        box = _box_to_ltwh([[12, 40], [110, 35], [112, 70], [10, 75]])

        assert box == {"left": 10.0, "top": 35.0, "width": 102.0, "height": 40.0}


class TestBuildPayload:
    """Tests for the JSON payload handed to the recognizer adapter."""

    def test_reading_order(self):
        """Test blocks are ordered top to bottom."""
        payload = EasyOCRService._build_payload(DETECTIONS)

        assert payload["text"] == "Hello\nWorld"
        assert payload["blockCount"] == 2
        assert [b["text"] for b in payload["blocks"]] == ["Hello", "World"]

    def test_payload_is_json_serializable(self):
        """Test NumPy scalars from easyocr do not leak into the payload."""
        json.dumps(EasyOCRService._build_payload(DETECTIONS))

    def test_parsed_by_adapter(self):
        """Test the adapter turns the payload into blocks with lines."""
        result = parse_service_payload(json.dumps(EasyOCRService._build_payload(DETECTIONS)))

        assert result.success
        assert result.text == "Hello\nWorld"
        first = result.blocks[0]
        assert first.bounding_box == Rect(5.0, 5.0, 55.0, 10.0)
        assert first.confidence == pytest.approx(0.9)
        assert [line.text for line in first.lines] == ["Hello"]

    def test_no_detections(self):
        """Test an empty image yields an empty success."""
        result = parse_service_payload(json.dumps(EasyOCRService._build_payload([])))

        assert result.success
        assert not result.has_text
