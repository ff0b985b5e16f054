"""
Unit tests for quickcopy.core.recognizer module.
"""
import json
import logging
import threading

import pytest

from quickcopy.core.errors import ErrorKind
from quickcopy.core.ocr_result import Rect, RecognitionResult
from quickcopy.core.recognizer import (
    FakeRecognizerAdapter,
    ServiceRecognizerAdapter,
    default_mock_result,
    parse_service_payload,
)


class StubService:
    """Recognizer service double answering with a fixed payload."""

    def __init__(self, payload=None, ready=True, error=None):
        self.payload = payload
        self.ready = ready
        self.error = error
        self.received = []
        self.closed = False

    def initialize(self):
        return self.ready

    def recognize(self, image_bytes):
        self.received.append(image_bytes)
        if self.error is not None:
            raise self.error
        return self.payload

    def close(self):
        self.closed = True


class TestParseServicePayload:
    """Tests for parse_service_payload function."""

    @pytest.mark.parametrize("payload", [None, ""])
    def test_empty_is_blank_success(self, payload):
        """Test no reply is a successful empty result."""
        result = parse_service_payload(payload)

        assert result.success
        assert result.text == ""
        assert not result.has_text

    def test_plain_text(self):
        """Test a bare string is the recognized text."""
        result = parse_service_payload("Hello World")

        assert result.success
        assert result.text == "Hello World"
        assert result.blocks == ()

    def test_error_prefix(self):
        """Test an ERROR: reply is a failure with the message stripped."""
        result = parse_service_payload("ERROR: OCR model not ready")

        assert not result.success
        assert result.error == "OCR model not ready"
        assert result.error_kind is ErrorKind.RECOGNITION_FAILED
        assert result.text is None

    def test_structured_json(self):
        """Test a JSON reply yields text, blocks and lines."""
        payload = json.dumps({
            "text": "Total 42",
            "blocks": [{
                "text": "Total 42",
                "left": 5, "top": 6, "width": 70, "height": 12,
                "confidence": 0.8,
                "lines": [{"text": "Total 42", "left": 5, "top": 6, "width": 70, "height": 12,
                           "confidence": 0.75}],
            }],
        })

        result = parse_service_payload(payload)

        assert result.text == "Total 42"
        assert len(result.blocks) == 1
        block = result.blocks[0]
        assert block.bounding_box == Rect(5.0, 6.0, 70.0, 12.0)
        assert block.confidence == pytest.approx(0.8)
        assert block.lines[0].confidence == pytest.approx(0.75)

    def test_mapping_payload(self):
        """Test a mapping is accepted as well as JSON text."""
        result = parse_service_payload({"text": "abc", "blocks": []})

        assert result.success
        assert result.text == "abc"

    def test_mapping_error(self):
        """Test a mapping with an error key is a failure."""
        result = parse_service_payload({"error": "Out of memory"})

        assert not result.success
        assert result.error == "Out of memory"

    def test_malformed_blocks_keep_text(self):
        """Test unusable block data is dropped but the text survives."""
        result = parse_service_payload(json.dumps({"text": "kept", "blocks": [{"left": "wide"}]}))

        assert result.success
        assert result.text == "kept"
        assert result.blocks == ()

    def test_invalid_json_is_plain_text(self):
        """Test text that only looks like JSON degrades to plain text."""
        result = parse_service_payload("{not json")

        assert result.success
        assert result.text == "{not json"

    def test_json_without_text_field_is_plain_text(self):
        """Test a JSON object of unknown shape falls back to the raw reply."""
        raw = json.dumps({"words": ["a", "b"]})

        result = parse_service_payload(raw)

        assert result.text == raw

    def test_json_scalar_is_plain_text(self):
        """Test a JSON number reply stays the literal string."""
        assert parse_service_payload("42").text == "42"

    def test_confidence_clamped(self):
        """Test confidence values are kept within [0, 1]."""
        result = parse_service_payload({"text": "x", "blocks": [{"text": "x", "confidence": 3}]})

        assert result.blocks[0].confidence == 1.0

    def test_non_finite_confidence_is_zero(self):
        """Test NaN or infinite confidence values become 0."""
        payload = json.dumps({"text": "x", "blocks": [
            {"text": "x", "confidence": float("nan"), "lines": [{"text": "x", "confidence": float("inf")}]},
        ]})

        block = parse_service_payload(payload).blocks[0]

        assert block.confidence == 0.0
        assert block.lines[0].confidence == 0.0


class TestServiceRecognizerAdapter:
    """Tests for ServiceRecognizerAdapter class."""

    def test_not_initialized(self, make_buffer):
        """Test recognizing before initialization reports unavailable."""
        service = StubService("text")
        adapter = ServiceRecognizerAdapter(service)

        result = adapter.recognize(make_buffer())

        assert not result.success
        assert result.error_kind is ErrorKind.RECOGNIZER_UNAVAILABLE
        assert service.received == []

    def test_initialize_failure(self):
        """Test a service that fails to start leaves the adapter not ready."""
        adapter = ServiceRecognizerAdapter(StubService(ready=False))

        assert adapter.initialize() is False
        assert not adapter.is_ready

    def test_sends_jpeg_and_parses(self, make_buffer):
        """Test the buffer is sent as JPEG and the reply normalized."""
        service = StubService(json.dumps({"text": "Hello", "blocks": [
            {"text": "Hello", "left": 1, "top": 2, "width": 3, "height": 4, "confidence": 0.1},
        ]}))
        adapter = ServiceRecognizerAdapter(service, min_confidence=0.5)
        adapter.initialize()

        result = adapter.recognize(make_buffer(40, 20))

        assert service.received[0][:2] == b"\xff\xd8"
        assert result.text == "Hello"
        # Low-confidence blocks are reported, not filtered.
        assert len(result.blocks) == 1

    def test_stamps_timing_and_dimensions(self, make_buffer):
        """Test results carry duration and the recognized image size."""
        adapter = ServiceRecognizerAdapter(StubService("x"))
        adapter.initialize()

        result = adapter.recognize(make_buffer(40, 20))

        assert (result.image_width, result.image_height) == (40, 20)
        assert result.processing_ms >= 0.0

    def test_null_buffer(self):
        """Test a missing image is a failure, not an exception."""
        adapter = ServiceRecognizerAdapter(StubService("x"))
        adapter.initialize()

        result = adapter.recognize(None)

        assert not result.success
        assert result.error_kind is ErrorKind.INVALID_INPUT

    def test_service_exception(self, make_buffer):
        """Test a service exception becomes a failure result."""
        adapter = ServiceRecognizerAdapter(StubService(error=MemoryError("Out of memory")))
        adapter.initialize()

        result = adapter.recognize(make_buffer())

        assert not result.success
        assert "Out of memory" in result.error

    def test_concurrent_call_rejected(self, make_buffer):
        """Test a second call while one is running is refused."""
        gate = threading.Event()
        release = threading.Event()

        class SlowService(StubService):
            def recognize(self, image_bytes):
                gate.set()
                release.wait(5)
                return "done"

        adapter = ServiceRecognizerAdapter(SlowService())
        adapter.initialize()
        results = []
        worker = threading.Thread(target=lambda: results.append(adapter.recognize(make_buffer())))
        worker.start()
        gate.wait(5)

        second = adapter.recognize(make_buffer())
        release.set()
        worker.join(5)

        assert not second.success
        assert "Already processing" in second.error
        assert results[0].text == "done"

    def test_close_closes_service(self):
        """Test close releases the service and clears readiness."""
        service = StubService("x")
        adapter = ServiceRecognizerAdapter(service)
        adapter.initialize()

        adapter.close()

        assert service.closed
        assert not adapter.is_ready


class TestFakeRecognizerAdapter:
    """Tests for FakeRecognizerAdapter class."""

    def test_default_mock_response(self, make_buffer):
        """Test the canned two-block response."""
        adapter = FakeRecognizerAdapter()

        result = adapter.recognize(make_buffer())

        assert result.text == "Hello World\nSample OCR Text"
        assert [b.bounding_box for b in result.blocks] == [Rect(100, 100, 200, 50), Rect(100, 200, 250, 50)]

    def test_scripted_results_then_default(self, make_buffer):
        """Test queued results are returned in order before the default."""
        adapter = FakeRecognizerAdapter(
            results=[RecognitionResult.ok("one"), RecognitionResult.ok("two")],
            default=RecognitionResult.ok("rest"),
        )

        texts = [adapter.recognize(make_buffer()).text for _ in range(3)]

        assert texts == ["one", "two", "rest"]
        assert len(adapter.calls) == 3

    def test_scripted_exception(self, make_buffer):
        """Test a queued exception goes through the failure path."""
        adapter = FakeRecognizerAdapter(results=[RuntimeError("model exploded")])

        result = adapter.recognize(make_buffer())

        assert not result.success
        assert "model exploded" in result.error

    def test_not_ready(self, make_buffer):
        """Test a fake configured as not ready fails initialization."""
        adapter = FakeRecognizerAdapter(ready=False)

        assert adapter.initialize() is False
        assert adapter.recognize(make_buffer()).error_kind is ErrorKind.RECOGNIZER_UNAVAILABLE

    def test_initialize_logs_outcome(self, caplog):
        """Test only a successful start is logged as initialized."""
        with caplog.at_level(logging.INFO, logger="quickcopy.core.recognizer"):
            FakeRecognizerAdapter(ready=False).initialize()
            assert "OCR initialized" not in caplog.text

            FakeRecognizerAdapter().initialize()
            assert "OCR initialized" in caplog.text

    def test_default_is_shared_canned_result(self):
        """Test the canned response has the expected confidences."""
        assert [b.confidence for b in default_mock_result().blocks] == [0.95, 0.92]
