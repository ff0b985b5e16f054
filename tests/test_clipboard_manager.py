"""
Unit tests for quickcopy.utils.clipboard_manager module.
"""
import pyperclip
import pytest

from quickcopy.core.errors import DeliveryError
from quickcopy.utils import clipboard_manager
from quickcopy.utils.clipboard_manager import ClipboardManager, copy_to_clipboard


@pytest.fixture
def fake_clipboard(monkeypatch):
    """Replace pyperclip.copy with an in-memory recorder."""
    copied = []
    monkeypatch.setattr(clipboard_manager.pyperclip, "copy", copied.append)
    return copied


@pytest.fixture
def broken_clipboard(monkeypatch):
    """Make pyperclip.copy fail as it does on systems without a clipboard."""
    def fail(text):
        raise pyperclip.PyperclipException("no copy/paste mechanism")
    monkeypatch.setattr(clipboard_manager.pyperclip, "copy", fail)


class TestCopyToClipboard:
    """Tests for copy_to_clipboard function."""

    def test_success(self, fake_clipboard):
        """Test text reaches pyperclip."""
        assert copy_to_clipboard("hello") is True
        assert fake_clipboard == ["hello"]

    def test_failure_returns_false(self, broken_clipboard):
        """Test a missing clipboard is reported, not raised."""
        assert copy_to_clipboard("hello") is False


class TestClipboardManager:
    """Tests for ClipboardManager class."""

    def test_set_text(self, fake_clipboard):
        """Test full text is copied and remembered."""
        manager = ClipboardManager()

        manager.set_text("Hello World\nSecond line")

        assert fake_clipboard == ["Hello World\nSecond line"]
        assert manager.last_copied_text == "Hello World\nSecond line"

    def test_empty_text_rejected(self, fake_clipboard):
        """Test empty text is a delivery error."""
        with pytest.raises(DeliveryError):
            ClipboardManager().set_text("")
        assert fake_clipboard == []

    def test_unavailable_clipboard(self, broken_clipboard):
        """Test a clipboard failure raises DeliveryError."""
        manager = ClipboardManager()

        with pytest.raises(DeliveryError):
            manager.set_text("hello")
        assert manager.last_copied_text == ""

    def test_listeners_notified(self, fake_clipboard):
        """Test copy listeners receive the text."""
        manager = ClipboardManager()
        seen = []
        manager.on_copied.append(seen.append)

        manager.set_text("abc")

        assert seen == ["abc"]
