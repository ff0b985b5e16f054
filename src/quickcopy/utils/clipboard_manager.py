# -*- coding: utf-8 -*-
"""
src/quickcopy/utils/clipboard_manager.py

The clipboard delivery sink.

This module centralizes clipboard operations, using the 'pyperclip' library.
``copy_to_clipboard`` is the plain wrapper; ``ClipboardManager`` is the sink
the pipeline calls once per successful scan.
"""

import logging
from typing import Callable, List

import pyperclip

from ..core.errors import DeliveryError

# Set up a logger for this module. The application's entry point should configure the root logger.
logger = logging.getLogger(__name__)

# Copied text longer than this is shortened in log output.
MAX_LOG_LENGTH = 100


def _log_preview(text: str) -> str:
    return text if len(text) <= MAX_LOG_LENGTH else text[:MAX_LOG_LENGTH] + "..."


def copy_to_clipboard(text: str) -> bool:
    """
    Copies the given text to the system clipboard.

    Args:
        text (str): The string to be copied.

    Returns:
        bool: True if the text was copied successfully, False otherwise.
    """
    try:
        pyperclip.copy(text)
        logger.info(f"Copied to clipboard: '{_log_preview(text)}'")
        return True
    except pyperclip.PyperclipException as e:
        # This can happen on systems without a clipboard (e.g., some Linux servers)
        # or if the necessary copy/paste mechanism is not installed (e.g., xclip/xsel).
        logger.error(f"Failed to copy text to clipboard: {e}")
        logger.warning(
            "Clipboard functionality may not be available on this system. "
            "If on Linux, please ensure 'xclip' or 'xsel' is installed."
        )
        return False


class ClipboardManager:
    """
    Delivery sink that puts recognized text on the system clipboard.

    Attributes:
        last_copied_text (str): The most recent text delivered successfully.
        on_copied (List[Callable[[str], None]]): Listeners told about each copy.
    """

    def __init__(self):
        self.last_copied_text = ""
        self.on_copied: List[Callable[[str], None]] = []

    def set_text(self, text: str) -> None:
        """
        Copies ``text`` to the clipboard.

        Raises:
            DeliveryError: If the text is empty or the clipboard is unavailable.
        """
        if not text:
            logger.warning("Attempted to copy empty text")
            raise DeliveryError("Attempted to copy empty text")

        if not copy_to_clipboard(text):
            raise DeliveryError("Clipboard is not available")

        self.last_copied_text = text
        for listener in list(self.on_copied):
            try:
                listener(text)
            except Exception as e:
                logger.error(f"Error in clipboard listener: {e}", exc_info=True)
