# -*- coding: utf-8 -*-
"""
The Utilities Package for QuickCopy.

Sinks and input helpers used around the core pipeline:

- clipboard_manager: Delivers recognized text to the system clipboard.
- history_manager: Keeps a short, optionally persisted history of copies.
- hotkey_manager: Global hotkey that requests a scan (needs pynput, so it is
  not imported here).
"""

from .clipboard_manager import ClipboardManager, copy_to_clipboard
from .history_manager import HistoryEntry, HistoryManager

__all__ = [
    "ClipboardManager",
    "HistoryEntry",
    "HistoryManager",
    "copy_to_clipboard",
]
