"""
QuickCopy Application Package.

Scan the screen or a camera frame, recognize the text in it, and put that text
on the clipboard. The package holds the capture-to-clipboard pipeline
(``quickcopy.core``), its clipboard/history/hotkey helpers
(``quickcopy.utils``), configuration, and the desktop tray application.

The desktop application (``quickcopy.app``) needs the optional ``desktop``
dependencies and is not imported here.
"""

__version__ = "0.1.0"

from .core.pipeline import PipelineOrchestrator, PipelineSettings, PipelineState

__all__ = ["PipelineOrchestrator", "PipelineSettings", "PipelineState"]
