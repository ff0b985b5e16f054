# -*- coding: utf-8 -*-
"""
src/quickcopy/app.py

Desktop application controller for QuickCopy.

This module wires the pipeline together: it builds the single
PipelineOrchestrator from the configuration, runs it on a background asyncio
loop, listens for the global hotkey, and relays pipeline feedback to the
system tray through Qt signals so that every UI call happens on the GUI
thread.
"""

import asyncio
import logging
import sys
import threading
from datetime import datetime
from typing import List, Optional

from PyQt6.QtCore import QObject, pyqtSignal
from PyQt6.QtGui import QAction, QGuiApplication, QIcon
from PyQt6.QtWidgets import QApplication, QMenu, QSystemTrayIcon

from .config import APP_NAME, Config
from .core.capture import CameraFrameGrabber, CaptureSource, FrameGrabber, ScreenFrameGrabber
from .core.easyocr_service import EasyOCRService
from .core.ocr_result import Rect
from .core.pipeline import PipelineEvents, PipelineOrchestrator, PipelineState
from .core.recognizer import FakeRecognizerAdapter, RecognizerAdapter, ServiceRecognizerAdapter
from .utils.clipboard_manager import ClipboardManager
from .utils.history_manager import HistoryManager
from .utils.hotkey_manager import HotkeyManager

logger = logging.getLogger(__name__)

NOTIFICATION_TIMEOUT_MS = 2500


def configure_logging(config: Config) -> None:
    """Sets up root logging, adding a timestamped log file when enabled."""
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    if config.log_to_file:
        log_path = config.app_dir / f"quickcopy_log_{datetime.now():%Y%m%d_%H%M%S}.txt"
        try:
            handler = logging.FileHandler(log_path, encoding="utf-8")
        except OSError as e:
            logging.error(f"Failed to initialize file logging: {e}")
            return
        handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        logging.getLogger().addHandler(handler)
        logging.info(f"File logging initialized: {log_path}")


def build_orchestrator(config: Config, events: PipelineEvents,
                       display_width: Optional[int] = None,
                       display_height: Optional[int] = None) -> PipelineOrchestrator:
    """Constructs the process-wide orchestrator and its collaborators."""
    grabbers: List[FrameGrabber] = []
    if config.camera_index is not None:
        grabbers.append(CameraFrameGrabber(config.camera_index, config.target_width, config.target_height))
    grabbers.append(ScreenFrameGrabber(config.monitor_index))
    capture_source = CaptureSource(grabbers, config.target_width, config.target_height)

    recognizer: RecognizerAdapter
    if config.use_fake_recognizer:
        recognizer = FakeRecognizerAdapter()
    else:
        service = EasyOCRService(config.languages, gpu=config.use_gpu)
        recognizer = ServiceRecognizerAdapter(service, config.min_confidence)

    history = HistoryManager(config.max_history_items, config.history_path)

    return PipelineOrchestrator(
        capture_source=capture_source,
        recognizer=recognizer,
        clipboard=ClipboardManager(),
        history=history,
        settings=config.pipeline_settings(display_width, display_height),
        events=events,
    )


class FeedbackBridge(QObject):
    """Carries pipeline feedback from the asyncio thread to the GUI thread."""
    toast_requested = pyqtSignal(str)
    state_changed = pyqtSignal(str)
    error_feedback = pyqtSignal()

    def attach(self, events: PipelineEvents) -> None:
        events.toast.append(self.toast_requested.emit)
        events.state_changed.append(lambda state: self.state_changed.emit(state.value))
        events.haptic_error.append(self.error_feedback.emit)
        events.highlight.append(self._log_highlights)

    @staticmethod
    def _log_highlights(boxes: List[Rect]) -> None:
        for box in boxes:
            logger.debug(f"Highlight at ({box.x:.0f}, {box.y:.0f}) {box.width:.0f}x{box.height:.0f}")


class QuickCopyApp:
    """
    The main application controller: system tray, hotkey, and the pipeline
    thread.
    """

    def __init__(self, app: QApplication, config: Optional[Config] = None):
        self.app = app
        self.config = config or Config()

        self.events = PipelineEvents()
        self.bridge = FeedbackBridge()
        self.bridge.attach(self.events)

        screen = QGuiApplication.primaryScreen()
        display = screen.geometry() if screen else None
        self.orchestrator = build_orchestrator(
            self.config,
            self.events,
            display.width() if display else None,
            display.height() if display else None,
        )

        # The pipeline lives on its own event loop so recognition never
        # blocks the Qt event loop.
        self.loop = asyncio.new_event_loop()
        self.loop_thread = threading.Thread(target=self._run_loop, name="pipeline-loop", daemon=True)
        self.loop_thread.start()

        self.setup_tray_icon()
        self.bridge.toast_requested.connect(self.show_toast)
        self.bridge.state_changed.connect(self.on_state_changed)
        self.bridge.error_feedback.connect(QApplication.beep)

        self.hotkey_manager = HotkeyManager(self.config.hotkey, self.request_scan)
        self.hotkey_manager.start()

        asyncio.run_coroutine_threadsafe(self.orchestrator.initialize(), self.loop)

    def _run_loop(self):
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def setup_tray_icon(self):
        """Creates and configures the system tray icon and its menu."""
        self.tray_icon = QSystemTrayIcon()
        self.tray_icon.setIcon(QIcon.fromTheme("edit-copy"))
        self.tray_icon.setToolTip(f"{APP_NAME} - Press {self.config.hotkey} to scan")

        menu = QMenu()

        scan_action = QAction(f"Scan text ({self.config.hotkey})", self.app)
        scan_action.triggered.connect(self.request_scan)
        menu.addAction(scan_action)

        clear_action = QAction("Clear history", self.app)
        clear_action.triggered.connect(self.orchestrator.history.clear)
        menu.addAction(clear_action)

        menu.addSeparator()

        quit_action = QAction("Quit", self.app)
        quit_action.triggered.connect(self.quit_app)
        menu.addAction(quit_action)

        self.menu = menu
        self.tray_icon.setContextMenu(menu)
        self.tray_icon.show()

    def request_scan(self):
        """Schedules a scan on the pipeline loop. Safe from any thread."""
        asyncio.run_coroutine_threadsafe(self.orchestrator.trigger(), self.loop)

    def show_toast(self, message: str):
        self.tray_icon.showMessage(APP_NAME, message, QSystemTrayIcon.MessageIcon.Information,
                                   NOTIFICATION_TIMEOUT_MS)

    def on_state_changed(self, state_name: str):
        hint = "" if state_name == PipelineState.IDLE.value else f" ({state_name})"
        self.tray_icon.setToolTip(f"{APP_NAME}{hint} - Press {self.config.hotkey} to scan")

    def quit_app(self):
        """Stops the hotkey listener and pipeline loop, then quits."""
        logger.info("Quitting QuickCopy...")
        self.hotkey_manager.stop()

        future = asyncio.run_coroutine_threadsafe(self._shutdown_pipeline(), self.loop)
        try:
            future.result(timeout=5)
        except Exception as e:
            logger.error(f"Pipeline shutdown did not complete cleanly: {e}")
        self.loop.call_soon_threadsafe(self.loop.stop)
        self.loop_thread.join(timeout=5)

        self.tray_icon.hide()
        self.app.quit()

    async def _shutdown_pipeline(self):
        self.orchestrator.shutdown()


def run() -> int:
    """Entry point: builds the Qt application and runs its event loop."""
    config = Config()
    configure_logging(config)

    app = QApplication(sys.argv)
    # Closing windows must not end the app; only the tray's Quit does.
    app.setQuitOnLastWindowClosed(False)

    controller = QuickCopyApp(app, config)
    logger.info(f"{APP_NAME} running with hotkey {controller.config.hotkey}")
    return app.exec()
