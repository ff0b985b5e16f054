# -*- coding: utf-8 -*-
"""
src/quickcopy/utils/hotkey_manager.py

Global scan hotkey, listened for with the 'pynput' library.

The listener runs on its own daemon thread. Activations closer together than
the cooldown are ignored, so a held or bouncing key combination produces a
single scan request. The callback runs on the listener thread; callers are
responsible for handing the request over to their own thread or event loop.
"""

import logging
import time
from typing import Callable, Optional

from pynput import keyboard

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN = 0.5


class HotkeyManager:
    """
    Calls ``on_trigger`` whenever the configured key combination is pressed.

    Attributes:
        hotkey_str (str): pynput hotkey syntax, e.g. '<ctrl>+<alt>+c'.
        on_trigger (Callable[[], None]): Invoked once per accepted activation.
        cooldown (float): Minimum seconds between two accepted activations.
    """

    def __init__(self, hotkey_str: str, on_trigger: Callable[[], None],
                 cooldown: float = DEFAULT_COOLDOWN):
        self.hotkey_str = hotkey_str
        self.on_trigger = on_trigger
        self.cooldown = cooldown
        self.listener: Optional[keyboard.GlobalHotKeys] = None
        self._last_activation = float("-inf")

    @property
    def is_running(self) -> bool:
        return self.listener is not None and self.listener.is_alive()

    def _on_activate(self):
        now = time.monotonic()
        if now - self._last_activation < self.cooldown:
            logger.debug(f"Hotkey '{self.hotkey_str}' ignored (cooldown).")
            return
        self._last_activation = now

        logger.debug(f"Hotkey '{self.hotkey_str}' activated.")
        try:
            self.on_trigger()
        except Exception as e:
            logger.error(f"Error executing hotkey callback: {e}", exc_info=True)

    def start(self) -> bool:
        """
        Starts listening. Returns False if the hotkey string is invalid or
        the platform refuses a global listener.
        """
        if self.is_running:
            logger.warning("Hotkey listener is already running. Restarting it.")
            self.stop()

        try:
            keyboard.HotKey.parse(self.hotkey_str)
            self.listener = keyboard.GlobalHotKeys({self.hotkey_str: self._on_activate})
            self.listener.start()
        except Exception as e:
            # pynput raises ValueError for bad strings and platform errors otherwise.
            logger.error(f"Failed to start hotkey listener for '{self.hotkey_str}': {e}", exc_info=True)
            self.listener = None
            return False

        logger.info(f"Global hotkey listener started for '{self.hotkey_str}'.")
        return True

    def stop(self):
        if self.is_running:
            logger.info("Stopping global hotkey listener.")
            self.listener.stop()
        self.listener = None
