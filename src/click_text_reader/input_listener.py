from __future__ import annotations

import logging

from pynput import keyboard, mouse
from PyQt6.QtCore import QObject, pyqtSignal

logger = logging.getLogger(__name__)


class InputListener(QObject):
    """Global mouse/keyboard hooks re-emitted as Qt signals.

    - ``clicked(x, y)``: left button pressed anywhere on the desktop
    - ``quit_requested``: Esc pressed
    """

    clicked = pyqtSignal(int, int)
    quit_requested = pyqtSignal()

    def __init__(self) -> None:
        super().__init__()
        self._mouse: mouse.Listener | None = None
        self._keyboard: keyboard.Listener | None = None

    def start(self) -> None:
        if self._mouse is not None:
            return
        self._mouse = mouse.Listener(on_click=self._on_click)
        self._mouse.daemon = True
        self._mouse.start()

        self._keyboard = keyboard.Listener(on_press=self._on_key_press)
        self._keyboard.daemon = True
        self._keyboard.start()
        logger.info("Input listener started (left click = read text, Esc = quit)")

    def stop(self) -> None:
        if self._mouse:
            self._mouse.stop()
            self._mouse = None
        if self._keyboard:
            self._keyboard.stop()
            self._keyboard = None

    def _on_click(self, x, y, button, pressed) -> None:
        if pressed and button == mouse.Button.left:
            self.clicked.emit(int(x), int(y))

    def _on_key_press(self, key) -> None:
        if key == keyboard.Key.esc:
            self.quit_requested.emit()
