# -*- coding: utf-8 -*-
"""
Keyboard control while a batch runs: 'z' finishes the current config and
stops, Ctrl+C exits on the spot. Only active when stdin is a terminal.
"""
from __future__ import annotations
import os
import sys
import threading
from typing import Callable, Optional, TextIO

from .core.config import CancelToken

STOP_KEYS = ("z", "Z")
FORCE_EXIT = "\x03"

try:
    import termios
except ImportError:  # Windows: no raw-mode controller
    termios = None


class KeyboardController:
    def __init__(self, token: CancelToken, stdin: TextIO = None, out: TextIO = None,
                 exit_fn: Callable[[int], None] = os._exit):
        self.token = token
        self.stdin = stdin or sys.stdin
        self.out = out or sys.stdout
        self.exit_fn = exit_fn
        self._saved: Optional[list] = None
        self._thread: Optional[threading.Thread] = None

    def handle_key(self, key: str):
        if key in STOP_KEYS:
            if self.token.request_stop():
                self.out.write("\n🛑 Graceful exit requested. Will finish current config and exit...\n")
                self.out.flush()
        elif key == FORCE_EXIT:
            self.out.write("\n❌ Force exit\n")
            self.out.flush()
            self.restore()
            self.exit_fn(1)

    @property
    def available(self) -> bool:
        try:
            return termios is not None and self.stdin.isatty()
        except (AttributeError, ValueError):
            return False

    def start(self) -> bool:
        """Switch stdin to unbuffered no-echo mode and start the reader thread."""
        if not self.available:
            return False
        fd = self.stdin.fileno()
        self._saved = termios.tcgetattr(fd)
        mode = termios.tcgetattr(fd)
        # keep output processing; take ^C as a plain byte
        mode[3] &= ~(termios.ECHO | termios.ICANON | termios.ISIG)
        mode[6][termios.VMIN] = 1
        mode[6][termios.VTIME] = 0
        termios.tcsetattr(fd, termios.TCSAFLUSH, mode)
        self._thread = threading.Thread(target=self._read_loop, args=(fd,),
                                        name="KeyboardController", daemon=True)
        self._thread.start()
        return True

    def _read_loop(self, fd: int):
        while True:
            try:
                b = os.read(fd, 1)
            except OSError:
                return
            if not b:
                return
            self.handle_key(b.decode("utf-8", errors="ignore"))

    def restore(self):
        if self._saved is None:
            return
        try:
            termios.tcsetattr(self.stdin.fileno(), termios.TCSADRAIN, self._saved)
        except (OSError, ValueError, termios.error):
            pass
        self._saved = None
