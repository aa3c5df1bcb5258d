"""Cross-platform keyboard input delivered to the asyncio event loop."""

import asyncio
import sys
import threading
import time
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class KeyReader:
    """Reads single keypresses on a daemon thread and queues them for the loop."""

    def __init__(self):
        self.running = False
        self.paused = threading.Event()
        self.thread: Optional[threading.Thread] = None
        self.queue: "asyncio.Queue[str]" = asyncio.Queue()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def start(self) -> None:
        """Start reading. Must be called from the event loop."""
        if self.running:
            return

        self._loop = asyncio.get_running_loop()
        self.running = True
        self.thread = threading.Thread(target=self._input_loop, daemon=True)
        self.thread.name = "KeyReaderThread"
        self.thread.start()
        logger.info("Keyboard input handler started")

    def stop(self) -> None:
        """Stop the keyboard input handler."""
        self.running = False
        if self.thread:
            self.thread.join(timeout=1.0)
        logger.info("Keyboard input handler stopped")

    def pause(self) -> None:
        """Stop consuming stdin so a line prompt can read it."""
        self.paused.set()

    def resume(self) -> None:
        self.paused.clear()

    async def get(self) -> str:
        return await self.queue.get()

    def _input_loop(self) -> None:
        while self.running:
            if self.paused.is_set():
                time.sleep(0.1)
                continue
            key = self._get_key()
            if key and self._loop is not None and not self._loop.is_closed():
                logger.debug(f"Key detected: '{key}'")
                self._loop.call_soon_threadsafe(self.queue.put_nowait, key)
        logger.info("Keyboard input loop ended")

    def _get_key(self) -> Optional[str]:
        """Get a single keypress in a cross-platform way."""
        if sys.platform == "win32":
            return self._get_key_windows()
        return self._get_key_unix()

    def _get_key_windows(self) -> Optional[str]:
        """Get key on Windows."""
        import msvcrt

        if msvcrt.kbhit():
            return msvcrt.getch().decode('utf-8', errors='ignore').lower()
        time.sleep(0.05)
        return None

    def _get_key_unix(self) -> Optional[str]:
        """Get key on Unix/Linux/macOS."""
        import select
        import termios
        import tty

        if not sys.stdin.isatty():
            line = sys.stdin.readline()
            if not line:
                self.running = False
                return None
            return line.strip()[:1].lower() or None

        if select.select([sys.stdin], [], [], 0.1)[0]:
            old_settings = termios.tcgetattr(sys.stdin)
            try:
                tty.setraw(sys.stdin.fileno())
                key = sys.stdin.read(1)
            finally:
                termios.tcsetattr(sys.stdin, termios.TCSADRAIN, old_settings)
            if key == "\x03":
                return "q"
            return key.lower()
        return None
