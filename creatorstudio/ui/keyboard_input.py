"""Cross-platform single-key input for the recording screen."""

import sys
import threading
import time
from typing import Optional, Callable
import logging

logger = logging.getLogger(__name__)

KeyCallback = Callable[[str], bool]


class KeyboardInputHandler:
    """Reads single keypresses on a daemon thread.

    The callback runs on that thread; it returns False to end the loop.
    Callers that touch event-loop state must hand the key over with
    ``loop.call_soon_threadsafe``.
    """

    def __init__(self, callback: KeyCallback, poll_interval: float = 0.05):
        """Initialize keyboard handler.

        Args:
            callback: Function that takes a key and returns True to continue, False to quit
            poll_interval: Seconds to sleep between polls
        """
        self.callback = callback
        self.poll_interval = poll_interval
        self.running = False
        self.thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self.running:
            return
        self.running = True
        self.thread = threading.Thread(target=self._input_loop, daemon=True)
        self.thread.name = "KeyboardInputThread"
        self.thread.start()
        logger.info("Keyboard input handler started")

    def stop(self) -> None:
        self.running = False
        if self.thread and self.thread is not threading.current_thread():
            self.thread.join(timeout=1.0)
        logger.info("Keyboard input handler stopped")

    def _input_loop(self) -> None:
        while self.running:
            try:
                key = self._get_key()
            except OSError as e:
                logger.error(f"Error reading keyboard input: {e}")
                break
            if key:
                logger.debug(f"Key detected: '{key}'")
                if not self.callback(key):
                    break
            time.sleep(self.poll_interval)
        self.running = False
        logger.info("Keyboard input loop ended")

    def _get_key(self) -> Optional[str]:
        if sys.platform == "win32":
            return self._get_key_windows()
        return self._get_key_unix()

    def _get_key_windows(self) -> Optional[str]:
        import msvcrt
        if msvcrt.kbhit():
            return msvcrt.getch().decode('utf-8', errors='ignore').lower()
        return None

    def _get_key_unix(self) -> Optional[str]:
        import select
        import termios
        import tty

        if not select.select([sys.stdin], [], [], 0.1)[0]:
            return None
        # Raw mode only for the single read so rich can keep drawing
        old_settings = termios.tcgetattr(sys.stdin)
        try:
            tty.setraw(sys.stdin.fileno())
            key = sys.stdin.read(1)
        finally:
            termios.tcsetattr(sys.stdin, termios.TCSADRAIN, old_settings)
        return key.lower()


class LineInputHandler:
    """Line-based fallback when stdin is not a terminal."""

    def __init__(self, callback: KeyCallback):
        self.callback = callback
        self.running = False
        self.thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self.running:
            return
        self.running = True
        self.thread = threading.Thread(target=self._input_loop, daemon=True)
        self.thread.name = "LineInputThread"
        self.thread.start()
        logger.info("Line input handler started")

    def stop(self) -> None:
        self.running = False
        logger.info("Line input handler stopped")

    def _input_loop(self) -> None:
        while self.running:
            try:
                line = input().strip().lower()
            except EOFError:
                logger.info("Input closed, quitting")
                self.callback("q")
                break
            if line and not self.callback(line[0]):
                break
        self.running = False


def create_input_handler(callback: KeyCallback, stdin=None):
    """Pick the single-key handler on a terminal, the line handler otherwise."""
    stdin = stdin or sys.stdin
    if stdin.isatty():
        return KeyboardInputHandler(callback)
    logger.warning("stdin is not a terminal, falling back to line input")
    return LineInputHandler(callback)
