import sys
import threading
import termios
import tty
import select
from typing import Optional
from vcomp.infrastructure.event_bus import EventBus
from vcomp.domain.events import RequestCancel

class KeyboardListener:
    """Listens for keyboard input in a background thread."""

    def __init__(self, event_bus: EventBus):
        self.event_bus = event_bus
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _get_key(self) -> Optional[str]:
        """Reads a single key from stdin in raw mode."""
        fd = sys.stdin.fileno()
        old_settings = termios.tcgetattr(fd)
        try:
            tty.setraw(fd)
            rlist, _, _ = select.select([sys.stdin], [], [], 0.1)
            if rlist:
                return sys.stdin.read(1)
        finally:
            termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)
        return None

    def handle_key(self, key: str) -> bool:
        """Publishes the event bound to a key; returns False when listening should end."""
        if key.upper() == 'C':
            self.event_bus.publish(RequestCancel())
        elif key == '\x03': # Ctrl+C
            self.event_bus.publish(RequestCancel())
            return False
        return True

    def _run(self):
        """Main loop for the listener thread."""
        while not self._stop_event.is_set():
            key = self._get_key()
            if key and not self.handle_key(key):
                break

    def start(self):
        """Starts the listener thread; does nothing without an interactive terminal."""
        if not sys.stdin.isatty():
            return
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def stop(self):
        """Stops the listener thread."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=1.0)
