"""
Console output and logging setup.

User-facing status lines go to stdout; diagnostics go through structlog
to stderr and are only visible at WARNING or above unless debug is on.
"""

import sys
import logging
import itertools
import threading
from typing import Optional

import structlog


SPINNER_FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"
SEPARATOR = "-" * 40


def configure_logging(debug: bool = False):
    """Configure structured logging for the CLI entry points"""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        stream=sys.stderr,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.dev.ConsoleRenderer(colors=True)
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def print_info(message: str):
    print(f"ℹ {message}")


def print_success(message: str):
    print(f"✓ {message}")


def print_warning(message: str):
    print(f"⚠ {message}")


def print_error(message: str):
    print(f"✗ {message}", file=sys.stderr)


def print_block(title: str, text: str):
    """Print text between separator lines"""
    print()
    print_info(title)
    print(SEPARATOR)
    print(text.rstrip("\n"))
    print(SEPARATOR)


def human_size(num_bytes: Optional[int]) -> str:
    """Format a byte count the way `du -h` does"""
    if num_bytes is None:
        return "?"
    size = float(num_bytes)
    for unit in ("B", "K", "M", "G", "T"):
        if size < 1024 or unit == "T":
            return f"{size:.0f}{unit}" if unit == "B" else f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}T"


class Spinner:
    """Progress indicator shown while a blocking step runs.

    Runs in a daemon thread; leaving the `with` block stops and joins the
    thread before control returns, so it never outlives the step it
    decorates. Disabled when stdout is not a terminal.
    """

    def __init__(self, message: str, interval: float = 0.1, stream=None):
        self.message = message
        self.interval = interval
        self.stream = stream or sys.stdout
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def enabled(self) -> bool:
        isatty = getattr(self.stream, "isatty", None)
        return bool(isatty and isatty())

    def update(self, message: str):
        self.message = message

    def _run(self):
        for frame in itertools.cycle(SPINNER_FRAMES):
            if self._stop.is_set():
                break
            self.stream.write(f"\r{frame} {self.message}")
            self.stream.flush()
            self._stop.wait(self.interval)

    def start(self):
        if not self.enabled or self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def stop(self):
        if self._thread is None:
            return
        self._stop.set()
        self._thread.join()
        self._thread = None
        # Clear the spinner line
        self.stream.write("\r\033[K")
        self.stream.flush()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False
