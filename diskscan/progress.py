"""Console progress bar and spinner-style status bar."""

from __future__ import annotations

import shutil
import sys
import time
from typing import Callable, TextIO

_MINIMUM_BAR_WIDTH = 10
_ETA_FORMAT_LENGTH = 13
_WHITESPACE_LENGTH = 2
_BAR_BORDER_WIDTH = 2


def _split_seconds(seconds: int) -> tuple[int, int, int]:
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return hours, minutes, secs


class ProgressBar:
    """A bar with a label and an ETA, redrawn in place on a stream."""

    def __init__(
        self,
        label: str,
        max: int,
        format: str = "|=|",
        stream: TextIO | None = None,
        width: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if len(format) != 3:
            raise ValueError("format must be 3 characters in length")
        self.label = label
        self.max = max
        self.value = 0
        self.begin, self.fill, self.end = format
        self._stream = stream if stream is not None else sys.stderr
        self._width = width
        self._clock = clock
        self.start = clock()
        self._draw()

    def __enter__(self) -> "ProgressBar":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.finish()

    def _screen_width(self) -> int:
        if self._width is not None:
            return self._width
        return shutil.get_terminal_size(fallback=(80, 24)).columns

    def _remaining_seconds(self) -> int:
        elapsed = self._clock() - self.start
        if self.value > 0 and elapsed > 0:
            return int(elapsed / self.value * (self.max - self.value))
        return 0

    def update(self, value: int) -> None:
        """Set the current value and redraw."""
        self.value = value
        self._draw()

    def inc(self) -> None:
        """Advance by one step and redraw."""
        self.update(self.value + 1)

    def set_label(self, label: str) -> None:
        """Change the label used by the next draw."""
        self.label = label

    def render(self) -> str:
        """Return the bar line as it would be drawn now."""
        screen_width = self._screen_width()
        label_length = len(self.label)
        bar_width = max(
            _MINIMUM_BAR_WIDTH,
            screen_width - label_length - _ETA_FORMAT_LENGTH - _WHITESPACE_LENGTH,
        )
        if label_length + 1 + bar_width + 1 + _ETA_FORMAT_LENGTH > screen_width:
            # Too wide for the screen: the label is sacrificed.
            label_width = max(0, screen_width - bar_width - _ETA_FORMAT_LENGTH - _WHITESPACE_LENGTH)
        else:
            label_width = label_length

        completed = self.value >= self.max
        piece_count = bar_width - _BAR_BORDER_WIDTH
        if completed:
            pieces = piece_count
            eta_seconds = int(self._clock() - self.start)
        else:
            pieces = int(piece_count * (self.value / self.max))
            eta_seconds = self._remaining_seconds()
        hours, minutes, seconds = _split_seconds(eta_seconds)

        label = f"{self.label[:label_width]} " if label_width else ""
        bar = self.begin + self.fill * pieces + " " * (piece_count - pieces) + self.end
        return f"{label}{bar} ETA:{hours:2d}h{minutes:02d}m{seconds:02d}s"

    def _draw(self) -> None:
        self._stream.write(self.render() + "\r")
        self._stream.flush()

    def finish(self) -> None:
        """Draw a final time and end the line."""
        self._draw()
        self._stream.write("\n")
        self._stream.flush()


class StatusBar:
    """A spinner with a label for work of unknown length."""

    def __init__(
        self,
        label: str,
        format: str = "-\\|/",
        stream: TextIO | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not format:
            raise ValueError("format must not be empty")
        self.label = label
        self.format = format
        self.index = 0
        self._last_printed = 0
        self._stream = stream if stream is not None else sys.stderr
        self._clock = clock
        self.start = clock()

    def __enter__(self) -> "StatusBar":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.finish()

    def _erase(self) -> None:
        self._stream.write("\b" * self._last_printed)

    def inc(self) -> None:
        """Advance the spinner and redraw."""
        self.index = (self.index + 1) % len(self.format)
        self.draw()

    def draw(self) -> None:
        """Replace the previous drawing with the current spinner frame."""
        self._erase()
        text = f"{self.label}: {self.format[self.index]}"
        self._stream.write(text)
        self._last_printed = len(text)
        self._stream.flush()

    def finish(self) -> None:
        """Show the total elapsed time right-justified and end the line."""
        hours, minutes, seconds = _split_seconds(max(0, int(self._clock() - self.start)))
        elapsed = f"{hours:3d}:{minutes:02d}:{seconds:02d}"

        self._erase()
        text = f"{self.label}: {elapsed}"
        self._stream.write(text)
        self._last_printed = len(text)
        self._erase()

        padding = " " * max(0, 80 - self._last_printed)
        self._stream.write(f"{self.label}: {padding}{elapsed}\n")
        self._stream.flush()