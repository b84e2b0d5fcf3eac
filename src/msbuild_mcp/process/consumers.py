"""Line consumers for process output.

A consumer is any callable taking one line of output (without its line
terminator). Consumers are passed to ProcessRunner.run per call.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TextIO

OutputConsumer = Callable[[str], None]


class LogConsumer:
    """Relays each line to a logger."""

    def __init__(self, logger: logging.Logger, level: int = logging.INFO, prefix: str = ""):
        self.logger = logger
        self.level = level
        self.prefix = prefix

    def __call__(self, line: str) -> None:
        if self.prefix:
            self.logger.log(self.level, f"[{self.prefix}] {line}")
        else:
            self.logger.log(self.level, line)


class WriterConsumer:
    """Writes each line to an open text stream.

    The first write failure is kept in ``error`` and later lines are dropped,
    so the caller can report it once the process has finished.
    """

    def __init__(self, stream: TextIO):
        self.stream = stream
        self.error: OSError | None = None
        self.lines_written = 0

    def __call__(self, line: str) -> None:
        if self.error is not None:
            return
        try:
            self.stream.write(line + "\n")
            self.lines_written += 1
        except OSError as e:
            self.error = e


class CollectingConsumer:
    """Keeps every line in memory."""

    def __init__(self) -> None:
        self.lines: list[str] = []

    def __call__(self, line: str) -> None:
        self.lines.append(line)

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


class TeeConsumer:
    """Fans each line out to several consumers."""

    def __init__(self, *consumers: OutputConsumer | None):
        self.consumers = [c for c in consumers if c is not None]

    def __call__(self, line: str) -> None:
        for consumer in self.consumers:
            consumer(line)
