"""External process supervision."""

from .consumers import (
    CollectingConsumer,
    LogConsumer,
    OutputConsumer,
    TeeConsumer,
    WriterConsumer,
)
from .runner import ProcessRunner, format_command

__all__ = [
    "ProcessRunner",
    "format_command",
    "OutputConsumer",
    "LogConsumer",
    "WriterConsumer",
    "CollectingConsumer",
    "TeeConsumer",
]
