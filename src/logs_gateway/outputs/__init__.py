"""Log destinations."""

from logs_gateway.outputs.aggregator import (
    AggregatorOutput,
    AggregatorTransport,
    LoggingTransport,
)
from logs_gateway.outputs.base import (
    AGGREGATOR_OUTPUT,
    CONSOLE_OUTPUT,
    FILE_OUTPUT,
    Output,
)
from logs_gateway.outputs.console import ConsoleOutput
from logs_gateway.outputs.file import FileOutput

__all__ = [
    "AGGREGATOR_OUTPUT",
    "CONSOLE_OUTPUT",
    "FILE_OUTPUT",
    "AggregatorOutput",
    "AggregatorTransport",
    "ConsoleOutput",
    "FileOutput",
    "LoggingTransport",
    "Output",
]
