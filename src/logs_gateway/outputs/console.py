"""Console destination backed by rich consoles for stdout and stderr."""

from __future__ import annotations

from rich.console import Console

from logs_gateway.formatting import Formatter
from logs_gateway.models.envelope import LogEnvelope
from logs_gateway.outputs.base import CONSOLE_OUTPUT


class ConsoleOutput:
    """Prints formatted entries; ``error`` entries go to stderr."""

    name = CONSOLE_OUTPUT

    def __init__(
        self,
        formatter: Formatter,
        stdout: Console | None = None,
        stderr: Console | None = None,
    ) -> None:
        self.formatter = formatter
        self.stdout = stdout or Console(markup=False, highlight=False, emoji=False, soft_wrap=True)
        self.stderr = stderr or Console(
            stderr=True, markup=False, highlight=False, emoji=False, soft_wrap=True
        )

    def write(self, envelope: LogEnvelope) -> None:
        console = self.stderr if envelope.level == "error" else self.stdout
        console.print(self.formatter(envelope), markup=False, highlight=False)
