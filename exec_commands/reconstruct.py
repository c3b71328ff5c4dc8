"""
Reconstructor - rebuilds document text from classified lines and outputs
"""

import logging
from typing import List

from .errors import OutputDecodeError
from .executor import CommandResult
from .scan import LineKind, ScanState, classify_line, split_lines

logger = logging.getLogger(__name__)


def normalize_output(output: str) -> str:
    """Ensure non-empty output ends with exactly the newline it needs."""
    if output and not output.endswith("\n"):
        return output + "\n"
    return output


def unstable_output_lines(output: str) -> List[str]:
    """
    Output lines the classifier would not read back as output.

    A captured line that looks like a close fence, a `$ ` command or a
    `  #` annotation is kept by the next strip, so the document keeps
    growing from one refresh to the next.
    """
    unstable = []
    for line in split_lines(output):
        _, note = classify_line(ScanState.INSIDE_BLOCK, line)
        if note.kind != LineKind.OUTPUT:
            unstable.append(line)
    return unstable


class Reconstructor:
    """
    Accumulates the rewritten document.

    Kept lines are appended verbatim with a newline; captured output is
    inserted as-is, terminated by a newline if it lacked one. Empty output
    inserts nothing.
    """

    def __init__(self):
        self._parts: List[str] = []

    def append_line(self, raw: str) -> None:
        self._parts.append(raw)
        self._parts.append("\n")

    def append_output(self, result: CommandResult) -> None:
        """
        Insert the captured stdout of a command.

        Lines that would be re-read as a fence, command or annotation are
        inserted anyway, with a warning.

        Raises:
            OutputDecodeError: If stdout is not valid UTF-8
        """
        try:
            text = result.stdout.decode("utf-8")
        except UnicodeDecodeError as e:
            raise OutputDecodeError(result.command, e) from e

        for line in unstable_output_lines(text):
            logger.warning(
                f"Output of '{result.command}' contains {line!r}, which will not be "
                f"stripped as output on the next run"
            )

        self._parts.append(normalize_output(text))

    def text(self) -> str:
        return "".join(self._parts)
