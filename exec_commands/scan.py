"""
Line Classifier for console blocks
==================================

Labels every line of a document in a single pass. The only state carried
from one line to the next is a ScanState value; `classify_line` is a pure
transition function and `annotate_lines` folds it over a document.

Fence syntax:

    ```console [continued]     opens a block
    $ command                  command line (marker and one space stripped)
      # note                   annotation, kept verbatim, never executed
    anything else              previously captured output, dropped
    ```                        closes a block (trailing whitespace allowed)

A command line ending with a backslash continues onto the next lines. A
block left open at the end of a document is an error: every line after its
fence would otherwise be dropped as output.
"""

import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional, Tuple

from .errors import UnclosedBlockError

FENCE_OPEN_RE = re.compile(r"^```console(?:\s+(continued))?\s*$")
FENCE_CLOSE = "```"
COMMAND_MARKER = "$ "
COMMENT_MARKER = "  #"
CONTINUATION_SUFFIX = "\\"


class ScanState(str, Enum):
    """Scanner position relative to console blocks."""
    OUT_OF_BLOCK = "out_of_block"
    INSIDE_BLOCK = "inside_block"
    IN_COMMAND = "in_command"  # pending backslash continuation


class BlockSignal(str, Enum):
    """Hook trigger emitted alongside a classified line."""
    NONE = "none"
    PRE = "pre"
    POST = "post"


class LineKind(str, Enum):
    """What a line is, as seen by the classifier."""
    TEXT = "text"
    FENCE_OPEN = "fence_open"
    FENCE_CLOSE = "fence_close"
    COMMAND = "command"
    CONTINUATION = "continuation"
    COMMENT = "comment"
    OUTPUT = "output"


@dataclass(frozen=True)
class LineAnnotation:
    """Result of classifying one line in isolation."""
    kind: LineKind
    keep: bool
    signal: BlockSignal = BlockSignal.NONE
    fragment: Optional[str] = None  # command text contributed by this line
    continued: bool = False


@dataclass(frozen=True)
class ClassifiedLine:
    """
    A document line with its classification.

    `command` is set on the line where a shell invocation is complete: the
    `$` line itself, or the last line of a backslash continuation.
    """
    raw: str
    kind: LineKind
    keep: bool
    signal: BlockSignal = BlockSignal.NONE
    command: Optional[str] = None
    continued: bool = False


def split_lines(text: str) -> List[str]:
    """Split on newlines only, dropping the empty tail after a final newline."""
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def _ends_with_continuation(line: str) -> bool:
    return line.endswith(CONTINUATION_SUFFIX)


def classify_line(state: ScanState, line: str) -> Tuple[ScanState, LineAnnotation]:
    """
    Advance the scanner by one line.

    Args:
        state: Current scan state
        line: Raw line, without its newline

    Returns:
        (next_state, annotation)
    """
    body = line.rstrip("\r")

    if state == ScanState.OUT_OF_BLOCK:
        match = FENCE_OPEN_RE.match(body)
        if match:
            return ScanState.INSIDE_BLOCK, LineAnnotation(
                LineKind.FENCE_OPEN, True, BlockSignal.PRE,
                continued=match.group(1) is not None,
            )
        return ScanState.OUT_OF_BLOCK, LineAnnotation(LineKind.TEXT, True)

    if body.rstrip() == FENCE_CLOSE:
        return ScanState.OUT_OF_BLOCK, LineAnnotation(
            LineKind.FENCE_CLOSE, True, BlockSignal.POST
        )

    if state == ScanState.IN_COMMAND:
        next_state = ScanState.IN_COMMAND if _ends_with_continuation(body) else ScanState.INSIDE_BLOCK
        return next_state, LineAnnotation(LineKind.CONTINUATION, True, fragment=body)

    if body.startswith(COMMAND_MARKER):
        payload = body[len(COMMAND_MARKER):]
        next_state = ScanState.IN_COMMAND if _ends_with_continuation(body) else ScanState.INSIDE_BLOCK
        return next_state, LineAnnotation(LineKind.COMMAND, True, fragment=payload)

    if body.startswith(COMMENT_MARKER):
        return ScanState.INSIDE_BLOCK, LineAnnotation(LineKind.COMMENT, True)

    return ScanState.INSIDE_BLOCK, LineAnnotation(LineKind.OUTPUT, False)


def annotate_lines(text: str) -> List[ClassifiedLine]:
    """
    Classify every line of a document.

    Command fragments spread over continuation lines are joined with
    newlines and attached, trimmed, to the line that completes them.

    Raises:
        UnclosedBlockError: If a console block is still open at the end
    """
    classified: List[ClassifiedLine] = []
    state = ScanState.OUT_OF_BLOCK
    opened_at = 0
    pending: List[str] = []
    pending_index = -1

    def flush():
        # attach the joined command to the last line that contributed to it
        nonlocal pending, pending_index
        command = "\n".join(pending).strip()
        if command:
            classified[pending_index] = replace(classified[pending_index], command=command)
        pending = []
        pending_index = -1

    for line in split_lines(text):
        state, note = classify_line(state, line)

        if note.kind == LineKind.FENCE_CLOSE:
            flush()

        classified.append(ClassifiedLine(
            raw=line,
            kind=note.kind,
            keep=note.keep,
            signal=note.signal,
            continued=note.continued,
        ))
        if note.kind == LineKind.FENCE_OPEN:
            opened_at = len(classified)

        if note.fragment is not None:
            pending.append(note.fragment)
            pending_index = len(classified) - 1
            if state != ScanState.IN_COMMAND:
                flush()

    if state != ScanState.OUT_OF_BLOCK:
        raise UnclosedBlockError(opened_at)

    return classified


def remove_existing_outputs(text: str) -> str:
    """
    Strip previously captured output from every console block.

    Fence, command, continuation and annotation lines are kept as they are;
    text outside console blocks is untouched.

    Raises:
        UnclosedBlockError: If a console block is never closed
    """
    return "".join(f"{line.raw}\n" for line in annotate_lines(text) if line.keep)
