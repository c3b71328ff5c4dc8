"""
Scan Driver for exec-commands
=============================

Orchestrates one document at a time:

    strip    remove previously captured output, run nothing
    refresh  strip, then run hooks and commands and insert fresh output
    check    refresh, then compare with the original without writing

Command failures are recorded in the result and never stop the scan.
Hook failures raise HookFailedError and abort the document; so do I/O,
spawn and decode errors, and a console block that is never closed.
Nothing is written for an aborted document.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from .executor import CommandResult, ExecutionContext, Executor, ShellExecutor
from .hooks import HookOrchestrator, HookStage
from .reconstruct import Reconstructor
from .scan import BlockSignal, annotate_lines, remove_existing_outputs

logger = logging.getLogger(__name__)


class Mode(str, Enum):
    """Operating modes of the driver."""
    REFRESH = "refresh"
    STRIP = "strip"
    CHECK = "check"


@dataclass
class RunResult:
    """Outcome of refreshing one document."""
    success: bool
    text: str
    blocks: int = 0
    commands: int = 0
    failures: List[CommandResult] = field(default_factory=list)


@dataclass
class CheckResult:
    """Outcome of checking one document against a fresh run."""
    success: bool
    changed: bool
    text: str

    @property
    def passed(self) -> bool:
        return self.success and not self.changed


@dataclass
class FileReport:
    """What happened to one input file."""
    path: Path
    mode: Mode
    original: str
    updated: str
    success: bool

    @property
    def changed(self) -> bool:
        return self.original != self.updated


def read_document(path: Path) -> str:
    # newline="" keeps line endings exactly as they are on disk
    with open(path, "r", encoding="utf-8", newline="") as f:
        return f.read()


def write_document(path: Path, text: str) -> None:
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(text)


class ScanDriver:
    """
    Runs the classifier, hooks, executor and reconstructor over documents.

    Args:
        context: Resolved execution context (read-only)
        executor: Command executor, ShellExecutor by default
        command_log: Optional CommandLog recording every invocation
    """

    def __init__(
        self,
        context: ExecutionContext,
        executor: Optional[Executor] = None,
        command_log=None,
    ):
        self.context = context
        self.executor = executor if executor is not None else ShellExecutor()
        self.command_log = command_log

    def strip(self, text: str) -> str:
        """
        Remove captured output from every console block.

        Raises:
            UnclosedBlockError: If a console block is never closed
        """
        return remove_existing_outputs(text)

    def refresh(self, text: str) -> RunResult:
        """
        Re-run every command and rebuild the document.

        Args:
            text: Document text, with or without stale output

        Returns:
            RunResult; `success` is False if any command failed

        Raises:
            HookFailedError: If any hook failed
            OutputDecodeError: If a command printed non-UTF-8 output
            SpawnError: If the shell could not be started
            UnclosedBlockError: If a console block is never closed
        """
        lines = annotate_lines(self.strip(text))
        hooks = HookOrchestrator(self.executor, self.context, self.command_log)
        out = Reconstructor()
        result = RunResult(success=True, text="")

        hooks.run_or_abort(HookStage.PRE_FILE)

        for line in lines:
            if not line.keep:
                continue
            out.append_line(line.raw)

            if line.signal == BlockSignal.PRE:
                result.blocks += 1
                hooks.run_or_abort(HookStage.PRE_BLOCK)

            if line.command is not None:
                executed = self.executor.execute(self.context, line.command)
                if self.command_log is not None:
                    self.command_log.log_command("command", executed)
                result.commands += 1
                if not executed.success:
                    result.success = False
                    result.failures.append(executed)
                out.append_output(executed)

            if line.signal == BlockSignal.POST:
                hooks.run_or_abort(HookStage.POST_BLOCK)

        hooks.run_or_abort(HookStage.POST_FILE)

        result.text = out.text()
        return result

    def check(self, text: str) -> CheckResult:
        """Refresh and report whether the document would change."""
        run = self.refresh(text)
        return CheckResult(success=run.success, changed=run.text != text, text=run.text)

    def process_file(self, path: Path, mode: Mode = Mode.REFRESH) -> FileReport:
        """
        Process one file in the given mode.

        REFRESH and STRIP write the file back when its content changed;
        CHECK never writes.

        Returns:
            FileReport; for CHECK, `success` is False when the file differs
        """
        path = Path(path)
        logger.info(f"Processing {path} ({mode.value})")
        original = read_document(path)

        if mode == Mode.STRIP:
            updated = self.strip(original)
            success = True
        elif mode == Mode.CHECK:
            checked = self.check(original)
            updated = checked.text
            success = checked.passed
        else:
            run = self.refresh(original)
            updated = run.text
            success = run.success
            logger.debug(f"{path}: {run.blocks} block(s), {run.commands} command(s), {len(run.failures)} failure(s)")

        report = FileReport(path=path, mode=mode, original=original, updated=updated, success=success)

        if mode != Mode.CHECK and report.changed:
            write_document(path, updated)
            logger.info(f"Updated {path}")

        if self.command_log is not None:
            self.command_log.log_event("file", f"{path} mode={mode.value} success={success}")

        return report
