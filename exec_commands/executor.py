"""
Command Execution for exec-commands

Runs one logical shell command inside a resolved execution context and
reports (success, captured stdout). The shell is the only backend used in
production; tests inject an in-memory implementation of the Executor
protocol instead.
"""

import logging
import shlex
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Protocol, Tuple, runtime_checkable

from .errors import SpawnError

logger = logging.getLogger(__name__)

DEFAULT_SHELL = "bash"


@dataclass(frozen=True)
class Hooks:
    """Ordered hook command lists run around files and blocks."""
    pre_file: Tuple[str, ...] = ()
    post_file: Tuple[str, ...] = ()
    pre_block: Tuple[str, ...] = ()
    post_block: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ExecutionContext:
    """
    Read-only environment every command is executed in.

    Each invocation re-establishes `pwd` and `path` explicitly, so a `cd`
    or `export` in one command never leaks into the next.
    """
    pwd: Path
    path: str
    alt: Dict[str, str] = field(default_factory=dict)
    hooks: Hooks = field(default_factory=Hooks)
    shell: str = DEFAULT_SHELL

    def resolve_command(self, command: str) -> str:
        """Apply the alternative-command table (exact match only)."""
        return self.alt.get(command, command)


@dataclass
class CommandResult:
    """
    Result of one command or hook invocation.

    `command` is the text as written in the document (or hook list);
    `executed` is what was actually handed to the shell.
    """
    command: str
    executed: str
    cwd: str
    returncode: int
    stdout: bytes = b""
    stderr: bytes = b""
    duration_ms: float = 0.0

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def stderr_text(self) -> str:
        """Decoded stderr, for diagnostics only."""
        return self.stderr.decode("utf-8", errors="replace").strip()


@runtime_checkable
class Executor(Protocol):
    """Capability to run a single command in an execution context."""

    def execute(self, context: ExecutionContext, command: str) -> CommandResult:
        """
        Run `command` and capture its output.

        Must not raise for a non-zero exit status; only a failure to run
        the command at all is an exception.
        """
        ...


def build_script(context: ExecutionContext, command: str) -> str:
    """
    Build the shell script for one command.

    Args:
        context: Execution context providing PATH and working directory
        command: Command text after alternative substitution

    Returns:
        Script text passed to the interpreter with `-c`
    """
    lines = [
        "set -eu -o pipefail",
        f"export PATH={shlex.quote(context.path)}",
        f"cd {shlex.quote(str(context.pwd))}",
        command,
    ]
    return "\n".join(lines) + "\n"


class ShellExecutor:
    """
    ShellExecutor
    -------------

    Runs commands under a shell interpreter, one process per command:

    - Substitutes alternative commands before execution
    - Exports the configured search path and changes to the working directory
    - Captures stdout as the result payload, stderr for diagnostics
    - Logs a diagnostic for every non-zero exit

    There is no timeout: a hung command blocks the scan.
    """

    def execute(self, context: ExecutionContext, command: str) -> CommandResult:
        executed = context.resolve_command(command)
        if executed != command:
            logger.debug(f"Substituting `{command}` -> `{executed}`")

        script = build_script(context, executed)
        started = time.monotonic()
        try:
            cp = subprocess.run(
                [context.shell, "-c", script],
                stdin=subprocess.DEVNULL,
                capture_output=True,
            )
        except OSError as e:
            raise SpawnError(f"failed to start {context.shell!r}: {e}") from e
        duration_ms = (time.monotonic() - started) * 1000

        result = CommandResult(
            command=command,
            executed=executed,
            cwd=str(context.pwd),
            returncode=cp.returncode,
            stdout=cp.stdout,
            stderr=cp.stderr,
            duration_ms=duration_ms,
        )

        if not result.success:
            logger.error(
                f'[exec-commands] "{command}" exited with {result.returncode}.\n'
                f"{result.stderr_text}"
            )
        else:
            logger.debug(f"`{command}` finished in {duration_ms:.1f}ms")

        return result
