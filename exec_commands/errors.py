"""
Exceptions for exec-commands

Command failures are not exceptions: they travel as CommandResult values.
Everything here aborts the document (or the whole run, for ConfigError).
"""


class ExecCommandsError(Exception):
    """Base class for all exec-commands errors."""
    pass


class ConfigError(ExecCommandsError):
    """Raised when the configuration file or an override cannot be resolved."""
    pass


class SpawnError(ExecCommandsError):
    """Raised when the shell interpreter could not be started."""
    pass


class OutputDecodeError(ExecCommandsError):
    """Raised when captured command output is not valid UTF-8."""

    def __init__(self, command: str, error: UnicodeDecodeError):
        self.command = command
        self.error = error
        super().__init__(f"output of `{command}` is not valid UTF-8: {error}")


class HookFailedError(ExecCommandsError):
    """
    Raised when a hook command exits non-zero.

    Hook failures are fatal for the document being scanned: the driver
    stops and nothing is written back.
    """

    def __init__(self, stage: str, result):
        self.stage = stage
        self.result = result
        super().__init__(
            f"{stage} hook `{result.command}` exited with {result.returncode}"
        )


class UnclosedBlockError(ExecCommandsError):
    """
    Raised when a console block is still open at the end of the document.

    Every line after the opening fence would otherwise be taken for stale
    output and dropped.
    """

    def __init__(self, line_number: int):
        self.line_number = line_number
        super().__init__(f"console block opened at line {line_number} is never closed")
