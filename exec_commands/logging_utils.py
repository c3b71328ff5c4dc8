"""
Logging Utilities for exec-commands

Console logging goes through the standard `logging` module on stderr.
CommandLog additionally keeps an on-disk transcript of every command and
hook that was run, when a log directory is configured.
"""

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from .executor import CommandResult

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"

# Patterns for secret masking (environment variables, tokens, keys)
SECRET_PATTERNS = [
    (re.compile(r"(API_KEY|TOKEN|SECRET|PASSWORD|PASS|AUTH)[=:]\s*['\"]?([^'\"\ \n]+)", re.I), r"\1=***"),
    (re.compile(r"(Bearer|token)\s+([a-zA-Z0-9_\-\.]+)", re.I), r"\1 ***"),
]

# Captured streams are truncated in the JSONL transcript
MAX_STREAM_CHARS = 1000


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """
    Configure root logging on stderr.

    Args:
        verbose: Log DEBUG messages
        quiet: Only log errors (wins over verbose)
    """
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)


def mask_secrets(text: str) -> str:
    """
    Mask secrets in text before logging.

    Args:
        text: Raw text that may contain secrets

    Returns:
        Text with secrets replaced by ***
    """
    masked = text
    for pattern, replacement in SECRET_PATTERNS:
        masked = pattern.sub(replacement, masked)
    return masked


class CommandLog:
    """
    File-based transcript of executed commands.

    Logs are written to:
    - {log_dir}/commands.log - Human-readable text log
    - {log_dir}/events.jsonl - Structured JSONL log
    """

    def __init__(self, log_dir: Path, mask_secrets_enabled: bool = True):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.mask_secrets_enabled = mask_secrets_enabled

        self.text_log = self.log_dir / "commands.log"
        self.json_log = self.log_dir / "events.jsonl"

    def _mask_if_enabled(self, text: str) -> str:
        if self.mask_secrets_enabled:
            return mask_secrets(text)
        return text

    def log_text(self, line: str) -> None:
        """Append a timestamped line to the text log."""
        timestamp = datetime.now(timezone.utc).isoformat()
        with self.text_log.open("a", encoding="utf-8") as f:
            f.write(f"[{timestamp}] {self._mask_if_enabled(line)}\n")

    def log_jsonl(self, event_type: str, data: Dict[str, Any]) -> None:
        """Append a structured event to the JSONL log."""
        event = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "type": event_type,
            "data": data,
        }
        with self.json_log.open("a", encoding="utf-8") as f:
            f.write(self._mask_if_enabled(json.dumps(event)) + "\n")

    def log_command(self, stage: str, result: CommandResult) -> None:
        """
        Record one command or hook invocation.

        Args:
            stage: "command" or the hook list name (e.g. "pre_block")
            result: Result returned by the executor
        """
        summary = (
            f'STAGE={stage} CMD="{result.command}" CWD=\'{result.cwd}\' '
            f"RC={result.returncode} DURATION={result.duration_ms:.1f}ms"
        )
        self.log_text(summary)

        data = {
            "stage": stage,
            "command": result.command,
            "executed": result.executed,
            "cwd": result.cwd,
            "returncode": result.returncode,
            "duration_ms": result.duration_ms,
        }
        if result.stdout:
            data["stdout"] = result.stdout.decode("utf-8", errors="replace")[:MAX_STREAM_CHARS]
        if result.stderr:
            data["stderr"] = result.stderr.decode("utf-8", errors="replace")[:MAX_STREAM_CHARS]
        self.log_jsonl("command", data)

    def log_event(self, event: str, details: str = "") -> None:
        """Log an event (file processed, hook abort, ...) to both logs."""
        line = f"EVENT={event}"
        if details:
            line += f" DETAILS={details}"
        self.log_text(line)
        self.log_jsonl(event, {"details": details})
