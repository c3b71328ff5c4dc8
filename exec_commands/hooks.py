"""
Hook Orchestrator for exec-commands

Runs the configured hook lists at fixed points of a scan:

- pre_file   once, before the first block
- pre_block  right after a block opens, before its first command
- post_block right after a block closes
- post_file  once, after the last block (also when there are no blocks)

The first failing hook stops its list. The driver turns that into a
HookFailedError, which aborts the document.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from .errors import HookFailedError
from .executor import CommandResult, ExecutionContext, Executor

logger = logging.getLogger(__name__)


class HookStage(str, Enum):
    """Points of a scan where hooks run."""
    PRE_FILE = "pre_file"
    POST_FILE = "post_file"
    PRE_BLOCK = "pre_block"
    POST_BLOCK = "post_block"


@dataclass
class HookResult:
    """Outcome of running one hook list."""
    stage: HookStage
    results: List[CommandResult] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return all(r.success for r in self.results)

    @property
    def failed(self) -> Optional[CommandResult]:
        """The hook that stopped the list, if any."""
        for r in self.results:
            if not r.success:
                return r
        return None


class HookOrchestrator:
    """Runs hook lists through an Executor, in order."""

    def __init__(self, executor: Executor, context: ExecutionContext, command_log=None):
        self.executor = executor
        self.context = context
        self.command_log = command_log

    def hooks_for(self, stage: HookStage) -> Sequence[str]:
        return getattr(self.context.hooks, stage.value)

    def run(self, stage: HookStage) -> HookResult:
        """
        Run every hook of a stage until one fails.

        Args:
            stage: Which hook list to run

        Returns:
            HookResult with the results of the hooks that were run
        """
        outcome = HookResult(stage)
        for hook in self.hooks_for(stage):
            result = self.executor.execute(self.context, hook)
            if self.command_log is not None:
                self.command_log.log_command(stage.value, result)
            outcome.results.append(result)
            if not result.success:
                logger.error(f"{stage.value} hook failed, skipping the remaining hooks")
                break
        return outcome

    def run_or_abort(self, stage: HookStage) -> HookResult:
        """
        Run a stage and raise if any hook failed.

        Raises:
            HookFailedError: On the first failing hook
        """
        outcome = self.run(stage)
        if not outcome.succeeded:
            raise HookFailedError(stage.value, outcome.failed)
        return outcome
