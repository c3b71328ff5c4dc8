"""
exec-commands - keep command transcripts in markdown up to date

Scans documents for ```console blocks, re-runs the `$` commands written in
them and replaces the previously captured output.
"""

from .version import __version__
from .errors import (
    ExecCommandsError,
    ConfigError,
    SpawnError,
    OutputDecodeError,
    HookFailedError,
    UnclosedBlockError,
)
from .scan import (
    ScanState,
    BlockSignal,
    LineKind,
    LineAnnotation,
    ClassifiedLine,
    classify_line,
    annotate_lines,
    remove_existing_outputs,
)
from .executor import (
    Hooks,
    ExecutionContext,
    CommandResult,
    Executor,
    ShellExecutor,
    build_script,
)
from .hooks import HookStage, HookResult, HookOrchestrator
from .reconstruct import Reconstructor, normalize_output
from .driver import Mode, RunResult, CheckResult, FileReport, ScanDriver
from .config import ExecConfig, load_config, find_config_file
from .diff import render_diff
from .logging_utils import CommandLog, setup_logging, mask_secrets
