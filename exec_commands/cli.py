#!/usr/bin/env python3
"""
exec-commands Command Line Interface
====================================

Scan markdown files and execute `console` blocks.

Usage:
    exec-commands                  Refresh every *.md file below the current directory
    exec-commands README.md        Refresh the given files
    exec-commands -r README.md     Remove captured output only
    exec-commands -d README.md     Show what a refresh would change, write nothing

Inputs are taken from the command line, else from the `inputs` key of the
configuration, else from a recursive glob on the extension.
"""

import argparse
import logging
import os
import shlex
import subprocess
import sys
from enum import Enum
from pathlib import Path
from typing import List, Optional, TextIO, Tuple

from .config import ExecConfig, compose_path, compose_pwd, expand_inputs, find_config_file, load_config
from .diff import render_diff
from .driver import Mode, ScanDriver
from .errors import ConfigError, ExecCommandsError, HookFailedError
from .logging_utils import CommandLog, setup_logging
from .version import get_short_banner

logger = logging.getLogger(__name__)

DEFAULT_PAGER = "less -S -F -R"


class ExitCode(int, Enum):
    """Process exit codes."""
    SUCCESS = 0
    FAILURE = 1
    CONFIGURATION_ERROR = 10
    EXECUTION_ERROR = 20


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="exec-commands",
        description="Scan markdown files and execute `console` blocks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Example .exec-commands.yaml:
  inputs: ["README.md", "docs/**/*.md"]
  pwd: ./example
  path: ./bin
  alt:
    - raw: pytest
      alt: pytest -q
  hooks:
    pre_block: ["rm -rf tmp && mkdir tmp"]
""",
    )

    parser.add_argument(
        "inputs", type=Path, nargs="*",
        help="Input markdown files (overrides config and glob)",
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--reverse", "-r", action="store_true",
        help="Remove existing output lines",
    )
    mode.add_argument(
        "--diff", "-d", action="store_true",
        help="Take diff between original and updated contents",
    )

    parser.add_argument(
        "--extension", "-e", metavar="EXT", default="md",
        help="Extension of files to scan (when no file specified by config or argument)",
    )
    parser.add_argument(
        "--pwd", metavar="PWD", default=None,
        help="Directory where commands are executed",
    )
    parser.add_argument(
        "--path", metavar="PATH", default=None,
        help="Additional paths to find commands (colon-delimited)",
    )
    parser.add_argument(
        "--config", "-c", metavar="CONFIG", type=Path, default=None,
        help="Path to config file (it always loads .exec-commands.yaml if exists)",
    )
    parser.add_argument(
        "--ignore-default-config", "-N", action="store_true",
        help="Prevent loading .exec-commands.yaml",
    )
    parser.add_argument(
        "--color", choices=["auto", "never", "always"], default="auto", metavar="WHEN",
        help="Colorize the output (auto, never, always)",
    )
    parser.add_argument(
        "--pager", metavar="PAGER", default=None,
        help="Feed the diff output to PAGER",
    )
    parser.add_argument(
        "--log-dir", metavar="DIR", type=Path, default=None,
        help="Record every executed command in DIR (commands.log, events.jsonl)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output")
    parser.add_argument("--quiet", "-q", action="store_true", help="Suppress output (errors only)")
    parser.add_argument("--version", action="version", version=get_short_banner())

    return parser


def glob_files(ext: str) -> List[Path]:
    """All files with the extension below the current directory."""
    return expand_inputs([f"**/*.{ext}"])


def build_config(args: argparse.Namespace) -> Tuple[List[Path], ExecConfig]:
    """
    Resolve inputs and configuration.

    Inputs: argument > config > glob. --pwd and --path overwrite whatever
    the config file and environment said.
    """
    config_path = find_config_file(args.config, args.ignore_default_config)
    config = load_config(config_path)

    if args.inputs:
        inputs = list(args.inputs)
    elif config.inputs is not None:
        inputs = config.inputs
    else:
        inputs = glob_files(args.extension)

    if args.pwd is not None:
        config.pwd = compose_pwd(args.pwd)
    if args.path is not None:
        config.path = compose_path(args.path)
    if args.log_dir is not None:
        config.log_dir = args.log_dir

    return inputs, config


def use_color(when: str, stream: TextIO) -> bool:
    if when == "always":
        return True
    if when == "never":
        return False
    return stream.isatty()


def open_pager(pager: Optional[str]) -> Tuple[Optional[subprocess.Popen], TextIO]:
    """
    Open the pager for diff output.

    Falls back to stdout when no pager is configured and stdout is not a
    terminal.
    """
    pager = pager or os.environ.get("PAGER")
    if not pager and not sys.stdout.isatty():
        return None, sys.stdout

    argv = shlex.split(pager or DEFAULT_PAGER)
    child = subprocess.Popen(argv, stdin=subprocess.PIPE, text=True, encoding="utf-8")
    return child, child.stdin


def scan_files(driver: ScanDriver, inputs: List[Path], mode: Mode, stdout: TextIO, color: bool) -> ExitCode:
    """
    Process every input and fold the outcomes into an exit code.

    A document that aborts (hook failure, I/O error) is left untouched and
    the remaining documents are still processed.
    """
    exit_code = ExitCode.SUCCESS

    for path in inputs:
        try:
            report = driver.process_file(path, mode)
        except HookFailedError as e:
            logger.error(f"{path}: {e}; file left unchanged")
            exit_code = max(exit_code, ExitCode.EXECUTION_ERROR)
            continue
        except (ExecCommandsError, OSError, UnicodeDecodeError) as e:
            logger.error(f"{path}: {e}")
            exit_code = max(exit_code, ExitCode.EXECUTION_ERROR)
            continue

        if mode == Mode.CHECK:
            rendered = render_diff(str(path), report.original, report.updated, color=color)
            if rendered:
                stdout.write(rendered)

        if not report.success:
            exit_code = max(exit_code, ExitCode.FAILURE)

    return ExitCode(exit_code)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose, quiet=args.quiet)

    try:
        inputs, config = build_config(args)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return ExitCode.CONFIGURATION_ERROR

    if not inputs:
        logger.warning("No input files")
        return ExitCode.SUCCESS

    if args.reverse:
        mode = Mode.STRIP
    elif args.diff:
        mode = Mode.CHECK
    else:
        mode = Mode.REFRESH

    if config.log_dir is not None:
        try:
            command_log = CommandLog(config.log_dir)
        except OSError as e:
            logger.error(f"Configuration error: cannot use log directory {config.log_dir}: {e}")
            return ExitCode.CONFIGURATION_ERROR
    else:
        command_log = None
    driver = ScanDriver(config.to_context(), command_log=command_log)

    if mode != Mode.CHECK:
        return scan_files(driver, inputs, mode, sys.stdout, color=False)

    color = use_color(args.color, sys.stdout)
    try:
        child, stdout = open_pager(args.pager)
    except OSError as e:
        logger.error(f"Cannot start pager: {e}")
        return ExitCode.EXECUTION_ERROR
    try:
        exit_code = scan_files(driver, inputs, mode, stdout, color=color)
    finally:
        if child is not None:
            try:
                stdout.close()
            except BrokenPipeError:
                logger.debug("Pager exited before reading all output")
            child.wait()

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
