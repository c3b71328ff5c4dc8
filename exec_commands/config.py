"""
exec-commands Configuration System
==================================

Loads .exec-commands.yaml, applies environment variable overrides and
resolves everything into the ExecutionContext the scanner consumes.

Example:

    inputs: ["README.md", "docs/**/*.md"]
    pwd: ./example
    path: ./bin
    alt:
      - raw: pytest
        alt: pytest -q
    hooks:
      pre_block: ["rm -rf tmp", "mkdir tmp"]
"""

import glob
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigError
from .executor import DEFAULT_SHELL, ExecutionContext, Hooks

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = ".exec-commands.yaml"

KNOWN_KEYS = {"inputs", "pwd", "path", "shell", "alt", "hooks", "log_dir"}
HOOK_KEYS = ("pre_file", "post_file", "pre_block", "post_block")
ALT_KEYS = {"raw", "alt"}


# =============================================================================
# Configuration Data Classes
# =============================================================================

@dataclass
class ExecConfig:
    """Root configuration container."""
    inputs: Optional[List[Path]] = None
    pwd: Path = field(default_factory=Path.cwd)
    path: str = field(default_factory=lambda: os.environ.get("PATH", ""))
    shell: str = DEFAULT_SHELL
    alt: Dict[str, str] = field(default_factory=dict)
    hooks: Hooks = field(default_factory=Hooks)
    log_dir: Optional[Path] = None

    def to_context(self) -> ExecutionContext:
        """Freeze the execution-relevant part of the configuration."""
        return ExecutionContext(
            pwd=self.pwd,
            path=self.path,
            alt=dict(self.alt),
            hooks=self.hooks,
            shell=self.shell,
        )


# =============================================================================
# Path Resolution
# =============================================================================

def compose_pwd(pwd: str) -> Path:
    """
    Resolve the working directory to an absolute, existing directory.

    Raises:
        ConfigError: If the directory does not exist
    """
    resolved = Path(pwd).expanduser().resolve()
    if not resolved.is_dir():
        raise ConfigError(f"pwd is not a directory: {pwd}")
    return resolved


def compose_path(path: str) -> str:
    """
    Convert colon-delimited paths to absolute ones and append $PATH.

    Raises:
        ConfigError: If an entry does not exist
    """
    entries = []
    for entry in path.split(":"):
        if not entry:
            continue
        try:
            entries.append(str(Path(entry).expanduser().resolve(strict=True)))
        except (FileNotFoundError, RuntimeError) as e:
            raise ConfigError(f"search path entry not found: {entry}") from e

    env_path = os.environ.get("PATH", "")
    return ":".join(entries + [env_path])


def expand_inputs(patterns: List[str]) -> List[Path]:
    """Expand glob patterns in order, dropping duplicates."""
    inputs: List[Path] = []
    for pattern in patterns:
        for match in sorted(glob.glob(pattern, recursive=True)):
            path = Path(match)
            if path not in inputs:
                inputs.append(path)
    return inputs


# =============================================================================
# Configuration Loader
# =============================================================================

def find_config_file(explicit: Optional[Path] = None, ignore_default: bool = False) -> Optional[Path]:
    """
    Pick the configuration file to load.

    An explicit path always wins; otherwise ./.exec-commands.yaml is used
    when it exists and is not ignored.

    Raises:
        ConfigError: If an explicit file does not exist
    """
    if explicit is not None:
        explicit = Path(explicit)
        if not explicit.is_file():
            raise ConfigError(f"Config file not found: {explicit}")
        return explicit

    if ignore_default:
        return None

    default = Path(DEFAULT_CONFIG_FILE)
    if default.is_file():
        return default
    return None


def load_config(config_path: Optional[Path] = None) -> ExecConfig:
    """
    Load configuration from YAML file with environment variable overrides.

    Environment variables override config file values:
    - EXEC_COMMANDS_PWD -> pwd
    - EXEC_COMMANDS_PATH -> path
    - EXEC_COMMANDS_SHELL -> shell

    Args:
        config_path: Path to config file (defaults only if None)

    Returns:
        ExecConfig instance

    Raises:
        ConfigError: On unreadable or invalid configuration
    """
    if config_path is not None:
        logger.info(f"Loading config from: {config_path}")
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"Failed to read config {config_path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse config {config_path}: {e}") from e
        config = _parse_config_dict(data)
    else:
        logger.debug("No config file, using defaults")
        config = ExecConfig()

    config = _apply_env_overrides(config)
    _validate_config(config)

    return config


def _string_list(value: Any, key: str) -> List[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"'{key}' must be a list of strings")
    return value


def _parse_alt(value: Any) -> Dict[str, str]:
    if not isinstance(value, list):
        raise ConfigError("'alt' must be a list of {raw, alt} entries")

    alt: Dict[str, str] = {}
    for item in value:
        if not isinstance(item, dict) or set(item) != ALT_KEYS:
            raise ConfigError(f"invalid alt entry (expected keys raw and alt): {item!r}")
        raw, replacement = item["raw"], item["alt"]
        if not isinstance(raw, str) or not isinstance(replacement, str):
            raise ConfigError(f"alt entry values must be strings: {item!r}")
        if raw in alt:
            raise ConfigError(f"duplicate alt entry for command: {raw!r}")
        alt[raw] = replacement
    return alt


def _parse_hooks(value: Any) -> Hooks:
    if not isinstance(value, dict):
        raise ConfigError("'hooks' must be a mapping")

    unknown = set(value) - set(HOOK_KEYS)
    if unknown:
        raise ConfigError(f"unknown hook(s): {', '.join(sorted(unknown))}")

    lists = {}
    for key in HOOK_KEYS:
        hooks = value.get(key)
        lists[key] = tuple(_string_list(hooks, f"hooks.{key}")) if hooks is not None else ()
    return Hooks(**lists)


def _parse_config_dict(data: Dict[str, Any]) -> ExecConfig:
    """Parse configuration dictionary into ExecConfig."""
    if not isinstance(data, dict):
        raise ConfigError("configuration must be a mapping")

    unknown = set(data) - KNOWN_KEYS
    if unknown:
        raise ConfigError(f"unknown configuration key(s): {', '.join(sorted(unknown))}")

    config = ExecConfig()

    if data.get("inputs") is not None:
        config.inputs = expand_inputs(_string_list(data["inputs"], "inputs"))

    if data.get("pwd") is not None:
        config.pwd = compose_pwd(str(data["pwd"]))

    if data.get("path") is not None:
        config.path = compose_path(str(data["path"]))

    if data.get("shell") is not None:
        config.shell = str(data["shell"])

    if data.get("alt") is not None:
        config.alt = _parse_alt(data["alt"])

    if data.get("hooks") is not None:
        config.hooks = _parse_hooks(data["hooks"])

    if data.get("log_dir") is not None:
        config.log_dir = Path(str(data["log_dir"]))

    return config


def _apply_env_overrides(config: ExecConfig) -> ExecConfig:
    """Apply environment variable overrides to config."""
    if os.environ.get("EXEC_COMMANDS_PWD"):
        config.pwd = compose_pwd(os.environ["EXEC_COMMANDS_PWD"])

    if os.environ.get("EXEC_COMMANDS_PATH"):
        config.path = compose_path(os.environ["EXEC_COMMANDS_PATH"])

    if os.environ.get("EXEC_COMMANDS_SHELL"):
        config.shell = os.environ["EXEC_COMMANDS_SHELL"]

    return config


def _validate_config(config: ExecConfig) -> None:
    """Validate configuration and log warnings."""
    if not config.shell.strip():
        raise ConfigError("shell must not be empty")

    if config.inputs is not None and not config.inputs:
        logger.warning("Config 'inputs' matched no files")

    for raw, replacement in config.alt.items():
        if raw == replacement:
            logger.warning(f"alt entry maps `{raw}` to itself")
