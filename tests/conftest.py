"""
Pytest Configuration and Fixtures
"""

import os
import sys
import tempfile
from pathlib import Path
from typing import Dict, Generator, List, Tuple

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from exec_commands.executor import CommandResult, ExecutionContext, Hooks


class FakeExecutor:
    """
    In-memory Executor.

    Commands answer from `responses` (returncode, stdout); anything else
    succeeds with empty output. Every call is recorded in order.
    """

    def __init__(self, responses: Dict[str, Tuple[int, bytes]] = None):
        self.responses = dict(responses or {})
        self.calls: List[str] = []
        self.executed: List[str] = []

    def execute(self, context: ExecutionContext, command: str) -> CommandResult:
        executed = context.resolve_command(command)
        self.calls.append(command)
        self.executed.append(executed)
        returncode, stdout = self.responses.get(executed, (0, b""))
        return CommandResult(
            command=command,
            executed=executed,
            cwd=str(context.pwd),
            returncode=returncode,
            stdout=stdout,
            stderr=b"boom" if returncode else b"",
        )


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def context(temp_dir: Path) -> ExecutionContext:
    """Execution context rooted in a temporary directory."""
    return ExecutionContext(pwd=temp_dir, path=os.environ.get("PATH", ""))


@pytest.fixture
def make_context(temp_dir: Path):
    """Factory for contexts with custom alt table or hooks."""

    def factory(alt=None, **hooks) -> ExecutionContext:
        return ExecutionContext(
            pwd=temp_dir,
            path=os.environ.get("PATH", ""),
            alt=dict(alt or {}),
            hooks=Hooks(**{k: tuple(v) for k, v in hooks.items()}),
        )

    return factory


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def sample_document() -> str:
    """Markdown document with stale output, a comment and a foreign fence."""
    return """# Demo

Some prose.

```console
$ echo hi
stale-old-output
  # a note
$ printf a
old
```

```python
print("untouched")
```

Closing text.
"""
