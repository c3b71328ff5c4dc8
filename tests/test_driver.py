"""
Tests for the scan driver (strip, refresh, check, per-file processing)
"""

import pytest

from exec_commands.driver import CheckResult, Mode, RunResult, ScanDriver
from exec_commands.errors import HookFailedError, OutputDecodeError, UnclosedBlockError
from exec_commands.executor import ShellExecutor
from conftest import FakeExecutor

SCENARIO = "```console\n$ echo hi\nstale-old-output\n```\n"
UNCLOSED = "# Title\n\n```console\n$ echo hi\nhi\n````\n\nImportant prose paragraph.\n"


class TestStrip:
    """Tests for strip mode."""

    def test_scenario(self, context):
        """Test stale output goes away and nothing runs."""
        executor = FakeExecutor()
        driver = ScanDriver(context, executor)
        assert driver.strip(SCENARIO) == "```console\n$ echo hi\n```\n"
        assert executor.calls == []

    def test_strip_idempotent(self, context, sample_document):
        """Test strip(strip(d)) == strip(d)."""
        driver = ScanDriver(context, FakeExecutor())
        once = driver.strip(sample_document)
        assert driver.strip(once) == once

    def test_unclosed_block(self, context):
        """Test an unclosed block is reported instead of eating the prose."""
        with pytest.raises(UnclosedBlockError):
            ScanDriver(context, FakeExecutor()).strip(UNCLOSED)


class TestRefresh:
    """Tests for refresh mode with an in-memory executor."""

    def test_scenario(self, context):
        """Test fresh output replaces the stale one."""
        executor = FakeExecutor({"echo hi": (0, b"hi\n")})
        result = ScanDriver(context, executor).refresh(SCENARIO)
        assert isinstance(result, RunResult)
        assert result.success
        assert result.text == "```console\n$ echo hi\nhi\n```\n"
        assert result.blocks == 1
        assert result.commands == 1

    def test_outputs_in_command_order(self, context, sample_document):
        """Test each command gets its own output region right after it."""
        executor = FakeExecutor({"echo hi": (0, b"hi\n"), "printf a": (0, b"a")})
        result = ScanDriver(context, executor).refresh(sample_document)
        assert "```console\n$ echo hi\nhi\n  # a note\n$ printf a\na\n```\n" in result.text
        assert executor.calls == ["echo hi", "printf a"]

    def test_text_outside_blocks_untouched(self, context, sample_document):
        """Test prose and foreign fences survive a refresh byte for byte."""
        result = ScanDriver(context, FakeExecutor()).refresh(sample_document)
        assert result.text.startswith("# Demo\n\nSome prose.\n\n```console\n")
        assert result.text.endswith('```python\nprint("untouched")\n```\n\nClosing text.\n')

    def test_round_trip(self, context, sample_document):
        """Test strip(refresh(d)) == strip(d)."""
        executor = FakeExecutor({"echo hi": (0, b"hi\n"), "printf a": (0, b"a")})
        driver = ScanDriver(context, executor)
        refreshed = driver.refresh(sample_document).text
        assert driver.strip(refreshed) == driver.strip(sample_document)

    def test_refresh_stable(self, context, sample_document):
        """Test refreshing a refreshed document changes nothing."""
        executor = FakeExecutor({"echo hi": (0, b"hi\n"), "printf a": (0, b"a")})
        driver = ScanDriver(context, executor)
        once = driver.refresh(sample_document).text
        assert driver.refresh(once).text == once

    def test_alt_command(self, make_context):
        """Test the alt table changes what runs, not what is displayed."""
        executor = FakeExecutor({"pytest -q": (0, b"1 passed\n")})
        context = make_context(alt={"pytest": "pytest -q"})
        result = ScanDriver(context, executor).refresh("```console\n$ pytest\n```\n")
        assert executor.executed == ["pytest -q"]
        assert result.text == "```console\n$ pytest\n1 passed\n```\n"

    def test_command_failure_recorded(self, context):
        """Test a failing command marks the run failed but later commands still run."""
        executor = FakeExecutor({"bad": (1, b"partial\n"), "good": (0, b"ok\n")})
        doc = "```console\n$ bad\n$ good\n```\n"
        result = ScanDriver(context, executor).refresh(doc)
        assert not result.success
        assert executor.calls == ["bad", "good"]
        assert [f.command for f in result.failures] == ["bad"]
        assert result.text == "```console\n$ bad\npartial\n$ good\nok\n```\n"

    def test_block_without_commands(self, context):
        """Test a block with no commands produces no output region."""
        executor = FakeExecutor()
        doc = "```console\n  # just a note\nold\n```\n"
        result = ScanDriver(context, executor).refresh(doc)
        assert result.text == "```console\n  # just a note\n```\n"
        assert result.commands == 0
        assert result.success

    def test_multiline_command_output_after_last_line(self, context):
        """Test output of a continued command follows its last line."""
        executor = FakeExecutor({"echo a \\\n  b": (0, b"a b\n")})
        doc = "```console\n$ echo a \\\n  b\nstale\n```\n"
        result = ScanDriver(context, executor).refresh(doc)
        assert result.text == "```console\n$ echo a \\\n  b\na b\n```\n"

    def test_invalid_output_aborts(self, context):
        """Test undecodable output is a hard error."""
        executor = FakeExecutor({"bin": (0, b"\xff")})
        with pytest.raises(OutputDecodeError):
            ScanDriver(context, executor).refresh("```console\n$ bin\n```\n")

    def test_unclosed_block_runs_nothing(self, context):
        """Test an unclosed block aborts before any hook or command runs."""
        executor = FakeExecutor()
        with pytest.raises(UnclosedBlockError):
            ScanDriver(context, executor).refresh(UNCLOSED)
        assert executor.calls == []

    def test_output_resembling_annotation_warns(self, context, caplog):
        """Test output that the next strip would keep is flagged."""
        executor = FakeExecutor({"cat c.yaml": (0, b"a:\n  # note\n  b: 1\n")})
        with caplog.at_level("WARNING", logger="exec_commands.reconstruct"):
            result = ScanDriver(context, executor).refresh("```console\n$ cat c.yaml\n```\n")
        assert result.text == "```console\n$ cat c.yaml\na:\n  # note\n  b: 1\n```\n"
        assert "cat c.yaml" in caplog.text


class TestHookSequencing:
    """Tests for when hooks run relative to commands."""

    def test_hook_order(self, make_context):
        """Test hooks wrap files and blocks in the documented order."""
        executor = FakeExecutor()
        context = make_context(
            pre_file=["pre_file"],
            post_file=["post_file"],
            pre_block=["pre_block"],
            post_block=["post_block"],
        )
        doc = "intro\n```console\n$ one\n```\n```console continued\n$ two\n$ three\n```\n"
        ScanDriver(context, executor).refresh(doc)
        assert executor.calls == [
            "pre_file",
            "pre_block", "one", "post_block",
            "pre_block", "two", "three", "post_block",
            "post_file",
        ]

    def test_file_hooks_without_blocks(self, make_context):
        """Test file hooks run even when there is no block."""
        executor = FakeExecutor()
        context = make_context(pre_file=["a"], post_file=["b"], pre_block=["c"])
        ScanDriver(context, executor).refresh("no blocks here\n")
        assert executor.calls == ["a", "b"]

    def test_pre_block_failure_aborts_before_commands(self, make_context):
        """Test a failing pre_block hook stops the scan before the first command."""
        executor = FakeExecutor({"exit 1": (1, b"")})
        context = make_context(pre_block=["exit 1"])
        with pytest.raises(HookFailedError) as excinfo:
            ScanDriver(context, executor).refresh(SCENARIO)
        assert excinfo.value.stage == "pre_block"
        assert executor.calls == ["exit 1"]

    def test_pre_file_failure_runs_nothing_else(self, make_context):
        """Test a failing pre_file hook skips every block."""
        executor = FakeExecutor({"fail": (1, b"")})
        context = make_context(pre_file=["fail"], post_file=["after"])
        with pytest.raises(HookFailedError):
            ScanDriver(context, executor).refresh(SCENARIO)
        assert executor.calls == ["fail"]

    def test_post_block_failure_stops_later_blocks(self, make_context):
        """Test a failing post_block hook aborts the remaining blocks."""
        executor = FakeExecutor({"fail": (1, b"")})
        context = make_context(post_block=["fail"])
        doc = "```console\n$ one\n```\n```console\n$ two\n```\n"
        with pytest.raises(HookFailedError):
            ScanDriver(context, executor).refresh(doc)
        assert executor.calls == ["one", "fail"]

    def test_hook_output_not_inserted(self, make_context):
        """Test hook stdout never ends up in the document."""
        executor = FakeExecutor({"noisy": (0, b"noise\n")})
        context = make_context(pre_block=["noisy"])
        result = ScanDriver(context, executor).refresh("```console\n```\n")
        assert result.text == "```console\n```\n"


class TestCheck:
    """Tests for check mode."""

    def test_unchanged(self, context):
        """Test an up-to-date document passes."""
        executor = FakeExecutor({"echo hi": (0, b"hi\n")})
        result = ScanDriver(context, executor).check("```console\n$ echo hi\nhi\n```\n")
        assert isinstance(result, CheckResult)
        assert not result.changed
        assert result.passed

    def test_changed(self, context):
        """Test stale output is reported as a change."""
        executor = FakeExecutor({"echo hi": (0, b"hi\n")})
        result = ScanDriver(context, executor).check(SCENARIO)
        assert result.changed
        assert result.success
        assert not result.passed

    def test_failed_command(self, context):
        """Test a failing command fails the check even without a diff."""
        executor = FakeExecutor({"bad": (1, b"")})
        result = ScanDriver(context, executor).check("```console\n$ bad\n```\n")
        assert not result.changed
        assert not result.passed


class TestProcessFile:
    """Tests for processing files on disk."""

    def test_refresh_writes(self, context, temp_dir):
        """Test refresh rewrites the file."""
        path = temp_dir / "doc.md"
        path.write_text(SCENARIO)
        executor = FakeExecutor({"echo hi": (0, b"hi\n")})
        report = ScanDriver(context, executor).process_file(path, Mode.REFRESH)
        assert report.success
        assert report.changed
        assert path.read_text() == "```console\n$ echo hi\nhi\n```\n"

    def test_strip_writes(self, context, temp_dir):
        """Test strip rewrites the file without running anything."""
        path = temp_dir / "doc.md"
        path.write_text(SCENARIO)
        executor = FakeExecutor()
        ScanDriver(context, executor).process_file(path, Mode.STRIP)
        assert path.read_text() == "```console\n$ echo hi\n```\n"
        assert executor.calls == []

    def test_check_never_writes(self, context, temp_dir):
        """Test check leaves the file alone and reports failure on a diff."""
        path = temp_dir / "doc.md"
        path.write_text(SCENARIO)
        executor = FakeExecutor({"echo hi": (0, b"hi\n")})
        report = ScanDriver(context, executor).process_file(path, Mode.CHECK)
        assert not report.success
        assert report.changed
        assert path.read_text() == SCENARIO

    def test_hook_failure_writes_nothing(self, make_context, temp_dir):
        """Test an aborted document is left untouched on disk."""
        path = temp_dir / "doc.md"
        path.write_text(SCENARIO)
        context = make_context(pre_block=["exit 1"])
        executor = FakeExecutor({"exit 1": (1, b"")})
        with pytest.raises(HookFailedError):
            ScanDriver(context, executor).process_file(path, Mode.REFRESH)
        assert path.read_text() == SCENARIO

    def test_crlf_file_preserved(self, context, temp_dir):
        """Test line endings on disk are preserved outside output regions."""
        path = temp_dir / "doc.md"
        path.write_bytes(b"intro\r\n```console\r\n$ echo hi\r\nold\r\n```\r\n")
        ScanDriver(context, FakeExecutor()).process_file(path, Mode.STRIP)
        assert path.read_bytes() == b"intro\r\n```console\r\n$ echo hi\r\n```\r\n"

    def test_missing_file(self, context, temp_dir):
        """Test a missing document raises an I/O error."""
        with pytest.raises(FileNotFoundError):
            ScanDriver(context, FakeExecutor()).process_file(temp_dir / "nope.md")

    @pytest.mark.parametrize("mode", [Mode.REFRESH, Mode.STRIP, Mode.CHECK])
    def test_unclosed_block_writes_nothing(self, context, temp_dir, mode):
        """Test a file with an unclosed block is left untouched."""
        path = temp_dir / "doc.md"
        path.write_text(UNCLOSED)
        with pytest.raises(UnclosedBlockError):
            ScanDriver(context, FakeExecutor()).process_file(path, mode)
        assert path.read_text() == UNCLOSED


class TestRealShell:
    """End-to-end refresh through bash."""

    def test_scenario(self, context):
        """Test `echo hi` output is inserted."""
        result = ScanDriver(context, ShellExecutor()).refresh(SCENARIO)
        assert result.success
        assert result.text == "```console\n$ echo hi\nhi\n```\n"

    def test_trailing_newline_normalization(self, context):
        """Test output lacking a newline gets exactly one."""
        result = ScanDriver(context, ShellExecutor()).refresh("```console\n$ printf a\n```\n")
        assert result.text == "```console\n$ printf a\na\n```\n"

    def test_commands_share_files(self, context):
        """Test side effects of one command are visible to the next."""
        doc = "```console\n$ echo data > f.txt\n$ cat f.txt\n```\n"
        result = ScanDriver(context, ShellExecutor()).refresh(doc)
        assert result.text == "```console\n$ echo data > f.txt\n$ cat f.txt\ndata\n```\n"

    def test_hook_abort(self, make_context):
        """Test `exit 1` as pre_block aborts before the command runs."""
        context = make_context(pre_block=["exit 1"])
        doc = "```console\n$ touch created.txt\n```\n"
        with pytest.raises(HookFailedError):
            ScanDriver(context, ShellExecutor()).refresh(doc)
        assert not (context.pwd / "created.txt").exists()
