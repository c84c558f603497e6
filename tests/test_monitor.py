"""Tests for monitor.py — squeue job counting."""
from unittest.mock import MagicMock, patch

from fmriprep_scheduler.commands import CommandResult
from fmriprep_scheduler.monitor import count_user_jobs


def ok_result(cmd=("true",), stdout=""):
    return CommandResult(cmd=tuple(cmd), status="ok", returncode=0, stdout=stdout)


def failed_result(cmd=("false",), returncode=1, stderr="boom"):
    return CommandResult(cmd=tuple(cmd), status="failed", returncode=returncode, stderr=stderr)


def unreachable_result(cmd=("missing",), detail="No such file or directory"):
    return CommandResult(cmd=tuple(cmd), status="unreachable", detail=detail)


def _squeue_output(*lines: str) -> MagicMock:
    """Return a mock subprocess.run result with given squeue stdout lines."""
    m = MagicMock()
    m.stdout = "\n".join(lines) + ("\n" if lines else "")
    m.stderr = ""
    m.returncode = 0
    return m


# ---------------------------------------------------------------------------
# count_user_jobs — counting
# ---------------------------------------------------------------------------


def test_count_empty_queue():
    with patch("subprocess.run", return_value=_squeue_output()):
        queue = count_user_jobs("alice")
    assert queue.count == 0
    assert queue.result.ok


def test_count_lines():
    lines = [
        "  101  normal sub-0001    alice  R   1:00:00  1 node01",
        "  102  normal sub-0002    alice PD      0:00  1 (Priority)",
        "  103  normal sub-0003    alice PD      0:00  1 (Priority)",
    ]
    with patch("subprocess.run", return_value=_squeue_output(*lines)):
        queue = count_user_jobs("alice")
    assert queue.count == 3


def test_count_ignores_blank_lines():
    runner = MagicMock(return_value=ok_result(stdout="101 x\n\n   \n102 y\n"))
    queue = count_user_jobs("alice", runner=runner)
    assert queue.count == 2


def test_squeue_command():
    runner = MagicMock(return_value=ok_result())
    count_user_jobs("alice", runner=runner)
    runner.assert_called_once_with(["squeue", "-u", "alice", "-h"])


def test_default_user_is_current_user():
    runner = MagicMock(return_value=ok_result())
    with patch("fmriprep_scheduler.monitor.current_user", return_value="bob"):
        count_user_jobs(runner=runner)
    assert runner.call_args[0][0] == ["squeue", "-u", "bob", "-h"]


# ---------------------------------------------------------------------------
# count_user_jobs — failures
# ---------------------------------------------------------------------------


def test_failed_query_reports_zero_with_failed_result():
    runner = MagicMock(return_value=failed_result(cmd=("squeue",)))
    queue = count_user_jobs("alice", runner=runner)
    assert queue.count == 0
    assert queue.result.status == "failed"


def test_unreachable_squeue():
    with patch("subprocess.run", side_effect=FileNotFoundError("squeue")):
        queue = count_user_jobs("alice")
    assert queue.count == 0
    assert queue.result.status == "unreachable"


def test_unreachable_result_passthrough():
    runner = MagicMock(return_value=unreachable_result(cmd=("squeue",)))
    assert count_user_jobs("alice", runner=runner).result.status == "unreachable"
