"""Tests for the process terminator."""

from queue import Queue
from unittest.mock import MagicMock, patch

import psutil

from portmon.events import KillCompleted
from portmon.terminator import start_termination, terminate


def _process_factory(failures: dict[int, Exception]):
    def _make(pid: int) -> MagicMock:
        proc = MagicMock()
        if pid in failures:
            proc.kill.side_effect = failures[pid]
        return proc

    return _make


@patch("portmon.terminator.psutil.Process")
def test_terminate_all_succeed(mock_process_cls: MagicMock):
    mock_process_cls.side_effect = _process_factory({})

    result = terminate([1, 2, 3])

    assert result.attempted == 3
    assert result.succeeded == 3
    assert result.first_error is None


@patch("portmon.terminator.psutil.Process")
def test_terminate_aggregates_partial_failure(mock_process_cls: MagicMock):
    error = psutil.AccessDenied(2)
    mock_process_cls.side_effect = _process_factory({2: error})

    result = terminate([1, 2, 3])

    assert result.succeeded == 2
    assert result.first_error is error
    # Pid 3 is still attempted after pid 2 fails
    assert [c.args[0] for c in mock_process_cls.call_args_list] == [1, 2, 3]


@patch("portmon.terminator.psutil.Process")
def test_terminate_keeps_first_error_only(mock_process_cls: MagicMock):
    first = psutil.AccessDenied(1)
    second = psutil.AccessDenied(3)
    mock_process_cls.side_effect = _process_factory({1: first, 3: second})

    result = terminate([1, 2, 3])

    assert result.succeeded == 1
    assert result.first_error is first


@patch("portmon.terminator.psutil.Process")
def test_vanished_pid_is_a_failure(mock_process_cls: MagicMock):
    mock_process_cls.side_effect = psutil.NoSuchProcess(42)

    result = terminate([42])

    assert result.attempted == 1
    assert result.succeeded == 0
    assert isinstance(result.first_error, psutil.NoSuchProcess)


@patch("portmon.terminator.psutil.Process")
def test_start_termination_posts_result(mock_process_cls: MagicMock):
    mock_process_cls.side_effect = _process_factory({})
    queue: Queue = Queue()

    thread = start_termination([7, 8], queue)
    thread.join(timeout=2.0)

    event = queue.get(timeout=2.0)
    assert isinstance(event, KillCompleted)
    assert event.result.succeeded == 2
    assert thread.daemon is True
    assert thread.name == "ProcessTerminator"
