"""Unit tests for the transactional invoker."""

from __future__ import annotations

import pytest

from builder.transaction import FunctionAction, TransactionalInvoker
from core.errors import JmakeCompensationError, JmakeError, JmakeStepExecutionError


class _RecordingAction:
    def __init__(self, name: str, calls: list[str], fail_perform: bool = False) -> None:
        self._name = name
        self._calls = calls
        self._fail_perform = fail_perform

    def perform(self) -> str:
        if self._fail_perform:
            raise JmakeStepExecutionError(f"{self._name} failed")
        self._calls.append(f"perform:{self._name}")
        return self._name

    def revert(self) -> None:
        self._calls.append(f"revert:{self._name}")

    def describe(self) -> str:
        return self._name


class _BrokenRevertAction(_RecordingAction):
    def revert(self) -> None:
        raise OSError("device busy")


def test_submit_returns_perform_result() -> None:
    """Submitted actions should hand their result back to the caller."""
    invoker = TransactionalInvoker()

    result = invoker.submit(lambda: "/tank/app")

    assert result == "/tank/app" and len(invoker.log) == 1


def test_failure_reverts_in_reverse_commit_order() -> None:
    """Every committed action should be reverted, most recent first."""
    calls: list[str] = []
    invoker = TransactionalInvoker()
    for name in ("a", "b", "c", "d"):
        invoker.submit(_RecordingAction(name, calls))

    with pytest.raises(JmakeStepExecutionError):
        invoker.submit(_RecordingAction("e", calls, fail_perform=True))

    assert calls[4:] == ["revert:d", "revert:c", "revert:b", "revert:a"]


def test_compensation_failure_does_not_stop_unwind() -> None:
    """A failing revert should be recorded while older entries still revert."""
    calls: list[str] = []
    invoker = TransactionalInvoker()
    invoker.submit(_RecordingAction("a", calls))
    invoker.submit(_BrokenRevertAction("b", calls))
    invoker.submit(_RecordingAction("c", calls))

    with pytest.raises(JmakeStepExecutionError, match="d failed"):
        invoker.submit(_RecordingAction("d", calls, fail_perform=True))

    assert calls[3:] == ["revert:c", "revert:a"] and [
        error.action_name for error in invoker.compensation_errors
    ] == ["b"]


def test_original_failure_propagates_unchanged() -> None:
    """The triggering exception object should reach the caller, not a compensation error."""
    invoker = TransactionalInvoker()
    invoker.submit(_BrokenRevertAction("a", []))
    failure = ValueError("boom")

    def _fail() -> None:
        raise failure

    with pytest.raises(ValueError) as raised:
        invoker.submit(_fail)

    assert raised.value is failure and isinstance(
        invoker.compensation_errors[0], JmakeCompensationError
    )


def test_submit_after_rollback_is_rejected() -> None:
    """No further steps should run once a transaction rolled back."""
    invoker = TransactionalInvoker()

    def _fail() -> None:
        raise RuntimeError("jail start failed")

    with pytest.raises(RuntimeError):
        invoker.submit(_fail)

    with pytest.raises(JmakeError, match="rolled back"):
        invoker.submit(lambda: None)

    assert invoker.state == "rolled_back"


def test_plain_callables_have_no_compensation() -> None:
    """Functions submitted directly should be committed with a no-op revert."""
    calls: list[str] = []
    invoker = TransactionalInvoker()
    invoker.submit(lambda: calls.append("ran"))

    invoker.rollback()

    assert calls == ["ran"]


def test_function_action_compensates() -> None:
    """Function actions with a compensation should run it on rollback."""
    calls: list[str] = []
    invoker = TransactionalInvoker()
    invoker.submit(
        FunctionAction(run=lambda: calls.append("clone"), compensate=lambda: calls.append("destroy"))
    )

    invoker.rollback()

    assert calls == ["clone", "destroy"]


def test_commit_releases_scoped_resources_in_reverse_order() -> None:
    """Commit should release scoped actions, newest first, without reverting."""
    calls: list[str] = []
    invoker = TransactionalInvoker()
    for name in ("context", "volume"):
        invoker.submit(
            FunctionAction(
                run=lambda: None,
                compensate=lambda name=name: calls.append(f"revert:{name}"),
                release=lambda name=name: calls.append(f"release:{name}"),
                name=name,
            )
        )

    invoker.commit()

    assert calls == ["release:volume", "release:context"] and invoker.state == "committed"


def test_commit_reports_release_failures_after_trying_all() -> None:
    """A failing release should not stop other releases."""
    calls: list[str] = []

    def _broken_release() -> None:
        raise OSError("busy")

    invoker = TransactionalInvoker()
    invoker.submit(FunctionAction(run=lambda: None, release=lambda: calls.append("first")))
    invoker.submit(FunctionAction(run=lambda: None, release=_broken_release, name="second"))

    with pytest.raises(JmakeStepExecutionError, match="second"):
        invoker.commit()

    assert calls == ["first"]


def test_context_manager_rolls_back_on_error_outside_submit() -> None:
    """Errors raised between submissions should also unwind the log."""
    calls: list[str] = []

    with pytest.raises(KeyError):
        with TransactionalInvoker() as invoker:
            invoker.submit(_RecordingAction("a", calls))
            raise KeyError("osrelease")

    assert calls == ["perform:a", "revert:a"]


def test_context_manager_commits_on_success() -> None:
    """Leaving the block normally should commit."""
    with TransactionalInvoker() as invoker:
        invoker.submit(lambda: None)

    assert invoker.state == "committed"
