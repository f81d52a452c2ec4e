"""Transaction log and transactional invoker.

This module runs every unit of an image build as one logical transaction.
Each committed action is recorded in order; the first failure unwinds the
whole log in reverse commit order and re-raises the original error.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import TracebackType
from typing import Any, Callable, Iterator, Literal, Protocol

from core.errors import JmakeCompensationError, JmakeError, JmakeStepExecutionError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)

TransactionState = Literal["open", "committed", "rolled_back"]


class ReversibleAction(Protocol):
    """Unit of work with a compensating operation."""

    def perform(self) -> Any: ...

    def revert(self) -> None: ...


@dataclass(frozen=True)
class FunctionAction:
    """Reversible action assembled from plain callables.

    Attributes:
        run: Zero-argument unit of work; its result is returned by ``submit``.
        compensate: Optional undo callable; irreversible when omitted.
        release: Optional callable releasing a scoped resource at commit.
        name: Log-friendly action name.
    """

    run: Callable[[], Any]
    compensate: Callable[[], None] | None = None
    release: Callable[[], None] | None = None
    name: str | None = None

    def perform(self) -> Any:
        return self.run()

    def revert(self) -> None:
        if self.compensate is not None:
            self.compensate()

    def describe(self) -> str:
        return self.name or getattr(self.run, "__name__", "action")


@dataclass(frozen=True)
class TransactionLogEntry:
    """One committed reversible action."""

    position: int
    name: str
    action: ReversibleAction

    def compensate(self) -> None:
        """Undo the committed action."""
        self.action.revert()

    def release(self) -> None:
        """Release scoped resources held by the action, if any."""
        release = getattr(self.action, "release", None)
        if callable(release):
            release()


class TransactionLog:
    """Ordered record of committed actions for the current build."""

    def __init__(self) -> None:
        self._entries: list[TransactionLogEntry] = []

    def append(self, name: str, action: ReversibleAction) -> TransactionLogEntry:
        entry = TransactionLogEntry(position=len(self._entries), name=name, action=action)
        self._entries.append(entry)
        return entry

    def drain_reversed(self) -> Iterator[TransactionLogEntry]:
        """Yield entries most recent first, removing each as it is yielded."""
        while self._entries:
            yield self._entries.pop()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TransactionLogEntry]:
        return iter(list(self._entries))


class TransactionalInvoker:
    """Execute actions with all-or-nothing semantics.

    Actions are either objects exposing ``perform()``/``revert()`` or
    zero-argument callables, which are committed with no compensation.
    The invoker also works as a context manager: leaving the block
    normally commits, leaving it with an exception rolls back.
    """

    def __init__(self, log: TransactionLog | None = None) -> None:
        self._log = log if log is not None else TransactionLog()
        self._state: TransactionState = "open"
        self.compensation_errors: list[JmakeCompensationError] = []

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def log(self) -> TransactionLog:
        return self._log

    def submit(self, action: ReversibleAction | Callable[[], Any]) -> Any:
        """Perform an action and commit it to the transaction log.

        Args:
            action: Reversible action or zero-argument callable.

        Returns:
            The value returned by the action's ``perform()``.

        Raises:
            JmakeError: If the transaction is no longer open.
            BaseException: The original failure of ``perform()``, re-raised
                after every committed action has been compensated.
        """
        self._require_open()
        reversible = _as_reversible(action)
        name = _describe(reversible)
        try:
            result = reversible.perform()
        except BaseException as error:
            _LOGGER.error(
                "step_failed",
                action=name,
                error=str(error),
                error_type=type(error).__name__,
            )
            self.rollback()
            raise
        entry = self._log.append(name, reversible)
        _LOGGER.info("step_performed", action=name, position=entry.position)
        return result

    def rollback(self) -> list[JmakeCompensationError]:
        """Compensate every committed action in reverse commit order.

        Compensation failures are recorded and logged; they never stop
        the remaining entries from being compensated.

        Returns:
            Compensation failures collected during this rollback.
        """
        self._require_open()
        failures: list[JmakeCompensationError] = []
        reverted_count = 0
        for entry in self._log.drain_reversed():
            try:
                entry.compensate()
            except Exception as error:
                failure = JmakeCompensationError(entry.name, error)
                failures.append(failure)
                _LOGGER.warning(
                    "compensation_failed",
                    action=entry.name,
                    position=entry.position,
                    error=str(error),
                )
                continue
            reverted_count += 1
            _LOGGER.info("step_reverted", action=entry.name, position=entry.position)
        self._state = "rolled_back"
        self.compensation_errors.extend(failures)
        _LOGGER.info(
            "transaction_rolled_back",
            reverted_count=reverted_count,
            failed_count=len(failures),
        )
        return failures

    def commit(self) -> None:
        """Close the transaction and release scoped resources.

        Scoped resources, such as bind mounts, are released in reverse
        commit order.

        Raises:
            JmakeStepExecutionError: If any release fails; all releases are
                attempted first.
        """
        self._require_open()
        self._state = "committed"
        release_failures: list[str] = []
        for entry in self._log.drain_reversed():
            try:
                entry.release()
            except Exception as error:
                release_failures.append(f"{entry.name}: {error}")
                _LOGGER.warning("release_failed", action=entry.name, error=str(error))
        _LOGGER.info("transaction_committed", release_failures=len(release_failures))
        if release_failures:
            raise JmakeStepExecutionError(
                "Build committed but scoped resources could not be released: "
                f"{'; '.join(release_failures)}. Release them manually with umount."
            )

    def __enter__(self) -> "TransactionalInvoker":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        if self._state != "open":
            return
        if exc_type is None:
            self.commit()
        else:
            self.rollback()

    def _require_open(self) -> None:
        if self._state != "open":
            raise JmakeError(
                f"Transaction is already {self._state.replace('_', ' ')}. "
                "Start a new build to submit further actions."
            )


def _as_reversible(action: ReversibleAction | Callable[[], Any]) -> ReversibleAction:
    if hasattr(action, "perform") and hasattr(action, "revert"):
        return action  # type: ignore[return-value]
    if callable(action):
        return FunctionAction(run=action)
    raise TypeError(
        f"Cannot submit {type(action).__name__}: expected perform()/revert() or a callable."
    )


def _describe(action: ReversibleAction) -> str:
    describe = getattr(action, "describe", None)
    if callable(describe):
        return str(describe())
    return type(action).__name__
