"""Iteration controller driving the generate → write → test loop."""
from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional, Protocol, Sequence

from ai_tdd.core.errors import GenerationError, ImplementationFileError, TddError, TestFileError
from ai_tdd.core.utils.constants import DEFAULT_MAX_ITERATIONS, DEFAULT_RETENTION_WINDOW, DEFAULT_WATCH_INTERVAL
from ai_tdd.core.utils.logger import get_logger, set_correlation_id
from ai_tdd.providers.llm.base import Message
from ai_tdd.session.context_service import ConversationContext
from ai_tdd.session.models import Session, SessionState, new_session_id
from ai_tdd.session.prompt_builder import strip_code_fences
from ai_tdd.testing.frameworks import LanguageProfile
from ai_tdd.testing.local_tests import verify_implementation_file
from ai_tdd.testing.results import TestResult

from .events import EventBus, EventType, StatusEvent
from .triggers import Trigger, TriggerChannel
from .watcher import FileWatcher

LOGGER = get_logger(__name__)

# Failures that end one cycle without ending the session.
CYCLE_ERRORS = (GenerationError, ImplementationFileError, TestFileError)


class CompletionProvider(Protocol):
    def complete(self, messages: Sequence[Message]) -> str:
        ...


class TestExecutor(Protocol):
    __test__ = False

    def ensure_available(self, test_file: Path) -> LanguageProfile:
        ...

    def run(self, test_file: Path, implementation_file: Path) -> TestResult:
        ...


class CycleOutcome(str, Enum):
    PASSED = "passed"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class CycleReport:
    """Summary of one trigger-driven run of the loop."""

    outcome: CycleOutcome
    rounds: int
    result: TestResult

    @property
    def passed(self) -> bool:
        return self.outcome is CycleOutcome.PASSED


class IterationController:
    """TDD state machine for a single test/implementation file pair.

    Cycles run strictly one at a time. Triggers that arrive while paused or
    while a cycle is in flight are dropped, and pausing never interrupts a
    running cycle: it only stops the next one from starting.
    """

    def __init__(
        self,
        provider: CompletionProvider,
        runner: TestExecutor,
        *,
        data_dir: Path,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        retention: int = DEFAULT_RETENTION_WINDOW,
        instructions: Optional[str] = None,
        events: Optional[EventBus] = None,
        watch: bool = False,
        watch_interval: float = DEFAULT_WATCH_INTERVAL,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.provider = provider
        self.runner = runner
        self.data_dir = Path(data_dir)
        self.max_iterations = max_iterations
        self.retention = retention
        self.instructions = instructions
        self.events = events or EventBus()
        self.watch = watch
        self.watch_interval = watch_interval
        self._session: Optional[Session] = None
        self._channel = TriggerChannel()
        self._watcher: Optional[FileWatcher] = None
        self._cycle_lock = threading.Lock()
        self._cycle_thread: Optional[int] = None
        self._stop_lock = threading.RLock()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def session(self) -> Session:
        if self._session is None:
            raise TddError("No TDD session has been started")
        return self._session

    @property
    def state(self) -> SessionState:
        return self._session.state if self._session else SessionState.IDLE

    @property
    def busy(self) -> bool:
        return self._cycle_lock.locked()

    # ------------------------------------------------------------------
    # Inbound events
    # ------------------------------------------------------------------

    def start(self, test_file: Path | str, implementation_file: Path | str) -> Session:
        """Create the session and arm the controller for triggers."""
        if self._session is not None and not self._session.closed:
            raise TddError(f"Session {self._session.id} is already active")

        test_path = Path(test_file).resolve()
        implementation_path = Path(implementation_file).resolve()
        profile = self.runner.ensure_available(test_path)
        if not test_path.is_file():
            raise TddError(f"Test file {test_path} does not exist")
        verify_implementation_file(implementation_path)

        session_id = new_session_id()
        set_correlation_id(session_id)
        context = ConversationContext(
            session_id,
            profile,
            retention=self.retention,
            instructions=self.instructions,
        )
        session = Session(
            id=session_id,
            test_file=test_path,
            implementation_file=implementation_path,
            profile=profile,
            context=context,
            max_iterations=self.max_iterations,
        )
        self._session = session
        self._channel = TriggerChannel()
        if self.watch:
            self._watcher = FileWatcher(test_path, self.file_saved, interval=self.watch_interval)
            self._watcher.start()
        session.state = SessionState.ARMED
        LOGGER.info(
            "Session %s armed: %s (%s/%s) -> %s",
            session_id,
            test_path,
            profile.language,
            profile.test_runner,
            implementation_path,
        )
        return session

    def set_paused(self, paused: bool) -> None:
        session = self.session
        if session.paused == paused:
            return
        session.paused = paused
        LOGGER.info("Session %s %s", session.id, "paused" if paused else "resumed")
        self._publish(EventType.PAUSE_TOGGLED, paused=paused)

    def file_saved(self, path: Path | str) -> bool:
        """Queue a cycle for a save of the test file; returns whether it was queued."""
        session = self._session
        if session is None or session.closed:
            return False
        if Path(path).resolve() != session.test_file:
            return False
        if session.paused:
            LOGGER.info("Ignoring save of %s while paused", path)
            return False
        if self.busy:
            LOGGER.info("Ignoring save of %s while a cycle is in progress", path)
            return False
        return self._channel.push(Trigger(source="file_saved", path=Path(path)))

    def serve(self) -> List[CycleReport]:
        """Handle queued triggers one at a time until :meth:`stop` closes the channel.

        Generation failures and a missing or unreadable implementation or test
        file abort only the current cycle; the session keeps waiting for the
        next trigger.
        """
        reports: List[CycleReport] = []
        while True:
            trigger = self._channel.wait()
            if trigger is None:
                break
            LOGGER.debug("Handling %s trigger", trigger.source)
            try:
                report = self.run_cycle()
            except CYCLE_ERRORS as exc:
                LOGGER.error("Cycle aborted: %s", exc)
                continue
            if report is not None:
                reports.append(report)
        return reports

    def run_cycle(self) -> Optional[CycleReport]:
        """Run one trigger-driven cycle; ``None`` when paused or already running."""
        session = self.session
        if session.closed:
            raise TddError(f"Session {session.id} is stopped")
        if session.paused:
            LOGGER.info("Session %s is paused; cycle not started", session.id)
            return None
        if not self._cycle_lock.acquire(blocking=False):
            LOGGER.info("A cycle is already in progress; trigger ignored")
            return None
        self._cycle_thread = threading.get_ident()
        try:
            return self._run_locked(session)
        finally:
            self._cycle_thread = None
            self._cycle_lock.release()

    def stop(self) -> None:
        """Tear the session down: release listeners, flush and close it."""
        session = self._session
        if session is None:
            return
        if self._cycle_thread == threading.get_ident():
            raise TddError("stop() cannot be called from inside a running cycle")

        # Watch mode can stop from the control thread and the CLI at once;
        # the second caller returns only after the first has finished.
        with self._stop_lock:
            if session.closed:
                return
            self._channel.close()
            if self._watcher is not None:
                self._watcher.stop()
                self._watcher = None

            with self._cycle_lock:
                self._persist(session)
                session.state = SessionState.STOPPED
            LOGGER.info("Session %s stopped after %d iterations", session.id, session.iteration)
            self._publish(EventType.SESSION_STOPPED, iterations=session.iteration)

    # ------------------------------------------------------------------
    # Cycle internals
    # ------------------------------------------------------------------

    def _run_locked(self, session: Session) -> CycleReport:
        try:
            verify_implementation_file(session.implementation_file)
            session.context.record_test_file(self._read_test_file(session))

            rounds = 0
            while True:
                rounds += 1
                session.iteration += 1
                LOGGER.info("Starting iteration %d of %d", rounds, session.max_iterations)
                latest = self._run_round(session, rounds)
                if latest.success or rounds >= session.max_iterations:
                    break
        except Exception as exc:
            session.state = SessionState.AWAITING_NEXT_TRIGGER
            self._publish(EventType.CYCLE_ABORTED, error=str(exc))
            self._flush_after_abort(session)
            raise

        self._persist(session)
        if latest.success:
            session.state = SessionState.PASSED
            LOGGER.info("Tests passed after %d iterations", rounds)
            self._publish(EventType.SESSION_PASSED, rounds=rounds)
            return CycleReport(outcome=CycleOutcome.PASSED, rounds=rounds, result=latest)

        session.state = SessionState.AWAITING_NEXT_TRIGGER
        LOGGER.info("Reached maximum iterations (%d) without passing tests", session.max_iterations)
        self._publish(EventType.SESSION_EXHAUSTED, rounds=rounds, output=latest.output, error=latest.error)
        return CycleReport(outcome=CycleOutcome.EXHAUSTED, rounds=rounds, result=latest)

    def _run_round(self, session: Session, round_number: int) -> TestResult:
        session.state = SessionState.GENERATING
        self._publish(
            EventType.CODE_GENERATION_STARTED,
            iteration=round_number,
            max_iterations=session.max_iterations,
        )
        try:
            completion = self.provider.complete(session.context.to_llm_messages())
        except Exception as exc:
            self._publish(EventType.CODE_GENERATION_FAILED, iteration=round_number, error=str(exc))
            raise

        code = strip_code_fences(completion)
        session.context.record_implementation(code)
        self._write_implementation(session.implementation_file, code)
        self._publish(EventType.CODE_GENERATION_COMPLETED, iteration=round_number, code=code)

        session.state = SessionState.TESTING
        self._publish(EventType.TEST_STARTED, iteration=round_number)
        result = self.runner.run(session.test_file, session.implementation_file)
        session.context.record_test_result(result)
        session.results.append(result)
        LOGGER.info("Test result: %s", "Passed" if result.success else "Failed")
        self._publish(
            EventType.TEST_PASSED if result.success else EventType.TEST_FAILED,
            iteration=round_number,
            output=result.output,
            error=result.error,
        )
        return result

    @staticmethod
    def _read_test_file(session: Session) -> str:
        try:
            return session.test_file.read_text(encoding="utf-8")
        except OSError as exc:
            raise TestFileError(f"Test file {session.test_file} could not be read: {exc}") from exc

    @staticmethod
    def _write_implementation(path: Path, code: str) -> None:
        try:
            path.write_text(code, encoding="utf-8")
        except OSError as exc:
            raise ImplementationFileError(path) from exc

    def _persist(self, session: Session) -> Path:
        return session.context.persist(
            self.data_dir,
            test_file=session.test_file,
            implementation_file=session.implementation_file,
        )

    def _flush_after_abort(self, session: Session) -> None:
        try:
            self._persist(session)
        except TddError:
            LOGGER.exception("Failed to persist conversation for aborted cycle in session %s", session.id)

    def _publish(self, event_type: EventType, **payload: Any) -> None:
        session_id = self._session.id if self._session else "-"
        self.events.publish(StatusEvent(type=event_type, session_id=session_id, payload=payload))


__all__ = [
    "CYCLE_ERRORS",
    "CompletionProvider",
    "CycleOutcome",
    "CycleReport",
    "IterationController",
    "TestExecutor",
]
