"""SparkApplication lifecycle supervision for sparkrunner.

Submits a built JobSpec and blocks until the operator reports a terminal
phase. The cluster is the only source of truth: every poll re-reads the
phase and nothing is carried between iterations.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from enum import Enum
from typing import Any, Protocol

from sparkrunner._constants import DEFAULT_POLL_INTERVAL_MS
from sparkrunner.config.schema import DEFAULT_TERMINAL_PHASES, JobPhase, LifecycleConfig
from sparkrunner.k8s.client import JobHandle, K8sError

from .spec import JobSpec

logger = logging.getLogger(__name__)

SUCCESS = 0
FAILURE = -1


class Orchestrator(Protocol):
    """Operations the controller needs from the cluster."""

    def submit(self, manifest: dict[str, Any]) -> JobHandle: ...

    def get_phase(self, name: str) -> JobPhase: ...

    def delete(self, name: str) -> bool: ...


class ControllerError(Exception):
    """Base exception for lifecycle errors."""

    pass


class SubmissionError(ControllerError):
    """Raised when the orchestrator rejects or cannot receive a submission."""

    def __init__(self, message: str, body: str | None = None):
        super().__init__(message)
        self.body = body


class PhaseQueryError(ControllerError):
    """Raised when reading the application phase fails mid-wait."""

    pass


class ControllerStateError(ControllerError):
    """Raised when an operation is called in the wrong controller state."""

    pass


class ControllerState(Enum):
    """Client-side view of the supervised application."""

    CREATED = "created"
    SUBMITTED = "submitted"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    UNKNOWN = "unknown"


_TERMINAL_STATES = {
    JobPhase.SUCCEEDED: ControllerState.SUCCEEDED,
    JobPhase.FAILED: ControllerState.FAILED,
}


class JobLifecycleController:
    """Submits one SparkApplication and waits for it to finish.

    ``wait_for`` blocks the calling thread for the lifetime of the job and has
    no timeout; deadlines belong to the operator. Run one controller per job
    and per thread when supervising several jobs at once.
    """

    def __init__(
        self,
        orchestrator: Orchestrator,
        spec: JobSpec,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        delete_on_finish: bool = False,
        terminal_phases: Iterable[JobPhase] = DEFAULT_TERMINAL_PHASES,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the controller.

        Args:
            orchestrator: Client used to submit, poll and delete the application
            spec: Built job spec; treated as read-only
            poll_interval_ms: Delay between phase reads
            delete_on_finish: Delete the application once it is terminal
            terminal_phases: Phases that end the wait; must include Succeeded and Failed
            sleep: Sleep function, injectable for tests

        Raises:
            ValueError: If terminal_phases omits Succeeded or Failed, or the
                poll interval is not positive
        """
        terminal = frozenset(terminal_phases)
        missing = DEFAULT_TERMINAL_PHASES - terminal
        if missing:
            names = ", ".join(sorted(p.value for p in missing))
            raise ValueError(f"terminal_phases must include {names}")
        if poll_interval_ms <= 0:
            raise ValueError("poll_interval_ms must be positive")

        self.orchestrator = orchestrator
        self.spec = spec
        self.poll_interval_ms = poll_interval_ms
        self.delete_on_finish = delete_on_finish
        self.terminal_phases = terminal
        self._sleep = sleep

        self._state = ControllerState.CREATED
        self._handle: JobHandle | None = None
        self.poll_count = 0

    @classmethod
    def from_config(
        cls,
        orchestrator: Orchestrator,
        spec: JobSpec,
        lifecycle: LifecycleConfig,
        sleep: Callable[[float], None] = time.sleep,
    ) -> JobLifecycleController:
        """Create a controller from the lifecycle section of a RunnerConfig."""
        return cls(
            orchestrator,
            spec,
            poll_interval_ms=lifecycle.poll_interval_ms,
            delete_on_finish=lifecycle.delete_on_finish,
            terminal_phases=lifecycle.terminal_phases,
            sleep=sleep,
        )

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def handle(self) -> JobHandle | None:
        return self._handle

    @property
    def name(self) -> str:
        return self.spec.name

    def start(self) -> JobLifecycleController:
        """Submit the application.

        Returns:
            self, so ``controller.start().wait_for()`` reads naturally

        Raises:
            ControllerStateError: If the application was already submitted
            SubmissionError: If the orchestrator rejects the submission; the
                controller stays in CREATED
        """
        if self._state is not ControllerState.CREATED:
            raise ControllerStateError(
                f"Cannot start {self.name}: state is {self._state.value}"
            )

        logger.info("Submitting Spark application %s", self.name)
        try:
            handle = self.orchestrator.submit(self.spec.to_manifest())
        except K8sError as e:
            body = getattr(e, "body", None)
            logger.error("Submission of %s failed: %s", self.name, body or e)
            raise SubmissionError(f"Failed to submit {self.name}: {e}", body=body) from e

        self._handle = handle
        self._state = ControllerState.SUBMITTED
        return self

    def wait_for(self) -> int:
        """Block until the application reaches a terminal phase.

        The phase is read before the first sleep, so an application that is
        already finished is detected on the first poll.

        Returns:
            0 if the application succeeded, -1 for any other terminal phase

        Raises:
            ControllerStateError: If called before a successful start()
            PhaseQueryError: If a phase read fails
        """
        if self._state is not ControllerState.SUBMITTED:
            raise ControllerStateError(
                f"Cannot wait for {self.name}: state is {self._state.value}, call start() first"
            )

        self._state = ControllerState.POLLING
        self.poll_count = 0
        last_phase: JobPhase | None = None

        while True:
            try:
                phase = self.orchestrator.get_phase(self.name)
            except K8sError as e:
                raise PhaseQueryError(f"Failed to read phase of {self.name}: {e}") from e
            self.poll_count += 1

            if phase != last_phase:
                logger.info("Spark application %s is %s", self.name, phase.value)
                last_phase = phase
            else:
                logger.debug(
                    "Spark application %s still %s (poll %d)",
                    self.name,
                    phase.value,
                    self.poll_count,
                )

            if phase in self.terminal_phases:
                break

            self._sleep(self.poll_interval_ms / 1000)

        self._state = _TERMINAL_STATES.get(phase, ControllerState.UNKNOWN)
        logger.info("Spark application %s finished with status %s", self.name, phase.value)

        if self.delete_on_finish:
            self._teardown()

        return SUCCESS if phase == JobPhase.SUCCEEDED else FAILURE

    def run(self) -> int:
        """Submit the application and wait for it. See start() and wait_for()."""
        return self.start().wait_for()

    def _teardown(self) -> None:
        """Delete the finished application, logging failures."""
        try:
            if self.orchestrator.delete(self.name):
                logger.info("Deleted Spark application %s", self.name)
            else:
                logger.info("Spark application %s already gone", self.name)
        except K8sError as e:
            logger.warning("Failed to delete Spark application %s: %s", self.name, e)
        except Exception:
            logger.exception("Unexpected error deleting Spark application %s", self.name)
