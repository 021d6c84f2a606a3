from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, List, Optional, Protocol, Sequence

from .config import ProvisionerConfig
from .descriptor import PlatformDescriptor
from .errors import ErrorKind, InvalidTransition, ProvisioningError
from .lib.command import CmdResult, CommandTimeout, fmt_argv
from .result import ProvisioningState

logger = logging.getLogger(__name__)


class Backend(Protocol):
    """Registry plus package manager for one environment."""

    def resolve(self, reference: str, *, timeout_s: Optional[float] = None) -> Any:
        ...

    def start(self, image: Any, *, timeout_s: Optional[float] = None) -> str:
        ...

    def configure(self, *, timeout_s: Optional[float] = None) -> None:
        ...

    def refresh_index(self, *, timeout_s: Optional[float] = None) -> CmdResult:
        ...

    def install_atomic(self, names: Sequence[str], *, timeout_s: Optional[float] = None) -> CmdResult:
        ...

    def installed_packages(self, *, timeout_s: Optional[float] = None) -> List[str]:
        ...

    def run(self, argv: Sequence[str], *, timeout_s: Optional[float] = None) -> CmdResult:
        ...

    def discard(self) -> None:
        ...


class Step(Protocol):
    """A single provisioning step.

    ``reaches`` is the state entered when the step succeeds, or None when the
    step does not complete a transition on its own.
    """

    step_id: str
    reaches: Optional[ProvisioningState]

    def run(self, ctx: "RunContext") -> None:
        ...


_ORDER = [
    ProvisioningState.UNINITIALIZED,
    ProvisioningState.BASE_IMAGE_SELECTED,
    ProvisioningState.INDEX_REFRESHED,
    ProvisioningState.PACKAGES_INSTALLED,
]


class StateMachine:
    def __init__(self) -> None:
        self.state = ProvisioningState.UNINITIALIZED
        self.history: List[ProvisioningState] = [self.state]

    @property
    def terminal(self) -> bool:
        return self.state in {ProvisioningState.PACKAGES_INSTALLED, ProvisioningState.FAILED}

    def advance(self, to: ProvisioningState) -> None:
        if self.terminal:
            raise InvalidTransition(f"{self.state.value} is terminal")
        if to is ProvisioningState.FAILED:
            raise InvalidTransition("use fail() to enter Failed")
        expected = _ORDER[_ORDER.index(self.state) + 1]
        if to is not expected:
            raise InvalidTransition(f"{self.state.value} -> {to.value} (expected {expected.value})")
        self._enter(to)

    def fail(self) -> None:
        if self.terminal:
            raise InvalidTransition(f"{self.state.value} is terminal")
        self._enter(ProvisioningState.FAILED)

    def _enter(self, to: ProvisioningState) -> None:
        logger.info("State %s -> %s", self.state.value, to.value)
        self.state = to
        self.history.append(to)


class Deadline:
    def __init__(self, timeout_s: Optional[float], *, clock=time.monotonic) -> None:
        self._clock = clock
        self.timeout_s = timeout_s
        self.expires_at = None if timeout_s is None else clock() + timeout_s

    def remaining(self) -> Optional[float]:
        """Seconds left; raises a Timeout error once the deadline has passed."""
        if self.expires_at is None:
            return None
        left = self.expires_at - self._clock()
        if left <= 0:
            raise ProvisioningError(ErrorKind.TIMEOUT, f"deadline of {self.timeout_s}s exceeded")
        return left


@dataclass
class RunContext:
    descriptor: PlatformDescriptor
    config: ProvisionerConfig
    backend: Backend
    deadline: Deadline
    cancel: threading.Event = field(default_factory=threading.Event)
    machine: StateMachine = field(default_factory=StateMachine)
    logs: List[str] = field(default_factory=list)
    image: Any = None
    environment: Optional[str] = None
    installed_packages: List[str] = field(default_factory=list)
    compiler_version: Optional[str] = None
    current_step: Optional[str] = None
    ran_steps: List[str] = field(default_factory=list)

    def record(self, result: CmdResult) -> CmdResult:
        self.logs.append(f"$ {fmt_argv(result.argv)}")
        self.logs.extend(result.lines())
        return result

    def timeout(self) -> Optional[float]:
        return self.deadline.remaining()


def timed_out(e: CommandTimeout, step: str) -> ProvisioningError:
    logs = e.output.splitlines() if e.output else []
    return ProvisioningError(ErrorKind.TIMEOUT, f"{step} exceeded the deadline: {e}", logs=logs)


def run_pipeline(ctx: RunContext, steps: Sequence[Step]) -> None:
    """Run steps strictly in order; the first error ends the run.

    Cancellation is honoured at step boundaries. An error raised while the
    cancel event is set is reported as a cancellation.
    """

    for step in steps:
        ctx.current_step = step.step_id
        if ctx.cancel.is_set():
            raise ProvisioningError(ErrorKind.CANCELLED, f"cancelled before {step.step_id}")
        ctx.deadline.remaining()

        logger.info("[%s] Running step %s", ctx.descriptor.name, step.step_id)
        try:
            step.run(ctx)
        except ProvisioningError as e:
            if ctx.cancel.is_set() and e.kind is not ErrorKind.CANCELLED:
                raise ProvisioningError(
                    ErrorKind.CANCELLED, f"cancelled during {step.step_id}", logs=e.logs
                ) from e
            raise
        ctx.ran_steps.append(step.step_id)
        if step.reaches is not None:
            ctx.machine.advance(step.reaches)

    ctx.current_step = None
