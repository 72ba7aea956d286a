"""Settlement monitoring for a single payment intent.

A poller is a one-shot state machine: CHECKING, then exactly one of
SUCCEEDED, FAILED or TIMED_OUT. The first status check happens immediately;
later checks run on a fixed cadence until the attempt budget or the
wall-clock deadline runs out. One timer serves both the next check and the
deadline.
"""
import time
import threading
from typing import Optional, Callable
from dataclasses import dataclass
from enum import Enum
from mindbridge.models.payment_intent import IntentStatus
from mindbridge.core.config import Config
from mindbridge.core.exceptions import ExternalServiceError
from mindbridge.core.logging import get_logger

logger = get_logger(__name__)


class PollOutcome(str, Enum):
    """Terminal poller states."""
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    TIMED_OUT = "TIMED_OUT"


@dataclass
class PollState:
    """Ephemeral progress of one monitoring session."""
    deadline: float
    attempts_made: int = 0
    last_observed_status: Optional[IntentStatus] = None


@dataclass(frozen=True)
class PollResult:
    """The single terminal report of a poller."""
    outcome: PollOutcome
    payment_intent_id: str
    attempts_made: int
    last_status: Optional[IntentStatus] = None
    failure_reason: Optional[str] = None
    last_error: Optional[str] = None


class SettlementPoller:
    """Polls a payment intent until it settles, fails or the budget runs out."""

    def __init__(
        self,
        status_reader: Callable[[str], IntentStatus],
        interval_seconds: float = 5.0,
        max_attempts: int = 12,
        timeout_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], None]] = None,
        on_result: Optional[Callable[[PollResult], None]] = None
    ):
        self.status_reader = status_reader
        self.interval_seconds = interval_seconds
        self.max_attempts = max_attempts
        self.timeout_seconds = timeout_seconds
        self.clock = clock
        self._sleep = sleep
        self.on_result = on_result

        self.state: Optional[PollState] = None
        self.result: Optional[PollResult] = None
        self._cancelled = threading.Event()
        self._started = False
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, status_reader: Callable[[str], IntentStatus], config: Config, **kwargs) -> "SettlementPoller":
        return cls(
            status_reader,
            interval_seconds=config.poll_interval_seconds,
            max_attempts=config.poll_max_attempts,
            timeout_seconds=config.poll_timeout_seconds,
            **kwargs
        )

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Stop watching. Any result still in flight is discarded."""
        self._cancelled.set()

    def _wait(self, seconds: float) -> bool:
        """Sleep until the next timer fire. Returns True if cancelled meanwhile."""
        if self._sleep is not None:
            self._sleep(seconds)
            return self._cancelled.is_set()
        return self._cancelled.wait(seconds)

    def run(self, payment_intent_id: str) -> Optional[PollResult]:
        """Monitor the intent and return the terminal result.

        Returns None if the poller was cancelled before reaching a terminal
        state; in that case nothing is reported.
        """
        with self._lock:
            if self._started:
                raise RuntimeError("SettlementPoller instances run once")
            self._started = True

        started_at = self.clock()
        self.state = state = PollState(deadline=started_at + self.timeout_seconds)
        next_check_at = started_at
        last_error = None

        logger.info(
            "Started settlement monitoring",
            extra={
                "payment_intent_id": payment_intent_id,
                "interval_seconds": self.interval_seconds,
                "max_attempts": self.max_attempts,
                "timeout_seconds": self.timeout_seconds
            }
        )

        while True:
            now = self.clock()
            wake_at = min(next_check_at, state.deadline)
            if wake_at > now and self._wait(wake_at - now):
                return self._abandon(payment_intent_id)
            if self.cancelled:
                return self._abandon(payment_intent_id)

            if self.clock() >= state.deadline:
                return self._finish(payment_intent_id, PollOutcome.TIMED_OUT, last_error=last_error)

            state.attempts_made += 1
            status = None
            try:
                status = self.status_reader(payment_intent_id)
                last_error = None
            except ExternalServiceError as e:
                last_error = e.message
                logger.warning(
                    f"Status check {state.attempts_made}/{self.max_attempts} failed: {e.message}",
                    extra={"payment_intent_id": payment_intent_id}
                )
            except Exception as e:
                # Any reader error is a failed attempt.
                last_error = str(e)
                logger.exception(
                    f"Status check {state.attempts_made}/{self.max_attempts} raised unexpectedly",
                    extra={"payment_intent_id": payment_intent_id}
                )

            if self.cancelled:
                return self._abandon(payment_intent_id)

            if status is not None:
                state.last_observed_status = status
                if status == IntentStatus.SUCCEEDED:
                    return self._finish(payment_intent_id, PollOutcome.SUCCEEDED)
                if status in (IntentStatus.FAILED, IntentStatus.CANCELLED):
                    return self._finish(payment_intent_id, PollOutcome.FAILED, failure_reason=status.value)

            if state.attempts_made >= self.max_attempts or self.clock() >= state.deadline:
                return self._finish(payment_intent_id, PollOutcome.TIMED_OUT, last_error=last_error)

            next_check_at += self.interval_seconds

    def _abandon(self, payment_intent_id: str) -> None:
        logger.info(
            "Settlement monitoring cancelled",
            extra={
                "payment_intent_id": payment_intent_id,
                "attempts_made": self.state.attempts_made if self.state else 0
            }
        )
        return None

    def _finish(
        self,
        payment_intent_id: str,
        outcome: PollOutcome,
        failure_reason: Optional[str] = None,
        last_error: Optional[str] = None
    ) -> PollResult:
        with self._lock:
            if self.result is not None:
                return self.result
            self.result = PollResult(
                outcome=outcome,
                payment_intent_id=payment_intent_id,
                attempts_made=self.state.attempts_made,
                last_status=self.state.last_observed_status,
                failure_reason=failure_reason,
                last_error=last_error
            )

        logger.info(
            f"Settlement monitoring finished: {outcome.value}",
            extra={
                "payment_intent_id": payment_intent_id,
                "attempts_made": self.result.attempts_made,
                "last_status": self.result.last_status.value if self.result.last_status else None
            }
        )
        if self.on_result:
            self.on_result(self.result)
        return self.result
