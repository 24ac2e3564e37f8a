"""
Bounded polling engine.

Repeatedly awaits a status check until a caller-supplied predicate says the
result is terminal, or the attempt budget runs out. The engine knows nothing
about what "terminal" means for a given operation.

Attempt 0 fires immediately; each later attempt is scheduled only after the
previous one returned, so there is never more than one check in flight.
Errors raised by the check end the run as they are: transport failures are
not retried here.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Generic, TypeVar

from errors import PollTimeoutError

log = logging.getLogger(__name__)

R = TypeVar("R")


class PollState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    TIMED_OUT = "timed_out"
    ERRORED = "errored"
    CANCELLED = "cancelled"


@dataclass
class PollSession:
    """Observable state of one polling run. Never persisted."""
    attempt: int = 0
    last_result: Any = None
    last_error: BaseException | None = None
    state: PollState = PollState.IDLE
    timer: asyncio.TimerHandle | None = None

    @property
    def active(self) -> bool:
        return self.state is PollState.POLLING


def _wake(future: asyncio.Future) -> None:
    if not future.done():
        future.set_result(None)


class Poller(Generic[R]):
    """One bounded polling run over ``check_fn``."""

    def __init__(
        self,
        check_fn: Callable[[], Awaitable[R]],
        *,
        is_terminal: Callable[[R], bool],
        interval: float = 5.0,
        max_attempts: int = 12,
        on_result: Callable[[PollSession, R], None] | None = None,
        label: str = "",
    ):
        if max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")
        self.check_fn = check_fn
        self.is_terminal = is_terminal
        self.interval = interval
        self.max_attempts = max_attempts
        self.on_result = on_result
        self.label = label or getattr(check_fn, "__name__", "poll")
        self.session = PollSession()
        self._wakeup: asyncio.Future | None = None

    @property
    def cancelled(self) -> bool:
        return self.session.state is PollState.CANCELLED

    async def results(self) -> AsyncIterator[R]:
        """Yield every result until a terminal one.

        Raises PollTimeoutError when the budget is spent and re-raises any
        error from the check. A cancelled run simply stops yielding.
        """
        s = self.session
        if s.state is PollState.CANCELLED:
            return
        if s.state is not PollState.IDLE:
            raise RuntimeError(f"poller {self.label} has already run")
        s.state = PollState.POLLING

        while True:
            try:
                result = await self.check_fn()
            except Exception as e:
                if self.cancelled:
                    return
                s.last_error = e
                s.state = PollState.ERRORED
                log.warning("[POLL] %s attempt %d failed: %s", self.label, s.attempt, e)
                raise

            if self.cancelled:
                log.debug("[POLL] %s discarding response after cancel", self.label)
                return

            s.last_result = result
            if self.on_result is not None:
                self.on_result(s, result)

            if self.is_terminal(result):
                s.state = PollState.SUCCEEDED
                log.info("[POLL] %s terminal after %d attempt(s)", self.label, s.attempt + 1)
                yield result
                return

            yield result
            if self.cancelled:
                return

            if s.attempt >= self.max_attempts:
                s.state = PollState.TIMED_OUT
                log.warning("[POLL] %s timed out after %d attempts", self.label, s.attempt + 1)
                raise PollTimeoutError(s.attempt + 1, result)

            s.attempt += 1
            await self._delay()
            if self.cancelled:
                return

    async def run(self) -> R | None:
        """Drain the run; the terminal result, or None if cancelled."""
        last = None
        async for result in self.results():
            last = result
        return last if self.session.state is PollState.SUCCEEDED else None

    async def _delay(self) -> None:
        loop = asyncio.get_running_loop()
        self._wakeup = loop.create_future()
        self.session.timer = loop.call_later(self.interval, _wake, self._wakeup)
        try:
            await self._wakeup
        finally:
            self.session.timer.cancel()
            self.session.timer = None
            self._wakeup = None

    def cancel(self) -> None:
        """Stop scheduling further attempts. An attempt already in flight is discarded."""
        s = self.session
        if s.state not in (PollState.IDLE, PollState.POLLING):
            return
        s.state = PollState.CANCELLED
        if s.timer is not None:
            s.timer.cancel()
        if self._wakeup is not None:
            _wake(self._wakeup)
        log.info("[POLL] %s cancelled at attempt %d", self.label, s.attempt)
