"""
Polling a condition until it holds.

A probe is a callable with no arguments, returning ``True`` once the
condition it watches is met. :py:class:`Waiting` calls the probe
repeatedly, pausing ``tick`` seconds between attempts, until the probe
succeeds or the deadline passes. The pause may grow after every failed
attempt when ``tick_increase`` is above 1.
"""

import datetime
import time
from typing import Callable

import provisor.log
from provisor.container import container
from provisor.utils import GeneralError

DEFAULT_WAIT_TIMEOUT: float = 180.0
DEFAULT_WAIT_TICK: float = 3.0
DEFAULT_WAIT_TICK_INCREASE: float = 1.0

Probe = Callable[[], bool]


class WaitingTimedOutError(GeneralError):
    """
    A probe did not succeed before its deadline
    """

    def __init__(self, probe_name: str, timeout: datetime.timedelta, attempts: int) -> None:
        super().__init__(
            f"Waiting for '{probe_name}' timed out after {timeout} ({attempts} attempts)."
        )

        self.probe_name = probe_name
        self.timeout = timeout
        self.attempts = attempts


class Deadline:
    """
    A point in time on the monotonic clock
    """

    def __init__(self, timeout: datetime.timedelta) -> None:
        self.timeout = timeout

        self._expires_at = time.monotonic() + timeout.total_seconds()

    def __repr__(self) -> str:
        return f'<Deadline: timeout={self.timeout} left={self.seconds_left:.2f}>'

    @classmethod
    def from_seconds(cls, seconds: float) -> 'Deadline':
        return cls(datetime.timedelta(seconds=seconds))

    @property
    def seconds_left(self) -> float:
        """
        Seconds remaining until the deadline, negative once it has passed
        """

        return self._expires_at - time.monotonic()

    @property
    def is_due(self) -> bool:
        return self.seconds_left <= 0


@container
class Waiting:
    """
    How long and how often to poll a probe
    """

    deadline: Deadline

    #: Seconds to pause between two attempts.
    tick: float = DEFAULT_WAIT_TICK

    #: Multiplier applied to :py:attr:`tick` after every failed attempt.
    tick_increase: float = DEFAULT_WAIT_TICK_INCREASE

    def __post_init__(self) -> None:
        if self.tick <= 0:
            raise GeneralError('Tick must be a positive number.')

        if self.tick_increase < 1:
            raise GeneralError('Tick increase must not be smaller than 1.')

    def wait(self, probe: Probe, logger: provisor.log.Logger) -> int:
        """
        Call ``probe`` until it returns ``True``.

        The probe is never called once the deadline has passed, and a
        success reported after the deadline counts as a timeout. Exceptions
        raised by the probe end the waiting.

        :returns: number of attempts it took.
        :raises WaitingTimedOutError: when the probe did not succeed in time.
        """

        probe_name = getattr(probe, '__name__', 'probe')
        attempts = 0

        logger.debug(
            'wait', f"for '{probe_name}', timeout {self.deadline.timeout}, tick {self.tick:.2f}s"
        )

        while not self.deadline.is_due:
            attempts += 1

            if probe() and not self.deadline.is_due:
                logger.debug('wait', f"'{probe_name}' succeeded, attempt {attempts}")

                return attempts

            logger.debug(
                'wait',
                f"'{probe_name}' pending, {self.deadline.seconds_left:.2f}s left",
                level=2,
            )

            time.sleep(max(0.0, min(self.tick, self.deadline.seconds_left)))

            self.tick *= self.tick_increase

        raise WaitingTimedOutError(probe_name, self.deadline.timeout, attempts)


def default_waiting(
    timeout: float = DEFAULT_WAIT_TIMEOUT,
    tick: float = DEFAULT_WAIT_TICK,
    tick_increase: float = DEFAULT_WAIT_TICK_INCREASE,
) -> Waiting:
    """
    Create a waiting whose deadline starts now
    """

    return Waiting(Deadline.from_seconds(timeout), tick=tick, tick_increase=tick_increase)
