"""Fixed-delay retry for transient registry read failures."""

from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from .exceptions import RetryExhaustedError, TransientError
from .pacing import Clock, SystemClock

logger = structlog.get_logger("migration")

T = TypeVar("T")


class RetryPolicy:
    """Retry an async call on ``TransientError`` with a fixed inter-attempt delay.

    Any other exception propagates on the first occurrence. Once the attempt
    budget is spent the last transient error is wrapped in
    ``RetryExhaustedError``, which is fatal.
    """

    def __init__(self, attempts: int = 3, delay: float = 2.0, clock: Clock | None = None):
        if attempts < 1:
            raise ValueError(f"Retry attempts must be at least 1, got {attempts}")
        self.attempts = attempts
        self.delay = delay
        self.clock = clock or SystemClock()
        self.logger = logger.bind(component="retry_policy")

    async def call(
        self,
        operation: Callable[[], Awaitable[T]],
        description: str = "operation",
        on_retry: Callable[[int, TransientError], None] | None = None,
    ) -> T:
        """Run ``operation`` until it succeeds or the attempt budget runs out.

        Args:
            operation: Zero-argument coroutine factory, invoked once per attempt
            description: Label used in logs and the exhaustion error
            on_retry: Called with (attempt_number, error) before each retry delay

        Returns:
            The operation's result

        Raises:
            RetryExhaustedError: Every attempt failed transiently
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except TransientError as e:
                if attempt >= self.attempts:
                    self.logger.error(
                        "Retries exhausted",
                        operation=description,
                        attempts=attempt,
                        error=str(e),
                    )
                    raise RetryExhaustedError(description, attempt, e) from e

                self.logger.warning(
                    "Transient failure, retrying",
                    operation=description,
                    attempt=attempt,
                    max_attempts=self.attempts,
                    delay=self.delay,
                    error=str(e),
                )
                if on_retry is not None:
                    on_retry(attempt, e)
                if self.delay > 0:
                    await self.clock.sleep(self.delay)
