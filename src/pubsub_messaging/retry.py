"""RetryPolicy — bounded local retry with backoff before rejecting a delivery."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from inspect import isawaitable
from typing import TYPE_CHECKING, Any

from .clock import SystemClock
from .codec import Codec
from .exceptions import DeserializationError, ProcessingError
from .subscriber import Subscriber

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

    from .clock import Clock
    from .codec import Payload
    from .delivery import DeliveryHandle
    from .ports import SubscriptionHandle

logger = logging.getLogger("pubsub.retry")


@dataclass
class RetryState:
    """Failed-attempt counter for one delivery; dropped once it is resolved."""

    max_attempts: int
    attempt: int = 0


class RetryPolicy:
    """Retries a processing function locally before rejecting the delivery.

    The same :class:`DeliveryHandle` is reused across attempts; the broker does
    not see the retries. While retrying the delivery stays unacknowledged, so
    ``max_attempts`` times the delay must stay below the broker's ack
    deadline.

    Retries are scheduled on the :class:`Clock`, so the worker that received
    the delivery is released during the backoff.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        delay: float = 1.0,
        *,
        multiplier: float = 1.0,
        max_delay: float = 60.0,
        retry_on: tuple[type[BaseException], ...] = (ProcessingError,),
        clock: Clock | None = None,
        codec: Codec | None = None,
    ) -> None:
        """Configure retry behavior.

        Args:
            max_attempts: Maximum number of processing attempts (including first).
            delay: Delay in seconds before the first retry.
            multiplier: Backoff growth per attempt; 1.0 keeps the delay fixed.
            max_delay: Cap on delay in seconds.
            retry_on: Exception types that trigger a retry. Anything else
                rejects the delivery immediately.
            clock: Scheduler for retries; default ``SystemClock()``.
            codec: Decodes delivery bytes; default ``Codec()``.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if delay < 0 or max_delay < 0:
            raise ValueError("delay and max_delay must be >= 0")
        if delay > max_delay:
            raise ValueError("delay must be <= max_delay")
        if multiplier < 1:
            raise ValueError("multiplier must be >= 1")
        self.max_attempts = max_attempts
        self.delay = delay
        self.multiplier = multiplier
        self.max_delay = max_delay
        self.retry_on = retry_on
        self._clock = clock or SystemClock()
        self._codec = codec

    def should_retry(self, attempt: int) -> bool:
        """Return True if another attempt is allowed (attempt is 1-based)."""
        return 1 <= attempt < self.max_attempts

    def delay_for_attempt(self, attempt: int) -> float:
        """Return the delay in seconds after the given 1-based failed attempt."""
        if attempt < 1:
            return 0.0
        delay = min(self.delay * (self.multiplier ** (attempt - 1)), self.max_delay)
        return float(max(0.0, delay))

    def wrap(
        self,
        process: Callable[[Payload], Any],
        *,
        codec: Codec | None = None,
    ) -> Callable[[DeliveryHandle], Coroutine[Any, Any, None]]:
        """Turn *process* into a Subscriber handler with bounded retry.

        *process* receives the decoded payload and may be sync or async. It
        must not resolve the delivery itself: the policy calls ``accept()`` on
        success and ``reject()`` once attempts are exhausted.
        """
        payload_codec = codec or self._codec or Codec()

        async def handler(delivery: DeliveryHandle) -> None:
            try:
                payload = payload_codec.decode(delivery.raw_bytes)
            except DeserializationError as e:
                logger.error("Cannot decode message %s: %s; rejecting", delivery.id, e)
                await delivery.reject()
                return
            state = RetryState(max_attempts=self.max_attempts)
            await self._attempt(delivery, payload, process, state)

        return handler

    async def _attempt(
        self,
        delivery: DeliveryHandle,
        payload: Payload,
        process: Callable[[Payload], Any],
        state: RetryState,
    ) -> None:
        try:
            result = process(payload)
            if isawaitable(result):
                await result
        except self.retry_on as e:
            state.attempt += 1
            if self.should_retry(state.attempt):
                delay = self.delay_for_attempt(state.attempt)
                logger.warning(
                    "Attempt %d/%d failed for message %s: %s; retrying in %.2fs",
                    state.attempt,
                    state.max_attempts,
                    delivery.id,
                    e,
                    delay,
                )
                self._clock.schedule(
                    delay, partial(self._attempt, delivery, payload, process, state)
                )
                return
            logger.error(
                "Message %s failed after %d attempts; rejecting (NACK)",
                delivery.id,
                state.attempt,
            )
            await delivery.reject()
            return
        except Exception:
            logger.exception(
                "Non-retryable failure processing message %s; rejecting", delivery.id
            )
            await delivery.reject()
            return

        logger.info(
            "Message %s processed on attempt %d", delivery.id, state.attempt + 1
        )
        await delivery.accept()


class RetryingSubscriber(Subscriber):
    """Subscriber whose handler is a process function guarded by a RetryPolicy.

    Usage::

        async def process(payload: dict) -> None:
            if not await send_email(payload):
                raise ProcessingError("mail server unavailable")

        subscriber = RetryingSubscriber(
            client.subscription("notifications-sub"),
            process,
            retry_policy=RetryPolicy(max_attempts=3, delay=1.0),
        )
        await subscriber.start()
    """

    def __init__(
        self,
        subscription: SubscriptionHandle,
        process: Callable[[Payload], Any],
        *,
        retry_policy: RetryPolicy | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(subscription, **kwargs)
        self._process = process
        self._retry_policy = retry_policy or RetryPolicy()

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    async def start(self) -> None:
        await self.start_listening(
            self._retry_policy.wrap(self._process, codec=self.codec)
        )

    async def stop(self) -> None:
        await self.stop_listening()
