"""
Event execution with retry.

A light that is off (or unreachable) rejects state changes. The executor
powers the implicated light/group off and tries again, a bounded number of
times, before giving up on the event.
"""

import logging

from hued.lighting.adapter import DeviceOffError, LightingError, LightingService

from .models import ExecutionOutcome, LightEvent

logger = logging.getLogger(__name__)

MAX_RETRIES = 5


class EventExecutor:
    """Applies events through a LightingService."""

    def __init__(self, lighting: LightingService, max_retries: int = MAX_RETRIES) -> None:
        self._lighting = lighting
        self._max_retries = max_retries

    def _attempt(self, event: LightEvent) -> ExecutionOutcome:
        try:
            self._lighting.apply_state(event.target, event.actions)
        except DeviceOffError:
            return ExecutionOutcome.TRANSIENT_FAILURE
        except LightingError as e:
            logger.error(f"Error while executing event ({type(e).__name__}): {e}")
            return ExecutionOutcome.FATAL_FAILURE
        return ExecutionOutcome.SUCCESS

    def _compensate(self, event: LightEvent) -> None:
        try:
            self._lighting.power_off(event.target)
        except LightingError as e:
            logger.warning(f"Could not power off {event.target} before retrying: {e}")

    def run(self, event: LightEvent) -> ExecutionOutcome:
        """
        Execute one event.

        Returns:
            SUCCESS, FATAL_FAILURE (logged), or EXHAUSTED when the light
            stayed off through every retry
        """
        retries = 0
        outcome = self._attempt(event)
        while outcome is ExecutionOutcome.TRANSIENT_FAILURE:
            if retries >= self._max_retries:
                logger.warning("One of the lights is still off, ignoring event")
                return ExecutionOutcome.EXHAUSTED
            logger.warning("One of the lights was off, retrying...")
            self._compensate(event)
            retries += 1
            outcome = self._attempt(event)
        return outcome
