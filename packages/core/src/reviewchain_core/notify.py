"""Fire-and-forget status events from a run to its observer."""

from __future__ import annotations

import enum
import logging
from typing import Callable, Optional, Protocol, runtime_checkable

from reviewchain_core.errors import NotificationDeliveryError

logger = logging.getLogger(__name__)


class EventType(str, enum.Enum):
    REVIEW_STARTED = "REVIEW_STARTED"
    STEP_STARTED = "STEP_STARTED"
    STEP_COMPLETED = "STEP_COMPLETED"
    STEP_ERROR = "STEP_ERROR"
    REVIEW_COMPLETED = "REVIEW_COMPLETED"
    REVIEW_ERROR = "REVIEW_ERROR"


@runtime_checkable
class Observer(Protocol):
    """Anything that can receive run events.

    ``deliver`` returns True when the event was accepted. Returning False or
    raising both count as a failed delivery.
    """

    def deliver(self, event_type: EventType, payload: dict) -> bool: ...


class NotificationChannel:
    """Delivers events to one bound target with a single fallback attempt.

    The fallback is resolved at send time, so it always points at whichever
    context is active when the event is emitted.
    """

    def __init__(self, target: Optional[Observer] = None, fallback: Optional[Callable[[], Optional[Observer]]] = None):
        self.target = target
        self._fallback = fallback

    @property
    def bound(self) -> bool:
        return self.target is not None

    def send(self, event_type: EventType, payload: dict) -> bool:
        """Return True if the target or the fallback accepted the event."""
        try:
            self._deliver(self.target, event_type, payload)
            return True
        except NotificationDeliveryError as e:
            logger.debug("Delivery of %s failed, trying fallback: %s", event_type.value, e)

        try:
            fallback = self._fallback() if self._fallback else None
        except Exception as e:
            logger.warning(
                "Fallback lookup for %s failed: %s",
                event_type.value,
                e,
                extra={"event_type": event_type.value, "target": repr(self.target)},
            )
            fallback = None
        if fallback is None:
            logger.warning(
                "Dropped %s event: no fallback target",
                event_type.value,
                extra={"event_type": event_type.value, "target": repr(self.target)},
            )
            return False
        try:
            self._deliver(fallback, event_type, payload)
            return True
        except NotificationDeliveryError as e:
            logger.warning(
                "Dropped %s event after fallback attempt: %s",
                event_type.value,
                e,
                extra={"event_type": event_type.value, "target": repr(fallback)},
            )
            return False

    @staticmethod
    def _deliver(target: Optional[Observer], event_type: EventType, payload: dict) -> None:
        if target is None:
            raise NotificationDeliveryError("no target bound")
        try:
            accepted = target.deliver(event_type, payload)
        except Exception as e:
            raise NotificationDeliveryError(f"{type(e).__name__}: {e}") from e
        if not accepted:
            raise NotificationDeliveryError("target refused the event")


class ActiveTargets:
    """Tracks which observers are alive and which one is in the foreground.

    ``current`` is meant to be passed as a NotificationChannel fallback.
    """

    def __init__(self):
        self._targets: list[Observer] = []

    def activate(self, target: Observer) -> None:
        """Mark ``target`` as the foreground context."""
        if target in self._targets:
            self._targets.remove(target)
        self._targets.append(target)

    def deactivate(self, target: Observer) -> None:
        if target in self._targets:
            self._targets.remove(target)

    def current(self) -> Optional[Observer]:
        return self._targets[-1] if self._targets else None
