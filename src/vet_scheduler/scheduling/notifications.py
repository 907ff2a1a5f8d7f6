"""
Notifier contract used by the appointment lifecycle.

Dispatch (email, SMS, push) is handled by an external service. The engine
only calls ``notify`` after a transition has been committed; a failing
notifier is logged and never undoes the transition.
"""

import logging
import uuid
from typing import Any, Dict, Mapping, Protocol, runtime_checkable

from ..exceptions import log_exception_context

logger = logging.getLogger(__name__)

APPOINTMENT_REQUESTED = "appointment_requested"
APPOINTMENT_CONFIRMED = "appointment_confirmed"
APPOINTMENT_CANCELLED = "appointment_cancelled"
APPOINTMENT_RESCHEDULED = "appointment_rescheduled"


@runtime_checkable
class Notifier(Protocol):
    """Anything able to deliver a templated message to a pet's owner."""

    async def notify(
        self,
        subject_id: uuid.UUID,
        channel: str,
        template_id: str,
        payload: Mapping[str, Any],
    ) -> None:
        ...


class LoggingNotifier:
    """Default notifier that records notifications in the log."""

    async def notify(
        self,
        subject_id: uuid.UUID,
        channel: str,
        template_id: str,
        payload: Mapping[str, Any],
    ) -> None:
        logger.info(
            f"Notification '{template_id}' via {channel} for subject {subject_id}",
            extra={"notification": {"template_id": template_id, "payload": dict(payload)}},
        )


async def dispatch_notification(
    notifier: Notifier,
    subject_id: uuid.UUID,
    channel: str,
    template_id: str,
    payload: Dict[str, Any],
) -> bool:
    """
    Deliver a notification without letting failures escape.

    Returns:
        True if the notifier accepted the message, False if it raised
    """
    try:
        await notifier.notify(subject_id, channel, template_id, payload)
    except Exception as e:
        log_exception_context(
            e,
            {
                "template_id": template_id,
                "subject_id": str(subject_id),
                "channel": channel,
                "appointment_id": payload.get("appointment_id"),
            },
            logger=logger,
            level=logging.WARNING,
        )
        return False
    return True
