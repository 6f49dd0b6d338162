"""
LabQueue Server - Student Notifications

Best-effort delivery of "assigned" and "next in line" notices.
Push delivery itself lives outside the server; the default notifier only
logs. Delivery failures never affect the transition that produced them.
"""

import logging
from typing import Any, Dict, Iterable

from models.infrastructure import Effect, EffectKind, NoticeKind

logger = logging.getLogger(__name__)


class Notifier:
    """Interface for student notification delivery"""

    def Notify(self, student_id: str, kind: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError


class LoggingNotifier(Notifier):
    """Notifier that writes each notice to the server log"""

    def Notify(self, student_id: str, kind: str, payload: Dict[str, Any]) -> None:
        logger.info(f"Notice for student {student_id}: {FormatNotice(kind, payload)}")


def FormatNotice(kind: str, payload: Dict[str, Any]) -> str:
    """
    Build the human-readable body of a notice

    Args:
        kind: NoticeKind value
        payload: Notice payload

    Returns:
        str: Message text
    """
    if kind == NoticeKind.ASSIGNED:
        minutes = payload.get("check_in_window_minutes")
        return (
            f"{payload.get('resource_name')} is now available for you. "
            f"Please check in within {minutes} minutes."
        )
    if kind == NoticeKind.NEXT_IN_LINE:
        return "You are next in line for a workstation."
    return kind


def DispatchNotifications(notifier: Notifier, effects: Iterable[Effect]) -> int:
    """
    Hand notify effects to the notifier, swallowing delivery failures

    Args:
        notifier: Notifier to deliver through
        effects: Effects to dispatch (non-notify effects are ignored)

    Returns:
        int: Number of notices delivered without error
    """
    delivered = 0
    for effect in effects:
        if effect.kind != EffectKind.NOTIFY:
            continue
        try:
            notifier.Notify(effect.student_id, effect.notice, effect.payload)
            delivered += 1
        except Exception:
            logger.exception(f"Failed to deliver '{effect.notice}' notice to student {effect.student_id}")
    return delivered
