"""
LabQueue Server - Effect Model

Dataclass for side effects emitted by state transitions.
Transitions never notify or re-run the queue themselves; they return
effects and the orchestrating service executes them after commit.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


class EffectKind:
    """Kinds of effect an orchestrator knows how to execute"""
    NOTIFY = "notify"
    PROCESS_QUEUE = "process_queue"


class NoticeKind:
    """Kinds of student notification"""
    ASSIGNED = "assigned"
    NEXT_IN_LINE = "next_in_line"


@dataclass
class Effect:
    """Represents one side effect to run after a transition commits"""
    kind: str
    student_id: Optional[str] = None
    notice: Optional[str] = None  # NoticeKind value for notify effects
    payload: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def Notify(cls, student_id: str, notice: str, **payload: Any) -> "Effect":
        """Build a notify effect"""
        return cls(kind=EffectKind.NOTIFY, student_id=student_id, notice=notice, payload=payload)

    @classmethod
    def ProcessQueue(cls) -> "Effect":
        """Build an assignment-pass trigger"""
        return cls(kind=EffectKind.PROCESS_QUEUE)
