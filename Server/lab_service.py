"""
LabQueue Server - Lab Service

Orchestrates the queue ledger, usage tracker and resource pool over an
injected DatabaseManager, Clock and Notifier.

Every public operation follows the same pipeline:
1. Lazy predicates (expired holds, over-long pauses) are applied to the
   entities the operation touches and committed on their own.
2. The operation runs in one transaction; any exception rolls it back.
3. After commit, returned effects run: notifications go to the notifier,
   and an assignment-pass trigger runs one queue pass in a new
   transaction. Neither can undo the committed transition; failures are
   logged.
4. If the head of the waiting line changed, the new head is told they
   are next in line.

The service holds no queue state of its own. Its write lock only
serialises writers within this process; resource claims are
compare-and-swap updates, so separate processes stay safe as well.
"""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from models.database import QueueEntry, QueueEntryState, Resource, UsageSession
from models.infrastructure import Effect, EffectKind
from managers.database_manager import DatabaseManager
from clock import Clock, SystemClock
from notifier import Notifier, LoggingNotifier, DispatchNotifications
import resource_pool
import usage_tracker
import queue_ledger
from expiry_scanner import ShouldExpireAssignment, FindOverdueAssignments, FindSessionsToAutoComplete

logger = logging.getLogger(__name__)

Touch = Callable[[Any, datetime], List[Effect]]


class LabService:
    """
    Entry point for every queue, session and resource operation
    """

    def __init__(self, db_manager: DatabaseManager, clock: Clock = None, notifier: Notifier = None):
        """
        Initialize the service

        Args:
            db_manager: Database manager providing sessions
            clock: Time source (SystemClock if omitted)
            notifier: Notification sink (LoggingNotifier if omitted)
        """
        self.db_manager = db_manager
        self.clock = clock or SystemClock()
        self.notifier = notifier or LoggingNotifier()
        self._write_lock = threading.RLock()

    def Now(self) -> datetime:
        """Current time according to the injected clock"""
        return self.clock.Now()

    # ==================== Pipeline ====================

    @contextmanager
    def _Transaction(self):
        db_session = self.db_manager.GetSession()
        try:
            yield db_session
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise
        finally:
            db_session.close()

    def _HeadOfLineId(self) -> Optional[int]:
        with self._Transaction() as db_session:
            head = queue_ledger.HeadOfLine(db_session)
            return head.entry_id if head else None

    def _ExecuteEffects(self, effects: List[Effect]) -> None:
        DispatchNotifications(self.notifier, effects)

        if not any(effect.kind == EffectKind.PROCESS_QUEUE for effect in effects):
            return

        try:
            with self._Transaction() as db_session:
                assigned = queue_ledger.ProcessQueue(db_session, self.Now())
        except Exception:
            logger.exception("Queue pass triggered by a transition failed; the transition stands")
            return

        DispatchNotifications(self.notifier, assigned)

    def _AnnounceHeadOfLine(self, previous_head_id: Optional[int]) -> None:
        try:
            with self._Transaction() as db_session:
                effects = queue_ledger.NextInLineEffects(db_session, previous_head_id)
        except Exception:
            logger.exception("Failed to check for a new head of line")
            return
        DispatchNotifications(self.notifier, effects)

    def _Perform(self, operation: Callable[[Any, datetime], Tuple[Any, List[Effect]]], touch: Touch = None):
        """
        Run one operation through the pipeline described in the module docstring

        Args:
            operation: Callable(db_session, now) -> (result, effects)
            touch: Optional callable(db_session, now) -> effects applying lazy predicates

        Returns:
            The operation's result
        """
        with self._write_lock:
            previous_head_id = self._HeadOfLineId()

            if touch is not None:
                with self._Transaction() as db_session:
                    touch_effects = touch(db_session, self.Now())
                self._ExecuteEffects(touch_effects)

            with self._Transaction() as db_session:
                result, effects = operation(db_session, self.Now())

            self._ExecuteEffects(effects)
            self._AnnounceHeadOfLine(previous_head_id)

        return result

    # ==================== Lazy Predicates ====================

    @staticmethod
    def _TouchEntry(db_session, entry: Optional[QueueEntry], now: datetime) -> List[Effect]:
        if entry is not None and ShouldExpireAssignment(entry, now):
            queue_ledger.ExpireAssignment(db_session, entry, now)
            return [Effect.ProcessQueue()]
        return []

    @staticmethod
    def _TouchSession(db_session, usage: Optional[UsageSession], now: datetime) -> List[Effect]:
        if usage is None:
            return []
        return usage_tracker.AutoCompleteSession(db_session, usage, now)

    def _TouchStudent(self, student_id: str) -> Touch:
        def touch(db_session, now):
            effects = self._TouchSession(db_session, usage_tracker.GetLiveSessionForStudent(db_session, student_id), now)
            effects += self._TouchEntry(db_session, queue_ledger.GetActiveEntryForStudent(db_session, student_id), now)
            return effects
        return touch

    def _TouchSessionId(self, session_id: int) -> Touch:
        def touch(db_session, now):
            usage = db_session.query(UsageSession).filter(UsageSession.session_id == session_id).first()
            return self._TouchSession(db_session, usage, now)
        return touch

    def _TouchEntryId(self, entry_id: int) -> Touch:
        def touch(db_session, now):
            entry = db_session.query(QueueEntry).filter(QueueEntry.entry_id == entry_id).first()
            return self._TouchEntry(db_session, entry, now)
        return touch

    def _TouchResource(self, resource_id: int) -> Touch:
        def touch(db_session, now):
            usage = usage_tracker.GetLiveSessionForResource(db_session, resource_id)
            return self._TouchSession(db_session, usage, now)
        return touch

    def _TouchAll(self, db_session, now: datetime) -> List[Effect]:
        _, effects = self._Sweep(db_session, now)
        return effects

    @staticmethod
    def _Sweep(db_session, now: datetime) -> Tuple[int, List[Effect]]:
        count = 0
        effects = []

        for usage in FindSessionsToAutoComplete(db_session, now):
            effects += usage_tracker.AutoCompleteSession(db_session, usage, now)
            count += 1

        for entry in FindOverdueAssignments(db_session, now):
            queue_ledger.ExpireAssignment(db_session, entry, now)
            count += 1

        if count:
            effects.append(Effect.ProcessQueue())
        return count, effects

    # ==================== Queue Operations ====================

    def Enqueue(self, student_id: str, student_name: str) -> QueueEntry:
        """
        Add a student to the queue; an immediate assignment is reflected in the result

        Raises:
            ValidationError, ConflictError (AlreadyQueued, HasActiveSession)
        """
        entry = self._Perform(
            lambda db_session, now: queue_ledger.Enqueue(db_session, student_id, student_name, now),
            touch=self._TouchStudent(student_id)
        )
        return self._LoadEntry(entry.entry_id)

    def Leave(self, student_id: str) -> None:
        """
        Remove a student from the queue

        Raises:
            NotFoundError: If the student has no active entry
        """
        self._Perform(
            lambda db_session, now: (None, queue_ledger.Leave(db_session, student_id, now)),
            touch=self._TouchStudent(student_id)
        )

    def ProcessQueue(self) -> List[Effect]:
        """
        Run one assignment pass; never fails for lack of work

        Returns:
            list: The notify effects of any new assignments (already dispatched)
        """
        def operation(db_session, now):
            effects = queue_ledger.ProcessQueue(db_session, now)
            return effects, effects
        return self._Perform(operation)

    def CheckIn(self, entry_id: int) -> UsageSession:
        """
        Check a student in on their held resource

        Deliberately skips the lazy expiry step: an overdue hold is reported
        as ExpiredError rather than silently re-queued.

        Raises:
            NotFoundError, StateError, ExpiredError, ConflictError
        """
        return self._Perform(
            lambda db_session, now: (queue_ledger.CheckIn(db_session, entry_id, now), [])
        )

    def ExpireEntry(self, entry_id: int) -> QueueEntry:
        """
        Manually expire an assigned entry

        Raises:
            NotFoundError, StateError
        """
        return self._Perform(lambda db_session, now: queue_ledger.ExpireEntry(db_session, entry_id, now))

    def SweepExpired(self) -> int:
        """
        Apply every due expiry and auto-complete, then run a queue pass

        Intended for an external periodic trigger.

        Returns:
            int: Number of entries and sessions transitioned
        """
        def operation(db_session, now):
            count, effects = self._Sweep(db_session, now)
            return count, effects + [Effect.ProcessQueue()]

        count = self._Perform(operation)
        if count:
            logger.info(f"Sweep transitioned {count} overdue entries/sessions")
        return count

    # ==================== Session Operations ====================

    def StartSession(self, resource_id: int, student_id: str, student_name: str) -> UsageSession:
        """
        Start a walk-up session on a free resource

        Raises:
            ValidationError, NotFoundError, ConflictError (ResourceUnavailable, AlreadyActiveSession, AlreadyQueued)
        """
        def touch(db_session, now):
            return self._TouchStudent(student_id)(db_session, now) + self._TouchResource(resource_id)(db_session, now)

        return self._Perform(
            lambda db_session, now: (
                usage_tracker.StartSession(db_session, resource_id, student_id, student_name, now), []
            ),
            touch=touch
        )

    def PauseSession(self, session_id: int) -> UsageSession:
        """Raises: NotFoundError, StateError"""
        return self._Perform(
            lambda db_session, now: (usage_tracker.PauseSession(db_session, session_id, now), []),
            touch=self._TouchSessionId(session_id)
        )

    def ResumeSession(self, session_id: int) -> UsageSession:
        """
        Resume a paused session

        A session paused past the auto-complete threshold is completed by
        the lazy step first, so resuming it raises StateError.
        """
        return self._Perform(
            lambda db_session, now: (usage_tracker.ResumeSession(db_session, session_id, now), []),
            touch=self._TouchSessionId(session_id)
        )

    def CompleteSession(self, session_id: int) -> UsageSession:
        """Raises: NotFoundError, StateError"""
        return self._Perform(
            lambda db_session, now: usage_tracker.CompleteSession(db_session, session_id, now),
            touch=self._TouchSessionId(session_id)
        )

    def CancelSession(self, session_id: int) -> UsageSession:
        """Raises: NotFoundError, StateError"""
        return self._Perform(
            lambda db_session, now: usage_tracker.CancelSession(db_session, session_id, now),
            touch=self._TouchSessionId(session_id)
        )

    # ==================== Resource Operations ====================

    def RegisterResource(self, display_name: str, location: Optional[str] = None) -> Resource:
        """Add a free workstation and offer it to the queue"""
        return self._Perform(
            lambda db_session, now: (
                resource_pool.RegisterResource(db_session, display_name, location, now),
                [Effect.ProcessQueue()]
            )
        )

    def ListResources(self) -> List[Dict[str, Any]]:
        """
        List every resource with its holder or occupant

        Returns:
            list: One dict per resource
        """
        def operation(db_session, now):
            holders = {
                entry.assigned_resource_id: entry
                for entry in queue_ledger.ListAssignedEntries(db_session)
            }
            occupants = {usage.resource_id: usage for usage in usage_tracker.ListLiveSessions(db_session)}

            resources = []
            for resource in resource_pool.ListResources(db_session):
                holder = holders.get(resource.resource_id)
                occupant = occupants.get(resource.resource_id)
                resources.append({
                    "resource_id": resource.resource_id,
                    "display_name": resource.display_name,
                    "location": resource.location,
                    "state": resource.state,
                    "held_for_student_id": holder.student_id if holder else None,
                    "occupied_by_student_id": occupant.student_id if occupant else None,
                    "session_id": occupant.session_id if occupant else None,
                })
            return resources, []

        return self._Perform(operation, touch=self._TouchAll)

    # ==================== Reads ====================

    def _LoadEntry(self, entry_id: int) -> QueueEntry:
        with self._Transaction() as db_session:
            return queue_ledger.GetQueueEntry(db_session, entry_id)

    @staticmethod
    def _EntryView(db_session, entry: QueueEntry, now: datetime) -> Dict[str, Any]:
        remaining = queue_ledger.RemainingHoldSeconds(entry, now)
        resource = entry.assigned_resource
        return {
            "entry_id": entry.entry_id,
            "student_id": entry.student_id,
            "student_name": entry.student_name,
            "state": entry.state,
            "queue_position": entry.queue_position,
            "relative_queue_position": queue_ledger.GetRelativePosition(db_session, entry),
            "queued_at_utc": entry.queued_at_utc,
            "assigned_resource_id": entry.assigned_resource_id,
            "assigned_resource_name": resource.display_name if resource else None,
            "assigned_resource_location": resource.location if resource else None,
            "assigned_at_utc": entry.assigned_at_utc,
            "expires_at_utc": entry.expires_at_utc,
            "remaining_seconds": remaining,
            "formatted_remaining_time": queue_ledger.FormatRemainingTime(remaining),
        }

    def GetQueueEntry(self, entry_id: int) -> QueueEntry:
        """
        Get a queue entry by ID (an overdue hold is expired first)

        Raises:
            NotFoundError
        """
        return self._Perform(
            lambda db_session, now: (queue_ledger.GetQueueEntry(db_session, entry_id), []),
            touch=self._TouchEntryId(entry_id)
        )

    def GetQueueStatus(self) -> Dict[str, Any]:
        """Active entries in queue order plus availability totals"""
        def operation(db_session, now):
            entries = [self._EntryView(db_session, entry, now) for entry in queue_ledger.ListActiveEntries(db_session)]
            free_count = len(resource_pool.ListFreeResources(db_session))
            return {
                "entries": entries,
                "total_in_queue": len(entries),
                "available_resources": free_count,
                "auto_queue_available": free_count == 0,
            }, []

        return self._Perform(operation, touch=self._TouchAll)

    def GetStudentQueueStatus(self, student_id: str) -> Optional[Dict[str, Any]]:
        """
        The student's active entry with absolute and relative positions

        Returns:
            dict or None: None if the student is not in the queue
        """
        def operation(db_session, now):
            entry = queue_ledger.GetActiveEntryForStudent(db_session, student_id)
            if entry is None:
                return None, []
            return self._EntryView(db_session, entry, now), []

        return self._Perform(operation, touch=self._TouchStudent(student_id))

    def GetQueueMonitor(self) -> Dict[str, Any]:
        """Assigned entries (by assignment time) and waiting entries (by position)"""
        def operation(db_session, now):
            assigned = [self._EntryView(db_session, entry, now) for entry in queue_ledger.ListAssignedEntries(db_session)]
            waiting = [
                self._EntryView(db_session, entry, now)
                for entry in queue_ledger.ListActiveEntries(db_session)
                if entry.state == QueueEntryState.WAITING
            ]
            return {
                "assigned": assigned,
                "waiting": waiting,
                "total_assigned": len(assigned),
                "total_waiting": len(waiting),
            }, []

        return self._Perform(operation, touch=self._TouchAll)

    def GetQueueStatistics(self) -> Dict[str, Any]:
        """Counts of queue entries, resources and live sessions by state"""
        def operation(db_session, now):
            queue_counts = queue_ledger.CountEntriesByState(db_session)
            queue_counts["total_active"] = queue_counts[QueueEntryState.WAITING] + queue_counts[QueueEntryState.ASSIGNED]
            resource_counts = resource_pool.CountResourcesByState(db_session)
            resource_counts["total"] = sum(resource_counts.values())
            return {
                "queue": queue_counts,
                "resources": resource_counts,
                "live_sessions": len(usage_tracker.ListLiveSessions(db_session)),
            }, []

        return self._Perform(operation, touch=self._TouchAll)

    def GetSession(self, session_id: int) -> UsageSession:
        """
        Get a usage session (auto-completing it first if due)

        Raises:
            NotFoundError
        """
        return self._Perform(
            lambda db_session, now: (usage_tracker.GetUsageSession(db_session, session_id), []),
            touch=self._TouchSessionId(session_id)
        )

    def GetStudentActiveSession(self, student_id: str) -> Optional[UsageSession]:
        """The student's active or paused session, or None"""
        return self._Perform(
            lambda db_session, now: (usage_tracker.GetLiveSessionForStudent(db_session, student_id), []),
            touch=self._TouchStudent(student_id)
        )

    def ListActiveSessions(self) -> List[UsageSession]:
        """All active and paused sessions"""
        return self._Perform(
            lambda db_session, now: (usage_tracker.ListLiveSessions(db_session), []),
            touch=self._TouchAll
        )

    def GetStudentUsageHistory(self, student_id: str, limit: int = 50) -> List[UsageSession]:
        """A student's sessions, newest first"""
        return self._Perform(
            lambda db_session, now: (usage_tracker.GetStudentUsageHistory(db_session, student_id, limit), []),
            touch=self._TouchStudent(student_id)
        )

    def GetResourceUsageHistory(self, resource_id: int, limit: int = 50) -> List[UsageSession]:
        """
        Sessions run on a resource, newest first

        Raises:
            NotFoundError: If the resource does not exist
        """
        def operation(db_session, now):
            resource_pool.GetResource(db_session, resource_id)
            return usage_tracker.GetResourceUsageHistory(db_session, resource_id, limit), []

        return self._Perform(operation, touch=self._TouchResource(resource_id))
