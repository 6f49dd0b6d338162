"""
Tests for the LabService orchestration in LabQueue Server

Tests the transaction pipeline end to end: lazy expiry on reads, effects
run after commit, best-effort notifications and the sweep.
"""

import pytest

import queue_ledger
from models.database import QueueEntryState, ResourceState, UsageSessionState
from models.infrastructure import NoticeKind
from exceptions import ConflictError, ExpiredError, NotFoundError, StateError
from lab_service import LabService
from conftest import FailingNotifier


def test_enqueue_with_free_workstation_assigns_immediately(service, notifier, add_workstations, check_invariants):
    """Test joining when a workstation is free returns an assigned entry"""
    add_workstations(1)

    entry = service.Enqueue("a", "Ada")

    assert entry.state == QueueEntryState.ASSIGNED
    assert entry.assigned_resource_id is not None
    assert notifier.StudentsNotified(NoticeKind.ASSIGNED) == ["a"]
    check_invariants()


def test_enqueue_without_workstation_waits(service, notifier, check_invariants):
    """Test joining a full lab leaves the student waiting at the head"""
    entry = service.Enqueue("a", "Ada")
    service.Enqueue("b", "Bo")

    assert entry.state == QueueEntryState.WAITING
    status = service.GetStudentQueueStatus("b")
    assert status["queue_position"] == 2
    assert status["relative_queue_position"] == 2
    assert notifier.StudentsNotified(NoticeKind.NEXT_IN_LINE) == ["a"]
    check_invariants()


def test_rejected_operation_changes_nothing(service, add_workstations, check_invariants):
    """Test a conflict rolls back and leaves the queue as it was"""
    service.Enqueue("a", "Ada")

    with pytest.raises(ConflictError):
        service.Enqueue("a", "Ada")

    assert service.GetQueueStatus()["total_in_queue"] == 1
    check_invariants()


def test_expired_hold_moves_on_to_next_student(service, clock, notifier, add_workstations, check_invariants):
    """Test A's unclaimed hold is swept, A re-queues at the tail and B is assigned"""
    add_workstations(1)
    service.Enqueue("a", "Ada")
    service.Enqueue("b", "Bo")
    assert service.GetStudentQueueStatus("b")["relative_queue_position"] == 1

    clock.Advance(301)
    assert service.SweepExpired() == 1

    status_a = service.GetStudentQueueStatus("a")
    status_b = service.GetStudentQueueStatus("b")
    assert status_a["state"] == QueueEntryState.WAITING
    assert status_a["relative_queue_position"] == 1
    assert status_b["state"] == QueueEntryState.ASSIGNED
    assert notifier.StudentsNotified(NoticeKind.ASSIGNED) == ["a", "b"]
    assert "a" in notifier.StudentsNotified(NoticeKind.NEXT_IN_LINE)
    check_invariants()

    print("Sweep hand-over passed")


def test_reads_apply_expiry_lazily(service, clock, add_workstations, check_invariants):
    """Test an overdue hold is expired by the next read, without a sweep"""
    add_workstations(1)
    service.Enqueue("a", "Ada")
    service.Enqueue("b", "Bo")

    clock.Advance(301)
    status = service.GetQueueStatus()

    states = {entry["student_id"]: entry["state"] for entry in status["entries"]}
    assert states == {"a": QueueEntryState.WAITING, "b": QueueEntryState.ASSIGNED}
    assert status["available_resources"] == 0
    assert status["auto_queue_available"] is True
    check_invariants()


def test_check_in_after_window_is_expired(service, clock, add_workstations, check_invariants):
    """Test a late check-in is reported as expired rather than silently re-queued"""
    add_workstations(1)
    entry = service.Enqueue("a", "Ada")

    clock.Advance(301)
    with pytest.raises(ExpiredError):
        service.CheckIn(entry.entry_id)

    # The next read applies the expiry
    assert service.GetQueueEntry(entry.entry_id).state == QueueEntryState.EXPIRED
    check_invariants()


def test_check_in_and_session_lifecycle(service, clock, add_workstations, check_invariants):
    """Test check-in, pause, resume and complete through the service"""
    resource_id, = add_workstations(1)
    entry = service.Enqueue("a", "Ada")

    clock.Advance(60)
    usage = service.CheckIn(entry.entry_id)
    assert usage.state == UsageSessionState.ACTIVE
    assert usage.queue_entry_id == entry.entry_id

    clock.Advance(300)
    service.PauseSession(usage.session_id)
    clock.Advance(120)
    service.ResumeSession(usage.session_id)
    clock.Advance(60)
    finished = service.CompleteSession(usage.session_id)

    assert finished.state == UsageSessionState.COMPLETED
    assert finished.actual_usage_duration == 360
    assert finished.total_pause_duration == 120
    assert service.GetStudentActiveSession("a") is None
    assert service.ListResources()[0]["state"] == ResourceState.FREE
    assert [item.session_id for item in service.GetResourceUsageHistory(resource_id)] == [usage.session_id]
    check_invariants()


def test_resume_after_long_pause_auto_completes(service, clock, notifier, add_workstations, check_invariants):
    """Test resuming a session paused for over ten minutes finds it completed"""
    resource_id, = add_workstations(1)
    usage = service.StartSession(resource_id, "walkup", "Walk Up")
    service.Enqueue("a", "Ada")

    clock.Advance(300)
    service.PauseSession(usage.session_id)
    clock.Advance(601)

    with pytest.raises(StateError):
        service.ResumeSession(usage.session_id)

    finished = service.GetSession(usage.session_id)
    assert finished.state == UsageSessionState.COMPLETED
    assert finished.actual_usage_duration == 300
    assert finished.total_pause_duration == pytest.approx(601)
    # The freed workstation went straight to the waiting student
    assert service.GetStudentQueueStatus("a")["state"] == QueueEntryState.ASSIGNED
    assert notifier.StudentsNotified(NoticeKind.ASSIGNED) == ["a"]
    check_invariants()


def test_sweep_counts_every_transition(service, clock, add_workstations, check_invariants):
    """Test the sweep reports expired holds and auto-completed sessions together"""
    first, second = add_workstations(2)
    usage = service.StartSession(first, "walkup", "Walk Up")
    service.PauseSession(usage.session_id)
    service.Enqueue("a", "Ada")

    assert service.SweepExpired() == 0

    clock.Advance(601)
    assert service.SweepExpired() == 2
    assert service.SweepExpired() == 0

    statistics = service.GetQueueStatistics()
    # 'a' was re-queued and immediately reassigned a workstation
    assert statistics["queue"][QueueEntryState.EXPIRED] == 1
    assert statistics["queue"][QueueEntryState.ASSIGNED] == 1
    assert statistics["live_sessions"] == 0
    check_invariants()


def test_notifier_failure_does_not_undo_transition(db_manager, clock, add_workstations, check_invariants):
    """Test a broken notifier is logged and the assignment still stands"""
    add_workstations(1)
    failing = FailingNotifier()
    service = LabService(db_manager, clock=clock, notifier=failing)

    entry = service.Enqueue("a", "Ada")

    assert entry.state == QueueEntryState.ASSIGNED
    assert failing.attempts >= 1
    check_invariants()


def test_failed_queue_pass_does_not_undo_transition(service, add_workstations, monkeypatch, check_invariants):
    """Test a downstream assignment pass failure leaves the committed join in place"""
    add_workstations(1)

    def broken_pass(db_session, now):
        raise RuntimeError("database went away")

    monkeypatch.setattr(queue_ledger, "ProcessQueue", broken_pass)
    entry = service.Enqueue("a", "Ada")

    assert entry.state == QueueEntryState.WAITING
    monkeypatch.undo()

    assert len(service.ProcessQueue()) == 1
    assert service.GetQueueEntry(entry.entry_id).state == QueueEntryState.ASSIGNED
    check_invariants()


def test_register_resource_serves_waiting_student(service, notifier):
    """Test a new workstation is offered to the queue at once"""
    service.Enqueue("a", "Ada")

    resource = service.RegisterResource("PC-09", "Annex")

    status = service.GetStudentQueueStatus("a")
    assert status["assigned_resource_id"] == resource.resource_id
    assert status["assigned_resource_name"] == "PC-09"
    assert status["formatted_remaining_time"] == "5m 0s"
    assert notifier.StudentsNotified(NoticeKind.ASSIGNED) == ["a"]


def test_list_resources_shows_holder_and_occupant(service, add_workstations):
    """Test the workstation listing names who holds or uses each one"""
    first, second, third = add_workstations(3)
    usage = service.StartSession(first, "walkup", "Walk Up")
    service.Enqueue("a", "Ada")

    listing = {item["resource_id"]: item for item in service.ListResources()}

    assert listing[first]["state"] == ResourceState.OCCUPIED
    assert listing[first]["occupied_by_student_id"] == "walkup"
    assert listing[first]["session_id"] == usage.session_id
    assert listing[second]["state"] == ResourceState.HELD
    assert listing[second]["held_for_student_id"] == "a"
    assert listing[third]["state"] == ResourceState.FREE
    assert listing[third]["held_for_student_id"] is None


def test_queue_monitor_orders_assigned_then_waiting(service, clock, add_workstations):
    """Test the monitor lists holds by assignment time and the line by position"""
    add_workstations(1)
    service.Enqueue("a", "Ada")
    clock.Advance(10)
    service.Enqueue("b", "Bo")
    service.Enqueue("c", "Cy")

    monitor = service.GetQueueMonitor()

    assert [entry["student_id"] for entry in monitor["assigned"]] == ["a"]
    assert [entry["student_id"] for entry in monitor["waiting"]] == ["b", "c"]
    assert [entry["relative_queue_position"] for entry in monitor["waiting"]] == [1, 2]
    assert monitor["assigned"][0]["formatted_remaining_time"] == "4m 50s"


def test_leave_and_missing_entities(service):
    """Test NotFound for leaving without an entry and for unknown IDs"""
    with pytest.raises(NotFoundError):
        service.Leave("ghost")
    with pytest.raises(NotFoundError):
        service.GetSession(404)
    with pytest.raises(NotFoundError):
        service.GetQueueEntry(404)
    with pytest.raises(NotFoundError):
        service.GetResourceUsageHistory(404)
    assert service.GetStudentQueueStatus("ghost") is None


def test_start_session_on_held_workstation(service, add_workstations):
    """Test a walk-up start cannot take a workstation held for someone in the queue"""
    resource_id, = add_workstations(1)
    service.Enqueue("a", "Ada")

    with pytest.raises(ConflictError) as error:
        service.StartSession(resource_id, "walkup", "Walk Up")

    assert error.value.kind == ConflictError.RESOURCE_UNAVAILABLE


def test_queued_student_cannot_walk_up_to_another_workstation(service, clock, add_workstations, check_invariants):
    """Test a student holding a workstation must check in there rather than take a free one"""
    first, second = add_workstations(2)
    entry = service.Enqueue("a", "Ada")
    assert entry.state == QueueEntryState.ASSIGNED

    with pytest.raises(ConflictError) as error:
        service.StartSession(second, "a", "Ada")
    assert error.value.kind == ConflictError.ALREADY_QUEUED

    listing = {item["resource_id"]: item for item in service.ListResources()}
    assert listing[second]["state"] == ResourceState.FREE
    assert service.GetStudentActiveSession("a") is None

    # The hold still works and ends normally
    clock.Advance(60)
    usage = service.CheckIn(entry.entry_id)
    assert usage.resource_id == first
    check_invariants()
