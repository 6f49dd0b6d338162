"""
Tests for usage session tracking in LabQueue Server

Tests the lazy elapsed-time formulas, the session lifecycle and the
auto-complete rule for long pauses.
"""

from datetime import timedelta

import pytest

from models.database import ResourceState, UsageSessionState
from models.infrastructure import EffectKind
from exceptions import ConflictError, NotFoundError, StateError, ValidationError
from resource_pool import RegisterResource, ClaimResource, GetResource
from usage_tracker import (
    PAUSE_AUTO_COMPLETE_SECONDS,
    CurrentUsageTime, CurrentPauseDuration, ShouldAutoComplete,
    StartSession, PauseSession, ResumeSession, CompleteSession, CancelSession,
    AutoCompleteSession, GetUsageSession, GetLiveSessionForStudent,
    GetStudentUsageHistory, GetResourceUsageHistory
)
from queue_ledger import Enqueue
from conftest import START_TIME


def At(seconds):
    return START_TIME + timedelta(seconds=seconds)


@pytest.fixture
def workstation(db_session):
    return RegisterResource(db_session, "PC-01", "Room 204", START_TIME)


@pytest.fixture
def session_on_workstation(db_session, workstation):
    return StartSession(db_session, workstation.resource_id, "s100", "Ada", START_TIME)


def test_start_session_occupies_resource(db_session, workstation, check_invariants):
    """Test a walk-up start creates an active session and occupies the workstation"""
    usage = StartSession(db_session, workstation.resource_id, "s100", "Ada", START_TIME)

    assert usage.state == UsageSessionState.ACTIVE
    assert usage.start_time_utc == START_TIME
    assert usage.total_pause_duration == 0.0
    assert usage.actual_usage_duration == 0.0
    assert usage.queue_entry_id is None
    assert GetResource(db_session, workstation.resource_id).state == ResourceState.OCCUPIED
    check_invariants(db_session)


def test_start_session_validates_before_touching_state(db_session, workstation):
    """Test blank student details are rejected and the workstation stays free"""
    with pytest.raises(ValidationError):
        StartSession(db_session, workstation.resource_id, "s100", "  ", START_TIME)
    with pytest.raises(ValidationError):
        StartSession(db_session, workstation.resource_id, "", "Ada", START_TIME)

    assert GetResource(db_session, workstation.resource_id).state == ResourceState.FREE


def test_start_session_on_busy_resource(db_session, workstation):
    """Test a held or occupied workstation cannot be started on"""
    ClaimResource(db_session, workstation.resource_id, ResourceState.FREE, ResourceState.HELD)

    with pytest.raises(ConflictError) as error:
        StartSession(db_session, workstation.resource_id, "s100", "Ada", START_TIME)

    assert error.value.kind == ConflictError.RESOURCE_UNAVAILABLE


def test_start_session_unknown_resource(db_session):
    """Test starting on a missing workstation raises NotFound"""
    with pytest.raises(NotFoundError):
        StartSession(db_session, 42, "s100", "Ada", START_TIME)


def test_one_live_session_per_student(db_session, session_on_workstation):
    """Test a student with a live session cannot start another"""
    other = RegisterResource(db_session, "PC-02", None, START_TIME)

    with pytest.raises(ConflictError) as error:
        StartSession(db_session, other.resource_id, "s100", "Ada", At(10))

    assert error.value.kind == ConflictError.ALREADY_ACTIVE_SESSION
    assert GetResource(db_session, other.resource_id).state == ResourceState.FREE


def test_usage_time_is_computed_lazily(db_session, session_on_workstation):
    """Test reading usage time does not change the stored session"""
    usage = session_on_workstation

    assert CurrentUsageTime(usage, At(90)) == 90
    assert CurrentPauseDuration(usage, At(90)) == 0
    assert usage.actual_usage_duration == 0.0


def test_pause_resume_round_trip(db_session, session_on_workstation):
    """Test pause then resume keeps usage time and adds the pause length"""
    session_id = session_on_workstation.session_id

    paused = PauseSession(db_session, session_id, At(300))
    assert paused.state == UsageSessionState.PAUSED
    assert paused.actual_usage_duration == 300
    # Frozen while paused
    assert CurrentUsageTime(paused, At(400)) == 300
    assert CurrentPauseDuration(paused, At(400)) == 100

    resumed = ResumeSession(db_session, session_id, At(420))
    assert resumed.state == UsageSessionState.ACTIVE
    assert resumed.pause_start_time_utc is None
    assert CurrentUsageTime(resumed, At(420)) == 300
    assert resumed.total_pause_duration == 120

    assert CurrentUsageTime(resumed, At(480)) == 360

    print("Pause/resume round trip passed")


def test_pause_and_resume_require_matching_state(db_session, session_on_workstation):
    """Test pausing a paused session or resuming an active one is a StateError"""
    session_id = session_on_workstation.session_id

    with pytest.raises(StateError):
        ResumeSession(db_session, session_id, At(10))

    PauseSession(db_session, session_id, At(20))
    with pytest.raises(StateError):
        PauseSession(db_session, session_id, At(30))


def test_complete_session_freezes_durations(db_session, workstation, session_on_workstation, check_invariants):
    """Test completing commits both durations and frees the workstation"""
    session_id = session_on_workstation.session_id
    PauseSession(db_session, session_id, At(200))
    ResumeSession(db_session, session_id, At(260))

    usage, effects = CompleteSession(db_session, session_id, At(400))

    assert usage.state == UsageSessionState.COMPLETED
    assert usage.end_time_utc == At(400)
    assert usage.actual_usage_duration == 340
    assert usage.total_pause_duration == 60
    assert [effect.kind for effect in effects] == [EffectKind.PROCESS_QUEUE]
    assert GetResource(db_session, workstation.resource_id).state == ResourceState.FREE
    assert GetLiveSessionForStudent(db_session, "s100") is None
    check_invariants(db_session)


def test_cancel_paused_session_counts_running_pause(db_session, session_on_workstation):
    """Test cancelling while paused commits the pause in progress"""
    session_id = session_on_workstation.session_id
    PauseSession(db_session, session_id, At(100))

    usage, _ = CancelSession(db_session, session_id, At(250))

    assert usage.state == UsageSessionState.CANCELLED
    assert usage.actual_usage_duration == 100
    assert usage.total_pause_duration == 150
    assert usage.pause_start_time_utc is None


def test_ended_session_is_visible_in_same_transaction(db_session, session_on_workstation, check_invariants):
    """Test a student can queue again right after completing, before any commit"""
    CompleteSession(db_session, session_on_workstation.session_id, At(90))

    entry, _ = Enqueue(db_session, "s100", "Ada", At(95))

    assert entry.student_id == "s100"
    assert GetLiveSessionForStudent(db_session, "s100") is None
    check_invariants(db_session)


def test_ended_sessions_reject_transitions(db_session, session_on_workstation):
    """Test a finished session cannot be paused, resumed or ended again"""
    session_id = session_on_workstation.session_id
    CompleteSession(db_session, session_id, At(60))

    for transition in (PauseSession, ResumeSession):
        with pytest.raises(StateError):
            transition(db_session, session_id, At(70))
    for transition in (CompleteSession, CancelSession):
        with pytest.raises(StateError):
            transition(db_session, session_id, At(70))


def test_unknown_session(db_session):
    """Test operations on a missing session raise NotFound"""
    with pytest.raises(NotFoundError):
        GetUsageSession(db_session, 7)
    with pytest.raises(NotFoundError):
        PauseSession(db_session, 7, START_TIME)


def test_auto_complete_threshold(db_session, session_on_workstation):
    """Test the auto-complete rule only fires once the pause reaches the threshold"""
    usage = PauseSession(db_session, session_on_workstation.session_id, At(60))

    assert not ShouldAutoComplete(usage, At(60 + PAUSE_AUTO_COMPLETE_SECONDS - 1))
    assert ShouldAutoComplete(usage, At(60 + PAUSE_AUTO_COMPLETE_SECONDS))
    assert AutoCompleteSession(db_session, usage, At(60 + PAUSE_AUTO_COMPLETE_SECONDS - 1)) == []
    assert usage.state == UsageSessionState.PAUSED


def test_auto_complete_after_long_pause(db_session, workstation, session_on_workstation):
    """Test a session paused for 601 seconds auto-completes with usage frozen at the pause"""
    usage = PauseSession(db_session, session_on_workstation.session_id, At(300))

    effects = AutoCompleteSession(db_session, usage, At(901))

    assert usage.state == UsageSessionState.COMPLETED
    assert usage.total_pause_duration == pytest.approx(601)
    assert usage.actual_usage_duration == 300
    assert usage.end_time_utc == At(901)
    assert [effect.kind for effect in effects] == [EffectKind.PROCESS_QUEUE]
    assert GetResource(db_session, workstation.resource_id).state == ResourceState.FREE


def test_only_continuous_pause_counts(db_session, session_on_workstation):
    """Test separate short pauses do not add up to an auto-complete"""
    session_id = session_on_workstation.session_id
    PauseSession(db_session, session_id, At(0))
    ResumeSession(db_session, session_id, At(400))
    usage = PauseSession(db_session, session_id, At(500))

    assert CurrentPauseDuration(usage, At(900)) == 800
    assert not ShouldAutoComplete(usage, At(900))


def test_usage_history_newest_first(db_session, workstation):
    """Test history lists a student's and a workstation's sessions newest first"""
    first = StartSession(db_session, workstation.resource_id, "s100", "Ada", At(0))
    CompleteSession(db_session, first.session_id, At(60))
    second = StartSession(db_session, workstation.resource_id, "s100", "Ada", At(120))

    assert [usage.session_id for usage in GetStudentUsageHistory(db_session, "s100")] == [
        second.session_id, first.session_id
    ]
    assert [usage.session_id for usage in GetResourceUsageHistory(db_session, workstation.resource_id, limit=1)] == [
        second.session_id
    ]
    assert GetStudentUsageHistory(db_session, "s999") == []
