"""
LabQueue Server - Usage Session Database Model

A live, pausable period of a student using a resource.
"""

from sqlalchemy import Column, Integer, String, Float, ForeignKey, Index, text
from sqlalchemy.orm import relationship

from models.database.base import Base, UTCDateTime


class UsageSessionState:
    """Lifecycle states of a usage session"""
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    LIVE = (ACTIVE, PAUSED)


class UsageSession(Base):
    """
    Usage sessions table

    actual_usage_duration and total_pause_duration hold committed seconds,
    frozen at each state transition. Live values are derived on read.
    """
    __tablename__ = "usage_sessions"

    session_id = Column(Integer, primary_key=True, autoincrement=True)
    resource_id = Column(Integer, ForeignKey("resources.resource_id"), nullable=False)
    student_id = Column(String, nullable=False, index=True)
    student_name = Column(String, nullable=False)
    state = Column(String, nullable=False, default=UsageSessionState.ACTIVE)
    start_time_utc = Column(UTCDateTime, nullable=False)
    end_time_utc = Column(UTCDateTime, nullable=True)
    pause_start_time_utc = Column(UTCDateTime, nullable=True)  # Set only while paused
    total_pause_duration = Column(Float, nullable=False, default=0.0)
    actual_usage_duration = Column(Float, nullable=False, default=0.0)
    last_activity_time_utc = Column(UTCDateTime, nullable=False)
    queue_entry_id = Column(Integer, ForeignKey("queue_entries.entry_id", ondelete="SET NULL"), nullable=True)

    resource = relationship("Resource")

    __table_args__ = (
        Index(
            'uq_usage_sessions_live_student',
            'student_id',
            unique=True,
            sqlite_where=text("state IN ('active', 'paused')"),
            postgresql_where=text("state IN ('active', 'paused')"),
        ),
        Index(
            'uq_usage_sessions_live_resource',
            'resource_id',
            unique=True,
            sqlite_where=text("state IN ('active', 'paused')"),
            postgresql_where=text("state IN ('active', 'paused')"),
        ),
    )

    def IsLive(self) -> bool:
        """Check if session is active or paused"""
        return self.state in UsageSessionState.LIVE
