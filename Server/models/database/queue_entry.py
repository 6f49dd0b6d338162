"""
LabQueue Server - Queue Entry Database Model

A student's place in the FIFO waiting list.
"""

from sqlalchemy import Column, Integer, String, ForeignKey, Index, text
from sqlalchemy.orm import relationship

from models.database.base import Base, UTCDateTime


class QueueEntryState:
    """Lifecycle states of a queue entry"""
    WAITING = "waiting"
    ASSIGNED = "assigned"
    EXPIRED = "expired"
    COMPLETED = "completed"

    ACTIVE = (WAITING, ASSIGNED)


class QueueEntry(Base):
    """
    Queue entries table

    Active entries (waiting/assigned) carry contiguous queue positions 1..N.
    Expired and completed rows are kept as history.
    """
    __tablename__ = "queue_entries"

    entry_id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(String, nullable=False, index=True)
    student_name = Column(String, nullable=False)
    state = Column(String, nullable=False, default=QueueEntryState.WAITING)
    queue_position = Column(Integer, nullable=True)
    queued_at_utc = Column(UTCDateTime, nullable=False)
    assigned_resource_id = Column(Integer, ForeignKey("resources.resource_id", ondelete="SET NULL"), nullable=True)
    assigned_at_utc = Column(UTCDateTime, nullable=True)
    expires_at_utc = Column(UTCDateTime, nullable=True)
    expired_at_utc = Column(UTCDateTime, nullable=True)
    completed_at_utc = Column(UTCDateTime, nullable=True)
    # Set on the Waiting row created when an assignment expires
    previous_entry_id = Column(Integer, ForeignKey("queue_entries.entry_id", ondelete="SET NULL"), nullable=True)

    assigned_resource = relationship("Resource")

    __table_args__ = (
        # At most one waiting/assigned entry per student
        Index(
            'uq_queue_entries_active_student',
            'student_id',
            unique=True,
            sqlite_where=text("state IN ('waiting', 'assigned')"),
            postgresql_where=text("state IN ('waiting', 'assigned')"),
        ),
        Index('idx_queue_entries_state_position', 'state', 'queue_position'),
    )

    def IsActive(self) -> bool:
        """Check if entry is still in the line (waiting or assigned)"""
        return self.state in QueueEntryState.ACTIVE
