# protocol_app/database/models/protocol_assignment.py
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum, Text, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from typing import Optional
from ..base import Base
import enum

class Priority(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

class CompletionStatus(str, enum.Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    COMPLETED = "completed"
    REJECTED = "rejected"

class AssignmentAction(str, enum.Enum):
    ASSIGNED = "assigned"
    REASSIGNED = "reassigned"
    STATUS_CHANGED = "status_changed"

REQUEST_SCOPE = "request"


def assignment_scope(journey_leg_id: Optional[int]) -> str:
    """Scope key for the one current assignment of a request or of one of its legs"""
    if journey_leg_id is None:
        return REQUEST_SCOPE
    return f"leg:{journey_leg_id}"


class ProtocolAssignment(Base):
    __tablename__ = "protocol_assignments"
    __table_args__ = (
        UniqueConstraint("request_id", "scope", name="uq_assignment_request_scope"),
    )

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(Integer, ForeignKey("requests.id", ondelete="CASCADE"), nullable=False, index=True)
    journey_leg_id = Column(Integer, ForeignKey("journey_legs.id"), nullable=True)
    scope = Column(String(32), nullable=False, default=REQUEST_SCOPE)
    assigned_officer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    assigned_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    officer_location_id = Column(Integer, ForeignKey("locations.id"), nullable=True)
    priority = Column(Enum(Priority), nullable=False, default=Priority.MEDIUM)
    completion_status = Column(Enum(CompletionStatus), nullable=False, default=CompletionStatus.ASSIGNED)
    officer_remarks = Column(Text, nullable=True)
    forward_to_hcp = Column(Boolean, nullable=False, default=False)
    assigned_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)

    # Relationships
    request = relationship("Request", back_populates="protocol_assignments")
    journey_leg = relationship("JourneyLeg", back_populates="assignments")
    officer = relationship("User", foreign_keys=[assigned_officer_id])
    events = relationship("AssignmentEvent", back_populates="assignment", order_by="AssignmentEvent.id")

class AssignmentEvent(Base):
    """Append-only history of every assignment write"""
    __tablename__ = "assignment_events"

    id = Column(Integer, primary_key=True, index=True)
    assignment_id = Column(Integer, ForeignKey("protocol_assignments.id", ondelete="CASCADE"), nullable=False, index=True)
    request_id = Column(Integer, ForeignKey("requests.id", ondelete="CASCADE"), nullable=False, index=True)
    journey_leg_id = Column(Integer, nullable=True)
    action = Column(Enum(AssignmentAction), nullable=False)
    officer_id = Column(Integer, nullable=False)
    previous_officer_id = Column(Integer, nullable=True)
    priority = Column(Enum(Priority), nullable=False)
    completion_status = Column(Enum(CompletionStatus), nullable=False)
    actor_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    assignment = relationship("ProtocolAssignment", back_populates="events")
