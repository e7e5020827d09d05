# protocol_app/database/models/request.py
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum, Text
from sqlalchemy.orm import relationship
from datetime import datetime
from ..base import Base
import enum

class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"

class Request(Base):
    __tablename__ = "requests"

    id = Column(Integer, primary_key=True, index=True)
    movement_number = Column(String(32), nullable=True, unique=True)
    requestee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    purpose = Column(Text, nullable=True)
    special_notes = Column(Text, nullable=True)
    status = Column(Enum(RequestStatus), nullable=False, default=RequestStatus.PENDING, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    reviewed_at = Column(DateTime, nullable=True)

    # Relationships
    requestee = relationship("User", back_populates="requests")
    journey_legs = relationship(
        "JourneyLeg",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="JourneyLeg.leg_order",
    )
    guests = relationship("Guest", back_populates="request", cascade="all, delete-orphan")
    vehicle_requests = relationship("VehicleRequest", back_populates="request", cascade="all, delete-orphan")
    guesthouse_requests = relationship("GuesthouseRequest", back_populates="request", cascade="all, delete-orphan")
    other_requests = relationship("OtherRequest", back_populates="request", cascade="all, delete-orphan")
    protocol_assignments = relationship(
        "ProtocolAssignment",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="ProtocolAssignment.assigned_at.desc()",
    )
