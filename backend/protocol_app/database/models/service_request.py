# protocol_app/database/models/service_request.py
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum, Text
from sqlalchemy.orm import relationship
from datetime import datetime
from ..base import Base
import enum

class ServiceKind(str, enum.Enum):
    VEHICLE = "vehicle"
    GUESTHOUSE = "guesthouse"
    OTHER = "other"

class ServiceStatus(str, enum.Enum):
    PENDING = "pending"
    ARRANGED = "arranged"

class VehicleRequest(Base):
    __tablename__ = "vehicle_requests"

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(Integer, ForeignKey("requests.id", ondelete="CASCADE"), nullable=False, index=True)
    pickup_location = Column(String, nullable=False)
    destination = Column(String, nullable=False)
    purpose = Column(Text, nullable=False)
    request_location = Column(String, nullable=True)  # journey leg destination this serves

    # Filled in by protocol staff
    vehicle_type = Column(String, nullable=True)
    vehicle_number = Column(String, nullable=True)
    driver_name = Column(String, nullable=True)
    driver_contact_no = Column(String, nullable=True)

    service_status = Column(Enum(ServiceStatus), nullable=False, default=ServiceStatus.PENDING)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    request = relationship("Request", back_populates="vehicle_requests")

class GuesthouseRequest(Base):
    __tablename__ = "guesthouse_requests"

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(Integer, ForeignKey("requests.id", ondelete="CASCADE"), nullable=False, index=True)
    check_in_date = Column(String(10), nullable=False)
    checkout_date = Column(String(10), nullable=False)
    purpose = Column(Text, nullable=False)
    guest_count = Column(Integer, nullable=False)
    request_location = Column(String, nullable=True)

    # Filled in by protocol staff
    guesthouse_location = Column(String, nullable=True)

    service_status = Column(Enum(ServiceStatus), nullable=False, default=ServiceStatus.PENDING)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    request = relationship("Request", back_populates="guesthouse_requests")

class OtherRequest(Base):
    __tablename__ = "other_requests"

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(Integer, ForeignKey("requests.id", ondelete="CASCADE"), nullable=False, index=True)
    purpose = Column(Text, nullable=False)
    request_location = Column(String, nullable=True)

    service_status = Column(Enum(ServiceStatus), nullable=False, default=ServiceStatus.PENDING)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    request = relationship("Request", back_populates="other_requests")

SERVICE_MODELS = {
    ServiceKind.VEHICLE: VehicleRequest,
    ServiceKind.GUESTHOUSE: GuesthouseRequest,
    ServiceKind.OTHER: OtherRequest,
}
