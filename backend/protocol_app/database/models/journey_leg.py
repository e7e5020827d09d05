# protocol_app/database/models/journey_leg.py
from sqlalchemy import Column, Integer, String, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from ..base import Base
import enum

class TravelMode(str, enum.Enum):
    BYROAD = "BYROAD"
    BYRAIL = "BYRAIL"
    BYAIR = "BYAIR"

# Which identifier a leg must carry for its mode of travel
MODE_IDENTIFIER_FIELDS = {
    TravelMode.BYRAIL: "train_number",
    TravelMode.BYAIR: "flight_number",
    TravelMode.BYROAD: "vehicle_number",
}

class JourneyLeg(Base):
    __tablename__ = "journey_legs"
    __table_args__ = (
        UniqueConstraint("request_id", "leg_order", name="uq_journey_leg_order"),
    )

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(Integer, ForeignKey("requests.id", ondelete="CASCADE"), nullable=False, index=True)
    leg_order = Column(Integer, nullable=False)
    mode = Column(Enum(TravelMode), nullable=False)
    from_location = Column(String, nullable=False)
    to_location = Column(String, nullable=False)
    train_number = Column(String, nullable=True)
    flight_number = Column(String, nullable=True)
    vehicle_number = Column(String, nullable=True)
    arrival_date = Column(String(10), nullable=False)  # YYYY-MM-DD
    arrival_time = Column(String(5), nullable=True)  # HH:mm
    departure_date = Column(String(10), nullable=True)
    departure_time = Column(String(5), nullable=True)

    # Relationships
    request = relationship("Request", back_populates="journey_legs")
    assignments = relationship("ProtocolAssignment", back_populates="journey_leg")
