# protocol_app/database/models/location.py
from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship
from ..base import Base

class Location(Base):
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)

    # Relationships
    officers = relationship("User", back_populates="location")
