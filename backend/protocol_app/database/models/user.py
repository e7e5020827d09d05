# protocol_app/database/models/user.py
from sqlalchemy import Column, Integer, String, Enum, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from ..base import Base
import enum

class UserRole(str, enum.Enum):
    ADMIN = "admin"
    PROTOCOL_OFFICER = "protocol_officer"
    PROTOCOL_INCHARGE = "protocol_incharge"
    REQUESTEE = "requestee"

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.REQUESTEE)
    is_active = Column(Boolean, nullable=False, default=True)
    # NULL means the officer is not tied to a station and can cover any destination
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=True)

    # Relationships
    location = relationship("Location", back_populates="officers")
    requests = relationship("Request", back_populates="requestee")
