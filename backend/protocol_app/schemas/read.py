# protocol_app/schemas/read.py
"""
Response shapes. Request headers use camelCase keys; nested rows keep the
snake_case column names the frontend already reads.
"""
from datetime import datetime
from typing import Annotated, Any, List, Optional
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


# enum columns come back as enum members
EnumText = Annotated[str, BeforeValidator(_enum_value)]


class OrmModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class JourneyLegRead(OrmModel):
    id: int
    request_id: int
    leg_order: int
    mode: EnumText
    from_location: str
    to_location: str
    train_number: Optional[str] = None
    flight_number: Optional[str] = None
    vehicle_number: Optional[str] = None
    arrival_date: str
    arrival_time: Optional[str] = None
    departure_date: Optional[str] = None
    departure_time: Optional[str] = None


class GuestRead(OrmModel):
    id: int
    first_name: str
    last_name: str
    age: int
    contact_number: Optional[str] = None


class VehicleRequestRead(OrmModel):
    id: int
    request_id: int
    pickup_location: str
    destination: str
    purpose: str
    request_location: Optional[str] = None
    vehicle_type: Optional[str] = None
    vehicle_number: Optional[str] = None
    driver_name: Optional[str] = None
    driver_contact_no: Optional[str] = None
    service_status: EnumText


class GuesthouseRequestRead(OrmModel):
    id: int
    request_id: int
    check_in_date: str
    checkout_date: str
    purpose: str
    guest_count: int
    request_location: Optional[str] = None
    guesthouse_location: Optional[str] = None
    service_status: EnumText


class OtherRequestRead(OrmModel):
    id: int
    request_id: int
    purpose: str
    request_location: Optional[str] = None
    service_status: EnumText


class AssignmentRead(OrmModel):
    assignment_id: int = Field(validation_alias="id")
    request_id: int
    journey_leg_id: Optional[int] = None
    assigned_officer_id: int
    assigned_by: Optional[int] = None
    officer_location_id: Optional[int] = None
    priority: EnumText
    completion_status: EnumText
    officer_remarks: Optional[str] = None
    forward_to_hcp: bool = False
    assigned_at: datetime
    completed_at: Optional[datetime] = None


class AssignmentEventRead(OrmModel):
    id: int
    assignment_id: int
    journey_leg_id: Optional[int] = None
    action: EnumText
    officer_id: int
    previous_officer_id: Optional[int] = None
    priority: EnumText
    completion_status: EnumText
    actor_id: Optional[int] = None
    created_at: datetime


class UnavailableRead(BaseModel):
    journey_leg_id: Optional[int] = None
    location: str
    reason: str


class AssignmentOutcomeRead(BaseModel):
    succeeded: List[AssignmentRead]
    unavailable: List[UnavailableRead]
    message: str


class LocationRead(OrmModel):
    id: int
    name: str
    city: Optional[str] = None
    state: Optional[str] = None


class OfficerRead(OrmModel):
    id: int
    username: str
    email: str
    location_id: Optional[int] = None
    location: Optional[LocationRead] = None


class RequestSummary(BaseModel):
    """Display-ready digest of a request"""
    request_id: Optional[int] = None
    movement_number: Optional[str] = None
    status: str
    status_label: str
    status_badge_class: str
    priority: Optional[str] = None
    priority_label: str
    priority_badge_class: str
    first_arrival_date: str
    guest_count: int
    vehicle_count: int
    has_accommodation: bool
    final_destination: str
    route: str
    total_legs: int
    assigned_legs: int
    pending_legs: int
    created_on: str


class RequestRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    movementNumber: Optional[str] = None
    requesteeId: int
    purpose: Optional[str] = None
    reqStatus: str
    specialNotes: Optional[str] = None
    createdAt: datetime
    journeyDetails: List[JourneyLegRead] = []
    guestUsers: List[GuestRead] = []
    vehicleRequests: List[VehicleRequestRead] = []
    guesthouseRequests: List[GuesthouseRequestRead] = []
    otherRequests: List[OtherRequestRead] = []
    protocolAssignments: List[AssignmentRead] = []
    summary: Optional[RequestSummary] = None
