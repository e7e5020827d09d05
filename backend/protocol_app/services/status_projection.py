# protocol_app/services/status_projection.py
from datetime import datetime
from typing import Any, List, Optional
from ..database.models.protocol_assignment import CompletionStatus, REQUEST_SCOPE
from ..schemas.read import (
    AssignmentRead,
    GuestRead,
    GuesthouseRequestRead,
    JourneyLegRead,
    OtherRequestRead,
    RequestRead,
    RequestSummary,
    VehicleRequestRead,
)

NOT_AVAILABLE = "N/A"
NO_DESTINATION = "—"

STATUS_BADGE_CLASSES = {
    "pending": "border-yellow-500 text-yellow-700",
    "approved": "border-green-500 text-green-700",
    "rejected": "border-red-500 text-red-700",
    "completed": "border-blue-500 text-blue-700",
    "assigned": "border-purple-500 text-purple-700",
}

PRIORITY_BADGE_CLASSES = {
    "high": "bg-red-100 text-red-700 border-red-300",
    "medium": "bg-yellow-100 text-yellow-700 border-yellow-300",
    "low": "bg-green-100 text-green-700 border-green-300",
}

ACTIVE_ASSIGNMENT_STATUSES = {CompletionStatus.ASSIGNED.value, CompletionStatus.COMPLETED.value}


def _text(value: Any) -> Optional[str]:
    value = getattr(value, "value", value)
    return str(value) if value is not None else None


def _children(request: Any, name: str) -> List[Any]:
    return list(getattr(request, name, None) or [])


def _latest_assignment(assignments: List[Any]) -> Optional[Any]:
    if not assignments:
        return None
    return max(assignments, key=lambda a: getattr(a, "assigned_at", None) or datetime.min)


def summarize(request: Any) -> RequestSummary:
    """
    Display summary of a request with whatever children it has loaded
    Missing or empty children fall back to N/A, 0 and "—"
    """
    legs = sorted(_children(request, "journey_legs"), key=lambda leg: getattr(leg, "leg_order", 0) or 0)
    assignments = _children(request, "protocol_assignments")

    status = _text(getattr(request, "status", None)) or "pending"
    latest = _latest_assignment(assignments)
    priority = _text(getattr(latest, "priority", None)) if latest else None

    active = [a for a in assignments if _text(getattr(a, "completion_status", None)) in ACTIVE_ASSIGNMENT_STATUSES]
    if any(getattr(a, "scope", None) == REQUEST_SCOPE for a in active):
        assigned_legs = len(legs)
    else:
        leg_ids = {getattr(leg, "id", None) for leg in legs}
        assigned_legs = len({getattr(a, "journey_leg_id", None) for a in active} & (leg_ids - {None}))

    if legs:
        first_arrival = getattr(legs[0], "arrival_date", None) or NOT_AVAILABLE
        final_destination = getattr(legs[-1], "to_location", None) or NO_DESTINATION
        stops = [getattr(legs[0], "from_location", None)] + [getattr(leg, "to_location", None) for leg in legs]
        route = " → ".join(stop for stop in stops if stop) or NOT_AVAILABLE
    else:
        first_arrival = NOT_AVAILABLE
        final_destination = NO_DESTINATION
        route = NOT_AVAILABLE

    created_at = getattr(request, "created_at", None)

    return RequestSummary(
        request_id=getattr(request, "id", None),
        movement_number=getattr(request, "movement_number", None),
        status=status,
        status_label=status.capitalize(),
        status_badge_class=STATUS_BADGE_CLASSES.get(status, STATUS_BADGE_CLASSES["pending"]),
        priority=priority,
        priority_label=priority.capitalize() if priority else "Normal",
        priority_badge_class=PRIORITY_BADGE_CLASSES.get(priority or "", PRIORITY_BADGE_CLASSES["medium"]),
        first_arrival_date=first_arrival,
        guest_count=len(_children(request, "guests")),
        vehicle_count=len(_children(request, "vehicle_requests")),
        has_accommodation=bool(_children(request, "guesthouse_requests")),
        final_destination=final_destination,
        route=route,
        total_legs=len(legs),
        assigned_legs=assigned_legs,
        pending_legs=max(len(legs) - assigned_legs, 0),
        created_on=created_at.strftime("%Y-%m-%d") if created_at else NOT_AVAILABLE,
    )


def to_read_model(request: Any) -> RequestRead:
    """Full request with children and its summary, as sent to the frontend"""
    assignments = sorted(
        _children(request, "protocol_assignments"),
        key=lambda a: getattr(a, "assigned_at", None) or datetime.min,
        reverse=True,
    )
    return RequestRead(
        id=request.id,
        movementNumber=request.movement_number,
        requesteeId=request.requestee_id,
        purpose=request.purpose,
        reqStatus=_text(request.status),
        specialNotes=request.special_notes,
        createdAt=request.created_at,
        journeyDetails=[JourneyLegRead.model_validate(leg) for leg in _children(request, "journey_legs")],
        guestUsers=[GuestRead.model_validate(g) for g in _children(request, "guests")],
        vehicleRequests=[VehicleRequestRead.model_validate(v) for v in _children(request, "vehicle_requests")],
        guesthouseRequests=[GuesthouseRequestRead.model_validate(g) for g in _children(request, "guesthouse_requests")],
        otherRequests=[OtherRequestRead.model_validate(o) for o in _children(request, "other_requests")],
        protocolAssignments=[AssignmentRead.model_validate(a) for a in assignments],
        summary=summarize(request),
    )
