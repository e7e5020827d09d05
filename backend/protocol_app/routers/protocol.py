# protocol_app/routers/protocol.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from ..database.models.user import UserRole
from ..database.session import get_db
from ..schemas.assignment import AssignMultipleIn, AssignOfficerIn, AssignmentStatusIn
from ..schemas.read import AssignmentOutcomeRead, AssignmentRead, UnavailableRead
from ..services.assignment_service import AssignmentService
from .deps import STAFF_ROLES, Caller, require_roles

router = APIRouter(prefix="/protocol", tags=["protocol"])


@router.post("/assign", status_code=201)
def assign_officer(
    payload: AssignOfficerIn,
    caller: Caller = Depends(require_roles(*STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    """Assign one officer to the whole request"""
    assignment = AssignmentService.assign_single(
        db,
        payload.request_id,
        payload.officer_id,
        priority=payload.priority,
        remarks=payload.remarks,
        officer_location_id=payload.officer_location_id,
        forward_to_hcp=payload.forward_to_hcp,
        assigned_by=caller.id,
    )
    return {"data": AssignmentRead.model_validate(assignment), "message": "Officer assigned"}


@router.post("/assign-multiple")
def assign_multiple_officers(
    payload: AssignMultipleIn,
    caller: Caller = Depends(require_roles(*STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    outcome = AssignmentService.assign_multiple(
        db, payload.request_id, payload.assignments, assigned_by=caller.id
    )
    return {
        "data": AssignmentOutcomeRead(
            succeeded=[AssignmentRead.model_validate(a) for a in outcome.succeeded],
            unavailable=[
                UnavailableRead(journey_leg_id=u.journey_leg_id, location=u.location, reason=u.reason)
                for u in outcome.unavailable
            ],
            message=outcome.summary,
        )
    }


@router.patch("/assignments/{assignment_id}")
def update_assignment_status(
    assignment_id: int,
    payload: AssignmentStatusIn,
    caller: Caller = Depends(require_roles(UserRole.PROTOCOL_OFFICER, *STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    # officers may only move their own assignments
    officer_id = caller.id if caller.role == UserRole.PROTOCOL_OFFICER else None
    assignment = AssignmentService.update_assignment_status(
        db,
        assignment_id,
        payload.status,
        remarks=payload.remarks,
        actor_id=caller.id,
        officer_id=officer_id,
        forward_to_hcp=payload.forward_to_hcp,
    )
    return {"data": AssignmentRead.model_validate(assignment)}
