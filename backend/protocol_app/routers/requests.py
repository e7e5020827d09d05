# protocol_app/routers/requests.py
from typing import Any, Dict, Optional
from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session
from ..config import settings
from ..database.models.service_request import ServiceKind
from ..database.models.user import UserRole
from ..database.session import get_db
from ..exceptions import NotFoundError, ValidationError
from ..schemas.assignment import RequestStatusIn
from ..schemas.read import (
    AssignmentEventRead,
    GuesthouseRequestRead,
    OfficerRead,
    OtherRequestRead,
    VehicleRequestRead,
)
from ..services.assignment_service import AssignmentService
from ..services.request_service import RequestService
from ..services.status_projection import to_read_model
from .deps import STAFF_ROLES, Caller, get_caller, require_roles

router = APIRouter(tags=["requests"])

SERVICE_READ_MODELS = {
    ServiceKind.VEHICLE: VehicleRequestRead,
    ServiceKind.GUESTHOUSE: GuesthouseRequestRead,
    ServiceKind.OTHER: OtherRequestRead,
}


@router.post("/create-request", status_code=201)
def submit_request(
    payload: Dict[str, Any] = Body(...),
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    request = RequestService.create(db, payload, requestee_id=caller.id)
    return {"data": to_read_model(request), "message": "Request submitted"}


@router.get("/my-requests")
def list_my_requests(caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    requests = RequestService.get_by_requestee(db, caller.id)
    return {"data": [to_read_model(r) for r in requests], "meta": {"total": len(requests)}}


@router.get("/requests")
def list_requests(
    req_status: str = Query("pending", alias="reqStatus"),
    page: int = 1,
    limit: int = settings.DEFAULT_PAGE_SIZE,
    caller: Caller = Depends(require_roles(*STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    # Only the pending triage queue is served here
    if req_status != "pending":
        raise ValidationError({"reqStatus": "Only pending requests can be listed"})

    result = RequestService.get_pending(db, page, limit)
    return {
        "data": [to_read_model(r) for r in result.items],
        "meta": {
            "total": result.total,
            "totalPages": result.total_pages,
            "page": result.page,
            "limit": result.page_size,
        },
    }


@router.get("/requests/{request_id}")
def get_request(request_id: int, caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    request = RequestService.get(db, request_id)
    if caller.role == UserRole.REQUESTEE and request.requestee_id != caller.id:
        raise NotFoundError(f"Request {request_id} not found")
    return {"data": to_read_model(request)}


@router.patch("/requests/{request_id}/status")
def change_request_status(
    request_id: int,
    payload: RequestStatusIn,
    caller: Caller = Depends(require_roles(*STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    request = RequestService.change_status(db, request_id, payload.status, actor_id=caller.id)
    return {"data": to_read_model(request)}


@router.get("/requests/{request_id}/candidate-officers")
def candidate_officers(
    request_id: int,
    search: Optional[str] = None,
    caller: Caller = Depends(require_roles(*STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    """Officers per journey leg plus the single-mode list for the whole request"""
    request = RequestService.get(db, request_id)
    per_leg = AssignmentService.resolve_candidate_officers(db, request)
    single = AssignmentService.single_mode_candidates(db, request, search)
    return {
        "data": {
            "legs": {
                str(leg_id): [OfficerRead.model_validate(o) for o in officers]
                for leg_id, officers in per_leg.items()
            },
            "request": [OfficerRead.model_validate(o) for o in single],
        }
    }


@router.get("/requests/{request_id}/assignment-history")
def assignment_history(
    request_id: int,
    caller: Caller = Depends(require_roles(*STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    events = AssignmentService.assignment_history(db, request_id)
    return {"data": [AssignmentEventRead.model_validate(e) for e in events]}


@router.post("/requests/{request_id}/{kind}-requests", status_code=201)
def add_service_request(
    request_id: int,
    kind: ServiceKind,
    payload: Dict[str, Any] = Body(...),
    caller: Caller = Depends(require_roles(*STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    service = RequestService.add_service_request(db, request_id, kind, payload)
    return {"data": SERVICE_READ_MODELS[kind].model_validate(service)}


@router.patch("/{kind}-requests/{service_id}")
def update_service_details(
    kind: ServiceKind,
    service_id: int,
    payload: Dict[str, Any] = Body(...),
    caller: Caller = Depends(require_roles(*STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    service = RequestService.update_service_details(db, kind, service_id, payload)
    return {"data": SERVICE_READ_MODELS[kind].model_validate(service)}
