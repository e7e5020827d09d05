# protocol_app/services/request_service.py
from dataclasses import dataclass
from datetime import datetime
from math import ceil
from typing import Any, Dict, List, Union
from sqlalchemy.orm import Session, selectinload
from ..config import settings
from ..database.models.guest import Guest
from ..database.models.journey_leg import JourneyLeg
from ..database.models.request import Request, RequestStatus
from ..database.models.service_request import SERVICE_MODELS, ServiceKind, ServiceStatus
from ..exceptions import NotFoundError, PersistenceError, ValidationError
from .validation.request_validator import RequestValidator
import logging

logger = logging.getLogger(__name__)

# Workflow transitions driven by protocol staff
ALLOWED_STATUS_TRANSITIONS = {
    RequestStatus.PENDING: {RequestStatus.APPROVED, RequestStatus.REJECTED},
    RequestStatus.APPROVED: {RequestStatus.COMPLETED},
}


@dataclass
class Page:
    items: List[Request]
    total: int
    total_pages: int
    page: int
    page_size: int


def parse_int(value: Any, field: str) -> int:
    """Digit strings from the wire become ints at this boundary"""
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError({field: f"{field} must be a whole number"})


def _with_children(query):
    return query.options(
        selectinload(Request.journey_legs),
        selectinload(Request.guests),
        selectinload(Request.vehicle_requests),
        selectinload(Request.guesthouse_requests),
        selectinload(Request.other_requests),
        selectinload(Request.protocol_assignments),
    )


class RequestService:
    """Builds and reads visit requests together with their legs, guests and services"""

    @staticmethod
    def create(db: Session, payload: Any, requestee_id: int) -> Request:
        """
        Persist a new request for ``requestee_id`` in one transaction
        Legs are stored in legOrder order; nothing is stored if any part fails
        """
        submission = RequestValidator.validate_submission(payload)

        request = Request(
            requestee_id=requestee_id,
            purpose=submission.purpose,
            special_notes=submission.special_notes,
            status=RequestStatus.PENDING,
            created_at=datetime.utcnow(),
        )

        for leg in sorted(submission.journey_details, key=lambda l: int(l.leg_order)):
            request.journey_legs.append(JourneyLeg(
                leg_order=parse_int(leg.leg_order, "legOrder"),
                mode=leg.mode,
                from_location=leg.from_location,
                to_location=leg.to_location,
                train_number=leg.train_number,
                flight_number=leg.flight_number,
                vehicle_number=leg.vehicle_number,
                arrival_date=leg.arrival_date,
                arrival_time=leg.arrival_time,
                departure_date=leg.departure_date,
                departure_time=leg.departure_time,
            ))

        for guest in submission.guest_users:
            request.guests.append(Guest(
                first_name=guest.first_name,
                last_name=guest.last_name,
                age=parse_int(guest.age, "age"),
                contact_number=guest.contact_number,
            ))

        for vehicle in submission.vehicle_requests:
            request.vehicle_requests.append(
                RequestService._build_service(ServiceKind.VEHICLE, vehicle.model_dump())
            )
        for guesthouse in submission.guesthouse_requests:
            request.guesthouse_requests.append(
                RequestService._build_service(ServiceKind.GUESTHOUSE, guesthouse.model_dump())
            )
        for other in submission.other_requests:
            request.other_requests.append(
                RequestService._build_service(ServiceKind.OTHER, other.model_dump())
            )

        try:
            db.add(request)
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Error saving request for requestee {requestee_id}: {e}")
            raise PersistenceError("Could not save the request") from e

        logger.info(
            f"Request {request.id} created by requestee {requestee_id} "
            f"({len(submission.journey_details)} legs, {len(submission.guest_users)} guests)"
        )
        return RequestService.get(db, request.id)

    @staticmethod
    def get(db: Session, request_id: int) -> Request:
        request = _with_children(db.query(Request)).filter(Request.id == request_id).first()
        if not request:
            raise NotFoundError(f"Request {request_id} not found")
        return request

    @staticmethod
    def get_by_requestee(db: Session, requestee_id: int) -> List[Request]:
        """The requestee's own requests, newest first"""
        return (
            _with_children(db.query(Request))
            .filter(Request.requestee_id == requestee_id)
            .order_by(Request.created_at.desc(), Request.id.desc())
            .all()
        )

    @staticmethod
    def get_pending(db: Session, page: int = 1, page_size: int = None) -> Page:
        """
        Triage queue for the protocol in-charge, oldest first
        Pages are 1-indexed; a page past the end comes back empty
        """
        if page_size is None:
            page_size = settings.DEFAULT_PAGE_SIZE

        errors = {}
        if page < 1:
            errors["page"] = "Page must be 1 or greater"
        if page_size < 1 or page_size > settings.MAX_PAGE_SIZE:
            errors["limit"] = f"Page size must be between 1 and {settings.MAX_PAGE_SIZE}"
        if errors:
            raise ValidationError(errors)

        query = db.query(Request).filter(Request.status == RequestStatus.PENDING)
        total = query.count()
        total_pages = max(1, ceil(total / page_size))

        items: List[Request] = []
        if page <= total_pages:
            items = (
                _with_children(query)
                .order_by(Request.created_at.asc(), Request.id.asc())
                .offset((page - 1) * page_size)
                .limit(page_size)
                .all()
            )

        return Page(items=items, total=total, total_pages=total_pages, page=page, page_size=page_size)

    @staticmethod
    def add_service_request(
        db: Session,
        request_id: int,
        kind: Union[ServiceKind, str],
        fields: Any,
    ):
        """Attach one vehicle/guesthouse/other sub-request to an existing request"""
        service_kind = RequestValidator.service_kind(kind)
        request = RequestService.get(db, request_id)
        data = RequestValidator.validate_service(service_kind, fields)

        if data.request_location:
            destinations = {leg.to_location.lower() for leg in request.journey_legs}
            if data.request_location.lower() not in destinations:
                raise ValidationError({
                    "requestLocation": "Please select a journey location for this request"
                })

        service = RequestService._build_service(service_kind, data.model_dump())
        service.request_id = request.id

        try:
            db.add(service)
            db.commit()
            db.refresh(service)
        except Exception as e:
            db.rollback()
            logger.error(f"Error adding {service_kind.value} request to request {request_id}: {e}")
            raise PersistenceError(f"Could not save the {service_kind.value} request") from e

        logger.info(f"{service_kind.value} request {service.id} added to request {request_id}")
        return service

    @staticmethod
    def update_service_details(
        db: Session,
        kind: Union[ServiceKind, str],
        service_id: int,
        fields: Any,
    ):
        """Staff fill in vehicle/driver or guesthouse details; marks the service arranged"""
        service_kind = RequestValidator.service_kind(kind)
        details = RequestValidator.validate_service_details(service_kind, fields)

        model = SERVICE_MODELS[service_kind]
        service = db.query(model).filter(model.id == service_id).first()
        if not service:
            raise NotFoundError(f"{service_kind.value.capitalize()} request {service_id} not found")

        for field, value in details.model_dump().items():
            setattr(service, field, value)
        service.service_status = ServiceStatus.ARRANGED

        try:
            db.commit()
            db.refresh(service)
        except Exception as e:
            db.rollback()
            logger.error(f"Error updating {service_kind.value} request {service_id}: {e}")
            raise PersistenceError(f"Could not update the {service_kind.value} request") from e

        return service

    @staticmethod
    def change_status(
        db: Session,
        request_id: int,
        status: Union[RequestStatus, str],
        actor_id: int,
    ) -> Request:
        """
        Workflow action by protocol staff
        pending -> approved | rejected, approved -> completed
        Approval issues a movement number
        """
        try:
            target = RequestStatus(status)
        except ValueError:
            raise ValidationError({"status": f"Unknown status: {status}"})

        request = RequestService.get(db, request_id)
        current = RequestStatus(request.status)
        if current == target:
            return request
        if target not in ALLOWED_STATUS_TRANSITIONS.get(current, set()):
            raise ValidationError({
                "status": f"Cannot move a request from {current.value} to {target.value}"
            })

        request.status = target
        request.reviewed_at = datetime.utcnow()
        if target == RequestStatus.APPROVED and not request.movement_number:
            request.movement_number = RequestService.movement_number(request)

        try:
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Error changing status of request {request_id}: {e}")
            raise PersistenceError("Could not update the request status") from e

        logger.info(f"Request {request_id} moved {current.value} -> {target.value} by user {actor_id}")
        return RequestService.get(db, request_id)

    @staticmethod
    def movement_number(request: Request) -> str:
        year = (request.created_at or datetime.utcnow()).year
        return f"{settings.MOVEMENT_NUMBER_PREFIX}-{year}-{request.id:03d}"

    @staticmethod
    def _build_service(kind: ServiceKind, values: Dict[str, Any]):
        values = dict(values)
        if kind == ServiceKind.GUESTHOUSE:
            values["guest_count"] = parse_int(values["guest_count"], "guestCount")
            arranged = bool(values.get("guesthouse_location"))
        elif kind == ServiceKind.VEHICLE:
            arranged = bool(values.get("vehicle_number") and values.get("driver_name"))
        else:
            arranged = False

        values["service_status"] = ServiceStatus.ARRANGED if arranged else ServiceStatus.PENDING
        return SERVICE_MODELS[kind](**values)
