# protocol_app/services/assignment_service.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from ..database.models.protocol_assignment import (
    AssignmentAction,
    AssignmentEvent,
    CompletionStatus,
    ProtocolAssignment,
    assignment_scope,
)
from ..database.models.request import Request
from ..database.models.user import User
from ..exceptions import (
    AssignmentConflictError,
    DirectoryUnavailable,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from ..schemas.assignment import AssignmentEntry
from .directory_service import DirectoryService
from .request_service import RequestService
from .validation.request_validator import RequestValidator
import logging

logger = logging.getLogger(__name__)

# Officer progress on a current assignment
ALLOWED_ASSIGNMENT_TRANSITIONS = {
    CompletionStatus.PENDING: {CompletionStatus.ASSIGNED, CompletionStatus.REJECTED},
    CompletionStatus.ASSIGNED: {CompletionStatus.COMPLETED, CompletionStatus.REJECTED},
}


@dataclass
class UnavailableLeg:
    journey_leg_id: Optional[int]
    location: str
    reason: str


@dataclass
class AssignmentOutcome:
    """Result of a multi-leg assignment: some legs may succeed while others are skipped"""
    succeeded: List[ProtocolAssignment] = field(default_factory=list)
    unavailable: List[UnavailableLeg] = field(default_factory=list)

    @property
    def summary(self) -> str:
        message = f"{len(self.succeeded)} assigned, {len(self.unavailable)} skipped"
        if self.unavailable:
            reasons = "; ".join(f"{u.location}: {u.reason}" for u in self.unavailable)
            message = f"{message}: {reasons}"
        return message


def _sorted_legs(request: Request):
    return sorted(request.journey_legs or [], key=lambda leg: leg.leg_order)


class AssignmentService:
    """Maps journey legs (or whole requests) to protocol officers"""

    @staticmethod
    def resolve_candidate_officers(
        db: Session,
        request: Request,
        directory: Optional[DirectoryService] = None,
    ) -> Dict[int, List[User]]:
        """
        Candidate officers per journey leg id

        An officer qualifies for a leg when stationed at a location matching the
        leg's destination, or when not tied to any location. A directory failure
        leaves the affected legs with no candidates.
        """
        directory = directory or DirectoryService(db)
        legs = _sorted_legs(request)

        try:
            officers = directory.list_officers()
        except DirectoryUnavailable as e:
            logger.warning(f"No candidates for request {request.id}: {e.message}")
            return {leg.id: [] for leg in legs}

        candidates: Dict[int, List[User]] = {}
        for leg in legs:
            try:
                location_ids = directory.location_ids_for_destination(leg.to_location)
            except DirectoryUnavailable as e:
                logger.warning(f"No candidates for leg {leg.id} ({leg.to_location}): {e.message}")
                candidates[leg.id] = []
                continue

            candidates[leg.id] = [
                officer for officer in officers
                if officer.location_id is None or officer.location_id in location_ids
            ]
        return candidates

    @staticmethod
    def single_mode_candidates(
        db: Session,
        request: Request,
        search_term: Optional[str] = None,
        directory: Optional[DirectoryService] = None,
    ) -> List[User]:
        """Officers for a request-wide assignment, filtered by the final destination"""
        directory = directory or DirectoryService(db)
        legs = _sorted_legs(request)
        destination = legs[-1].to_location if legs else None

        try:
            return directory.search_officers(search_term, destination)
        except DirectoryUnavailable as e:
            logger.warning(f"No single-mode candidates for request {request.id}: {e.message}")
            return []

    @staticmethod
    def validate_entries(entries: Sequence[Any], multi: bool = True) -> List[AssignmentEntry]:
        """
        Check every entry before anything is written
        Raises one ValidationError covering all bad entries
        """
        if multi and not entries:
            raise ValidationError({"assignments": "At least one assignment is required"})

        errors: Dict[str, str] = {}
        parsed: List[AssignmentEntry] = []
        seen_legs = set()

        for index, raw in enumerate(entries):
            prefix = f"assignments[{index}]" if multi else None
            try:
                entry = RequestValidator.parse(AssignmentEntry, raw, prefix)
            except ValidationError as e:
                errors.update(e.errors)
                continue

            if multi:
                if entry.journey_leg_id is None:
                    errors[f"{prefix}.journeyLegId"] = "Journey leg is required"
                elif entry.journey_leg_id in seen_legs:
                    errors[f"{prefix}.journeyLegId"] = (
                        f"Journey leg {entry.journey_leg_id} is assigned more than once"
                    )
                seen_legs.add(entry.journey_leg_id)
            parsed.append(entry)

        if errors:
            raise ValidationError(errors)
        return parsed

    @staticmethod
    def assign_multiple(
        db: Session,
        request_id: int,
        entries: Sequence[Any],
        assigned_by: Optional[int] = None,
        directory: Optional[DirectoryService] = None,
    ) -> AssignmentOutcome:
        """
        Assign one officer per journey leg

        Entries are all validated first. Each remaining entry is then saved on
        its own: a leg without officer coverage, or a failed write, lands in
        ``unavailable`` and never undoes the legs already saved.
        """
        parsed = AssignmentService.validate_entries(entries, multi=True)
        request = RequestService.get(db, request_id)

        # plain values only; a rollback below expires the ORM objects
        destinations = {leg.id: leg.to_location for leg in request.journey_legs}
        unknown_legs = sorted(e.journey_leg_id for e in parsed if e.journey_leg_id not in destinations)
        if unknown_legs:
            raise NotFoundError(
                f"Journey leg(s) {', '.join(map(str, unknown_legs))} not found on request {request_id}"
            )

        directory = directory or DirectoryService(db)
        officers = AssignmentService._load_officers(directory, {e.officer_id for e in parsed})
        home_locations = {officer_id: officer.location_id for officer_id, officer in officers.items()}
        candidates = {
            leg_id: {officer.id for officer in leg_officers}
            for leg_id, leg_officers in
            AssignmentService.resolve_candidate_officers(db, request, directory).items()
        }

        outcome = AssignmentOutcome()
        for entry in parsed:
            leg_id = entry.journey_leg_id
            destination = destinations[leg_id]
            leg_candidates = candidates.get(leg_id, set())

            if not leg_candidates:
                reason = f"No protocol officer available for {destination}"
            elif entry.officer_id not in leg_candidates:
                reason = f"Officer {entry.officer_id} does not cover {destination}"
            else:
                reason = None

            if reason:
                logger.warning(f"Request {request_id} leg {leg_id} skipped: {reason}")
                outcome.unavailable.append(UnavailableLeg(leg_id, destination, reason))
                continue

            location_id = entry.officer_location_id or home_locations.get(entry.officer_id)
            try:
                assignment = AssignmentService._save(db, request_id, entry, assigned_by, location_id)
            except PersistenceError as e:
                outcome.unavailable.append(UnavailableLeg(leg_id, destination, e.message))
                continue
            outcome.succeeded.append(assignment)

        logger.info(f"Request {request_id}: {outcome.summary}")
        return outcome

    @staticmethod
    def assign_single(
        db: Session,
        request_id: int,
        officer_id: Optional[int],
        priority: Optional[str] = None,
        remarks: Optional[str] = None,
        officer_location_id: Optional[int] = None,
        forward_to_hcp: Optional[bool] = None,
        assigned_by: Optional[int] = None,
        directory: Optional[DirectoryService] = None,
    ) -> ProtocolAssignment:
        """Assign one officer to the whole request"""
        raw = {
            "officerId": officer_id,
            "priority": priority,
            "remarks": remarks,
            "officerLocationId": officer_location_id,
            "forwardToHcp": forward_to_hcp,
        }
        entry = AssignmentService.validate_entries(
            [{key: value for key, value in raw.items() if value is not None}], multi=False
        )[0]

        RequestService.get(db, request_id)
        directory = directory or DirectoryService(db)
        officer = AssignmentService._load_officers(directory, {entry.officer_id}).get(entry.officer_id)
        if officer is None:
            # _load_officers raises for unknown ids, so the directory was unreachable
            raise DirectoryUnavailable(f"Could not confirm officer {entry.officer_id}")

        location_id = entry.officer_location_id or officer.location_id
        return AssignmentService._save(db, request_id, entry, assigned_by, location_id)

    @staticmethod
    def update_assignment_status(
        db: Session,
        assignment_id: int,
        status: Any,
        remarks: Optional[str] = None,
        actor_id: Optional[int] = None,
        officer_id: Optional[int] = None,
        forward_to_hcp: Optional[bool] = None,
    ) -> ProtocolAssignment:
        """
        Officer progress on an assignment: assigned -> completed | rejected
        With ``officer_id`` only that officer's own assignment can be changed
        """
        try:
            target = CompletionStatus(status)
        except ValueError:
            raise ValidationError({"status": f"Unknown status: {status}"})

        assignment = db.query(ProtocolAssignment).filter(ProtocolAssignment.id == assignment_id).first()
        if not assignment or (officer_id is not None and assignment.assigned_officer_id != officer_id):
            raise NotFoundError(f"Assignment {assignment_id} not found")

        current = CompletionStatus(assignment.completion_status)
        if target not in ALLOWED_ASSIGNMENT_TRANSITIONS.get(current, set()):
            raise ValidationError({
                "status": f"Cannot move an assignment from {current.value} to {target.value}"
            })

        assignment.completion_status = target
        if target == CompletionStatus.COMPLETED:
            assignment.completed_at = datetime.utcnow()
        if remarks and remarks.strip():
            assignment.officer_remarks = remarks.strip()
        if forward_to_hcp is not None:
            assignment.forward_to_hcp = forward_to_hcp

        db.add(AssignmentService._event(assignment, AssignmentAction.STATUS_CHANGED, actor_id))
        try:
            db.commit()
            db.refresh(assignment)
        except Exception as e:
            db.rollback()
            logger.error(f"Error updating assignment {assignment_id}: {e}")
            raise PersistenceError("Could not update the assignment") from e

        logger.info(f"Assignment {assignment_id} moved {current.value} -> {target.value}")
        return assignment

    @staticmethod
    def assignment_history(db: Session, request_id: int) -> List[AssignmentEvent]:
        RequestService.get(db, request_id)
        return (
            db.query(AssignmentEvent)
            .filter(AssignmentEvent.request_id == request_id)
            .order_by(AssignmentEvent.id)
            .all()
        )

    @staticmethod
    def current_assignments(db: Session, request_id: int) -> List[ProtocolAssignment]:
        return (
            db.query(ProtocolAssignment)
            .filter(ProtocolAssignment.request_id == request_id)
            .order_by(ProtocolAssignment.id)
            .all()
        )

    @staticmethod
    def _load_officers(directory: DirectoryService, officer_ids: Iterable[int]) -> Dict[int, User]:
        """Known officers by id; NotFoundError for any id the directory confirms is unknown"""
        officers: Dict[int, User] = {}
        missing = []
        for officer_id in sorted(officer_ids):
            try:
                officer = directory.get_officer(officer_id)
            except DirectoryUnavailable as e:
                # coverage checks will report the affected legs
                logger.warning(f"Could not confirm officer {officer_id}: {e.message}")
                continue
            if officer is None:
                missing.append(officer_id)
            else:
                officers[officer_id] = officer

        if missing:
            raise NotFoundError(f"Protocol officer(s) {', '.join(map(str, missing))} not found")
        return officers

    @staticmethod
    def _save(
        db: Session,
        request_id: int,
        entry: AssignmentEntry,
        assigned_by: Optional[int],
        officer_location_id: Optional[int],
    ) -> ProtocolAssignment:
        """
        Create or supersede the one current assignment for (request, leg)

        The unique (request_id, scope) constraint lets only one insert win; the
        loser retries once as an update of the winner's row.
        """
        scope = assignment_scope(entry.journey_leg_id)

        for attempt in (1, 2):
            try:
                assignment = (
                    db.query(ProtocolAssignment)
                    .filter(ProtocolAssignment.request_id == request_id, ProtocolAssignment.scope == scope)
                    .with_for_update()
                    .first()
                )
                previous_officer_id = None
                if assignment is None:
                    assignment = ProtocolAssignment(
                        request_id=request_id,
                        journey_leg_id=entry.journey_leg_id,
                        scope=scope,
                    )
                    db.add(assignment)
                    action = AssignmentAction.ASSIGNED
                else:
                    previous_officer_id = assignment.assigned_officer_id
                    action = AssignmentAction.REASSIGNED

                assignment.assigned_officer_id = entry.officer_id
                assignment.assigned_by = assigned_by
                assignment.officer_location_id = officer_location_id
                assignment.priority = entry.priority
                assignment.officer_remarks = entry.remarks
                assignment.forward_to_hcp = entry.forward_to_hcp
                assignment.completion_status = CompletionStatus.ASSIGNED
                assignment.assigned_at = datetime.utcnow()
                assignment.completed_at = None
                db.flush()

                db.add(AssignmentService._event(assignment, action, assigned_by, previous_officer_id))
                db.commit()
                db.refresh(assignment)
            except IntegrityError as e:
                db.rollback()
                if not AssignmentService._slot_taken(db, request_id, scope):
                    # not a race on the slot, e.g. a foreign key violation
                    logger.error(f"Error saving assignment {scope} of request {request_id}: {e}")
                    raise PersistenceError("Could not save the assignment") from e
                if attempt == 1:
                    logger.warning(f"Slot {scope} of request {request_id} was taken concurrently, retrying")
                    continue
                raise AssignmentConflictError(
                    f"Assignment for {scope} of request {request_id} changed concurrently, please retry"
                ) from e
            except Exception as e:
                db.rollback()
                logger.error(f"Error saving assignment {scope} of request {request_id}: {e}")
                raise PersistenceError("Could not save the assignment") from e

            logger.info(
                f"Request {request_id} {scope}: officer {entry.officer_id} {action.value} "
                f"({entry.priority.value} priority)"
            )
            return assignment

    @staticmethod
    def _slot_taken(db: Session, request_id: int, scope: str) -> bool:
        """Whether another writer holds the (request, scope) slot"""
        try:
            return db.query(ProtocolAssignment.id).filter(
                ProtocolAssignment.request_id == request_id, ProtocolAssignment.scope == scope
            ).first() is not None
        except Exception as e:
            db.rollback()
            logger.error(f"Could not check slot {scope} of request {request_id}: {e}")
            return False

    @staticmethod
    def _event(
        assignment: ProtocolAssignment,
        action: AssignmentAction,
        actor_id: Optional[int],
        previous_officer_id: Optional[int] = None,
    ) -> AssignmentEvent:
        return AssignmentEvent(
            assignment_id=assignment.id,
            request_id=assignment.request_id,
            journey_leg_id=assignment.journey_leg_id,
            action=action,
            officer_id=assignment.assigned_officer_id,
            previous_officer_id=previous_officer_id,
            priority=assignment.priority,
            completion_status=assignment.completion_status,
            actor_id=actor_id,
            created_at=datetime.utcnow(),
        )
