import pytest
from sqlalchemy.exc import OperationalError

from protocol_app.database.models import (
    JourneyLeg,
    Request,
    RequestStatus,
    ServiceKind,
    ServiceStatus,
    TravelMode,
)
from protocol_app.exceptions import NotFoundError, PersistenceError, ValidationError
from protocol_app.services.request_service import RequestService

from .factories import LEG_TO_BHOPAL, LEG_TO_CHENNAI, leg, submission


@pytest.fixture
def created(db, requestee):
    return RequestService.create(db, submission(), requestee.id)


def test_create_stores_the_whole_request(db, requestee, created):
    assert created.id is not None
    assert created.status == RequestStatus.PENDING
    assert created.requestee_id == requestee.id
    assert created.movement_number is None

    assert [l.to_location for l in created.journey_legs] == ["Bhopal", "Chennai"]
    assert created.journey_legs[0].mode == TravelMode.BYRAIL
    assert created.journey_legs[1].flight_number == "AI-437"
    assert created.guests[0].age == 54


def test_created_request_shows_up_for_requestee_and_triage(db, requestee, created):
    mine = RequestService.get_by_requestee(db, requestee.id)
    pending = RequestService.get_pending(db)

    assert [r.id for r in mine] == [created.id]
    assert [r.id for r in pending.items] == [created.id]


def test_legs_are_stored_in_leg_order(db, requestee):
    request = RequestService.create(
        db, submission(legs=[dict(LEG_TO_CHENNAI, legOrder="2"), dict(LEG_TO_BHOPAL, legOrder="1")]), requestee.id
    )
    assert [l.leg_order for l in request.journey_legs] == [1, 2]


def test_invalid_submission_stores_nothing(db, requestee):
    bad = leg("Bhopal", 1)
    bad.pop("trainNumber")

    with pytest.raises(ValidationError):
        RequestService.create(db, submission(legs=[LEG_TO_CHENNAI, bad]), requestee.id)

    assert db.query(Request).count() == 0
    assert db.query(JourneyLeg).count() == 0


@pytest.mark.parametrize("failure", [
    OperationalError("INSERT INTO requests", {}, Exception("database is locked")),
    OverflowError("Python int too large to convert to SQLite INTEGER"),
])
def test_failed_commit_rolls_back_and_stores_nothing(db, requestee, monkeypatch, failure):
    def broken_commit():
        raise failure

    monkeypatch.setattr(db, "commit", broken_commit)

    with pytest.raises(PersistenceError):
        RequestService.create(db, submission(), requestee.id)

    monkeypatch.undo()
    assert db.query(Request).count() == 0
    assert db.query(JourneyLeg).count() == 0


def test_submission_with_services(db, requestee):
    request = RequestService.create(db, submission(
        vehicleRequests=[{
            "pickupLocation": "Bhopal Junction",
            "destination": "High Court",
            "purpose": "Pickup",
            "requestLocation": "Bhopal",
        }],
        guesthouseRequests=[{
            "checkInDate": "2025-03-10",
            "checkoutDate": "2025-03-12",
            "purpose": "Stay",
            "guestCount": 2,
            "requestLocation": "Chennai",
            "guesthouseLocation": "Circuit House",
        }],
    ), requestee.id)

    assert request.vehicle_requests[0].service_status == ServiceStatus.PENDING
    assert request.guesthouse_requests[0].guest_count == 2
    assert request.guesthouse_requests[0].service_status == ServiceStatus.ARRANGED


def test_requestee_listing_is_newest_first(db, requestee):
    first = RequestService.create(db, submission(), requestee.id)
    second = RequestService.create(db, submission(), requestee.id)

    assert [r.id for r in RequestService.get_by_requestee(db, requestee.id)] == [second.id, first.id]


def test_get_unknown_request(db):
    with pytest.raises(NotFoundError):
        RequestService.get(db, 404)


def test_pagination(db, requestee):
    ids = [RequestService.create(db, submission(), requestee.id).id for _ in range(3)]

    first = RequestService.get_pending(db, page=1, page_size=2)
    again = RequestService.get_pending(db, page=1, page_size=2)
    second = RequestService.get_pending(db, page=2, page_size=2)
    beyond = RequestService.get_pending(db, page=3, page_size=2)

    assert [r.id for r in first.items] == ids[:2]
    assert [r.id for r in again.items] == ids[:2]
    assert [r.id for r in second.items] == ids[2:]
    assert first.total == 3
    assert first.total_pages == 2
    assert beyond.items == []
    assert beyond.total == 3


def test_empty_triage_queue_has_one_page(db):
    result = RequestService.get_pending(db)

    assert result.items == []
    assert result.total == 0
    assert result.total_pages == 1


def test_decided_requests_leave_the_triage_queue(db, requestee, incharge, created):
    RequestService.change_status(db, created.id, "rejected", actor_id=incharge.id)
    assert RequestService.get_pending(db).total == 0


@pytest.mark.parametrize("page, page_size, field", [
    (0, 10, "page"),
    (1, 0, "limit"),
    (1, 101, "limit"),
])
def test_bad_page_arguments(db, page, page_size, field):
    with pytest.raises(ValidationError) as exc_info:
        RequestService.get_pending(db, page=page, page_size=page_size)
    assert field in exc_info.value.errors


def test_add_service_request(db, created):
    service = RequestService.add_service_request(
        db, created.id, "other", {"purpose": "Flowers at arrival", "requestLocation": "Chennai"}
    )

    assert service.id is not None
    assert service.request_location == "Chennai"
    assert service.service_status == ServiceStatus.PENDING
    assert len(RequestService.get(db, created.id).other_requests) == 1


def test_add_service_request_to_unknown_request(db):
    with pytest.raises(NotFoundError):
        RequestService.add_service_request(db, 999, ServiceKind.OTHER, {"purpose": "Flowers"})


def test_add_service_request_outside_the_journey(db, created):
    with pytest.raises(ValidationError) as exc_info:
        RequestService.add_service_request(
            db, created.id, ServiceKind.OTHER, {"purpose": "Flowers", "requestLocation": "Mumbai"}
        )
    assert list(exc_info.value.errors) == ["requestLocation"]


def test_update_vehicle_details_marks_it_arranged(db, created):
    vehicle = RequestService.add_service_request(db, created.id, ServiceKind.VEHICLE, {
        "pickupLocation": "Airport",
        "destination": "Madras Bench",
        "purpose": "Drop",
    })

    updated = RequestService.update_service_details(db, "vehicle", vehicle.id, {
        "vehicleType": "Innova",
        "vehicleNumber": "TN01-4455",
        "driverName": "Kumar",
        "driverContactNo": "9876543210",
    })

    assert updated.service_status == ServiceStatus.ARRANGED
    assert updated.driver_name == "Kumar"


def test_update_vehicle_details_needs_every_field(db, created):
    vehicle = RequestService.add_service_request(db, created.id, ServiceKind.VEHICLE, {
        "pickupLocation": "Airport",
        "destination": "Madras Bench",
        "purpose": "Drop",
    })

    with pytest.raises(ValidationError) as exc_info:
        RequestService.update_service_details(db, ServiceKind.VEHICLE, vehicle.id, {"vehicleType": "Innova"})
    assert set(exc_info.value.errors) == {"vehicleNumber", "driverName", "driverContactNo"}


def test_update_unknown_guesthouse(db):
    with pytest.raises(NotFoundError):
        RequestService.update_service_details(
            db, ServiceKind.GUESTHOUSE, 77, {"guesthouseLocation": "Circuit House"}
        )


def test_approval_issues_a_movement_number(db, incharge, created):
    approved = RequestService.change_status(db, created.id, "approved", actor_id=incharge.id)

    assert approved.status == RequestStatus.APPROVED
    assert approved.reviewed_at is not None
    assert approved.movement_number == f"MOV-{created.created_at.year}-{created.id:03d}"


def test_completed_after_approval(db, incharge, created):
    RequestService.change_status(db, created.id, RequestStatus.APPROVED, actor_id=incharge.id)
    done = RequestService.change_status(db, created.id, RequestStatus.COMPLETED, actor_id=incharge.id)
    assert done.status == RequestStatus.COMPLETED


@pytest.mark.parametrize("first, second", [
    ("rejected", "approved"),
    ("approved", "pending"),
])
def test_disallowed_status_changes(db, incharge, created, first, second):
    RequestService.change_status(db, created.id, first, actor_id=incharge.id)

    with pytest.raises(ValidationError) as exc_info:
        RequestService.change_status(db, created.id, second, actor_id=incharge.id)
    assert "status" in exc_info.value.errors


def test_unknown_status(db, incharge, created):
    with pytest.raises(ValidationError):
        RequestService.change_status(db, created.id, "archived", actor_id=incharge.id)
