from protocol_app.database.models import User, UserRole

from .factories import caller_headers, leg, submission

API = "/api/v1"


def submit(client, requestee, payload=None):
    return client.post(f"{API}/create-request", json=payload or submission(), headers=caller_headers(requestee))


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


def test_submit_and_list(client, requestee, incharge):
    response = submit(client, requestee)

    assert response.status_code == 201
    created = response.json()["data"]
    assert created["reqStatus"] == "pending"
    assert len(created["journeyDetails"]) == 2
    assert created["summary"]["route"] == "Delhi → Bhopal → Chennai"

    mine = client.get(f"{API}/my-requests", headers=caller_headers(requestee)).json()
    assert [r["id"] for r in mine["data"]] == [created["id"]]

    queue = client.get(f"{API}/requests", params={"reqStatus": "pending"}, headers=caller_headers(incharge))
    assert queue.status_code == 200
    assert queue.json()["meta"] == {"total": 1, "totalPages": 1, "page": 1, "limit": 10}


def test_validation_errors_use_field_paths(client, requestee):
    bad = leg("Bhopal", 1, mode="BYAIR")
    bad.pop("trainNumber")

    response = submit(client, requestee, submission(legs=[bad]))

    assert response.status_code == 422
    body = response.json()
    assert body["message"] == "Validation failed"
    assert "journeyDetails[0].flightNumber" in body["errors"]


def test_missing_identity_is_rejected(client):
    response = client.post(f"{API}/create-request", json=submission())
    assert response.status_code == 401


def test_requestee_cannot_see_the_triage_queue(client, requestee):
    response = client.get(f"{API}/requests", headers=caller_headers(requestee))

    assert response.status_code == 403
    assert response.json()["message"] == "Not allowed for your role"


def test_unknown_request_is_404(client, incharge):
    response = client.get(f"{API}/requests/999", headers=caller_headers(incharge))

    assert response.status_code == 404
    assert response.json() == {"message": "Request 999 not found", "errors": {}}


def test_requestee_cannot_read_someone_elses_request(client, db, requestee):
    other = User(username="other", email="other@example.com", role=UserRole.REQUESTEE)
    db.add(other)
    db.commit()
    request_id = submit(client, requestee).json()["data"]["id"]

    response = client.get(f"{API}/requests/{request_id}", headers=caller_headers(other))
    assert response.status_code == 404


def test_page_out_of_range_is_empty(client, requestee, incharge):
    submit(client, requestee)

    response = client.get(f"{API}/requests", params={"page": 5}, headers=caller_headers(incharge))

    assert response.status_code == 200
    assert response.json()["data"] == []


def test_bad_limit(client, incharge):
    response = client.get(f"{API}/requests", params={"limit": 0}, headers=caller_headers(incharge))

    assert response.status_code == 422
    assert "limit" in response.json()["errors"]


def test_assign_multiple_and_history(client, requestee, incharge, officers):
    created = submit(client, requestee).json()["data"]
    bhopal_leg, chennai_leg = [l["id"] for l in created["journeyDetails"]]

    candidates = client.get(
        f"{API}/requests/{created['id']}/candidate-officers", headers=caller_headers(incharge)
    ).json()["data"]
    assert [o["username"] for o in candidates["legs"][str(chennai_leg)]] == ["chennai_officer"]

    response = client.post(f"{API}/protocol/assign-multiple", headers=caller_headers(incharge), json={
        "requestId": created["id"],
        "assignments": [
            {"journeyLegId": bhopal_leg, "officerId": officers["bhopal"].id},
            {"journeyLegId": chennai_leg, "officerId": officers["bhopal"].id},
        ],
    })

    assert response.status_code == 200
    data = response.json()["data"]
    assert [a["journey_leg_id"] for a in data["succeeded"]] == [bhopal_leg]
    assert data["unavailable"] == [{
        "journey_leg_id": chennai_leg,
        "location": "Chennai",
        "reason": f"Officer {officers['bhopal'].id} does not cover Chennai",
    }]
    assert data["message"].startswith("1 assigned, 1 skipped")

    history = client.get(
        f"{API}/requests/{created['id']}/assignment-history", headers=caller_headers(incharge)
    ).json()["data"]
    assert [e["action"] for e in history] == ["assigned"]

    detail = client.get(f"{API}/requests/{created['id']}", headers=caller_headers(incharge)).json()["data"]
    assert detail["summary"]["assigned_legs"] == 1
    assert detail["summary"]["pending_legs"] == 1


def test_officer_updates_own_assignment(client, requestee, incharge, officers):
    created = submit(client, requestee).json()["data"]
    assignment = client.post(f"{API}/protocol/assign", headers=caller_headers(incharge), json={
        "requestId": created["id"],
        "officerId": officers["chennai"].id,
        "priority": "high",
        "remarks": "Minister level visit",
    }).json()["data"]

    other = client.patch(
        f"{API}/protocol/assignments/{assignment['assignment_id']}",
        headers=caller_headers(officers["bhopal"]), json={"status": "completed"},
    )
    assert other.status_code == 404

    mine = client.patch(
        f"{API}/protocol/assignments/{assignment['assignment_id']}",
        headers=caller_headers(officers["chennai"]), json={"status": "completed"},
    )
    assert mine.status_code == 200
    assert mine.json()["data"]["completion_status"] == "completed"


def test_high_priority_without_remarks_over_http(client, requestee, incharge, officers):
    created = submit(client, requestee).json()["data"]

    response = client.post(f"{API}/protocol/assign", headers=caller_headers(incharge), json={
        "requestId": created["id"],
        "officerId": officers["chennai"].id,
        "priority": "HIGH",
    })

    assert response.status_code == 422
    assert list(response.json()["errors"]) == ["remarks"]


def test_status_change_and_services(client, requestee, incharge):
    created = submit(client, requestee).json()["data"]

    approved = client.patch(
        f"{API}/requests/{created['id']}/status", headers=caller_headers(incharge), json={"status": "approved"}
    )
    assert approved.status_code == 200
    assert approved.json()["data"]["movementNumber"].startswith("MOV-")

    vehicle = client.post(
        f"{API}/requests/{created['id']}/vehicle-requests", headers=caller_headers(incharge),
        json={"pickupLocation": "Airport", "destination": "Madras Bench", "purpose": "Drop", "requestLocation": "Chennai"},
    )
    assert vehicle.status_code == 201
    vehicle_id = vehicle.json()["data"]["id"]

    arranged = client.patch(f"{API}/vehicle-requests/{vehicle_id}", headers=caller_headers(incharge), json={
        "vehicleType": "Innova",
        "vehicleNumber": "TN01-4455",
        "driverName": "Kumar",
        "driverContactNo": "+91 98765 43210",
    })
    assert arranged.status_code == 200
    assert arranged.json()["data"]["service_status"] == "arranged"


def test_directory_endpoints(client, incharge, officers, roving_officer):
    users = client.get(f"{API}/users", params={"destination": "Bhopal"}, headers=caller_headers(incharge)).json()
    assert [u["username"] for u in users["data"]] == ["bhopal_officer", "bhopal_officer_2", "roving_officer"]

    locations = client.get(f"{API}/locations", params={"destination": "chennai"}, headers=caller_headers(incharge))
    assert [loc["name"] for loc in locations.json()["data"]] == ["Madras Bench"]


def test_oversized_age_is_a_validation_error(client, requestee):
    payload = submission(guests=[{"firstName": "Asha", "lastName": "Verma", "age": "9" * 30}])

    response = submit(client, requestee, payload)

    assert response.status_code == 422
    assert response.json()["errors"] == {"guestUsers[0].age": "Age must be at most 150"}


def test_forward_to_hcp_over_http(client, requestee, incharge, officers):
    created = submit(client, requestee).json()["data"]
    assignment = client.post(f"{API}/protocol/assign", headers=caller_headers(incharge), json={
        "requestId": created["id"],
        "officerId": officers["chennai"].id,
        "forwardToHcp": True,
    }).json()["data"]
    assert assignment["forward_to_hcp"] is True

    updated = client.patch(
        f"{API}/protocol/assignments/{assignment['assignment_id']}",
        headers=caller_headers(incharge), json={"status": "rejected", "forwardToHcp": False},
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["forward_to_hcp"] is False
