import pytest

from protocol_app.database.models import Location, User, UserRole
from protocol_app.services.directory_service import DirectoryService, location_matches


@pytest.mark.parametrize("destination, expected", [
    ("Bhopal", True),
    ("bhopal", True),
    ("Bhopal High Court, MP", True),
    ("High Court", True),
    ("Chennai", False),
    ("  ", False),
    (None, False),
])
def test_location_matches(destination, expected):
    location = Location(name="Bhopal High Court", city="Bhopal")
    assert location_matches(location, destination) is expected


def test_locations_for_destination(db, locations):
    found = DirectoryService(db).list_locations_for_destination("Chennai")
    assert [loc.id for loc in found] == [locations["chennai"].id]


def test_officers_for_destination(db, officers, roving_officer):
    found = DirectoryService(db).search_officers(destination="Bhopal")

    assert [o.username for o in found] == ["bhopal_officer", "bhopal_officer_2", "roving_officer"]


def test_officers_for_unknown_destination_are_only_unstationed(db, officers, roving_officer):
    found = DirectoryService(db).search_officers(destination="Shillong")
    assert [o.id for o in found] == [roving_officer.id]


def test_search_by_username_or_email(db, officers):
    directory = DirectoryService(db)

    assert [o.username for o in directory.search_officers("CHENNAI")] == ["chennai_officer"]
    assert [o.username for o in directory.search_officers("bhopal2@")] == ["bhopal_officer_2"]


def test_inactive_officers_and_other_roles_are_excluded(db, officers, requestee):
    officers["chennai"].is_active = False
    db.commit()

    found = DirectoryService(db).list_officers()

    assert {o.username for o in found} == {"bhopal_officer", "bhopal_officer_2"}


def test_get_officer_only_returns_protocol_officers(db, officers, requestee):
    directory = DirectoryService(db)

    assert directory.get_officer(officers["bhopal"].id).username == "bhopal_officer"
    assert directory.get_officer(requestee.id) is None
    assert directory.get_officer(9999) is None


def test_unstationed_admin_is_not_an_officer(db):
    db.add(User(username="admin", email="admin@example.com", role=UserRole.ADMIN))
    db.commit()

    assert DirectoryService(db).search_officers(destination="Bhopal") == []
