# protocol_app/services/directory_service.py
from typing import List, Optional, Set
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload
from ..database.models.location import Location
from ..database.models.user import User, UserRole
from ..exceptions import DirectoryUnavailable
import logging

logger = logging.getLogger(__name__)


def location_matches(location: Location, destination: str) -> bool:
    """
    Case-insensitive substring match in either direction against the
    location name or city ("Bhopal" matches "Bhopal High Court" and back)
    """
    target = (destination or "").strip().lower()
    if not target:
        return False

    for value in (location.name, location.city):
        candidate = (value or "").strip().lower()
        if candidate and (candidate in target or target in candidate):
            return True
    return False


class DirectoryService:
    """
    Read-only officer/location lookups

    Every lookup is side-effect free, so repeating or abandoning one is safe.
    Storage failures surface as DirectoryUnavailable.
    """

    def __init__(self, db: Session):
        self.db = db

    def list_locations_for_destination(self, destination: str) -> List[Location]:
        try:
            locations = self.db.query(Location).order_by(Location.name, Location.id).all()
        except SQLAlchemyError as e:
            logger.error(f"Location lookup failed for {destination!r}: {e}")
            raise DirectoryUnavailable("Location directory is unavailable") from e

        return [location for location in locations if location_matches(location, destination)]

    def location_ids_for_destination(self, destination: str) -> Set[int]:
        return {location.id for location in self.list_locations_for_destination(destination)}

    def list_officers(self, search_term: Optional[str] = None) -> List[User]:
        """Active protocol officers, optionally narrowed by username/email"""
        query = (
            self.db.query(User)
            .options(joinedload(User.location))
            .filter(User.role == UserRole.PROTOCOL_OFFICER, User.is_active.is_(True))
        )

        term = (search_term or "").strip()
        if term:
            pattern = f"%{term}%"
            query = query.filter(or_(User.username.ilike(pattern), User.email.ilike(pattern)))

        try:
            return query.order_by(User.username, User.id).all()
        except SQLAlchemyError as e:
            logger.error(f"Officer lookup failed: {e}")
            raise DirectoryUnavailable("Officer directory is unavailable") from e

    def search_officers(
        self,
        search_term: Optional[str] = None,
        destination: Optional[str] = None,
    ) -> List[User]:
        """
        Officers matching the search term; with a destination, only those
        stationed at a matching location or with no station at all
        """
        officers = self.list_officers(search_term)
        if not destination or not destination.strip():
            return officers

        location_ids = self.location_ids_for_destination(destination)
        return [o for o in officers if o.location_id is None or o.location_id in location_ids]

    def get_officer(self, officer_id: int) -> Optional[User]:
        try:
            return (
                self.db.query(User)
                .filter(User.id == officer_id, User.role == UserRole.PROTOCOL_OFFICER)
                .first()
            )
        except SQLAlchemyError as e:
            logger.error(f"Officer lookup failed for {officer_id}: {e}")
            raise DirectoryUnavailable("Officer directory is unavailable") from e
