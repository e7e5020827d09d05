# protocol_app/routers/directory.py
from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from ..database.session import get_db
from ..schemas.read import LocationRead, OfficerRead
from ..services.directory_service import DirectoryService
from .deps import STAFF_ROLES, Caller, require_roles

router = APIRouter(tags=["directory"])


@router.get("/users")
def search_officers(
    search: Optional[str] = None,
    destination: Optional[str] = None,
    caller: Caller = Depends(require_roles(*STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    officers = DirectoryService(db).search_officers(search, destination)
    return {"data": [OfficerRead.model_validate(o) for o in officers], "meta": {"total": len(officers)}}


@router.get("/locations")
def list_locations(
    destination: str,
    caller: Caller = Depends(require_roles(*STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    locations = DirectoryService(db).list_locations_for_destination(destination)
    return {"data": [LocationRead.model_validate(loc) for loc in locations]}
