# protocol_app/schemas/assignment.py
from typing import Annotated, Any, List, Optional
from pydantic import AfterValidator, BeforeValidator, Field, model_validator
from pydantic_core import PydanticCustomError
from ..database.models.protocol_assignment import CompletionStatus, Priority
from ..database.models.request import RequestStatus
from .request import OptionalText, WireModel


def _lowercase(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


def _officer_selected(value: int) -> int:
    if value < 1:
        raise PydanticCustomError("officer_required", "Please select an officer")
    return value


class AssignmentEntry(WireModel):
    """One officer assignment; ``journeyLegId`` is left out in single mode"""
    journey_leg_id: Optional[int] = None
    officer_id: Annotated[int, AfterValidator(_officer_selected)]
    priority: Annotated[Priority, BeforeValidator(_lowercase)] = Priority.MEDIUM
    remarks: OptionalText = None
    officer_location_id: Optional[int] = None
    forward_to_hcp: bool = False

    @model_validator(mode="after")
    def check_remarks(self):
        # remarks are stripped first, so whitespace-only remarks count as missing
        if self.priority == Priority.HIGH and not self.remarks:
            raise PydanticCustomError(
                "remarks_required",
                "Remarks are required for high priority assignments",
                {"field": "remarks"},
            )
        return self


class AssignOfficerIn(WireModel):
    request_id: int
    officer_id: Optional[int] = None
    priority: Optional[str] = None
    remarks: Optional[str] = None
    officer_location_id: Optional[int] = None
    forward_to_hcp: Optional[bool] = None


class AssignMultipleIn(WireModel):
    request_id: int
    # entries are validated by the assignment service so errors carry their index
    assignments: List[Any] = Field(default_factory=list)


class AssignmentStatusIn(WireModel):
    status: Annotated[CompletionStatus, BeforeValidator(_lowercase)]
    remarks: OptionalText = None
    forward_to_hcp: Optional[bool] = None


class RequestStatusIn(WireModel):
    status: Annotated[RequestStatus, BeforeValidator(_lowercase)]
