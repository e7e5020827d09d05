# protocol_app/schemas/request.py
"""
Submission schemas for visit requests.

Wire keys are camelCase (``journeyDetails``, ``legOrder``...); snake_case
names are accepted as well. ``legOrder``, ``age`` and ``guestCount`` stay
validated decimal strings here; the request service turns them into ints.
"""
import re
from typing import Annotated, Any, Dict, List, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from ..database.models.journey_leg import MODE_IDENTIFIER_FIELDS, TravelMode

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TIME_PATTERN = r"^\d{2}:\d{2}$"
DIGITS_PATTERN = r"^\d+$"
MAX_AGE = 150
MAX_LEG_ORDER = 99
MAX_GUEST_COUNT = 500
CONTACT_NUMBER_PATTERN = r"^[0-9]{10}$"
DRIVER_CONTACT_PATTERN = r"^[0-9+\-()\s]+$"


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _none_to_list(value: Any) -> Any:
    return [] if value is None else value


def _number_to_str(value: Any) -> Any:
    # Digit fields usually arrive as strings but some clients send numbers
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


def _required(message: str) -> BeforeValidator:
    def check(value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise PydanticCustomError("required", message)
        return value
    return BeforeValidator(check)


def _matches(pattern: str, message: str) -> AfterValidator:
    regex = re.compile(pattern)

    def check(value: Optional[str]) -> Optional[str]:
        if value is not None and not regex.match(value):
            raise PydanticCustomError("pattern_mismatch", message)
        return value
    return AfterValidator(check)


def _positive(message: str) -> AfterValidator:
    def check(value: str) -> str:
        if not re.match(DIGITS_PATTERN, value) or int(value) < 1:
            raise PydanticCustomError("not_positive", message)
        return value
    return AfterValidator(check)


def _at_most(maximum: int, message: str) -> AfterValidator:
    # runs after the digit check, so value is a digit string
    def check(value: str) -> str:
        if int(value) > maximum:
            raise PydanticCustomError("too_large", message)
        return value
    return AfterValidator(check)


def _min_length(length: int, message: str) -> AfterValidator:
    def check(value: Optional[str]) -> Optional[str]:
        if value is not None and len(value) < length:
            raise PydanticCustomError("too_short", message)
        return value
    return AfterValidator(check)


def _non_empty(message: str) -> AfterValidator:
    def check(value: list) -> list:
        if not value:
            raise PydanticCustomError("too_short", message)
        return value
    return AfterValidator(check)


OptionalText = Annotated[Optional[str], BeforeValidator(_blank_to_none)]
DateText = Annotated[str, _required("Date is required"), _matches(DATE_PATTERN, "Must be YYYY-MM-DD")]
OptionalDate = Annotated[Optional[str], BeforeValidator(_blank_to_none), _matches(DATE_PATTERN, "Must be YYYY-MM-DD")]
OptionalTime = Annotated[Optional[str], BeforeValidator(_blank_to_none), _matches(TIME_PATTERN, "Must be HH:mm")]


def missing_mode_identifier(mode: TravelMode, value: Any) -> Optional[PydanticCustomError]:
    """Error naming the identifier a leg of ``mode`` lacks, or None when ``value`` is set"""
    if isinstance(value, str):
        value = value.strip()
    if value:
        return None
    field = MODE_IDENTIFIER_FIELDS[mode]
    return PydanticCustomError(
        "mode_identifier",
        "{label} is required for {mode} journeys",
        {"field": to_camel(field), "label": field.replace("_", " ").capitalize(), "mode": mode.value},
    )


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


class GuestIn(WireModel):
    first_name: Annotated[str, _required("First name is required")]
    last_name: Annotated[str, _required("Last name is required")]
    age: Annotated[
        str,
        BeforeValidator(_number_to_str),
        _matches(DIGITS_PATTERN, "Age must be a positive number"),
        _at_most(MAX_AGE, f"Age must be at most {MAX_AGE}"),
    ]
    contact_number: Annotated[
        Optional[str],
        BeforeValidator(_number_to_str),
        BeforeValidator(_blank_to_none),
        _matches(CONTACT_NUMBER_PATTERN, "Contact number must be 10 digits"),
    ] = None


class JourneyLegIn(WireModel):
    leg_order: Annotated[
        str,
        BeforeValidator(_number_to_str),
        _positive("Leg order must be a positive number"),
        _at_most(MAX_LEG_ORDER, f"Leg order must be at most {MAX_LEG_ORDER}"),
    ]
    mode: TravelMode
    from_location: Annotated[str, _required("From location is required")]
    to_location: Annotated[str, _required("To location is required")]
    train_number: OptionalText = None
    flight_number: OptionalText = None
    vehicle_number: OptionalText = None
    arrival_date: DateText
    arrival_time: OptionalTime = None
    departure_date: OptionalDate = None
    departure_time: OptionalTime = None

    @model_validator(mode="after")
    def check_mode_identifier(self):
        required_field = MODE_IDENTIFIER_FIELDS[self.mode]
        error = missing_mode_identifier(self.mode, getattr(self, required_field))
        if error:
            raise error
        # a leg carries only the identifier its mode calls for
        for field in MODE_IDENTIFIER_FIELDS.values():
            if field != required_field:
                setattr(self, field, None)
        return self


class VehicleRequestIn(WireModel):
    pickup_location: Annotated[str, _required("Pickup location is required")]
    destination: Annotated[str, _required("Destination is required")]
    purpose: Annotated[str, _required("Purpose is required")]
    request_location: OptionalText = None
    vehicle_type: OptionalText = None
    vehicle_number: OptionalText = None
    driver_name: OptionalText = None
    driver_contact_no: Annotated[
        Optional[str],
        BeforeValidator(_blank_to_none),
        _matches(DRIVER_CONTACT_PATTERN, "Invalid contact number"),
        _min_length(7, "Contact no. seems short"),
    ] = None


class GuesthouseRequestIn(WireModel):
    check_in_date: DateText
    checkout_date: DateText
    purpose: Annotated[str, _required("Purpose is required")]
    guest_count: Annotated[
        str,
        BeforeValidator(_number_to_str),
        _positive("Guest count required & must be a positive number"),
        _at_most(MAX_GUEST_COUNT, f"Guest count must be at most {MAX_GUEST_COUNT}"),
    ]
    request_location: OptionalText = None
    guesthouse_location: OptionalText = None


class OtherRequestIn(WireModel):
    purpose: Annotated[str, _required("Purpose is required")]
    request_location: OptionalText = None


class VehicleDetailsIn(WireModel):
    """Staff completing a vehicle sub-request"""
    vehicle_type: Annotated[str, _required("Car model is required")]
    vehicle_number: Annotated[str, _required("Vehicle number is required")]
    driver_name: Annotated[str, _required("Driver name is required")]
    driver_contact_no: Annotated[
        str,
        _required("Driver contact number is required"),
        _matches(DRIVER_CONTACT_PATTERN, "Invalid contact number"),
        _min_length(7, "Contact no. seems short"),
    ]


class GuesthouseDetailsIn(WireModel):
    guesthouse_location: Annotated[str, _required("Accommodation address is required")]


ServiceList = BeforeValidator(_none_to_list)


class RequestSubmission(WireModel):
    purpose: OptionalText = None
    special_notes: OptionalText = None
    journey_details: Annotated[
        List[JourneyLegIn], _non_empty("At least one journey detail is required")
    ]
    guest_users: Annotated[List[GuestIn], _non_empty("At least one guest is required")]
    vehicle_requests: Annotated[List[VehicleRequestIn], ServiceList] = Field(default_factory=list)
    guesthouse_requests: Annotated[List[GuesthouseRequestIn], ServiceList] = Field(default_factory=list)
    other_requests: Annotated[List[OtherRequestIn], ServiceList] = Field(default_factory=list)

    def cross_field_errors(self) -> Dict[str, str]:
        """Rules spanning several entries; field paths use the wire names"""
        errors: Dict[str, str] = {}

        seen_orders = set()
        for index, leg in enumerate(self.journey_details):
            order = int(leg.leg_order)
            if order in seen_orders:
                errors[f"journeyDetails[{index}].legOrder"] = f"Leg order {order} is used more than once"
            seen_orders.add(order)

        destinations = {leg.to_location.lower() for leg in self.journey_details}
        for key, entries in (
            ("vehicleRequests", self.vehicle_requests),
            ("guesthouseRequests", self.guesthouse_requests),
            ("otherRequests", self.other_requests),
        ):
            for index, entry in enumerate(entries):
                if entry.request_location and entry.request_location.lower() not in destinations:
                    errors[f"{key}[{index}].requestLocation"] = (
                        "Please select a journey location for this request"
                    )
        return errors
