# protocol_app/services/validation/request_validator.py
from typing import Any, Dict, Optional, Sequence, Type, TypeVar, Union
from pydantic import BaseModel, ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel
from ...database.models.journey_leg import MODE_IDENTIFIER_FIELDS, TravelMode
from ...database.models.service_request import ServiceKind
from ...exceptions import ValidationError
from ...schemas.request import (
    GuesthouseDetailsIn,
    GuesthouseRequestIn,
    OtherRequestIn,
    RequestSubmission,
    VehicleDetailsIn,
    VehicleRequestIn,
    missing_mode_identifier,
)
import logging

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

SERVICE_SCHEMAS = {
    ServiceKind.VEHICLE: VehicleRequestIn,
    ServiceKind.GUESTHOUSE: GuesthouseRequestIn,
    ServiceKind.OTHER: OtherRequestIn,
}

SERVICE_DETAIL_SCHEMAS = {
    ServiceKind.VEHICLE: VehicleDetailsIn,
    ServiceKind.GUESTHOUSE: GuesthouseDetailsIn,
}


def field_path(location: Sequence[Union[str, int]], prefix: Optional[str] = None) -> str:
    """
    Render a pydantic error location as a field path
    ("journeyDetails", 0, "trainNumber") -> "journeyDetails[0].trainNumber"
    """
    path = prefix or ""
    for part in location:
        if isinstance(part, int):
            path += f"[{part}]"
        elif path:
            path += f".{part}"
        else:
            path = str(part)
    return path or "payload"


def errors_from_pydantic(exc: PydanticValidationError, prefix: Optional[str] = None) -> Dict[str, str]:
    """Field path -> first message for that path"""
    errors: Dict[str, str] = {}
    for error in exc.errors():
        location = list(error.get("loc", ()))
        context = error.get("ctx") or {}
        # model-level rules name the offending field through their context
        if isinstance(context.get("field"), str):
            location.append(context["field"])

        if error.get("type") == "missing":
            message = "This field is required"
        else:
            message = error.get("msg", "Invalid value")

        errors.setdefault(field_path(location, prefix), message)
    return errors


def leg_identifier_errors(payload: Any) -> Dict[str, str]:
    """Mode identifier errors read straight off the raw journey legs"""
    errors: Dict[str, str] = {}
    if not isinstance(payload, dict):
        return errors
    legs = payload.get("journeyDetails", payload.get("journey_details"))
    if not isinstance(legs, list):
        return errors

    for index, raw in enumerate(legs):
        if not isinstance(raw, dict):
            continue
        try:
            mode = TravelMode(raw.get("mode"))
        except ValueError:
            continue
        field = MODE_IDENTIFIER_FIELDS[mode]
        error = missing_mode_identifier(mode, raw.get(to_camel(field), raw.get(field)))
        if error:
            errors[f"journeyDetails[{index}].{error.context['field']}"] = error.message()
    return errors


class RequestValidator:
    """Schema checks for request submissions and service sub-requests"""

    @staticmethod
    def parse(model: Type[ModelT], payload: Any, prefix: Optional[str] = None) -> ModelT:
        """
        Validate ``payload`` against ``model``
        Raises ValidationError carrying every failing field path
        """
        if isinstance(payload, model):
            return payload
        try:
            return model.model_validate(payload)
        except PydanticValidationError as exc:
            errors = errors_from_pydantic(exc, prefix)
            logger.info(f"{model.__name__} rejected: {sorted(errors)}")
            raise ValidationError(errors) from exc

    @staticmethod
    def validate_submission(payload: Any) -> RequestSubmission:
        """
        Complete check of a requestee submission
        Either the whole submission is accepted or a ValidationError is raised
        """
        try:
            submission = RequestValidator.parse(RequestSubmission, payload)
        except ValidationError as e:
            # a leg with other bad fields never reaches its mode check
            for path, message in leg_identifier_errors(payload).items():
                e.errors.setdefault(path, message)
            raise

        errors = submission.cross_field_errors()
        if errors:
            logger.info(f"RequestSubmission rejected: {sorted(errors)}")
            raise ValidationError(errors)

        return submission

    @staticmethod
    def validate_service(kind: Union[ServiceKind, str], fields: Any) -> BaseModel:
        """Validate a single vehicle/guesthouse/other sub-request"""
        service_kind = RequestValidator.service_kind(kind)
        return RequestValidator.parse(SERVICE_SCHEMAS[service_kind], fields)

    @staticmethod
    def validate_service_details(kind: Union[ServiceKind, str], fields: Any) -> BaseModel:
        """Validate the details staff add to an existing sub-request"""
        service_kind = RequestValidator.service_kind(kind)
        schema = SERVICE_DETAIL_SCHEMAS.get(service_kind)
        if schema is None:
            raise ValidationError({"kind": f"{service_kind.value} requests have no staff details"})
        return RequestValidator.parse(schema, fields)

    @staticmethod
    def service_kind(kind: Union[ServiceKind, str]) -> ServiceKind:
        try:
            return ServiceKind(kind)
        except ValueError:
            raise ValidationError({"kind": f"Unknown service kind: {kind}"})
