from .location import Location
from .user import User, UserRole
from .request import Request, RequestStatus
from .journey_leg import JourneyLeg, TravelMode
from .guest import Guest
from .service_request import GuesthouseRequest, OtherRequest, ServiceKind, ServiceStatus, VehicleRequest
from .protocol_assignment import AssignmentEvent, CompletionStatus, Priority, ProtocolAssignment
