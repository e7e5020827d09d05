"""
Domain exceptions for the request and assignment services.

Services raise these; the HTTP layer maps each one to a status code in
``main.py``. None of them is used for ordinary outcomes such as "no
candidate officers found".
"""
from typing import Dict, Optional


class ProtocolServiceError(Exception):
    """Base exception for all request/assignment domain errors"""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ProtocolServiceError):
    """Raised when a payload breaks a schema or business rule.

    ``errors`` maps a field path such as ``journeyDetails[0].trainNumber``
    to a human readable message.
    """
    status_code = 422

    def __init__(self, errors: Dict[str, str], message: Optional[str] = None):
        super().__init__(message or "Validation failed")
        self.errors = dict(errors)


class NotFoundError(ProtocolServiceError):
    """Raised when a referenced request, leg, officer or assignment does not exist"""
    status_code = 404


class DirectoryUnavailable(ProtocolServiceError):
    """Raised when the officer/location directory cannot be queried"""
    status_code = 503


class PersistenceError(ProtocolServiceError):
    """Raised when a storage write fails and was rolled back"""
    status_code = 500


class AssignmentConflictError(PersistenceError):
    """Raised when a concurrent write claimed the same assignment slot; safe to retry"""
    status_code = 409
