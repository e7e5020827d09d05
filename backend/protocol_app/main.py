# protocol_app/main.py
from fastapi import FastAPI, HTTPException, Request as HttpRequest
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from .database.base import Base
from .database.session import engine
from .config import settings
from .exceptions import ProtocolServiceError, ValidationError
from .routers import directory, protocol, requests
from .services.validation.request_validator import field_path
import logging

# Import all models to ensure they're registered with Base
from .database.models.location import Location
from .database.models.user import User
from .database.models.request import Request
from .database.models.journey_leg import JourneyLeg
from .database.models.guest import Guest
from .database.models.service_request import GuesthouseRequest, OtherRequest, VehicleRequest
from .database.models.protocol_assignment import AssignmentEvent, ProtocolAssignment

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Protocol Request Platform",
    description="Guest movement requests, journey legs and protocol officer assignment",
    version="1.0.0"
)

# CORS middleware for frontend communication
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Create all database tables
Base.metadata.create_all(bind=engine)


def _error_body(message: str, errors=None) -> dict:
    return {"message": message, "errors": errors or {}}


@app.exception_handler(ProtocolServiceError)
async def protocol_error_handler(request: HttpRequest, exc: ProtocolServiceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    errors = exc.errors if isinstance(exc, ValidationError) else None
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, errors))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: HttpRequest, exc: RequestValidationError):
    errors = {}
    for error in exc.errors():
        # drop the leading "body"/"query"/"path" part
        location = list(error.get("loc", ()))[1:]
        errors.setdefault(field_path(location), error.get("msg", "Invalid value"))
    return JSONResponse(status_code=422, content=_error_body("Validation failed", errors))


@app.exception_handler(HTTPException)
async def http_error_handler(request: HttpRequest, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content=_error_body(str(exc.detail)))


app.include_router(requests.router, prefix=settings.API_PREFIX)
app.include_router(protocol.router, prefix=settings.API_PREFIX)
app.include_router(directory.router, prefix=settings.API_PREFIX)


@app.get("/")
def root():
    return {
        "status": "ok",
        "service": "Protocol Request Platform API",
        "version": "1.0.0"
    }


@app.get("/health")
def health_check():
    return {
        "status": "healthy",
        "database": engine.url.get_backend_name(),
    }

#   cd backend
#   python -m uvicorn protocol_app.main:app --reload
#   API docs (interactive): http://127.0.0.1:8000/docs
