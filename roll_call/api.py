"""FastAPI application exposing the Roll Call REST API."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Dict, Optional, Type

from fastapi import Depends, FastAPI, Header, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .auth import AuthorizationGate, AuthorizedEmailCache
from .config import Settings, load_settings
from .db import Database
from .errors import (
    AuthCheckFailed,
    DateNotFound,
    RollCallError,
    SourceUnavailable,
    Unauthorized,
    ValidationError,
    WriteFailed,
)
from .models import normalize_email
from .roster import RosterStore
from .schemas import AddAuthorizedUserRequest, ErrorResponse, UpdateAttendanceRequest
from .service import AttendanceService
from .sheets_client import SheetsClient, load_service_account_credentials

logger = logging.getLogger(__name__)

ERROR_STATUS: Dict[Type[RollCallError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    Unauthorized: status.HTTP_403_FORBIDDEN,
    DateNotFound: status.HTTP_404_NOT_FOUND,
    WriteFailed: status.HTTP_502_BAD_GATEWAY,
    AuthCheckFailed: status.HTTP_503_SERVICE_UNAVAILABLE,
    SourceUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_for(exc: RollCallError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in ERROR_STATUS:
            return ERROR_STATUS[error_type]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_response(status_code: int, error: str, code: str, details: Optional[list] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, code=code, details=details or []).model_dump(),
    )


def build_sheets_client(settings: Settings) -> SheetsClient:
    if settings.google_service_account_json:
        credentials = load_service_account_credentials(settings.google_service_account_json)
        return SheetsClient(settings.spreadsheet_id, credentials=credentials)
    return SheetsClient(settings.spreadsheet_id, token=settings.google_access_token)


def create_app(
    settings: Optional[Settings] = None,
    *,
    service: Optional[AttendanceService] = None,
    gate: Optional[AuthorizationGate] = None,
) -> FastAPI:
    settings = settings or load_settings()
    sheets_client: Optional[SheetsClient] = None
    if service is None:
        sheets_client = build_sheets_client(settings)
        service = AttendanceService(RosterStore(sheets_client, settings.sheet_name))
    if gate is None:
        database = Database(settings.database_path)
        gate = AuthorizationGate(
            database, AuthorizedEmailCache(database, ttl=settings.auth_cache_ttl_seconds)
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.authorized_emails:
            seeded = await gate.seed(settings.authorized_emails)
            if seeded:
                logger.info("Seeded %d authorized emails from configuration", seeded)
        yield
        if sheets_client is not None:
            await sheets_client.close()

    app = FastAPI(title="Roll Call API", version="1.0.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RollCallError)
    async def roll_call_error_handler(request: Request, exc: RollCallError) -> JSONResponse:
        return error_response(status_for(exc), exc.message, exc.code, exc.details)

    async def verify_api_key(x_api_key: Optional[str] = Header(None, alias="X-API-Key")) -> None:
        if settings.api_key and x_api_key != settings.api_key:
            raise Unauthorized("Invalid or missing API key")

    async def current_user(
        x_user_email: Optional[str] = Header(None, alias="X-User-Email"),
        _: None = Depends(verify_api_key),
    ) -> str:
        if not await gate.is_authorized(x_user_email):
            logger.warning("Rejected request from unauthorized email %r", x_user_email)
            raise Unauthorized("You are not authorized to access attendance data")
        return normalize_email(x_user_email)

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/attendance")
    async def get_attendance(_: str = Depends(current_user)) -> dict[str, object]:
        return await service.get_attendance_data()

    @app.post("/api/attendance")
    async def update_attendance(
        body: UpdateAttendanceRequest,
        _: str = Depends(current_user),
    ) -> dict[str, object]:
        return await service.update_attendance(body.model_dump(by_alias=True))

    @app.get("/api/names")
    async def get_names(_: str = Depends(current_user)) -> dict[str, object]:
        return {"names": await service.get_names()}

    @app.get("/api/authorized-users")
    async def list_authorized_users(user: str = Depends(current_user)) -> dict[str, object]:
        users = await gate.list_users()
        return {"users": [entry.to_payload() for entry in users], "currentUser": user}

    @app.post("/api/authorized-users", status_code=status.HTTP_201_CREATED)
    async def add_authorized_user(
        body: AddAuthorizedUserRequest,
        user: str = Depends(current_user),
    ):
        email = normalize_email(body.email)
        if not email:
            raise ValidationError("email is required")
        if not await gate.add_authorized(email, user):
            return error_response(
                status.HTTP_409_CONFLICT,
                f"Failed to add {email}. It may already be authorized.",
                "ALREADY_AUTHORIZED",
            )
        return {"email": email, "addedBy": user}

    @app.delete("/api/authorized-users/{email}", status_code=status.HTTP_204_NO_CONTENT)
    async def remove_authorized_user(email: str, user: str = Depends(current_user)):
        if normalize_email(email) == user:
            return error_response(
                status.HTTP_400_BAD_REQUEST,
                "You cannot remove your own email from the authorized list.",
                "SELF_REMOVAL",
            )
        if not await gate.remove_authorized(email, user):
            return error_response(
                status.HTTP_404_NOT_FOUND,
                f"{normalize_email(email)} is not an authorized user",
                "NOT_FOUND",
            )
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


__all__ = ["create_app", "build_sheets_client", "status_for"]
