"""Authentication endpoints for the Resource API."""

from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import APIRouter, status

from resource_api.api.dependencies import CurrentRecordDep, SettingsDep, StoreDep
from resource_api.core.errors import NotFound, Unauthorized, ValidationFailed
from resource_api.core.security import create_access_token
from resource_api.core.settings import Settings
from resource_api.schemas.record import LoginRequest, LoginResponse, RecordResponse

router = APIRouter(tags=["authentication"])

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


def issue_token(subject: str, settings: Settings) -> str:
    """Create a session token for `subject` using the application settings."""
    return create_access_token(
        subject,
        secret_key=settings.secret_key,
        algorithm=settings.jwt_algorithm,
        expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
    )


@router.post(
    "/login",
    summary="Exchange email and password for a bearer token",
    status_code=status.HTTP_200_OK,
    response_model=LoginResponse,
)
async def login(payload: LoginRequest, store: StoreDep, settings: SettingsDep) -> LoginResponse:
    """Authenticate with the record's login field and credential."""
    login_field = store.schema.login_field or "email"
    try:
        record = await store.find_by_field(login_field, payload.email)
    except (NotFound, ValidationFailed) as err:
        logger.info("Login rejected: unknown %s", login_field)
        raise Unauthorized(INVALID_CREDENTIALS) from err

    if not await store.verify_credential(record.key, payload.password):
        logger.info("Login rejected for record %s: bad credential", record.key)
        raise Unauthorized(INVALID_CREDENTIALS)

    logger.info("Issued token for record %s", record.key)
    return LoginResponse(
        token=issue_token(record.key, settings),
        token_type="bearer",
        expires_in=settings.access_token_expire_minutes * 60,
        identity=RecordResponse.from_record(record),
    )


@router.get("/me", summary="Return the authenticated record", response_model=RecordResponse)
async def read_me(record: CurrentRecordDep) -> RecordResponse:
    return RecordResponse.from_record(record)
