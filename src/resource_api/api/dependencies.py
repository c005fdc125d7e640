"""Shared API dependencies for authentication and store access."""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from resource_api.core.errors import Forbidden, NotFound, Unauthorized
from resource_api.core.security import TokenState, check_access_token
from resource_api.core.settings import Settings
from resource_api.db.session import get_db
from resource_api.schemas.user import USER_SCHEMA
from resource_api.services.store import ResourceRecord, ResourceStore

# HTTP Bearer scheme; missing credentials are reported by the guard itself.
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[AsyncSession, Depends(get_db)]


def get_app_settings(request: Request) -> Settings:
    """Return the settings the running application was built with."""
    return request.app.state.settings


SettingsDep = Annotated[Settings, Depends(get_app_settings)]


def get_store(request: Request, db: SessionDep, settings: SettingsDep) -> ResourceStore:
    """Build the users store for this request."""
    return ResourceStore(
        db,
        USER_SCHEMA,
        timeout_seconds=settings.store_timeout_seconds,
        max_page_size=settings.max_page_size,
        bcrypt_rounds=settings.bcrypt_rounds,
        cache=getattr(request.app.state, "record_cache", None),
    )


StoreDep = Annotated[ResourceStore, Depends(get_store)]


@dataclass(frozen=True)
class Identity:
    """Authenticated requester, bound to a record key."""

    key: str


def get_current_identity(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    settings: SettingsDep,
) -> Identity:
    """Guard a route behind a valid, unexpired bearer token.

    Raises:
        Unauthorized: If no bearer credential was presented.
        Forbidden: If the token is invalid or has expired.
    """
    check = check_access_token(
        credentials.credentials if credentials else None,
        secret_key=settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    if check.state is TokenState.NO_TOKEN:
        raise Unauthorized("Authentication required")
    if check.state is TokenState.EXPIRED:
        raise Forbidden("Token has expired")
    if check.state is not TokenState.VERIFIED or check.subject is None:
        raise Forbidden("Invalid token")

    identity = Identity(key=check.subject)
    request.state.identity = identity
    return identity


# Type alias for current identity dependency
CurrentIdentityDep = Annotated[Identity, Depends(get_current_identity)]


async def get_current_record(identity: CurrentIdentityDep, store: StoreDep) -> ResourceRecord:
    """Load the record the token was issued for.

    Raises:
        Forbidden: If the record no longer exists.
    """
    try:
        return await store.get_by_id(identity.key)
    except NotFound as err:
        raise Forbidden("Token subject no longer exists") from err


CurrentRecordDep = Annotated[ResourceRecord, Depends(get_current_record)]


def require_self(record_id: str, identity: CurrentIdentityDep) -> Identity:
    """Allow the request only when the token subject owns `record_id`."""
    if identity.key != record_id:
        raise Forbidden("You can only modify your own record")
    return identity


SelfIdentityDep = Annotated[Identity, Depends(require_self)]
