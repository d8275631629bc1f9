"""FastAPI dependencies: get_current_user and role guards.

Usage in any protected router:
    from src.cb_gateway.auth.dependencies import get_current_user, require_admin

    @router.post("/admin/thing")
    async def thing(admin: UserModel = Depends(require_admin)):
        ...
"""

import secrets

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.cb_common.database import get_db_session
from src.cb_common.enums import UserRole
from src.cb_common.errors import AccountDisabledError, InvalidCredentialsError, PermissionDeniedError
from src.cb_gateway.auth.jwt_handler import decode_token
from src.cb_gateway.user.db_models import UserModel

# tokenUrl tells Swagger UI where to get a token (used for the "Authorize" button)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

# Reusable 401 exception with WWW-Authenticate header (OAuth2 standard)
_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> UserModel:
    """Extract and validate the JWT Bearer token, return the UserModel.

    Raises HTTP 401 if the token is missing, invalid, or expired.
    Raises HTTP 403 (AccountDisabledError) if the user account is disabled.
    """
    try:
        payload = decode_token(token, expected_type="access")
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None

    user_id: str | None = payload.get("sub")
    if not user_id:
        raise _CREDENTIALS_EXCEPTION

    result = await db.execute(select(UserModel).where(UserModel.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise _CREDENTIALS_EXCEPTION

    if not user.is_active:
        raise AccountDisabledError()

    return user


async def require_admin(
    current_user: UserModel = Depends(get_current_user),
) -> UserModel:
    """Administrator-only endpoints: payout approval, dispute resolution, invariants."""
    if current_user.role != UserRole.ADMIN.value:
        raise PermissionDeniedError("Administrator access required")
    return current_user


async def require_companion(
    current_user: UserModel = Depends(get_current_user),
) -> UserModel:
    """Companion-only endpoints: publishing slots, requesting payouts."""
    if current_user.role != UserRole.COMPANION.value:
        raise PermissionDeniedError("Companion account required")
    return current_user


# Payment callbacks accept either the paying seeker's bearer token or the
# gateway's shared secret, so the bearer header is optional here
_optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


async def get_payment_caller(
    token: str | None = Depends(_optional_oauth2_scheme),
    gateway_token: str | None = Header(default=None, alias="X-Gateway-Token"),
    db: AsyncSession = Depends(get_db_session),
) -> UserModel | None:
    """Authenticate a payment callback.

    Returns None for the gateway (matching X-Gateway-Token), otherwise the
    authenticated user; the service then checks that user is the booking's seeker.
    """
    expected = settings.PAYMENT_CALLBACK_TOKEN
    if gateway_token is not None:
        if expected and secrets.compare_digest(gateway_token, expected):
            return None
        raise _CREDENTIALS_EXCEPTION
    if token is None:
        raise _CREDENTIALS_EXCEPTION
    return await get_current_user(token, db)
