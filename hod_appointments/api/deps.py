from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from hod_appointments.core.db import get_session
from hod_appointments.core.errors import AuthenticationError, AuthorizationError
from hod_appointments.core.security import decode_access_token
from hod_appointments.models.caller import Caller
from hod_appointments.models.user import User
from hod_appointments.services.auth_service import get_user_by_id

security = HTTPBearer(auto_error=False)


async def get_current_user(
    session: AsyncSession = Depends(get_session),
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> User:
    if not credentials or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Missing or invalid authorization header")
    user_id = decode_access_token(credentials.credentials)
    if not user_id:
        raise AuthenticationError("Invalid or expired token")
    try:
        uid = int(user_id)
    except ValueError:
        raise AuthenticationError("Invalid token")
    user = await get_user_by_id(session, uid)
    if not user:
        raise AuthenticationError("User not found")
    return user


async def get_current_caller(user: User = Depends(get_current_user)) -> Caller:
    return Caller.from_user(user)


async def require_hod(caller: Caller = Depends(get_current_caller)) -> Caller:
    if not caller.is_hod:
        raise AuthorizationError("Access denied. HOD only.")
    return caller
