"""Authenticated user router."""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import AUTHENTICATED, DB_DEPENDENCY, Identity
from ..schemas.user import UpsertUserRequest, User
from ..services.user_service import UserService

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get("/user", response_model=User)
async def current_user(
    identity: Identity = AUTHENTICATED,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """
    Return the caller's user record.

    The first call creates it from the token claims; later calls refresh the
    profile fields. The admin flag is only changed by operator tooling.
    """
    request = UpsertUserRequest(
        id=identity.user_id,
        email=identity.email,
        first_name=identity.first_name,
        last_name=identity.last_name,
        profile_image_url=identity.profile_image_url,
    )
    user = await UserService(db).upsert_user(request)
    return JSONResponse(content=User.model_validate(user).to_json())
