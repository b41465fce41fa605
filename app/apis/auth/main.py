from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.modules.auth import (
    fastapi_users,
    auth_backend,
    get_jwt_strategy,
    UserRead,
    UserCreate,
    UserUpdate,
)


router = APIRouter()

AUTH_PREFIX = f"/{settings.app.version}/auth"
USERS_PREFIX = f"/{settings.app.version}/users"


@router.get("/.well-known/jwks.json", tags=["auth"])
async def jwks():
    """Public signing keys for verifying access tokens."""
    return JSONResponse(
        content=get_jwt_strategy().get_jwks(),
        headers={"Cache-Control": "public, max-age=3600"},
    )


# login/logout, register and password reset share the auth prefix
for auth_router in (
    fastapi_users.get_auth_router(auth_backend),
    fastapi_users.get_register_router(UserRead, UserCreate),
    fastapi_users.get_reset_password_router(),
):
    router.include_router(auth_router, prefix=AUTH_PREFIX, tags=["auth"])

router.include_router(
    fastapi_users.get_users_router(UserRead, UserUpdate),
    prefix=USERS_PREFIX,
    tags=["users"],
)
