"""fastapi-users wiring: user manager, bearer JWT backend and the current-user dependency.

Every flashcard and generation endpoint depends on ``current_active_user``;
ownership checks downstream compare against its ``id``.
"""

from typing import AsyncIterator, Optional, Union, cast

from fastapi import Depends, Request
from fastapi_users import FastAPIUsers, InvalidPasswordException
from fastapi_users import schemas as fa_schemas
from fastapi_users.authentication import AuthenticationBackend, BearerTransport
from fastapi_users.authentication.transport import Transport
from fastapi_users.manager import BaseUserManager, IntegerIDMixin
from fastapi_users_db_sqlalchemy import SQLAlchemyUserDatabase
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db.base import get_session
from app.core.db.schemas.auth import User
from app.core.jwt_strategy import RS256JWTStrategyWithKid
from app.core.logging import get_logger

logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 8


class UserRead(fa_schemas.BaseUser[int]):
    pass


class UserCreate(fa_schemas.BaseUserCreate):
    pass


class UserUpdate(fa_schemas.BaseUserUpdate):
    pass


async def get_user_db(
    session: AsyncSession = Depends(get_session),
) -> AsyncIterator[SQLAlchemyUserDatabase]:
    yield SQLAlchemyUserDatabase(session, User)


class UserManager(IntegerIDMixin, BaseUserManager[User, int]):  # type: ignore[type-arg]
    reset_password_token_secret = settings.app.jwt_secret
    verification_token_secret = settings.app.jwt_secret

    async def validate_password(
        self, password: str, user: Union[fa_schemas.UC, User]
    ) -> None:
        if len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidPasswordException(
                reason=f"Password should be at least {MIN_PASSWORD_LENGTH} characters"
            )
        if user.email and user.email.split("@")[0].lower() in password.lower():
            raise InvalidPasswordException(reason="Password should not contain the e-mail")

    async def on_after_register(self, user: User, request: Optional[Request] = None) -> None:
        logger.info("Registered new account", extra={"user_id": user.id})

    async def on_after_forgot_password(
        self, user: User, token: str, request: Optional[Request] = None
    ) -> None:
        # Delivery of the reset token is left to the deployment's mailer
        logger.info("Password reset requested", extra={"user_id": user.id})


async def get_user_manager(
    user_db: SQLAlchemyUserDatabase = Depends(get_user_db),
) -> AsyncIterator[UserManager]:
    yield UserManager(user_db)


bearer_transport = BearerTransport(tokenUrl=f"{settings.app.version}/auth/login")


_jwt_strategy: Optional[RS256JWTStrategyWithKid] = None


def get_jwt_strategy() -> RS256JWTStrategyWithKid:
    # Built lazily so importing the app does not touch the key file
    global _jwt_strategy
    if _jwt_strategy is None:
        _jwt_strategy = RS256JWTStrategyWithKid(
            lifetime_seconds=settings.jwt.token_lifetime_seconds,
            key_id=settings.app.version,
        )
    return _jwt_strategy


auth_backend = AuthenticationBackend(
    name="jwt",
    transport=cast(Transport, bearer_transport),
    get_strategy=get_jwt_strategy,
)


fastapi_users = FastAPIUsers[User, int](  # type: ignore[type-arg]
    get_user_manager,
    [auth_backend],
)

current_active_user = fastapi_users.current_user(active=True)
