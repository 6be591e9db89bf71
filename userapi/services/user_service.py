"""
User API — User Service (Business Logic)
=========================================

What:  CRUD rules for users and credential checks for login.
Why:   Route handlers stay thin; every rule that can fail raises a typed
       ApiError that the error boundary turns into an envelope.
How:   Stateless: each call receives the request's session and builds a
       repository on it. Hashing functions are injected so tests can swap
       them for cheap fakes.

Rules:
    - Emails are unique: create and update check first (409 DUPLICATE_EMAIL),
      and a unique-constraint race caught at flush time maps to the same error.
    - Passwords are hashed before they reach the repository and are never
      part of a UserResponse.
    - get/update/delete of a missing id → 404 NOT_FOUND.
    - Login with an unknown email or wrong password → 401; inactive → 403.

Error Handling Strategy:
    ApiErrors propagate unchanged. Any other SQLAlchemy failure is wrapped in
    DatabaseError (generic client message, original error kept in context).
"""

import logging
from functools import wraps
from typing import Any, Awaitable, Callable, List, Mapping, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from userapi.exceptions import (
    ApiError,
    DatabaseError,
    DuplicateEmailError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
)
from userapi.models.user import User
from userapi.schemas.common import PaginationMeta
from userapi.schemas.user import UserCreate, UserResponse, UserUpdate
from userapi.security import hash_password, verify_password
from userapi.services.user_repository import UserRepository
from userapi.utils.pagination import build_pagination_meta, parse_pagination

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


def _database_errors(operation: str):
    """Wraps unexpected SQLAlchemy failures of `operation` in DatabaseError."""

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except ApiError:
                raise
            except IntegrityError as e:
                # Lost a race against a concurrent insert of the same email
                logger.warning("Integrity error during %s: %s", operation, e.orig)
                raise DuplicateEmailError(context={"operation": operation})
            except SQLAlchemyError as e:
                logger.error("Database error during %s: %s", operation, str(e))
                raise DatabaseError(
                    context={"operation": operation, "original_error": type(e).__name__},
                )

        return wrapper

    return decorator


class UserService:
    def __init__(
        self,
        repository_factory: Callable[[AsyncSession], UserRepository] = UserRepository,
        hasher: Callable[[str], Awaitable[str]] = hash_password,
        password_checker: Callable[[str, str], Awaitable[bool]] = verify_password,
    ):
        self.repository_factory = repository_factory
        self.hasher = hasher
        self.password_checker = password_checker

    async def _get_or_404(self, repo: UserRepository, user_id: int) -> User:
        user = await repo.find_by_id(user_id)
        if user is None:
            raise NotFoundError(resource="User", resource_id=user_id)
        return user

    @_database_errors("list_users")
    async def list_users(
        self, db: AsyncSession, query: Mapping[str, Any]
    ) -> Tuple[List[UserResponse], PaginationMeta]:
        """
        Page of users for the raw list query (page, limit, sort, search).

        Returns:
            (items, pagination meta)
        """
        spec = parse_pagination(query)
        items, total = await self.repository_factory(db).find_all(spec)
        return (
            [UserResponse.model_validate(user) for user in items],
            build_pagination_meta(total, spec.page, spec.limit),
        )

    @_database_errors("get_user")
    async def get_user(self, db: AsyncSession, user_id: int) -> UserResponse:
        user = await self._get_or_404(self.repository_factory(db), user_id)
        return UserResponse.model_validate(user)

    @_database_errors("create_user")
    async def create_user(self, db: AsyncSession, data: UserCreate) -> UserResponse:
        repo = self.repository_factory(db)

        if await repo.find_by_email(data.email) is not None:
            raise DuplicateEmailError(context={"email": data.email})

        values = data.model_dump()
        values["password"] = await self.hasher(data.password)
        user = await repo.create(values)

        logger.info("User created: id=%s", user.id)
        return UserResponse.model_validate(user)

    @_database_errors("update_user")
    async def update_user(
        self, db: AsyncSession, user_id: int, data: UserUpdate
    ) -> UserResponse:
        repo = self.repository_factory(db)
        user = await self._get_or_404(repo, user_id)

        values = data.model_dump(exclude_unset=True)
        # Explicit nulls mean "leave unchanged"; every column is NOT NULL
        values = {key: value for key, value in values.items() if value is not None}

        if "email" in values and values["email"] != user.email:
            existing = await repo.find_by_email(values["email"])
            if existing is not None and existing.id != user_id:
                raise DuplicateEmailError(context={"email": values["email"]})

        if "password" in values:
            values["password"] = await self.hasher(values["password"])

        user = await repo.update(user, values)
        logger.info("User updated: id=%s fields=%s", user_id, sorted(values))
        return UserResponse.model_validate(user)

    @_database_errors("delete_user")
    async def delete_user(self, db: AsyncSession, user_id: int) -> None:
        repo = self.repository_factory(db)
        user = await self._get_or_404(repo, user_id)
        await repo.delete(user)
        logger.info("User deleted: id=%s", user_id)

    @_database_errors("authenticate")
    async def authenticate(self, db: AsyncSession, email: str, password: str) -> User:
        """
        Checks credentials and returns the user.

        Raises:
            UnauthorizedError: unknown email or wrong password (same message
                               for both, so emails cannot be enumerated)
            ForbiddenError:    the account is deactivated
        """
        user = await self.repository_factory(db).find_by_email(email)
        if user is None or not await self.password_checker(user.password, password):
            raise UnauthorizedError(INVALID_CREDENTIALS)
        if not user.is_active:
            raise ForbiddenError("Account is inactive")
        return user


# Singleton instance
user_service = UserService()
