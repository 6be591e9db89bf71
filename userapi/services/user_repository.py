"""
User API — User Repository
===========================

What:  Async SQLAlchemy queries for the `users` table.
Why:   Keeps SQL out of the service so the service can be tested with a fake
       repository and no database.
How:   One instance per session. Writes `flush()` only; the session dependency
       commits once the request succeeds.

Query plan (list):
    SELECT ... FROM users [WHERE name LIKE '%search%']
    ORDER BY <sort column> <dir> LIMIT :limit OFFSET :offset
    + SELECT count(*) with the same filter for the pagination total.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import asc, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from userapi.models.user import User
from userapi.utils.pagination import PaginationSpec

logger = logging.getLogger(__name__)

# Public (camelCase) and column names both accepted
SORT_COLUMNS = {
    "id": User.id,
    "name": User.name,
    "email": User.email,
    "isActive": User.is_active,
    "is_active": User.is_active,
    "createdAt": User.created_at,
    "created_at": User.created_at,
    "updatedAt": User.updated_at,
    "updated_at": User.updated_at,
}


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    def _filters(self, search: Optional[str]) -> list:
        if not search:
            return []
        return [User.name.contains(search, autoescape=True)]

    async def find_all(self, spec: PaginationSpec) -> Tuple[List[User], int]:
        """Page of users plus the total number matching the search."""
        filters = self._filters(spec.search)

        # Unknown sort fields fall back to creation time
        column = SORT_COLUMNS.get(spec.sort_field, User.created_at)
        direction = desc if spec.sort_order == "desc" else asc

        query = (
            select(User)
            .where(*filters)
            .order_by(direction(column), direction(User.id))
            .offset(spec.offset)
            .limit(spec.limit)
        )
        count_query = select(func.count()).select_from(User).where(*filters)

        items = list((await self.session.execute(query)).scalars().all())
        total = (await self.session.execute(count_query)).scalar_one()
        return items, total

    async def find_by_id(self, user_id: int) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def find_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def create(self, values: Dict[str, Any]) -> User:
        user = User(**values)
        self.session.add(user)
        await self.session.flush()
        await self.session.refresh(user)
        return user

    async def update(self, user: User, values: Dict[str, Any]) -> User:
        for key, value in values.items():
            setattr(user, key, value)
        await self.session.flush()
        await self.session.refresh(user)
        return user

    async def delete(self, user: User) -> None:
        await self.session.delete(user)
        await self.session.flush()
