"""
User API — User SQLAlchemy Model
=================================

What:  ORM model representing the `users` table.
Why:   Maps Python objects to database rows for type-safe database operations.
Who:   Used by UserRepository for CRUD operations and by Alembic for migrations.

Table Design:
    - Integer primary key (serial): ids are exposed in URLs as digits
    - email: unique, enforced by the database as well as the service layer
    - password: one-way hash only; never serialized into API responses
    - created_at / updated_at: UTC with timezone
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from userapi.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """A registered user account."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    # Werkzeug hash string ("scrypt:..."/"pbkdf2:..."), never the plain text
    password: Mapped[str] = mapped_column(Text, nullable=False)

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', active={self.is_active})>"


# Default list order is newest first
Index("idx_users_created_at", User.created_at.desc())
