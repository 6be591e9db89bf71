# Models package init
"""
User API — ORM Models
=====================

Every model imported here is registered on `Base.metadata`, which Alembic
and the test suite use to create the schema.
"""

from userapi.models.user import User

__all__ = ["User"]
