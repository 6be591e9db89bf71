"""
User API — Application Package Initializer
===========================================

Layered architecture:

    ┌─────────────────────────────────────┐
    │   Pipeline stages (middleware/)     │  ← headers, tracing, limits, auth
    ├─────────────────────────────────────┤
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← uniqueness, hashing, 404s
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
