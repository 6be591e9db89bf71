# Services package init
"""
User API — Services Layer
==========================

What:  Business rules for the user resource, between routes and persistence.
Why:   Routes handle HTTP; services decide what is allowed (unique emails,
       hashing, active accounts) and raise typed errors when it is not.

Service Inventory:
    - UserRepository: SQLAlchemy queries for the users table
    - UserService:    CRUD rules and credential checks on top of the repository
"""
