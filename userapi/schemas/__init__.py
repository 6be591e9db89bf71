# Schemas package init
"""
User API — Pydantic Schemas
===========================

API contracts (request bodies, query/path parameters, response payloads).
JSON field names are camelCase; Python attributes stay snake_case.
"""
