# Utilities package init
"""
User API — Utilities
====================

Pure helpers with no request state:
    - response.py:   success / failure envelope builders
    - pagination.py: query-string → PaginationSpec, PaginationMeta builder
"""
