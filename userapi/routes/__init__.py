# Routes package init
"""
User API — Routes Package
==========================

What:  HTTP route handlers.
How:   Each endpoint runs its route stages (validation, auth) and a small
       handler through `userapi.pipeline.run_stages`.

Route Inventory:
    - users.py:   GET    /api/v1/users          (paginated list)
                  GET    /api/v1/users/{id}     (single user)
                  POST   /api/v1/users          (create)
                  PATCH  /api/v1/users/{id}     (partial update)
                  DELETE /api/v1/users/{id}     (delete)
    - auth.py:    POST   /api/v1/auth/login     (issue bearer token)
                  GET    /api/v1/auth/me        (user behind the token)
    - health.py:  GET    /health                (service health check)

Design Principle:
    Routes are THIN: pick the stages, call the service, wrap the result in an
    envelope. Business rules live in services.
"""
