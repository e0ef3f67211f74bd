"""
Cinedex Backend: API Routes Package
=====================================

Route Inventory:
    - health.py:  GET    /v1/healthcheck
    - movies.py:  GET    /v1/movies, POST /v1/movies
                  GET    /v1/movies/{id}, PATCH /v1/movies/{id}, DELETE /v1/movies/{id}
    - users.py:   POST   /v1/users, PUT /v1/users/activated
    - tokens.py:  POST   /v1/tokens/authentication, POST /v1/tokens/activation
    - debug.py:   GET    /debug/vars

Routes stay thin: parse input, check it, run one unit of work, shape the
envelope. Capability checks live in `cinedex.dependencies`.
"""
