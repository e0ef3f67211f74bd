"""
Cinedex Backend: Application Package Initializer
==================================================

What: The `cinedex` package: a JSON REST API for a movie catalog with user
      accounts, bearer-token authentication and permission-gated access.
Who:  Imported by uvicorn (`python -m cinedex`), Alembic and pytest.

Architecture Note:

    ┌─────────────────────────────────────┐
    │   Middleware (recovery → ... → auth) │  ← cross-cutting, every request
    ├─────────────────────────────────────┤
    │   Routes + dependency gates          │  ← HTTP concerns, capability checks
    ├─────────────────────────────────────┤
    │   Services (passwords, tokens, ...)  │  ← domain rules, no HTTP
    ├─────────────────────────────────────┤
    │   Repositories (SQL / in-memory)     │  ← store access behind ABCs
    ├─────────────────────────────────────┤
    │   Models (SQLAlchemy ORM)            │  ← table definitions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
