"""
Store access behind abstract repositories.

    base.py    → interfaces, Models bundle, Store
    sql.py     → PostgreSQL (SqlStore)
    memory.py  → in-memory (MemoryStore)
"""

from cinedex.repositories.base import (
    Models,
    MovieRepository,
    PermissionRepository,
    Store,
    TokenRepository,
    UserRepository,
)

__all__ = [
    "Models",
    "MovieRepository",
    "PermissionRepository",
    "Store",
    "TokenRepository",
    "UserRepository",
]
