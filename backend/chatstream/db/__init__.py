"""Database Infrastructure — SQLAlchemy Base shared by every ORM model.

Invariants:
    - All sessions are async (AsyncSession)

Design Decisions:
    - aiosqlite by default, asyncpg when DATABASE_URL points at PostgreSQL
"""
