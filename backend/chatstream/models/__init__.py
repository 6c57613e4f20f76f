"""ORM Models — SQLAlchemy declarative models.

Invariants:
    - All models inherit from Base (db/base.py)

Design Decisions:
    - One file per table for locality
    - All models imported here so Base.metadata is complete before create_all
"""

from chatstream.models.chat_session import ChatSession  # noqa: F401
from chatstream.models.thread_state import ThreadState  # noqa: F401
