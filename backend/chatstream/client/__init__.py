"""Client Layer — async consumer of the chat stream protocol.

Invariants:
    - One conversation state per ChatClient; one turn in flight at a time
    - History load failures never surface to the caller (reset to empty)

Design Decisions:
    - httpx.AsyncClient for every request, including the streamed turn
    - Reducer, session controller, and hydrator are separate objects composed
      by ChatClient so each is testable on its own
"""

from chatstream.client.chat_client import ChatClient  # noqa: F401
from chatstream.client.conversation import Conversation  # noqa: F401
