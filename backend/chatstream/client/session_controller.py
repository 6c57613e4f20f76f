"""Session Controller — sidebar session lifecycle: create, select, delete, rename, auto-name.

Invariants:
    - Every successful write and every active-id change is followed by a
      session-list refresh
    - Deleting the active session creates exactly one replacement and activates it
    - Renaming with a blank name is a no-op; names are trimmed
    - Auto-naming sends at most the first N characters and happens once per thread
    - Network failures are logged and swallowed: state stays as it was

Design Decisions:
    - active_id "" means "no session yet": the first turn creates one server-side
    - has_named is owned here (not by the reducer) because both sends and
      session switches move it
"""

import logging

from chatstream.client.api_client import ChatApiClient
from chatstream.core.domain_types import SESSION_NAME_MAX_LENGTH
from chatstream.core.errors import ChatClientError

logger = logging.getLogger(__name__)


class SessionController:
    """Tracks the active session and the sidebar list."""

    def __init__(self, api: ChatApiClient, name_max_length: int = SESSION_NAME_MAX_LENGTH):
        self.api = api
        self.name_max_length = name_max_length
        self.active_id = ""
        self.sessions: list[dict] = []
        self.has_named = False

    async def refresh(self) -> list[dict]:
        try:
            self.sessions = await self.api.list_sessions()
        except ChatClientError as e:
            logger.error("Session list refresh failed: %s", e.message)
        return self.sessions

    async def activate(self, session_id: str) -> None:
        self.active_id = session_id
        await self.refresh()

    def mark_named(self, flag: bool) -> None:
        self.has_named = flag

    async def create_session(self) -> str | None:
        try:
            new_id = await self.api.create_session("")
        except ChatClientError as e:
            logger.error("Session create failed: %s", e.message)
            return None
        self.active_id = new_id
        self.has_named = False
        await self.refresh()
        return new_id

    async def select_session(self, session_id: str) -> None:
        self.has_named = False
        await self.activate(session_id)

    async def delete_session(self, session_id: str) -> None:
        try:
            await self.api.delete_session(session_id)
        except ChatClientError as e:
            logger.error("Session delete failed: %s", e.message,
                extra={"thread_id": session_id})
            return
        await self.refresh()
        if session_id == self.active_id:
            await self.create_session()

    async def rename_session(self, session_id: str, name: str) -> None:
        name = (name or "").strip()
        if not name:
            return
        try:
            await self.api.rename_session(session_id, name)
        except ChatClientError as e:
            logger.error("Session rename failed: %s", e.message,
                extra={"thread_id": session_id})
            return
        await self.refresh()

    async def auto_name(self, text: str, target_id: str | None = None) -> bool:
        """Name a thread after its first message. Returns True if a rename was sent."""
        if self.has_named:
            return False
        target = target_id or self.active_id
        if not target:
            return False
        try:
            await self.api.rename_session(target, text[:self.name_max_length])
        except ChatClientError as e:
            logger.error("Session auto-name failed: %s", e.message,
                extra={"thread_id": target})
            return False
        await self.refresh()
        self.has_named = True
        return True
