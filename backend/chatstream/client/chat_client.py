"""Chat Client — composes reducer, session controller and hydrator into one async facade.

Invariants:
    - One turn in flight: send_message while loading raises TurnInProgressError
    - is_loading is cleared on every exit path of send_message
    - A new thread id is activated on the stream's `end` event, or once the
      stream closes when the turn failed after `session`
    - Transport or stream failure → exactly one error entry in place of the placeholder
"""

import logging

from chatstream.client.api_client import ChatApiClient
from chatstream.client.config import ClientSettings, get_client_settings
from chatstream.client.conversation import Conversation
from chatstream.client.history_hydrator import HistoryHydrator
from chatstream.client.session_controller import SessionController
from chatstream.core.attachments import merge_attachments
from chatstream.core.errors import ChatClientError, TurnInProgressError

logger = logging.getLogger(__name__)


class ChatClient:
    """Async counterpart of the browser chat page."""

    def __init__(
        self,
        api: ChatApiClient | None = None,
        settings: ClientSettings | None = None,
    ):
        self.settings = settings or get_client_settings()
        self.api = api or ChatApiClient(self.settings)
        self.conversation = Conversation(error_message=self.settings.error_message)
        self.sessions = SessionController(self.api, self.settings.session_name_max_length)
        self.hydrator = HistoryHydrator(self.api)

    @property
    def messages(self):
        return self.conversation.messages

    @property
    def is_loading(self) -> bool:
        return self.conversation.is_loading

    @property
    def active_id(self) -> str:
        return self.sessions.active_id

    async def start(self) -> None:
        await self.sessions.refresh()

    async def close(self) -> None:
        await self.api.close()

    async def __aenter__(self) -> "ChatClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def send_message(
        self,
        text: str,
        tools: list[str] | None = None,
        model: str | None = None,
        files: list[tuple[str, bytes]] | None = None,
    ) -> None:
        """Send one turn and fold its stream into the conversation."""
        if self.conversation.is_loading:
            raise TurnInProgressError()
        content = merge_attachments(text, files)
        self.conversation.add_user_message(content)
        self.conversation.start_turn()
        try:
            if self.sessions.active_id:
                await self.sessions.auto_name(text)
            await self._run_turn(content, tools, model)
        except ChatClientError as e:
            logger.error("Chat turn failed: %s", e.message,
                extra={"thread_id": self.sessions.active_id or None})
            self.conversation.fail()
        finally:
            self.conversation.is_loading = False
        staged = self.conversation.take_staged_thread_id()
        if staged:
            # Server created the record before streaming; keep sending to it
            await self.sessions.activate(staged)
            self.sessions.mark_named(True)

    async def _run_turn(self, content: str, tools: list[str] | None, model: str | None) -> None:
        async for event in self.api.stream_chat(
            content, thread_id=self.sessions.active_id or None,
            tools=tools, model=model,
        ):
            committed = self.conversation.apply(event)
            if committed:
                await self.sessions.activate(committed)
                self.sessions.mark_named(True)
        if self.conversation.placeholder is not None:
            # Stream closed without a terminal line
            logger.warning("Stream ended without end/error event")
            self.conversation.fail()

    async def select_session(self, session_id: str) -> None:
        await self.sessions.select_session(session_id)
        result = await self.hydrator.hydrate(session_id)
        self.conversation.reset(result.messages)
        self.sessions.mark_named(result.has_user_message)

    async def create_session(self) -> str | None:
        new_id = await self.sessions.create_session()
        if new_id:
            self.conversation.reset()
        return new_id

    async def delete_session(self, session_id: str) -> None:
        was_active = session_id == self.sessions.active_id
        await self.sessions.delete_session(session_id)
        if was_active and self.sessions.active_id != session_id:
            self.conversation.reset()

    async def rename_session(self, session_id: str, name: str) -> None:
        await self.sessions.rename_session(session_id, name)
