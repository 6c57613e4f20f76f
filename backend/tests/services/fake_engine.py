"""Scripted Agent Engine — plays back a fixed engine event list.

Exception instances in the script are raised at that position, so a test
can fail the engine before the first event, mid-stream, or on history fetch.
"""


class ScriptedEngine:
    """Satisfies the AgentEngine Protocol without a model."""

    def __init__(self, events=None, history=None, history_error=None):
        self.events = list(events or [])
        self.history = list(history or [])
        self.history_error = history_error
        self.calls = []
        self.closed = False

    async def stream_events(self, thread_id, message, tools=None, model=None):
        self.calls.append({
            "thread_id": thread_id, "message": message,
            "tools": tools, "model": model,
        })
        try:
            for event in self.events:
                if isinstance(event, BaseException):
                    raise event
                yield event
        finally:
            self.closed = True

    async def get_history(self, thread_id):
        if self.history_error is not None:
            raise self.history_error
        return self.history
