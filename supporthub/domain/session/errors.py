class ChatError(ValueError):
    """Base class for chat domain failures."""


class ChatValidationError(ChatError):
    pass


class SessionNotFound(ChatError):
    def __init__(self, session_id: str):
        super().__init__(f"Chat session {session_id} not found")
        self.session_id = session_id


class SessionConflict(ChatError):
    """The session is not in a state that allows the requested operation."""


class InvalidTransition(SessionConflict):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move chat session from '{current}' to '{target}'")
        self.current = current
        self.target = target


class ChatUnavailable(ChatError):
    """Public chat is switched off in the chat settings."""
