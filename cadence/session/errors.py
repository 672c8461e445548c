"""Error taxonomy for session lifecycle, conversation and summaries."""


class CadenceError(Exception):
    """Base class for engine errors."""


class SessionNotFoundError(CadenceError):
    """No session exists with the given id."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class InvalidStateError(CadenceError):
    """The session is in the wrong state for the requested operation."""


class InvalidTransitionError(InvalidStateError):
    """The transition is not an edge of the session status graph."""

    def __init__(self, from_status, to_status):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid session transition: {from_status.value} -> {to_status.value}"
        )


class SessionNotActiveError(InvalidStateError):
    """Messages can only be sent to an active session."""

    def __init__(self, session_id: str, status):
        self.session_id = session_id
        self.status = status
        super().__init__(f"Session {session_id} is not active (status: {status.value})")


class SessionChangedError(InvalidStateError):
    """The session changed (status or new messages) while a summary was being generated."""

    def __init__(self, session_id: str, expected, actual):
        self.session_id = session_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Session {session_id} changed during summarisation (status {expected.value} -> {actual.value})"
        )


class SummaryError(CadenceError):
    """Base class for summary generation failures."""


class NoMessagesError(SummaryError):
    """A session without messages cannot be summarised."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} has no messages to summarise")


class SummaryParseError(SummaryError):
    """The model's summary response was not a usable JSON object."""

    def __init__(self, reason: str, raw: str = ""):
        self.reason = reason
        self.raw = raw
        super().__init__(f"Failed to parse summary response: {reason}")
