"""
Service Layer Exceptions

Custom exceptions for the WorkflowSessionService.
"""


class SessionNotFoundError(Exception):
    """Raised when a session id does not exist in the session repository."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found")
