"""
Error taxonomy for the Cadence core.

Every failure the core surfaces is one of these classes so that the
transport layer can map it to a response without string matching.
"""


class CadenceError(Exception):
    """Base class for all errors raised by the core."""


class NotFoundError(CadenceError):
    """A referenced session or card does not exist."""


class SessionNotFoundError(NotFoundError):
    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class CardNotFoundError(NotFoundError):
    def __init__(self, card_id: str):
        super().__init__(f"Card not found: {card_id}")
        self.card_id = card_id


class InvalidTransitionError(CadenceError):
    """
    A lifecycle operation was attempted from a state that does not allow it.

    Attributes:
        session_id: The session the operation targeted.
        status: The session's status at the time of the attempt.
        action: The rejected operation (e.g. "pause").
    """

    def __init__(self, session_id: str, status: str, action: str):
        super().__init__(f"Cannot {action} session {session_id} in status '{status}'")
        self.session_id = session_id
        self.status = status
        self.action = action


class ConcurrentUpdateError(CadenceError):
    """The card changed between read and write; the review was not recorded."""

    def __init__(self, card_id: str, expected_version: int, actual_version: int):
        super().__init__(
            f"Card {card_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )
        self.card_id = card_id
        self.expected_version = expected_version
        self.actual_version = actual_version
