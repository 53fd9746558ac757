class ExamError(Exception):
    """Base class for all exam engine errors."""


class ConfigurationError(ExamError):
    """
    Programmer error: an unknown level/type, or a request that can never be
    satisfied. Never substituted silently.
    """


class InvalidOperationError(ExamError):
    """
    The operation is not valid for the session's current state.
    Recoverable: the caller should present the control as disabled.
    """

    def __init__(self, operation: str, state: str, reason: str = "") -> None:
        self.operation = operation
        self.state = state
        self.reason = reason
        message = f"'{operation}' not allowed in state {state}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class InvalidTransitionError(InvalidOperationError):
    """Raised by the state machine for a (state, action) pair it does not know."""


class PersistenceError(ExamError):
    """Storage or serialization failure. Logged, never fatal."""
