"""
ComplyWatch Custom Exceptions

Centralized exception classes for error handling.
"""


class ComplyWatchError(Exception):
    """Base exception for all ComplyWatch errors."""
    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


# ============================================================================
# Policy Exceptions
# ============================================================================

class PolicyEvaluationError(ComplyWatchError):
    """Error evaluating a security policy."""
    pass


class ActionExecutionError(ComplyWatchError):
    """A remediation action could not be carried out."""
    pass


class UnknownActionTypeError(ActionExecutionError):
    """Action type is not part of the supported set."""
    pass


class InvalidActionConfigError(ActionExecutionError):
    """Action configuration is missing required values."""
    pass
