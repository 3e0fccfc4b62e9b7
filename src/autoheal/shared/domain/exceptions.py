"""
Domain exceptions for autoheal.

All application errors should inherit from AutohealError.
"""


class AutohealError(Exception):
    """Base class for all autoheal exceptions."""

    def __init__(self, message: str, context: dict = None):
        super().__init__(message)
        self.context = context or {}


class ConfigurationError(AutohealError):
    """Raised when configuration is invalid or corrupt."""

    pass


class DuplicateRegistrationError(AutohealError):
    """Raised when an action, playbook or protocol name is registered twice."""

    pass


class MissingParameterError(AutohealError):
    """Raised when an action is invoked without one of its required parameters."""

    def __init__(self, action: str, missing: list[str]):
        super().__init__(
            f"Action '{action}' is missing required parameter(s): {', '.join(missing)}",
            context={"action": action, "missing": list(missing)},
        )
        self.action = action
        self.missing = list(missing)


class UnknownActionError(AutohealError):
    """Raised when a remediation or emergency action name is not registered."""

    pass


class UnknownResourceError(AutohealError):
    """Raised when a health sample names a resource that is not tracked."""

    pass
