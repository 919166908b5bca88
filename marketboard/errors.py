# marketboard/errors.py
"""Domain errors.

Each one subclasses the builtin that service code raises for the same
situation, so ``except PermissionError`` style handling keeps working.
"""


class ValidationError(ValueError):
    """Bad input: missing field, blank reason, unknown enum value."""


class InvalidTransition(ValidationError):
    def __init__(self, action: str, current) -> None:
        value = getattr(current, "value", current)
        super().__init__(f"cannot {action} a listing in status '{value}'")
        self.action = action
        self.current = current


class UploadError(ValidationError):
    """Rejected file: too big, wrong type, video too long."""


class AccessDenied(PermissionError):
    pass


class NotFoundError(LookupError):
    """Absent, or hidden from the caller. Both look the same from outside."""


class StoreError(RuntimeError):
    """Backend failure. Nothing was applied, safe to retry."""
