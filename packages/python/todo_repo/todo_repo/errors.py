"""Domain-level errors for the todo repository."""


class TodoError(Exception):
    """Base class for failures reported by the todo tree engine."""


class TodoNotFoundError(TodoError):
    """Raised when a todo (or a referenced parent) cannot be located."""


class InvalidOperationError(TodoError):
    """Raised when an operation would break the forest shape."""


class TodoValidationError(TodoError):
    """Raised when input is missing or malformed."""


class StoreFailureError(TodoError):
    """Raised when the document store fails or affects fewer records than expected."""
