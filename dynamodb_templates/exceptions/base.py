from typing import Any, Dict, Optional


class DynamoDBTemplatesError(Exception):
    """Root of every error a store or bound operation raises.

    Attributes:
        message: Human-readable error message
        original_error: The exception this one wraps, if any
        context: Structured details (operation, table, code, ...)
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.original_error = original_error
        self.context = dict(context or {})
        super().__init__(message)

    def add_context(self, **details: Any) -> 'DynamoDBTemplatesError':
        """Attach details without overwriting ones already recorded."""
        for key, value in details.items():
            self.context.setdefault(key, value)
        return self

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{key}={value}" for key, value in self.context.items())
        return f"{self.message} (Context: {details})"

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, "
            f"original_error={self.original_error!r}, context={self.context!r})"
        )
