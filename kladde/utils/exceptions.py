"""
Custom exceptions for the Kegelkladde core with user-friendly error messages.
"""

class KladdeException(Exception):
    """Base exception for kladde-related errors."""
    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.user_message = user_message or message

class ValidationError(KladdeException):
    """Raised when input is malformed or out of range. Nothing has been written."""
    def __init__(self, field: str, reason: str, user_message: str = None):
        super().__init__(
            f"Invalid value for '{field}': {reason}",
            user_message or f"❌ Ungültige Eingabe für {field}: {reason}"
        )
        self.field = field
        self.reason = reason

class FieldNotEditableError(ValidationError):
    """Raised when a field is written that the gameday status does not allow."""
    def __init__(self, field: str, status):
        super().__init__(
            field,
            f"not editable while gameday is {status.name}",
            f"❌ {field} kann im Status '{status.label}' nicht bearbeitet werden."
        )
        self.status = status

class InvalidTransitionError(KladdeException):
    """Raised when a status advance or revert hits the end of the lifecycle."""
    def __init__(self, status, direction: str):
        if direction == 'advance':
            user_message = "❌ Status kann nicht weiter erhöht werden."
        else:
            user_message = "❌ Status kann nicht weiter zurückgesetzt werden."
        super().__init__(
            f"Cannot {direction} gameday status from {status.name}",
            user_message
        )
        self.status = status
        self.direction = direction

class NotFoundError(KladdeException):
    """Raised when a referenced gameday, member or row does not exist."""
    def __init__(self, entity: str, entity_id):
        super().__init__(
            f"{entity} {entity_id} not found",
            f"❌ {entity} {entity_id} nicht gefunden."
        )
        self.entity = entity
        self.entity_id = entity_id

class ConcurrencyConflict(KladdeException):
    """Raised when the store detects a conflicting simultaneous write."""
    def __init__(self, operation: str, details: str = None):
        super().__init__(
            f"Concurrent modification during {operation}: {details}",
            "❌ Die Zeile wurde gleichzeitig geändert. Bitte erneut versuchen."
        )
        self.operation = operation
