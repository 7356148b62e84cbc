"""
Exceptions for the changelog composer and snapshot cache, each carrying a
user-facing message separate from the internal one.
"""

class BoardsException(Exception):
    """Base exception for boards core errors."""
    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.user_message = user_message or message

class FilterResolutionError(BoardsException):
    """Raised when a nickname pattern matches no users."""
    def __init__(self, pattern: str):
        self.pattern = pattern
        super().__init__(
            f"No users found matching nickname pattern '{pattern}'",
            "No users found with specified username pattern."
        )

class StoreError(BoardsException):
    """Raised when the record store or snapshot store fails."""
    def __init__(self, operation: str, details: str = None):
        self.operation = operation
        super().__init__(
            f"Store error during {operation}: {details}",
            "Service temporarily unavailable. Please try again later."
        )
