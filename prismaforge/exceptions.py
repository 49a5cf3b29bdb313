"""
PrismaForge Custom Exceptions

This module defines custom exception classes used throughout PrismaForge.
"""


class PrismaForgeError(Exception):
    """Base exception for all PrismaForge errors."""
    pass


class StrictModeError(PrismaForgeError):
    """
    Raised when strict mode encounters a recognized but malformed SQL statement.

    Attributes:
        statement: The SQL statement that failed to parse
        reason: Description of why parsing failed
    """
    def __init__(self, statement: str, reason: str = "Failed to parse statement"):
        self.statement = statement
        self.reason = reason
        # Truncate long statements for readability
        display_stmt = statement[:100] + "..." if len(statement) > 100 else statement
        super().__init__(f"{reason}: {display_stmt}")


class GenerationError(PrismaForgeError):
    """Raised when the generator is configured with unsupported options."""
    pass
