"""Custom exceptions for database and domain operations."""


class DatabaseError(Exception):
    """Base exception for database errors."""
    pass


class DatabaseConnectionError(DatabaseError):
    """Database connection failed."""
    pass


class DatabaseConstraintError(DatabaseError):
    """Database constraint violation (duplicate, foreign key, referential guard)."""
    pass


class DatabaseOperationError(DatabaseError):
    """General database operation failed."""
    pass


class NotFoundError(DatabaseError):
    """Requested entity not found."""
    pass


class ValidationError(DatabaseError):
    """Data validation failed before database operation."""
    pass


class AuthorizationError(DatabaseError):
    """Entity exists but is not owned by the acting user."""
    pass


class EmptyPeriodError(DatabaseError):
    """Invoice requested for a period without billable minutes."""
    pass
