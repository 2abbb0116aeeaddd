"""Custom exceptions for manual tree operations."""


class ManualTreeError(Exception):
    """Base exception for manual tree errors."""

    pass


class ValidationError(ManualTreeError):
    """Raised when input validation fails."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class InvalidMoveError(ManualTreeError):
    """Raised when a structural change would break the tree.

    Covers self-parenting, moving a section under its own descendant,
    reparenting across manuals and exceeding the maximum depth. Kept apart
    from ValidationError so a client can explain why a drop target was refused.
    """

    def __init__(
        self,
        message: str,
        section_id: str | None = None,
        target_id: str | None = None,
    ):
        super().__init__(message)
        self.section_id = section_id
        self.target_id = target_id


class NotFoundError(ManualTreeError):
    """Raised when a manual, section or policy is not found."""

    def __init__(self, resource_type: str, resource_id: str):
        message = f"{resource_type} with ID '{resource_id}' not found"
        super().__init__(message)
        self.resource_type = resource_type
        self.resource_id = resource_id


class DuplicateError(ManualTreeError):
    """Raised when attempting to create a duplicate resource."""

    def __init__(self, resource_type: str, field: str, value: str):
        message = f"{resource_type} with {field} '{value}' already exists"
        super().__init__(message)
        self.resource_type = resource_type
        self.field = field
        self.value = value


class ConflictError(ManualTreeError):
    """Raised when the section tree changed underneath a structural write."""

    def __init__(
        self,
        manual_id: str,
        expected_version: int | None,
        actual_version: int | None = None,
    ):
        message = (
            f"Section tree of manual '{manual_id}' was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )
        super().__init__(message)
        self.manual_id = manual_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class TreeCorruptionError(ManualTreeError):
    """Raised when stored parent links contain a cycle, a dangling parent or duplicate ids."""

    def __init__(self, message: str, section_ids: list[str] | None = None):
        super().__init__(message)
        self.section_ids = section_ids or []


class DatabaseError(ManualTreeError):
    """Raised when a database operation fails. The transaction has been rolled back."""

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.original_error = original_error
