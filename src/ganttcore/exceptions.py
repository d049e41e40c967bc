"""Custom exceptions for ganttcore.

Validation errors are raised synchronously by the engine before any
persistence call is made. Authorization and transport failures are never
raised; they come back from the persistence layer as failed ActionResults.
"""


class GanttError(Exception):
    """Base exception for all ganttcore errors."""

    pass


class ValidationError(GanttError):
    """Raised when a requested mutation is rejected before submission."""

    pass


class SelfDependencyError(ValidationError):
    """Raised when a dependency would link an item to itself."""

    def __init__(self, message: str = "Cannot create a dependency to itself") -> None:
        super().__init__(message)


class HierarchyError(ValidationError):
    """Raised when a parent re-assignment is not allowed."""

    pass


class CircularParentError(HierarchyError):
    """Raised when an item would become its own ancestor."""

    def __init__(self, message: str = "Circular parent reference detected") -> None:
        super().__init__(message)


class MaxDepthExceededError(HierarchyError):
    """Raised when a re-assignment would nest items deeper than allowed."""

    def __init__(self, max_depth: int) -> None:
        super().__init__(f"Maximum nesting depth ({max_depth}) exceeded")
        self.max_depth = max_depth


class MilestoneParentError(HierarchyError):
    """Raised when an item would be placed under a milestone."""

    def __init__(self, message: str = "Milestones cannot have children") -> None:
        super().__init__(message)


class NoPreviousSiblingError(HierarchyError):
    """Raised when indenting an item that has no sibling above it."""

    def __init__(self, message: str = "No previous sibling to indent under") -> None:
        super().__init__(message)


class NoParentError(HierarchyError):
    """Raised when outdenting a top-level item."""

    def __init__(self, message: str = "Item is already at the top level") -> None:
        super().__init__(message)


class ReorderError(ValidationError):
    """Raised when a reorder request cannot be applied."""

    pass


class DragError(ValidationError):
    """Raised when a drag would produce an invalid date span."""

    pass


class PhaseMutationError(ValidationError):
    """Raised when the mutation API is asked to create or delete a fixed phase."""

    pass


class ParseError(GanttError):
    """Raised when a YAML timeline or config file cannot be parsed."""

    pass
