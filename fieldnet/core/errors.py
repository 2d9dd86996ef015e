"""Error taxonomy for the field classifier."""

from __future__ import annotations


class ClassifierError(Exception):
    """Base class for every error raised by fieldnet."""


class DimensionMismatch(ClassifierError, ValueError):
    """Raised when a feature vector does not match the configured input size."""

    def __init__(self, expected: int, got: int) -> None:
        super().__init__(f"Expected {expected} features, got {got}")
        self.expected = expected
        self.got = got


class UnknownLabel(ClassifierError, ValueError):
    """Raised when a training label lies outside the label space."""

    def __init__(self, label: object, num_classes: int) -> None:
        super().__init__(f"Unknown label {label!r}; label space has {num_classes} classes")
        self.label = label
        self.num_classes = num_classes


class NotInitialized(ClassifierError, RuntimeError):
    """Raised when an operation needs weights that were never set."""


class PersistenceFailure(ClassifierError, RuntimeError):
    """Raised by storage adapters when snapshot I/O fails."""


class IncompatibleSnapshotVersion(ClassifierError):
    """Raised when a stored snapshot does not fit the current architecture."""

    def __init__(self, found: object, expected: object, reason: str = "") -> None:
        message = f"Snapshot version {found!r} is incompatible with {expected!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.found = found
        self.expected = expected


__all__ = [
    "ClassifierError",
    "DimensionMismatch",
    "IncompatibleSnapshotVersion",
    "NotInitialized",
    "PersistenceFailure",
    "UnknownLabel",
]
