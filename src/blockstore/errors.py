"""Custom exceptions for blockstore.

This module defines typed exceptions for better error handling and clearer
error messages throughout the library. Backend I/O failures are not wrapped;
they propagate as whatever ``OSError`` the backend raised.
"""


class BlockError(RuntimeError):
    """Base class for all block-related errors."""
    pass


# Argument Errors
class InvalidArgumentError(BlockError, ValueError):
    """Malformed option, batch element, or constructor parameter."""
    pass


class InvalidRangeError(InvalidArgumentError):
    """Byte range passed to open() is out of bounds or incomplete."""

    def __init__(self, start, end, size: int):
        self.start = start
        self.end = end
        self.size = size
        super().__init__(
            f"Range [{start!r}, {end!r}) is not valid for a block of {size} bytes; "
            f"both bounds are required and must satisfy 0 <= start <= end <= size"
        )


class NoContentError(BlockError, IOError):
    """Operation requires block content that is not available."""
    pass


# Integrity Errors
class IntegrityError(BlockError):
    """Base class for block integrity failures."""
    pass


class InvalidIdentityError(IntegrityError):
    """Block identifier is not a well-formed digest."""

    def __init__(self, value):
        self.value = value
        super().__init__(f"Block id is not a multihash: {value!r}")


class InvalidSizeError(IntegrityError):
    """Block declared size doesn't match its content."""

    def __init__(self, id, expected, actual):
        self.id = id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Size verification failed for {id}\n"
            f"  Declared: {expected!r}\n"
            f"  Content:  {actual!r}"
        )


class DigestMismatchError(IntegrityError):
    """Block content digest doesn't match its identifier."""

    def __init__(self, expected, actual):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Digest verification failed\n"
            f"  Expected: {expected}\n"
            f"  Got:      {actual}\n"
            f"The block content may be corrupted or tampered with."
        )


# Lifecycle Errors
class LifecycleError(BlockError):
    """Base class for component lifecycle misuse."""
    pass


class NotStartedError(LifecycleError):
    """Store operation issued while the component is not running."""
    pass


class MissingDependencyError(LifecycleError):
    """A required sub-store was not provided."""

    def __init__(self, component: str, dependency: str):
        self.component = component
        self.dependency = dependency
        super().__init__(f"{component} has no {dependency} store configured")
