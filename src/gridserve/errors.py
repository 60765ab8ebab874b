"""Domain errors raised by the storage service and capability layer.

The HTTP layer maps each of these to a status code in
``gridserve.api.errors``. Anything that is not a ``GridServeError``
(connection failures, I/O errors from the engine) is left to propagate.
"""

from __future__ import annotations


class GridServeError(Exception):
    """Base class for gridserve domain errors."""


class CapabilityInvalidError(GridServeError):
    """Signed capability failed verification (signature, purpose or expiry)."""

    def __init__(self, text: str = "Invalid or expired capability"):
        super().__init__(text)


class IntegrityError(GridServeError):
    """Uploaded bytes do not match the declared checksum."""

    def __init__(self, key: str, expected: str, actual: str):
        self.key = key
        self.expected = expected
        self.actual = actual
        super().__init__(f"Checksum mismatch for '{key}': expected {expected}, got {actual}")


class BlobNotFoundError(GridServeError, FileNotFoundError):
    """No stored object exists under the given key."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Blob not found: {key}")


class RangeNotSatisfiableError(GridServeError):
    """Requested byte range resolves to nothing inside the object."""

    def __init__(self, total_length: int):
        self.total_length = total_length
        super().__init__(f"Range not satisfiable for object of {total_length} bytes")


class ContentMismatchError(GridServeError):
    """Request body disagrees with the type or length declared in the capability."""

    def __init__(self, text: str):
        super().__init__(text)
