# core/exceptions.py


class ImageSearchError(Exception):
    """Base class for all image search errors"""


class NotFound(ImageSearchError):
    """Index file or image directory does not exist"""


class CorruptIndex(ImageSearchError):
    """Index bytes are malformed or truncated"""


class DimensionMismatch(ImageSearchError):
    """Vector length differs from the index feature dimension"""

    def __init__(self, expected: int, actual: int, what: str = "vector"):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{what} has length {actual}, expected {expected}"
        )


class EncodeError(ImageSearchError):
    """External encoder failed to produce an embedding"""


class ImageDecodeError(EncodeError):
    """Image file could not be decoded"""


class PersistenceError(ImageSearchError):
    """Index could not be written to disk"""
