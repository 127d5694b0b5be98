# ABOUTME: Exception hierarchy for the splat conversion pipeline
# ABOUTME: One class per failure kind so callers can report which stage failed


class SplatsError(Exception):
    """Base class for every error raised by the conversion pipeline."""
    pass


class PlyError(SplatsError, ValueError):
    """PLY input could not be decoded."""
    pass


class HeaderMalformedError(PlyError):
    """Header terminator, vertex element, or vertex count is missing or invalid."""
    pass


class BodyMalformedError(PlyError):
    """Vertex data is truncated or a line has too few fields."""
    pass


class InvalidEncodingError(PlyError):
    """Header or ASCII body is not valid UTF-8."""
    pass


class AuthorizationError(SplatsError):
    """Credential rejected: bad key, bad signature, or unusable claims."""
    pass


class TokenExpiredError(AuthorizationError):
    pass


class QuotaExceededError(SplatsError):
    def __init__(self, message: str = "Quota exceeded"):
        super().__init__(message)


class FileTooLargeError(SplatsError):
    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(
            f"File too large: {size} bytes exceeds limit of {limit} bytes"
        )


class SerializationError(SplatsError):
    """Document graph could not be encoded as JSON."""
    pass
