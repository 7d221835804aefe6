"""Error kinds raised by the matching core.

Every error is recoverable at the request boundary: views turn them into a
JSON ``{"error": ...}`` body with the class's ``status_code``. ``retryable``
separates transient dependency failures from permanent data problems.
"""


class FacerError(Exception):
    status_code = 400
    retryable = False


class DimensionMismatch(FacerError, ValueError):
    """Two vectors compared with different lengths."""


class DegenerateVector(FacerError, ValueError):
    """A vector with zero magnitude; cosine is undefined."""


class InvalidEmbeddingShape(FacerError, ValueError):
    """Not exactly EMBEDDING_DIM finite floats."""
    status_code = 422


class InvalidImage(FacerError, ValueError):
    pass


class EmbeddingRejected(FacerError):
    """The embedding service refused the image (e.g. no face detected)."""
    status_code = 422


class EmbeddingServiceUnavailable(FacerError):
    status_code = 503
    retryable = True


class EmbeddingAlreadyStored(FacerError):
    status_code = 409


class EmptyCollection(FacerError):
    status_code = 404


class NotFound(FacerError):
    status_code = 404


class ContestStateError(FacerError):
    status_code = 409
