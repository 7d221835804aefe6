import numpy as np

from .errors import DegenerateVector, InvalidEmbeddingShape

EMBEDDING_DIM = 512  # ArcFace-style face descriptors


class Embedding:
    """Fixed-length, read-only face descriptor.

    Values are kept as a float64 numpy array. ``to_literal``/``from_literal``
    are the single serialize/deserialize pair for the ``[v1,v2,...]`` text
    form that pgvector reads and writes.
    """

    __slots__ = ("_values",)

    def __init__(self, values, dim=EMBEDDING_DIM):
        try:
            array = np.array(values, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise InvalidEmbeddingShape(f"Embedding values are not numeric: {e}") from e
        if array.ndim != 1 or array.shape[0] != dim:
            raise InvalidEmbeddingShape(
                f"Embedding must have exactly {dim} values, got shape {array.shape}"
            )
        if not np.all(np.isfinite(array)):
            raise InvalidEmbeddingShape("Embedding contains NaN or infinite values")
        array.flags.writeable = False
        self._values = array

    @property
    def values(self):
        return self._values

    def __len__(self):
        return self._values.shape[0]

    def __iter__(self):
        return iter(self._values.tolist())

    def __eq__(self, other):
        if not isinstance(other, Embedding):
            return NotImplemented
        return np.array_equal(self._values, other._values)

    def __hash__(self):
        return hash(self._values.tobytes())

    def __repr__(self):
        head = ", ".join(f"{v:.4f}" for v in self._values[:3])
        return f"Embedding([{head}, ...], dim={len(self)})"

    def is_zero(self):
        return not np.any(self._values)

    def to_list(self):
        return self._values.tolist()

    def to_literal(self):
        """Serialize as ``[v1,v2,...,vN]`` using shortest round-trip reprs."""
        return "[" + ",".join(repr(float(v)) for v in self._values) + "]"

    @classmethod
    def from_literal(cls, text, dim=EMBEDDING_DIM):
        if not isinstance(text, str):
            raise InvalidEmbeddingShape("Embedding literal must be a string")
        text = text.strip()
        if not (text.startswith("[") and text.endswith("]")):
            raise InvalidEmbeddingShape("Embedding literal must be enclosed in brackets")
        body = text[1:-1].strip()
        if not body:
            raise InvalidEmbeddingShape("Embedding literal is empty")
        try:
            values = [float(part) for part in body.split(",")]
        except ValueError as e:
            raise InvalidEmbeddingShape(f"Malformed embedding literal: {e}") from e
        return cls(values, dim=dim)

    @classmethod
    def coerce(cls, value, dim=EMBEDDING_DIM, nonzero=False):
        """Accept an Embedding, a literal string, or any 1-D sequence/array.

        With ``nonzero`` an all-zero vector raises ``DegenerateVector``.
        """
        embedding = cls._coerce(value, dim)
        if nonzero and embedding.is_zero():
            raise DegenerateVector("Embedding has zero magnitude")
        return embedding

    @classmethod
    def _coerce(cls, value, dim):
        if isinstance(value, cls):
            if len(value) != dim:
                raise InvalidEmbeddingShape(
                    f"Embedding must have exactly {dim} values, got {len(value)}"
                )
            return value
        if isinstance(value, str):
            return cls.from_literal(value, dim=dim)
        if value is None:
            raise InvalidEmbeddingShape("Embedding is missing")
        return cls(value, dim=dim)
