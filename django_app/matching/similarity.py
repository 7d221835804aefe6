"""Cosine similarity between face embeddings."""

import math

import numpy as np

from .embedding import Embedding
from .errors import DegenerateVector, DimensionMismatch


def _as_vector(value):
    if isinstance(value, Embedding):
        return value.values
    return np.asarray(value, dtype=np.float64).ravel()


def cosine_similarity(a, b):
    """Dot product over the product of magnitudes, in [-1, 1].

    Accepts Embeddings or any numeric sequences of equal length.
    """
    va = _as_vector(a)
    vb = _as_vector(b)
    if va.shape != vb.shape:
        raise DimensionMismatch(f"Cannot compare vectors of length {va.shape[0]} and {vb.shape[0]}")

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0.0 or norm_b == 0.0:
        raise DegenerateVector("Cosine similarity is undefined for a zero-magnitude vector")

    score = float(np.dot(va, vb) / (norm_a * norm_b))
    return min(1.0, max(-1.0, score))


def cosine_distance(a, b):
    """``1 - cosine_similarity``; the ordering key for nearest-neighbour search."""
    return 1.0 - cosine_similarity(a, b)


def to_percent(score):
    """Map a cosine score onto 0..100, rounded half-up. Display only."""
    return int(math.floor((score + 1.0) / 2.0 * 100.0 + 0.5))
