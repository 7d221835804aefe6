"""Embedding persistence and nearest-neighbour search.

``PgVectorStore`` keeps embeddings on ``Photo`` rows and ranks them with the
pgvector ``<=>`` cosine-distance operator. ``InMemoryVectorStore`` offers the
same interface over plain dictionaries for code paths that run without a
database. Both break distance ties by insertion order.
"""

import logging
from dataclasses import dataclass

from django.db.models.expressions import RawSQL
from pgvector.django import CosineDistance, VectorField

from .embedding import EMBEDDING_DIM, Embedding
from .errors import EmbeddingAlreadyStored, EmptyCollection, NotFound
from .models import Photo
from .similarity import cosine_distance

logger = logging.getLogger(__name__)

PHOTOS = "photos"    # photos uploaded by users
TARGETS = "targets"  # contest target photos (no owner)
COLLECTIONS = (PHOTOS, TARGETS)


@dataclass(frozen=True)
class Neighbor:
    entity_id: int
    distance: float

    @property
    def similarity(self):
        return 1.0 - self.distance

    def as_dict(self):
        return {
            "id": self.entity_id,
            "distance": self.distance,
            "similarity": self.similarity,
        }


def _check_query(collection, k):
    if collection not in COLLECTIONS:
        raise ValueError(f"Unknown collection '{collection}', expected one of {COLLECTIONS}")
    if k < 1:
        raise ValueError("k must be at least 1")


class VectorStore:
    def store(self, entity_id, embedding):
        raise NotImplementedError

    def get(self, entity_id):
        raise NotImplementedError

    def find_nearest(self, query_embedding, collection, k, exclude=()):
        raise NotImplementedError


class PgVectorStore(VectorStore):
    """Embeddings stored in the ``matching_photo.embedding`` vector column."""

    def _collection(self, name):
        if name == PHOTOS:
            return Photo.objects.filter(owner__isnull=False)
        return Photo.objects.filter(owner__isnull=True)

    def store(self, entity_id, embedding):
        embedding = Embedding.coerce(embedding, nonzero=True)
        updated = (
            Photo.objects
            .filter(pk=entity_id, embedding__isnull=True)
            .update(embedding=embedding.values)
        )
        if updated:
            logger.debug("Stored embedding for photo #%s", entity_id)
            return
        if Photo.objects.filter(pk=entity_id).exists():
            raise EmbeddingAlreadyStored(f"Photo {entity_id} already has an embedding")
        raise NotFound(f"Photo {entity_id} not found")

    def get(self, entity_id):
        row = Photo.objects.filter(pk=entity_id).values_list("embedding", flat=True).first()
        if row is None:
            raise NotFound(f"No embedding stored for photo {entity_id}")
        return Embedding.coerce(row)

    def find_nearest(self, query_embedding, collection, k, exclude=()):
        _check_query(collection, k)
        query = Embedding.coerce(query_embedding, nonzero=True)

        candidates = self._collection(collection).filter(embedding__isnull=False)
        if exclude:
            candidates = candidates.exclude(pk__in=list(exclude))
        if not candidates.exists():
            raise EmptyCollection(f"No stored embeddings in '{collection}'")

        literal = RawSQL("%s::vector", (query.to_literal(),), output_field=VectorField(dimensions=EMBEDDING_DIM))
        rows = (
            candidates
            .annotate(distance=CosineDistance("embedding", literal))
            .order_by("distance", "pk")
            .values_list("pk", "distance")[:k]
        )
        return [Neighbor(entity_id=pk, distance=float(distance)) for pk, distance in rows]


class InMemoryVectorStore(VectorStore):
    """Dictionary-backed store; dicts keep insertion order for tie-breaks."""

    def __init__(self):
        self._collections = {name: {} for name in COLLECTIONS}

    def store(self, entity_id, embedding, collection=PHOTOS):
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection '{collection}', expected one of {COLLECTIONS}")
        embedding = Embedding.coerce(embedding, nonzero=True)
        if any(entity_id in members for members in self._collections.values()):
            raise EmbeddingAlreadyStored(f"Entity {entity_id} already has an embedding")
        self._collections[collection][entity_id] = embedding

    def get(self, entity_id):
        for members in self._collections.values():
            if entity_id in members:
                return members[entity_id]
        raise NotFound(f"No embedding stored for entity {entity_id}")

    def find_nearest(self, query_embedding, collection, k, exclude=()):
        _check_query(collection, k)
        query = Embedding.coerce(query_embedding, nonzero=True)
        excluded = set(exclude)
        candidates = [
            (entity_id, embedding)
            for entity_id, embedding in self._collections[collection].items()
            if entity_id not in excluded
        ]
        if not candidates:
            raise EmptyCollection(f"No stored embeddings in '{collection}'")

        neighbors = [
            Neighbor(entity_id=entity_id, distance=cosine_distance(query, embedding))
            for entity_id, embedding in candidates
        ]
        # list.sort is stable, so equal distances keep insertion order
        neighbors.sort(key=lambda n: n.distance)
        return neighbors[:k]
