import base64
import math

import cv2
import numpy as np
import pytest

from matching.embedding import EMBEDDING_DIM, Embedding
from matching.embedding_client import EmbeddingResult
from matching.models import Contest, Photo, UserProfile


def angled(degrees, dim=EMBEDDING_DIM):
    """Unit vector at ``degrees`` from the first axis, in the plane of the first two axes."""
    vec = np.zeros(dim)
    vec[0] = math.cos(math.radians(degrees))
    vec[1] = math.sin(math.radians(degrees))
    return vec


class FakeEmbeddingClient:
    """Hands out queued embeddings instead of calling the inference service."""

    def __init__(self, embeddings=None, error=None):
        self.queue = list(embeddings or [])
        self.error = error
        self.calls = []

    def embed(self, image_bytes, filename="image.jpg", content_type="image/jpeg"):
        self.calls.append(image_bytes)
        if self.error is not None:
            raise self.error
        values = self.queue.pop(0) if self.queue else angled(0)
        return EmbeddingResult(
            embedding=Embedding(values),
            facial_area={"x": 1, "y": 2, "w": 3, "h": 4},
            facial_confidence=0.97,
        )


@pytest.fixture
def image_b64():
    ok, buffer = cv2.imencode(".png", np.full((16, 16, 3), 127, dtype=np.uint8))
    assert ok
    return base64.b64encode(buffer.tobytes()).decode("ascii")


@pytest.fixture
def fake_client():
    return FakeEmbeddingClient()


@pytest.fixture
def use_fake_client(monkeypatch, fake_client):
    monkeypatch.setattr("matching.services.get_embedding_client", lambda: fake_client)
    return fake_client


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def factory(nickname=None):
        counter["n"] += 1
        n = counter["n"]
        return UserProfile.objects.create(
            provider="kakao",
            provider_user_id=f"kakao-{n}",
            nickname=nickname or f"user{n}",
        )
    return factory


@pytest.fixture
def make_contest(db):
    def factory(title="Weekly look-alike", status=Contest.Status.CREATED):
        target = Photo.objects.create(owner=None, image_path="targets/t.jpg")
        return Contest.objects.create(title=title, target_photo=target, status=status)
    return factory
