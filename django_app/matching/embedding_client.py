"""HTTP client for the external face-embedding service.

The service takes a multipart ``image`` upload and answers with JSON::

    {"embedding": [512 floats], "facial_area": {...}, "facial_confidence": 0.98}
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import requests
from django.conf import settings
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .embedding import Embedding
from .errors import EmbeddingRejected, EmbeddingServiceUnavailable, InvalidEmbeddingShape

logger = logging.getLogger(__name__)

RETRY_STATUSES = (429, 500, 502, 503, 504)


@dataclass
class EmbeddingResult:
    embedding: Embedding
    facial_area: Optional[dict] = field(default=None)
    facial_confidence: Optional[float] = None


def build_session(retries, backoff):
    """Session that retries connection errors and 5xx answers with exponential backoff."""
    retry = Retry(
        total=retries,
        connect=retries,
        read=retries,
        status=retries,
        backoff_factor=backoff,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=frozenset({"POST"}),
        raise_on_status=False,
    )
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class EmbeddingClient:
    def __init__(self, url, timeout=10.0, retries=3, backoff=0.5, session=None):
        self.url = url
        self.timeout = timeout
        self._session = session if session is not None else build_session(retries, backoff)

    def embed(self, image_bytes, filename="image.jpg", content_type="image/jpeg"):
        """Return the validated embedding and face metadata for one image."""
        try:
            response = self._session.post(
                self.url,
                files={"image": (filename, image_bytes, content_type)},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("Embedding service unreachable at %s: %s", self.url, e)
            raise EmbeddingServiceUnavailable(f"Embedding service unreachable: {e}") from e

        if response.status_code >= 500 or response.status_code == 429:
            logger.warning("Embedding service returned %s after retries", response.status_code)
            raise EmbeddingServiceUnavailable(
                f"Embedding service returned status {response.status_code}"
            )
        if response.status_code >= 400:
            detail = _error_detail(response)
            logger.info("Embedding service rejected image (%s): %s", response.status_code, detail)
            raise EmbeddingRejected(detail or f"Embedding service rejected the image ({response.status_code})")

        try:
            payload = response.json()
        except ValueError as e:
            raise InvalidEmbeddingShape("Embedding service returned a non-JSON body") from e
        if not isinstance(payload, dict) or "embedding" not in payload:
            raise InvalidEmbeddingShape("Embedding service response has no 'embedding' array")

        embedding = Embedding.coerce(payload["embedding"], nonzero=True)
        confidence = payload.get("facial_confidence")
        logger.info(
            "Embedding received (confidence: %s)",
            f"{confidence:.2f}" if isinstance(confidence, (int, float)) else "n/a",
        )
        return EmbeddingResult(
            embedding=embedding,
            facial_area=payload.get("facial_area"),
            facial_confidence=float(confidence) if isinstance(confidence, (int, float)) else None,
        )


def _error_detail(response):
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("error") or body.get("detail") or body)
    return str(body)


_client = None


def get_embedding_client():
    """Process-wide client built from settings; the session is safe to share."""
    global _client
    if _client is None:
        _client = EmbeddingClient(
            url=settings.FACER_EMBEDDING_SERVICE_URL,
            timeout=settings.FACER_EMBEDDING_TIMEOUT,
            retries=settings.FACER_EMBEDDING_RETRIES,
            backoff=settings.FACER_EMBEDDING_BACKOFF,
        )
    return _client
