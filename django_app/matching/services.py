"""Request-scoped workflows: photos, comparisons, contests and entries.

Every function takes its collaborators (embedding client, vector store) as
optional arguments and falls back to the configured defaults, so callers can
swap in fakes without touching module state.
"""

import base64
import binascii
import logging
import uuid

import cv2
import numpy as np
from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.db import connection, transaction
from django.utils import timezone

from .embedding_client import get_embedding_client
from .errors import ContestStateError, InvalidImage, NotFound
from .models import Contest, ContestEntry, Photo, UserProfile
from .similarity import cosine_similarity
from .vector_store import PHOTOS, PgVectorStore

logger = logging.getLogger(__name__)

JPEG_QUALITY = 90

# Forward-only lifecycle: created -> active -> closed
ALLOWED_TRANSITIONS = {
    Contest.Status.CREATED.value: {Contest.Status.ACTIVE.value},
    Contest.Status.ACTIVE.value: {Contest.Status.CLOSED.value},
    Contest.Status.CLOSED.value: set(),
}


def _b64_to_numpy(image_b64):
    """Decode a base64 JPEG/PNG string (optionally a data URL) into a BGR array."""
    if not image_b64 or not isinstance(image_b64, str):
        raise InvalidImage("No image provided")
    if image_b64.startswith("data:"):
        image_b64 = image_b64.split(",", 1)[-1]
    try:
        image_bytes = base64.b64decode(image_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImage(f"Image is not valid base64: {e}") from e
    if not image_bytes:
        raise InvalidImage("Image is empty")

    nparr = np.frombuffer(image_bytes, np.uint8)
    img = cv2.imdecode(nparr, cv2.IMREAD_COLOR)
    if img is None:
        raise InvalidImage("Image could not be decoded (expected JPEG or PNG)")
    return img


def _encode_jpeg(img):
    ok, buffer = cv2.imencode(".jpg", img, [int(cv2.IMWRITE_JPEG_QUALITY), JPEG_QUALITY])
    if not ok:
        raise InvalidImage("Image could not be re-encoded as JPEG")
    return buffer.tobytes()


def get_user(user_id):
    try:
        return UserProfile.objects.get(pk=user_id)
    except UserProfile.DoesNotExist:
        raise NotFound(f"User {user_id} not found")


def get_contest(contest_id):
    try:
        return Contest.objects.select_related("target_photo").get(pk=contest_id)
    except Contest.DoesNotExist:
        raise NotFound(f"Contest {contest_id} not found")


def upsert_user(provider, provider_user_id, nickname, profile_image_url=""):
    """Find the user for a provider account or create it; refreshes the nickname.

    Returns (UserProfile, created).
    """
    if not provider_user_id or not nickname:
        raise ValueError("provider_user_id and nickname are required")
    profile, created = UserProfile.objects.update_or_create(
        provider=provider,
        provider_user_id=str(provider_user_id),
        defaults={"nickname": nickname, "profile_image_url": profile_image_url or ""},
    )
    logger.info("%s user #%d (%s:%s)", "Created" if created else "Updated",
                profile.pk, provider, provider_user_id)
    return profile, created


def update_user(user_id, nickname=None, profile_image_url=None):
    """Change the nickname and/or profile image of an existing user."""
    profile = get_user(user_id)
    fields = []
    if nickname is not None:
        nickname = str(nickname).strip()
        if not nickname:
            raise ValueError("nickname cannot be empty")
        profile.nickname = nickname
        fields.append("nickname")
    if profile_image_url is not None:
        profile.profile_image_url = str(profile_image_url)
        fields.append("profile_image_url")
    if not fields:
        raise ValueError("Nothing to update: send nickname or profile_image_url")
    profile.save(update_fields=fields + ["updated_at"])
    logger.info("Updated user #%d (%s)", profile.pk, ", ".join(fields))
    return profile


def upload_photo(image_b64, owner_id=None, client=None, store=None):
    """Embed an image and persist it as a Photo with its embedding.

    Photos without an owner are contest targets.
    """
    client = client or get_embedding_client()
    store = store or PgVectorStore()
    owner = get_user(owner_id) if owner_id is not None else None

    jpeg = _encode_jpeg(_b64_to_numpy(image_b64))
    result = client.embed(jpeg)

    folder = "photos" if owner else "targets"
    image_path = default_storage.save(f"{folder}/{uuid.uuid4().hex}.jpg", ContentFile(jpeg))

    try:
        with transaction.atomic():
            photo = Photo.objects.create(
                owner=owner,
                image_path=image_path,
                facial_area=result.facial_area,
                facial_confidence=result.facial_confidence,
            )
            store.store(photo.pk, result.embedding)
    except Exception:
        # No row points at the file once the transaction is rolled back
        default_storage.delete(image_path)
        raise

    logger.info("Stored photo #%d for %s", photo.pk, owner.nickname if owner else "contest target")
    return photo


def compare_photos(photo_a_id, photo_b_id, store=None):
    """Raw cosine similarity between two stored photo embeddings."""
    store = store or PgVectorStore()
    return cosine_similarity(store.get(photo_a_id), store.get(photo_b_id))


def nearest_photos(photo_id, collection=PHOTOS, k=None, store=None):
    """Photos in ``collection`` most similar to ``photo_id``, excluding itself."""
    store = store or PgVectorStore()
    if k is None:
        k = settings.FACER_NEAREST_DEFAULT_K
    k = min(int(k), settings.FACER_NEAREST_MAX_K)
    query = store.get(photo_id)
    return store.find_nearest(query, collection, k, exclude=(photo_id,))


def create_contest(title, image_b64, client=None, store=None):
    title = (title or "").strip()
    if not title:
        raise ValueError("Contest title is required")
    target = upload_photo(image_b64, owner_id=None, client=client, store=store)
    contest = Contest.objects.create(title=title, target_photo=target)
    logger.info("Created contest #%d '%s' (target photo #%d)", contest.pk, title, target.pk)
    return contest


def transition_contest(contest_id, status):
    if status not in Contest.Status.values:
        raise ContestStateError(f"Unknown contest status '{status}'")

    with transaction.atomic():
        try:
            contest = Contest.objects.select_for_update().get(pk=contest_id)
        except Contest.DoesNotExist:
            raise NotFound(f"Contest {contest_id} not found")

        if status not in ALLOWED_TRANSITIONS[str(contest.status)]:
            raise ContestStateError(
                f"Contest {contest_id} cannot move from '{contest.status}' to '{status}'"
            )
        previous = contest.status
        contest.status = status
        contest.save(update_fields=["status"])

    logger.info("Contest #%d: %s -> %s", contest.pk, previous, status)
    return contest


def submit_entry(contest_id, user_id, photo_id, store=None):
    """Score a user's photo against the contest target and record the entry.

    A second submission by the same user replaces the photo, the score and
    the submission time.
    """
    store = store or PgVectorStore()

    with transaction.atomic():
        try:
            contest = Contest.objects.select_for_update().get(pk=contest_id)
        except Contest.DoesNotExist:
            raise NotFound(f"Contest {contest_id} not found")

        if settings.FACER_ENTRY_REQUIRES_ACTIVE and contest.status != Contest.Status.ACTIVE:
            raise ContestStateError(
                f"Contest {contest_id} is '{contest.status}' and not accepting entries"
            )

        user = get_user(user_id)
        photo = Photo.objects.filter(pk=photo_id, owner=user).first()
        if photo is None:
            raise NotFound(f"Photo {photo_id} not found for user {user_id}")

        score = cosine_similarity(store.get(photo.pk), store.get(contest.target_photo_id))
        entry, created = ContestEntry.objects.update_or_create(
            contest=contest,
            user=user,
            defaults={"photo": photo, "similarity": score, "submitted_at": timezone.now()},
        )

    logger.info(
        "%s entry #%d: user #%d in contest #%d (similarity=%.4f)",
        "New" if created else "Replaced", entry.pk, user.pk, contest.pk, score,
    )
    return entry


def check_database():
    """Connection check plus pgvector extension presence on PostgreSQL."""
    with connection.cursor() as cursor:
        cursor.execute("SELECT 1")
        pgvector = None
        if connection.vendor == "postgresql":
            cursor.execute("SELECT 1 FROM pg_extension WHERE extname = 'vector'")
            pgvector = cursor.fetchone() is not None
            if not pgvector:
                logger.warning("pgvector extension is NOT active; run CREATE EXTENSION vector")
    return {"database": "ok", "vendor": connection.vendor, "pgvector": pgvector}
