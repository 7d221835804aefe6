import json
import logging

from django.db import DatabaseError
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from . import services
from .errors import FacerError
from .models import UserProfile
from .ranking import rank_entries
from .similarity import to_percent
from .vector_store import COLLECTIONS, PHOTOS

logger = logging.getLogger(__name__)


def _error(e):
    return JsonResponse({"error": str(e), "retryable": e.retryable}, status=e.status_code)


def _load_json(request):
    data = json.loads(request.body or b"{}")
    if not isinstance(data, dict):
        raise ValueError("Request body must be a JSON object")
    return data


def _user_json(profile):
    return {
        "id": profile.pk,
        "provider": profile.provider,
        "provider_user_id": profile.provider_user_id,
        "nickname": profile.nickname,
        "profile_image_url": profile.profile_image_url,
        "created_at": profile.created_at.isoformat(),
        "updated_at": profile.updated_at.isoformat(),
    }


def _photo_json(photo):
    return {
        "id": photo.pk,
        "user_id": photo.owner_id,
        "image_path": photo.image_path,
        "facial_area": photo.facial_area,
        "facial_confidence": photo.facial_confidence,
        "created_at": photo.created_at.isoformat(),
    }


def _contest_json(contest):
    return {
        "id": contest.pk,
        "title": contest.title,
        "status": contest.status,
        "target_photo_id": contest.target_photo_id,
        "winners": {
            "first": contest.first_place_id,
            "second": contest.second_place_id,
            "third": contest.third_place_id,
        },
        "ranking_version": contest.ranking_version,
        "ranked_at": contest.ranked_at.isoformat() if contest.ranked_at else None,
        "entries": contest.entries.count(),
        "created_at": contest.created_at.isoformat(),
    }


@require_http_methods(["GET"])
def health(request):
    """Database connectivity and pgvector extension check."""
    try:
        return JsonResponse({"status": "ok", **services.check_database()})
    except DatabaseError as e:
        logger.error("Database check failed: %s", e)
        return JsonResponse({"status": "error", "error": str(e)}, status=503)


@csrf_exempt
@require_http_methods(["GET", "POST"])
def users(request):
    """List users or register a provider account.

    POST: {"provider": "kakao", "provider_user_id": "123", "nickname": "Name",
           "profile_image_url": "https://..."}
    """
    try:
        if request.method == "POST":
            data = _load_json(request)
            profile, created = services.upsert_user(
                provider=data.get("provider", "kakao"),
                provider_user_id=data.get("provider_user_id"),
                nickname=(data.get("nickname") or "").strip(),
                profile_image_url=data.get("profile_image_url", ""),
            )
            return JsonResponse(_user_json(profile), status=201 if created else 200)

        all_users = UserProfile.objects.all().order_by("-created_at", "-pk")
        return JsonResponse({"users": [_user_json(u) for u in all_users]})

    except FacerError as e:
        return _error(e)
    except json.JSONDecodeError:
        return JsonResponse({"error": "Invalid JSON in request body"}, status=400)
    except ValueError as e:
        return JsonResponse({"error": str(e)}, status=400)
    except Exception as e:
        logger.exception("Error in users view")
        return JsonResponse({"error": str(e)}, status=500)


@csrf_exempt
@require_http_methods(["GET", "PUT", "DELETE"])
def user_detail(request, user_id):
    """Fetch, update or delete one user.

    PUT: {"nickname": "New name", "profile_image_url": "https://..."}
    """
    try:
        if request.method == "PUT":
            data = _load_json(request)
            profile = services.update_user(
                user_id,
                nickname=data.get("nickname"),
                profile_image_url=data.get("profile_image_url"),
            )
            return JsonResponse(_user_json(profile))

        profile = services.get_user(user_id)
        if request.method == "DELETE":
            nickname = profile.nickname
            profile.delete()
            return JsonResponse({"status": "deleted", "user": nickname})
        return JsonResponse({
            **_user_json(profile),
            "photos": [_photo_json(p) for p in profile.photos.order_by("pk")],
        })
    except FacerError as e:
        return _error(e)
    except json.JSONDecodeError:
        return JsonResponse({"error": "Invalid JSON in request body"}, status=400)
    except ValueError as e:
        return JsonResponse({"error": str(e)}, status=400)
    except Exception as e:
        logger.exception("Error in user_detail view")
        return JsonResponse({"error": str(e)}, status=500)


@csrf_exempt
@require_http_methods(["POST"])
def photos(request):
    """Upload a photo and compute its face embedding.

    POST: {"image": "<base64 JPEG/PNG>", "user_id": 1}
    """
    try:
        data = _load_json(request)
        photo = services.upload_photo(data.get("image"), owner_id=data.get("user_id"))
        return JsonResponse(_photo_json(photo), status=201)

    except FacerError as e:
        return _error(e)
    except json.JSONDecodeError:
        return JsonResponse({"error": "Invalid JSON in request body"}, status=400)
    except ValueError as e:
        return JsonResponse({"error": str(e)}, status=400)
    except Exception as e:
        logger.exception("Error in photos view")
        return JsonResponse({"error": str(e)}, status=500)


@csrf_exempt
@require_http_methods(["POST"])
def compare(request):
    """Similarity between two stored photos.

    POST: {"photo_a": 1, "photo_b": 2}
    Returns: {"similarity": 0.83, "percent": 92}
    """
    try:
        data = _load_json(request)
        if data.get("photo_a") is None or data.get("photo_b") is None:
            return JsonResponse({"error": "photo_a and photo_b are required"}, status=400)

        score = services.compare_photos(data["photo_a"], data["photo_b"])
        return JsonResponse({"similarity": score, "percent": to_percent(score)})

    except FacerError as e:
        return _error(e)
    except json.JSONDecodeError:
        return JsonResponse({"error": "Invalid JSON in request body"}, status=400)
    except ValueError as e:
        return JsonResponse({"error": str(e)}, status=400)
    except Exception as e:
        logger.exception("Error in compare view")
        return JsonResponse({"error": str(e)}, status=500)


@require_http_methods(["GET"])
def nearest(request, photo_id):
    """GET /api/photos/<id>/nearest/?k=5&collection=photos"""
    try:
        collection = request.GET.get("collection", PHOTOS)
        if collection not in COLLECTIONS:
            return JsonResponse({"error": f"collection must be one of {list(COLLECTIONS)}"}, status=400)
        k = request.GET.get("k")
        neighbors = services.nearest_photos(photo_id, collection=collection, k=int(k) if k else None)
        return JsonResponse({
            "photo_id": photo_id,
            "collection": collection,
            "neighbors": [
                {**n.as_dict(), "percent": to_percent(n.similarity)} for n in neighbors
            ],
        })

    except FacerError as e:
        return _error(e)
    except ValueError as e:
        return JsonResponse({"error": str(e)}, status=400)
    except Exception as e:
        logger.exception("Error in nearest view")
        return JsonResponse({"error": str(e)}, status=500)


@csrf_exempt
@require_http_methods(["POST"])
def contests(request):
    """Create a contest from a target image.

    POST: {"title": "Look-alike of the week", "image": "<base64 JPEG/PNG>"}
    """
    try:
        data = _load_json(request)
        contest = services.create_contest(data.get("title"), data.get("image"))
        return JsonResponse(_contest_json(contest), status=201)

    except FacerError as e:
        return _error(e)
    except json.JSONDecodeError:
        return JsonResponse({"error": "Invalid JSON in request body"}, status=400)
    except ValueError as e:
        return JsonResponse({"error": str(e)}, status=400)
    except Exception as e:
        logger.exception("Error in contests view")
        return JsonResponse({"error": str(e)}, status=500)


@require_http_methods(["GET"])
def contest_detail(request, contest_id):
    try:
        return JsonResponse(_contest_json(services.get_contest(contest_id)))
    except FacerError as e:
        return _error(e)
    except Exception as e:
        logger.exception("Error in contest_detail view")
        return JsonResponse({"error": str(e)}, status=500)


@csrf_exempt
@require_http_methods(["POST"])
def contest_status(request, contest_id):
    """POST: {"status": "active"} or {"status": "closed"}"""
    try:
        data = _load_json(request)
        contest = services.transition_contest(contest_id, data.get("status"))
        return JsonResponse(_contest_json(contest))

    except FacerError as e:
        return _error(e)
    except json.JSONDecodeError:
        return JsonResponse({"error": "Invalid JSON in request body"}, status=400)
    except ValueError as e:
        return JsonResponse({"error": str(e)}, status=400)
    except Exception as e:
        logger.exception("Error in contest_status view")
        return JsonResponse({"error": str(e)}, status=500)


@csrf_exempt
@require_http_methods(["POST"])
def contest_entries(request, contest_id):
    """Submit (or re-submit) a photo to a contest.

    POST: {"user_id": 1, "photo_id": 7}
    """
    try:
        data = _load_json(request)
        if data.get("user_id") is None or data.get("photo_id") is None:
            return JsonResponse({"error": "user_id and photo_id are required"}, status=400)

        entry = services.submit_entry(contest_id, data["user_id"], data["photo_id"])
        return JsonResponse({
            "entry_id": entry.pk,
            "contest_id": entry.contest_id,
            "user_id": entry.user_id,
            "photo_id": entry.photo_id,
            "similarity": entry.similarity,
            "percent": to_percent(entry.similarity),
            "submitted_at": entry.submitted_at.isoformat(),
        }, status=201)

    except FacerError as e:
        return _error(e)
    except json.JSONDecodeError:
        return JsonResponse({"error": "Invalid JSON in request body"}, status=400)
    except ValueError as e:
        return JsonResponse({"error": str(e)}, status=400)
    except Exception as e:
        logger.exception("Error in contest_entries view")
        return JsonResponse({"error": str(e)}, status=500)


@csrf_exempt
@require_http_methods(["POST"])
def contest_rank(request, contest_id):
    """Rank entries and store the top three on the contest."""
    try:
        board = rank_entries(contest_id)
        return JsonResponse({"contest_id": contest_id, **board.as_dict()})
    except FacerError as e:
        return _error(e)
    except Exception as e:
        logger.exception("Error in contest_rank view")
        return JsonResponse({"error": str(e)}, status=500)
