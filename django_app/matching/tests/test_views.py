import json

import pytest

from matching.errors import EmbeddingServiceUnavailable
from matching.models import Contest

from .conftest import angled

pytestmark = pytest.mark.django_db


def post(client, url, payload):
    return client.post(url, data=json.dumps(payload), content_type="application/json")


def test_health(client):
    response = client.get("/api/health/")
    assert response.status_code == 200
    assert response.json()["database"] == "ok"


def test_create_and_list_users(client):
    response = post(client, "/api/users/", {"provider_user_id": "123", "nickname": "Mina"})
    assert response.status_code == 201
    user_id = response.json()["id"]

    response = post(client, "/api/users/", {"provider_user_id": "123", "nickname": "Mina K"})
    assert response.status_code == 200
    assert response.json()["id"] == user_id

    users = client.get("/api/users/").json()["users"]
    assert [u["nickname"] for u in users] == ["Mina K"]


def test_user_detail_and_delete(client, make_user):
    user = make_user("Jun")
    assert client.get(f"/api/users/{user.pk}/").json()["nickname"] == "Jun"
    assert client.delete(f"/api/users/{user.pk}/").json() == {"status": "deleted", "user": "Jun"}
    assert client.get(f"/api/users/{user.pk}/").status_code == 404


def test_invalid_json(client):
    response = client.post("/api/photos/", data="{nope", content_type="application/json")
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid JSON in request body"


def test_wrong_method(client):
    assert client.get("/api/photos/").status_code == 405


def test_upload_and_compare(client, make_user, image_b64, use_fake_client):
    use_fake_client.queue = [angled(0), angled(90)]
    user = make_user()

    a = post(client, "/api/photos/", {"image": image_b64, "user_id": user.pk})
    b = post(client, "/api/photos/", {"image": image_b64, "user_id": user.pk})
    assert a.status_code == 201
    assert a.json()["user_id"] == user.pk

    response = post(client, "/api/photos/compare/", {"photo_a": a.json()["id"], "photo_b": b.json()["id"]})
    assert response.status_code == 200
    body = response.json()
    assert body["similarity"] == pytest.approx(0.0, abs=1e-6)
    assert body["percent"] == 50


def test_compare_requires_both_ids(client):
    assert post(client, "/api/photos/compare/", {"photo_a": 1}).status_code == 400


def test_upload_bad_image(client, make_user, use_fake_client):
    response = post(client, "/api/photos/", {"image": "bm90IGFuIGltYWdl", "user_id": make_user().pk})
    assert response.status_code == 400
    assert response.json()["retryable"] is False


def test_embedding_service_down(client, make_user, image_b64, use_fake_client):
    use_fake_client.error = EmbeddingServiceUnavailable("Embedding service unreachable")
    response = post(client, "/api/photos/", {"image": image_b64, "user_id": make_user().pk})
    assert response.status_code == 503
    assert response.json()["retryable"] is True


def test_nearest_rejects_unknown_collection(client):
    response = client.get("/api/photos/1/nearest/", {"collection": "friends"})
    assert response.status_code == 400


def test_nearest_missing_photo(client):
    assert client.get("/api/photos/404/nearest/").status_code == 404


def test_contest_flow(client, make_user, image_b64, use_fake_client):
    # target, then one photo per user at increasing angles from it
    use_fake_client.queue = [angled(0), angled(30), angled(10), angled(60)]

    response = post(client, "/api/contests/", {"title": "Twin", "image": image_b64})
    assert response.status_code == 201
    contest = response.json()
    assert contest["status"] == "created"
    contest_id = contest["id"]

    response = post(client, f"/api/contests/{contest_id}/status/", {"status": "active"})
    assert response.json()["status"] == "active"

    users = [make_user() for _ in range(3)]
    for user in users:
        photo = post(client, "/api/photos/", {"image": image_b64, "user_id": user.pk}).json()
        response = post(client, f"/api/contests/{contest_id}/entries/", {"user_id": user.pk, "photo_id": photo["id"]})
        assert response.status_code == 201

    response = post(client, f"/api/contests/{contest_id}/rank/", {})
    assert response.status_code == 200
    board = response.json()
    assert board["first"]["user_id"] == users[1].pk
    assert board["second"]["user_id"] == users[0].pk
    assert board["third"]["user_id"] == users[2].pk
    assert board["version"] == 1

    detail = client.get(f"/api/contests/{contest_id}/").json()
    assert detail["winners"] == {"first": users[1].pk, "second": users[0].pk, "third": users[2].pk}
    assert detail["entries"] == 3


def test_rank_with_one_entry_reports_no_entry(client, make_contest, make_user):
    contest = make_contest()
    user = make_user()
    contest.entries.create(user=user, photo=contest.target_photo, similarity=0.8)

    board = post(client, f"/api/contests/{contest.pk}/rank/", {}).json()
    assert board["first"]["user_id"] == user.pk
    assert board["second"] == {"status": "no_entry"}
    assert board["third"] == {"status": "no_entry"}


def test_invalid_transition_is_conflict(client, make_contest):
    contest = make_contest(status=Contest.Status.CLOSED)
    response = post(client, f"/api/contests/{contest.pk}/status/", {"status": "active"})
    assert response.status_code == 409


def test_rank_unknown_contest(client):
    assert post(client, "/api/contests/999/rank/", {}).status_code == 404


def test_entry_requires_fields(client, make_contest):
    contest = make_contest()
    assert post(client, f"/api/contests/{contest.pk}/entries/", {"user_id": 1}).status_code == 400


def put(client, url, payload):
    return client.put(url, data=json.dumps(payload), content_type="application/json")


def test_update_user(client, make_user):
    user = make_user("Jun")
    response = put(client, f"/api/users/{user.pk}/", {"nickname": "Jun Park"})
    assert response.status_code == 200
    assert response.json()["nickname"] == "Jun Park"
    assert client.get(f"/api/users/{user.pk}/").json()["nickname"] == "Jun Park"


def test_update_user_errors(client, make_user):
    user = make_user()
    assert put(client, "/api/users/9999/", {"nickname": "x"}).status_code == 404
    assert put(client, f"/api/users/{user.pk}/", {}).status_code == 400
    assert put(client, f"/api/users/{user.pk}/", []).status_code == 400


@pytest.mark.parametrize("url", [
    "/api/photos/compare/",
    "/api/contests/1/status/",
    "/api/contests/1/entries/",
])
def test_non_object_body_is_bad_request(client, url):
    response = post(client, url, [])
    assert response.status_code == 400
    assert response.json()["error"] == "Request body must be a JSON object"


def test_non_numeric_ids_are_bad_request(client, make_contest):
    response = post(client, "/api/photos/compare/", {"photo_a": "abc", "photo_b": 1})
    assert response.status_code == 400

    contest = make_contest()
    response = post(client, f"/api/contests/{contest.pk}/entries/", {"user_id": "abc", "photo_id": 1})
    assert response.status_code == 400
