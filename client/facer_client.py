import argparse
import base64
import json
import os
import sys
import time

import requests
from dotenv import load_dotenv

# Load .env from project root (one level up from client/)
load_dotenv(os.path.join(os.path.dirname(__file__), '..', '.env'))

# Optional import for webcam capture
try:
    import cv2
    CV2_AVAILABLE = True
except ImportError:
    CV2_AVAILABLE = False

SERVER_BASE = os.environ.get("FACER_SERVER", "http://localhost:8000").rstrip("/")
API_BASE = f"{SERVER_BASE}/api"
REQUEST_TIMEOUT = 60  # uploads wait on the embedding service


class ApiError(Exception):
    def __init__(self, status, message):
        super().__init__(f"HTTP {status}: {message}")
        self.status = status


def read_image(path):
    """Read an image file as a base64 string."""
    with open(path, "rb") as handle:
        return base64.b64encode(handle.read()).decode("utf-8")


def capture_webcam(device=0):
    """Grab one frame from the webcam as base64 JPEG, or None."""
    if not CV2_AVAILABLE:
        print("Error: OpenCV not available for webcam capture")
        return None
    cam = cv2.VideoCapture(device)
    time.sleep(0.5)  # Let camera warm up
    # Discard a few frames to allow auto-exposure to adjust
    for _ in range(5):
        cam.read()
    ret, frame = cam.read()
    cam.release()
    if not ret:
        print("Error: Failed to capture from webcam")
        return None
    _, buffer = cv2.imencode('.jpg', frame)
    return base64.b64encode(buffer).decode('utf-8')


def call(method, path, payload=None, params=None):
    url = f"{API_BASE}/{path.lstrip('/')}"
    response = requests.request(method, url, json=payload, params=params, timeout=REQUEST_TIMEOUT)
    try:
        body = response.json()
    except ValueError:
        body = {"error": response.text[:200]}
    if response.status_code >= 400:
        raise ApiError(response.status_code, body.get("error", body))
    return body


def image_from_args(args):
    if getattr(args, "webcam", False):
        return capture_webcam()
    return read_image(args.image)


def cmd_health(args):
    return call("GET", "health/")


def cmd_register(args):
    return call("POST", "users/", {
        "provider": args.provider,
        "provider_user_id": args.provider_user_id,
        "nickname": args.nickname,
    })


def cmd_users(args):
    return call("GET", "users/")


def cmd_user_update(args):
    payload = {}
    if args.nickname is not None:
        payload["nickname"] = args.nickname
    if args.image_url is not None:
        payload["profile_image_url"] = args.image_url
    return call("PUT", f"users/{args.user}/", payload)


def cmd_upload(args):
    image = image_from_args(args)
    if image is None:
        raise SystemExit(1)
    return call("POST", "photos/", {"image": image, "user_id": args.user})


def cmd_compare(args):
    return call("POST", "photos/compare/", {"photo_a": args.photo_a, "photo_b": args.photo_b})


def cmd_nearest(args):
    return call("GET", f"photos/{args.photo}/nearest/", params={"k": args.k, "collection": args.collection})


def cmd_contest_create(args):
    return call("POST", "contests/", {"title": args.title, "image": read_image(args.image)})


def cmd_contest_show(args):
    return call("GET", f"contests/{args.contest}/")


def cmd_contest_status(args):
    return call("POST", f"contests/{args.contest}/status/", {"status": args.status})


def cmd_submit(args):
    return call("POST", f"contests/{args.contest}/entries/", {"user_id": args.user, "photo_id": args.photo})


def cmd_rank(args):
    return call("POST", f"contests/{args.contest}/rank/")


def build_parser():
    parser = argparse.ArgumentParser(description="Command-line client for the Facer API")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("health", help="Check server and database").set_defaults(func=cmd_health)

    p = sub.add_parser("register", help="Create or update a user")
    p.add_argument("provider_user_id")
    p.add_argument("nickname")
    p.add_argument("--provider", default="kakao")
    p.set_defaults(func=cmd_register)

    sub.add_parser("users", help="List users").set_defaults(func=cmd_users)

    p = sub.add_parser("user-update", help="Change a user's nickname or profile image")
    p.add_argument("user", type=int)
    p.add_argument("--nickname")
    p.add_argument("--image-url", dest="image_url")
    p.set_defaults(func=cmd_user_update)

    p = sub.add_parser("upload", help="Upload a photo for a user")
    p.add_argument("user", type=int)
    source = p.add_mutually_exclusive_group(required=True)
    source.add_argument("--image", help="Path to a JPEG/PNG file")
    source.add_argument("--webcam", action="store_true", help="Capture from the webcam")
    p.set_defaults(func=cmd_upload)

    p = sub.add_parser("compare", help="Similarity between two photos")
    p.add_argument("photo_a", type=int)
    p.add_argument("photo_b", type=int)
    p.set_defaults(func=cmd_compare)

    p = sub.add_parser("nearest", help="Most similar photos to a photo")
    p.add_argument("photo", type=int)
    p.add_argument("-k", type=int, default=5)
    p.add_argument("--collection", choices=["photos", "targets"], default="photos")
    p.set_defaults(func=cmd_nearest)

    p = sub.add_parser("contest-create", help="Create a contest from a target image")
    p.add_argument("title")
    p.add_argument("image")
    p.set_defaults(func=cmd_contest_create)

    p = sub.add_parser("contest-show", help="Show a contest")
    p.add_argument("contest", type=int)
    p.set_defaults(func=cmd_contest_show)

    p = sub.add_parser("contest-status", help="Move a contest to active or closed")
    p.add_argument("contest", type=int)
    p.add_argument("status", choices=["active", "closed"])
    p.set_defaults(func=cmd_contest_status)

    p = sub.add_parser("submit", help="Submit a user's photo to a contest")
    p.add_argument("contest", type=int)
    p.add_argument("user", type=int)
    p.add_argument("photo", type=int)
    p.set_defaults(func=cmd_submit)

    p = sub.add_parser("rank", help="Rank a contest and store the winners")
    p.add_argument("contest", type=int)
    p.set_defaults(func=cmd_rank)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    try:
        result = args.func(args)
    except ApiError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except requests.RequestException as e:
        print(f"Error: could not reach {SERVER_BASE}: {e}", file=sys.stderr)
        return 1
    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
