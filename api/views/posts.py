import logging

from django.http import JsonResponse, HttpResponseNotAllowed
from django.views.decorators.csrf import csrf_exempt

from ..auth import authenticate
from ..constants import (
    DEFAULT_FEED_LIMIT,
    MAX_COMMENT_LENGTH,
    MAX_FEED_LIMIT,
    MAX_POST_CONTENT_LENGTH,
)
from ..firebase_service import firestore_service
from ..http import json_body, error_response, firestore_unavailable_response, parse_int
from ..notification_helpers import (
    display_name,
    notify_mentions,
    notify_post_comment,
    notify_post_like,
    notify_post_share,
)
from ..rate_limit import enforce_rate_limit
from ..sanitize import sanitize_text, sanitize_uuid
from ..storage_refs import InvalidMediaReference, assert_storage_reference
from ..utils import author_summary, serialize_document

logger = logging.getLogger("api")

MEDIA_TYPES = ("image", "video", "audio")


def _with_author(post: dict) -> dict:
    data = serialize_document(post)
    data["author"] = author_summary(firestore_service.get_profile(post.get("author_id")))
    return data


@csrf_exempt
def post_create(request):
    """
    Create a post for the authenticated user.

    Content is HTML-escaped and truncated; media fields must be storage
    references or external URLs.
    """
    logger.info(f"[POSTS/CREATE] {request.method} from {request.META.get('REMOTE_ADDR')}")

    if request.method != "POST":
        return HttpResponseNotAllowed(["POST"])

    user, error = authenticate(request)
    if error:
        return error

    limited = enforce_rate_limit("create_post", user["uid"])
    if limited:
        return limited

    data, error = json_body(request)
    if error:
        return error

    content = data.get("content")
    image_url = data.get("image_url")
    video_url = data.get("video_url")
    media_type = data.get("media_type")
    shared_post_id = data.get("shared_post_id")

    if shared_post_id:
        shared_post_id = sanitize_uuid(shared_post_id)
        if not shared_post_id:
            return error_response("Invalid shared_post_id format", 400)

    if content is not None and not isinstance(content, str):
        return error_response("Invalid content", 400)
    raw_content = content or ""
    if content:
        content = sanitize_text(content)[:MAX_POST_CONTENT_LENGTH]

    if not content and not image_url and not video_url and not shared_post_id:
        return error_response("Post must have content or media", 400)

    if media_type is not None and media_type not in MEDIA_TYPES:
        return error_response("Invalid media_type", 400)

    try:
        assert_storage_reference(image_url)
        assert_storage_reference(video_url)
    except InvalidMediaReference as e:
        logger.error(f"[POSTS/CREATE] Storage reference validation failed: {e}")
        return error_response("Invalid media reference", 400)

    if not firestore_service.is_available():
        return firestore_unavailable_response()

    shared_post = None
    if shared_post_id:
        shared_post = firestore_service.get_post(shared_post_id)
        if not shared_post:
            return error_response("Shared post not found", 404)

    post = firestore_service.create_post(
        author_id=user["uid"],
        content=(content or "").strip(),
        image_url=image_url or None,
        video_url=video_url or None,
        media_type=media_type,
        shared_post_id=shared_post_id,
    )
    if not post:
        return error_response("Failed to create post", 500)

    logger.info(f"[POSTS/CREATE] Post created successfully: {post['id']}")

    author_name = display_name(user["uid"])
    if shared_post:
        notify_post_share(shared_post, user["uid"], author_name, post["id"])
    notify_mentions(raw_content, user["uid"], author_name, "post", "post", post["id"])

    return JsonResponse({"post": serialize_document(post)}, status=201)


@csrf_exempt
def post_feed(request):
    """Newest posts first, each with its author's name and avatar."""
    logger.info(f"[POSTS/FEED] {request.method} from {request.META.get('REMOTE_ADDR')}")

    if request.method != "GET":
        return HttpResponseNotAllowed(["GET"])

    user, error = authenticate(request)
    if error:
        return error

    limited = enforce_rate_limit("api", user["uid"])
    if limited:
        return limited

    if not firestore_service.is_available():
        return firestore_unavailable_response()

    limit = parse_int(request.GET.get("limit"), DEFAULT_FEED_LIMIT, minimum=1, maximum=MAX_FEED_LIMIT)
    offset = parse_int(request.GET.get("offset"), 0, minimum=0)

    posts = firestore_service.list_posts(limit=limit, offset=offset)
    if posts is None:
        return error_response("Failed to load feed", 500)

    return JsonResponse({
        "posts": [_with_author(post) for post in posts],
        "limit": limit,
        "offset": offset,
        "hasMore": len(posts) == limit,
    })


@csrf_exempt
def post_detail(request, post_id):
    logger.info(f"[POSTS/DETAIL] {request.method} from {request.META.get('REMOTE_ADDR')}")

    if request.method != "GET":
        return HttpResponseNotAllowed(["GET"])

    user, error = authenticate(request)
    if error:
        return error

    limited = enforce_rate_limit("api", user["uid"])
    if limited:
        return limited

    if not firestore_service.is_available():
        return firestore_unavailable_response()

    post = firestore_service.get_post(post_id)
    if not post:
        return error_response("post_not_found", 404)

    return JsonResponse({"post": _with_author(post)})


@csrf_exempt
def post_comments(request, post_id):
    """GET lists comments oldest first; POST adds a comment."""
    logger.info(f"[POSTS/COMMENTS] {request.method} from {request.META.get('REMOTE_ADDR')}")

    if request.method not in ("GET", "POST"):
        return HttpResponseNotAllowed(["GET", "POST"])

    user, error = authenticate(request)
    if error:
        return error

    limited = enforce_rate_limit("create_post" if request.method == "POST" else "api", user["uid"])
    if limited:
        return limited

    if not firestore_service.is_available():
        return firestore_unavailable_response()

    post = firestore_service.get_post(post_id)
    if not post:
        return error_response("post_not_found", 404)

    if request.method == "GET":
        limit = parse_int(request.GET.get("limit"), MAX_FEED_LIMIT, minimum=1, maximum=MAX_FEED_LIMIT)
        comments = firestore_service.list_comments(post_id, limit)
        if comments is None:
            return error_response("Failed to load comments", 500)
        return JsonResponse({"comments": [_with_author(comment) for comment in comments]})

    data, error = json_body(request)
    if error:
        return error

    raw_content = data.get("content")
    if not isinstance(raw_content, str) or not raw_content.strip():
        return error_response("Comment must have content", 400)

    content = sanitize_text(raw_content.strip())[:MAX_COMMENT_LENGTH]
    comment = firestore_service.create_comment(post_id, user["uid"], content)
    if not comment:
        return error_response("Failed to create comment", 500)

    logger.info(f"[POSTS/COMMENTS] Comment {comment['id']} on post {post_id}")

    author_name = display_name(user["uid"])
    notify_post_comment(post, user["uid"], author_name)
    notify_mentions(raw_content, user["uid"], author_name, "comment", "post", post_id)

    return JsonResponse({"comment": serialize_document(comment)}, status=201)


@csrf_exempt
def post_like(request, post_id):
    """Toggle the authenticated user's like on a post."""
    logger.info(f"[POSTS/LIKE] {request.method} from {request.META.get('REMOTE_ADDR')}")

    if request.method != "POST":
        return HttpResponseNotAllowed(["POST"])

    user, error = authenticate(request)
    if error:
        return error

    limited = enforce_rate_limit("api", user["uid"])
    if limited:
        return limited

    if not firestore_service.is_available():
        return firestore_unavailable_response()

    post = firestore_service.get_post(post_id)
    if not post:
        return error_response("post_not_found", 404)

    liked = firestore_service.toggle_like(post_id, user["uid"])
    if liked is None:
        return error_response("Failed to update like", 500)

    if liked:
        notify_post_like(post, user["uid"], display_name(user["uid"]))

    likes_count = max(0, (post.get("likes_count") or 0) + (1 if liked else -1))
    return JsonResponse({"postId": post_id, "liked": liked, "likesCount": likes_count})
