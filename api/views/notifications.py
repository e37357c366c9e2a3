import logging

from django.http import JsonResponse, HttpResponseNotAllowed
from django.views.decorators.csrf import csrf_exempt

from ..auth import authenticate
from ..constants import DEFAULT_NOTIFICATIONS_LIMIT
from ..firebase_service import firestore_service
from ..http import json_body, error_response, firestore_unavailable_response, parse_int
from ..rate_limit import enforce_rate_limit
from ..utils import author_summary, serialize_document

logger = logging.getLogger("api")


@csrf_exempt
def notifications_list(request):
    logger.info(f"[NOTIFICATIONS] {request.method} from {request.META.get('REMOTE_ADDR')}")

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

    limit = parse_int(request.GET.get("limit"), DEFAULT_NOTIFICATIONS_LIMIT, minimum=1, maximum=100)
    notifications = firestore_service.list_notifications(user["uid"], limit)
    if notifications is None:
        return error_response("Failed to load notifications", 500)

    items = []
    for notification in notifications:
        item = serialize_document(notification)
        item["actor"] = author_summary(firestore_service.get_profile(notification.get("actor_id")))
        items.append(item)

    return JsonResponse({
        "notifications": items,
        "unreadCount": firestore_service.count_unread_notifications(user["uid"]),
    })


@csrf_exempt
def notifications_read(request):
    """Mark one notification (`notification_id`) or all of them (`all: true`) as read."""
    logger.info(f"[NOTIFICATIONS/READ] {request.method} from {request.META.get('REMOTE_ADDR')}")

    if request.method != "POST":
        return HttpResponseNotAllowed(["POST"])

    user, error = authenticate(request)
    if error:
        return error

    limited = enforce_rate_limit("api", user["uid"])
    if limited:
        return limited

    data, error = json_body(request)
    if error:
        return error

    notification_id = data.get("notification_id")
    mark_all = data.get("all") is True
    if not notification_id and not mark_all:
        return error_response("missing_notification_id", 400)

    if not firestore_service.is_available():
        return firestore_unavailable_response()

    if mark_all:
        updated = firestore_service.mark_all_notifications_read(user["uid"])
        if updated is None:
            return error_response("failed_to_update", 500)
        return JsonResponse({"success": True, "updatedCount": updated})

    marked = firestore_service.mark_notification_read(notification_id, user["uid"])
    if marked is None:
        return error_response("failed_to_update", 500)
    if not marked:
        return error_response("notification_not_found", 404)

    return JsonResponse({"success": True, "updatedCount": 1})


@csrf_exempt
def notifications_delete(request):
    logger.info(f"[NOTIFICATIONS/DELETE] {request.method} from {request.META.get('REMOTE_ADDR')}")

    if request.method != "POST":
        return HttpResponseNotAllowed(["POST"])

    user, error = authenticate(request)
    if error:
        return error

    limited = enforce_rate_limit("api", user["uid"])
    if limited:
        return limited

    data, error = json_body(request)
    if error:
        return error

    notification_id = data.get("notification_id")
    if not notification_id or not isinstance(notification_id, str):
        return error_response("missing_notification_id", 400)

    if not firestore_service.is_available():
        return firestore_unavailable_response()

    deleted = firestore_service.delete_notification(notification_id, user["uid"])
    if deleted is None:
        return error_response("failed_to_delete", 500)
    if not deleted:
        return error_response("notification_not_found", 404)

    logger.info(f"[NOTIFICATIONS/DELETE] {user['uid']} deleted {notification_id}")
    return JsonResponse({"success": True})
