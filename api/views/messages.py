import logging

from django.http import JsonResponse, HttpResponseNotAllowed
from django.views.decorators.csrf import csrf_exempt

from ..auth import authenticate
from ..constants import DEFAULT_MESSAGES_LIMIT, MAX_MESSAGE_LENGTH
from ..firebase_service import firestore_service
from ..http import json_body, error_response, firestore_unavailable_response, parse_int
from ..notification_helpers import display_name, notify_message
from ..rate_limit import enforce_rate_limit
from ..sanitize import sanitize_text
from ..storage_refs import InvalidMediaReference, assert_storage_reference
from ..utils import serialize_document

logger = logging.getLogger("api")

MESSAGE_MEDIA_TYPES = ("image", "video", "audio")


def _send(request, user, conversation):
    data, error = json_body(request)
    if error:
        return error

    content = data.get("content")
    media_url = data.get("media_url")
    media_type = data.get("media_type")

    if content is not None and not isinstance(content, str):
        return error_response("Invalid content", 400)
    content = (content or "").strip()

    if not content and not media_url:
        return error_response("Message must have content or media", 400)

    if media_url:
        if media_type not in MESSAGE_MEDIA_TYPES:
            return error_response("Invalid media_type", 400, valid=list(MESSAGE_MEDIA_TYPES))
        try:
            assert_storage_reference(media_url)
        except InvalidMediaReference as e:
            logger.error(f"[MESSAGES/SEND] Storage reference validation failed: {e}")
            return error_response("Invalid media reference", 400)
    else:
        media_type = "text"

    message = firestore_service.create_message(
        conversation_id=conversation["id"],
        sender_id=user["uid"],
        content=sanitize_text(content)[:MAX_MESSAGE_LENGTH] if content else None,
        media_url=media_url or None,
        media_type=media_type,
    )
    if not message:
        return error_response("Failed to send message", 500)

    sender_name = display_name(user["uid"])
    for participant_id in conversation.get("participant_ids") or []:
        if participant_id != user["uid"]:
            notify_message(participant_id, user["uid"], sender_name, conversation["id"])

    logger.info(f"[MESSAGES/SEND] Message {message['id']} in {conversation['id']}")
    return JsonResponse({"message": serialize_document(message)}, status=201)


@csrf_exempt
def conversation_messages(request, conversation_id):
    """
    GET returns the latest messages (oldest first) and marks incoming ones
    read; POST sends a text or media message. Participants only.
    """
    logger.info(f"[MESSAGES] {request.method} from {request.META.get('REMOTE_ADDR')}")

    if request.method not in ("GET", "POST"):
        return HttpResponseNotAllowed(["GET", "POST"])

    user, error = authenticate(request)
    if error:
        return error

    limited = enforce_rate_limit("send_message" if request.method == "POST" else "api", user["uid"])
    if limited:
        return limited

    if not firestore_service.is_available():
        return firestore_unavailable_response()

    conversation = firestore_service.get_conversation(conversation_id)
    if not conversation:
        return error_response("conversation_not_found", 404)

    if user["uid"] not in (conversation.get("participant_ids") or []):
        return error_response("not_conversation_participant", 403)

    if request.method == "POST":
        return _send(request, user, conversation)

    limit = parse_int(request.GET.get("limit"), DEFAULT_MESSAGES_LIMIT, minimum=1, maximum=DEFAULT_MESSAGES_LIMIT)
    messages = firestore_service.list_messages(conversation_id, limit)
    if messages is None:
        return error_response("Failed to load messages", 500)

    marked = firestore_service.mark_messages_read(conversation_id, user["uid"])

    return JsonResponse({
        "messages": [serialize_document(message) for message in messages],
        "markedRead": marked,
    })
