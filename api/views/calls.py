import hmac
import logging
import os
import threading
from datetime import timedelta

from django.http import JsonResponse, HttpResponseNotAllowed
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt

from ..auth import authenticate
from ..constants import (
    CALL_ACCEPTED,
    CALL_CANCELLED,
    CALL_DECLINED,
    CALL_ENDED,
    CALL_MISSED,
    CALL_PENDING,
    CALL_TYPES,
    MISSED_TIMEOUT_SECONDS,
)
from ..firebase_service import firestore_service
from ..http import json_body, error_response, firestore_unavailable_response
from ..notification_helpers import display_name
from ..push_service import push_service
from ..rate_limit import enforce_rate_limit
from ..utils import generate_room_id, normalize_datetime, serialize_document

logger = logging.getLogger("api")

_missed_timers = {}
_missed_timers_lock = threading.Lock()


def _schedule_missed_timeout(call_id: str, timeout_seconds: int = MISSED_TIMEOUT_SECONDS) -> None:
    def _timeout_handler():
        try:
            call = firestore_service.get_call_request(call_id)
            if not call or call.get("status") != CALL_PENDING:
                return
            firestore_service.update_call_status(call_id, CALL_MISSED, ended_at=timezone.now())
            logger.info(f"[CALL/TIMEOUT] Call {call_id} missed")
        finally:
            with _missed_timers_lock:
                _missed_timers.pop(call_id, None)

    with _missed_timers_lock:
        existing = _missed_timers.get(call_id)
        if existing:
            existing.cancel()
        timer = threading.Timer(timeout_seconds, _timeout_handler)
        timer.daemon = True
        _missed_timers[call_id] = timer
        timer.start()


def _cancel_missed_timeout(call_id: str) -> None:
    with _missed_timers_lock:
        timer = _missed_timers.pop(call_id, None)
        if timer:
            timer.cancel()


def _load_call(request, tag: str):
    """
    Shared prologue for the call_id based endpoints.

    Returns (user, data, call, None) or (None, None, None, error_response).
    """
    logger.info(f"[CALL/{tag}] {request.method} from {request.META.get('REMOTE_ADDR')}")

    if request.method != "POST":
        return None, None, None, HttpResponseNotAllowed(["POST"])

    user, error = authenticate(request)
    if error:
        return None, None, None, error

    limited = enforce_rate_limit("api", user["uid"])
    if limited:
        return None, None, None, limited

    data, error = json_body(request)
    if error:
        return None, None, None, error

    logger.info(f"[CALL/{tag}] Request data: {data}")

    call_id = data.get("call_id")
    if not call_id:
        return None, None, None, error_response("missing_call_id", 400)

    if not firestore_service.is_available():
        return None, None, None, firestore_unavailable_response()

    call = firestore_service.get_call_request(call_id)
    if not call:
        return None, None, None, error_response("call_not_found", 404)

    if user["uid"] not in (call.get("caller_id"), call.get("receiver_id")):
        return None, None, None, error_response("not_call_participant", 403)

    return user, data, call, None


def _not_pending(call):
    return error_response("call_not_pending", 409, currentStatus=call.get("status"))


@csrf_exempt
def call_request(request):
    """
    Start a call - creates a pending call request, pushes an incoming-call
    notification to the receiver and arms the missed-call timer.
    """
    logger.info(f"[CALL/REQUEST] {request.method} from {request.META.get('REMOTE_ADDR')}")

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

    logger.info(f"[CALL/REQUEST] Request data: {data}")

    receiver_id = data.get("receiver_id")
    call_type = data.get("call_type", "video")

    if not receiver_id:
        return error_response("missing_fields", 400, required=["receiver_id"])

    if receiver_id == user["uid"]:
        return error_response("cannot_call_self", 400)

    if call_type not in CALL_TYPES:
        return error_response("invalid_call_type", 400, valid=list(CALL_TYPES))

    if not firestore_service.is_available():
        return firestore_unavailable_response()

    receiver = firestore_service.get_profile(receiver_id)
    if not receiver:
        return error_response("receiver_not_found", 404)

    expires_at = timezone.now() + timedelta(seconds=MISSED_TIMEOUT_SECONDS)
    call = firestore_service.create_call_request(
        caller_id=user["uid"],
        receiver_id=receiver_id,
        call_type=call_type,
        room_id=generate_room_id(),
        expires_at=expires_at,
    )
    if not call:
        return error_response("failed_to_create_call_request", 500)

    logger.info(f"[CALL/REQUEST] Created call {call['id']}, room={call['room_id']}")

    _schedule_missed_timeout(call["id"], MISSED_TIMEOUT_SECONDS)

    result = push_service.send_incoming_call_push(
        receiver.get("fcm_token"), call, display_name(user["uid"])
    )
    if result.success:
        firestore_service.update_push_status(call["id"], True)
    else:
        logger.warning(f"[CALL/REQUEST] Push failed: {result.error}")

    response_data = {
        "success": True,
        "callId": call["id"],
        "roomId": call["room_id"],
        "callType": call_type,
        "expiresAt": expires_at.isoformat(),
        "pushSent": result.success,
    }
    if not result.success:
        response_data["pushError"] = result.error_code

    return JsonResponse(response_data, status=201)


@csrf_exempt
def call_answer(request):
    """
    Answer (accept or decline) a call. Only the receiver may answer.
    """
    user, data, call, error = _load_call(request, "ANSWER")
    if error:
        return error

    action = data.get("action")
    if action not in ("accept", "decline"):
        return error_response("invalid_action", 400, valid=["accept", "decline"])

    if user["uid"] != call.get("receiver_id"):
        return error_response("only_receiver_can_answer", 403)

    if call.get("status") != CALL_PENDING:
        return _not_pending(call)

    now = timezone.now()
    if action == "accept":
        updated = firestore_service.update_call_status(call["id"], CALL_ACCEPTED, answered_at=now)
    else:
        updated = firestore_service.update_call_status(call["id"], CALL_DECLINED, answered_at=now, ended_at=now)

    if not updated:
        return error_response("failed_to_update_status", 500)

    logger.info(f"[CALL/ANSWER] Call {call['id']} {action}ed")

    _cancel_missed_timeout(call["id"])

    return JsonResponse({
        "success": True,
        "callId": call["id"],
        "roomId": call.get("room_id"),
        "status": updated.get("status"),
    })


@csrf_exempt
def call_cancel(request):
    """
    Cancel a call (caller hangs up before answer).
    """
    user, data, call, error = _load_call(request, "CANCEL")
    if error:
        return error

    if user["uid"] != call.get("caller_id"):
        return error_response("only_caller_can_cancel", 403)

    if call.get("status") != CALL_PENDING:
        return _not_pending(call)

    updated = firestore_service.update_call_status(call["id"], CALL_CANCELLED, ended_at=timezone.now())
    if not updated:
        return error_response("failed_to_update_status", 500)

    receiver = firestore_service.get_profile(call.get("receiver_id")) or {}
    push_service.send_call_cancelled_push(receiver.get("fcm_token"), call)

    logger.info(f"[CALL/CANCEL] Call {call['id']} cancelled")

    _cancel_missed_timeout(call["id"])

    return JsonResponse({
        "success": True,
        "callId": call["id"],
        "status": CALL_CANCELLED,
    })


@csrf_exempt
def call_missed(request):
    """
    Mark a call as missed (client-side ring timeout).
    """
    user, data, call, error = _load_call(request, "MISSED")
    if error:
        return error

    if call.get("status") != CALL_PENDING:
        return _not_pending(call)

    updated = firestore_service.update_call_status(call["id"], CALL_MISSED, ended_at=timezone.now())
    if not updated:
        return error_response("failed_to_update_status", 500)

    _cancel_missed_timeout(call["id"])

    return JsonResponse({
        "success": True,
        "callId": call["id"],
        "status": CALL_MISSED,
    })


@csrf_exempt
def call_end(request):
    """
    End an active call and record its duration.
    """
    user, data, call, error = _load_call(request, "END")
    if error:
        return error

    if call.get("status") != CALL_ACCEPTED:
        return error_response("call_not_active", 409, currentStatus=call.get("status"))

    ended_at = timezone.now()

    answered_at = normalize_datetime(call.get("answered_at"))
    created_at = normalize_datetime(call.get("created_at"))
    duration_base = answered_at or created_at
    duration = None
    if duration_base:
        duration = max(0, int((ended_at - duration_base).total_seconds()))

    updated = firestore_service.update_call_status(
        call["id"],
        CALL_ENDED,
        ended_at=ended_at,
        duration_sec=duration if duration is not None else 0,
    )
    if not updated:
        return error_response("failed_to_update_status", 500)

    logger.info(f"[CALL/END] Call {call['id']} ended, duration={duration}s")

    _cancel_missed_timeout(call["id"])
    return JsonResponse({
        "success": True,
        "callId": call["id"],
        "status": CALL_ENDED,
        "durationSeconds": duration,
    })


@csrf_exempt
def call_timeout_sweep(request):
    """
    Sweep pending calls and mark as missed if expired. Meant for a cron job;
    when CALL_SWEEP_SECRET is set the caller must send it in X-Sweep-Secret.
    """
    logger.info(f"[CALL/TIMEOUT_SWEEP] {request.method} from {request.META.get('REMOTE_ADDR')}")

    if request.method != "POST":
        return HttpResponseNotAllowed(["POST"])

    secret = os.environ.get("CALL_SWEEP_SECRET")
    if secret and not hmac.compare_digest(request.META.get("HTTP_X_SWEEP_SECRET", ""), secret):
        return error_response("forbidden", 403)

    data, error = json_body(request)
    if error:
        return error

    timeout_seconds = data.get("timeout_seconds", MISSED_TIMEOUT_SECONDS)
    try:
        timeout_seconds = int(timeout_seconds)
    except (TypeError, ValueError):
        return error_response("invalid_timeout_seconds", 400)
    if timeout_seconds < 0:
        return error_response("invalid_timeout_seconds", 400)

    if not firestore_service.is_available():
        return firestore_unavailable_response()

    cutoff = timezone.now() - timedelta(seconds=timeout_seconds)
    updated_count = firestore_service.mark_missed_expired(cutoff)

    return JsonResponse({
        "success": True,
        "timeoutSeconds": timeout_seconds,
        "updatedCount": updated_count,
    })


@csrf_exempt
def call_status(request, call_id):
    """
    Get call status. Only the two participants may read it.
    """
    logger.info(f"[CALL/STATUS] {request.method} from {request.META.get('REMOTE_ADDR')}")

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

    call = firestore_service.get_call_request(call_id)
    if not call:
        return error_response("call_not_found", 404)

    if user["uid"] not in (call.get("caller_id"), call.get("receiver_id")):
        return error_response("not_call_participant", 403)

    return JsonResponse({"call": serialize_document(call)})
