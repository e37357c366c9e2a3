import json
import math
from datetime import datetime, timezone as dt_timezone
from typing import Tuple

from django.http import JsonResponse

from .env import validate_server_env


def json_body(request) -> Tuple[dict, JsonResponse]:
    try:
        body = request.body.decode("utf-8") if request.body else "{}"
        data = json.loads(body)
        if not isinstance(data, dict):
            raise ValueError("JSON body must be an object")
        return data, None
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError) as exc:
        return None, JsonResponse({"error": f"invalid_json: {exc}"}, status=400)


def require_env(*keys):
    result = validate_server_env(required=keys)
    if not result.valid:
        return JsonResponse({"error": "missing_env", "missing": result.missing}, status=500)
    return None


def error_response(message: str, status: int, **extra) -> JsonResponse:
    return JsonResponse({"error": message, **extra}, status=status)


def auth_required_response() -> JsonResponse:
    return error_response("Authentication required", 401)


def firestore_unavailable_response() -> JsonResponse:
    return JsonResponse({
        "error": "firestore_unavailable",
        "message": "Firebase Firestore is not configured",
    }, status=503)


def rate_limited_response(reset_time: float, now: float) -> JsonResponse:
    """429 with Retry-After (whole seconds) and the reset instant in ISO-8601."""
    retry_after = max(0, math.ceil(reset_time - now))
    response = JsonResponse({"error": "Too many requests. Please try again later."}, status=429)
    response["Retry-After"] = str(retry_after)
    response["X-RateLimit-Reset"] = (
        datetime.fromtimestamp(reset_time, tz=dt_timezone.utc).isoformat().replace("+00:00", "Z")
    )
    return response


def parse_int(value, default: int, minimum: int = 0, maximum: int = None) -> int:
    try:
        value = int(value)
    except (TypeError, ValueError):
        return default
    if value < minimum:
        return minimum
    if maximum is not None and value > maximum:
        return maximum
    return value
