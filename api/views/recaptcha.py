import logging

from django.http import JsonResponse, HttpResponseNotAllowed
from django.views.decorators.csrf import csrf_exempt

from ..constants import MAX_RECAPTCHA_TOKEN_LENGTH
from ..http import json_body
from ..rate_limit import client_ip, enforce_rate_limit
from ..recaptcha import verify_recaptcha

logger = logging.getLogger("api")


@csrf_exempt
def recaptcha_verify(request):
    logger.info(f"[RECAPTCHA] {request.method} from {request.META.get('REMOTE_ADDR')}")

    if request.method != "POST":
        return HttpResponseNotAllowed(["POST"])

    limited = enforce_rate_limit("api", f"recaptcha:{client_ip(request)}")
    if limited:
        return limited

    data, error = json_body(request)
    if error:
        return error

    token = data.get("token")
    if not token or not isinstance(token, str):
        return JsonResponse({
            "success": False,
            "error": "reCAPTCHA token is required and must be a string",
        }, status=400)

    if len(token) > MAX_RECAPTCHA_TOKEN_LENGTH:
        return JsonResponse({"success": False, "error": "Invalid token format"}, status=400)

    result = verify_recaptcha(token)
    if not result.success:
        logger.warning(f"[RECAPTCHA] Verification failed: {result.error}")
        return JsonResponse({"success": False, "error": result.error}, status=400)

    return JsonResponse({"success": True, "score": result.score})
