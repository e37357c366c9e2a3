import logging

from django.http import JsonResponse, HttpResponseNotAllowed
from django.views.decorators.csrf import csrf_exempt

from ..auth import authenticate
from ..constants import DEFAULT_SEARCH_LIMIT, MAX_SEARCH_LIMIT
from ..firebase_service import firestore_service
from ..http import json_body, error_response, firestore_unavailable_response, parse_int
from ..rate_limit import enforce_rate_limit
from ..sanitize import sanitize_profile, sanitize_search, sanitize_text
from ..storage_refs import InvalidMediaReference, assert_storage_reference
from ..utils import author_summary, public_profile, serialize_document

logger = logging.getLogger("api")

# sanitize_profile field -> stored profile field
PROFILE_FIELD_MAP = {
    "bio": "bio",
    "location": "location",
    "company": "current_company",
    "position": "role",
    "website": "website_url",
}
SHORT_TEXT_FIELDS = {"full_name": 100, "headline": 150}


@csrf_exempt
def profile_me(request):
    """GET returns the caller's full profile; POST updates editable fields."""
    logger.info(f"[PROFILES/ME] {request.method} from {request.META.get('REMOTE_ADDR')}")

    if request.method not in ("GET", "POST"):
        return HttpResponseNotAllowed(["GET", "POST"])

    user, error = authenticate(request)
    if error:
        return error

    limited = enforce_rate_limit("api", user["uid"])
    if limited:
        return limited

    if not firestore_service.is_available():
        return firestore_unavailable_response()

    if request.method == "GET":
        profile = firestore_service.get_profile(user["uid"])
        if not profile:
            return error_response("profile_not_found", 404)
        return JsonResponse({"profile": serialize_document(profile)})

    data, error = json_body(request)
    if error:
        return error

    fields = {
        PROFILE_FIELD_MAP[key]: value
        for key, value in sanitize_profile(data).items()
    }
    if data.get("website") and "website_url" not in fields:
        return error_response("Invalid website URL", 400)

    for key, limit in SHORT_TEXT_FIELDS.items():
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            fields[key] = sanitize_text(value.strip()[:limit])

    avatar_url = data.get("avatar_url")
    if avatar_url:
        try:
            assert_storage_reference(avatar_url)
        except InvalidMediaReference as e:
            logger.error(f"[PROFILES/ME] Invalid avatar reference: {e}")
            return error_response("Invalid media reference", 400)
        fields["avatar_url"] = avatar_url

    fcm_token = data.get("fcm_token")
    if isinstance(fcm_token, str) and fcm_token:
        fields["fcm_token"] = fcm_token

    if not fields:
        return error_response("No valid fields to update", 400)

    profile = firestore_service.update_profile(user["uid"], fields)
    if not profile:
        return error_response("Failed to update profile", 500)

    logger.info(f"[PROFILES/ME] Updated {sorted(fields)} for {user['uid']}")
    return JsonResponse({"profile": serialize_document(profile)})


@csrf_exempt
def profile_detail(request, user_id):
    logger.info(f"[PROFILES/DETAIL] {request.method} from {request.META.get('REMOTE_ADDR')}")

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

    profile = firestore_service.get_profile(user_id)
    if not profile:
        return error_response("profile_not_found", 404)

    return JsonResponse({"profile": public_profile(profile)})


@csrf_exempt
def profile_search(request):
    """Name/username prefix search for mention autocomplete (`q`, `limit`)."""
    logger.info(f"[PROFILES/SEARCH] {request.method} from {request.META.get('REMOTE_ADDR')}")

    if request.method != "GET":
        return HttpResponseNotAllowed(["GET"])

    user, error = authenticate(request)
    if error:
        return error

    limited = enforce_rate_limit("search", user["uid"])
    if limited:
        return limited

    query = sanitize_search(request.GET.get("q", ""))
    if not query:
        return JsonResponse({"profiles": []})

    if not firestore_service.is_available():
        return firestore_unavailable_response()

    limit = parse_int(request.GET.get("limit"), DEFAULT_SEARCH_LIMIT, minimum=1, maximum=MAX_SEARCH_LIMIT)
    profiles = firestore_service.search_profiles(query, limit)
    if profiles is None:
        return error_response("Failed to search profiles", 500)

    return JsonResponse({
        "profiles": [
            {"id": profile["id"], "username": profile.get("username"), **author_summary(profile)}
            for profile in profiles
        ],
    })
