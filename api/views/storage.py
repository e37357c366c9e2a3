import logging

from django.http import JsonResponse, HttpResponseNotAllowed
from django.views.decorators.csrf import csrf_exempt

from ..auth import authenticate
from ..compression import ImageTooLarge, compress_image, compression_settings, should_compress_image
from ..constants import (
    ALLOWED_BUCKETS,
    DEFAULT_SIGNED_URL_EXPIRES,
    MAX_RESOLVE_REFERENCES,
    UPLOAD_URL_EXPIRES,
    USER_MEDIA_BUCKET,
)
from ..file_validation import (
    extension_for_content_type,
    generate_secure_filename,
    validate_file_signature,
    validate_path,
)
from ..http import json_body, error_response, require_env
from ..rate_limit import enforce_rate_limit
from ..sanitize import sanitize_uuid
from ..storage_refs import (
    StorageAccessDenied,
    make_storage_reference,
    make_user_media_path,
    owns_path,
    parse_storage_reference,
    clamp_expires_in,
    resolve_reference,
)
from ..storage_service import StorageError, storage_service

logger = logging.getLogger("api")


def _object_path(bucket: str, user_id: str, filename: str) -> str:
    return f"{user_id}/{filename}" if bucket == USER_MEDIA_BUCKET else filename


@csrf_exempt
def storage_sign_upload(request):
    """Issue a signed PUT URL for a direct client upload."""
    logger.info(f"[STORAGE/SIGN_UPLOAD] {request.method} from {request.META.get('REMOTE_ADDR')}")

    if request.method != "POST":
        return HttpResponseNotAllowed(["POST"])

    missing_env = require_env("FIREBASE_STORAGE_BUCKET")
    if missing_env:
        return missing_env

    user, error = authenticate(request)
    if error:
        return error

    limited = enforce_rate_limit("upload", user["uid"])
    if limited:
        return limited

    data, error = json_body(request)
    if error:
        return error

    bucket = data.get("bucket")
    content_type = data.get("contentType")
    if not bucket or not content_type:
        return error_response("Missing required fields", 400)

    if bucket not in ALLOWED_BUCKETS:
        return error_response("Invalid bucket", 400)

    filename = generate_secure_filename(extension_for_content_type(content_type))
    path = _object_path(bucket, user["uid"], filename)

    validation = validate_path(path, user["uid"], bucket)
    if not validation.valid:
        return error_response(validation.error, 400)

    try:
        upload_url = storage_service.create_signed_upload_url(bucket, path, content_type)
    except StorageError as e:
        logger.error(f"[STORAGE/SIGN_UPLOAD] Error creating signed upload URL: {e}")
        return error_response("Failed to create upload URL", 500)

    return JsonResponse({
        "uploadUrl": upload_url,
        "objectPath": path,
        "storageReference": make_storage_reference(path, bucket),
        "contentType": content_type,
        "expiresIn": UPLOAD_URL_EXPIRES,
    })


@csrf_exempt
def storage_upload(request):
    """
    Server-side upload into the caller's user-media folder.

    The multipart `file` is checked against its declared type by magic
    number; large images are downscaled before storing. An optional
    `post_id` form field files the object under that post.
    """
    logger.info(f"[STORAGE/UPLOAD] {request.method} from {request.META.get('REMOTE_ADDR')}")

    if request.method != "POST":
        return HttpResponseNotAllowed(["POST"])

    missing_env = require_env("FIREBASE_STORAGE_BUCKET")
    if missing_env:
        return missing_env

    user, error = authenticate(request)
    if error:
        return error

    limited = enforce_rate_limit("upload", user["uid"])
    if limited:
        return limited

    upload = request.FILES.get("file")
    if upload is None:
        return error_response("Missing file", 400)

    content_type = upload.content_type or ""
    payload = upload.read()

    validation = validate_file_signature(payload, content_type)
    if not validation.valid:
        logger.warning(f"[STORAGE/UPLOAD] Rejected upload from {user['uid']}: {validation.error}")
        return error_response(validation.error, 400)

    if content_type.startswith("image/") and should_compress_image(len(payload), max_size_mb=1):
        try:
            payload = compress_image(payload, content_type, compression_settings(len(payload)))
        except ImageTooLarge as e:
            logger.warning(f"[STORAGE/UPLOAD] Rejected image from {user['uid']}: {e}")
            return error_response("Image dimensions too large", 400)

    filename = generate_secure_filename(extension_for_content_type(content_type))
    post_id = request.POST.get("post_id")
    if post_id:
        post_id = sanitize_uuid(post_id)
        if not post_id:
            return error_response("Invalid post_id format", 400)
        path = make_user_media_path(user["uid"], post_id, filename)
    else:
        path = _object_path(USER_MEDIA_BUCKET, user["uid"], filename)

    path_check = validate_path(path, user["uid"], USER_MEDIA_BUCKET)
    if not path_check.valid:
        return error_response(path_check.error, 400)

    try:
        storage_service.upload_bytes(USER_MEDIA_BUCKET, path, payload, content_type)
    except StorageError as e:
        logger.error(f"[STORAGE/UPLOAD] Upload failed: {e}")
        return error_response("Upload failed", 500)

    logger.info(f"[STORAGE/UPLOAD] Stored {path} ({len(payload)} bytes)")
    return JsonResponse({
        "storageReference": make_storage_reference(path),
        "objectPath": path,
        "contentType": content_type,
        "size": len(payload),
    }, status=201)


@csrf_exempt
def storage_resolve_urls(request):
    """
    Resolve storage references to loadable URLs.

    Every reference gets an entry in `urls` (empty string on failure); the
    failures are described in `errors`.
    """
    logger.info(f"[STORAGE/RESOLVE] {request.method} from {request.META.get('REMOTE_ADDR')}")

    if request.method != "POST":
        return HttpResponseNotAllowed(["POST"])

    missing_env = require_env("FIREBASE_STORAGE_BUCKET")
    if missing_env:
        return missing_env

    user, error = authenticate(request)
    if error:
        return error

    limited = enforce_rate_limit("api", user["uid"])
    if limited:
        return limited

    data, error = json_body(request)
    if error:
        return error

    references = data.get("references")
    if not isinstance(references, list):
        return error_response("Invalid request: references must be an array", 400)

    if len(references) > MAX_RESOLVE_REFERENCES:
        return error_response(
            f"Too many references. Maximum {MAX_RESOLVE_REFERENCES} references per request.", 400
        )

    expires_in = clamp_expires_in(data.get("expiresIn") or DEFAULT_SIGNED_URL_EXPIRES)

    urls = {}
    errors = {}
    for reference in references:
        if reference is None:
            continue
        if not isinstance(reference, str):
            errors[str(reference)] = "Invalid reference"
            urls[str(reference)] = ""
            continue

        try:
            urls[reference] = resolve_reference(reference, user["uid"], storage_service, expires_in)
        except StorageAccessDenied as e:
            errors[reference] = str(e)
            urls[reference] = ""
        except StorageError as e:
            errors[reference] = str(e) or "Unknown error"
            urls[reference] = ""

    return JsonResponse({"urls": urls, "errors": errors})


@csrf_exempt
def storage_delete(request):
    """Delete one of the caller's own user-media objects."""
    logger.info(f"[STORAGE/DELETE] {request.method} from {request.META.get('REMOTE_ADDR')}")

    if request.method != "POST":
        return HttpResponseNotAllowed(["POST"])

    missing_env = require_env("FIREBASE_STORAGE_BUCKET")
    if missing_env:
        return missing_env

    user, error = authenticate(request)
    if error:
        return error

    limited = enforce_rate_limit("upload", user["uid"])
    if limited:
        return limited

    data, error = json_body(request)
    if error:
        return error

    reference = data.get("reference")
    parsed = parse_storage_reference(reference) if isinstance(reference, str) else None
    if parsed is None:
        return error_response("Invalid storage reference", 400)

    if parsed.bucket != USER_MEDIA_BUCKET or not owns_path(user["uid"], parsed.path):
        return error_response("Access denied: path must belong to authenticated user", 403)

    try:
        deleted = storage_service.delete(parsed.bucket, parsed.path)
    except StorageError as e:
        logger.error(f"[STORAGE/DELETE] Delete failed: {e}")
        return error_response("Delete failed", 500)

    if not deleted:
        return error_response("object_not_found", 404)

    return JsonResponse({"success": True, "reference": str(parsed)})
