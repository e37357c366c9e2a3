"""
Storage references.

Documents never store object URLs. Media columns hold either an external
http(s) URL or a reference of the form "<bucket>:<path>", which is turned
into a public or signed URL when a client asks for it.
"""
import re
from typing import NamedTuple, Optional

from .constants import (
    DEFAULT_SIGNED_URL_EXPIRES,
    MAX_MEDIA_REFERENCE_LENGTH,
    MAX_SIGNED_URL_EXPIRES,
    MIN_SIGNED_URL_EXPIRES,
    USER_MEDIA_BUCKET,
    WEBSITECONFIG_BUCKET,
)


class InvalidMediaReference(ValueError):
    pass


class StorageAccessDenied(Exception):
    pass


class StorageReference(NamedTuple):
    bucket: str
    path: str

    def __str__(self):
        return f"{self.bucket}:{self.path}"


REFERENCE_PREFIXES = (USER_MEDIA_BUCKET, WEBSITECONFIG_BUCKET)

# Object URLs written before references were introduced
LEGACY_URL_PATTERNS = (
    re.compile(r"/storage/v1/object/public/user-media/(.+)$"),
    re.compile(r"/storage/v1/object/public/users-medias/(.+)$"),
    re.compile(r"/storage/v1/object/sign/user-media/(.+?)\?"),
)


def is_external_url(value: str) -> bool:
    return value.startswith("http://") or value.startswith("https://")


def make_user_media_path(user_id: str, post_id: str, file_name: str) -> str:
    clean_name = re.sub(r"[^a-zA-Z0-9._-]", "_", file_name)
    return f"{user_id}/posts/{post_id}/{clean_name}"


def make_storage_reference(path: str, bucket: str = USER_MEDIA_BUCKET) -> str:
    return f"{bucket}:{path}"


def parse_storage_reference(reference: str) -> Optional[StorageReference]:
    if not reference:
        return None

    for bucket in REFERENCE_PREFIXES:
        prefix = f"{bucket}:"
        if reference.startswith(prefix):
            return StorageReference(bucket, reference[len(prefix):])

    for pattern in LEGACY_URL_PATTERNS:
        match = pattern.search(reference)
        if match:
            return StorageReference(USER_MEDIA_BUCKET, match.group(1))

    return None


def validate_no_blob(value) -> None:
    if not value:
        return

    text = str(value)
    if text.startswith("data:"):
        raise InvalidMediaReference("Base64 data URIs are not allowed. Please use storage upload flow.")
    if text.startswith("blob:"):
        raise InvalidMediaReference("Blob URLs are not allowed. Please use storage upload flow.")
    if len(text) > MAX_MEDIA_REFERENCE_LENGTH:
        raise InvalidMediaReference("Suspiciously long URL detected. Please use storage upload flow.")


def assert_storage_reference(value) -> None:
    """Raise InvalidMediaReference unless value is empty, a storage reference or an http(s) URL."""
    if not value:
        return
    if not isinstance(value, str):
        raise InvalidMediaReference("Media reference must be a string")

    validate_no_blob(value)

    if not (value.startswith(f"{USER_MEDIA_BUCKET}:")
            or value.startswith(f"{WEBSITECONFIG_BUCKET}:")
            or is_external_url(value)):
        raise InvalidMediaReference(
            "Media must be a valid storage reference (user-media:path or websiteconfig:path) or external URL"
        )


def clamp_expires_in(value) -> int:
    try:
        value = int(value)
    except (TypeError, ValueError):
        return DEFAULT_SIGNED_URL_EXPIRES
    if value == 0:
        value = DEFAULT_SIGNED_URL_EXPIRES
    return min(max(value, MIN_SIGNED_URL_EXPIRES), MAX_SIGNED_URL_EXPIRES)


def owns_path(user_id: str, path: str) -> bool:
    return bool(user_id) and path.startswith(f"{user_id}/")


def resolve_reference(reference: str, user_id: str, storage, expires_in: int = DEFAULT_SIGNED_URL_EXPIRES) -> str:
    """
    Turn a stored media value into a URL a client can load.

    External URLs and unparseable values are returned unchanged. Private
    user-media objects are only signed for their owner; anything else raises
    StorageAccessDenied. Errors from the storage backend propagate.
    """
    if not reference:
        return ""
    if is_external_url(reference):
        return reference

    parsed = parse_storage_reference(reference)
    if parsed is None:
        return reference

    if parsed.bucket == WEBSITECONFIG_BUCKET:
        return storage.get_public_url(parsed.bucket, parsed.path)

    if not owns_path(user_id, parsed.path):
        raise StorageAccessDenied("Access denied: path must belong to authenticated user")

    return storage.create_signed_url(parsed.bucket, parsed.path, expires_in)


def normalize_media_url(value: Optional[str]) -> Optional[str]:
    """
    Rewrite a legacy object URL into a user-media reference. References,
    external URLs and anything unrecognised are returned unchanged.
    """
    if not value:
        return value
    if value.startswith(f"{USER_MEDIA_BUCKET}:") or value.startswith(f"{WEBSITECONFIG_BUCKET}:"):
        return value
    if is_external_url(value) and "/storage/v1/object/" in value:
        parsed = parse_storage_reference(value)
        if parsed is not None:
            return str(parsed)
    return value
