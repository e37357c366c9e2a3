import re
import secrets
import time
from dataclasses import dataclass
from typing import Optional

from .constants import USER_MEDIA_BUCKET

MAX_FILE_SIZE = 5 * 1024 * 1024  # 5MB
MAX_PATH_LENGTH = 500
MAX_FILENAME_LENGTH = 100

# Magic numbers, checked in this order when detecting a mismatched upload
FILE_SIGNATURES = {
    "image/png": bytes([0x89, 0x50, 0x4E, 0x47, 0x0D, 0x0A, 0x1A, 0x0A]),
    "image/jpeg": bytes([0xFF, 0xD8, 0xFF]),
    "image/gif": bytes([0x47, 0x49, 0x46, 0x38]),
    "image/webp": bytes([0x52, 0x49, 0x46, 0x46]),  # RIFF
    "video/mp4": bytes([0x00, 0x00, 0x00, 0x18, 0x66, 0x74, 0x79, 0x70]),  # ftyp
    "video/webm": bytes([0x1A, 0x45, 0xDF, 0xA3]),
    "audio/mpeg": bytes([0xFF, 0xFB]),  # MP3
    "audio/mp4": bytes([0x00, 0x00, 0x00]),  # M4A
    "audio/webm": bytes([0x1A, 0x45, 0xDF, 0xA3]),
}

ALLOWED_TYPES = tuple(FILE_SIGNATURES)

CONTENT_TYPE_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
    "video/mp4": "mp4",
    "video/webm": "webm",
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
    "audio/webm": "webm",
}


@dataclass
class ValidationResult:
    valid: bool
    error: Optional[str] = None
    content_type: Optional[str] = None


def detect_content_type(data: bytes) -> Optional[str]:
    for content_type, signature in FILE_SIGNATURES.items():
        if data.startswith(signature):
            return content_type
    return None


def validate_file_signature(data: bytes, declared_type: str) -> ValidationResult:
    """Check size, allow-list and magic number of an uploaded file."""
    if len(data) > MAX_FILE_SIZE:
        return ValidationResult(False, "File size exceeds 5MB limit")

    if declared_type not in ALLOWED_TYPES:
        return ValidationResult(False, "File type not allowed")

    if not data.startswith(FILE_SIGNATURES[declared_type]):
        detected = detect_content_type(data)
        return ValidationResult(
            False,
            f"File signature mismatch. Declared: {declared_type}, Detected: {detected or 'unknown'}",
        )

    return ValidationResult(True, content_type=declared_type)


def generate_secure_filename(extension: str) -> str:
    # Dots are stripped so the extension cannot introduce traversal
    safe_extension = extension.replace(".", "").lower()
    return f"{int(time.time() * 1000)}_{secrets.token_hex(12)}.{safe_extension}"


def sanitize_filename(filename: str) -> str:
    safe = re.sub(r"[/\\\x00]|\.\.", "", filename or "")
    safe = re.sub(r"[^a-zA-Z0-9_\-.]", "_", safe)
    return safe[:MAX_FILENAME_LENGTH] or "file"


def extension_for_content_type(content_type: str) -> str:
    return CONTENT_TYPE_EXTENSIONS.get(content_type, "bin")


def validate_path(path: str, user_id: str, bucket: str) -> ValidationResult:
    if ".." in path or path.startswith("/") or "\\" in path:
        return ValidationResult(False, "Invalid path: contains illegal characters")

    if "\x00" in path:
        return ValidationResult(False, "Invalid path: contains null byte")

    if bucket == USER_MEDIA_BUCKET and not path.startswith(f"{user_id}/"):
        return ValidationResult(False, "Invalid path: must be within user directory")

    if len(path) > MAX_PATH_LENGTH:
        return ValidationResult(False, "Path too long")

    return ValidationResult(True)
