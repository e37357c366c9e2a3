import re

from api.file_validation import (
    MAX_FILE_SIZE,
    detect_content_type,
    extension_for_content_type,
    generate_secure_filename,
    sanitize_filename,
    validate_file_signature,
    validate_path,
)

PNG = bytes([0x89, 0x50, 0x4E, 0x47, 0x0D, 0x0A, 0x1A, 0x0A]) + b"rest-of-image"
JPEG = bytes([0xFF, 0xD8, 0xFF, 0xE0]) + b"jfif"


def test_accepts_matching_signature():
    result = validate_file_signature(PNG, "image/png")

    assert result.valid
    assert result.content_type == "image/png"


def test_rejects_mismatched_signature_and_reports_detected_type():
    result = validate_file_signature(JPEG, "image/png")

    assert not result.valid
    assert result.error == "File signature mismatch. Declared: image/png, Detected: image/jpeg"


def test_rejects_unknown_signature():
    result = validate_file_signature(b"GIF7", "image/gif")

    assert not result.valid
    assert result.error.endswith("Detected: unknown")


def test_rejects_disallowed_type_and_oversized_file():
    assert validate_file_signature(b"%PDF-1.7", "application/pdf").error == "File type not allowed"
    assert validate_file_signature(PNG + b"0" * MAX_FILE_SIZE, "image/png").error == "File size exceeds 5MB limit"


def test_detect_content_type():
    assert detect_content_type(PNG) == "image/png"
    assert detect_content_type(b"\x1a\x45\xdf\xa3webm") == "video/webm"
    assert detect_content_type(b"plain") is None


def test_generate_secure_filename():
    name = generate_secure_filename(".P.NG")

    assert re.fullmatch(r"\d+_[0-9a-f]{24}\.png", name)
    assert generate_secure_filename("jpg") != generate_secure_filename("jpg")


def test_sanitize_filename():
    assert sanitize_filename("../../etc/passwd") == "etcpasswd"
    assert sanitize_filename("my photo (1).jpg") == "my_photo__1_.jpg"
    assert sanitize_filename("") == "file"
    assert len(sanitize_filename("a" * 300)) == 100


def test_extension_for_content_type():
    assert extension_for_content_type("image/jpeg") == "jpg"
    assert extension_for_content_type("audio/mp4") == "m4a"
    assert extension_for_content_type("application/zip") == "bin"


def test_validate_path():
    assert validate_path("alice/photo.png", "alice", "user-media").valid
    assert validate_path("banner.png", "alice", "websiteconfig").valid

    assert validate_path("alice/../bob/photo.png", "alice", "user-media").error == (
        "Invalid path: contains illegal characters"
    )
    assert validate_path("/alice/photo.png", "alice", "user-media").error == (
        "Invalid path: contains illegal characters"
    )
    assert validate_path("alice/a\x00.png", "alice", "user-media").error == "Invalid path: contains null byte"
    assert validate_path("bob/photo.png", "alice", "user-media").error == (
        "Invalid path: must be within user directory"
    )
    assert validate_path("alice/" + "a" * 500, "alice", "user-media").error == "Path too long"
