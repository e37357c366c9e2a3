"""
Server-side environment variable checks.

Used by route handlers that need credentials and by the health endpoint to
report what is missing without leaking values.
"""
import logging
import os
from dataclasses import dataclass, field
from typing import Iterable, List

logger = logging.getLogger("api")

FIREBASE_REQUIRED = ("FIREBASE_PROJECT_ID",)
FIREBASE_OPTIONAL = (
    "FIREBASE_SERVICE_ACCOUNT",
    "FIREBASE_STORAGE_BUCKET",
    "RECAPTCHA_SECRET_KEY",
)


@dataclass
class EnvValidationResult:
    valid: bool
    missing: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def _is_blank(name: str) -> bool:
    value = os.environ.get(name)
    return not value or not value.strip()


def validate_server_env(required: Iterable[str] = (), optional: Iterable[str] = ()) -> EnvValidationResult:
    missing = [name for name in required if _is_blank(name)]
    warnings = [
        f"{name} is not set (optional but recommended)"
        for name in optional
        if _is_blank(name)
    ]
    return EnvValidationResult(valid=not missing, missing=missing, warnings=warnings)


def firebase_env_status() -> EnvValidationResult:
    """Firebase settings; service account is optional when using the emulator."""
    result = validate_server_env(FIREBASE_REQUIRED, FIREBASE_OPTIONAL)
    for warning in result.warnings:
        logger.debug(f"[ENV] {warning}")
    return result
