import secrets
import time
from datetime import datetime

from django.utils import timezone

PRIVATE_PROFILE_FIELDS = ("fcm_token", "email")


def generate_room_id() -> str:
    """Opaque room id handed to both call participants."""
    return f"call_{int(time.time() * 1000)}_{secrets.token_hex(6)}"


def normalize_datetime(value):
    if value is None:
        return None
    if isinstance(value, datetime):
        if timezone.is_naive(value):
            return timezone.make_aware(value, timezone.get_current_timezone())
        return value
    if hasattr(value, "timestamp"):
        return datetime.fromtimestamp(value.timestamp(), tz=timezone.get_current_timezone())
    return None


def format_timestamp(ts):
    if ts is None:
        return None
    if hasattr(ts, "isoformat"):
        return ts.isoformat()
    if hasattr(ts, "timestamp"):
        return datetime.fromtimestamp(ts.timestamp()).isoformat()
    return str(ts)


def serialize_document(doc: dict) -> dict:
    """Firestore document with timestamps rendered as ISO-8601 strings."""
    return {
        key: format_timestamp(value) if isinstance(value, datetime) or hasattr(value, "timestamp") else value
        for key, value in doc.items()
    }


def public_profile(profile: dict) -> dict:
    return serialize_document({k: v for k, v in profile.items() if k not in PRIVATE_PROFILE_FIELDS})


def author_summary(profile) -> dict:
    profile = profile or {}
    return {
        "full_name": profile.get("full_name") or "",
        "avatar_url": profile.get("avatar_url"),
    }
