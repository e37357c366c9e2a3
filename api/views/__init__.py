from .health import health
from .posts import post_create, post_feed, post_detail, post_comments, post_like
from .profiles import profile_me, profile_detail, profile_search
from .storage import storage_sign_upload, storage_upload, storage_resolve_urls, storage_delete
from .recaptcha import recaptcha_verify
from .admin import admin_verify_storage
from .calls import (
    call_request,
    call_answer,
    call_cancel,
    call_missed,
    call_end,
    call_timeout_sweep,
    call_status,
)
from .messages import conversation_messages
from .notifications import notifications_list, notifications_read, notifications_delete

__all__ = [
    "health",
    "post_create",
    "post_feed",
    "post_detail",
    "post_comments",
    "post_like",
    "profile_me",
    "profile_detail",
    "profile_search",
    "storage_sign_upload",
    "storage_upload",
    "storage_resolve_urls",
    "storage_delete",
    "recaptcha_verify",
    "admin_verify_storage",
    "call_request",
    "call_answer",
    "call_cancel",
    "call_missed",
    "call_end",
    "call_timeout_sweep",
    "call_status",
    "conversation_messages",
    "notifications_list",
    "notifications_read",
    "notifications_delete",
]
