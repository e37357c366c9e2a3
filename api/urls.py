from django.urls import path
from . import views

urlpatterns = [
    # Health check
    path("health", views.health, name="health"),

    # Posts
    path("posts/create", views.post_create, name="post_create"),
    path("posts/feed", views.post_feed, name="post_feed"),
    path("posts/<str:post_id>", views.post_detail, name="post_detail"),
    path("posts/<str:post_id>/comments", views.post_comments, name="post_comments"),
    path("posts/<str:post_id>/like", views.post_like, name="post_like"),

    # Profiles
    path("profiles/me", views.profile_me, name="profile_me"),
    path("profiles/search", views.profile_search, name="profile_search"),
    path("profiles/<str:user_id>", views.profile_detail, name="profile_detail"),

    # Storage
    path("storage/sign-upload", views.storage_sign_upload, name="storage_sign_upload"),
    path("storage/upload", views.storage_upload, name="storage_upload"),
    path("storage/resolve-urls", views.storage_resolve_urls, name="storage_resolve_urls"),
    path("storage/delete", views.storage_delete, name="storage_delete"),

    # Bot protection
    path("verify-recaptcha", views.recaptcha_verify, name="verify_recaptcha"),

    # Admin
    path("admin/verify-storage", views.admin_verify_storage, name="admin_verify_storage"),

    # Call brokering (media transport is peer-to-peer and not handled here)
    path("calls/request", views.call_request, name="call_request"),
    path("calls/answer", views.call_answer, name="call_answer"),
    path("calls/cancel", views.call_cancel, name="call_cancel"),
    path("calls/missed", views.call_missed, name="call_missed"),
    path("calls/end", views.call_end, name="call_end"),
    path("calls/timeout/sweep", views.call_timeout_sweep, name="call_timeout_sweep"),
    path("calls/<str:call_id>", views.call_status, name="call_status"),

    # Messaging
    path("messages/<str:conversation_id>", views.conversation_messages, name="conversation_messages"),

    # Notifications
    path("notifications", views.notifications_list, name="notifications_list"),
    path("notifications/read", views.notifications_read, name="notifications_read"),
    path("notifications/delete", views.notifications_delete, name="notifications_delete"),
]
