import os

# Storage buckets (logical names used inside storage references)
USER_MEDIA_BUCKET = "user-media"
WEBSITECONFIG_BUCKET = "websiteconfig"
ALLOWED_BUCKETS = (USER_MEDIA_BUCKET, WEBSITECONFIG_BUCKET)

# Signed URL lifetimes (seconds)
DEFAULT_SIGNED_URL_EXPIRES = 3600
MIN_SIGNED_URL_EXPIRES = 60
MAX_SIGNED_URL_EXPIRES = 86400
UPLOAD_URL_EXPIRES = 900

MAX_RESOLVE_REFERENCES = 100
MAX_MEDIA_REFERENCE_LENGTH = 10000

# Content limits
MAX_POST_CONTENT_LENGTH = 5000
MAX_COMMENT_LENGTH = 2000
MAX_MESSAGE_LENGTH = 4000
MAX_RECAPTCHA_TOKEN_LENGTH = 2000

DEFAULT_FEED_LIMIT = 20
MAX_FEED_LIMIT = 50
DEFAULT_MESSAGES_LIMIT = 50
DEFAULT_NOTIFICATIONS_LIMIT = 20
DEFAULT_SEARCH_LIMIT = 5
MAX_SEARCH_LIMIT = 20

# Calls
CALL_TYPES = ("video", "audio")
MISSED_TIMEOUT_SECONDS = int(os.environ.get("CALL_MISSED_TIMEOUT_SECONDS", "45"))

CALL_PENDING = "pending"
CALL_ACCEPTED = "accepted"
CALL_DECLINED = "declined"
CALL_CANCELLED = "cancelled"
CALL_MISSED = "missed"
CALL_ENDED = "ended"

# reCAPTCHA
RECAPTCHA_VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"
RECAPTCHA_MIN_SCORE = 0.5

# Collections scanned by the storage verification report
MEDIA_COLUMNS = (
    ("posts", ("image_url", "video_url")),
    ("messages", ("media_url",)),
    ("profiles", ("avatar_url",)),
)
VERIFY_SCAN_LIMIT = 100
