"""
Firebase service for Django - Firestore access for the social app.

Firestore Collections:
- profiles/{uid}: Public profile fields plus fcm_token for push notifications
- posts/{postId}: Feed posts with denormalized like/comment/share counters
- comments/{commentId}: Comments on posts
- post_likes/{postId}_{uid}: One document per like
- call_requests/{callId}: Call brokering state between two users
- conversations/{conversationId}: participant_ids, last_message_at
- messages/{messageId}: Direct messages inside a conversation
- notifications/{notificationId}: In-app notifications
- event_admins/{uid}: Admin flags (is_super_admin)
"""
import os
import json
import logging
import uuid
from typing import Optional, Dict, Any, List
from datetime import datetime
from django.utils import timezone

from .cache import CacheKeys, CacheTTL, get_or_fetch, invalidate

logger = logging.getLogger("api")

# Firebase Admin initialization
_firebase_app = None
_firestore_client = None
_firebase_init_attempted = False


def get_firebase_app():
    """Get or initialize Firebase Admin app"""
    global _firebase_app, _firebase_init_attempted

    if _firebase_app is not None:
        return _firebase_app

    if _firebase_init_attempted:
        # Already tried and failed
        return None

    _firebase_init_attempted = True

    try:
        import firebase_admin
        from firebase_admin import credentials
    except ImportError:
        logger.error("firebase-admin package not installed")
        return None

    use_emulator = os.environ.get("FIREBASE_USE_EMULATOR", "false").lower() == "true"
    project_id = os.environ.get("FIREBASE_PROJECT_ID")
    options = {}
    if project_id:
        options["projectId"] = project_id
    storage_bucket = os.environ.get("FIREBASE_STORAGE_BUCKET")
    if storage_bucket:
        options["storageBucket"] = storage_bucket

    logger.info(f"Firebase init: use_emulator={use_emulator}, project_id={project_id}")

    if use_emulator:
        firestore_host = os.environ.get("FIRESTORE_EMULATOR_HOST", "localhost:8080")
        os.environ["FIRESTORE_EMULATOR_HOST"] = firestore_host
        options.setdefault("projectId", "demo-project")

        try:
            _firebase_app = firebase_admin.initialize_app(credential=None, options=options)
            logger.info(f"Firebase Admin initialized with EMULATOR (Firestore: {firestore_host})")
        except ValueError as e:
            # Already initialized
            try:
                _firebase_app = firebase_admin.get_app()
            except ValueError:
                logger.error(f"Firebase init failed: {e}")
                return None
        except Exception as e:
            logger.error(f"Firebase emulator init failed: {e}")
            return None
    else:
        service_account_json = os.environ.get("FIREBASE_SERVICE_ACCOUNT")
        service_account_path = os.environ.get("FIREBASE_SERVICE_ACCOUNT_PATH")

        cred = None
        if service_account_json:
            try:
                cred = credentials.Certificate(json.loads(service_account_json))
                logger.info("Using FIREBASE_SERVICE_ACCOUNT env var")
            except (json.JSONDecodeError, ValueError) as e:
                logger.error(f"Invalid FIREBASE_SERVICE_ACCOUNT JSON: {e}")
        elif service_account_path and os.path.exists(service_account_path):
            cred = credentials.Certificate(service_account_path)
            logger.info(f"Using service account from {service_account_path}")

        if cred:
            try:
                _firebase_app = firebase_admin.initialize_app(cred, options=options)
                logger.info("Firebase Admin initialized (production)")
            except ValueError:
                try:
                    _firebase_app = firebase_admin.get_app()
                except ValueError:
                    pass
        else:
            logger.warning("Firebase credentials not found - Firestore operations will fail")
            return None

    return _firebase_app


def get_firestore():
    """Get Firestore client"""
    global _firestore_client

    if _firestore_client is not None:
        return _firestore_client

    app = get_firebase_app()
    if app is None:
        return None

    try:
        from firebase_admin import firestore
        _firestore_client = firestore.client(app)
        return _firestore_client
    except Exception as e:
        logger.error(f"Failed to get Firestore client: {e}")
        return None


def _increment(amount: int):
    from firebase_admin import firestore as fb_firestore
    return fb_firestore.Increment(amount)


def _descending():
    from firebase_admin import firestore as fb_firestore
    return fb_firestore.Query.DESCENDING


def _snapshot_dict(doc) -> Dict[str, Any]:
    data = doc.to_dict() or {}
    data.setdefault("id", doc.id)
    return data


class FirestoreService:
    """Service class for Firestore operations"""

    PROFILES_COLLECTION = "profiles"
    POSTS_COLLECTION = "posts"
    COMMENTS_COLLECTION = "comments"
    LIKES_COLLECTION = "post_likes"
    CALLS_COLLECTION = "call_requests"
    CONVERSATIONS_COLLECTION = "conversations"
    MESSAGES_COLLECTION = "messages"
    NOTIFICATIONS_COLLECTION = "notifications"
    ADMINS_COLLECTION = "event_admins"

    # Firestore caps a write batch at 500 operations.
    BATCH_SIZE = 400

    def __init__(self):
        self._db = None

    @property
    def db(self):
        """Lazy initialization of Firestore client"""
        if self._db is None:
            self._db = get_firestore()
        return self._db

    def is_available(self) -> bool:
        """Check if Firestore is available"""
        return self.db is not None

    def _get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        doc = self.db.collection(collection).document(doc_id).get()
        if not doc.exists:
            return None
        return _snapshot_dict(doc)

    def _commit_updates(self, updates) -> int:
        """Apply (reference, fields) pairs in batches of BATCH_SIZE; errors propagate."""
        items = list(updates)
        for start in range(0, len(items), self.BATCH_SIZE):
            batch = self.db.batch()
            for reference, fields in items[start:start + self.BATCH_SIZE]:
                batch.update(reference, fields)
            batch.commit()
        return len(items)

    # =========================================================================
    # Profiles
    # =========================================================================

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Profile document, cached for a few minutes."""
        if not self.db or not user_id:
            return None

        def _fetch():
            return self._get_document(self.PROFILES_COLLECTION, user_id)

        try:
            return get_or_fetch(CacheKeys.profile(user_id), _fetch, CacheTTL.SHORT)
        except Exception as e:
            logger.error(f"Error getting profile {user_id}: {e}")
            return None

    def find_profiles_by_username(self, usernames: List[str]) -> List[Dict[str, Any]]:
        if not self.db or not usernames:
            return []

        profiles = []
        try:
            for username in dict.fromkeys(usernames):
                query = (
                    self.db.collection(self.PROFILES_COLLECTION)
                    .where("username", "==", username)
                    .limit(1)
                )
                profiles.extend(_snapshot_dict(doc) for doc in query.stream())
        except Exception as e:
            logger.error(f"Error looking up mentioned usernames: {e}")
        return profiles

    def search_profiles(self, query: str, limit: int) -> Optional[List[Dict[str, Any]]]:
        """
        Profiles whose full_name or username starts with `query`.

        Firestore has no substring match, so this runs prefix range queries
        on full_name (as typed and capitalized) and on the lowercased username.
        Returns None on error.
        """
        if not self.db:
            return None

        prefixes = [
            ("full_name", query),
            ("full_name", query[:1].upper() + query[1:]),
            ("username", query.lower()),
        ]
        found = {}
        try:
            for field, prefix in dict.fromkeys(prefixes):
                docs = (
                    self.db.collection(self.PROFILES_COLLECTION)
                    .where(field, ">=", prefix)
                    .where(field, "<=", prefix + "\uf8ff")
                    .limit(limit)
                    .stream()
                )
                for doc in docs:
                    found.setdefault(doc.id, _snapshot_dict(doc))
        except Exception as e:
            logger.error(f"Error searching profiles: {e}")
            return None
        return list(found.values())[:limit]

    def update_profile(self, user_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if not self.db:
            return None

        try:
            doc_ref = self.db.collection(self.PROFILES_COLLECTION).document(user_id)
            doc_ref.set({**fields, "id": user_id, "updated_at": timezone.now()}, merge=True)
            invalidate(CacheKeys.profile(user_id))
            return _snapshot_dict(doc_ref.get())
        except Exception as e:
            logger.error(f"Error updating profile {user_id}: {e}")
            return None

    def is_super_admin(self, user_id: str) -> bool:
        if not self.db:
            return False

        try:
            admin = self._get_document(self.ADMINS_COLLECTION, user_id)
            return bool(admin and admin.get("is_super_admin"))
        except Exception as e:
            logger.error(f"Error checking admin flag for {user_id}: {e}")
            return False

    # =========================================================================
    # Posts, comments, likes
    # =========================================================================

    def create_post(
        self,
        author_id: str,
        content: str,
        image_url: Optional[str] = None,
        video_url: Optional[str] = None,
        media_type: Optional[str] = None,
        shared_post_id: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        if not self.db:
            logger.warning("Firestore not available")
            return None

        try:
            post_id = str(uuid.uuid4())
            post = {
                "id": post_id,
                "author_id": author_id,
                "content": content,
                "image_url": image_url,
                "video_url": video_url,
                "media_type": media_type,
                "shared_post_id": shared_post_id,
                "likes_count": 0,
                "comments_count": 0,
                "share_count": 0,
                "created_at": timezone.now(),
            }
            batch = self.db.batch()
            batch.set(self.db.collection(self.POSTS_COLLECTION).document(post_id), post)
            if shared_post_id:
                batch.update(
                    self.db.collection(self.POSTS_COLLECTION).document(shared_post_id),
                    {"share_count": _increment(1)},
                )
            batch.commit()

            logger.info(f"Created post: {post_id}")
            return post
        except Exception as e:
            logger.error(f"Error creating post: {e}")
            return None

    def get_post(self, post_id: str) -> Optional[Dict[str, Any]]:
        if not self.db:
            return None

        try:
            return self._get_document(self.POSTS_COLLECTION, post_id)
        except Exception as e:
            logger.error(f"Error getting post {post_id}: {e}")
            return None

    def list_posts(self, limit: int, offset: int = 0) -> Optional[List[Dict[str, Any]]]:
        """Newest posts first."""
        if not self.db:
            return None

        try:
            query = (
                self.db.collection(self.POSTS_COLLECTION)
                .order_by("created_at", direction=_descending())
                .offset(offset)
                .limit(limit)
            )
            return [_snapshot_dict(doc) for doc in query.stream()]
        except Exception as e:
            logger.error(f"Error listing posts: {e}")
            return None

    def create_comment(self, post_id: str, author_id: str, content: str) -> Optional[Dict[str, Any]]:
        if not self.db:
            return None

        try:
            comment_id = str(uuid.uuid4())
            comment = {
                "id": comment_id,
                "post_id": post_id,
                "author_id": author_id,
                "content": content,
                "created_at": timezone.now(),
            }
            batch = self.db.batch()
            batch.set(self.db.collection(self.COMMENTS_COLLECTION).document(comment_id), comment)
            batch.update(
                self.db.collection(self.POSTS_COLLECTION).document(post_id),
                {"comments_count": _increment(1)},
            )
            batch.commit()
            return comment
        except Exception as e:
            logger.error(f"Error creating comment on {post_id}: {e}")
            return None

    def list_comments(self, post_id: str, limit: int) -> Optional[List[Dict[str, Any]]]:
        """Oldest comments first."""
        if not self.db:
            return None

        try:
            query = (
                self.db.collection(self.COMMENTS_COLLECTION)
                .where("post_id", "==", post_id)
                .order_by("created_at")
                .limit(limit)
            )
            return [_snapshot_dict(doc) for doc in query.stream()]
        except Exception as e:
            logger.error(f"Error listing comments for {post_id}: {e}")
            return None

    def toggle_like(self, post_id: str, user_id: str) -> Optional[bool]:
        """
        Like the post, or remove an existing like.

        Returns:
            True if the post is now liked, False if unliked, None on error.
        """
        if not self.db:
            return None

        try:
            like_ref = self.db.collection(self.LIKES_COLLECTION).document(f"{post_id}_{user_id}")
            post_ref = self.db.collection(self.POSTS_COLLECTION).document(post_id)
            liked = not like_ref.get().exists

            batch = self.db.batch()
            if liked:
                batch.set(like_ref, {
                    "post_id": post_id,
                    "user_id": user_id,
                    "created_at": timezone.now(),
                })
                batch.update(post_ref, {"likes_count": _increment(1)})
            else:
                batch.delete(like_ref)
                batch.update(post_ref, {"likes_count": _increment(-1)})
            batch.commit()
            return liked
        except Exception as e:
            logger.error(f"Error toggling like on {post_id}: {e}")
            return None

    # =========================================================================
    # Call requests
    # =========================================================================

    def create_call_request(
        self,
        caller_id: str,
        receiver_id: str,
        call_type: str,
        room_id: str,
        expires_at: datetime,
    ) -> Optional[Dict[str, Any]]:
        """
        Create a pending call request.

        Document structure at call_requests/{callId}:
        {
            "id": "uuid",
            "caller_id": "uid",
            "receiver_id": "uid",
            "call_type": "video" | "audio",
            "status": "pending",
            "room_id": "call_<ts>_<random>",
            "created_at": Timestamp,
            "updated_at": Timestamp,
            "expires_at": Timestamp,
            "answered_at": null,
            "ended_at": null,
            "duration_sec": null,
            "push_sent": false
        }
        """
        if not self.db:
            logger.warning("Firestore not available")
            return None

        try:
            now = timezone.now()
            call_id = str(uuid.uuid4())
            call_data = {
                "id": call_id,
                "caller_id": caller_id,
                "receiver_id": receiver_id,
                "call_type": call_type,
                "status": "pending",
                "room_id": room_id,
                "created_at": now,
                "updated_at": now,
                "expires_at": expires_at,
                "answered_at": None,
                "ended_at": None,
                "duration_sec": None,
                "push_sent": False,
            }
            self.db.collection(self.CALLS_COLLECTION).document(call_id).set(call_data)

            logger.info(f"Created call request: {call_id}")
            return call_data
        except Exception as e:
            logger.error(f"Error creating call request: {e}")
            return None

    def get_call_request(self, call_id: str) -> Optional[Dict[str, Any]]:
        if not self.db:
            return None

        try:
            return self._get_document(self.CALLS_COLLECTION, call_id)
        except Exception as e:
            logger.error(f"Error getting call request {call_id}: {e}")
            return None

    def update_call_status(self, call_id: str, status: str, **kwargs) -> Optional[Dict[str, Any]]:
        """
        Update call status.

        Valid statuses: pending, accepted, declined, cancelled, missed, ended

        Additional kwargs:
            - answered_at: datetime when call was answered
            - ended_at: datetime when call ended
            - duration_sec: int duration in seconds
        """
        if not self.db:
            return None

        try:
            doc_ref = self.db.collection(self.CALLS_COLLECTION).document(call_id)
            if not doc_ref.get().exists:
                logger.warning(f"Call request not found: {call_id}")
                return None

            update_data = {"status": status, "updated_at": timezone.now()}
            for key in ("answered_at", "ended_at", "duration_sec"):
                if key in kwargs:
                    update_data[key] = kwargs[key]

            doc_ref.update(update_data)
            return _snapshot_dict(doc_ref.get())
        except Exception as e:
            logger.error(f"Error updating call status: {e}")
            return None

    def update_push_status(self, call_id: str, push_sent: bool) -> bool:
        if not self.db:
            return False

        try:
            self.db.collection(self.CALLS_COLLECTION).document(call_id).update({
                "push_sent": push_sent,
                "updated_at": timezone.now(),
            })
            return True
        except Exception as e:
            logger.error(f"Error updating push status: {e}")
            return False

    def mark_missed_expired(self, cutoff_time: datetime) -> int:
        """
        Mark pending calls as missed if created_at <= cutoff_time.

        Returns number of updated documents.
        """
        if not self.db:
            return 0

        try:
            query = (
                self.db.collection(self.CALLS_COLLECTION)
                .where("status", "==", "pending")
                .where("created_at", "<=", cutoff_time)
            )
            docs = list(query.stream())
            if not docs:
                return 0

            now = timezone.now()
            return self._commit_updates(
                (doc.reference, {"status": "missed", "ended_at": now, "updated_at": now})
                for doc in docs
            )
        except Exception as e:
            logger.error(f"Error marking missed calls: {e}")
            return 0

    # =========================================================================
    # Conversations and messages
    # =========================================================================

    def get_conversation(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        if not self.db:
            return None

        try:
            return self._get_document(self.CONVERSATIONS_COLLECTION, conversation_id)
        except Exception as e:
            logger.error(f"Error getting conversation {conversation_id}: {e}")
            return None

    def create_message(
        self,
        conversation_id: str,
        sender_id: str,
        content: Optional[str],
        media_url: Optional[str] = None,
        media_type: str = "text",
    ) -> Optional[Dict[str, Any]]:
        if not self.db:
            return None

        try:
            message_id = str(uuid.uuid4())
            now = timezone.now()
            message = {
                "id": message_id,
                "conversation_id": conversation_id,
                "sender_id": sender_id,
                "content": content,
                "media_url": media_url,
                "media_type": media_type,
                "read": False,
                "created_at": now,
            }
            batch = self.db.batch()
            batch.set(self.db.collection(self.MESSAGES_COLLECTION).document(message_id), message)
            batch.update(
                self.db.collection(self.CONVERSATIONS_COLLECTION).document(conversation_id),
                {"last_message_at": now},
            )
            batch.commit()
            return message
        except Exception as e:
            logger.error(f"Error creating message in {conversation_id}: {e}")
            return None

    def list_messages(self, conversation_id: str, limit: int) -> Optional[List[Dict[str, Any]]]:
        """Latest `limit` messages, returned oldest first."""
        if not self.db:
            return None

        try:
            query = (
                self.db.collection(self.MESSAGES_COLLECTION)
                .where("conversation_id", "==", conversation_id)
                .order_by("created_at", direction=_descending())
                .limit(limit)
            )
            messages = [_snapshot_dict(doc) for doc in query.stream()]
            messages.reverse()
            return messages
        except Exception as e:
            logger.error(f"Error listing messages for {conversation_id}: {e}")
            return None

    def mark_messages_read(self, conversation_id: str, reader_id: str) -> int:
        """Mark messages sent by other participants as read."""
        if not self.db:
            return 0

        try:
            query = (
                self.db.collection(self.MESSAGES_COLLECTION)
                .where("conversation_id", "==", conversation_id)
                .where("read", "==", False)
            )
            docs = [doc for doc in query.stream() if (doc.to_dict() or {}).get("sender_id") != reader_id]
            if not docs:
                return 0

            return self._commit_updates((doc.reference, {"read": True}) for doc in docs)
        except Exception as e:
            logger.error(f"Error marking messages read in {conversation_id}: {e}")
            return 0

    # =========================================================================
    # Notifications
    # =========================================================================

    def create_notification(
        self,
        user_id: str,
        actor_id: str,
        type: str,
        content: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Users are never notified about their own actions."""
        if not self.db or not user_id or user_id == actor_id:
            return None

        try:
            notification_id = str(uuid.uuid4())
            notification = {
                "id": notification_id,
                "user_id": user_id,
                "actor_id": actor_id,
                "type": type,
                "content": content,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "is_read": False,
                "created_at": timezone.now(),
            }
            self.db.collection(self.NOTIFICATIONS_COLLECTION).document(notification_id).set(notification)
            return notification
        except Exception as e:
            logger.error(f"Error creating notification: {e}")
            return None

    def list_notifications(self, user_id: str, limit: int) -> Optional[List[Dict[str, Any]]]:
        if not self.db:
            return None

        try:
            query = (
                self.db.collection(self.NOTIFICATIONS_COLLECTION)
                .where("user_id", "==", user_id)
                .order_by("created_at", direction=_descending())
                .limit(limit)
            )
            return [_snapshot_dict(doc) for doc in query.stream()]
        except Exception as e:
            logger.error(f"Error fetching notifications: {e}")
            return None

    def _unread_notifications(self, user_id: str):
        return (
            self.db.collection(self.NOTIFICATIONS_COLLECTION)
            .where("user_id", "==", user_id)
            .where("is_read", "==", False)
            .stream()
        )

    def count_unread_notifications(self, user_id: str) -> int:
        if not self.db:
            return 0

        try:
            return sum(1 for _ in self._unread_notifications(user_id))
        except Exception as e:
            logger.error(f"Error fetching unread count: {e}")
            return 0

    def mark_notification_read(self, notification_id: str, user_id: str) -> Optional[bool]:
        """
        Returns:
            True if marked, False if the notification does not belong to the user,
            None on error.
        """
        if not self.db:
            return None

        try:
            doc_ref = self.db.collection(self.NOTIFICATIONS_COLLECTION).document(notification_id)
            doc = doc_ref.get()
            if not doc.exists or (doc.to_dict() or {}).get("user_id") != user_id:
                return False
            doc_ref.update({"is_read": True})
            return True
        except Exception as e:
            logger.error(f"Error marking notification as read: {e}")
            return None

    def delete_notification(self, notification_id: str, user_id: str) -> Optional[bool]:
        """True if deleted, False if missing or owned by someone else, None on error."""
        if not self.db:
            return None

        try:
            doc_ref = self.db.collection(self.NOTIFICATIONS_COLLECTION).document(notification_id)
            doc = doc_ref.get()
            if not doc.exists or (doc.to_dict() or {}).get("user_id") != user_id:
                return False
            doc_ref.delete()
            return True
        except Exception as e:
            logger.error(f"Error deleting notification: {e}")
            return None

    def mark_all_notifications_read(self, user_id: str) -> Optional[int]:
        if not self.db:
            return None

        try:
            docs = list(self._unread_notifications(user_id))
            if not docs:
                return 0
            return self._commit_updates((doc.reference, {"is_read": True}) for doc in docs)
        except Exception as e:
            logger.error(f"Error marking all notifications as read: {e}")
            return None

    # =========================================================================
    # Storage verification
    # =========================================================================

    def scan_media_columns(self, collection: str, columns, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Documents of a collection (optionally the first `limit`); errors propagate to the caller."""
        query = self.db.collection(collection)
        if limit:
            query = query.limit(limit)
        return [
            {"id": doc.id, **{column: (doc.to_dict() or {}).get(column) for column in columns}}
            for doc in query.stream()
        ]

    def update_media_columns(self, collection: str, updates: Dict[str, Dict[str, Any]]) -> int:
        """Apply {doc_id: {column: value}} updates in batches; errors propagate."""
        return self._commit_updates(
            (self.db.collection(collection).document(doc_id), fields)
            for doc_id, fields in updates.items()
        )


# Singleton instance
firestore_service = FirestoreService()
