"""
Notification shortcuts used by route handlers after a successful write.

Failures are logged by FirestoreService and never fail the request.
"""
import logging

from .firebase_service import firestore_service
from .mentions import extract_mentions

logger = logging.getLogger("api")


def display_name(user_id: str) -> str:
    profile = firestore_service.get_profile(user_id) or {}
    return profile.get("full_name") or profile.get("username") or "Someone"


def notify_mentions(text: str, actor_id: str, actor_name: str, kind: str, entity_type: str, entity_id: str) -> int:
    """
    Notify every user @mentioned in `text`. `kind` is "post" or "comment".

    Returns the number of notifications created.
    """
    usernames = extract_mentions(text)
    if not usernames:
        return 0

    created = 0
    for profile in firestore_service.find_profiles_by_username(usernames):
        notification = firestore_service.create_notification(
            user_id=profile.get("id"),
            actor_id=actor_id,
            type=f"{kind}_mention",
            content=f"{actor_name} mentioned you in a {kind}",
            entity_type=entity_type,
            entity_id=entity_id,
        )
        if notification:
            created += 1

    logger.info(f"[NOTIFY] {created} mention notifications for {entity_type} {entity_id}")
    return created


def notify_post_like(post: dict, actor_id: str, actor_name: str) -> None:
    firestore_service.create_notification(
        user_id=post.get("author_id"),
        actor_id=actor_id,
        type="post_like",
        content=f"{actor_name} liked your post",
        entity_type="post",
        entity_id=post.get("id"),
    )


def notify_post_comment(post: dict, actor_id: str, actor_name: str) -> None:
    firestore_service.create_notification(
        user_id=post.get("author_id"),
        actor_id=actor_id,
        type="post_comment",
        content=f"{actor_name} commented on your post",
        entity_type="post",
        entity_id=post.get("id"),
    )


def notify_post_share(shared_post: dict, actor_id: str, actor_name: str, new_post_id: str) -> None:
    firestore_service.create_notification(
        user_id=shared_post.get("author_id"),
        actor_id=actor_id,
        type="post_share",
        content=f"{actor_name} shared your post",
        entity_type="post",
        entity_id=new_post_id,
    )


def notify_message(recipient_id: str, actor_id: str, actor_name: str, conversation_id: str) -> None:
    firestore_service.create_notification(
        user_id=recipient_id,
        actor_id=actor_id,
        type="message",
        content=f"{actor_name} sent you a message",
        entity_type="message",
        entity_id=conversation_id,
    )
