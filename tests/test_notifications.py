from datetime import datetime, timedelta, timezone

BASE_TIME = datetime(2026, 2, 1, tzinfo=timezone.utc)


def _seed(db, notification_id, user_id="alice", actor_id="bob", is_read=False, minutes=0):
    db.add("notifications", notification_id, {
        "id": notification_id,
        "user_id": user_id,
        "actor_id": actor_id,
        "type": "post_like",
        "content": "Bob Builder liked your post",
        "entity_type": "post",
        "entity_id": "p1",
        "is_read": is_read,
        "created_at": BASE_TIME + timedelta(minutes=minutes),
    })


def test_lists_newest_first_with_actor_and_unread_count(api, db):
    _seed(db, "n1", minutes=1)
    _seed(db, "n2", minutes=2, is_read=True)
    _seed(db, "n3", minutes=3)
    _seed(db, "other", user_id="bob", actor_id="alice")

    response = api.get("notifications")

    assert response.status_code == 200
    body = response.json()
    assert [n["id"] for n in body["notifications"]] == ["n3", "n2", "n1"]
    assert body["notifications"][0]["actor"] == {"full_name": "Bob Builder", "avatar_url": None}
    assert body["unreadCount"] == 2


def test_mark_one_read(api, db):
    _seed(db, "n1")

    response = api.post("notifications/read", {"notification_id": "n1"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "updatedCount": 1}
    assert db.get("notifications", "n1")["is_read"] is True


def test_cannot_mark_someone_elses_notification(api, db):
    _seed(db, "n1", user_id="bob")

    response = api.post("notifications/read", {"notification_id": "n1"})

    assert response.status_code == 404
    assert db.get("notifications", "n1")["is_read"] is False


def test_mark_all_read(api, db):
    _seed(db, "n1")
    _seed(db, "n2")
    _seed(db, "other", user_id="bob")

    response = api.post("notifications/read", {"all": True})

    assert response.json() == {"success": True, "updatedCount": 2}
    assert db.get("notifications", "other")["is_read"] is False


def test_requires_target(api):
    response = api.post("notifications/read", {})

    assert response.status_code == 400
    assert response.json()["error"] == "missing_notification_id"


def test_requires_authentication(api):
    assert api.get("notifications", user=None).status_code == 401


def test_delete_own_notification(api, db):
    _seed(db, "n1")

    response = api.post("notifications/delete", {"notification_id": "n1"})

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert db.get("notifications", "n1") is None


def test_cannot_delete_someone_elses_notification(api, db):
    _seed(db, "n1", user_id="bob")

    response = api.post("notifications/delete", {"notification_id": "n1"})

    assert response.status_code == 404
    assert response.json()["error"] == "notification_not_found"
    assert db.get("notifications", "n1") is not None


def test_delete_requires_notification_id(api):
    response = api.post("notifications/delete", {})

    assert response.status_code == 400
    assert response.json()["error"] == "missing_notification_id"


def test_delete_without_firestore(api, no_firestore):
    assert api.post("notifications/delete", {"notification_id": "n1"}).status_code == 503
