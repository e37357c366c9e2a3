from api.storage_service import StorageError


def _seed_media(db):
    db.add("posts", "p1", {"id": "p1", "image_url": "user-media:alice/a.png", "video_url": None})
    db.add("posts", "p2", {"id": "p2", "image_url": "https://cdn.example.com/b.png", "video_url": "user-media:bob/gone.mp4"})
    db.add("posts", "p3", {"id": "p3", "image_url": None, "video_url": None})
    db.add("messages", "m1", {"id": "m1", "media_url": "data:image/png;base64,AAAA"})


def test_requires_super_admin(api):
    response = api.get("admin/verify-storage")

    assert response.status_code == 403
    assert response.json()["error"] == "Access denied: Super admin privileges required"


def test_reports_media_storage(api, db, storage):
    db.add("event_admins", "alice", {"is_super_admin": True})
    _seed_media(db)
    storage.objects[("user-media", "alice/a.png")] = (b"x", "image/png")
    storage.objects[("user-media", "alice/avatar.png")] = (b"x", "image/png")

    response = api.get("admin/verify-storage")

    assert response.status_code == 200
    body = response.json()
    tables = {table["table"]: table for table in body["tables"]}

    posts = tables["posts"]
    assert (posts["totalRows"], posts["rowsWithMedia"]) == (3, 2)
    assert (posts["storageReferences"], posts["httpUrls"]) == (2, 1)
    assert (posts["filesVerified"], posts["filesFailed"]) == (1, 1)
    assert posts["errors"] == ["posts.video_url: bob/gone.mp4 - object not found"]

    assert tables["messages"]["base64Data"] == 1
    assert tables["profiles"]["filesVerified"] == 1

    assert body["summary"]["totalTables"] == 3
    assert body["summary"]["totalBase64"] == 1
    assert body["summary"]["totalFailed"] == 1
    assert body["success"] is False


def test_storage_errors_are_collected(api, db, storage):
    db.add("event_admins", "alice", {"is_super_admin": True})
    storage.fail_with = StorageError("permission denied")

    body = api.get("admin/verify-storage").json()

    assert body["summary"]["totalFailed"] == 1
    assert body["errors"] == ["profiles.avatar_url: alice/avatar.png - permission denied"]


def test_clean_storage_reports_success(api, db, storage):
    db.add("event_admins", "alice", {"is_super_admin": True})
    storage.objects[("user-media", "alice/avatar.png")] = (b"x", "image/png")

    assert api.get("admin/verify-storage").json()["success"] is True
