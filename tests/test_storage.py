import io
import re

from django.core.files.uploadedfile import SimpleUploadedFile
from PIL import Image

from api.storage_service import StorageError

PNG_HEADER = bytes([0x89, 0x50, 0x4E, 0x47, 0x0D, 0x0A, 0x1A, 0x0A])


def _upload(client, name, data, content_type, user="alice", **fields):
    return client.post(
        "/api/storage/upload",
        {"file": SimpleUploadedFile(name, data, content_type=content_type), **fields},
        HTTP_AUTHORIZATION=f"Bearer {user}-token",
    )


class TestSignUpload:
    def test_user_media_upload_url(self, api):
        response = api.post("storage/sign-upload", {"bucket": "user-media", "contentType": "image/png"})

        assert response.status_code == 200
        body = response.json()
        assert re.fullmatch(r"alice/\d+_[0-9a-f]{24}\.png", body["objectPath"])
        assert body["storageReference"] == f"user-media:{body['objectPath']}"
        assert body["uploadUrl"].startswith("https://storage.test/upload/user-media/alice/")
        assert body["contentType"] == "image/png"
        assert body["expiresIn"] == 900

    def test_websiteconfig_path_is_not_user_scoped(self, api):
        body = api.post("storage/sign-upload", {"bucket": "websiteconfig", "contentType": "image/webp"}).json()

        assert "/" not in body["objectPath"]
        assert body["storageReference"].startswith("websiteconfig:")

    def test_missing_fields(self, api):
        response = api.post("storage/sign-upload", {"bucket": "user-media"})

        assert response.status_code == 400
        assert response.json()["error"] == "Missing required fields"

    def test_unknown_bucket(self, api):
        response = api.post("storage/sign-upload", {"bucket": "secrets", "contentType": "image/png"})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid bucket"

    def test_storage_failure(self, api, storage):
        storage.fail_with = StorageError("boom")

        response = api.post("storage/sign-upload", {"bucket": "user-media", "contentType": "image/png"})

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to create upload URL"

    def test_missing_bucket_env(self, api, monkeypatch):
        monkeypatch.delenv("FIREBASE_STORAGE_BUCKET")

        response = api.post("storage/sign-upload", {"bucket": "user-media", "contentType": "image/png"})

        assert response.status_code == 500
        assert response.json() == {"error": "missing_env", "missing": ["FIREBASE_STORAGE_BUCKET"]}

    def test_rate_limited(self, api):
        for _ in range(10):
            api.post("storage/sign-upload", {"bucket": "user-media", "contentType": "image/png"})

        response = api.post("storage/sign-upload", {"bucket": "user-media", "contentType": "image/png"})

        assert response.status_code == 429


class TestUpload:
    def test_stores_validated_file(self, client, storage):
        data = PNG_HEADER + b"small image body"

        response = _upload(client, "a.png", data, "image/png")

        assert response.status_code == 201
        body = response.json()
        assert body["storageReference"] == f"user-media:{body['objectPath']}"
        assert storage.objects[("user-media", body["objectPath"])] == (data, "image/png")

    def test_files_under_post(self, client):
        post_id = "6f9619ff-8b86-d011-b42d-00c04fc964ff"

        response = _upload(client, "a.png", PNG_HEADER + b"x", "image/png", post_id=post_id)

        assert response.json()["objectPath"].startswith(f"alice/posts/{post_id}/")

    def test_rejects_spoofed_type(self, client, storage):
        response = _upload(client, "a.png", b"MZ\x90\x00 executable", "image/png")

        assert response.status_code == 400
        assert response.json()["error"].startswith("File signature mismatch")
        assert storage.objects == {}

    def test_requires_file(self, client):
        response = client.post("/api/storage/upload", {}, HTTP_AUTHORIZATION="Bearer alice-token")

        assert response.status_code == 400

    def test_large_images_are_compressed(self, client, storage):
        image = Image.new("RGB", (1400, 1000), (200, 30, 30))
        output = io.BytesIO()
        image.save(output, format="PNG", compress_level=0)
        data = output.getvalue()
        assert len(data) > 1024 * 1024

        response = _upload(client, "big.png", data, "image/png")

        assert response.status_code == 201
        stored, _ = storage.objects[("user-media", response.json()["objectPath"])]
        assert len(stored) < len(data)

    def test_rejects_oversized_image_dimensions(self, client, storage, monkeypatch):
        monkeypatch.setattr("api.compression.MAX_IMAGE_PIXELS", 1_000_000)
        image = Image.new("RGB", (1400, 1000), (200, 30, 30))
        output = io.BytesIO()
        image.save(output, format="PNG", compress_level=0)

        response = _upload(client, "huge.png", output.getvalue(), "image/png")

        assert response.status_code == 400
        assert response.json()["error"] == "Image dimensions too large"
        assert storage.objects == {}


class TestResolveUrls:
    def test_resolves_each_reference(self, api):
        response = api.post("storage/resolve-urls", {
            "references": [
                "user-media:alice/a.png",
                "user-media:bob/b.png",
                "websiteconfig:logo.svg",
                "https://cdn.example.com/c.png",
                None,
            ],
            "expiresIn": 120,
        })

        assert response.status_code == 200
        body = response.json()
        assert body["urls"]["user-media:alice/a.png"] == "https://storage.test/user-media/alice/a.png?expires=120"
        assert body["urls"]["user-media:bob/b.png"] == ""
        assert body["errors"] == {
            "user-media:bob/b.png": "Access denied: path must belong to authenticated user",
        }
        assert body["urls"]["websiteconfig:logo.svg"] == "https://storage.test/public/websiteconfig/logo.svg"
        assert body["urls"]["https://cdn.example.com/c.png"] == "https://cdn.example.com/c.png"

    def test_negative_expiry_uses_minimum(self, api):
        body = api.post("storage/resolve-urls", {"references": ["user-media:alice/a.png"], "expiresIn": -5}).json()

        assert body["urls"]["user-media:alice/a.png"].endswith("?expires=60")

    def test_references_must_be_a_list(self, api):
        response = api.post("storage/resolve-urls", {"references": "user-media:alice/a.png"})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request: references must be an array"

    def test_too_many_references(self, api):
        response = api.post("storage/resolve-urls", {"references": ["user-media:alice/a.png"] * 101})

        assert response.status_code == 400

    def test_signing_failure_is_reported_per_reference(self, api, storage):
        storage.fail_with = StorageError("signing unavailable")

        body = api.post("storage/resolve-urls", {"references": ["user-media:alice/a.png"]}).json()

        assert body["urls"] == {"user-media:alice/a.png": ""}
        assert body["errors"] == {"user-media:alice/a.png": "signing unavailable"}


class TestDelete:
    def test_deletes_own_object(self, api, storage):
        storage.objects[("user-media", "alice/a.png")] = (b"x", "image/png")

        response = api.post("storage/delete", {"reference": "user-media:alice/a.png"})

        assert response.status_code == 200
        assert storage.objects == {}

    def test_cannot_delete_other_users_object(self, api, storage):
        storage.objects[("user-media", "bob/a.png")] = (b"x", "image/png")

        response = api.post("storage/delete", {"reference": "user-media:bob/a.png"})

        assert response.status_code == 403
        assert ("user-media", "bob/a.png") in storage.objects

    def test_missing_object(self, api):
        assert api.post("storage/delete", {"reference": "user-media:alice/gone.png"}).status_code == 404

    def test_invalid_reference(self, api):
        assert api.post("storage/delete", {"reference": "not-a-reference"}).status_code == 400
