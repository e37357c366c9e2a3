"""
Cloud Storage access through the Firebase Admin SDK.

Logical buckets ("user-media", "websiteconfig") are top-level folders of the
project's default storage bucket, so "user-media:<uid>/a.png" is stored as
the object "user-media/<uid>/a.png".
"""
import logging
import os
from datetime import timedelta

from .constants import UPLOAD_URL_EXPIRES
from .firebase_service import get_firebase_app

logger = logging.getLogger("api")


class StorageError(Exception):
    pass


class StorageService:
    def __init__(self):
        self._bucket = None

    @property
    def bucket(self):
        if self._bucket is None:
            app = get_firebase_app()
            if app is None:
                raise StorageError("Firebase storage is not configured")
            try:
                from firebase_admin import storage
                self._bucket = storage.bucket(os.environ.get("FIREBASE_STORAGE_BUCKET"), app=app)
            except Exception as e:
                logger.error(f"[STORAGE] Failed to get bucket: {e}")
                raise StorageError(str(e)) from e
        return self._bucket

    def is_available(self) -> bool:
        try:
            return self.bucket is not None
        except StorageError:
            return False

    @staticmethod
    def object_name(bucket: str, path: str) -> str:
        return f"{bucket}/{path}"

    def _blob(self, bucket: str, path: str):
        return self.bucket.blob(self.object_name(bucket, path))

    def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        try:
            return self._blob(bucket, path).generate_signed_url(
                version="v4",
                expiration=timedelta(seconds=expires_in),
                method="GET",
            )
        except StorageError:
            raise
        except Exception as e:
            logger.error(f"[STORAGE] Signing {bucket}:{path} failed: {e}")
            raise StorageError(str(e)) from e

    def create_signed_upload_url(self, bucket: str, path: str, content_type: str,
                                 expires_in: int = UPLOAD_URL_EXPIRES) -> str:
        try:
            return self._blob(bucket, path).generate_signed_url(
                version="v4",
                expiration=timedelta(seconds=expires_in),
                method="PUT",
                content_type=content_type,
            )
        except StorageError:
            raise
        except Exception as e:
            logger.error(f"[STORAGE] Signing upload {bucket}:{path} failed: {e}")
            raise StorageError(str(e)) from e

    def get_public_url(self, bucket: str, path: str) -> str:
        return self._blob(bucket, path).public_url

    def upload_bytes(self, bucket: str, path: str, data: bytes, content_type: str) -> None:
        try:
            self._blob(bucket, path).upload_from_string(data, content_type=content_type)
        except StorageError:
            raise
        except Exception as e:
            logger.error(f"[STORAGE] Upload {bucket}:{path} failed: {e}")
            raise StorageError(str(e)) from e

    def delete(self, bucket: str, path: str) -> bool:
        """Returns False when the object does not exist."""
        try:
            blob = self._blob(bucket, path)
            if not blob.exists():
                return False
            blob.delete()
            return True
        except StorageError:
            raise
        except Exception as e:
            logger.error(f"[STORAGE] Delete {bucket}:{path} failed: {e}")
            raise StorageError(str(e)) from e

    def exists(self, bucket: str, path: str) -> bool:
        try:
            return self._blob(bucket, path).exists()
        except StorageError:
            raise
        except Exception as e:
            logger.error(f"[STORAGE] Existence check {bucket}:{path} failed: {e}")
            raise StorageError(str(e)) from e


# Singleton instance
storage_service = StorageService()
