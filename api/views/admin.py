import logging
from dataclasses import dataclass, field, asdict
from typing import List

from django.http import JsonResponse, HttpResponseNotAllowed
from django.views.decorators.csrf import csrf_exempt

from ..auth import authenticate
from ..constants import MEDIA_COLUMNS, VERIFY_SCAN_LIMIT
from ..firebase_service import firestore_service
from ..http import error_response, firestore_unavailable_response, require_env
from ..storage_refs import is_external_url
from ..storage_service import StorageError, storage_service

logger = logging.getLogger("api")

STORAGE_PREFIXES = ("user-media:", "media:", "websiteconfig:")


@dataclass
class TableStats:
    table: str
    totalRows: int = 0
    rowsWithMedia: int = 0
    storageReferences: int = 0
    httpUrls: int = 0
    base64Data: int = 0
    filesVerified: int = 0
    filesFailed: int = 0
    errors: List[str] = field(default_factory=list)


def _verify_object(stats: TableStats, label: str, value: str) -> None:
    bucket, _, path = value.partition(":")
    try:
        if storage_service.exists(bucket, path):
            stats.filesVerified += 1
        else:
            stats.filesFailed += 1
            stats.errors.append(f"{label}: {path} - object not found")
    except StorageError as e:
        stats.filesFailed += 1
        stats.errors.append(f"{label}: {path} - {e}")


def verify_collection(collection: str, columns) -> TableStats:
    stats = TableStats(table=collection)

    try:
        rows = firestore_service.scan_media_columns(collection, columns, VERIFY_SCAN_LIMIT)
    except Exception as e:
        logger.error(f"[ADMIN/VERIFY_STORAGE] Failed to fetch {collection}: {e}")
        stats.errors.append(f"Failed to fetch: {e}")
        return stats

    stats.totalRows = len(rows)
    for row in rows:
        has_media = False
        for column in columns:
            value = row.get(column)
            if not value or not isinstance(value, str):
                continue
            has_media = True
            label = f"{collection}.{column}"

            if value.startswith("data:"):
                stats.base64Data += 1
            elif value.startswith(STORAGE_PREFIXES):
                stats.storageReferences += 1
                _verify_object(stats, label, value)
            elif is_external_url(value):
                stats.httpUrls += 1

        if has_media:
            stats.rowsWithMedia += 1

    return stats


@csrf_exempt
def admin_verify_storage(request):
    """
    Report how media is stored across collections and check that every
    storage reference points at an existing object. Super admins only.
    """
    logger.info(f"[ADMIN/VERIFY_STORAGE] {request.method} from {request.META.get('REMOTE_ADDR')}")

    if request.method != "GET":
        return HttpResponseNotAllowed(["GET"])

    missing_env = require_env("FIREBASE_STORAGE_BUCKET")
    if missing_env:
        return missing_env

    user, error = authenticate(request)
    if error:
        return error

    if not firestore_service.is_available():
        return firestore_unavailable_response()

    if not firestore_service.is_super_admin(user["uid"]):
        return error_response("Access denied: Super admin privileges required", 403)

    results = [verify_collection(collection, columns) for collection, columns in MEDIA_COLUMNS]

    summary = {
        "totalTables": len(results),
        "totalRows": sum(s.totalRows for s in results),
        "totalWithMedia": sum(s.rowsWithMedia for s in results),
        "totalStorageRefs": sum(s.storageReferences for s in results),
        "totalHttpUrls": sum(s.httpUrls for s in results),
        "totalBase64": sum(s.base64Data for s in results),
        "totalVerified": sum(s.filesVerified for s in results),
        "totalFailed": sum(s.filesFailed for s in results),
    }

    return JsonResponse({
        "summary": summary,
        "tables": [asdict(s) for s in results],
        "errors": [e for s in results for e in s.errors],
        "success": summary["totalBase64"] == 0 and summary["totalFailed"] == 0,
    })
