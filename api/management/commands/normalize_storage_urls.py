"""
Rewrite legacy object URLs stored in media columns into user-media references.

Run with: python manage.py normalize_storage_urls [--dry-run]
"""
from django.core.management.base import BaseCommand, CommandError

from api.constants import MEDIA_COLUMNS
from api.firebase_service import firestore_service
from api.storage_refs import normalize_media_url


def normalize_collection(collection, columns, dry_run=False):
    stats = {
        "collection": collection,
        "totalRows": 0,
        "rowsWithMedia": 0,
        "urlsNormalized": 0,
        "alreadyNormalized": 0,
        "failed": 0,
    }

    rows = firestore_service.scan_media_columns(collection, columns)
    stats["totalRows"] = len(rows)

    updates = {}
    for row in rows:
        fields = {}
        has_media = False
        for column in columns:
            value = row.get(column)
            if not value or not isinstance(value, str):
                continue
            has_media = True
            normalized = normalize_media_url(value)
            if normalized != value:
                fields[column] = normalized
                stats["urlsNormalized"] += 1
            elif value.startswith(("user-media:", "websiteconfig:")):
                stats["alreadyNormalized"] += 1
        if has_media:
            stats["rowsWithMedia"] += 1
        if fields:
            updates[row["id"]] = fields

    if updates and not dry_run:
        try:
            firestore_service.update_media_columns(collection, updates)
        except Exception as e:
            stats["failed"] = len(updates)
            stats["error"] = str(e)

    return stats


class Command(BaseCommand):
    help = "Convert legacy storage URLs in media columns to storage references"

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Report what would change without writing to Firestore",
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]

        if not firestore_service.is_available():
            raise CommandError("Firestore is not available. Check Firebase credentials.")

        if dry_run:
            self.stdout.write("Dry run: no documents will be updated")

        failed = 0
        for collection, columns in MEDIA_COLUMNS:
            try:
                stats = normalize_collection(collection, columns, dry_run=dry_run)
            except Exception as e:
                raise CommandError(f"Failed to scan {collection}: {e}")

            failed += stats["failed"]
            self.stdout.write(
                f"{collection}: rows={stats['totalRows']} withMedia={stats['rowsWithMedia']} "
                f"normalized={stats['urlsNormalized']} already={stats['alreadyNormalized']} "
                f"failed={stats['failed']}"
            )
            if stats.get("error"):
                self.stderr.write(f"  {stats['error']}")

        if failed:
            raise CommandError(f"{failed} document(s) could not be updated")

        self.stdout.write(self.style.SUCCESS("Storage URL normalization complete"))
