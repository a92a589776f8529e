"""One-time migration of legacy flat receipts to the tagged form-type shape.

Legacy receipts become Generic receipts; receipts already in the current
shape are kept. The legacy file is snapshotted to a backup (only the newest
backup is kept), then cleared, and the schema version is stamped. Running
it again once stamped is a no-op.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from pydantic import ValidationError

from form_brain.models import FormType, GenericReceipt, LegacyReceipt, Receipt

logger = logging.getLogger(__name__)

CURRENT_VERSION = "2.0.0"
LEGACY_VERSION = "1.0.0"


@dataclass
class MigrationResult:
    success: bool = False
    migrated_count: int = 0
    errors: list[str] = field(default_factory=list)
    version: str = CURRENT_VERSION


def current_version(store) -> str | None:
    if not store.version_path.exists():
        return None
    try:
        return store.version_path.read_text(encoding="utf-8").strip() or None
    except (OSError, ValueError) as e:
        logger.error("Could not read migration version: %s", e)
        return None


def needs_migration(store) -> bool:
    return current_version(store) != CURRENT_VERSION


def legacy_receipts(store) -> list[dict]:
    """Raw legacy rows, or [] when the legacy file is absent or not legacy-shaped."""
    data = store.read_json(store.legacy_path, [])
    if not isinstance(data, list) or not data or not isinstance(data[0], dict):
        return []
    first = data[0]
    if "itemName" in first and "borrowerName" in first and "formType" not in first:
        return data
    return []


def convert(raw: dict) -> Receipt:
    """A legacy row as a Generic receipt. Raises ValidationError on bad rows."""
    legacy = LegacyReceipt.model_validate(raw)
    data = GenericReceipt(
        item_name=legacy.item_name,
        borrower_name=legacy.borrower_name,
        date=legacy.date,
        serial_number=legacy.serial_number or "",
        category=legacy.category or "Other",
        condition=legacy.condition or "",
        notes=legacy.notes or "",
    )
    return Receipt(
        id=legacy.id,
        form_type=FormType.GENERIC,
        photo_url=legacy.photo_url,
        timestamp=legacy.timestamp,
        notes=legacy.notes or "",
        data=data,
    )


def _stamp(store) -> None:
    store.version_path.write_text(CURRENT_VERSION, encoding="utf-8")
    logger.info("Updated migration version to %s", CURRENT_VERSION)


def _backup(store, rows: list[dict]) -> None:
    path = store.new_backup_path()
    store.write_json(
        path,
        {
            "receipts": rows,
            "migration_date": datetime.now(timezone.utc).isoformat(),
            "version": LEGACY_VERSION,
        },
    )
    logger.info("Created legacy backup %s", path.name)

    stale = store.backup_paths()[:-1]
    for old in stale:
        old.unlink(missing_ok=True)
    if stale:
        logger.info("Removed %d old backup files", len(stale))


def migrate(store) -> MigrationResult:
    result = MigrationResult()
    rows = legacy_receipts(store)
    if not rows:
        logger.info("No legacy receipts found, updating version only")
        _stamp(store)
        result.success = True
        return result

    logger.info("Found %d legacy receipts to migrate", len(rows))
    migrated = []
    for raw in rows:
        try:
            migrated.append(convert(raw))
            result.migrated_count += 1
        except ValidationError as e:
            message = f"Failed to migrate receipt {raw.get('id')}: {e.error_count()} invalid field(s)"
            logger.error(message)
            result.errors.append(message)

    try:
        existing = store.read_raw_receipts()
        store.write_json(store.receipts_path, [r.model_dump(mode="json") for r in migrated] + existing)
        _backup(store, rows)
        store.legacy_path.unlink(missing_ok=True)
        _stamp(store)
    except OSError as e:
        message = f"Migration failed: {e}"
        logger.error(message)
        result.errors.append(message)
        return result

    logger.info("Migration completed: %d receipts migrated, %d errors", result.migrated_count, len(result.errors))
    result.success = True
    return result


def rollback(store) -> bool:
    """Restore the legacy file from the newest backup and drop the current data."""
    backups = store.backup_paths()
    if not backups:
        logger.warning("No backup found for rollback")
        return False

    backup = store.read_json(backups[-1], {})
    rows = backup.get("receipts") if isinstance(backup, dict) else None
    if not isinstance(rows, list):
        logger.warning("Invalid backup data in %s", backups[-1].name)
        return False

    store.receipts_path.unlink(missing_ok=True)
    store.version_path.unlink(missing_ok=True)
    store.write_json(store.legacy_path, rows)
    logger.info("Rollback completed: restored %d legacy receipts", len(rows))
    return True


def force_remigration(store) -> MigrationResult:
    store.version_path.unlink(missing_ok=True)
    if rollback(store):
        logger.info("Restored from backup, starting re-migration")
    return migrate(store)


def migration_status(store) -> dict:
    return {
        "needs_migration": needs_migration(store),
        "current_version": current_version(store),
        "latest_version": CURRENT_VERSION,
        "legacy_receipt_count": len(legacy_receipts(store)),
        "new_receipt_count": len(store.read_raw_receipts()),
    }
