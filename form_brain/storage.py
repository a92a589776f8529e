"""JSON-file receipt store.

One file per key under a directory:

- form_receipts.json               current receipts (tagged by form type)
- hand_receipts.json               legacy flat receipts, pre form types
- migration_version                storage schema stamp
- hand_receipts_backup_<ms>.json   legacy snapshot taken by the migration

The legacy → current migration runs once when the store opens.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from form_brain import migration
from form_brain.models import EquipmentRecord, FormType, GenericReceipt, HandReceipt, Receipt, RequestTurnIn

logger = logging.getLogger(__name__)

RECEIPTS_FILE = "form_receipts.json"
LEGACY_FILE = "hand_receipts.json"
VERSION_FILE = "migration_version"
BACKUP_PREFIX = "hand_receipts_backup_"


def _iso(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).isoformat()


class ReceiptStore:
    """Receipts persisted as a JSON array. Every call reads the file fresh."""

    def __init__(self, directory: str | Path, auto_migrate: bool = True):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

        if auto_migrate and migration.needs_migration(self):
            result = migration.migrate(self)
            if result.success:
                logger.info("Storage migration completed: %d receipts migrated", result.migrated_count)
            else:
                logger.error("Storage migration failed: %s", result.errors)

    # --- Raw file access (shared with the migration) ---

    @property
    def receipts_path(self) -> Path:
        return self.directory / RECEIPTS_FILE

    @property
    def legacy_path(self) -> Path:
        return self.directory / LEGACY_FILE

    @property
    def version_path(self) -> Path:
        return self.directory / VERSION_FILE

    def new_backup_path(self) -> Path:
        return self.directory / f"{BACKUP_PREFIX}{int(time.time() * 1000)}.json"

    def backup_paths(self) -> list[Path]:
        """Legacy backups, oldest first."""
        return sorted(self.directory.glob(f"{BACKUP_PREFIX}*.json"))

    def read_json(self, path: Path, default: Any = None) -> Any:
        if not path.exists():
            return default
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error("Could not read %s: %s", path.name, e)
            return default

    def write_json(self, path: Path, data: Any) -> None:
        # Write-then-rename so a crash never leaves a half-written file
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, path)

    def read_raw_receipts(self) -> list[dict]:
        data = self.read_json(self.receipts_path, [])
        return data if isinstance(data, list) else []

    # --- Receipts ---

    def list(self) -> list[Receipt]:
        receipts = []
        for raw in self.read_raw_receipts():
            try:
                receipts.append(Receipt.model_validate(raw))
            except ValidationError as e:
                logger.warning("Skipping unreadable receipt %r: %s", raw.get("id") if isinstance(raw, dict) else raw, e)
        return receipts

    def _save_all(self, receipts: Iterable[Receipt]) -> None:
        rows = [r.model_dump(mode="json") for r in receipts]
        self.write_json(self.receipts_path, rows)
        logger.info("Saved %d receipts", len(rows))

    def save(self, receipt: Receipt) -> Receipt:
        with self._lock:
            receipts = self.list()
            receipts.append(receipt)
            self._save_all(receipts)
        return receipt

    def get(self, receipt_id: str) -> Receipt | None:
        return next((r for r in self.list() if r.id == receipt_id), None)

    def update(self, receipt: Receipt) -> bool:
        with self._lock:
            receipts = self.list()
            for i, existing in enumerate(receipts):
                if existing.id == receipt.id:
                    receipts[i] = receipt
                    self._save_all(receipts)
                    return True
        logger.warning("Receipt with id %s not found for update", receipt.id)
        return False

    def delete(self, receipt_id: str) -> bool:
        return self.delete_many([receipt_id]) == 1

    def delete_many(self, ids: Iterable[str]) -> int:
        """Remove every receipt whose id is in *ids*; returns how many were removed."""
        doomed = set(ids)
        with self._lock:
            receipts = self.list()
            kept = [r for r in receipts if r.id not in doomed]
            removed = len(receipts) - len(kept)
            if removed:
                self._save_all(kept)
        logger.info("Deleted %d receipts", removed)
        return removed

    # --- Queries ---

    def by_form_type(self, form_type: FormType) -> list[Receipt]:
        form_type = FormType(form_type)
        return [r for r in self.list() if r.form_type == form_type]

    def by_date_range(self, start: datetime, end: datetime) -> list[Receipt]:
        """Receipts whose timestamp falls within [start, end] inclusive."""
        lo = int(start.timestamp() * 1000)
        hi = int(end.timestamp() * 1000)
        return [r for r in self.list() if lo <= r.timestamp <= hi]

    def search(self, query: str) -> list[Receipt]:
        """Case-insensitive substring search over notes and form-specific fields."""
        needle = query.strip().lower()
        if not needle:
            return self.list()
        return [r for r in self.list() if needle in r.notes.lower() or _matches(r.data, needle)]

    def stats(self) -> dict:
        receipts = self.list()
        by_form_type = {ft.value: 0 for ft in FormType}
        for r in receipts:
            by_form_type[r.form_type.value] += 1
        timestamps = [r.timestamp for r in receipts]
        return {
            "total": len(receipts),
            "by_form_type": by_form_type,
            "oldest_receipt": _iso(min(timestamps)) if timestamps else None,
            "newest_receipt": _iso(max(timestamps)) if timestamps else None,
            "storage_size": self.receipts_path.stat().st_size if self.receipts_path.exists() else 0,
            "migration_status": migration.migration_status(self),
        }

    # --- Backup ---

    def export_backup(self, ids: Iterable[str] | None = None) -> dict:
        receipts = self.list()
        if ids is not None:
            wanted = set(ids)
            receipts = [r for r in receipts if r.id in wanted]
        return {
            "receipts": [r.model_dump(mode="json") for r in receipts],
            "export_date": datetime.now(timezone.utc).isoformat(),
            "version": migration.CURRENT_VERSION,
            "count": len(receipts),
        }

    def import_backup(self, data: dict, replace: bool = False) -> bool:
        """Load receipts from an export_backup payload; appends unless *replace*."""
        raw = data.get("receipts") if isinstance(data, dict) else None
        if not isinstance(raw, list):
            logger.error("Invalid import data format: expected a 'receipts' list")
            return False
        try:
            incoming = [Receipt.model_validate(r) for r in raw]
        except ValidationError as e:
            logger.error("Invalid receipt in import data: %s", e)
            return False

        with self._lock:
            receipts = incoming if replace else [*self.list(), *incoming]
            self._save_all(receipts)
        logger.info("Imported %d receipts (%s mode)", len(incoming), "replace" if replace else "append")
        return True


# Searchable fields per record shape: (header attrs, item attrs)
_SEARCH_FIELDS = {
    HandReceipt: (("hand_receipt_number", "from_unit", "to"), ("stock_number", "item_description")),
    RequestTurnIn: (
        ("request_number", "voucher_number", "send_to", "request_from", "dodaac"),
        ("stock_number", "item_description"),
    ),
    EquipmentRecord: (("soldier_name", "rank_grade", "ssn_pid", "unit", "cif_code"), ("lin", "size", "nomenclature", "nsn")),
    GenericReceipt: (("item_name", "borrower_name", "date", "serial_number", "category", "condition", "notes"), ()),
}


def _matches(data, needle: str) -> bool:
    header, item_fields = _SEARCH_FIELDS[type(data)]
    if any(needle in getattr(data, name).lower() for name in header):
        return True
    return any(
        needle in getattr(item, name).lower()
        for item in getattr(data, "items", [])
        for name in item_fields
    )
